"""Payroll policy: statutory rates, ceilings and the income-tax schedule."""

from __future__ import annotations

from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field


class TaxBracket(BaseModel):
    """One slice of the progressive income-tax schedule: (lower, upper]."""

    model_config = {"frozen": True}

    lower: Decimal
    upper: Optional[Decimal] = None  # None = no upper bound
    rate: Decimal


class PayrollPolicy(BaseModel):
    """Per-tenant payroll parameters.

    Defaults are the Côte d'Ivoire 2024 figures; every value is policy data
    that a tenant override may replace.
    """

    model_config = {"frozen": True}

    employee_rate: Decimal = Decimal("0.032")
    employer_rate: Decimal = Decimal("0.164")
    annual_ceiling: Decimal = Decimal("21600000")
    minimum_wage: Decimal = Decimal("60000")
    overtime_rate: Decimal = Decimal("1.25")
    monthly_hours: Decimal = Decimal("173.33")
    max_overtime_hours: Decimal = Decimal("60")
    max_advance_ratio: Decimal = Decimal("0.5")
    minimum_wage_policy: Literal["reject", "warn"] = "reject"
    tax_brackets: tuple[TaxBracket, ...] = Field(
        default_factory=lambda: (
            TaxBracket(lower=Decimal("0"), upper=Decimal("50000"), rate=Decimal("0")),
            TaxBracket(lower=Decimal("50000"), upper=Decimal("120000"), rate=Decimal("0.10")),
            TaxBracket(lower=Decimal("120000"), upper=Decimal("300000"), rate=Decimal("0.15")),
            TaxBracket(lower=Decimal("300000"), upper=Decimal("1000000"), rate=Decimal("0.20")),
            TaxBracket(lower=Decimal("1000000"), upper=None, rate=Decimal("0.25")),
        )
    )

    @property
    def monthly_ceiling(self) -> Decimal:
        return self.annual_ceiling / 12
