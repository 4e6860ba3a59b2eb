"""CNPS social-security filing (monthly declaration) models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field

from paieci.core.exceptions import InvalidTransitionError

MONTH_NAMES_FR = (
    "Janvier", "Février", "Mars", "Avril", "Mai", "Juin",
    "Juillet", "Août", "Septembre", "Octobre", "Novembre", "Décembre",
)


class FilingStatus(StrEnum):
    DRAFT = "DRAFT"
    VALIDATED = "VALIDATED"
    FILED = "FILED"


FILING_TRANSITIONS: dict[FilingStatus, frozenset[FilingStatus]] = {
    FilingStatus.DRAFT: frozenset({FilingStatus.VALIDATED}),
    FilingStatus.VALIDATED: frozenset({FilingStatus.FILED}),
    FilingStatus.FILED: frozenset(),
}


class FilingLine(BaseModel):
    """Per-employee line copied from a validated payslip."""

    model_config = {"frozen": True}

    payslip_id: str
    employee_id: str
    employee_name: str = ""
    cnps_number: str = ""
    gross_pay: Decimal
    employee_contribution: Decimal
    employer_contribution: Decimal


class PayrollFiling(BaseModel):
    """Aggregated declaration for one (company, month, year).

    Totals are a snapshot taken at creation and never recomputed.
    """

    id: str
    company_id: str
    month: int = Field(ge=1, le=12)
    year: int
    period_label: str = ""

    employee_count: int = 0
    total_gross: Decimal = Decimal("0")
    total_employee_contributions: Decimal = Decimal("0")
    total_employer_contributions: Decimal = Decimal("0")
    lines: tuple[FilingLine, ...] = ()

    status: FilingStatus = FilingStatus.DRAFT
    created_at: Optional[datetime] = None
    validated_at: Optional[datetime] = None
    filed_at: Optional[datetime] = None

    @property
    def total_contributions(self) -> Decimal:
        return self.total_employee_contributions + self.total_employer_contributions

    def check_transition(self, target: FilingStatus) -> None:
        if target not in FILING_TRANSITIONS[self.status]:
            raise InvalidTransitionError("Filing", self.status, target)


def period_label(month: int, year: int) -> str:
    return f"{MONTH_NAMES_FR[month - 1]} {year}"
