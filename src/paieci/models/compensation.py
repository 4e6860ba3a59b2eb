"""Compensation inputs and calculation results for one payslip."""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class CompensationInput(BaseModel):
    """Raw compensation elements for one employee and one month.

    Business limits (positive base salary, overtime cap, advance ceiling)
    are checked by the calculator, not here, so that failures surface as
    field-level ``ValidationError`` entries.
    """

    model_config = {"frozen": True}

    base_salary: Decimal
    overtime_hours: Decimal = Decimal("0")
    overtime_rate: Optional[Decimal] = None  # None -> policy default (1.25)
    transport_allowance: Decimal = Decimal("0")
    variable_bonuses: Decimal = Decimal("0")
    fixed_bonuses: Decimal = Decimal("0")
    advances: Decimal = Decimal("0")
    other_deductions: Decimal = Decimal("0")


class BracketTax(BaseModel):
    """Audit line: the part of taxable pay falling in one bracket."""

    model_config = {"frozen": True}

    lower: Decimal
    upper: Optional[Decimal] = None
    rate: Decimal
    taxable_amount: Decimal
    tax: Decimal


class PayslipCalculationResult(BaseModel):
    """Immutable outcome of one payslip calculation."""

    model_config = {"frozen": True}

    # --- Earnings ---
    base_salary: Decimal
    overtime_hours: Decimal
    overtime_amount: Decimal
    transport_allowance: Decimal
    variable_bonuses: Decimal
    fixed_bonuses: Decimal
    gross_pay: Decimal

    # --- CNPS contributions ---
    contribution_base: Decimal
    employee_contribution: Decimal
    employer_contribution: Decimal

    # --- Income tax ---
    taxable_base: Decimal
    income_tax: Decimal
    tax_brackets: tuple[BracketTax, ...] = ()

    # --- Deductions and result ---
    advances: Decimal
    other_deductions: Decimal
    net_pay: Decimal
    employer_total_cost: Decimal

    warnings: tuple[str, ...] = ()

    @property
    def total_contributions(self) -> Decimal:
        return self.employee_contribution + self.employer_contribution

    @property
    def total_deductions(self) -> Decimal:
        return self.employee_contribution + self.income_tax + self.advances + self.other_deductions


class CalculationFailure(BaseModel):
    """An employee whose payslip could not be computed in a batch."""

    employee_id: str
    reason: str
    errors: list[dict] = Field(default_factory=list)


class EmployeeCalculation(BaseModel):
    """A successful batch entry."""

    employee_id: str
    result: PayslipCalculationResult


class PayrollTotals(BaseModel):
    """Aggregated totals across the successful entries of a payroll run."""

    employee_count: int = 0
    total_base_salary: Decimal = Decimal("0")
    total_gross: Decimal = Decimal("0")
    total_employee_contributions: Decimal = Decimal("0")
    total_employer_contributions: Decimal = Decimal("0")
    total_income_tax: Decimal = Decimal("0")
    total_net_pay: Decimal = Decimal("0")
    total_employer_cost: Decimal = Decimal("0")

    def add(self, result: PayslipCalculationResult) -> None:
        self.employee_count += 1
        self.total_base_salary += result.base_salary
        self.total_gross += result.gross_pay
        self.total_employee_contributions += result.employee_contribution
        self.total_employer_contributions += result.employer_contribution
        self.total_income_tax += result.income_tax
        self.total_net_pay += result.net_pay
        self.total_employer_cost += result.employer_total_cost


class BatchPayrollResult(BaseModel):
    """Per-employee results, failures and totals of a batch calculation."""

    results: list[EmployeeCalculation] = Field(default_factory=list)
    failures: list[CalculationFailure] = Field(default_factory=list)
    totals: PayrollTotals = Field(default_factory=PayrollTotals)
