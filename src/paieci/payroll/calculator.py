"""PayslipCalculator: gross pay, CNPS contributions and income tax.

Pure computation: no I/O, no clock, no environment access. The same
``CompensationInput`` and ``PayrollPolicy`` always yield the same result.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional

from paieci.core.exceptions import ValidationError
from paieci.models.compensation import (
    BatchPayrollResult,
    BracketTax,
    CalculationFailure,
    CompensationInput,
    EmployeeCalculation,
    PayslipCalculationResult,
)
from paieci.models.policy import PayrollPolicy

ZERO = Decimal("0")
UNIT = Decimal("1")

_NON_NEGATIVE_FIELDS = (
    "overtime_hours",
    "transport_allowance",
    "variable_bonuses",
    "fixed_bonuses",
    "advances",
    "other_deductions",
)


def round_xof(amount: Decimal) -> Decimal:
    """Round to the whole franc (XOF has no sub-unit)."""
    return amount.quantize(UNIT, rounding=ROUND_HALF_UP)


class PayslipCalculator:
    """Computes payslips under one tenant's payroll policy."""

    def __init__(self, policy: Optional[PayrollPolicy] = None) -> None:
        self._policy = policy or PayrollPolicy()

    @property
    def policy(self) -> PayrollPolicy:
        return self._policy

    # ---- validation ----

    def validate(self, data: CompensationInput) -> tuple[list[dict[str, str]], list[str]]:
        """Return (errors, warnings) for an input without computing anything."""
        policy = self._policy
        errors: list[dict[str, str]] = []
        warnings: list[str] = []

        if data.base_salary <= 0:
            errors.append({"field": "base_salary", "message": "must be greater than 0"})
        elif data.base_salary < policy.minimum_wage:
            message = f"below the minimum wage ({policy.minimum_wage} XOF)"
            if policy.minimum_wage_policy == "reject":
                errors.append({"field": "base_salary", "message": message})
            else:
                warnings.append(f"base_salary {message}")

        for field in _NON_NEGATIVE_FIELDS:
            if getattr(data, field) < 0:
                errors.append({"field": field, "message": "cannot be negative"})

        if data.overtime_hours > policy.max_overtime_hours:
            errors.append({
                "field": "overtime_hours",
                "message": f"cannot exceed {policy.max_overtime_hours}h per month",
            })

        if data.overtime_rate is not None and data.overtime_rate <= 0:
            errors.append({"field": "overtime_rate", "message": "must be greater than 0"})

        # Checked against base salary, not net pay.
        max_advance = data.base_salary * policy.max_advance_ratio
        if data.advances > 0 and data.base_salary > 0 and data.advances > max_advance:
            errors.append({
                "field": "advances",
                "message": f"cannot exceed {policy.max_advance_ratio * 100:.0f}% of base salary",
            })

        return errors, warnings

    # ---- components ----

    def overtime_amount(self, base_salary: Decimal, hours: Decimal, rate: Optional[Decimal]) -> Decimal:
        if hours <= 0:
            return ZERO
        hourly = base_salary / self._policy.monthly_hours
        return round_xof(hours * hourly * (rate or self._policy.overtime_rate))

    def contributions(self, gross: Decimal) -> tuple[Decimal, Decimal, Decimal]:
        """Return (base, employee, employer) for the capped contribution base."""
        base = min(gross, self._policy.monthly_ceiling)
        employee = round_xof(base * self._policy.employee_rate)
        employer = round_xof(base * self._policy.employer_rate)
        return base, employee, employer

    def income_tax(self, taxable: Decimal) -> tuple[Decimal, tuple[BracketTax, ...]]:
        """Marginal progressive tax; total rounded once after summing brackets."""
        lines: list[BracketTax] = []
        total = ZERO
        for bracket in self._policy.tax_brackets:
            if taxable <= bracket.lower:
                break
            top = taxable if bracket.upper is None else min(taxable, bracket.upper)
            slice_amount = top - bracket.lower
            tax = slice_amount * bracket.rate
            lines.append(BracketTax(
                lower=bracket.lower,
                upper=bracket.upper,
                rate=bracket.rate,
                taxable_amount=slice_amount,
                tax=tax,
            ))
            total += tax
        return round_xof(total), tuple(lines)

    # ---- operations ----

    def compute_payslip(self, data: CompensationInput) -> PayslipCalculationResult:
        """Compute one payslip. Raises ValidationError before any arithmetic."""
        errors, warnings = self.validate(data)
        if errors:
            raise ValidationError(errors)

        overtime = self.overtime_amount(data.base_salary, data.overtime_hours, data.overtime_rate)
        gross = (
            data.base_salary
            + overtime
            + data.transport_allowance
            + data.variable_bonuses
            + data.fixed_bonuses
        )
        base, employee, employer = self.contributions(gross)
        tax, brackets = self.income_tax(gross)
        net = gross - employee - tax - data.advances - data.other_deductions

        return PayslipCalculationResult(
            base_salary=data.base_salary,
            overtime_hours=data.overtime_hours,
            overtime_amount=overtime,
            transport_allowance=data.transport_allowance,
            variable_bonuses=data.variable_bonuses,
            fixed_bonuses=data.fixed_bonuses,
            gross_pay=gross,
            contribution_base=base,
            employee_contribution=employee,
            employer_contribution=employer,
            taxable_base=gross,
            income_tax=tax,
            tax_brackets=brackets,
            advances=data.advances,
            other_deductions=data.other_deductions,
            net_pay=net,
            employer_total_cost=gross + employer,
            warnings=tuple(warnings),
        )

    def compute_batch_payroll(
        self, entries: Iterable[tuple[str, CompensationInput]]
    ) -> BatchPayrollResult:
        """Compute every entry independently; failures never block the others."""
        batch = BatchPayrollResult()
        for employee_id, data in entries:
            try:
                result = self.compute_payslip(data)
            except ValidationError as exc:
                batch.failures.append(CalculationFailure(
                    employee_id=employee_id, reason=str(exc), errors=exc.errors,
                ))
                continue
            batch.results.append(EmployeeCalculation(employee_id=employee_id, result=result))
            batch.totals.add(result)
        return batch


def compute_payslip(
    data: CompensationInput, policy: Optional[PayrollPolicy] = None
) -> PayslipCalculationResult:
    """Convenience wrapper around ``PayslipCalculator(policy).compute_payslip``."""
    return PayslipCalculator(policy).compute_payslip(data)
