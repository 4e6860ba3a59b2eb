"""PayrollRunService: generates a period's payslips and drives their lifecycle."""

from __future__ import annotations

import math
import uuid
from collections import Counter
from datetime import UTC, datetime
from typing import Callable, Optional

from pydantic import BaseModel, Field

from paieci.core.exceptions import DuplicateError, NotFoundError, ValidationError
from paieci.core.logging_config import LogContext, get_logger
from paieci.core.protocols import IPayrollStore
from paieci.models.compensation import (
    CalculationFailure,
    CompensationInput,
    PayrollTotals,
)
from paieci.models.payslip import (
    Payslip,
    PayslipFilter,
    PayslipStatus,
    check_payslip_transition,
)
from paieci.payroll.calculator import PayslipCalculator
from paieci.payroll.policy import PolicyResolver

logger = get_logger("payroll.run")


class PayrollEntry(BaseModel):
    """Compensation elements submitted for one employee."""

    employee_id: str
    compensation: CompensationInput


class PayrollRunResult(BaseModel):
    month: int
    year: int
    payslips: list[Payslip] = Field(default_factory=list)
    failures: list[CalculationFailure] = Field(default_factory=list)
    totals: PayrollTotals = Field(default_factory=PayrollTotals)

    @property
    def success_count(self) -> int:
        return len(self.payslips)


class PayslipPage(BaseModel):
    items: list[Payslip] = Field(default_factory=list)
    page: int = 1
    limit: int = 20
    total: int = 0
    pages: int = 0
    totals: PayrollTotals = Field(default_factory=PayrollTotals)


def payslip_reference(company_id: str, employee_id: str, month: int, year: int) -> str:
    return f"BP-{company_id[-3:].upper()}-{year:04d}{month:02d}-{employee_id[-3:].upper()}"


def _utcnow() -> datetime:
    return datetime.now(UTC)


def check_period(month: int, year: int) -> None:
    errors = []
    if not 1 <= month <= 12:
        errors.append({"field": "month", "message": "must be between 1 and 12"})
    if year < 2000:
        errors.append({"field": "year", "message": "must be 2000 or later"})
    if errors:
        raise ValidationError(errors)


class PayrollRunService:
    """Creates DRAFT payslips for a period and moves them through validation."""

    def __init__(
        self,
        *,
        store: IPayrollStore,
        policies: Optional[PolicyResolver] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._policies = policies or PolicyResolver()
        self._clock = clock

    def generate_payroll(
        self, company_id: str, month: int, year: int, entries: list[PayrollEntry]
    ) -> PayrollRunResult:
        """Compute and store one payslip per entry.

        Any employee already holding a payslip for the period (or listed
        twice) aborts the run with a single ``DuplicateError`` naming all of
        them. Per-employee problems after that point are collected as
        failures.
        """
        check_period(month, year)
        if not entries:
            raise ValidationError([{"field": "entries", "message": "at least one employee required"}])

        counts = Counter(e.employee_id for e in entries)
        conflicts = [emp for emp, n in counts.items() if n > 1]
        conflicts += [
            e.employee_id for e in entries
            if e.employee_id not in conflicts
            and self._store.find_payslip(company_id, e.employee_id, month, year) is not None
        ]
        if conflicts:
            raise DuplicateError("Payslip", sorted(set(conflicts)),
                                 f"Payslips already exist for {month:02d}/{year}: "
                                 f"{', '.join(sorted(set(conflicts)))}")

        run = PayrollRunResult(month=month, year=year)
        calculator = PayslipCalculator(self._policies.resolve(company_id))

        with LogContext.bind(company_id=company_id):
            known: list[tuple[str, CompensationInput]] = []
            names: dict[str, str] = {}
            for entry in entries:
                employee = self._store.get_employee(company_id, entry.employee_id)
                if employee is None or not employee.active:
                    run.failures.append(CalculationFailure(
                        employee_id=entry.employee_id,
                        reason="Unknown or inactive employee",
                    ))
                    continue
                names[employee.id] = employee.full_name
                known.append((entry.employee_id, entry.compensation))

            batch = calculator.compute_batch_payroll(known)
            run.failures.extend(batch.failures)
            compensation = dict(known)
            now = self._clock()

            for item in batch.results:
                payslip = Payslip(
                    id=str(uuid.uuid4()),
                    reference=payslip_reference(company_id, item.employee_id, month, year),
                    company_id=company_id,
                    employee_id=item.employee_id,
                    employee_name=names[item.employee_id],
                    month=month,
                    year=year,
                    compensation=compensation[item.employee_id],
                    calculation=item.result,
                    created_at=now,
                )
                run.payslips.append(self._store.create_payslip(payslip))
                run.totals.add(item.result)

            logger.info(
                "payroll generated",
                extra={"period": f"{year:04d}-{month:02d}",
                       "payslips_created": run.success_count, "failed": len(run.failures)},
            )
        return run

    # ---- lifecycle ----

    def get_payslip(self, company_id: str, payslip_id: str) -> Payslip:
        payslip = self._store.get_payslip(company_id, payslip_id)
        if payslip is None:
            raise NotFoundError(f"Payslip {payslip_id} not found")
        return payslip

    def _move(self, company_id: str, payslip_id: str, target: PayslipStatus,
              stamp: str) -> Payslip:
        payslip = self.get_payslip(company_id, payslip_id)
        check_payslip_transition(payslip.status, target)
        return self._store.update_payslip_status(
            company_id, payslip_id,
            status=target,
            payment_status=payslip.payment_status,
            timestamps={stamp: self._clock()},
        )

    def validate_payslips(self, company_id: str, payslip_ids: list[str]) -> list[Payslip]:
        """DRAFT -> VALIDATED; makes payslips eligible for filing and disbursement."""
        return [self._move(company_id, pid, PayslipStatus.VALIDATED, "validated_at")
                for pid in payslip_ids]

    def archive_payslip(self, company_id: str, payslip_id: str) -> Payslip:
        return self._move(company_id, payslip_id, PayslipStatus.ARCHIVED, "archived_at")

    def list_payslips(
        self,
        company_id: str,
        filter: Optional[PayslipFilter] = None,
        page: int = 1,
        limit: int = 20,
    ) -> PayslipPage:
        """Newest period first, paginated, with totals over the whole selection."""
        items = self._store.list_payslips(company_id, filter or PayslipFilter())
        items.sort(key=lambda p: (p.year, p.month, p.created_at or datetime.min.replace(tzinfo=UTC)),
                   reverse=True)
        totals = PayrollTotals()
        for p in items:
            totals.add(p.calculation)
        start = (max(page, 1) - 1) * limit
        return PayslipPage(
            items=items[start:start + limit],
            page=page,
            limit=limit,
            total=len(items),
            pages=math.ceil(len(items) / limit) if limit else 0,
            totals=totals,
        )
