"""FilingService: monthly CNPS declaration built from validated payslips."""

from __future__ import annotations

import math
import uuid
from datetime import UTC, datetime
from decimal import Decimal
from typing import Callable, Optional

from paieci.core.exceptions import (
    DuplicateError,
    InvalidTransitionError,
    NoEligibleRecordsError,
    NotFoundError,
)
from paieci.core.logging_config import get_logger
from paieci.core.protocols import IPayrollStore
from paieci.models.filing import FilingLine, FilingStatus, PayrollFiling, period_label
from paieci.models.payslip import PayslipFilter, PayslipStatus
from paieci.payroll.run import check_period

logger = get_logger("filing.service")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class FilingService:
    """Create, approve, file and delete CNPS filings."""

    def __init__(self, *, store: IPayrollStore, clock: Callable[[], datetime] = _utcnow) -> None:
        self._store = store
        self._clock = clock

    def create_filing(
        self,
        company_id: str,
        month: int,
        year: int,
        employee_ids: Optional[list[str]] = None,
    ) -> PayrollFiling:
        """Snapshot the period's VALIDATED payslips into a DRAFT filing.

        Totals are summed from the stored payslip fields, never recomputed.
        """
        check_period(month, year)
        if self._store.find_filing(company_id, month, year) is not None:
            raise DuplicateError("Filing", [f"{company_id}:{year:04d}-{month:02d}"])

        payslips = self._store.list_payslips(company_id, PayslipFilter(
            month=month, year=year, status=PayslipStatus.VALIDATED, employee_ids=employee_ids,
        ))
        if not payslips:
            raise NoEligibleRecordsError(
                f"No validated payslip for {period_label(month, year)}"
            )

        lines = []
        for p in sorted(payslips, key=lambda p: p.employee_name):
            employee = self._store.get_employee(company_id, p.employee_id)
            lines.append(FilingLine(
                payslip_id=p.id,
                employee_id=p.employee_id,
                employee_name=p.employee_name,
                cnps_number=employee.cnps_number if employee else "",
                gross_pay=p.calculation.gross_pay,
                employee_contribution=p.calculation.employee_contribution,
                employer_contribution=p.calculation.employer_contribution,
            ))

        filing = PayrollFiling(
            id=str(uuid.uuid4()),
            company_id=company_id,
            month=month,
            year=year,
            period_label=period_label(month, year),
            employee_count=len(lines),
            total_gross=sum((l.gross_pay for l in lines), Decimal("0")),
            total_employee_contributions=sum((l.employee_contribution for l in lines), Decimal("0")),
            total_employer_contributions=sum((l.employer_contribution for l in lines), Decimal("0")),
            lines=tuple(lines),
            created_at=self._clock(),
        )
        created = self._store.create_filing(filing)
        logger.info("filing created", extra={
            "company_id": company_id, "filing_id": created.id,
            "employees": created.employee_count, "total_contributions": created.total_contributions,
        })
        return created

    def get_filing(self, company_id: str, filing_id: str) -> PayrollFiling:
        filing = self._store.get_filing(company_id, filing_id)
        if filing is None:
            raise NotFoundError(f"Filing {filing_id} not found")
        return filing

    def validate_filing(self, company_id: str, filing_id: str) -> PayrollFiling:
        filing = self.get_filing(company_id, filing_id)
        filing.check_transition(FilingStatus.VALIDATED)
        updated = filing.model_copy(update={
            "status": FilingStatus.VALIDATED, "validated_at": self._clock(),
        })
        self._store.update_filing(updated)
        return updated

    def mark_filed(self, company_id: str, filing_id: str) -> PayrollFiling:
        filing = self.get_filing(company_id, filing_id)
        filing.check_transition(FilingStatus.FILED)
        updated = filing.model_copy(update={
            "status": FilingStatus.FILED, "filed_at": self._clock(),
        })
        self._store.update_filing(updated)
        logger.info("filing submitted", extra={"company_id": company_id, "filing_id": filing_id})
        return updated

    def delete_filing(self, company_id: str, filing_id: str) -> None:
        filing = self.get_filing(company_id, filing_id)
        if filing.status != FilingStatus.DRAFT:
            raise InvalidTransitionError("Filing", filing.status, "DELETED")
        self._store.delete_filing(company_id, filing_id)

    def list_filings(
        self, company_id: str, year: Optional[int] = None, page: int = 1, limit: int = 10
    ) -> tuple[list[PayrollFiling], int, int]:
        """Return (page items, total, page count), most recent period first."""
        filings = sorted(self._store.list_filings(company_id, year),
                         key=lambda f: (f.year, f.month), reverse=True)
        start = (max(page, 1) - 1) * limit
        return filings[start:start + limit], len(filings), math.ceil(len(filings) / limit)
