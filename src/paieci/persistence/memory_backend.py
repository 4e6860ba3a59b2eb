"""In-memory backends for unit tests and local runs; dict-backed fakes."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from paieci.core.exceptions import DuplicateError, NotFoundError
from paieci.models.employee import Employee
from paieci.models.filing import PayrollFiling
from paieci.models.payslip import PaymentStatus, Payslip, PayslipFilter, PayslipStatus


class MemoryPayrollStore:
    """Dict-backed IPayrollStore. Returns copies so callers never share state."""

    def __init__(self) -> None:
        self._employees: dict[tuple[str, str], Employee] = {}
        self._payslips: dict[str, Payslip] = {}
        self._filings: dict[str, PayrollFiling] = {}

    # ---- employees ----

    def get_employee(self, company_id: str, employee_id: str) -> Optional[Employee]:
        employee = self._employees.get((company_id, employee_id))
        return employee.model_copy(deep=True) if employee else None

    def save_employee(self, employee: Employee) -> None:
        self._employees[(employee.company_id, employee.id)] = employee.model_copy(deep=True)

    # ---- payslips ----

    def find_payslip(
        self, company_id: str, employee_id: str, month: int, year: int
    ) -> Optional[Payslip]:
        for p in self._payslips.values():
            if (p.company_id, p.employee_id, p.month, p.year) == (company_id, employee_id, month, year):
                return p.model_copy(deep=True)
        return None

    def get_payslip(self, company_id: str, payslip_id: str) -> Optional[Payslip]:
        p = self._payslips.get(payslip_id)
        if p is None or p.company_id != company_id:
            return None
        return p.model_copy(deep=True)

    def create_payslip(self, payslip: Payslip) -> Payslip:
        if self.find_payslip(payslip.company_id, payslip.employee_id, payslip.month, payslip.year):
            raise DuplicateError("Payslip", [payslip.employee_id])
        self._payslips[payslip.id] = payslip.model_copy(deep=True)
        return payslip.model_copy(deep=True)

    def update_payslip_status(
        self,
        company_id: str,
        payslip_id: str,
        *,
        status: PayslipStatus,
        payment_status: PaymentStatus,
        transaction_reference: Optional[str] = None,
        payment_channel: Optional[str] = None,
        timestamps: Optional[dict[str, datetime]] = None,
    ) -> Payslip:
        current = self.get_payslip(company_id, payslip_id)
        if current is None:
            raise NotFoundError(f"Payslip {payslip_id} not found")
        update: dict[str, Any] = {"status": status, "payment_status": payment_status}
        if transaction_reference is not None:
            update["transaction_reference"] = transaction_reference
        if payment_channel is not None:
            update["payment_channel"] = payment_channel
        update.update(timestamps or {})
        updated = current.model_copy(update=update)
        self._payslips[payslip_id] = updated
        return updated.model_copy(deep=True)

    def list_payslips(self, company_id: str, filter: PayslipFilter) -> list[Payslip]:
        return [
            p.model_copy(deep=True) for p in self._payslips.values()
            if p.company_id == company_id and filter.matches(p)
        ]

    # ---- filings ----

    def find_filing(self, company_id: str, month: int, year: int) -> Optional[PayrollFiling]:
        for f in self._filings.values():
            if (f.company_id, f.month, f.year) == (company_id, month, year):
                return f.model_copy(deep=True)
        return None

    def get_filing(self, company_id: str, filing_id: str) -> Optional[PayrollFiling]:
        f = self._filings.get(filing_id)
        if f is None or f.company_id != company_id:
            return None
        return f.model_copy(deep=True)

    def create_filing(self, filing: PayrollFiling) -> PayrollFiling:
        if self.find_filing(filing.company_id, filing.month, filing.year):
            raise DuplicateError("Filing", [f"{filing.company_id}:{filing.year:04d}-{filing.month:02d}"])
        self._filings[filing.id] = filing.model_copy(deep=True)
        return filing.model_copy(deep=True)

    def update_filing(self, filing: PayrollFiling) -> None:
        if self.get_filing(filing.company_id, filing.id) is None:
            raise NotFoundError(f"Filing {filing.id} not found")
        self._filings[filing.id] = filing.model_copy(deep=True)

    def delete_filing(self, company_id: str, filing_id: str) -> None:
        if self.get_filing(company_id, filing_id) is not None:
            del self._filings[filing_id]

    def list_filings(self, company_id: str, year: Optional[int] = None) -> list[PayrollFiling]:
        return [
            f.model_copy(deep=True) for f in self._filings.values()
            if f.company_id == company_id and (year is None or f.year == year)
        ]


class MemoryPolicyStore:
    """Dict-backed IPolicyStore with GLOBAL fallback."""

    def __init__(self, policies: Optional[dict[str, dict[str, Any]]] = None) -> None:
        self._policies: dict[str, dict[str, Any]] = dict(policies or {})

    def set_policy(self, company_id: str, overrides: dict[str, Any]) -> None:
        self._policies[company_id] = overrides

    def get_payroll_policy(self, company_id: str) -> dict[str, Any]:
        if company_id in self._policies:
            return self._policies[company_id]
        return self._policies.get("GLOBAL", {})


class MemoryCacheBackend:
    """Dict-backed ICacheBackend for unit tests."""

    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def setex(self, key: str, ttl: int, value: str) -> None:
        self._store[key] = value

    def delete(self, key: str) -> None:
        self._store.pop(key, None)
