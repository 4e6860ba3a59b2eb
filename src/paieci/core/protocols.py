"""Protocol interfaces for all PaieCI collaborators.

All inter-layer communication uses these structural Protocols: no inheritance
required, easy to test with isinstance().
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, Protocol, runtime_checkable

from paieci.core.types import JsonDict
from paieci.models.auth import AuthResult
from paieci.models.employee import Employee
from paieci.models.filing import PayrollFiling
from paieci.models.payments import (
    Balance,
    PaymentRequest,
    PaymentResult,
    TransactionStatus,
)
from paieci.models.payslip import PaymentStatus, Payslip, PayslipFilter, PayslipStatus


# ---------------------------------------------------------------------------
# Persistence: Payroll Store
# ---------------------------------------------------------------------------

@runtime_checkable
class IPayrollStore(Protocol):
    """Employees, payslips and filings, always scoped by company.

    Creation calls are conflict-checked by the services first; a backend
    may additionally refuse a duplicate with ``DuplicateError``.
    """

    def get_employee(self, company_id: str, employee_id: str) -> Optional[Employee]: ...

    def save_employee(self, employee: Employee) -> None: ...

    def find_payslip(
        self, company_id: str, employee_id: str, month: int, year: int
    ) -> Optional[Payslip]: ...

    def get_payslip(self, company_id: str, payslip_id: str) -> Optional[Payslip]: ...

    def create_payslip(self, payslip: Payslip) -> Payslip: ...

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
    ) -> Payslip: ...

    def list_payslips(self, company_id: str, filter: PayslipFilter) -> list[Payslip]: ...

    def find_filing(self, company_id: str, month: int, year: int) -> Optional[PayrollFiling]: ...

    def get_filing(self, company_id: str, filing_id: str) -> Optional[PayrollFiling]: ...

    def create_filing(self, filing: PayrollFiling) -> PayrollFiling: ...

    def update_filing(self, filing: PayrollFiling) -> None: ...

    def delete_filing(self, company_id: str, filing_id: str) -> None: ...

    def list_filings(self, company_id: str, year: Optional[int] = None) -> list[PayrollFiling]: ...


# ---------------------------------------------------------------------------
# Persistence: Policy Store
# ---------------------------------------------------------------------------

@runtime_checkable
class IPolicyStore(Protocol):
    """Per-tenant payroll policy overrides, with GLOBAL fallback."""

    def get_payroll_policy(self, company_id: str) -> JsonDict: ...


# ---------------------------------------------------------------------------
# Persistence: Cache Backend
# ---------------------------------------------------------------------------

@runtime_checkable
class ICacheBackend(Protocol):
    """Redis-compatible cache interface."""

    def get(self, key: str) -> str | None: ...

    def setex(self, key: str, ttl: int, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


# ---------------------------------------------------------------------------
# Payment Provider
# ---------------------------------------------------------------------------

@runtime_checkable
class IPaymentProvider(Protocol):
    """Capability set shared by every money-movement rail."""

    name: str

    def initiate_payment(self, request: PaymentRequest) -> PaymentResult: ...

    def check_transaction_status(self, transaction_reference: str) -> TransactionStatus: ...

    def get_balance(self) -> Balance: ...

    def validate_phone_number(self, number: str) -> bool: ...

    def normalize_phone_number(self, number: str) -> str: ...

    def calculate_fee(self, amount: Decimal) -> Decimal: ...

    def check_amount(self, amount: Decimal) -> None: ...


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

@runtime_checkable
class IIdentityProvider(Protocol):
    """External identity provider verifying request credentials."""

    def verify_request(self, credentials: str) -> AuthResult: ...


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------

@runtime_checkable
class INotifier(Protocol):
    """Fire-and-forget employee notification channel."""

    def notify(self, recipient: Employee, message_type: str, payload: JsonDict) -> None: ...
