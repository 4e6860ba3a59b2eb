"""Payslip entity and its lifecycle state machine."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import StrEnum
from typing import Optional

from pydantic import BaseModel, Field

from paieci.core.exceptions import InvalidTransitionError
from paieci.models.compensation import CompensationInput, PayslipCalculationResult


class PayslipStatus(StrEnum):
    DRAFT = "DRAFT"
    VALIDATED = "VALIDATED"
    SENT = "SENT"
    ARCHIVED = "ARCHIVED"


class PaymentStatus(StrEnum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    SENT = "SENT"
    FAILED = "FAILED"


PAYSLIP_TRANSITIONS: dict[PayslipStatus, frozenset[PayslipStatus]] = {
    PayslipStatus.DRAFT: frozenset({PayslipStatus.VALIDATED}),
    PayslipStatus.VALIDATED: frozenset({PayslipStatus.SENT}),
    PayslipStatus.SENT: frozenset({PayslipStatus.ARCHIVED}),
    PayslipStatus.ARCHIVED: frozenset(),
}

PAYMENT_TRANSITIONS: dict[PaymentStatus, frozenset[PaymentStatus]] = {
    PaymentStatus.PENDING: frozenset(
        {PaymentStatus.IN_PROGRESS, PaymentStatus.SENT, PaymentStatus.FAILED}
    ),
    PaymentStatus.IN_PROGRESS: frozenset({PaymentStatus.SENT, PaymentStatus.FAILED}),
    PaymentStatus.SENT: frozenset(),
    PaymentStatus.FAILED: frozenset({PaymentStatus.PENDING}),  # manual retry
}


def check_payslip_transition(current: PayslipStatus, target: PayslipStatus) -> None:
    if current != target and target not in PAYSLIP_TRANSITIONS[current]:
        raise InvalidTransitionError("Payslip", current, target)


def check_payment_transition(current: PaymentStatus, target: PaymentStatus) -> None:
    if current != target and target not in PAYMENT_TRANSITIONS[current]:
        raise InvalidTransitionError("Payment", current, target)


class Payslip(BaseModel):
    """One employee's payroll record for one (month, year).

    ``compensation`` and ``calculation`` are frozen snapshots; only the
    status fields move after creation.
    """

    id: str
    reference: str = ""
    company_id: str
    employee_id: str
    employee_name: str = ""
    month: int = Field(ge=1, le=12)
    year: int

    compensation: CompensationInput
    calculation: PayslipCalculationResult

    status: PayslipStatus = PayslipStatus.DRAFT
    payment_status: PaymentStatus = PaymentStatus.PENDING
    transaction_reference: Optional[str] = None
    payment_channel: Optional[str] = None  # e.g. "mobile_money:wave", "cash"

    created_at: Optional[datetime] = None
    validated_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None

    @property
    def net_pay(self) -> Decimal:
        return self.calculation.net_pay

    @property
    def period(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    @property
    def payable(self) -> bool:
        """Eligible for a disbursement batch."""
        return (
            self.status == PayslipStatus.VALIDATED
            and self.payment_status == PaymentStatus.PENDING
        )


class PayslipFilter(BaseModel):
    """Criteria for listing a company's payslips."""

    month: Optional[int] = None
    year: Optional[int] = None
    employee_ids: Optional[list[str]] = None
    payslip_ids: Optional[list[str]] = None
    status: Optional[PayslipStatus] = None
    payment_status: Optional[PaymentStatus] = None

    def matches(self, payslip: Payslip) -> bool:
        if self.month is not None and payslip.month != self.month:
            return False
        if self.year is not None and payslip.year != self.year:
            return False
        if self.employee_ids is not None and payslip.employee_id not in self.employee_ids:
            return False
        if self.payslip_ids is not None and payslip.id not in self.payslip_ids:
            return False
        if self.status is not None and payslip.status != self.status:
            return False
        if self.payment_status is not None and payslip.payment_status != self.payment_status:
            return False
        return True
