"""Payment-rail and disbursement models."""

from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum
from typing import Any, Optional

from pydantic import BaseModel, Field


class TransactionState(StrEnum):
    """Provider-neutral transaction status."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


# ---------------------------------------------------------------------------
# Provider contract payloads
# ---------------------------------------------------------------------------


class PaymentRequest(BaseModel):
    """A single money movement to one recipient."""

    amount: Decimal
    currency: str = "XOF"
    destination: str
    recipient_name: str
    memo: str = ""
    internal_reference: str  # unique per logical payment, reused on retry


class PaymentResult(BaseModel):
    success: bool
    status: TransactionState
    transaction_reference: Optional[str] = None
    error_message: Optional[str] = None
    processed_at: Optional[datetime] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class TransactionStatus(BaseModel):
    transaction_reference: str
    status: TransactionState
    amount: Decimal = Decimal("0")
    fee: Decimal = Decimal("0")
    initiated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None


class Balance(BaseModel):
    balance: Decimal
    currency: str


class AccessToken(BaseModel):
    """OAuth token cached on one provider instance."""

    value: str
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at


class AmountLimits(BaseModel):
    model_config = {"frozen": True}

    minimum: Decimal
    maximum: Decimal

    def contains(self, amount: Decimal) -> bool:
        return self.minimum <= amount <= self.maximum


class FeeSchedule(BaseModel):
    """Step function: flat fees up to each threshold, then a percentage with a floor."""

    model_config = {"frozen": True}

    tiers: tuple[tuple[Decimal, Decimal], ...] = ()  # (upper bound inclusive, flat fee)
    percentage: Decimal = Decimal("0")
    minimum_fee: Decimal = Decimal("0")

    def fee_for(self, amount: Decimal) -> Decimal:
        for upper, fee in self.tiers:
            if amount <= upper:
                return fee
        if not self.percentage:
            return Decimal("0")
        fee = max(self.minimum_fee, amount * self.percentage)
        return fee.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Disbursement
# ---------------------------------------------------------------------------


class ValidationIssue(BaseModel):
    """A reason one payslip cannot be paid as configured."""

    payslip_id: str
    employee_id: str
    employee_name: str = ""
    field: str
    message: str


class PartitionMember(BaseModel):
    payslip_id: str
    employee_id: str
    employee_name: str = ""
    amount: Decimal
    destination: str = ""  # masked number or account
    estimated_fee: Decimal = Decimal("0")


class Partition(BaseModel):
    """Payslips sharing one payment channel."""

    channel: str  # "mobile_money:<operator>", "bank_transfer", "cash", "check"
    count: int = 0
    amount: Decimal = Decimal("0")
    estimated_fees: Decimal = Decimal("0")
    members: list[PartitionMember] = Field(default_factory=list)


class DisbursementPreview(BaseModel):
    total_payslips: int
    total_amount: Decimal
    partitions: dict[str, Partition] = Field(default_factory=dict)
    validation_errors: list[ValidationIssue] = Field(default_factory=list)

    @property
    def can_confirm(self) -> bool:
        return not self.validation_errors


class ChannelOutcome(BaseModel):
    succeeded: int = 0
    failed: int = 0
    amount: Decimal = Decimal("0")


class DisbursementFailure(BaseModel):
    payslip_id: str
    employee_id: str
    employee_name: str = ""
    channel: str
    error: str
    transaction_reference: Optional[str] = None  # set when money moved but the payslip was not updated


class DisbursementResult(BaseModel):
    total_processed: int = 0
    success_count: int = 0
    failure_count: int = 0
    total_amount_moved: Decimal = Decimal("0")
    channels: dict[str, ChannelOutcome] = Field(default_factory=dict)
    failures: list[DisbursementFailure] = Field(default_factory=list)
    notifications_sent: int = 0

    @property
    def success_rate(self) -> Decimal:
        if not self.total_processed:
            return Decimal("0")
        rate = Decimal(self.success_count) * 100 / Decimal(self.total_processed)
        return rate.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP)


class StatusRefreshEntry(BaseModel):
    payslip_id: str
    transaction_reference: str
    status: TransactionState


class StatusRefreshResult(BaseModel):
    checked: int = 0
    confirmed: int = 0
    failed: int = 0
    still_pending: int = 0
    entries: list[StatusRefreshEntry] = Field(default_factory=list)
    errors: list[DisbursementFailure] = Field(default_factory=list)


class UnpaidPayslip(BaseModel):
    payslip_id: str
    employee_id: str
    employee_name: str = ""
    amount: Decimal
    payment_method: str = ""
    operator: Optional[str] = None
    payment_status: str = ""


class PaymentStatusSummary(BaseModel):
    """Period overview of payslip and payment progress."""

    period: str
    by_status: dict[str, int] = Field(default_factory=dict)
    by_payment_status: dict[str, int] = Field(default_factory=dict)
    by_method: dict[str, int] = Field(default_factory=dict)
    total_gross: Decimal = Decimal("0")
    total_net: Decimal = Decimal("0")
    total_sent: Decimal = Decimal("0")
    awaiting_payment: Decimal = Decimal("0")
    unpaid: list[UnpaidPayslip] = Field(default_factory=list)

    @property
    def can_disburse(self) -> bool:
        return any(u.payment_status == "PENDING" for u in self.unpaid)
