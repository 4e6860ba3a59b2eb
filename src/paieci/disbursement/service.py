"""DisbursementService: preview, pay and track salary disbursement batches."""

from __future__ import annotations

import time
import uuid
from collections import Counter
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Callable, Optional

from paieci.core.config import DisbursementConfig
from paieci.core.exceptions import (
    EmptyBatchError,
    OutOfRangeError,
    PaieCIError,
    UnsupportedOperationError,
    ValidationError,
)
from paieci.core.logging_config import LogContext, get_logger, mask_number
from paieci.core.protocols import INotifier, IPaymentProvider, IPayrollStore
from paieci.models.employee import Employee, PaymentMethod
from paieci.models.filing import period_label
from paieci.models.payments import (
    ChannelOutcome,
    DisbursementFailure,
    DisbursementPreview,
    DisbursementResult,
    Partition,
    PartitionMember,
    PaymentRequest,
    PaymentStatusSummary,
    StatusRefreshEntry,
    StatusRefreshResult,
    TransactionState,
    UnpaidPayslip,
    ValidationIssue,
)
from paieci.models.payslip import (
    PaymentStatus,
    Payslip,
    PayslipFilter,
    PayslipStatus,
    check_payment_transition,
    check_payslip_transition,
)
from paieci.payments.factory import PaymentProviderFactory
from paieci.payments.operators import detect_operator

logger = get_logger("disbursement.service")

MOBILE_PREFIX = "mobile_money:"
SALARY_PAID = "PAIEMENT_SALAIRE"
_MANUAL_CHANNELS = {
    PaymentMethod.BANK_TRANSFER: "bank_transfer",
    PaymentMethod.CASH: "cash",
    PaymentMethod.CHECK: "check",
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def internal_reference(payslip_id: str) -> str:
    """Stable per-payslip payment reference, reused on retry."""
    return f"SAL-{payslip_id}"


# (ok, error, transaction reference of a payment that moved money but was not recorded)
_Outcome = tuple[bool, Optional[str], Optional[str]]


@dataclass
class _Planned:
    """One eligible payslip with its resolved channel."""

    payslip: Payslip
    employee: Optional[Employee]
    channel: str
    provider: Optional[IPaymentProvider] = None
    estimated_fee: Decimal = Decimal("0")


class DisbursementService:
    """Validates and dispatches net pay to the employees' payment channels."""

    def __init__(
        self,
        *,
        store: IPayrollStore,
        providers: PaymentProviderFactory,
        notifier: Optional[INotifier] = None,
        config: Optional[DisbursementConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._providers = providers
        self._notifier = notifier
        self._config = config or DisbursementConfig()
        self._sleep = sleep
        self._clock = clock

    # ---- selection & validation ----

    def _eligible(self, company_id: str, payslip_ids: list[str]) -> list[Payslip]:
        payslips = self._store.list_payslips(company_id, PayslipFilter(
            payslip_ids=list(payslip_ids),
            status=PayslipStatus.VALIDATED,
            payment_status=PaymentStatus.PENDING,
        ))
        if not payslips:
            raise EmptyBatchError("No payslip eligible for disbursement")
        return sorted(payslips, key=lambda p: p.employee_name)

    def _plan(self, company_id: str, payslips: list[Payslip]
              ) -> tuple[list[_Planned], list[ValidationIssue]]:
        planned: list[_Planned] = []
        issues: list[ValidationIssue] = []

        def issue(p: Payslip, field: str, message: str) -> None:
            issues.append(ValidationIssue(
                payslip_id=p.id, employee_id=p.employee_id,
                employee_name=p.employee_name, field=field, message=message,
            ))

        for p in payslips:
            employee = self._store.get_employee(company_id, p.employee_id)
            if employee is None:
                issue(p, "employee", "Employee record not found")
                planned.append(_Planned(p, None, "unknown"))
                continue
            if p.net_pay <= 0:
                issue(p, "amount", "Net pay must be positive")

            if employee.payment_method != PaymentMethod.MOBILE_MONEY:
                if employee.payment_method == PaymentMethod.BANK_TRANSFER and not employee.bank_account:
                    issue(p, "bank_account", "Bank account number missing")
                planned.append(_Planned(p, employee, _MANUAL_CHANNELS[employee.payment_method]))
                continue

            operator = employee.mobile_operator or ""
            item = _Planned(p, employee, f"{MOBILE_PREFIX}{operator or 'unknown'}")
            planned.append(item)
            if not employee.mobile_number:
                issue(p, "mobile_number", "Mobile money number missing")
                continue
            if not operator:
                issue(p, "mobile_operator", "Mobile money operator missing (number suggests "
                      f"{detect_operator(employee.mobile_number).value})")
                continue
            try:
                provider = self._providers.create(operator)
            except UnsupportedOperationError as exc:
                issue(p, "mobile_operator", str(exc))
                continue
            item.provider = provider
            if not provider.validate_phone_number(employee.mobile_number):
                issue(p, "mobile_number",
                      f"Number {mask_number(employee.mobile_number)} is not a valid {provider.name} number")
                continue
            try:
                item.estimated_fee = provider.calculate_fee(p.net_pay)
            except OutOfRangeError as exc:
                issue(p, "amount", str(exc))
        return planned, issues

    # ---- preview ----

    def preview_disbursement(self, company_id: str, payslip_ids: list[str]) -> DisbursementPreview:
        """Partition the eligible payslips by channel without changing any state."""
        payslips = self._eligible(company_id, payslip_ids)
        planned, issues = self._plan(company_id, payslips)

        partitions: dict[str, Partition] = {}
        for item in planned:
            p, employee = item.payslip, item.employee
            part = partitions.setdefault(item.channel, Partition(channel=item.channel))
            if employee is None:
                destination = ""
            elif employee.payment_method == PaymentMethod.MOBILE_MONEY:
                destination = mask_number(employee.mobile_number)
            else:
                destination = mask_number(employee.bank_account)
            part.members.append(PartitionMember(
                payslip_id=p.id, employee_id=p.employee_id, employee_name=p.employee_name,
                amount=p.net_pay, destination=destination, estimated_fee=item.estimated_fee,
            ))
            part.count += 1
            part.amount += p.net_pay
            part.estimated_fees += item.estimated_fee

        return DisbursementPreview(
            total_payslips=len(planned),
            total_amount=sum((i.payslip.net_pay for i in planned), Decimal("0")),
            partitions=partitions,
            validation_errors=issues,
        )

    # ---- confirm ----

    def confirm_disbursement(
        self, company_id: str, payslip_ids: list[str], notify_employees: bool = True
    ) -> DisbursementResult:
        """Revalidate, then pay each member; one member's failure never aborts the batch."""
        payslips = self._eligible(company_id, payslip_ids)
        planned, issues = self._plan(company_id, payslips)
        if issues:
            raise ValidationError(
                [i.model_dump() for i in issues],
                f"Disbursement blocked: {len(issues)} validation error(s)",
            )

        result = DisbursementResult(total_processed=len(planned))
        paid: list[_Planned] = []
        batch_id = str(uuid.uuid4())

        with LogContext.bind(company_id=company_id, batch_id=batch_id):
            logger.info("disbursement started", extra={"payslips": len(planned)})
            first_call = True
            for item in planned:
                outcome = result.channels.setdefault(item.channel, ChannelOutcome())
                if item.provider is None:
                    ok, error, reference = self._settle_manual(item)
                else:
                    if not first_call:
                        self._sleep(self._config.inter_call_delay_seconds)
                    first_call = False
                    ok, error, reference = self._pay_mobile(item)

                if ok:
                    outcome.succeeded += 1
                    outcome.amount += item.payslip.net_pay
                    result.success_count += 1
                    result.total_amount_moved += item.payslip.net_pay
                    paid.append(item)
                else:
                    outcome.failed += 1
                    result.failure_count += 1
                    result.failures.append(DisbursementFailure(
                        payslip_id=item.payslip.id,
                        employee_id=item.payslip.employee_id,
                        employee_name=item.payslip.employee_name,
                        channel=item.channel,
                        error=error or "Payment failed",
                        transaction_reference=reference,
                    ))

            if notify_employees:
                result.notifications_sent = self._notify_all(paid)

            logger.info("disbursement finished", extra={
                "succeeded": result.success_count, "failed": result.failure_count,
                "amount": result.total_amount_moved,
            })
        return result

    def _settle_manual(self, item: _Planned) -> _Outcome:
        p = item.payslip
        now = self._clock()
        try:
            check_payslip_transition(p.status, PayslipStatus.SENT)
            check_payment_transition(p.payment_status, PaymentStatus.SENT)
            self._store.update_payslip_status(
                p.company_id, p.id,
                status=PayslipStatus.SENT,
                payment_status=PaymentStatus.SENT,
                payment_channel=item.channel,
                timestamps={"sent_at": now, "paid_at": now},
            )
        except PaieCIError as exc:
            logger.error("manual settlement not recorded", extra={"payslip_id": p.id, "error": str(exc)})
            return False, str(exc), None
        return True, None, None

    def _pay_mobile(self, item: _Planned) -> _Outcome:
        p, employee, provider = item.payslip, item.employee, item.provider
        request = PaymentRequest(
            amount=p.net_pay,
            currency=self._config.currency,
            destination=employee.mobile_number,
            recipient_name=employee.full_name or p.employee_name,
            memo=period_label(p.month, p.year),
            internal_reference=internal_reference(p.id),
        )
        try:
            payment = provider.initiate_payment(request)
        except PaieCIError as exc:
            logger.warning("payment error", extra={
                "payslip_id": p.id, "provider": provider.name, "error": str(exc),
            })
            self._mark_failed(item)
            return False, str(exc), None
        except Exception as exc:
            logger.error("unexpected provider failure", exc_info=True, extra={
                "payslip_id": p.id, "provider": provider.name,
            })
            self._mark_failed(item)
            return False, f"Unexpected {provider.name} error: {exc}", None

        if not payment.success:
            self._mark_failed(item)
            return False, payment.error_message, None

        try:
            self._store.update_payslip_status(
                p.company_id, p.id,
                status=PayslipStatus.SENT,
                payment_status=PaymentStatus.IN_PROGRESS,
                transaction_reference=payment.transaction_reference,
                payment_channel=item.channel,
                timestamps={"sent_at": self._clock()},
            )
        except PaieCIError as exc:
            # The provider accepted the payment; keep its reference for reconciliation.
            logger.error("payment sent but not recorded", extra={
                "payslip_id": p.id, "provider": provider.name,
                "transaction_reference": payment.transaction_reference, "error": str(exc),
            })
            return (False, f"Payment accepted by {provider.name} but not recorded: {exc}",
                    payment.transaction_reference)
        return True, None, None

    def _mark_failed(self, item: _Planned) -> None:
        p = item.payslip
        try:
            self._store.update_payslip_status(
                p.company_id, p.id,
                status=p.status,
                payment_status=PaymentStatus.FAILED,
                payment_channel=item.channel,
            )
        except PaieCIError as exc:
            logger.error("payment failure not recorded", extra={"payslip_id": p.id, "error": str(exc)})

    def _notify_all(self, paid: list[_Planned]) -> int:
        if self._notifier is None:
            return 0
        sent = 0
        for item in paid:
            p = item.payslip
            payload = {
                "payslip_id": p.id,
                "reference": p.reference,
                "period": period_label(p.month, p.year),
                "amount": str(p.net_pay),
                "channel": item.channel,
            }
            try:
                self._notifier.notify(item.employee, SALARY_PAID, payload)
            except Exception:
                logger.warning("notification failed", exc_info=True,
                               extra={"payslip_id": p.id})
                continue
            sent += 1
        return sent

    # ---- follow-up ----

    def refresh_payment_statuses(
        self, company_id: str, payslip_ids: Optional[list[str]] = None
    ) -> StatusRefreshResult:
        """Ask each provider where IN_PROGRESS payments stand and settle the finished ones."""
        payslips = self._store.list_payslips(company_id, PayslipFilter(
            payslip_ids=payslip_ids, payment_status=PaymentStatus.IN_PROGRESS,
        ))
        result = StatusRefreshResult()
        for p in payslips:
            if not p.transaction_reference or not (p.payment_channel or "").startswith(MOBILE_PREFIX):
                continue
            result.checked += 1
            try:
                provider = self._providers.create(p.payment_channel[len(MOBILE_PREFIX):])
                status = provider.check_transaction_status(p.transaction_reference)
            except PaieCIError as exc:
                error = str(exc)
            except Exception as exc:
                logger.error("unexpected status lookup failure", exc_info=True, extra={"payslip_id": p.id})
                error = f"Unexpected status lookup error: {exc}"
            else:
                error = None
            if error is not None:
                result.errors.append(DisbursementFailure(
                    payslip_id=p.id, employee_id=p.employee_id, employee_name=p.employee_name,
                    channel=p.payment_channel, error=error,
                ))
                continue

            result.entries.append(StatusRefreshEntry(
                payslip_id=p.id, transaction_reference=p.transaction_reference, status=status.status,
            ))
            try:
                if status.status == TransactionState.SUCCESS:
                    self._store.update_payslip_status(
                        company_id, p.id, status=p.status, payment_status=PaymentStatus.SENT,
                        timestamps={"paid_at": status.completed_at or self._clock()},
                    )
                    result.confirmed += 1
                elif status.status in (TransactionState.FAILED, TransactionState.CANCELLED):
                    self._store.update_payslip_status(
                        company_id, p.id, status=p.status, payment_status=PaymentStatus.FAILED,
                    )
                    result.failed += 1
                else:
                    result.still_pending += 1
            except PaieCIError as exc:
                result.errors.append(DisbursementFailure(
                    payslip_id=p.id, employee_id=p.employee_id, employee_name=p.employee_name,
                    channel=p.payment_channel, error=str(exc),
                    transaction_reference=p.transaction_reference,
                ))

        logger.info("payment statuses refreshed", extra={
            "company_id": company_id, "checked": result.checked,
            "confirmed": result.confirmed, "failed": result.failed,
        })
        return result

    def retry_failed_payments(self, company_id: str, payslip_ids: list[str]) -> list[Payslip]:
        """FAILED -> PENDING so the payslips can join a new batch."""
        payslips = self._store.list_payslips(company_id, PayslipFilter(
            payslip_ids=list(payslip_ids), payment_status=PaymentStatus.FAILED,
        ))
        if not payslips:
            raise EmptyBatchError("No failed payment to retry")
        retried = []
        for p in payslips:
            check_payment_transition(p.payment_status, PaymentStatus.PENDING)
            retried.append(self._store.update_payslip_status(
                company_id, p.id, status=p.status, payment_status=PaymentStatus.PENDING,
            ))
        logger.info("failed payments reset", extra={"company_id": company_id, "count": len(retried)})
        return retried

    def payment_status_summary(self, company_id: str, month: int, year: int) -> PaymentStatusSummary:
        payslips = self._store.list_payslips(company_id, PayslipFilter(month=month, year=year))
        summary = PaymentStatusSummary(period=period_label(month, year))
        by_status: Counter[str] = Counter()
        by_payment: Counter[str] = Counter()
        by_method: Counter[str] = Counter()

        for p in payslips:
            employee = self._store.get_employee(company_id, p.employee_id)
            method = employee.payment_method.value if employee else "UNKNOWN"
            by_status[p.status.value] += 1
            by_payment[p.payment_status.value] += 1
            by_method[method] += 1
            summary.total_gross += p.calculation.gross_pay
            summary.total_net += p.net_pay

            if p.payment_status == PaymentStatus.SENT:
                summary.total_sent += p.net_pay
                continue
            summary.awaiting_payment += p.net_pay
            if p.status in (PayslipStatus.VALIDATED, PayslipStatus.SENT):
                summary.unpaid.append(UnpaidPayslip(
                    payslip_id=p.id,
                    employee_id=p.employee_id,
                    employee_name=p.employee_name,
                    amount=p.net_pay,
                    payment_method=method,
                    operator=employee.mobile_operator if employee else None,
                    payment_status=p.payment_status.value,
                ))

        summary.by_status = dict(by_status)
        summary.by_payment_status = dict(by_payment)
        summary.by_method = dict(by_method)
        return summary
