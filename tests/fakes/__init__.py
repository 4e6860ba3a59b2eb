"""Shared test doubles: re-exported memory backends plus payment and identity fakes."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from paieci.core.exceptions import ProviderTechnicalError, UnsupportedOperationError
from paieci.models.auth import AuthClaims, AuthResult
from paieci.models.employee import Employee, MobileOperator
from paieci.models.payments import (
    AmountLimits,
    Balance,
    PaymentRequest,
    PaymentResult,
    TransactionState,
    TransactionStatus,
)
from paieci.payments import common
from paieci.persistence.memory_backend import (
    MemoryCacheBackend,
    MemoryPayrollStore,
    MemoryPolicyStore,
)

__all__ = [
    "FakePaymentProvider",
    "FakeProviderFactory",
    "MemoryCacheBackend",
    "MemoryPayrollStore",
    "MemoryPolicyStore",
    "RecordingNotifier",
    "StaticIdentityProvider",
]


class FakePaymentProvider:
    """Scriptable IPaymentProvider.

    Numbers in ``declined`` get a provider refusal, numbers in ``broken`` raise
    ``ProviderTechnicalError`` and numbers in ``crashing`` raise an unexpected
    ``RuntimeError``; everything else succeeds.
    """

    def __init__(self, name: str = "orange_money", *, declined: set[str] | None = None,
                 broken: set[str] | None = None, crashing: set[str] | None = None,
                 statuses: dict[str, TransactionState] | None = None) -> None:
        self.name = name
        self.declined = declined or set()
        self.broken = broken or set()
        self.crashing = crashing or set()
        self.statuses = statuses or {}
        self.limits = AmountLimits(minimum=Decimal("100"), maximum=Decimal("1000000"))
        self.requests: list[PaymentRequest] = []

    def initiate_payment(self, request: PaymentRequest) -> PaymentResult:
        self.requests.append(request)
        if request.destination in self.broken:
            raise ProviderTechnicalError(self.name, "connection reset")
        if request.destination in self.crashing:
            raise RuntimeError("unexpected payload")
        if request.destination in self.declined:
            return PaymentResult(success=False, status=TransactionState.FAILED,
                                 error_message="Subscriber not found")
        return PaymentResult(success=True, status=TransactionState.PENDING,
                             transaction_reference=f"TX-{request.internal_reference}")

    def check_transaction_status(self, transaction_reference: str) -> TransactionStatus:
        return TransactionStatus(
            transaction_reference=transaction_reference,
            status=self.statuses.get(transaction_reference, TransactionState.PENDING),
        )

    def get_balance(self) -> Balance:
        raise UnsupportedOperationError(f"{self.name} has no balance")

    def validate_phone_number(self, number: str) -> bool:
        return len(common.strip_separators(number)) >= 8

    def normalize_phone_number(self, number: str) -> str:
        return common.to_international(number)

    def calculate_fee(self, amount: Decimal) -> Decimal:
        self.check_amount(amount)
        return Decimal("0")

    def check_amount(self, amount: Decimal) -> None:
        common.check_amount(self.name, self.limits, amount)


class FakeProviderFactory:
    """Stands in for PaymentProviderFactory; one fake per known operator."""

    def __init__(self, **providers: FakePaymentProvider) -> None:
        self.providers = {op.value: FakePaymentProvider(op.value) for op in MobileOperator}
        self.providers.update(providers)

    def create(self, operator: str) -> FakePaymentProvider:
        if operator not in self.providers:
            raise UnsupportedOperationError(f"Unsupported mobile operator: {operator!r}")
        return self.providers[operator]


class RecordingNotifier:
    """INotifier that records calls, optionally failing every one of them."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[str, str, dict[str, Any]]] = []

    def notify(self, recipient: Employee, message_type: str, payload: dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("SMS gateway unavailable")
        self.sent.append((recipient.id, message_type, payload))


class StaticIdentityProvider:
    """IIdentityProvider with a fixed token table."""

    def __init__(self, tokens: Optional[dict[str, AuthClaims]] = None) -> None:
        self.tokens = tokens or {}

    def verify_request(self, credentials: str) -> AuthResult:
        claims = self.tokens.get(credentials)
        if claims is None:
            return AuthResult(success=False, error="Invalid token")
        return AuthResult(success=True, claims=claims)
