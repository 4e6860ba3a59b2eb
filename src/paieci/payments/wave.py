"""Wave checkout sessions. Free transfers, no balance endpoint."""

from __future__ import annotations

import re
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Optional

import requests

from paieci.core.exceptions import ProviderTechnicalError, UnsupportedOperationError
from paieci.core.logging_config import get_logger, mask_number
from paieci.models.payments import (
    AmountLimits,
    Balance,
    FeeSchedule,
    PaymentRequest,
    PaymentResult,
    TransactionState,
    TransactionStatus,
)
from paieci.payments import common

logger = get_logger("payments.wave")

_STATUS_MAP = {
    "complete": TransactionState.SUCCESS,
    "completed": TransactionState.SUCCESS,
    "succeeded": TransactionState.SUCCESS,
    "failed": TransactionState.FAILED,
    "cancelled": TransactionState.CANCELLED,
}


class WaveProvider:
    """IPaymentProvider for Wave (any Ivorian number of 8 to 10 digits)."""

    name = "wave"
    NUMBER_PATTERN = re.compile(r"^(\+?225)?\d{8,10}$")
    FEE_SCHEDULE = FeeSchedule()
    LIMITS = AmountLimits(minimum=Decimal("100"), maximum=Decimal("5000000"))

    def __init__(
        self,
        *,
        api_key: str,
        base_url: str,
        callback_base_url: str = "http://localhost:3000",
        customer_email: str = "",
        session: Optional[requests.Session] = None,
        timeout: int = 30,
        clock: Callable[[], datetime] = common.utcnow,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._callback_base_url = callback_base_url.rstrip("/")
        self._customer_email = customer_email
        self._session = session or requests.Session()
        self._timeout = timeout
        self._clock = clock

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    def initiate_payment(self, request: PaymentRequest) -> PaymentResult:
        msisdn = self.normalize_phone_number(request.destination)
        first_name, _, last_name = request.recipient_name.partition(" ")
        callback = f"{self._callback_base_url}/paiements"
        payload = {
            "amount": str(request.amount),
            "currency": request.currency,
            "client_reference": request.internal_reference,
            "error_url": f"{callback}/erreur?reference={request.internal_reference}",
            "success_url": f"{callback}/succes?reference={request.internal_reference}",
            "customer_email": self._customer_email,
            "customer_first_name": first_name,
            "customer_last_name": last_name,
            "customer_phone": f"+{msisdn}",
        }
        response = common.send(
            self._session, self.name, "POST", f"{self._base_url}/checkout/sessions",
            timeout=self._timeout, headers=self._headers(), json=payload,
        )
        body = common.json_body(self.name, response, required=response.ok)
        if not response.ok:
            logger.warning("wave payment declined", extra={
                "reference": request.internal_reference, "http_status": response.status_code,
                "destination": mask_number(msisdn),
            })
            return common.build(
                self.name, PaymentResult,
                success=False,
                status=TransactionState.FAILED,
                error_message=body.get("message") or "Wave payment failed",
                processed_at=self._clock(),
            )
        if not body.get("id"):
            raise ProviderTechnicalError(self.name, "checkout session without id")
        return common.build(
            self.name, PaymentResult,
            success=True,
            status=TransactionState.PENDING,
            transaction_reference=str(body["id"]),
            processed_at=self._clock(),
            metadata={"wave_launch_url": body.get("wave_launch_url")},
        )

    def check_transaction_status(self, transaction_reference: str) -> TransactionStatus:
        response = common.send(
            self._session, self.name, "GET",
            f"{self._base_url}/checkout/sessions/{transaction_reference}",
            timeout=self._timeout, headers=self._headers(),
        )
        if not response.ok:
            raise ProviderTechnicalError(self.name, f"status lookup failed (HTTP {response.status_code})")
        body = common.json_body(self.name, response)
        error = body.get("last_payment_error")
        if isinstance(error, dict):
            error = error.get("message") or error.get("code")
        return common.build(
            self.name, TransactionStatus,
            transaction_reference=transaction_reference,
            status=self.map_status(body.get("payment_status")),
            amount=common.parse_amount(body.get("amount")),
            fee=Decimal("0"),
            initiated_at=common.parse_timestamp(body.get("created_at")),
            completed_at=common.parse_timestamp(body.get("completed_at")),
            error_message=error,
        )

    def get_balance(self) -> Balance:
        raise UnsupportedOperationError("wave does not expose an account balance")

    def validate_phone_number(self, number: str) -> bool:
        return bool(self.NUMBER_PATTERN.match(common.strip_separators(number)))

    def normalize_phone_number(self, number: str) -> str:
        return common.to_international(number)

    def calculate_fee(self, amount: Decimal) -> Decimal:
        return common.compute_fee(self.name, self.FEE_SCHEDULE, self.LIMITS, amount)

    def check_amount(self, amount: Decimal) -> None:
        common.check_amount(self.name, self.LIMITS, amount)

    @staticmethod
    def map_status(raw: Any) -> TransactionState:
        return _STATUS_MAP.get(common.lower_status(raw), TransactionState.PENDING)
