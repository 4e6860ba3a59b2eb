"""Orange Money Côte d'Ivoire: OAuth client-credentials merchant payments."""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Optional

import requests

from paieci.core.exceptions import ProviderTechnicalError
from paieci.core.logging_config import get_logger, mask_number
from paieci.models.payments import (
    AccessToken,
    AmountLimits,
    Balance,
    FeeSchedule,
    PaymentRequest,
    PaymentResult,
    TransactionState,
    TransactionStatus,
)
from paieci.payments import common

logger = get_logger("payments.orange")

_STATUS_MAP = {
    "successful": TransactionState.SUCCESS,
    "success": TransactionState.SUCCESS,
    "failed": TransactionState.FAILED,
    "rejected": TransactionState.FAILED,
    "cancelled": TransactionState.CANCELLED,
}


class OrangeMoneyProvider:
    """IPaymentProvider for Orange Money (local prefixes 07 and 05)."""

    name = "orange_money"
    NUMBER_PATTERN = re.compile(r"^(\+?225)?0[57]\d{8}$")
    FEE_SCHEDULE = FeeSchedule(
        tiers=(
            (Decimal("1000"), Decimal("0")),
            (Decimal("2500"), Decimal("25")),
            (Decimal("5000"), Decimal("50")),
            (Decimal("10000"), Decimal("100")),
        ),
        percentage=Decimal("0.02"),
        minimum_fee=Decimal("200"),
    )
    LIMITS = AmountLimits(minimum=Decimal("100"), maximum=Decimal("1000000"))

    def __init__(
        self,
        *,
        api_key: str,
        api_secret: str,
        base_url: str,
        merchant_msisdn: str = "",
        live: bool = False,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
        clock: Callable[[], datetime] = common.utcnow,
    ) -> None:
        self._api_key = api_key
        self._api_secret = api_secret
        self._base_url = base_url.rstrip("/")
        self._merchant_msisdn = merchant_msisdn
        self._environment = "live" if live else "sandbox"
        self._session = session or requests.Session()
        self._timeout = timeout
        self._clock = clock
        self._token: Optional[AccessToken] = None

    # ---- auth ----

    def _access_token(self) -> str:
        """Return a valid token, fetching a new one once the cached one expired."""
        now = self._clock()
        if self._token is not None and not self._token.is_expired(now):
            return self._token.value

        response = common.send(
            self._session, self.name, "POST", f"{self._base_url}/oauth/token",
            timeout=self._timeout,
            auth=(self._api_key, self._api_secret),
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            data={"grant_type": "client_credentials"},
        )
        if not response.ok:
            raise ProviderTechnicalError(self.name, f"authentication failed (HTTP {response.status_code})")
        body = common.json_body(self.name, response)
        try:
            self._token = AccessToken(
                value=body["access_token"],
                expires_at=now + timedelta(seconds=int(body["expires_in"])),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ProviderTechnicalError(self.name, "token response missing fields") from exc
        logger.debug("orange money token refreshed", extra={"expires_at": self._token.expires_at})
        return self._token.value

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._access_token()}",
            "X-Target-Environment": self._environment,
        }

    # ---- IPaymentProvider ----

    def initiate_payment(self, request: PaymentRequest) -> PaymentResult:
        msisdn = self.normalize_phone_number(request.destination)
        payload = {
            "customer": {"idType": "MSISDN", "id": msisdn},
            "partner": {"idType": "MSISDN", "id": self._merchant_msisdn},
            "amount": {"value": str(request.amount), "currency": request.currency},
            "description": request.memo,
            "reference": request.internal_reference,
            "payeeNote": f"Paiement salaire pour {request.recipient_name}",
        }
        response = common.send(
            self._session, self.name, "POST", f"{self._base_url}/omcoreapis/1.0.2/mp/pay",
            timeout=self._timeout, headers=self._headers(), json=payload,
        )
        body = common.json_body(self.name, response, required=response.ok)
        if not response.ok:
            logger.warning("orange money payment declined", extra={
                "reference": request.internal_reference, "http_status": response.status_code,
                "destination": mask_number(msisdn),
            })
            return common.build(
                self.name, PaymentResult,
                success=False,
                status=TransactionState.FAILED,
                error_message=body.get("message") or "Orange Money payment failed",
                processed_at=self._clock(),
            )
        reference = body.get("transactionId") or body.get("externalId") or request.internal_reference
        return common.build(
            self.name, PaymentResult,
            success=True,
            status=TransactionState.PENDING,
            transaction_reference=str(reference),
            processed_at=self._clock(),
            metadata=body,
        )

    def check_transaction_status(self, transaction_reference: str) -> TransactionStatus:
        response = common.send(
            self._session, self.name, "GET",
            f"{self._base_url}/omcoreapis/1.0.2/mp/pay/{transaction_reference}",
            timeout=self._timeout, headers=self._headers(),
        )
        if not response.ok:
            raise ProviderTechnicalError(self.name, f"status lookup failed (HTTP {response.status_code})")
        body = common.json_body(self.name, response)
        return common.build(
            self.name, TransactionStatus,
            transaction_reference=transaction_reference,
            status=self.map_status(body.get("status")),
            amount=common.parse_amount(body.get("amount")),
            fee=common.parse_amount(body.get("fee")),
            initiated_at=common.parse_timestamp(body.get("createdAt")),
            completed_at=common.parse_timestamp(body.get("finishedAt")),
            error_message=body.get("reason"),
        )

    def get_balance(self) -> Balance:
        response = common.send(
            self._session, self.name, "GET", f"{self._base_url}/omcoreapis/1.0.2/account/balance",
            timeout=self._timeout, headers=self._headers(),
        )
        if not response.ok:
            raise ProviderTechnicalError(self.name, f"balance lookup failed (HTTP {response.status_code})")
        body = common.json_body(self.name, response)
        return Balance(
            balance=common.parse_amount(body.get("availableBalance")),
            currency=body.get("currency") or "XOF",
        )

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
