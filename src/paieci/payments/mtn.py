"""MTN Mobile Money Côte d'Ivoire: collection API with per-request reference ids."""

from __future__ import annotations

import re
import uuid
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

logger = get_logger("payments.mtn")

_STATUS_MAP = {
    "successful": TransactionState.SUCCESS,
    "success": TransactionState.SUCCESS,
    "failed": TransactionState.FAILED,
    "rejected": TransactionState.FAILED,
    "cancelled": TransactionState.CANCELLED,
}

# uuid5 namespace for X-Reference-Id; same internal reference, same MTN reference.
REFERENCE_NAMESPACE = uuid.uuid5(uuid.NAMESPACE_URL, "https://paieci.ci/payments/mtn")


class MTNMoMoProvider:
    """IPaymentProvider for MTN MoMo (local prefixes 04 and 06)."""

    name = "mtn_momo"
    NUMBER_PATTERN = re.compile(r"^(\+?225)?0[46]\d{8}$")
    FEE_SCHEDULE = FeeSchedule(
        tiers=(
            (Decimal("1000"), Decimal("0")),
            (Decimal("2500"), Decimal("30")),
            (Decimal("5000"), Decimal("60")),
            (Decimal("10000"), Decimal("120")),
        ),
        percentage=Decimal("0.025"),
        minimum_fee=Decimal("250"),
    )
    LIMITS = AmountLimits(minimum=Decimal("100"), maximum=Decimal("1000000"))

    def __init__(
        self,
        *,
        api_key: str,
        api_secret: str,
        subscription_key: str,
        base_url: str,
        live: bool = False,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
        clock: Callable[[], datetime] = common.utcnow,
    ) -> None:
        self._api_key = api_key
        self._api_secret = api_secret
        self._subscription_key = subscription_key
        self._base_url = base_url.rstrip("/")
        self._environment = "mtncivoireco" if live else "sandbox"
        self._session = session or requests.Session()
        self._timeout = timeout
        self._clock = clock
        self._token: Optional[AccessToken] = None

    @staticmethod
    def reference_id(internal_reference: str) -> str:
        return str(uuid.uuid5(REFERENCE_NAMESPACE, internal_reference))

    def _access_token(self) -> str:
        now = self._clock()
        if self._token is not None and not self._token.is_expired(now):
            return self._token.value

        response = common.send(
            self._session, self.name, "POST", f"{self._base_url}/collection/token/",
            timeout=self._timeout,
            auth=(self._api_key, self._api_secret),
            headers={
                "Ocp-Apim-Subscription-Key": self._subscription_key,
                "X-Target-Environment": self._environment,
            },
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
        return self._token.value

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._access_token()}",
            "Ocp-Apim-Subscription-Key": self._subscription_key,
            "X-Target-Environment": self._environment,
        }

    def initiate_payment(self, request: PaymentRequest) -> PaymentResult:
        msisdn = self.normalize_phone_number(request.destination)
        reference_id = self.reference_id(request.internal_reference)
        payload = {
            "amount": str(request.amount),
            "currency": request.currency,
            "externalId": request.internal_reference,
            "payer": {"partyIdType": "MSISDN", "partyId": msisdn},
            "payerMessage": f"Salaire - {request.memo}",
            "payeeNote": f"Paiement salaire pour {request.recipient_name}",
        }
        response = common.send(
            self._session, self.name, "POST", f"{self._base_url}/collection/v1_0/requesttopay",
            timeout=self._timeout,
            headers={**self._headers(), "X-Reference-Id": reference_id},
            json=payload,
        )
        if 200 <= response.status_code < 300:
            return common.build(
                self.name, PaymentResult,
                success=True,
                status=TransactionState.PENDING,
                transaction_reference=reference_id,
                processed_at=self._clock(),
                metadata={"reference_id": reference_id},
            )

        body = common.json_body(self.name, response, required=False)
        logger.warning("mtn momo payment declined", extra={
            "reference": request.internal_reference, "http_status": response.status_code,
            "destination": mask_number(msisdn),
        })
        return common.build(
            self.name, PaymentResult,
            success=False,
            status=TransactionState.FAILED,
            error_message=body.get("message") or "MTN Mobile Money payment failed",
            processed_at=self._clock(),
        )

    def check_transaction_status(self, transaction_reference: str) -> TransactionStatus:
        response = common.send(
            self._session, self.name, "GET",
            f"{self._base_url}/collection/v1_0/requesttopay/{transaction_reference}",
            timeout=self._timeout, headers=self._headers(),
        )
        if not response.ok:
            raise ProviderTechnicalError(self.name, f"status lookup failed (HTTP {response.status_code})")
        body = common.json_body(self.name, response)
        reason = body.get("reason")
        if isinstance(reason, dict):
            reason = reason.get("message") or reason.get("code")
        return common.build(
            self.name, TransactionStatus,
            transaction_reference=transaction_reference,
            status=self.map_status(body.get("status")),
            amount=common.parse_amount(body.get("amount")),
            fee=Decimal("0"),
            error_message=reason,
        )

    def get_balance(self) -> Balance:
        response = common.send(
            self._session, self.name, "GET", f"{self._base_url}/collection/v1_0/account/balance",
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
