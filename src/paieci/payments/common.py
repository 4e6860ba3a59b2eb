"""Helpers shared by the payment-provider variants."""

from __future__ import annotations

import re
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, TypeVar

import requests
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from paieci.core.exceptions import OutOfRangeError, ProviderTechnicalError
from paieci.models.payments import AmountLimits, FeeSchedule

COUNTRY_CODE = "225"

_SEPARATORS = re.compile(r"[\s\-.()]")

M = TypeVar("M", bound=BaseModel)


def strip_separators(number: str) -> str:
    return _SEPARATORS.sub("", number or "")


def to_international(number: str) -> str:
    """Digits only, Ivorian country code first, no '+'."""
    digits = strip_separators(number).lstrip("+")
    if digits.startswith(COUNTRY_CODE) and len(digits) > 10:
        return digits
    return f"{COUNTRY_CODE}{digits}"


def utcnow() -> datetime:
    return datetime.now(UTC)


def parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def parse_amount(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")


def check_amount(provider: str, limits: AmountLimits, amount: Decimal) -> None:
    if not limits.contains(amount):
        raise OutOfRangeError(provider, amount, limits.minimum, limits.maximum)


def compute_fee(provider: str, schedule: FeeSchedule, limits: AmountLimits,
                amount: Decimal) -> Decimal:
    check_amount(provider, limits, amount)
    return schedule.fee_for(amount)


def send(
    session: requests.Session,
    provider: str,
    method: str,
    url: str,
    *,
    timeout: int,
    **kwargs: Any,
) -> requests.Response:
    """Issue an HTTP call, turning transport failures into ProviderTechnicalError."""
    try:
        return session.request(method, url, timeout=timeout, **kwargs)
    except requests.RequestException as exc:
        raise ProviderTechnicalError(provider, f"{method} {url} failed: {exc}") from exc


def json_body(provider: str, response: requests.Response, *, required: bool = True) -> dict[str, Any]:
    """Decode a JSON object body; malformed bodies are technical errors when required."""
    try:
        body = response.json()
    except ValueError as exc:
        if not required:
            return {}
        raise ProviderTechnicalError(
            provider, f"malformed response (HTTP {response.status_code})"
        ) from exc
    if not isinstance(body, dict):
        if not required:
            return {}
        raise ProviderTechnicalError(provider, f"unexpected response body: {body!r}")
    return body


def build(provider: str, model: type[M], **fields: Any) -> M:
    """Construct a provider result; a payload that does not fit the model is a technical error."""
    try:
        return model(**fields)
    except PydanticValidationError as exc:
        raise ProviderTechnicalError(
            provider, f"unexpected {model.__name__} payload: {exc.error_count()} invalid field(s)"
        ) from exc


def lower_status(raw: Any) -> str:
    return str(raw or "").strip().lower()
