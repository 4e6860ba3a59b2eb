"""PaieCI exception hierarchy."""

from __future__ import annotations

from decimal import Decimal
from typing import Any


class PaieCIError(Exception):
    """Base exception for all PaieCI errors."""


class ValidationError(PaieCIError):
    """Input is malformed or outside payroll policy.

    ``errors`` holds field-level detail: a list of ``{"field", "message"}``
    dicts, or any richer mapping a caller attached (e.g. disbursement issues).
    """

    def __init__(self, errors: list[dict[str, Any]], message: str | None = None) -> None:
        self.errors = errors
        summary = "; ".join(f"{e.get('field', '?')}: {e.get('message', '')}" for e in errors)
        super().__init__(message or f"Validation failed: {summary}")


class DuplicateError(PaieCIError):
    """A uniqueness invariant (one payslip / one filing per period) was violated."""

    def __init__(self, entity: str, conflicts: list[str], message: str | None = None) -> None:
        self.entity = entity
        self.conflicts = conflicts
        super().__init__(message or f"{entity} already exists for: {', '.join(conflicts)}")


class NotFoundError(PaieCIError):
    """Requested entity does not exist for this company."""


class NoEligibleRecordsError(PaieCIError):
    """Selection criteria matched no record."""


class EmptyBatchError(NoEligibleRecordsError):
    """No payslip of a disbursement request is eligible for payment."""


class InvalidTransitionError(PaieCIError):
    """Status change not allowed by the lifecycle state machine."""

    def __init__(self, entity: str, current: str, target: str) -> None:
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(f"{entity} cannot move from {current} to {target}")


class UnsupportedOperationError(PaieCIError):
    """A payment provider does not offer this capability."""


class OutOfRangeError(PaieCIError):
    """Amount outside a provider's transaction bounds."""

    def __init__(self, provider: str, amount: Decimal, minimum: Decimal, maximum: Decimal) -> None:
        self.provider = provider
        self.amount = amount
        self.minimum = minimum
        self.maximum = maximum
        super().__init__(
            f"{provider}: amount {amount} outside allowed range [{minimum}, {maximum}]"
        )


class ProviderTechnicalError(PaieCIError):
    """Network, authentication or parse failure talking to a payment rail."""

    def __init__(self, provider: str, message: str) -> None:
        self.provider = provider
        super().__init__(f"{provider} technical error: {message}")


class AuthenticationError(PaieCIError):
    """Request credentials were missing or rejected by the identity provider."""


class PermissionDeniedError(PaieCIError):
    """Authenticated user lacks the role required for the operation."""


class CacheError(PaieCIError):
    """Redis cache operation failed."""


class StoreError(PaieCIError):
    """Persistence backend operation failed."""
