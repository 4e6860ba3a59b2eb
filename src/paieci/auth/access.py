"""Request authorization against the external identity provider."""

from __future__ import annotations

from typing import Iterable, Optional

from paieci.core.exceptions import AuthenticationError, PermissionDeniedError
from paieci.core.logging_config import get_logger
from paieci.core.protocols import IIdentityProvider
from paieci.models.auth import AuthClaims

logger = get_logger("auth.access")

ADMIN_ROLES = frozenset({"ADMIN"})
HR_ROLES = frozenset({"ADMIN", "RH"})


def authorize(
    identity: IIdentityProvider,
    credentials: str,
    allowed_roles: Optional[Iterable[str]] = None,
) -> AuthClaims:
    """Verify ``credentials`` and return the caller's claims.

    ``claims.company_id`` is the tenant every subsequent query is scoped to.
    """
    if not credentials:
        raise AuthenticationError("Missing credentials")
    result = identity.verify_request(credentials)
    if not result.success or result.claims is None:
        raise AuthenticationError(result.error or "Invalid credentials")

    claims = result.claims
    if allowed_roles is not None and claims.role not in set(allowed_roles):
        logger.warning("permission denied", extra={
            "user_id": claims.user_id, "company_id": claims.company_id, "role": claims.role,
        })
        raise PermissionDeniedError(f"Role {claims.role!r} is not allowed")
    return claims
