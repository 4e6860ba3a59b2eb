"""Tests for request authorization."""

from __future__ import annotations

import pytest

from paieci.auth.access import ADMIN_ROLES, HR_ROLES, authorize
from paieci.core.exceptions import AuthenticationError, PermissionDeniedError
from paieci.models.auth import AuthClaims
from tests.fakes import StaticIdentityProvider

ADMIN = AuthClaims(user_id="u1", company_id="ACME", role="ADMIN", email="admin@acme.ci")
HR = AuthClaims(user_id="u2", company_id="ACME", role="RH")
EMPLOYEE = AuthClaims(user_id="u3", company_id="ACME", role="EMPLOYE")


@pytest.fixture
def identity():
    return StaticIdentityProvider({"t-admin": ADMIN, "t-hr": HR, "t-emp": EMPLOYEE})


class TestAuthorize:
    def test_returns_claims(self, identity):
        assert authorize(identity, "t-emp") == EMPLOYEE

    def test_missing_credentials(self, identity):
        with pytest.raises(AuthenticationError, match="Missing"):
            authorize(identity, "")

    def test_rejected_credentials(self, identity):
        with pytest.raises(AuthenticationError, match="Invalid token"):
            authorize(identity, "forged")

    def test_hr_roles_admit_admin_and_hr(self, identity):
        assert authorize(identity, "t-admin", HR_ROLES).role == "ADMIN"
        assert authorize(identity, "t-hr", HR_ROLES).role == "RH"
        with pytest.raises(PermissionDeniedError):
            authorize(identity, "t-emp", HR_ROLES)

    def test_admin_roles_exclude_hr(self, identity):
        with pytest.raises(PermissionDeniedError):
            authorize(identity, "t-hr", ADMIN_ROLES)
