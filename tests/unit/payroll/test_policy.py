"""Tests for policy defaults and tenant override resolution."""

from __future__ import annotations

from decimal import Decimal

from paieci.core.config import PolicyConfig
from paieci.models.policy import PayrollPolicy, TaxBracket
from paieci.payroll.policy import PolicyResolver, policy_from_config
from tests.fakes import MemoryPolicyStore


class TestPolicyFromConfig:
    def test_defaults_match_model_defaults(self):
        assert policy_from_config(PolicyConfig()) == PayrollPolicy()

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("PAIECI_POLICY_EMPLOYEE_RATE", "0.04")
        monkeypatch.setenv("PAIECI_POLICY_MINIMUM_WAGE_POLICY", "warn")
        policy = policy_from_config(PolicyConfig())
        assert policy.employee_rate == Decimal("0.04")
        assert policy.minimum_wage_policy == "warn"

    def test_monthly_ceiling(self):
        assert PayrollPolicy().monthly_ceiling == Decimal("1800000")


class TestPolicyResolver:
    def test_without_store_returns_defaults(self):
        defaults = PayrollPolicy(overtime_rate=Decimal("1.5"))
        assert PolicyResolver(defaults=defaults).resolve("ACME") is defaults

    def test_company_override_merged(self):
        store = MemoryPolicyStore({"ACME": {"employer_rate": "0.2", "minimum_wage_policy": "warn"}})
        policy = PolicyResolver(store, PayrollPolicy()).resolve("ACME")
        assert policy.employer_rate == Decimal("0.2")
        assert policy.minimum_wage_policy == "warn"
        assert policy.employee_rate == Decimal("0.032")

    def test_global_fallback(self):
        store = MemoryPolicyStore({"GLOBAL": {"minimum_wage": 75000}})
        assert PolicyResolver(store, PayrollPolicy()).resolve("OTHER").minimum_wage == Decimal("75000")

    def test_no_record_keeps_defaults(self):
        assert PolicyResolver(MemoryPolicyStore(), PayrollPolicy()).resolve("ACME") == PayrollPolicy()

    def test_tax_brackets_from_dicts_sorted(self):
        store = MemoryPolicyStore({"ACME": {"tax_brackets": [
            {"lower": "100000", "upper": None, "rate": "0.3"},
            {"lower": "0", "upper": "100000", "rate": "0"},
        ]}})
        policy = PolicyResolver(store, PayrollPolicy()).resolve("ACME")
        assert policy.tax_brackets == (
            TaxBracket(lower=Decimal("0"), upper=Decimal("100000"), rate=Decimal("0")),
            TaxBracket(lower=Decimal("100000"), upper=None, rate=Decimal("0.3")),
        )

    def test_unknown_wage_policy_ignored(self):
        store = MemoryPolicyStore({"ACME": {"minimum_wage_policy": "ignore"}})
        assert PolicyResolver(store, PayrollPolicy()).resolve("ACME").minimum_wage_policy == "reject"
