"""PolicyResolver: merges tenant overrides over the configured defaults."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from paieci.core.config import PolicyConfig
from paieci.core.logging_config import get_logger
from paieci.core.protocols import IPolicyStore
from paieci.models.policy import PayrollPolicy, TaxBracket

logger = get_logger("payroll.policy")

_SCALAR_FIELDS = (
    "employee_rate",
    "employer_rate",
    "annual_ceiling",
    "minimum_wage",
    "overtime_rate",
    "monthly_hours",
    "max_overtime_hours",
    "max_advance_ratio",
)


def policy_from_config(config: Optional[PolicyConfig] = None) -> PayrollPolicy:
    """Build the default policy from ``PAIECI_POLICY_*`` settings."""
    config = config or PolicyConfig()
    return PayrollPolicy(
        **{name: getattr(config, name) for name in _SCALAR_FIELDS},
        minimum_wage_policy=config.minimum_wage_policy,
        tax_brackets=tuple(
            TaxBracket(lower=lower, upper=upper, rate=rate)
            for lower, upper, rate in config.tax_brackets
        ),
    )


def _coerce_brackets(raw: list[Any]) -> tuple[TaxBracket, ...]:
    brackets = []
    for item in raw:
        if isinstance(item, dict):
            brackets.append(TaxBracket.model_validate(item))
        else:
            lower, upper, rate = item
            brackets.append(TaxBracket(lower=lower, upper=upper, rate=rate))
    return tuple(sorted(brackets, key=lambda b: b.lower))


class PolicyResolver:
    """Resolves the effective ``PayrollPolicy`` for a company."""

    def __init__(self, store: Optional[IPolicyStore] = None,
                 defaults: Optional[PayrollPolicy] = None) -> None:
        self._store = store
        self._defaults = defaults or policy_from_config()

    @property
    def defaults(self) -> PayrollPolicy:
        return self._defaults

    def resolve(self, company_id: str) -> PayrollPolicy:
        if self._store is None:
            return self._defaults
        overrides = self._store.get_payroll_policy(company_id)
        if not overrides:
            return self._defaults

        update: dict[str, Any] = {}
        for name in _SCALAR_FIELDS:
            if overrides.get(name) is not None:
                update[name] = Decimal(str(overrides[name]))
        if overrides.get("minimum_wage_policy") in ("reject", "warn"):
            update["minimum_wage_policy"] = overrides["minimum_wage_policy"]
        if overrides.get("tax_brackets"):
            update["tax_brackets"] = _coerce_brackets(overrides["tax_brackets"])

        logger.debug("policy overrides applied", extra={"fields": sorted(update)})
        return PayrollPolicy.model_validate({**self._defaults.model_dump(), **update})
