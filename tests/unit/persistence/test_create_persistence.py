"""Tests for the persistence factory."""

from __future__ import annotations

from unittest.mock import patch

import fakeredis
from moto import mock_aws

from paieci.core.config import AppSettings
from paieci.persistence.protocols import ICacheBackend, IPayrollStore, IPolicyStore
from paieci.persistence import create_persistence


@mock_aws
def test_wires_backends_from_settings():
    with patch("redis.Redis", return_value=fakeredis.FakeRedis(decode_responses=True)) as redis_cls:
        payroll_store, policy_store, cache = create_persistence(AppSettings())

    assert isinstance(payroll_store, IPayrollStore)
    assert isinstance(policy_store, IPolicyStore)
    assert isinstance(cache, ICacheBackend)
    assert redis_cls.call_args.kwargs["port"] == 6379
    assert policy_store._cache is cache
