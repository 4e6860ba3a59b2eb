"""Pluggable persistence backends behind Protocol interfaces."""

from __future__ import annotations

from paieci.core.config import AppSettings
from paieci.persistence.dynamodb_backend import DynamoDBPayrollStore, DynamoDBPolicyStore
from paieci.persistence.redis_backend import RedisCacheBackend


def create_persistence(settings: AppSettings | None = None):
    """Create wired-up persistence backends from application settings.

    Returns:
        Tuple of (payroll_store, policy_store, cache).
    """
    if settings is None:
        settings = AppSettings()

    cache = RedisCacheBackend(
        host=settings.redis.host,
        port=settings.redis.port,
        db=settings.redis.db,
        decode_responses=settings.redis.decode_responses,
    )

    payroll_store = DynamoDBPayrollStore(
        table_suffix=settings.dynamodb.table_suffix,
        region=settings.dynamodb.region,
        endpoint_url=settings.dynamodb.endpoint_url,
    )

    policy_store = DynamoDBPolicyStore(
        table_suffix=settings.dynamodb.table_suffix,
        region=settings.dynamodb.region,
        endpoint_url=settings.dynamodb.endpoint_url,
        cache=cache,
        cache_ttl=settings.redis.policy_ttl,
    )

    return payroll_store, policy_store, cache
