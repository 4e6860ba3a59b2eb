"""Application configuration using pydantic-settings with grouped env prefixes."""

from __future__ import annotations

from decimal import Decimal
from typing import Literal

from pydantic_settings import BaseSettings


class PolicyConfig(BaseSettings):
    """Default payroll policy (Côte d'Ivoire 2024 figures, tunable per tenant)."""

    model_config = {"env_prefix": "PAIECI_POLICY_"}

    employee_rate: Decimal = Decimal("0.032")
    employer_rate: Decimal = Decimal("0.164")
    annual_ceiling: Decimal = Decimal("21600000")
    minimum_wage: Decimal = Decimal("60000")  # SMIG
    overtime_rate: Decimal = Decimal("1.25")
    monthly_hours: Decimal = Decimal("173.33")  # 40h * 52 / 12
    max_overtime_hours: Decimal = Decimal("60")
    max_advance_ratio: Decimal = Decimal("0.5")
    minimum_wage_policy: Literal["reject", "warn"] = "reject"
    # (lower, upper, rate); upper=None is the open top bracket
    tax_brackets: list[tuple[Decimal, Decimal | None, Decimal]] = [
        (Decimal("0"), Decimal("50000"), Decimal("0")),
        (Decimal("50000"), Decimal("120000"), Decimal("0.10")),
        (Decimal("120000"), Decimal("300000"), Decimal("0.15")),
        (Decimal("300000"), Decimal("1000000"), Decimal("0.20")),
        (Decimal("1000000"), None, Decimal("0.25")),
    ]


class OrangeMoneyConfig(BaseSettings):
    """Orange Money API credentials."""

    model_config = {"env_prefix": "PAIECI_ORANGE_"}

    api_key: str = ""
    api_secret: str = ""
    base_url: str = "https://api.orange.com"
    merchant_msisdn: str = ""


class MTNMoMoConfig(BaseSettings):
    """MTN Mobile Money API credentials."""

    model_config = {"env_prefix": "PAIECI_MTN_"}

    api_key: str = ""
    api_secret: str = ""
    subscription_key: str = ""
    base_url: str = "https://proxy.momoapi.mtn.com"


class WaveConfig(BaseSettings):
    """Wave checkout API credentials."""

    model_config = {"env_prefix": "PAIECI_WAVE_"}

    api_key: str = ""
    base_url: str = "https://api.wave.com/v1"
    callback_base_url: str = "http://localhost:3000"
    customer_email: str = "noreply@paieci.ci"


class DisbursementConfig(BaseSettings):
    """Salary disbursement behaviour."""

    model_config = {"env_prefix": "PAIECI_DISBURSEMENT_"}

    currency: str = "XOF"
    inter_call_delay_seconds: float = 1.0
    http_timeout: int = 30


class DynamoDBConfig(BaseSettings):
    """DynamoDB configuration."""

    model_config = {"env_prefix": "PAIECI_DYNAMO_"}

    table_suffix: str = ""  # "-dev", "-uat", or "" for prod
    region: str = "eu-west-3"
    endpoint_url: str | None = None  # LocalStack override


class RedisConfig(BaseSettings):
    """Redis cache configuration."""

    model_config = {"env_prefix": "PAIECI_REDIS_"}

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    decode_responses: bool = True
    policy_ttl: int = 300


class AppSettings(BaseSettings):
    """Root application settings aggregating all sub-configs."""

    model_config = {"env_prefix": "PAIECI_"}

    environment: Literal["dev", "uat", "prod"] = "dev"
    log_level: str = "INFO"

    policy: PolicyConfig = PolicyConfig()
    orange: OrangeMoneyConfig = OrangeMoneyConfig()
    mtn: MTNMoMoConfig = MTNMoMoConfig()
    wave: WaveConfig = WaveConfig()
    disbursement: DisbursementConfig = DisbursementConfig()
    dynamodb: DynamoDBConfig = DynamoDBConfig()
    redis: RedisConfig = RedisConfig()

    @property
    def live(self) -> bool:
        """True when provider calls must hit production rails."""
        return self.environment == "prod"
