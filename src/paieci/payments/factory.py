"""PaymentProviderFactory: builds one configured provider per operator."""

from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional

import requests

from paieci.core.config import AppSettings
from paieci.core.exceptions import UnsupportedOperationError
from paieci.core.protocols import IPaymentProvider
from paieci.models.employee import MobileOperator
from paieci.payments import common
from paieci.payments.mtn import MTNMoMoProvider
from paieci.payments.orange import OrangeMoneyProvider
from paieci.payments.wave import WaveProvider


class PaymentProviderFactory:
    """Creates providers from settings, sharing one HTTP session.

    Instances are cached per operator so OAuth tokens survive across a batch.
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        session: Optional[requests.Session] = None,
        clock: Callable[[], datetime] = common.utcnow,
    ) -> None:
        self._settings = settings or AppSettings()
        self._session = session or requests.Session()
        self._clock = clock
        self._providers: dict[MobileOperator, IPaymentProvider] = {}

    @staticmethod
    def supported() -> list[str]:
        return [op.value for op in MobileOperator]

    def create(self, operator: str) -> IPaymentProvider:
        try:
            key = MobileOperator(operator)
        except ValueError as exc:
            raise UnsupportedOperationError(f"Unsupported mobile operator: {operator!r}") from exc
        if key not in self._providers:
            self._providers[key] = self._build(key)
        return self._providers[key]

    def _build(self, operator: MobileOperator) -> IPaymentProvider:
        s = self._settings
        timeout = s.disbursement.http_timeout
        if operator is MobileOperator.ORANGE_MONEY:
            return OrangeMoneyProvider(
                api_key=s.orange.api_key,
                api_secret=s.orange.api_secret,
                base_url=s.orange.base_url,
                merchant_msisdn=s.orange.merchant_msisdn,
                live=s.live,
                session=self._session,
                timeout=timeout,
                clock=self._clock,
            )
        if operator is MobileOperator.MTN_MOMO:
            return MTNMoMoProvider(
                api_key=s.mtn.api_key,
                api_secret=s.mtn.api_secret,
                subscription_key=s.mtn.subscription_key,
                base_url=s.mtn.base_url,
                live=s.live,
                session=self._session,
                timeout=timeout,
                clock=self._clock,
            )
        return WaveProvider(
            api_key=s.wave.api_key,
            base_url=s.wave.base_url,
            callback_base_url=s.wave.callback_base_url,
            customer_email=s.wave.customer_email,
            session=self._session,
            timeout=timeout,
            clock=self._clock,
        )
