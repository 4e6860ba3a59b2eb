"""Mobile-money operator detection from Ivorian numbering prefixes."""

from __future__ import annotations

import re

from paieci.models.employee import MobileOperator
from paieci.payments.common import strip_separators

_ORANGE = re.compile(r"^(\+?225)?0[57]")
_MTN = re.compile(r"^(\+?225)?0[46]")


def detect_operator(number: str) -> MobileOperator:
    """07/05 is Orange, 04/06 is MTN, anything else is assumed to be Wave."""
    digits = strip_separators(number)
    if _ORANGE.match(digits):
        return MobileOperator.ORANGE_MONEY
    if _MTN.match(digits):
        return MobileOperator.MTN_MOMO
    return MobileOperator.WAVE
