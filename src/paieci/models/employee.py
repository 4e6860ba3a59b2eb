"""Employee payment profile consumed by payroll and disbursement."""

from __future__ import annotations

from enum import StrEnum
from typing import Optional

from pydantic import BaseModel


class PaymentMethod(StrEnum):
    MOBILE_MONEY = "MOBILE_MONEY"
    BANK_TRANSFER = "BANK_TRANSFER"
    CASH = "CASH"
    CHECK = "CHECK"


class MobileOperator(StrEnum):
    ORANGE_MONEY = "orange_money"
    MTN_MOMO = "mtn_momo"
    WAVE = "wave"


class Employee(BaseModel):
    """Employee record as exposed by the data store."""

    id: str
    company_id: str
    first_name: str = ""
    last_name: str = ""
    cnps_number: str = ""
    email: str = ""
    phone: str = ""
    active: bool = True

    # --- Payment destination ---
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    mobile_number: str = ""
    mobile_operator: Optional[str] = None  # raw value, validated at dispatch
    bank_account: str = ""
    bank_name: str = ""

    model_config = {"str_strip_whitespace": True}

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
