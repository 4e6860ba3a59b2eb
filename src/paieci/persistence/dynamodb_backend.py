"""DynamoDB backends: single-table payroll store and cached policy store."""

from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError

from paieci.core.exceptions import DuplicateError, NotFoundError, StoreError
from paieci.core.logging_config import get_logger
from paieci.core.protocols import ICacheBackend
from paieci.models.employee import Employee
from paieci.models.filing import PayrollFiling
from paieci.models.payslip import PaymentStatus, Payslip, PayslipFilter, PayslipStatus

logger = get_logger("persistence.dynamodb")

PAYROLL_TABLE = "paieci-payroll"
POLICY_TABLE = "paieci-payroll-policy"


def _pk(company_id: str) -> str:
    return f"COMPANY#{company_id}"


def _payslip_sk(year: int, month: int, employee_id: str) -> str:
    return f"PAYSLIP#{year:04d}#{month:02d}#{employee_id}"


def _filing_sk(year: int, month: int) -> str:
    return f"FILING#{year:04d}#{month:02d}"


def _plain(value: Any) -> Any:
    """Strip DynamoDB Decimals down to str so JSON round-trips stay exact."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


class _DynamoDBBase:
    def __init__(self, table_suffix: str = "", region: str = "eu-west-3",
                 endpoint_url: str | None = None) -> None:
        self._table_suffix = table_suffix
        self._region = region
        self._endpoint_url = endpoint_url
        kwargs: dict[str, Any] = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._ddb = boto3.resource("dynamodb", **kwargs)

    def _table(self, base: str):
        return self._ddb.Table(f"{base}{self._table_suffix}")


class DynamoDBPayrollStore(_DynamoDBBase):
    """Production IPayrollStore on one table keyed ``COMPANY#<id>``.

    Payslip and filing sort keys embed the period, so the conditional put on
    creation enforces one payslip per employee and one filing per period.
    """

    @property
    def _tbl(self):
        return self._table(PAYROLL_TABLE)

    def _get(self, company_id: str, sk: str) -> Optional[dict[str, Any]]:
        try:
            resp = self._tbl.get_item(Key={"PK": _pk(company_id), "SK": sk})
        except (ClientError, BotoCoreError) as exc:
            raise StoreError(f"DynamoDB get_item failed for {sk!r}: {exc}") from exc
        return resp.get("Item")

    def _query(self, company_id: str, sk_prefix: str,
               filter_expression: Any = None) -> list[dict[str, Any]]:
        kwargs: dict[str, Any] = {
            "KeyConditionExpression": Key("PK").eq(_pk(company_id)) & Key("SK").begins_with(sk_prefix),
        }
        if filter_expression is not None:
            kwargs["FilterExpression"] = filter_expression
        items: list[dict[str, Any]] = []
        try:
            while True:
                resp = self._tbl.query(**kwargs)
                items.extend(resp.get("Items", []))
                if "LastEvaluatedKey" not in resp:
                    return items
                kwargs["ExclusiveStartKey"] = resp["LastEvaluatedKey"]
        except (ClientError, BotoCoreError) as exc:
            raise StoreError(f"DynamoDB query failed for {sk_prefix!r}: {exc}") from exc

    def _put(self, company_id: str, sk: str, entity_id: str, data: str, *,
             create: bool, entity: str) -> None:
        kwargs: dict[str, Any] = {
            "Item": {"PK": _pk(company_id), "SK": sk, "id": entity_id, "data": data},
        }
        if create:
            kwargs["ConditionExpression"] = "attribute_not_exists(PK)"
        try:
            self._tbl.put_item(**kwargs)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                raise DuplicateError(entity, [sk]) from exc
            raise StoreError(f"DynamoDB put_item failed for {sk!r}: {exc}") from exc
        except BotoCoreError as exc:
            raise StoreError(f"DynamoDB put_item failed for {sk!r}: {exc}") from exc

    # ---- employees ----

    def get_employee(self, company_id: str, employee_id: str) -> Optional[Employee]:
        item = self._get(company_id, f"EMPLOYEE#{employee_id}")
        return Employee.model_validate_json(item["data"]) if item else None

    def save_employee(self, employee: Employee) -> None:
        self._put(employee.company_id, f"EMPLOYEE#{employee.id}", employee.id,
                  employee.model_dump_json(), create=False, entity="Employee")

    # ---- payslips ----

    def find_payslip(
        self, company_id: str, employee_id: str, month: int, year: int
    ) -> Optional[Payslip]:
        item = self._get(company_id, _payslip_sk(year, month, employee_id))
        return Payslip.model_validate_json(item["data"]) if item else None

    def _payslip_item(self, company_id: str, payslip_id: str) -> Optional[dict[str, Any]]:
        items = self._query(company_id, "PAYSLIP#", Attr("id").eq(payslip_id))
        return items[0] if items else None

    def get_payslip(self, company_id: str, payslip_id: str) -> Optional[Payslip]:
        item = self._payslip_item(company_id, payslip_id)
        return Payslip.model_validate_json(item["data"]) if item else None

    def create_payslip(self, payslip: Payslip) -> Payslip:
        self._put(payslip.company_id, _payslip_sk(payslip.year, payslip.month, payslip.employee_id),
                  payslip.id, payslip.model_dump_json(), create=True, entity="Payslip")
        return payslip

    def update_payslip_status(
        self,
        company_id: str,
        payslip_id: str,
        *,
        status: PayslipStatus,
        payment_status: PaymentStatus,
        transaction_reference: Optional[str] = None,
        payment_channel: Optional[str] = None,
        timestamps: Optional[dict[str, datetime]] = None,
    ) -> Payslip:
        current = self.get_payslip(company_id, payslip_id)
        if current is None:
            raise NotFoundError(f"Payslip {payslip_id} not found")
        update: dict[str, Any] = {"status": status, "payment_status": payment_status}
        if transaction_reference is not None:
            update["transaction_reference"] = transaction_reference
        if payment_channel is not None:
            update["payment_channel"] = payment_channel
        update.update(timestamps or {})
        updated = current.model_copy(update=update)
        self._put(company_id, _payslip_sk(updated.year, updated.month, updated.employee_id),
                  updated.id, updated.model_dump_json(), create=False, entity="Payslip")
        return updated

    def list_payslips(self, company_id: str, filter: PayslipFilter) -> list[Payslip]:
        prefix = "PAYSLIP#"
        if filter.year is not None:
            prefix += f"{filter.year:04d}#"
            if filter.month is not None:
                prefix += f"{filter.month:02d}#"
        payslips = (Payslip.model_validate_json(i["data"]) for i in self._query(company_id, prefix))
        return [p for p in payslips if filter.matches(p)]

    # ---- filings ----

    def find_filing(self, company_id: str, month: int, year: int) -> Optional[PayrollFiling]:
        item = self._get(company_id, _filing_sk(year, month))
        return PayrollFiling.model_validate_json(item["data"]) if item else None

    def get_filing(self, company_id: str, filing_id: str) -> Optional[PayrollFiling]:
        items = self._query(company_id, "FILING#", Attr("id").eq(filing_id))
        return PayrollFiling.model_validate_json(items[0]["data"]) if items else None

    def create_filing(self, filing: PayrollFiling) -> PayrollFiling:
        self._put(filing.company_id, _filing_sk(filing.year, filing.month), filing.id,
                  filing.model_dump_json(), create=True, entity="Filing")
        return filing

    def update_filing(self, filing: PayrollFiling) -> None:
        self._put(filing.company_id, _filing_sk(filing.year, filing.month), filing.id,
                  filing.model_dump_json(), create=False, entity="Filing")

    def delete_filing(self, company_id: str, filing_id: str) -> None:
        filing = self.get_filing(company_id, filing_id)
        if filing is None:
            return
        try:
            self._tbl.delete_item(Key={"PK": _pk(company_id), "SK": _filing_sk(filing.year, filing.month)})
        except (ClientError, BotoCoreError) as exc:
            raise StoreError(f"DynamoDB delete_item failed for filing {filing_id!r}: {exc}") from exc

    def list_filings(self, company_id: str, year: Optional[int] = None) -> list[PayrollFiling]:
        prefix = "FILING#" if year is None else f"FILING#{year:04d}#"
        return [PayrollFiling.model_validate_json(i["data"]) for i in self._query(company_id, prefix)]


class DynamoDBPolicyStore(_DynamoDBBase):
    """Production IPolicyStore: company overrides, GLOBAL fallback, Redis read-through."""

    CACHE_TTL = 300  # 5 minutes

    def __init__(self, table_suffix: str = "", region: str = "eu-west-3",
                 endpoint_url: str | None = None, cache: ICacheBackend | None = None,
                 cache_ttl: int | None = None) -> None:
        super().__init__(table_suffix, region, endpoint_url)
        self._cache = cache
        self._cache_ttl = cache_ttl or self.CACHE_TTL

    def _get_item(self, pk: str) -> dict[str, Any] | None:
        try:
            resp = self._table(POLICY_TABLE).get_item(Key={"PK": pk, "SK": "POLICY"})
        except (ClientError, BotoCoreError) as exc:
            raise StoreError(f"DynamoDB get_item failed for {pk!r}: {exc}") from exc
        item = resp.get("Item")
        if item is None:
            return None
        return {k: _plain(v) for k, v in item.items() if k not in ("PK", "SK")}

    def get_payroll_policy(self, company_id: str) -> dict[str, Any]:
        cache_key = f"policy:{company_id}"

        if self._cache is not None:
            cached = self._cache.get(cache_key)
            if cached is not None:
                return json.loads(cached)

        item = self._get_item(_pk(company_id))
        if item is None:
            item = self._get_item(_pk("GLOBAL"))
        if item is None:
            logger.debug("no stored policy, using defaults", extra={"company_id": company_id})
            item = {}

        if self._cache is not None:
            self._cache.setex(cache_key, self._cache_ttl, json.dumps(item))

        return item

    def invalidate(self, company_id: str) -> None:
        if self._cache is not None:
            self._cache.delete(f"policy:{company_id}")
