"""Create the PaieCI DynamoDB tables and seed the GLOBAL payroll policy.

Usage:
    python scripts/seed_dynamodb.py --endpoint-url http://localhost:4566
"""

from __future__ import annotations

import argparse
from decimal import Decimal
from typing import Any

import boto3

TABLE_DEFINITIONS: list[dict[str, Any]] = [
    {"name": "paieci-payroll"},
    {"name": "paieci-payroll-policy"},
]

# Côte d'Ivoire 2024 figures; rates and brackets still to be confirmed each year.
GLOBAL_POLICY: dict[str, Any] = {
    "PK": "COMPANY#GLOBAL",
    "SK": "POLICY",
    "employee_rate": Decimal("0.032"),
    "employer_rate": Decimal("0.164"),
    "annual_ceiling": Decimal("21600000"),
    "minimum_wage": Decimal("60000"),
    "overtime_rate": Decimal("1.25"),
    "monthly_hours": Decimal("173.33"),
    "max_overtime_hours": Decimal("60"),
    "max_advance_ratio": Decimal("0.5"),
    "minimum_wage_policy": "reject",
    "tax_brackets": [
        {"lower": Decimal("0"), "upper": Decimal("50000"), "rate": Decimal("0")},
        {"lower": Decimal("50000"), "upper": Decimal("120000"), "rate": Decimal("0.10")},
        {"lower": Decimal("120000"), "upper": Decimal("300000"), "rate": Decimal("0.15")},
        {"lower": Decimal("300000"), "upper": Decimal("1000000"), "rate": Decimal("0.20")},
        {"lower": Decimal("1000000"), "upper": None, "rate": Decimal("0.25")},
    ],
}


def create_tables(ddb: Any, suffix: str = "") -> None:
    """Create the payroll and policy tables. Skips if a table already exists."""
    client = ddb.meta.client
    existing = client.list_tables().get("TableNames", [])

    for defn in TABLE_DEFINITIONS:
        table_name = f"{defn['name']}{suffix}"
        if table_name in existing:
            print(f"  Table {table_name} already exists, skipping")
            continue
        client.create_table(
            TableName=table_name,
            KeySchema=[
                {"AttributeName": "PK", "KeyType": "HASH"},
                {"AttributeName": "SK", "KeyType": "RANGE"},
            ],
            AttributeDefinitions=[
                {"AttributeName": "PK", "AttributeType": "S"},
                {"AttributeName": "SK", "AttributeType": "S"},
            ],
            BillingMode="PAY_PER_REQUEST",
        )
        print(f"  Created table {table_name}")


def seed_policy(ddb: Any, suffix: str = "") -> None:
    """Write the GLOBAL policy every company falls back to."""
    tbl = ddb.Table(f"paieci-payroll-policy{suffix}")
    tbl.put_item(Item=GLOBAL_POLICY)
    print("  Seeded GLOBAL payroll policy")


def main() -> None:
    parser = argparse.ArgumentParser(description="Seed DynamoDB tables for PaieCI")
    parser.add_argument("--endpoint-url", default=None, help="DynamoDB endpoint (e.g. http://localhost:4566)")
    parser.add_argument("--table-suffix", default="", help="Table name suffix (e.g. -dev)")
    parser.add_argument("--region", default="eu-west-3", help="AWS region")
    args = parser.parse_args()

    kwargs: dict[str, Any] = {"region_name": args.region}
    if args.endpoint_url:
        kwargs["endpoint_url"] = args.endpoint_url

    ddb = boto3.resource("dynamodb", **kwargs)

    print("Creating tables...")
    create_tables(ddb, suffix=args.table_suffix)

    print("Seeding data...")
    seed_policy(ddb, suffix=args.table_suffix)

    print("Done!")


if __name__ == "__main__":
    main()
