"""Tests for structured logging."""

from __future__ import annotations

import io
import json
import logging
from decimal import Decimal

import pytest

from paieci.core.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    mask_number,
    reset_logging,
)


@pytest.fixture
def stream():
    reset_logging()
    buf = io.StringIO()
    configure_logging(level=logging.DEBUG, stream=buf)
    yield buf
    reset_logging()
    LogContext.clear()


def _lines(buf: io.StringIO) -> list[dict]:
    return [json.loads(line) for line in buf.getvalue().splitlines()]


class TestStructuredOutput:
    def test_json_line_with_extra_fields(self, stream):
        get_logger("test").info("payroll generated", extra={"payslips_created": 3, "total": Decimal("1500.5")})
        [entry] = _lines(stream)
        assert entry["message"] == "payroll generated"
        assert entry["logger"] == "paieci.test"
        assert entry["payslips_created"] == 3
        assert entry["total"] == "1500.5"

    def test_context_fields_attached(self, stream):
        with LogContext.bind(company_id="ACME", batch_id="b-1"):
            get_logger("test").info("inside")
        get_logger("test").info("outside")
        inside, outside = _lines(stream)
        assert inside["company_id"] == "ACME"
        assert inside["batch_id"] == "b-1"
        assert "company_id" not in outside

    def test_configure_is_idempotent(self, stream):
        configure_logging(level=logging.INFO, stream=io.StringIO())
        structured = [h for h in logging.getLogger("paieci").handlers
                      if isinstance(h.formatter, StructuredFormatter)]
        assert len(structured) == 1

    def test_exception_details(self, stream):
        try:
            raise ValueError("bad amount")
        except ValueError:
            get_logger("test").warning("failed", exc_info=True)
        [entry] = _lines(stream)
        assert entry["exc_type"] == "ValueError"
        assert "bad amount" in entry["traceback"]


@pytest.mark.parametrize("value,masked", [
    ("0707123456", "******3456"),
    ("123", "123"),
    ("", ""),
    (None, ""),
])
def test_mask_number(value, masked):
    assert mask_number(value) == masked
