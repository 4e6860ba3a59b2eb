"""Tests for the logging notifier."""

from __future__ import annotations

import logging

from paieci.core.protocols import INotifier
from paieci.models.employee import Employee
from paieci.notifiers.log_notifier import LogNotifier


def test_satisfies_protocol():
    assert isinstance(LogNotifier(), INotifier)


def test_logs_masked_number(caplog):
    employee = Employee(id="E1", company_id="ACME", mobile_number="0707123456")
    with caplog.at_level(logging.INFO, logger="paieci.notifiers.log"):
        LogNotifier().notify(employee, "PAIEMENT_SALAIRE", {"amount": "174600"})
    [record] = caplog.records
    assert record.message_type == "PAIEMENT_SALAIRE"
    assert record.phone == "******3456"
    assert record.payload == {"amount": "174600"}
