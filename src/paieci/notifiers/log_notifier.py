"""Default INotifier: records notifications in the structured log."""

from __future__ import annotations

from typing import Any

from paieci.core.logging_config import get_logger, mask_number
from paieci.models.employee import Employee

logger = get_logger("notifiers.log")


class LogNotifier:
    """Logs each notification instead of delivering it."""

    def notify(self, recipient: Employee, message_type: str, payload: dict[str, Any]) -> None:
        logger.info("notification", extra={
            "message_type": message_type,
            "employee_id": recipient.id,
            "phone": mask_number(recipient.mobile_number or recipient.phone),
            "payload": payload,
        })
