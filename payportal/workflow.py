"""Payment status transitions and their audit records."""
from __future__ import annotations

import logging
from typing import Optional

from .audit import AuditTrail
from .database import Database
from .errors import InvalidInputError, NotFoundError
from .models import AuditEntry, PaymentStatus

logger = logging.getLogger("payportal.workflow")


class StatusWorkflow:
    """Move users between payment statuses.

    Any status may follow any other, including moving backwards; the statuses
    form an operational checklist rather than a strict pipeline.
    """

    def __init__(self, database: Database, audit: AuditTrail) -> None:
        self._database = database
        self._audit = audit

    def set_status(
        self,
        user_id: str,
        new_status: PaymentStatus | str,
        acting_admin_email: str,
    ) -> Optional[AuditEntry]:
        """Store ``new_status`` for the user and return the audit entry.

        Returns ``None`` without touching the database when the user already
        has that status.
        """

        target = PaymentStatus.parse(new_status)
        admin_email = (acting_admin_email or "").strip().lower()
        if not admin_email:
            raise InvalidInputError("Acting administrator email must not be empty")

        with self._database.transaction() as conn:
            row = conn.execute("SELECT status FROM users WHERE id = ?", (user_id,)).fetchone()
            if row is None:
                raise NotFoundError(f"User {user_id} not found")

            current = PaymentStatus.parse(row["status"])
            if current is target:
                return None

            conn.execute(
                "UPDATE users SET status = ? WHERE id = ?",
                (target.value, user_id),
            )
            entry = self._audit.record(conn, user_id, admin_email, current, target)

        logger.info(
            "Status of user %s changed from %s to %s by %s",
            user_id,
            current.value,
            target.value,
            admin_email,
        )
        return entry


__all__ = ["StatusWorkflow"]
