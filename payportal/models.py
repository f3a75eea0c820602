"""Domain models for the payment tracking portal."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import List, Optional, Union

from .errors import InvalidStatusError


class PaymentStatus(str, Enum):
    """Ordered payment-processing checklist attached to every user."""

    NOT_STARTED = "NOT_STARTED"
    RECEIPT_ISSUED = "RECEIPT_ISSUED"
    TAX_DOCUMENT_RECEIVED = "TAX_DOCUMENT_RECEIVED"
    PAYMENT_READY = "PAYMENT_READY"
    TRANSFER_COMPLETED = "TRANSFER_COMPLETED"

    @classmethod
    def initial(cls) -> "PaymentStatus":
        return cls.NOT_STARTED

    @classmethod
    def ordered(cls) -> List["PaymentStatus"]:
        return list(cls)

    @classmethod
    def parse(cls, value: object) -> "PaymentStatus":
        """Resolve a member from an enum value, a name, or a legacy label."""

        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise InvalidStatusError(value)

        cleaned = value.strip()
        member = cls.__members__.get(cleaned.upper().replace(" ", "_").replace("-", "_"))
        if member is not None:
            return member
        legacy = _LEGACY_LABELS.get(cleaned.upper())
        if legacy is not None:
            return legacy
        raise InvalidStatusError(value)

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def position(self) -> int:
        return PaymentStatus.ordered().index(self)

    @property
    def tone(self) -> str:
        """Presentation hint used by clients to colour the status badge."""

        if self is PaymentStatus.NOT_STARTED:
            return "bad"
        if self is PaymentStatus.RECEIPT_ISSUED:
            return "warn"
        if self is PaymentStatus.TRANSFER_COMPLETED:
            return "ok"
        return "neutral"


_LABELS = {
    PaymentStatus.NOT_STARTED: "Not started",
    PaymentStatus.RECEIPT_ISSUED: "Receipt issued",
    PaymentStatus.TAX_DOCUMENT_RECEIVED: "Tax document received",
    PaymentStatus.PAYMENT_READY: "Payment instrument ready",
    PaymentStatus.TRANSFER_COMPLETED: "Transfer completed",
}

# Labels written by the first version of the portal.
_LEGACY_LABELS = {
    "NO INICIADA": PaymentStatus.NOT_STARTED,
    "RECIBO EMITIDO": PaymentStatus.RECEIPT_ISSUED,
    "CCF RECIBIDO": PaymentStatus.TAX_DOCUMENT_RECEIVED,
    "CHEQUE LISTO": PaymentStatus.PAYMENT_READY,
    "TRANSFERENCIA REALIZADA": PaymentStatus.TRANSFER_COMPLETED,
}


@dataclass(frozen=True)
class User:
    """A tracked client whose payment status is managed by administrators."""

    id: str
    name: str
    email: str
    project: Optional[str]
    status: PaymentStatus
    created_at: datetime


@dataclass(frozen=True)
class Admin:
    """An administrator account able to manage users and statuses."""

    id: str
    email: str
    created_at: datetime


@dataclass(frozen=True)
class AuditEntry:
    """Immutable record of a single status change."""

    id: str
    user_id: str
    admin_email: str
    from_status: Optional[PaymentStatus]
    to_status: PaymentStatus
    at: datetime


@dataclass(frozen=True)
class AuditView:
    """Audit entry joined with the current display name of its user."""

    entry: AuditEntry
    user_name: str


@dataclass(frozen=True)
class Anonymous:
    pass


@dataclass(frozen=True)
class AuthenticatedUser:
    user_id: str


@dataclass(frozen=True)
class AuthenticatedAdmin:
    email: str


Principal = Union[Anonymous, AuthenticatedUser, AuthenticatedAdmin]

ANONYMOUS = Anonymous()


__all__ = [
    "ANONYMOUS",
    "Admin",
    "Anonymous",
    "AuditEntry",
    "AuditView",
    "AuthenticatedAdmin",
    "AuthenticatedUser",
    "PaymentStatus",
    "Principal",
    "User",
]
