"""Operation surface consumed by the HTTP adapter and the CLI.

Every operation that needs authorization receives the acting principal
explicitly; nothing is read from ambient request state.
"""
from __future__ import annotations

from typing import List, Optional

from .admins import AdminDirectory
from .audit import DEFAULT_RECENT_LIMIT, AuditTrail
from .auth import Authenticator
from .config import Settings
from .database import Database
from .directory import UserDirectory
from .errors import InvalidInputError, NotFoundError, PermissionDeniedError
from .models import (
    Admin,
    AuditEntry,
    AuditView,
    AuthenticatedAdmin,
    AuthenticatedUser,
    PaymentStatus,
    Principal,
    User,
)
from .security import DEFAULT_HASH_ROUNDS, CredentialStore
from .workflow import StatusWorkflow


def require_admin(principal: Principal) -> AuthenticatedAdmin:
    if isinstance(principal, AuthenticatedAdmin):
        return principal
    raise PermissionDeniedError("Administrator access is required")


def _require_self_or_admin(principal: Principal, user_id: str) -> None:
    if isinstance(principal, AuthenticatedAdmin):
        return
    if isinstance(principal, AuthenticatedUser) and principal.user_id == user_id:
        return
    raise PermissionDeniedError("You may only view your own payment status")


class PaymentPortal:
    """Wire the credential, directory, workflow, and audit components together."""

    def __init__(
        self,
        database: Database,
        *,
        credentials: CredentialStore | None = None,
        audit_limit: int = DEFAULT_RECENT_LIMIT,
    ) -> None:
        self.database = database
        self.credentials = credentials or CredentialStore(rounds=DEFAULT_HASH_ROUNDS)
        self.audit = AuditTrail(database)
        self.users = UserDirectory(database, self.credentials, self.audit)
        self.admins = AdminDirectory(database, self.credentials)
        self.workflow = StatusWorkflow(database, self.audit)
        self.authenticator = Authenticator(self.credentials, self.users, self.admins)
        self.audit_limit = audit_limit

    @classmethod
    def from_settings(cls, settings: Settings) -> "PaymentPortal":
        return cls(
            Database(settings.database_path),
            credentials=CredentialStore(rounds=settings.hash_rounds),
            audit_limit=settings.audit_limit,
        )

    def initialize(self) -> Optional[Admin]:
        """Create the schema and seed the bootstrap administrator if needed."""

        self.database.initialize()
        return self.admins.ensure_default_admin()

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def login_user(self, email: str, code: str) -> AuthenticatedUser:
        return self.authenticator.login_user(email, code)

    def login_admin(self, email: str, password: str) -> AuthenticatedAdmin:
        return self.authenticator.login_admin(email, password)

    def change_admin_password(self, principal: Principal, current: str, new: str) -> None:
        admin = require_admin(principal)
        self.authenticator.change_admin_password(admin.email, current, new)

    # ------------------------------------------------------------------
    # Directory
    # ------------------------------------------------------------------
    def create_user(
        self,
        principal: Principal,
        *,
        name: str,
        email: str,
        code: str,
        project: Optional[str] = None,
    ) -> User:
        require_admin(principal)
        return self.users.create(name, email, code, project=project)

    def update_user(
        self,
        principal: Principal,
        user_id: str,
        *,
        name: Optional[str] = None,
        email: Optional[str] = None,
        project: Optional[str] = None,
        code: Optional[str] = None,
    ) -> User:
        require_admin(principal)
        return self.users.update(user_id, name=name, email=email, project=project, code=code)

    def delete_user(self, principal: Principal, user_id: str) -> None:
        require_admin(principal)
        self.users.delete(user_id)

    def get_user(
        self,
        principal: Principal,
        *,
        user_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        if (user_id is None) == (email is None):
            raise InvalidInputError("Provide exactly one of user_id or email")

        if user_id is not None:
            _require_self_or_admin(principal, user_id)
            return self.users.get(user_id)

        require_admin(principal)
        user = self.users.find_by_email(email or "")
        if user is None:
            raise NotFoundError(f"No user is registered with email {email!r}")
        return user

    def list_users(self, principal: Principal) -> List[User]:
        require_admin(principal)
        return self.users.list()

    # ------------------------------------------------------------------
    # Workflow and audit
    # ------------------------------------------------------------------
    def set_user_status(
        self,
        principal: Principal,
        user_id: str,
        new_status: PaymentStatus | str,
    ) -> Optional[AuditEntry]:
        admin = require_admin(principal)
        return self.workflow.set_status(user_id, new_status, admin.email)

    def list_recent_audit(self, principal: Principal, limit: Optional[int] = None) -> List[AuditView]:
        require_admin(principal)
        return self.audit.recent_for_admin_view(self.audit_limit if limit is None else limit)

    def user_history(self, principal: Principal, user_id: str) -> List[AuditEntry]:
        _require_self_or_admin(principal, user_id)
        self.users.get(user_id)
        return self.audit.history_for_user(user_id)


__all__ = ["PaymentPortal", "require_admin"]
