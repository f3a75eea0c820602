"""Login and password-change flows for users and administrators."""
from __future__ import annotations

import logging

from .admins import AdminDirectory
from .directory import UserDirectory
from .errors import (
    InvalidInputError,
    NotFoundError,
    UnknownAdminError,
    UnknownUserError,
    WrongCredentialError,
)
from .models import AuthenticatedAdmin, AuthenticatedUser
from .security import CredentialStore

logger = logging.getLogger("payportal.auth")


class Authenticator:
    """Resolve credentials to principals and rotate admin passwords."""

    def __init__(
        self,
        credentials: CredentialStore,
        users: UserDirectory,
        admins: AdminDirectory,
    ) -> None:
        self._credentials = credentials
        self._users = users
        self._admins = admins

    def login_user(self, email: str, code: str) -> AuthenticatedUser:
        user = self._users.find_by_email(email)
        if user is None:
            self._credentials.verify_dummy(code)
            logger.info("User login rejected: unknown email")
            raise UnknownUserError("No user is registered with that email")

        stored_hash = self._users.access_code_hash(user.id)
        if not self._credentials.verify(code, stored_hash):
            logger.info("User login rejected for %s: wrong access code", user.email)
            raise WrongCredentialError("Access code is incorrect")

        if stored_hash and self._credentials.needs_rehash(stored_hash):
            self._users.replace_access_code_hash(user.id, self._credentials.hash(code))
            logger.info("Upgraded access code hash for user %s", user.id)

        return AuthenticatedUser(user_id=user.id)

    def login_admin(self, email: str, password: str) -> AuthenticatedAdmin:
        admin = self._admins.find_by_email(email)
        if admin is None:
            self._credentials.verify_dummy(password)
            logger.info("Admin login rejected: unknown email")
            raise UnknownAdminError("No administrator is registered with that email")

        stored_hash = self._admins.password_hash(admin.email)
        if not self._credentials.verify(password, stored_hash):
            logger.info("Admin login rejected for %s: wrong password", admin.email)
            raise WrongCredentialError("Password is incorrect")

        if stored_hash and self._credentials.needs_rehash(stored_hash):
            self._admins.set_password_hash(admin.id, self._credentials.hash(password))
            logger.info("Upgraded password hash for administrator %s", admin.email)

        return AuthenticatedAdmin(email=admin.email)

    def change_admin_password(self, admin_email: str, current: str, new: str) -> None:
        """Replace an administrator's password after verifying the current one."""

        admin = self._admins.find_by_email(admin_email)
        if admin is None:
            raise NotFoundError(f"Administrator {admin_email} not found")
        if not new or not new.strip():
            raise InvalidInputError("New password must not be empty")

        stored_hash = self._admins.password_hash(admin.email) or ""
        new_hash = self._credentials.rotate(current, new, stored_hash)
        self._admins.set_password_hash(admin.id, new_hash)
        logger.info("Administrator %s changed their password", admin.email)


__all__ = ["Authenticator"]
