"""One-way credential hashing for access codes and admin passwords."""
from __future__ import annotations

import secrets

from passlib.context import CryptContext

from .errors import InvalidInputError, WrongCredentialError

DEFAULT_HASH_ROUNDS = 12
# bcrypt refuses fewer rounds than this.
MIN_HASH_ROUNDS = 4
# bcrypt ignores everything past this many bytes.
MAX_SECRET_BYTES = 72


def _secret_too_long(secret: str) -> bool:
    return len(secret.encode("utf-8")) > MAX_SECRET_BYTES


class CredentialStore:
    """Hash, verify, and rotate secrets using a salted adaptive scheme.

    New hashes use bcrypt with the configured work factor. PBKDF2 hashes are
    still accepted so that older databases keep working; they are reported by
    :meth:`needs_rehash` and upgraded by the login flows.
    """

    def __init__(self, *, rounds: int = DEFAULT_HASH_ROUNDS) -> None:
        if rounds < MIN_HASH_ROUNDS:
            raise ValueError(f"Hash rounds must be at least {MIN_HASH_ROUNDS}")
        self._rounds = rounds
        self._context = CryptContext(
            schemes=["bcrypt", "pbkdf2_sha256"],
            deprecated="auto",
            bcrypt__rounds=rounds,
            bcrypt__min_rounds=rounds,
        )
        self._dummy_hash: str | None = None

    @property
    def rounds(self) -> int:
        return self._rounds

    def hash(self, secret: str) -> str:
        if not secret:
            raise InvalidInputError("Secret must not be empty")
        if _secret_too_long(secret):
            raise InvalidInputError(f"Secret must be at most {MAX_SECRET_BYTES} bytes long")
        return self._context.hash(secret)

    def verify(self, secret: str, hashed: str | None) -> bool:
        """Return ``True`` when ``secret`` matches ``hashed``.

        Any mismatch yields ``False``, including malformed hashes and secrets
        too long to have been hashed.
        """

        if not secret or not hashed:
            return False
        if _secret_too_long(secret):
            return False
        try:
            return self._context.verify(secret, hashed)
        except (ValueError, TypeError):
            return False

    def verify_dummy(self, secret: str) -> bool:
        """Spend the same work as :meth:`verify` for an account that does not exist."""

        if self._dummy_hash is None:
            self._dummy_hash = self._context.hash(secrets.token_hex(16))
        self.verify(secret or "-", self._dummy_hash)
        return False

    def needs_rehash(self, hashed: str) -> bool:
        try:
            return self._context.needs_update(hashed)
        except (ValueError, TypeError):
            return False

    def rotate(self, old_secret: str, new_secret: str, stored_hash: str) -> str:
        """Return a hash of ``new_secret`` once ``old_secret`` has been verified."""

        if not self.verify(old_secret, stored_hash):
            raise WrongCredentialError("Current credential is incorrect")
        return self.hash(new_secret)


__all__ = ["CredentialStore", "DEFAULT_HASH_ROUNDS", "MAX_SECRET_BYTES", "MIN_HASH_ROUNDS"]
