"""Credential storage for the admin account and password-reset tokens."""

from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.orm import Session

try:
    from .models import AdminUserModel, PasswordResetTokenModel, SettingsModel
    from .security import PasswordRecord
except ImportError:  # pragma: no cover
    from models import AdminUserModel, PasswordResetTokenModel, SettingsModel  # type: ignore
    from security import PasswordRecord  # type: ignore


class CredentialStore(Protocol):
    """Storage capability used by the account services."""

    def get_admin(self, username: str) -> PasswordRecord | None:
        """Return the stored password record or None."""
        ...

    def upsert_admin(self, username: str, record: PasswordRecord, now: str, bootstrapped: bool = False) -> None:
        """Create or replace the credential, keeping the original created_at."""
        ...

    def save_reset_token(self, token_hash: str, username: str, created_at: str, expires_at: str) -> None:
        """Insert or replace an unused reset token keyed by its hash."""
        ...

    def reset_token_usable(self, token_hash: str, now: str) -> bool:
        """True when the token exists, is unused and has not expired."""
        ...

    def consume_reset_token(self, token_hash: str, now: str, record: PasswordRecord) -> bool:
        """Mark the token used and store the new credential in one transaction.

        Returns False when the token is unknown, already used or expired.
        """
        ...

    def get_support_email(self) -> str | None:
        ...


class SqlCredentialStore:
    def __init__(self, db: Session):
        self.db = db

    def get_admin(self, username: str) -> PasswordRecord | None:
        row = self.db.get(AdminUserModel, username)
        if not row:
            return None
        return PasswordRecord(password_hash=row.password_hash, salt=row.salt, iterations=row.iterations)

    def is_bootstrapped(self, username: str) -> bool:
        row = self.db.get(AdminUserModel, username)
        return bool(row and row.bootstrapped)

    def _write_admin(self, username: str, record: PasswordRecord, now: str, bootstrapped: bool = False) -> None:
        row = self.db.get(AdminUserModel, username)
        if row is None:
            row = AdminUserModel(username=username, created_at=now)
        row.password_hash = record.password_hash
        row.salt = record.salt
        row.iterations = record.iterations
        row.bootstrapped = bootstrapped
        row.updated_at = now
        self.db.add(row)

    def upsert_admin(self, username: str, record: PasswordRecord, now: str, bootstrapped: bool = False) -> None:
        self._write_admin(username, record, now, bootstrapped)
        self.db.commit()

    def save_reset_token(self, token_hash: str, username: str, created_at: str, expires_at: str) -> None:
        self.db.merge(
            PasswordResetTokenModel(
                token_hash=token_hash,
                username=username,
                created_at=created_at,
                expires_at=expires_at,
                used_at=None,
            )
        )
        self.db.commit()

    def reset_token_usable(self, token_hash: str, now: str) -> bool:
        row = self.db.get(PasswordResetTokenModel, token_hash)
        return bool(row and row.used_at is None and row.expires_at > now)

    def consume_reset_token(self, token_hash: str, now: str, record: PasswordRecord) -> bool:
        # Check-and-set in the database: only one writer can flip used_at.
        result = self.db.execute(
            update(PasswordResetTokenModel)
            .where(
                PasswordResetTokenModel.token_hash == token_hash,
                PasswordResetTokenModel.used_at.is_(None),
                PasswordResetTokenModel.expires_at > now,
            )
            .values(used_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            self.db.rollback()
            return False
        username = self.db.execute(
            select(PasswordResetTokenModel.username).where(PasswordResetTokenModel.token_hash == token_hash)
        ).scalar_one()
        self._write_admin(username, record, now)
        self.db.commit()
        return True

    def get_support_email(self) -> str | None:
        row = self.db.get(SettingsModel, 1)
        if not row:
            return None
        return (row.support_email or "").strip() or None

    def ensure_settings(self, support_email: str) -> None:
        if self.db.get(SettingsModel, 1) is None:
            self.db.add(SettingsModel(id=1, support_email=support_email.strip()))
            self.db.commit()
