import logging
from collections.abc import Callable
from datetime import datetime, timedelta

try:
    from .clock import format_timestamp, utc_now
    from .errors import ConfigurationError, InvalidCredentials, InvalidResetToken, WeakPassword
    from .models import ADMIN_USERNAME
    from .security import TokenSigner, hash_reset_token, issue_session_token, make_password_record, new_reset_token, verify_password
    from .store import CredentialStore
except ImportError:  # pragma: no cover
    from clock import format_timestamp, utc_now  # type: ignore
    from errors import ConfigurationError, InvalidCredentials, InvalidResetToken, WeakPassword  # type: ignore
    from models import ADMIN_USERNAME  # type: ignore
    from security import TokenSigner, hash_reset_token, issue_session_token, make_password_record, new_reset_token, verify_password  # type: ignore
    from store import CredentialStore  # type: ignore


logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def check_password_strength(password: str) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise WeakPassword()


class AccountService:
    """Admin login and password change."""

    def __init__(
        self,
        store: CredentialStore,
        signer: TokenSigner,
        token_ttl: int,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.signer = signer
        self.token_ttl = token_ttl
        self.clock = clock

    def login(self, password: str, username: str = ADMIN_USERNAME) -> str:
        record = self.store.get_admin(username)
        if record is None:
            raise ConfigurationError("Admin password not configured")
        if not password or not verify_password(password, record):
            logger.warning("Rejected admin login for %s", username)
            raise InvalidCredentials()
        logger.info("Admin %s logged in", username)
        return issue_session_token(self.signer, self.token_ttl, subject=username, now=self.clock().timestamp())

    def change_password(self, new_password: str, username: str = ADMIN_USERNAME) -> None:
        check_password_strength(new_password)
        self.store.upsert_admin(username, make_password_record(new_password), format_timestamp(self.clock()))
        logger.info("Admin %s changed password", username)


class PasswordResetService:
    """Single-use, time-boxed recovery tokens.

    Only an HMAC of each token is stored, under a secret distinct from the
    session-signing secret. Callers get the raw token exactly once, to put in
    the recovery link.
    """

    def __init__(
        self,
        store: CredentialStore,
        secret: str,
        ttl_minutes: int = 15,
        clock: Callable[[], datetime] = utc_now,
    ):
        secret = (secret or "").strip()
        if not secret:
            raise ConfigurationError("Reset not configured")
        self.store = store
        self.secret = secret
        self.ttl = timedelta(minutes=ttl_minutes)
        self.clock = clock

    def issue_reset(self, username: str = ADMIN_USERNAME) -> str:
        token = new_reset_token()
        now = self.clock()
        self.store.save_reset_token(
            hash_reset_token(self.secret, token),
            username,
            created_at=format_timestamp(now),
            expires_at=format_timestamp(now + self.ttl),
        )
        logger.info("Issued password reset token for %s", username)
        return token

    def confirm_reset(self, token: str, new_password: str) -> None:
        check_password_strength(new_password)
        token = (token or "").strip()
        if not token:
            raise InvalidResetToken()
        token_hash = hash_reset_token(self.secret, token)
        now = format_timestamp(self.clock())
        if not self.store.reset_token_usable(token_hash, now):
            logger.warning("Rejected password reset confirmation")
            raise InvalidResetToken()
        record = make_password_record(new_password)
        if not self.store.consume_reset_token(token_hash, now, record):
            logger.warning("Password reset token consumed concurrently")
            raise InvalidResetToken()
        logger.info("Password reset completed")
