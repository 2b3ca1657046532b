import base64
import hashlib
import hmac
import json
import secrets
import time
from dataclasses import dataclass
from typing import Any

try:
    from .errors import ConfigurationError
except ImportError:  # pragma: no cover
    from errors import ConfigurationError  # type: ignore


DEFAULT_ITERATIONS = 100_000
SALT_BYTES = 16
DIGEST_BYTES = 32
RESET_TOKEN_BYTES = 32
TOKEN_DELIMITER = "."


def b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def b64url_decode(value: str) -> bytes:
    padded = value + "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


@dataclass(frozen=True)
class PasswordRecord:
    password_hash: str
    salt: str
    iterations: int


def new_salt() -> bytes:
    return secrets.token_bytes(SALT_BYTES)


def hash_password(password: str, salt: bytes, iterations: int = DEFAULT_ITERATIONS) -> bytes:
    if not salt:
        raise ValueError("salt is required")
    if iterations < 1:
        raise ValueError("iterations must be positive")
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations, dklen=DIGEST_BYTES)


def make_password_record(password: str, iterations: int = DEFAULT_ITERATIONS) -> PasswordRecord:
    salt = new_salt()
    digest = hash_password(password, salt, iterations)
    return PasswordRecord(password_hash=b64url_encode(digest), salt=b64url_encode(salt), iterations=iterations)


def verify_password(password: str, record: PasswordRecord | None) -> bool:
    if record is None or not record.salt or not record.password_hash:
        return False
    try:
        iterations = int(record.iterations)
        if iterations < 1:
            return False
        salt = b64url_decode(record.salt)
        expected = b64url_decode(record.password_hash)
        if not salt or not expected:
            return False
        actual = hash_password(password, salt, iterations)
    except (TypeError, ValueError, OverflowError):
        return False
    return hmac.compare_digest(actual, expected)


def hash_reset_token(secret: str, token: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), token.encode("utf-8"), hashlib.sha256).digest()
    return b64url_encode(digest)


def new_reset_token() -> str:
    return b64url_encode(secrets.token_bytes(RESET_TOKEN_BYTES))


class TokenSigner:
    """Stateless bearer tokens: ``b64url(json payload).b64url(hmac)``.

    The HMAC-SHA256 signature covers the encoded payload string. There is no
    revocation list; a leaked token stays valid until ``exp``.
    """

    def __init__(self, secret: str):
        secret = (secret or "").strip()
        if not secret:
            raise ConfigurationError("Missing ADMIN_TOKEN_SECRET")
        self._key = secret.encode("utf-8")

    def _signature(self, encoded_payload: str) -> str:
        digest = hmac.new(self._key, encoded_payload.encode("ascii"), hashlib.sha256).digest()
        return b64url_encode(digest)

    def sign(self, payload: dict[str, Any]) -> str:
        if "exp" not in payload:
            raise ValueError("payload.exp is required")
        body = json.dumps(payload, separators=(",", ":"), sort_keys=True)
        encoded = b64url_encode(body.encode("utf-8"))
        return f"{encoded}{TOKEN_DELIMITER}{self._signature(encoded)}"

    def verify(self, token: str, now: float | None = None) -> dict[str, Any] | None:
        if not token or not isinstance(token, str):
            return None
        parts = token.split(TOKEN_DELIMITER)
        if len(parts) != 2:
            return None
        encoded, signature = parts
        try:
            expected = self._signature(encoded)
        except UnicodeEncodeError:
            return None
        # Signature first; nothing in the payload is read before this passes.
        if not hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8")):
            return None
        try:
            payload = json.loads(b64url_decode(encoded).decode("utf-8"))
        except ValueError:
            return None
        if not isinstance(payload, dict):
            return None
        exp = payload.get("exp")
        if isinstance(exp, bool) or not isinstance(exp, (int, float)):
            return None
        current = time.time() if now is None else now
        if exp <= current:
            return None
        return payload


def issue_session_token(signer: TokenSigner, ttl_seconds: int, subject: str = "admin", now: float | None = None) -> str:
    issued_at = int(time.time() if now is None else now)
    return signer.sign({"sub": subject, "iat": issued_at, "exp": issued_at + int(ttl_seconds)})
