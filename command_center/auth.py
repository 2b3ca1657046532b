"""Request-level admin authorization.

The gate is pure: it reads the Authorization header and checks the token
signature and expiry. It never touches storage, so it can run any number
of times per request.
"""

import re

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

try:
    from .config import Settings
    from .database import get_db
    from .errors import ConfigurationError
    from .security import TokenSigner
    from .store import SqlCredentialStore
except ImportError:  # pragma: no cover
    from config import Settings  # type: ignore
    from database import get_db  # type: ignore
    from errors import ConfigurationError  # type: ignore
    from security import TokenSigner  # type: ignore
    from store import SqlCredentialStore  # type: ignore


BEARER_RE = re.compile(r"^Bearer\s+(.+)$", re.IGNORECASE)


def bearer_token(header: str | None) -> str:
    match = BEARER_RE.match(header or "")
    return match.group(1).strip() if match else ""


def is_authorized(request: Request, signer: TokenSigner) -> bool:
    token = bearer_token(request.headers.get("authorization"))
    if not token:
        return False
    return signer.verify(token) is not None


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_signer(settings: Settings = Depends(get_app_settings)) -> TokenSigner:
    try:
        return TokenSigner(settings.admin_token_secret.get_secret_value())
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc))


def get_store(db: Session = Depends(get_db)) -> SqlCredentialStore:
    return SqlCredentialStore(db)


def require_admin(request: Request, signer: TokenSigner = Depends(get_signer)) -> None:
    if not is_authorized(request, signer):
        raise HTTPException(status_code=401, detail="Unauthorized")
