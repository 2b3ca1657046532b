import logging
from contextlib import asynccontextmanager
from urllib.parse import quote

import httpx
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

# Support running as a module or script
try:
    from .accounts import AccountService, PasswordResetService
    from .auth import get_app_settings, get_signer, get_store, is_authorized, require_admin
    from .config import Settings, get_settings
    from .database import Base, build_engine, build_session_factory
    from .errors import ConfigurationError, InvalidCredentials, InvalidResetToken, WeakPassword
    from .logging_config import setup_logging
    from . import models  # noqa: F401
    from .relay import EmailRelay
    from .schemas import HealthResponse, LoginRequest, LoginResponse, MeResponse, PasswordChangeRequest, PasswordResetConfirm, PublicSettingsOut, SentResponse, SuccessResponse
    from .security import TokenSigner
    from .seed import seed_admin
    from .store import SqlCredentialStore
except ImportError:  # pragma: no cover - fallback for script execution
    from accounts import AccountService, PasswordResetService  # type: ignore
    from auth import get_app_settings, get_signer, get_store, is_authorized, require_admin  # type: ignore
    from config import Settings, get_settings  # type: ignore
    from database import Base, build_engine, build_session_factory  # type: ignore
    from errors import ConfigurationError, InvalidCredentials, InvalidResetToken, WeakPassword  # type: ignore
    from logging_config import setup_logging  # type: ignore
    import models  # type: ignore  # noqa: F401
    from relay import EmailRelay  # type: ignore
    from schemas import HealthResponse, LoginRequest, LoginResponse, MeResponse, PasswordChangeRequest, PasswordResetConfirm, PublicSettingsOut, SentResponse, SuccessResponse  # type: ignore
    from security import TokenSigner  # type: ignore
    from seed import seed_admin  # type: ignore
    from store import SqlCredentialStore  # type: ignore


logger = logging.getLogger(__name__)

RESET_SUBJECT = "Moonshot Command Center - Reset Password"
RECOVERY_SUBJECT = "Moonshot Command Center - Access Recovery Request"

router = APIRouter(prefix="/api")


def get_email_relay(request: Request) -> EmailRelay:
    settings: Settings = request.app.state.settings
    return EmailRelay(
        settings.email_relay_url,
        settings.email_relay_secret.get_secret_value(),
        request.app.state.http_client,
    )


def resolve_support_email(store: SqlCredentialStore, settings: Settings) -> str:
    try:
        from_db = store.get_support_email()
    except SQLAlchemyError:
        logger.warning("Could not read support email from settings", exc_info=True)
        from_db = None
    return from_db or settings.support_email.strip()


@router.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse()


@router.post("/admin/login", response_model=LoginResponse)
async def login(
    payload: LoginRequest,
    settings: Settings = Depends(get_app_settings),
    signer: TokenSigner = Depends(get_signer),
    store: SqlCredentialStore = Depends(get_store),
):
    service = AccountService(store, signer, settings.admin_token_ttl)
    try:
        token = service.login(payload.password)
    except InvalidCredentials as exc:
        raise HTTPException(status_code=401, detail=exc.message)
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    return LoginResponse(token=token)


@router.get("/admin/me", response_model=MeResponse)
async def me(request: Request, signer: TokenSigner = Depends(get_signer)):
    return MeResponse(authenticated=is_authorized(request, signer))


@router.post("/admin/logout", response_model=SuccessResponse)
async def logout():
    # Tokens are stateless; the client discards its copy.
    return SuccessResponse()


@router.post("/admin/password", response_model=SuccessResponse, dependencies=[Depends(require_admin)])
async def change_password(
    payload: PasswordChangeRequest,
    settings: Settings = Depends(get_app_settings),
    signer: TokenSigner = Depends(get_signer),
    store: SqlCredentialStore = Depends(get_store),
):
    service = AccountService(store, signer, settings.admin_token_ttl)
    try:
        service.change_password(payload.password)
    except WeakPassword as exc:
        raise HTTPException(status_code=400, detail=exc.message)
    return SuccessResponse()


async def send_reset_link(settings: Settings, store: SqlCredentialStore, relay: EmailRelay) -> bool:
    reset_secret = settings.password_reset_secret.get_secret_value().strip()
    if not relay.configured or not reset_secret:
        return False
    support_email = resolve_support_email(store, settings)
    if not support_email:
        return False

    ttl_minutes = settings.password_reset_ttl_minutes
    token = PasswordResetService(store, reset_secret, ttl_minutes).issue_reset()
    origin = settings.frontend_origin.strip().rstrip("/")
    reset_url = f"{origin}/#admin-reset?token={quote(token, safe='')}"
    body = (
        "A password reset was requested for Moonshot Command Center.\n\n"
        f"Reset Link: {reset_url}\n\n"
        f"This link expires in {ttl_minutes} minutes.\n\n"
        f"Support Contact: {support_email}"
    )
    return await relay.send(support_email, RESET_SUBJECT, body)


@router.post("/admin/password-reset/request", response_model=SentResponse)
async def request_password_reset(
    settings: Settings = Depends(get_app_settings),
    store: SqlCredentialStore = Depends(get_store),
    relay: EmailRelay = Depends(get_email_relay),
):
    # Always 200: the caller must not learn why a reset was not sent.
    try:
        sent = await send_reset_link(settings, store, relay)
    except Exception:
        logger.exception("Password reset request failed")
        sent = False
    return SentResponse(sent=sent)


@router.post("/admin/password-reset/confirm", response_model=SuccessResponse)
async def confirm_password_reset(
    payload: PasswordResetConfirm,
    settings: Settings = Depends(get_app_settings),
    store: SqlCredentialStore = Depends(get_store),
):
    try:
        service = PasswordResetService(
            store,
            settings.password_reset_secret.get_secret_value(),
            settings.password_reset_ttl_minutes,
        )
    except ConfigurationError as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    try:
        service.confirm_reset(payload.token, payload.new_password)
    except WeakPassword:
        raise HTTPException(status_code=400, detail="Invalid token or password")
    except InvalidResetToken as exc:
        raise HTTPException(status_code=400, detail=exc.message)
    return SuccessResponse()


@router.post("/admin/access-recovery", response_model=SentResponse)
async def access_recovery(
    settings: Settings = Depends(get_app_settings),
    store: SqlCredentialStore = Depends(get_store),
    relay: EmailRelay = Depends(get_email_relay),
):
    sent = False
    try:
        support_email = resolve_support_email(store, settings)
        if relay.configured and support_email:
            body = (
                "An access recovery request was made for Moonshot Command Center.\n\n"
                "If you lost access, please rotate the ADMIN_PASSWORD secret in the deployment settings, "
                "restart the service and then log in using the new password. If the password was "
                "changed from the admin panel, request a password reset link instead.\n\n"
                f"Support Contact: {support_email}"
            )
            sent = await relay.send(support_email, RECOVERY_SUBJECT, body)
    except Exception:
        logger.exception("Access recovery request failed")
        sent = False
    return SentResponse(sent=sent)


@router.get("/settings/public", response_model=PublicSettingsOut)
async def public_settings(
    settings: Settings = Depends(get_app_settings),
    store: SqlCredentialStore = Depends(get_store),
):
    return PublicSettingsOut(support_email=resolve_support_email(store, settings))


async def validation_error_handler(request: Request, exc: RequestValidationError):
    if any(err.get("type") == "json_invalid" for err in exc.errors()):
        return JSONResponse(status_code=400, content={"detail": "Invalid JSON"})
    return JSONResponse(status_code=400, content={"detail": "Invalid request"})


async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Storage error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Storage unavailable"})


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    setup_logging(settings.log_level)

    engine = build_engine(settings)
    Base.metadata.create_all(bind=engine)
    app.state.engine = engine
    app.state.session_factory = build_session_factory(engine)
    seed_admin(
        app.state.session_factory,
        bootstrap_admin_password=settings.admin_password.get_secret_value(),
        support_email=settings.support_email,
    )
    app.state.http_client = httpx.AsyncClient(timeout=settings.email_relay_timeout)
    try:
        yield
    finally:
        await app.state.http_client.aclose()
        engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
    app.state.settings = settings

    origins = settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=86400,
    )
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, storage_error_handler)
    app.include_router(router)
    return app


app = create_app()
