import logging

try:
    from .clock import format_timestamp, utc_now
    from .config import get_settings
    from .database import Base, build_engine, build_session_factory
    from .models import ADMIN_USERNAME
    from .security import make_password_record, verify_password
    from .store import SqlCredentialStore
except ImportError:  # pragma: no cover
    from clock import format_timestamp, utc_now  # type: ignore
    from config import get_settings  # type: ignore
    from database import Base, build_engine, build_session_factory  # type: ignore
    from models import ADMIN_USERNAME  # type: ignore
    from security import make_password_record, verify_password  # type: ignore
    from store import SqlCredentialStore  # type: ignore


logger = logging.getLogger(__name__)


def seed_admin(session_factory, *, bootstrap_admin_password: str = "", support_email: str = "") -> bool:
    """Create the settings row and write the admin credential from ADMIN_PASSWORD.

    A missing admin row is created from the bootstrap password. A row that
    still holds a bootstrap hash follows ADMIN_PASSWORD when the operator
    rotates it. A password set through the API or a reset is never
    overwritten. Returns True when the admin row was written.
    """
    password = bootstrap_admin_password.strip()
    db = session_factory()
    try:
        store = SqlCredentialStore(db)
        if support_email:
            store.ensure_settings(support_email)
        if not password:
            return False
        current = store.get_admin(ADMIN_USERNAME)
        if current is not None:
            if not store.is_bootstrapped(ADMIN_USERNAME) or verify_password(password, current):
                return False
            logger.info("ADMIN_PASSWORD changed; replacing bootstrap credential")
        store.upsert_admin(ADMIN_USERNAME, make_password_record(password), format_timestamp(utc_now()), bootstrapped=True)
        return True
    finally:
        db.close()


if __name__ == "__main__":
    settings = get_settings()
    engine = build_engine(settings)
    Base.metadata.create_all(bind=engine)
    seed_admin(
        build_session_factory(engine),
        bootstrap_admin_password=settings.admin_password.get_secret_value(),
        support_email=settings.support_email,
    )
