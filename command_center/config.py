from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_SUPPORT_EMAIL = "it-support@moonshot.digital"


class Settings(BaseSettings):
    """Runtime configuration read from the environment and .env.

    Secrets default to empty; endpoints depending on a missing secret report
    "not configured" instead of failing at startup.
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "Command Center backend"
    log_level: str = "INFO"

    # Server, used by `python -m command_center`
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False

    # Storage: Turso/libSQL when both turso values are set, else database_url.
    database_url: str = "sqlite+pysqlite:///./command_center.sqlite"
    turso_database_url: str = ""
    turso_auth_token: SecretStr = SecretStr("")

    # Admin session tokens
    admin_password: SecretStr = SecretStr("")
    admin_token_secret: SecretStr = SecretStr("")
    admin_token_ttl: int = 60 * 60 * 24 * 7

    # Password reset
    password_reset_secret: SecretStr = SecretStr("")
    password_reset_ttl_minutes: int = 15

    # Email relay
    email_relay_url: str = ""
    email_relay_secret: SecretStr = SecretStr("")
    email_relay_timeout: float = 10.0

    frontend_origin: str = ""
    support_email: str = DEFAULT_SUPPORT_EMAIL

    @property
    def uses_turso(self) -> bool:
        return bool(self.turso_database_url.strip() and self.turso_auth_token.get_secret_value().strip())

    @property
    def cors_origins(self) -> list[str]:
        origin = self.frontend_origin.strip().rstrip("/")
        return [origin] if origin else ["*"]


@lru_cache
def get_settings() -> Settings:
    return Settings()
