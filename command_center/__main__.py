"""Command Center backend entrypoint.

Run with:
  python -m command_center
"""

import uvicorn

try:
    from .config import Settings, get_settings
except ImportError:  # pragma: no cover
    from config import Settings, get_settings  # type: ignore


def main(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    uvicorn.run(
        "command_center.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
