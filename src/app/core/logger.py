import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import Settings

_configured = False


def configure_logging(settings: "Settings | None" = None) -> None:
    """Configure the root logger from settings.

    Safe to call more than once; only the first call installs a handler.
    """
    global _configured
    if _configured:
        return

    if settings is None:
        from .config import settings as default_settings

        settings = default_settings

    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(level=level, format=settings.LOG_FORMAT)

    # httpx logs every proxy round-trip at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    _configured = True
