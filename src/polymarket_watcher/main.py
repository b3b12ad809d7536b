from __future__ import annotations

import asyncio
import logging
import sys

from .config import load_settings
from .service import WatcherService
from .storage import StorageError

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_service() -> WatcherService:
    settings = load_settings()
    configure_logging(settings.log_level)
    return WatcherService(settings)


def main() -> None:
    try:
        service = build_service()
    except (ValueError, StorageError) as exc:
        configure_logging("INFO")
        logger.error("Startup failed: %s", exc)
        sys.exit(1)

    try:
        asyncio.run(service.run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
