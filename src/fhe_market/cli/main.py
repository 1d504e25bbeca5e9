# src/fhe_market/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds the App, then runs the console connector on an
asyncio loop (status auto-clear timers and ledger I/O share that loop).
"""

from __future__ import annotations

import asyncio
import logging

from ..cli.bootstrap import create_app
from ..config import get_settings
from ..connectors.console_connector import confirm_transaction, run_console_loop
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


async def _run(settings) -> None:
    confirm = confirm_transaction if settings.confirm_transactions else None
    app = create_app(settings=settings, confirm=confirm)
    try:
        await run_console_loop(app)
    finally:
        try:
            await app.aclose()
        except Exception:
            logger.debug("App close failed.", exc_info=True)


def main() -> None:
    settings = get_settings()

    level_name = str(settings.log_level).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    setup_logging(log_dir=settings.data_dir, console_level=console_level)

    logger.info("Starting %s...", settings.app_name)

    try:
        asyncio.run(_run(settings))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down...")
    finally:
        logger.info("Bye.")


if __name__ == "__main__":
    main()
