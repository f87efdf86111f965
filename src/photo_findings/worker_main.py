"""Standalone entrypoint running the vision worker loop."""

import asyncio
import logging
import signal

from photo_findings.app_logging import configure_logging
from photo_findings.containers import build_container

_logger = logging.getLogger(__name__)


async def run_worker() -> None:
    """Run the worker until SIGINT or SIGTERM is received."""
    container = build_container()
    configure_logging(container.settings.log_level)
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop.set)
    try:
        await container.worker.run(stop)
    finally:
        await container.close_resources()
        _logger.info("Vision worker shut down")


def main() -> None:
    """Console script entrypoint."""
    asyncio.run(run_worker())


if __name__ == "__main__":
    main()
