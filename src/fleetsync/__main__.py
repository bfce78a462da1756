"""Command line entry point: ``python -m fleetsync`` or ``fleetsync``."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import signal
import sys

from fleetsync.config import SyncConfig
from fleetsync.exceptions import ConfigError
from fleetsync.service import FleetSyncService

_logger = logging.getLogger("fleetsync")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Sync tracking provider positions into Sankhya")
    parser.add_argument("--once", action="store_true", help="Run a single cycle of every job and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


async def _run(config: SyncConfig, once: bool) -> int:
    async with FleetSyncService(config) as service:
        if once:
            outcomes = await service.run_once()
            for job, outcome in zip(service.jobs, outcomes, strict=True):
                _logger.info("%s: %s", job.name, outcome.message)
            return 0 if all(outcome.success for outcome in outcomes) else 1

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, service.stop)
        await service.run()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        config = SyncConfig.from_env()
    except ConfigError as exc:
        logging.basicConfig(level=logging.ERROR, format="%(levelname)s %(name)s: %(message)s")
        _logger.error("Invalid configuration: %s", exc)
        return 2

    level = logging.DEBUG if args.verbose else config.log_level
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        return asyncio.run(_run(config, args.once))
    except ConfigError as exc:
        _logger.error("Invalid configuration: %s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
