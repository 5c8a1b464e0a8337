"""CLI entrypoint that races several workers for one lock key."""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import Optional

from lockmanager import LockAlreadyHeldError, LockSettings, create_async_lock_manager
from lockmanager.utils.logging import get_logger


logger = get_logger("ContendCLI")


async def _worker(manager, key: str, ttl: float, hold: float, number: int) -> Optional[int]:
    async def work() -> int:
        logger.info("worker %d holds '%s'", number, key)
        await asyncio.sleep(hold)
        return number

    try:
        return await manager.wrap(key, ttl, work)
    except LockAlreadyHeldError:
        logger.info("worker %d lost the race for '%s'", number, key)
        return None


async def main() -> None:
    parser = argparse.ArgumentParser(description="Race workers for a single lock key.")
    parser.add_argument("--config", type=Path, default=None, help="Path to lock settings YAML")
    parser.add_argument("--key", default="demo", help="Lock key to contend for")
    parser.add_argument("--workers", type=int, default=5)
    parser.add_argument("--ttl", type=float, default=30.0, help="Lock TTL in seconds")
    parser.add_argument("--hold", type=float, default=0.5, help="Seconds each winner holds the lock")
    args = parser.parse_args()

    settings = LockSettings.from_file(args.config) if args.config else LockSettings()
    settings.apply_logging()
    manager = await create_async_lock_manager(settings)

    results = await asyncio.gather(
        *(_worker(manager, args.key, args.ttl, args.hold, n) for n in range(args.workers))
    )
    winners = [r for r in results if r is not None]
    logger.info("%d winner(s): %s", len(winners), winners)

    close = getattr(manager, "close", None)
    if close is not None:
        await close()


if __name__ == "__main__":
    asyncio.run(main())
