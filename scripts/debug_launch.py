#!/usr/bin/env python3
"""Run one Virtuals launch through the pipeline by its API id.

Fetches, normalizes, scores and upserts a single launch outside the polling
timer. With --delete-existing any stored record for the id is removed first,
so the launch is processed as brand new.

Usage:
    python scripts/debug_launch.py 12345
    python scripts/debug_launch.py 12345 --delete-existing
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import httpx

from launch_scanner.launchpads.virtuals.client import LAUNCHPAD_NAME
from launch_scanner.main import build_pipeline
from launch_scanner.storage.database import init_db
from launch_scanner.utils.logging import setup_logging

logger = logging.getLogger("debug_launch")


async def main(launch_id: str, delete_existing: bool) -> int:
    setup_logging()
    await init_db()

    async with httpx.AsyncClient(follow_redirects=True) as client:
        pipeline = build_pipeline(client)
        listener = pipeline.listeners[LAUNCHPAD_NAME]
        result = await listener.debug_launch(launch_id, delete_existing=delete_existing)

    print(result.message)
    return 0 if result.success else 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Process a single Virtuals launch by id")
    parser.add_argument("launch_id", help="Virtuals API id of the launch")
    parser.add_argument(
        "--delete-existing",
        action="store_true",
        help="delete any stored record for this id before processing",
    )
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.launch_id, args.delete_existing)))
