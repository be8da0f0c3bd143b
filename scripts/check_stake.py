#!/usr/bin/env python3
"""
Print the current RPL stake for one or more validators without alerting.

Usage:
    python scripts/check_stake.py 123456 654321

Reads BEACONCHA_API_KEY (and optionally BEACONCHA_API_URL) from the
environment or from .env in the project root. Nothing is posted to Discord.
"""

import asyncio
import logging
import os
import sys
from pathlib import Path

# Get project root (parent of scripts/)
SCRIPT_DIR = Path(__file__).resolve().parent
PROJECT_ROOT = SCRIPT_DIR.parent

# Add src to path
sys.path.insert(0, str(PROJECT_ROOT / "src"))

from rpl_stake_watcher.core import evaluate
from rpl_stake_watcher.errors import FetchError
from rpl_stake_watcher.ingestion import BeaconchainClient


async def main(validator_ids):
    log_level = os.environ.get("LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    # basicConfig is a no-op once the watcher module has configured logging
    logging.getLogger().setLevel(getattr(logging, log_level, logging.WARNING))

    api_key = os.environ.get("BEACONCHA_API_KEY", "")
    if not api_key:
        print("BEACONCHA_API_KEY is not set", file=sys.stderr)
        return 1

    base_url = os.environ.get("BEACONCHA_API_URL", BeaconchainClient.DEFAULT_BASE_URL)

    exit_code = 0
    async with BeaconchainClient(api_key=api_key, base_url=base_url) as client:
        for validator_id in validator_ids:
            try:
                record = await client.get_stake_record(validator_id)
            except FetchError as e:
                print(f"{validator_id}: fetch failed: {e}")
                exit_code = 1
                continue

            if record is None:
                print(f"{validator_id}: not a Rocket Pool validator")
                continue

            evaluation = evaluate(record)
            flag = "UNDER MINIMUM" if evaluation.is_under_minimum else "ok"
            print(f"[{flag}] {evaluation.summary}")

    return exit_code


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(2)
    from rpl_stake_watcher.main import load_env_file

    load_env_file(str(PROJECT_ROOT / ".env"))
    sys.exit(asyncio.run(main(sys.argv[1:])))
