#!/usr/bin/env python3
"""
Check on-chain vesting schedules for a list of addresses.

For each address:
  - validate format
  - read beneficiaries(address)
  - print totals, released amount, block window and vested percentage

Prints a summary table and exits 0; exits 1 only when the check itself cannot run.

Usage:
  vesting-check 0xAbc... 0xDef...
  vesting-check --file data/vesting_amounts3.csv
  py -m vesting_batcher.tools.check_schedules --file records/vesting_records_mainnet3.csv
"""

from __future__ import annotations

import argparse
import asyncio
import csv
import sys
from pathlib import Path
from typing import Sequence

from vesting_batcher.config.env import get_contract_address, get_rpc_url, load_vesting_env
from vesting_batcher.config.settings import get_settings
from vesting_batcher.distribution.inspector import ScheduleInspector, format_summary
from vesting_batcher.ledger.gateway import Web3LedgerGateway
from vesting_batcher.vesting_logging import get_logger

logger = get_logger(__name__)


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Check vesting schedules for addresses.")
    parser.add_argument("addresses", nargs="*", help="Addresses to check")
    parser.add_argument("--file", type=Path, default=None, help="CSV with a 'wallet' column")
    return parser.parse_args(argv)


def load_addresses(path: Path) -> list[str]:
    """Read the wallet column of a roster or record CSV; blank and repeated wallets are dropped."""
    out: list[str] = []
    seen: set[str] = set()
    with open(path, newline="", encoding="utf-8-sig") as f:
        for row in csv.DictReader(f):
            w = (row.get("wallet") or "").strip()
            if not w or w.lower() in seen:
                continue
            seen.add(w.lower())
            out.append(w)
    return out


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    load_vesting_env()
    try:
        addresses = list(args.addresses)
        if args.file is not None:
            addresses.extend(load_addresses(args.file))
        config = get_settings()
        gateway = Web3LedgerGateway(
            rpc_url=get_rpc_url(),
            contract_address=get_contract_address(),
            private_key="",
        )
        inspector = ScheduleInspector(gateway, max_attempts=config.max_retries, retry_delay=config.retry_delay_sec)
        reports = asyncio.run(inspector.inspect(addresses))
    except Exception as e:
        logger.exception("check_schedules_error", error=str(e))
        return 1

    print(format_summary(reports))
    return 0


if __name__ == "__main__":
    sys.exit(main())
