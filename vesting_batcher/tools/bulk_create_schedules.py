#!/usr/bin/env python3
"""
Register vesting schedules for every beneficiary in the roster, in batches.

Reads data/vesting_amounts{N}.csv, skips wallets already recorded or already on
chain, submits addBeneficiaries per batch and appends outcomes to
records/vesting_records_{network}{N}.csv. Safe to re-run: a restarted process
resumes after the last recorded wallet.

Env: RPC_URL, PRIVATE_KEY, VESTING_CONTRACT_ADDRESS, VESTING_ITERATION, BATCH_SIZE, ...

Usage:
  vesting-bulk-create [--iteration N] [--from-start] [--max-restarts K]
  py -m vesting_batcher.tools.bulk_create_schedules
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from typing import Any, Sequence

from vesting_batcher.config.env import get_private_key, get_rpc_url, mask_rpc_url
from vesting_batcher.config.settings import VestingConfig, get_settings
from vesting_batcher.core.exceptions import GatewayConfigError, RosterValidationError
from vesting_batcher.distribution.pipeline import RunHandle, RunSummary, run_distribution, supervise
from vesting_batcher.ledger.gateway import LedgerGateway, Web3LedgerGateway
from vesting_batcher.vesting_logging import attach_log_file, get_logger

logger = get_logger(__name__)


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Bulk-create vesting schedules from the roster CSV.")
    parser.add_argument("--iteration", type=int, default=None, help="Cohort number used in file names")
    parser.add_argument(
        "--from-start",
        action="store_true",
        help="Ignore the resume offset and re-check every roster row",
    )
    parser.add_argument("--max-restarts", type=int, default=None, help="Override MAX_RESTARTS")
    return parser.parse_args(argv)


def _install_signal_handlers() -> None:
    """SIGINT/SIGTERM exit immediately with code 0; in-flight batches are not awaited."""

    def _handle_sig(signum: int, frame: Any) -> None:
        sig = "SIGINT" if signum == signal.SIGINT else "SIGTERM"
        logger.info("shutdown_signal", signal=sig, message="Shutting down")
        raise SystemExit(0)

    try:
        signal.signal(signal.SIGINT, _handle_sig)
        if hasattr(signal, "SIGTERM"):
            signal.signal(signal.SIGTERM, _handle_sig)
    except (ValueError, OSError):
        # Signal only valid in main thread / not supported on this platform
        pass


def build_config(args: argparse.Namespace) -> VestingConfig:
    config = get_settings()
    if args.iteration is not None:
        config.iteration = args.iteration
    if args.max_restarts is not None:
        config.max_restarts = max(0, args.max_restarts)
    return config


async def run(config: VestingConfig, gateway: LedgerGateway, *, from_start: bool = False) -> RunSummary:
    handle = RunHandle()
    return await supervise(
        lambda: run_distribution(handle, config, gateway, use_resume_offset=not from_start),
        max_restarts=config.max_restarts,
        base_delay=config.restart_base_delay_sec,
    )


def main(argv: Sequence[str] | None = None) -> int:
    """Entrypoint: 0 when the run completes (even with failed batches), 1 on fatal errors."""
    args = _parse_args(argv)
    try:
        config = build_config(args)
    except ValueError as e:
        logger.error("config_invalid", error=str(e))
        return 1

    config.ensure_dirs()
    attach_log_file(config.log_path)
    _install_signal_handlers()
    logger.info(
        "vesting_run_starting",
        iteration=config.iteration,
        network=config.network,
        contract=config.contract_address,
        roster=str(config.roster_path),
        records=str(config.record_path),
        rpc_url=mask_rpc_url(get_rpc_url()),
        batch_size=config.batch_size,
    )

    try:
        gateway = Web3LedgerGateway(
            rpc_url=get_rpc_url(),
            contract_address=config.contract_address,
            private_key=get_private_key(),
        )
        summary = asyncio.run(run(config, gateway, from_start=args.from_start))
    except (RosterValidationError, GatewayConfigError) as e:
        logger.error("vesting_run_aborted", error=str(e))
        return 1
    except Exception as e:
        logger.exception("vesting_run_error", error=str(e))
        return 1

    logger.info(
        "vesting_process_complete",
        batches_succeeded=summary.batches_succeeded,
        batches_failed=summary.batches_failed,
        failed_wallets=summary.failed_wallets[:20],
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
