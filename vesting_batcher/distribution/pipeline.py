"""
One distribution run and the supervisor that restarts it.

run_distribution(): roster -> reconcile pending rows -> plan -> batches -> records.
supervise(): retries a failed run a bounded number of times with exponential
backoff; roster/config errors are not retried because a restart cannot fix them.
RunHandle is owned by the entry point and guards against re-entrant runs in one
process (multi-process coordination is not attempted).
"""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Iterator, Sequence, TypeVar

from vesting_batcher.config.settings import VestingConfig
from vesting_batcher.core.exceptions import GatewayConfigError, RosterValidationError, RunAlreadyActive
from vesting_batcher.distribution.planner import ResumePlanner
from vesting_batcher.distribution.record_store import RecordStore
from vesting_batcher.distribution.roster import BeneficiaryRow, load_roster
from vesting_batcher.distribution.submitter import BatchSubmitter, batches
from vesting_batcher.ledger.gateway import LedgerGateway
from vesting_batcher.vesting_logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

NON_RESTARTABLE_ERRORS: tuple[type[BaseException], ...] = (
    RosterValidationError,
    GatewayConfigError,
    RunAlreadyActive,
)


class RunHandle:
    """Explicit single-run guard passed into the pipeline by the entry point."""

    def __init__(self) -> None:
        self._active = False
        self.runs_started = 0

    @property
    def active(self) -> bool:
        return self._active

    @contextmanager
    def acquire(self) -> Iterator["RunHandle"]:
        if self._active:
            logger.warning("run_already_active", message="Skipping duplicate invocation")
            raise RunAlreadyActive("A distribution run is already active on this handle")
        self._active = True
        self.runs_started += 1
        try:
            yield self
        finally:
            self._active = False


@dataclass
class RunSummary:
    start_index: int = 0
    pending: int = 0
    skipped: int = 0
    invalid: int = 0
    deferred: int = 0
    reconciled: int = 0
    batches_succeeded: int = 0
    batches_failed: int = 0
    failed_wallets: list[str] = field(default_factory=list)

    @property
    def batches_submitted(self) -> int:
        return self.batches_succeeded + self.batches_failed


async def run_distribution(
    handle: RunHandle,
    config: VestingConfig,
    gateway: LedgerGateway,
    *,
    roster: Sequence[BeneficiaryRow] | None = None,
    use_resume_offset: bool = True,
) -> RunSummary:
    """Run one pass over the roster. A failed batch is recorded and the run continues."""
    with handle.acquire():
        rows = list(roster) if roster is not None else load_roster(config.roster_path)

        store = RecordStore(config.record_path)
        store.initialize_if_absent()

        planner = ResumePlanner(
            store,
            gateway,
            max_attempts=config.max_retries,
            retry_delay=config.retry_delay_sec,
            use_resume_offset=use_resume_offset,
        )
        summary = RunSummary()
        summary.reconciled = await planner.reconcile_pending()

        plan = await planner.plan(rows)
        summary.start_index = plan.start_index
        summary.pending = len(plan.pending)
        summary.skipped = len(plan.skipped)
        summary.invalid = len(plan.invalid)
        summary.deferred = len(plan.deferred)

        submitter = BatchSubmitter(gateway, store, config)
        for number, batch in enumerate(batches(plan.pending, config.batch_size), start=1):
            logger.info("batch_dispatch", batch_number=number, size=len(batch), batch_size=config.batch_size)
            if await submitter.submit_batch(batch):
                summary.batches_succeeded += 1
            else:
                summary.batches_failed += 1
                summary.failed_wallets.extend(row.wallet for row in batch)

        logger.info(
            "run_completed",
            start_index=summary.start_index,
            pending=summary.pending,
            skipped=summary.skipped,
            invalid=summary.invalid,
            deferred=summary.deferred,
            reconciled=summary.reconciled,
            batches_succeeded=summary.batches_succeeded,
            batches_failed=summary.batches_failed,
        )
        return summary


async def supervise(
    run_once: Callable[[], Awaitable[T]],
    *,
    max_restarts: int,
    base_delay: float,
) -> T:
    """
    Await run_once(); on an unexpected failure wait base_delay * 2**(n-1) and run
    again, at most max_restarts times. The last failure is re-raised.
    """
    restarts = 0
    while True:
        try:
            return await run_once()
        except NON_RESTARTABLE_ERRORS:
            raise
        except Exception as e:
            logger.exception("run_failed", restarts=restarts, max_restarts=max_restarts, error=str(e))
            if restarts >= max_restarts:
                logger.error("run_restarts_exhausted", restarts=restarts)
                raise
            restarts += 1
            delay = base_delay * (2 ** (restarts - 1))
            logger.warning("run_restarting", restart=restarts, max_restarts=max_restarts, delay_sec=delay)
            await asyncio.sleep(delay)
