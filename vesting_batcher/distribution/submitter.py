"""
Batch submission: one addBeneficiaries transaction per batch of beneficiaries.

Flow per batch:
  height (retried) -> shared vesting terms -> submit (own retry loop) -> 'pending'
  rows -> inclusion wait (hard timeout) -> 'success' rows
Submission that never gets accepted writes 'failed' rows. An inclusion timeout does
not fail the batch: the transaction is assumed in flight, the outcome is recorded
as success after a short grace sleep, and reconcile_pending() on the next run
covers the case where the process dies before that point.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Iterator, Sequence

from vesting_batcher.config.settings import VestingConfig
from vesting_batcher.core.exceptions import GatewayConfigError, RetryExhausted
from vesting_batcher.distribution.record_store import (
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SUCCESS,
    AttemptRecord,
    RecordStore,
)
from vesting_batcher.distribution.retry import run_with_retry
from vesting_batcher.distribution.roster import BeneficiaryRow
from vesting_batcher.ledger.gateway import InclusionOutcome, LedgerGateway, ScheduleEntry
from vesting_batcher.utils.wallet_utils import parse_amount
from vesting_batcher.vesting_logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class VestingTerms:
    """Block parameters shared by every member of a batch."""

    start_block: int
    cliff_block: int
    duration_blocks: int

    @property
    def end_block(self) -> int:
        return self.start_block + self.duration_blocks


def compute_terms(current_height: int, config: VestingConfig) -> VestingTerms:
    """start = height + offset (0 when disabled); cliff = start + cliff period."""
    start_block = current_height + config.start_block_offset_blocks
    return VestingTerms(
        start_block=start_block,
        cliff_block=start_block + config.cliff_period_blocks,
        duration_blocks=config.vesting_duration_blocks,
    )


def batches(rows: Sequence[BeneficiaryRow], size: int) -> Iterator[list[BeneficiaryRow]]:
    """Consecutive chunks of at most size rows, in roster order; the last may be short."""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    for i in range(0, len(rows), size):
        yield list(rows[i : i + size])


class BatchSubmitter:
    def __init__(self, gateway: LedgerGateway, store: RecordStore, config: VestingConfig) -> None:
        self._gateway = gateway
        self._store = store
        self._config = config

    def _record(
        self,
        beneficiaries: Sequence[BeneficiaryRow],
        status: str,
        tx_hash: str,
        terms: VestingTerms | None,
    ) -> None:
        self._store.append_many(
            AttemptRecord(
                wallet=row.wallet,
                amount=row.total_amount,
                tx_hash=tx_hash,
                status=status,
                start_block=terms.start_block if terms else None,
                cliff_block=terms.cliff_block if terms else None,
                duration_blocks=terms.duration_blocks if terms else None,
                end_block=terms.end_block if terms else None,
            )
            for row in beneficiaries
        )

    async def _submit_with_retry(self, schedules: list[ScheduleEntry]) -> str | None:
        """Submit until accepted; None after max_retries failures. Config errors propagate."""
        cfg = self._config
        for attempt in range(1, cfg.max_retries + 1):
            try:
                tx_hash = await self._gateway.submit(schedules)
                logger.info("batch_submitted", tx_hash=tx_hash, attempt=attempt, size=len(schedules))
                return tx_hash
            except GatewayConfigError:
                raise
            except Exception as e:
                logger.warning(
                    "batch_submit_failed",
                    attempt=attempt,
                    max_attempts=cfg.max_retries,
                    error=str(e),
                )
                if attempt < cfg.max_retries:
                    await asyncio.sleep(cfg.retry_delay_sec)
        return None

    async def _await_inclusion(self, tx_hash: str) -> InclusionOutcome | None:
        """Inclusion outcome, or None when it could not be confirmed within the timeout."""
        cfg = self._config
        try:
            outcome = await asyncio.wait_for(
                self._gateway.await_inclusion(tx_hash, cfg.tx_timeout_sec),
                timeout=cfg.tx_timeout_sec,
            )
        except Exception as e:
            logger.warning(
                "batch_inclusion_unconfirmed",
                tx_hash=tx_hash,
                timeout_sec=cfg.tx_timeout_sec,
                error=str(e) or type(e).__name__,
                grace_sec=cfg.inclusion_grace_sec,
            )
            await asyncio.sleep(cfg.inclusion_grace_sec)
            return None
        logger.info("batch_included", tx_hash=tx_hash, block_number=outcome.block_number, succeeded=outcome.succeeded)
        return outcome

    async def submit_batch(self, beneficiaries: Sequence[BeneficiaryRow]) -> bool:
        """Submit one batch and record its outcome. Returns True on success."""
        if not beneficiaries:
            raise ValueError("submit_batch requires at least one beneficiary")
        amounts = [parse_amount(row.total_amount) for row in beneficiaries]
        for row, amount in zip(beneficiaries, amounts):
            if amount is None:
                raise ValueError(f"Invalid amount {row.total_amount!r} for {row.wallet}")

        cfg = self._config
        try:
            height = await run_with_retry(
                self._gateway.current_height,
                cfg.max_retries,
                cfg.retry_delay_sec,
                description="current_height",
            )
        except RetryExhausted as e:
            logger.error("batch_height_unavailable", size=len(beneficiaries), error=str(e))
            self._record(beneficiaries, STATUS_FAILED, "", None)
            return False

        terms = compute_terms(height, cfg)
        schedules = [
            ScheduleEntry(
                beneficiary=row.wallet,
                total_amount=amount,
                start_block=terms.start_block,
                duration_in_blocks=terms.duration_blocks,
                cliff_block=terms.cliff_block,
            )
            for row, amount in zip(beneficiaries, amounts)
        ]
        logger.info(
            "batch_started",
            size=len(beneficiaries),
            current_block=height,
            start_block=terms.start_block,
            cliff_block=terms.cliff_block,
            duration_blocks=terms.duration_blocks,
            start_offset_days=cfg.start_block_offset_days,
            start_offset_blocks=cfg.start_block_offset_blocks,
        )

        tx_hash = await self._submit_with_retry(schedules)
        if tx_hash is None:
            self._record(beneficiaries, STATUS_FAILED, "", terms)
            logger.error("batch_failed", size=len(beneficiaries), record_path=str(self._store.path))
            return False

        self._record(beneficiaries, STATUS_PENDING, tx_hash, terms)

        outcome = await self._await_inclusion(tx_hash)
        if outcome is not None and not outcome.succeeded:
            self._record(beneficiaries, STATUS_FAILED, tx_hash, terms)
            logger.error("batch_reverted", tx_hash=tx_hash, block_number=outcome.block_number)
            return False

        self._record(beneficiaries, STATUS_SUCCESS, tx_hash, terms)
        logger.info(
            "batch_recorded",
            tx_hash=tx_hash,
            size=len(beneficiaries),
            confirmed=outcome is not None,
            record_path=str(self._store.path),
        )
        return True
