"""
Dedup/resume planning: which roster rows still need an addBeneficiaries call.

Per candidate, in order:
  1. wallet already has a local success row (seeded from the record store) -> skip
  2. record store lookup finds a success tx hash -> skip, mark processed
  3. contract reports a schedule (totalAmount > 0) -> skip, mark processed
  4. address / amount validation -> invalid rows are logged and dropped
Rows whose contract state cannot be read (retries exhausted) are deferred to the
next run, never assumed schedule-free.

The resume offset (position after the last recorded wallet) only shortens the
scan. Wallets before it whose latest row is pending or failed are still
candidates; steps 1-3 are what prevent double submission.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from vesting_batcher.core.exceptions import RetryExhausted
from vesting_batcher.distribution.record_store import STATUS_SUCCESS, AttemptRecord, RecordStore
from vesting_batcher.distribution.retry import run_with_retry
from vesting_batcher.distribution.roster import BeneficiaryRow
from vesting_batcher.ledger.gateway import LedgerGateway
from vesting_batcher.utils.wallet_utils import is_valid_wallet, parse_amount, wallet_key
from vesting_batcher.vesting_logging import get_logger

logger = get_logger(__name__)

REASON_INVALID_ADDRESS = "invalid_address"
REASON_INVALID_AMOUNT = "invalid_amount"


@dataclass
class Plan:
    """Outcome of one planning pass over the roster."""

    start_index: int
    pending: list[BeneficiaryRow] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    invalid: list[tuple[str, str]] = field(default_factory=list)
    deferred: list[str] = field(default_factory=list)

    @property
    def pending_wallets(self) -> list[str]:
        return [row.wallet for row in self.pending]


class ResumePlanner:
    """Derives the pending set from roster, record store and contract state."""

    def __init__(
        self,
        store: RecordStore,
        gateway: LedgerGateway,
        *,
        max_attempts: int,
        retry_delay: float,
        use_resume_offset: bool = True,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay
        self._use_resume_offset = use_resume_offset
        self._processed: set[str] = set(store.load_resume_state().processed_wallets)

    @property
    def processed_wallets(self) -> frozenset[str]:
        return frozenset(self._processed)

    def resume_offset(self, roster: Sequence[BeneficiaryRow]) -> int:
        """Index after the last recorded wallet, or 0 if it is not in this roster."""
        last = self._store.last_row()
        if last is None:
            logger.info("resume_no_previous_records")
            return 0
        logger.info("resume_last_recorded", wallet=last.wallet, amount=last.amount, status=last.status)
        key = wallet_key(last.wallet)
        for index, row in enumerate(roster):
            if wallet_key(row.wallet) == key:
                logger.info("resume_from_index", start_index=index + 1, after_wallet=last.wallet)
                return index + 1
        logger.warning(
            "resume_wallet_not_in_roster",
            wallet=last.wallet,
            message="Last recorded wallet not found in current roster; starting from the beginning",
        )
        return 0

    async def _has_onchain_schedule(self, wallet: str) -> bool:
        state = await run_with_retry(
            lambda: self._gateway.read_state(wallet),
            self._max_attempts,
            self._retry_delay,
            description="read_state",
        )
        return state.exists

    def _candidates(self, roster: Sequence[BeneficiaryRow], start_index: int) -> list[BeneficiaryRow]:
        """Rows from the offset on, plus earlier rows whose latest record is pending or failed."""
        if start_index == 0:
            return list(roster)
        unsettled = self._store.unsettled_wallets()
        behind = [row for row in roster[:start_index] if wallet_key(row.wallet) in unsettled]
        if behind:
            logger.info(
                "resume_retrying_unsettled",
                count=len(behind),
                wallets=[row.wallet for row in behind[:20]],
            )
        return behind + list(roster[start_index:])

    async def plan(self, roster: Sequence[BeneficiaryRow]) -> Plan:
        start_index = self.resume_offset(roster) if self._use_resume_offset else 0
        plan = Plan(start_index=start_index)
        candidates = self._candidates(roster, start_index)
        if not candidates:
            logger.info("resume_nothing_left", start_index=start_index, roster_size=len(roster))
            return plan

        logger.info("plan_scan_started", start_index=start_index, candidates=len(candidates))
        for row in candidates:
            wallet = row.wallet
            key = wallet_key(wallet)

            if key in self._processed:
                logger.info("wallet_skip_processed", wallet=wallet)
                plan.skipped.append(wallet)
                continue

            existing_tx = self._store.find_latest_success(wallet)
            if existing_tx:
                logger.info("wallet_skip_recorded_success", wallet=wallet, tx_hash=existing_tx)
                self._processed.add(key)
                plan.skipped.append(wallet)
                continue

            address_ok = is_valid_wallet(wallet)
            if address_ok:
                try:
                    has_schedule = await self._has_onchain_schedule(wallet)
                except RetryExhausted as e:
                    logger.error("wallet_deferred_state_unreadable", wallet=wallet, error=str(e))
                    plan.deferred.append(wallet)
                    continue
                if has_schedule:
                    logger.info("wallet_skip_onchain_schedule", wallet=wallet)
                    self._processed.add(key)
                    plan.skipped.append(wallet)
                    continue

            if not address_ok:
                logger.warning("wallet_invalid_address", wallet=wallet)
                plan.invalid.append((wallet, REASON_INVALID_ADDRESS))
                continue
            if parse_amount(row.total_amount) is None:
                logger.warning("wallet_invalid_amount", wallet=wallet, amount=row.total_amount)
                plan.invalid.append((wallet, REASON_INVALID_AMOUNT))
                continue

            plan.pending.append(row)

        self._warn_unprocessed_before_offset(roster, start_index)
        logger.info(
            "plan_scan_done",
            start_index=start_index,
            pending=len(plan.pending),
            skipped=len(plan.skipped),
            invalid=len(plan.invalid),
            deferred=len(plan.deferred),
        )
        return plan

    def _warn_unprocessed_before_offset(self, roster: Sequence[BeneficiaryRow], start_index: int) -> None:
        """Rows before the offset that have no record at all are not rescanned; make that visible."""
        if start_index == 0:
            return
        recorded = self._store.latest_by_wallet()
        behind = [
            row.wallet
            for row in roster[:start_index]
            if wallet_key(row.wallet) not in self._processed and wallet_key(row.wallet) not in recorded
        ]
        if behind:
            logger.warning(
                "resume_unprocessed_before_offset",
                count=len(behind),
                wallets=behind[:20],
                message="Re-run with --from-start to rescan them",
            )

    async def reconcile_pending(self) -> int:
        """
        Settle rows left 'pending' by an interrupted run: if the contract now has the
        schedule, append a success row for it. Returns the number of rows reconciled.
        """
        reconciled = 0
        for record in self._store.pending_records():
            if not is_valid_wallet(record.wallet):
                continue
            try:
                state = await run_with_retry(
                    lambda wallet=record.wallet: self._gateway.read_state(wallet),
                    self._max_attempts,
                    self._retry_delay,
                    description="read_state",
                )
            except RetryExhausted as e:
                logger.warning("reconcile_state_unreadable", wallet=record.wallet, tx_hash=record.tx_hash, error=str(e))
                continue
            if not state.exists:
                logger.info("reconcile_still_missing", wallet=record.wallet, tx_hash=record.tx_hash)
                continue
            self._store.append(
                AttemptRecord(
                    wallet=record.wallet,
                    amount=record.amount,
                    tx_hash=record.tx_hash,
                    status=STATUS_SUCCESS,
                    start_block=state.start_block,
                    cliff_block=state.cliff_block,
                    duration_blocks=state.duration_in_blocks,
                    end_block=state.end_block,
                )
            )
            self._processed.add(wallet_key(record.wallet))
            reconciled += 1
            logger.info("reconcile_confirmed", wallet=record.wallet, tx_hash=record.tx_hash)
        return reconciled
