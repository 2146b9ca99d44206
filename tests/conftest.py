"""
Pytest fixtures for vesting batcher tests. Uses temporary directories for roster,
record and log files and an in-memory ledger gateway instead of an RPC node.
"""

from __future__ import annotations

import asyncio
import csv
from pathlib import Path
from typing import Sequence

import pytest

from vesting_batcher.config.settings import VestingConfig
from vesting_batcher.distribution.record_store import RecordStore
from vesting_batcher.ledger.gateway import InclusionOutcome, ScheduleEntry, ScheduleState

CONTRACT_ADDRESS = "0x0045edce84e8e85e1e4861f082e5f5a0a50a7317"


def make_wallet(i: int) -> str:
    """Deterministic lowercase 0x address for test rosters."""
    return "0x" + f"{i + 1:040x}"


class FakeGateway:
    """
    In-memory ledger. Submissions create schedules immediately (apply_on_submit) so
    re-runs see them as existing on-chain state. Failure knobs are plain counters.
    """

    def __init__(self, height: int = 1000) -> None:
        self.height = height
        self.schedules: dict[str, ScheduleState] = {}
        self.submissions: list[list[ScheduleEntry]] = []
        self.calls: list[str] = []
        self.apply_on_submit = True
        self.height_failures = 0
        self.submit_failures = 0
        self.unreadable: set[str] = set()
        self.inclusion_delay = 0.0
        self.revert = False

    async def current_height(self) -> int:
        self.calls.append("current_height")
        if self.height_failures > 0:
            self.height_failures -= 1
            raise ConnectionError("height unavailable")
        return self.height

    async def read_state(self, address: str) -> ScheduleState:
        self.calls.append("read_state")
        if address.lower() in self.unreadable:
            raise ConnectionError(f"rpc timeout for {address}")
        return self.schedules.get(address.lower(), ScheduleState.empty())

    async def submit(self, schedules: Sequence[ScheduleEntry]) -> str:
        self.calls.append("submit")
        if self.submit_failures > 0:
            self.submit_failures -= 1
            raise ConnectionError("nonce too low")
        self.submissions.append(list(schedules))
        if self.apply_on_submit:
            for entry in schedules:
                self.set_schedule(
                    entry.beneficiary,
                    total=entry.total_amount,
                    start=entry.start_block,
                    duration=entry.duration_in_blocks,
                    cliff=entry.cliff_block,
                )
        return "0x" + f"{len(self.submissions):064x}"

    async def await_inclusion(self, tx_hash: str, timeout: float) -> InclusionOutcome:
        self.calls.append("await_inclusion")
        if self.inclusion_delay:
            await asyncio.sleep(self.inclusion_delay)
        return InclusionOutcome(tx_hash=tx_hash, block_number=self.height + 1, succeeded=not self.revert)

    def set_schedule(
        self,
        address: str,
        *,
        total: int,
        released: int = 0,
        start: int = 0,
        duration: int = 0,
        cliff: int = 0,
    ) -> None:
        self.schedules[address.lower()] = ScheduleState(
            total_amount=total,
            released_amount=released,
            start_block=start,
            duration_in_blocks=duration,
            cliff_block=cliff,
        )

    @property
    def submitted_wallets(self) -> list[str]:
        return [entry.beneficiary for batch in self.submissions for entry in batch]


def write_roster(path: Path, rows: Sequence[tuple[str, str]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(["wallet", "total"])
        writer.writerows(rows)
    return path


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def config(tmp_path) -> VestingConfig:
    """Small, fast config: batch of 2, no retry/grace sleeps, 10 blocks per day."""
    return VestingConfig(
        iteration=1,
        network="testnet",
        contract_address=CONTRACT_ADDRESS,
        batch_size=2,
        max_retries=3,
        retry_delay_sec=0.0,
        tx_timeout_sec=1.0,
        inclusion_grace_sec=0.0,
        blocks_per_day=10,
        vesting_duration_days=730,
        cliff_period_days=180,
        start_block_offset_days=3,
        max_restarts=2,
        restart_base_delay_sec=0.0,
        data_dir=tmp_path / "data",
        records_dir=tmp_path / "records",
        logs_dir=tmp_path / "logs",
    )


@pytest.fixture
def store(config) -> RecordStore:
    s = RecordStore(config.record_path)
    s.initialize_if_absent()
    return s


@pytest.fixture
def roster_rows() -> list[tuple[str, str]]:
    return [(make_wallet(i), str(1000 * (i + 1))) for i in range(5)]
