"""
Append-only attempt records (one CSV row per beneficiary per batch outcome).

The file is the single source of truth for resume decisions:
- rows are appended and fsynced before the pipeline moves on; never rewritten
- the latest success row for a wallet is authoritative, earlier rows are history
- the pending index (wallets whose latest row is still 'pending') is derived from
  the rows and recomputed after every append, never mutated on its own
- rows with an empty wallet (trailing newlines, hand edits) are ignored
"""

from __future__ import annotations

import csv
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from vesting_batcher.utils.wallet_utils import wallet_key
from vesting_batcher.vesting_logging import get_logger

logger = get_logger(__name__)

RECORD_HEADER = [
    "wallet",
    "amount",
    "tx_hash",
    "status",
    "start_block",
    "cliff_block",
    "duration_blocks",
    "end_block",
]

STATUS_PENDING = "pending"
STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"
STATUSES = frozenset({STATUS_PENDING, STATUS_SUCCESS, STATUS_FAILED})


def _int_or_none(raw: str | None) -> int | None:
    text = (raw or "").strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        return None


def _cell(value: int | None) -> str:
    return "" if value is None else str(value)


@dataclass(frozen=True)
class AttemptRecord:
    """One outcome row for one beneficiary."""

    wallet: str
    amount: str
    tx_hash: str
    status: str
    start_block: int | None = None
    cliff_block: int | None = None
    duration_blocks: int | None = None
    end_block: int | None = None

    def to_row(self) -> list[str]:
        return [
            self.wallet,
            self.amount,
            self.tx_hash or "",
            self.status,
            _cell(self.start_block),
            _cell(self.cliff_block),
            _cell(self.duration_blocks),
            _cell(self.end_block),
        ]

    @classmethod
    def from_row(cls, row: dict[str, str | None]) -> "AttemptRecord":
        return cls(
            wallet=(row.get("wallet") or "").strip(),
            amount=(row.get("amount") or "").strip(),
            tx_hash=(row.get("tx_hash") or "").strip(),
            status=(row.get("status") or "").strip().lower(),
            start_block=_int_or_none(row.get("start_block")),
            cliff_block=_int_or_none(row.get("cliff_block")),
            duration_blocks=_int_or_none(row.get("duration_blocks")),
            end_block=_int_or_none(row.get("end_block")),
        )

    @property
    def is_pending(self) -> bool:
        """Blank status counts as pending (row written before the outcome was known)."""
        return self.status in ("", STATUS_PENDING)


@dataclass
class ResumeState:
    """Wallet keys are lower-cased (see wallet_key)."""

    pending_by_wallet: dict[str, str] = field(default_factory=dict)
    processed_wallets: set[str] = field(default_factory=set)


class RecordStore:
    """CSV-backed attempt records for one distribution cohort."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._rows: list[AttemptRecord] | None = None

    @property
    def path(self) -> Path:
        return self._path

    def initialize_if_absent(self) -> bool:
        """Create the file with the header row. Returns True if it was created; never truncates."""
        if self._path.exists():
            return False
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._path, "x", newline="", encoding="utf-8") as f:
            csv.writer(f).writerow(RECORD_HEADER)
            f.flush()
            os.fsync(f.fileno())
        logger.info("record_store_created", path=str(self._path))
        return True

    def append(self, record: AttemptRecord) -> None:
        self.append_many([record])

    def append_many(self, records: Iterable[AttemptRecord]) -> None:
        """Append rows and fsync before returning."""
        records = list(records)
        if not records:
            return
        for record in records:
            if not record.wallet:
                raise ValueError("AttemptRecord.wallet must be non-empty")
            if record.status not in STATUSES:
                raise ValueError(f"Unknown attempt status: {record.status!r}")
        self.initialize_if_absent()
        torn = self._ends_mid_line()
        with open(self._path, "a", newline="", encoding="utf-8") as f:
            if torn:
                # previous process died mid-row; keep the fragment on its own line
                f.write("\r\n")
            writer = csv.writer(f)
            for record in records:
                writer.writerow(record.to_row())
            f.flush()
            os.fsync(f.fileno())
        self._rows = None

    def _ends_mid_line(self) -> bool:
        with open(self._path, "rb") as f:
            f.seek(0, os.SEEK_END)
            if f.tell() == 0:
                return False
            f.seek(-1, os.SEEK_END)
            return f.read(1) not in (b"\n", b"\r")

    def rows(self) -> list[AttemptRecord]:
        """All rows with a non-empty wallet, in append order."""
        if self._rows is None:
            self._rows = self._read_rows()
        return list(self._rows)

    def _read_rows(self) -> list[AttemptRecord]:
        if not self._path.exists():
            return []
        out: list[AttemptRecord] = []
        with open(self._path, newline="", encoding="utf-8") as f:
            reader = csv.DictReader(f)
            for raw in reader:
                record = AttemptRecord.from_row(raw)
                if not record.wallet:
                    continue
                out.append(record)
        return out

    def find_latest_success(self, wallet: str) -> str | None:
        """tx_hash of the last success row for wallet (forward scan), else None."""
        key = wallet_key(wallet)
        found: str | None = None
        for record in self.rows():
            if wallet_key(record.wallet) == key and record.status == STATUS_SUCCESS and record.tx_hash:
                found = record.tx_hash
        return found

    def last_row(self) -> AttemptRecord | None:
        rows = self.rows()
        return rows[-1] if rows else None

    def latest_by_wallet(self) -> dict[str, AttemptRecord]:
        """wallet key -> most recent row for that wallet."""
        latest: dict[str, AttemptRecord] = {}
        for record in self.rows():
            latest[wallet_key(record.wallet)] = record
        return latest

    def pending_records(self) -> list[AttemptRecord]:
        """Latest row per wallet, where that row is still pending with a tx hash."""
        return [record for record in self.latest_by_wallet().values() if record.is_pending and record.tx_hash]

    def unsettled_wallets(self) -> set[str]:
        """Wallet keys whose latest row is pending or failed (no schedule confirmed yet)."""
        return {
            key
            for key, record in self.latest_by_wallet().items()
            if record.is_pending or record.status == STATUS_FAILED
        }

    def pending_index(self) -> dict[str, str]:
        """wallet key -> in-flight tx_hash."""
        return {wallet_key(record.wallet): record.tx_hash for record in self.pending_records()}

    def load_resume_state(self) -> ResumeState:
        """Rebuild the pending index and the set of wallets with any success row."""
        processed = {
            wallet_key(record.wallet)
            for record in self.rows()
            if record.status == STATUS_SUCCESS
        }
        pending = self.pending_index()
        logger.info(
            "record_store_resume_state",
            path=str(self._path),
            rows=len(self.rows()),
            processed=len(processed),
            pending=len(pending),
        )
        return ResumeState(pending_by_wallet=pending, processed_wallets=processed)
