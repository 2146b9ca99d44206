"""
Beneficiary roster loading (CSV with header wallet,total).

Only structural problems are fatal here (missing file, missing columns, duplicate
wallets) and they are raised before any network call. Per-row address/amount
problems are left for the planner, which skips such rows with a logged reason.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from pathlib import Path

from vesting_batcher.core.exceptions import RosterValidationError
from vesting_batcher.utils.wallet_utils import wallet_key
from vesting_batcher.vesting_logging import get_logger

logger = get_logger(__name__)

ROSTER_COLUMNS = ("wallet", "total")


@dataclass(frozen=True)
class BeneficiaryRow:
    wallet: str
    total_amount: str


def load_roster(path: str | Path) -> list[BeneficiaryRow]:
    """Load the roster in file order. Blank rows are skipped; duplicate wallets are fatal."""
    path = Path(path)
    if not path.exists():
        raise RosterValidationError(f"{path} not found")

    rows: list[BeneficiaryRow] = []
    with open(path, newline="", encoding="utf-8-sig") as f:
        reader = csv.DictReader(f)
        fields = [name.strip() for name in (reader.fieldnames or [])]
        missing = [c for c in ROSTER_COLUMNS if c not in fields]
        if missing:
            raise RosterValidationError(f"{path} is missing column(s): {', '.join(missing)}")
        reader.fieldnames = fields
        for raw in reader:
            wallet = (raw.get("wallet") or "").strip()
            total = (raw.get("total") or "").strip()
            if not wallet and not total:
                continue
            rows.append(BeneficiaryRow(wallet=wallet, total_amount=total))

    check_unique_wallets(rows, source=str(path))
    logger.info("roster_loaded", path=str(path), rows=len(rows))
    return rows


def check_unique_wallets(rows: list[BeneficiaryRow], source: str = "roster") -> None:
    seen: dict[str, int] = {}
    duplicates: list[str] = []
    for index, row in enumerate(rows):
        key = wallet_key(row.wallet)
        if key in seen:
            duplicates.append(row.wallet)
        else:
            seen[key] = index
    if duplicates:
        logger.error("roster_duplicate_wallets", source=source, duplicates=duplicates[:20], count=len(duplicates))
        raise RosterValidationError(f"Duplicate wallets found in {source}: {', '.join(duplicates[:5])}")
