"""
Read-only schedule inspection for the verification workflow.

For each address: validate format, read beneficiaries(address) with retries, and
report amounts, block window and vested percentage. Per-address failures become
error rows; nothing here writes to the chain or the record store.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from vesting_batcher.distribution.retry import run_with_retry
from vesting_batcher.ledger.gateway import LedgerGateway, ScheduleState, format_token_amount
from vesting_batcher.utils.wallet_utils import is_valid_wallet
from vesting_batcher.vesting_logging import get_logger

logger = get_logger(__name__)

TOKEN_SYMBOL = "QUAI"
SEP = "-" * 41


@dataclass(frozen=True)
class ScheduleDetails:
    total_amount: int
    released_amount: int
    start_block: int
    duration_in_blocks: int
    cliff_block: int
    end_block: int
    vested_percentage: str

    @property
    def total_display(self) -> str:
        return format_token_amount(self.total_amount)

    @property
    def released_display(self) -> str:
        return format_token_amount(self.released_amount)


@dataclass(frozen=True)
class ScheduleReport:
    address: str
    valid: bool
    exists: bool = False
    details: ScheduleDetails | None = None
    error: str | None = None


def vested_percentage(released_amount: int, total_amount: int) -> str:
    """released / total * 100 with two decimals, e.g. '25.00%'. Total 0 gives '0%'."""
    if total_amount <= 0:
        return "0%"
    return f"{released_amount * 100 / total_amount:.2f}%"


def schedule_details(state: ScheduleState) -> ScheduleDetails | None:
    """None when the contract has no schedule (totalAmount == 0)."""
    if not state.exists:
        return None
    return ScheduleDetails(
        total_amount=state.total_amount,
        released_amount=state.released_amount,
        start_block=state.start_block,
        duration_in_blocks=state.duration_in_blocks,
        cliff_block=state.cliff_block,
        end_block=state.end_block,
        vested_percentage=vested_percentage(state.released_amount, state.total_amount),
    )


class ScheduleInspector:
    def __init__(self, gateway: LedgerGateway, *, max_attempts: int, retry_delay: float) -> None:
        self._gateway = gateway
        self._max_attempts = max_attempts
        self._retry_delay = retry_delay

    async def inspect_one(self, address: str) -> ScheduleReport:
        logger.info("inspect_address", address=address)
        if not is_valid_wallet(address):
            logger.warning("inspect_invalid_address", address=address)
            return ScheduleReport(address=address, valid=False, error="Invalid address")
        try:
            state = await run_with_retry(
                lambda: self._gateway.read_state(address),
                self._max_attempts,
                self._retry_delay,
                description="read_state",
            )
        except Exception as e:
            logger.error("inspect_failed", address=address, error=str(e))
            return ScheduleReport(address=address, valid=True, exists=False, error=str(e))

        details = schedule_details(state)
        if details is None:
            logger.info("inspect_no_schedule", address=address)
            return ScheduleReport(address=address, valid=True, exists=False)
        logger.info(
            "inspect_schedule_found",
            address=address,
            total_amount=details.total_display,
            released_amount=details.released_display,
            vested_percentage=details.vested_percentage,
            start_block=details.start_block,
            cliff_block=details.cliff_block,
            duration_blocks=details.duration_in_blocks,
            end_block=details.end_block,
        )
        return ScheduleReport(address=address, valid=True, exists=True, details=details)

    async def inspect(self, addresses: Sequence[str]) -> list[ScheduleReport]:
        """Sequential, one report per address in input order."""
        if not addresses:
            logger.info("inspect_no_addresses")
            return []
        logger.info("inspect_started", count=len(addresses))
        reports = [await self.inspect_one(address) for address in addresses]
        logger.info("inspect_completed", count=len(addresses))
        return reports


def format_summary(reports: Sequence[ScheduleReport]) -> str:
    """Console summary table: one line per address."""
    lines = ["", "Summary:", SEP]
    for report in reports:
        if not report.valid:
            lines.append(f"{report.address}: Invalid address")
        elif report.error:
            lines.append(f"{report.address}: Error - {report.error}")
        elif report.exists and report.details is not None:
            lines.append(
                f"{report.address}: Has vesting schedule - {report.details.total_display} {TOKEN_SYMBOL} "
                f"({report.details.vested_percentage} vested)"
            )
        else:
            lines.append(f"{report.address}: No vesting schedule")
    lines.append(SEP)
    return "\n".join(lines)
