"""
Ledger boundary: gateway protocol, on-chain schedule types, and the web3 implementation.
"""

from vesting_batcher.ledger.gateway import (
    InclusionOutcome,
    LedgerGateway,
    ScheduleEntry,
    ScheduleState,
    Web3LedgerGateway,
    format_token_amount,
)

__all__ = [
    "InclusionOutcome",
    "LedgerGateway",
    "ScheduleEntry",
    "ScheduleState",
    "Web3LedgerGateway",
    "format_token_amount",
]
