"""
Application-level exceptions.

- Transient ledger failures are plain exceptions from the gateway; they only
  become RetryExhausted once the retry budget is spent.
- RosterValidationError is fatal for the whole run and raised before any
  network call.
- RunAlreadyActive guards against re-entrant pipeline invocation in-process.
"""

from __future__ import annotations


class VestingError(Exception):
    """Base class for vesting batcher errors."""


class RetryExhausted(VestingError):
    """Raised when an operation failed on every allowed attempt."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Failed after {attempts} attempts: {last_error}")


class RosterValidationError(VestingError):
    """Roster cannot be used: missing file, bad header, or duplicate wallets."""


class RunAlreadyActive(VestingError):
    """A pipeline run is already in progress on this run handle."""


class GatewayConfigError(VestingError):
    """Ledger gateway is missing credentials or points at an invalid contract."""
