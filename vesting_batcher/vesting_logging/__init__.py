"""
Structured logging for the vesting batcher.

JSON logs with timestamp, event_type, wallet, tx_hash, written to the console
and to the per-iteration log file.
"""

from vesting_batcher.vesting_logging.logger import (
    attach_log_file,
    detach_log_file,
    get_logger,
)

__all__ = ["attach_log_file", "detach_log_file", "get_logger"]
