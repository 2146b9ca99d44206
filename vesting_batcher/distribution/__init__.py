"""
Distribution pipeline: roster, record store, planner, batch submitter, supervisor,
and the read-only schedule inspector.
"""

from vesting_batcher.distribution.inspector import ScheduleInspector, ScheduleReport, format_summary
from vesting_batcher.distribution.pipeline import RunHandle, RunSummary, run_distribution, supervise
from vesting_batcher.distribution.planner import Plan, ResumePlanner
from vesting_batcher.distribution.record_store import AttemptRecord, RecordStore, ResumeState
from vesting_batcher.distribution.retry import run_with_retry
from vesting_batcher.distribution.roster import BeneficiaryRow, load_roster
from vesting_batcher.distribution.submitter import BatchSubmitter, VestingTerms, batches, compute_terms

__all__ = [
    "AttemptRecord",
    "BatchSubmitter",
    "BeneficiaryRow",
    "Plan",
    "RecordStore",
    "ResumePlanner",
    "ResumeState",
    "RunHandle",
    "RunSummary",
    "ScheduleInspector",
    "ScheduleReport",
    "VestingTerms",
    "batches",
    "compute_terms",
    "format_summary",
    "load_roster",
    "run_distribution",
    "run_with_retry",
    "supervise",
]
