"""
Vesting batcher: resumable bulk registration of on-chain vesting schedules.

Reads a beneficiary roster, skips wallets already handled (local records or
contract state), submits the rest in fixed-size addBeneficiaries batches and
records every outcome so an interrupted run resumes where it stopped.
"""

__version__ = "0.1.0"
