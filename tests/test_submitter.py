"""
Tests for batch submission (distribution.submitter).
"""

from __future__ import annotations

import asyncio
import dataclasses

import pytest

from conftest import make_wallet
from vesting_batcher.core.exceptions import GatewayConfigError
from vesting_batcher.distribution.record_store import STATUS_FAILED, STATUS_PENDING, STATUS_SUCCESS
from vesting_batcher.distribution.roster import BeneficiaryRow
from vesting_batcher.distribution.submitter import BatchSubmitter, VestingTerms, batches, compute_terms


def _rows(n: int) -> list[BeneficiaryRow]:
    return [BeneficiaryRow(make_wallet(i), str(10 * (i + 1))) for i in range(n)]


def test_compute_terms_with_start_offset(config):
    terms = compute_terms(1000, config)
    assert terms == VestingTerms(start_block=1030, cliff_block=1030 + 1800, duration_blocks=7300)
    assert terms.end_block == 1030 + 7300


def test_compute_terms_without_offset(config):
    cfg = dataclasses.replace(config, start_block_offset_days=None)
    terms = compute_terms(1000, cfg)
    assert terms.start_block == 1000
    assert terms.cliff_block == 2800


@pytest.mark.parametrize("n,size,expected", [(7, 3, [3, 3, 1]), (6, 3, [3, 3]), (2, 5, [2]), (0, 3, [])])
def test_batches_partition_in_order(n, size, expected):
    rows = _rows(n)
    chunks = list(batches(rows, size))
    assert [len(c) for c in chunks] == expected
    assert [r for c in chunks for r in c] == rows


def test_batches_rejects_zero_size():
    with pytest.raises(ValueError):
        list(batches(_rows(2), 0))


def test_successful_batch_writes_pending_then_success(gateway, store, config):
    rows = _rows(2)
    ok = asyncio.run(BatchSubmitter(gateway, store, config).submit_batch(rows))
    assert ok is True

    records = store.rows()
    assert [r.status for r in records] == [STATUS_PENDING] * 2 + [STATUS_SUCCESS] * 2
    tx_hash = "0x" + f"{1:064x}"
    assert {r.tx_hash for r in records} == {tx_hash}
    assert store.pending_index() == {}
    # every member of the batch shares the same block terms
    assert {(r.start_block, r.cliff_block, r.duration_blocks, r.end_block) for r in records} == {
        (1030, 2830, 7300, 8330)
    }
    entries = gateway.submissions[0]
    assert [e.beneficiary for e in entries] == [r.wallet for r in rows]
    assert [e.total_amount for e in entries] == [10, 20]


def test_submit_retries_then_succeeds(gateway, store, config):
    gateway.submit_failures = 2
    ok = asyncio.run(BatchSubmitter(gateway, store, config).submit_batch(_rows(1)))
    assert ok is True
    assert gateway.calls.count("submit") == 3


def test_submit_exhausted_records_failed_without_tx(gateway, store, config):
    gateway.submit_failures = 10
    rows = _rows(2)
    ok = asyncio.run(BatchSubmitter(gateway, store, config).submit_batch(rows))
    assert ok is False
    assert gateway.calls.count("submit") == config.max_retries
    records = store.rows()
    assert [r.status for r in records] == [STATUS_FAILED, STATUS_FAILED]
    assert all(r.tx_hash == "" for r in records)
    assert records[0].start_block == 1030


def test_gateway_config_error_is_not_retried(store, config):
    class ReadOnlyGateway:
        def __init__(self):
            self.submits = 0

        async def current_height(self):
            return 5

        async def submit(self, schedules):
            self.submits += 1
            raise GatewayConfigError("PRIVATE_KEY must be set to submit transactions")

    gw = ReadOnlyGateway()
    with pytest.raises(GatewayConfigError):
        asyncio.run(BatchSubmitter(gw, store, config).submit_batch(_rows(1)))
    assert gw.submits == 1


def test_inclusion_timeout_records_success_after_grace(gateway, store, config):
    gateway.inclusion_delay = 0.5
    cfg = dataclasses.replace(config, tx_timeout_sec=0.05)
    ok = asyncio.run(BatchSubmitter(gateway, store, cfg).submit_batch(_rows(2)))
    assert ok is True
    assert [r.status for r in store.rows()][-2:] == [STATUS_SUCCESS, STATUS_SUCCESS]


def test_reverted_transaction_records_failed_with_hash(gateway, store, config):
    gateway.revert = True
    ok = asyncio.run(BatchSubmitter(gateway, store, config).submit_batch(_rows(1)))
    assert ok is False
    last = store.rows()[-1]
    assert last.status == STATUS_FAILED
    assert last.tx_hash == "0x" + f"{1:064x}"
    assert store.pending_index() == {}


def test_height_unavailable_records_failed_without_terms(gateway, store, config):
    gateway.height_failures = 10
    ok = asyncio.run(BatchSubmitter(gateway, store, config).submit_batch(_rows(2)))
    assert ok is False
    assert "submit" not in gateway.calls
    records = store.rows()
    assert [r.status for r in records] == [STATUS_FAILED, STATUS_FAILED]
    assert all(r.start_block is None and r.end_block is None for r in records)


def test_empty_batch_rejected(gateway, store, config):
    with pytest.raises(ValueError):
        asyncio.run(BatchSubmitter(gateway, store, config).submit_batch([]))


def test_invalid_amount_rejected_before_network(gateway, store, config):
    with pytest.raises(ValueError):
        asyncio.run(BatchSubmitter(gateway, store, config).submit_batch([BeneficiaryRow(make_wallet(0), "1.5")]))
    assert gateway.calls == []
