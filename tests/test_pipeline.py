"""
End-to-end distribution runs against the in-memory gateway, plus the run guard and
the restart supervisor (distribution.pipeline).
"""

from __future__ import annotations

import asyncio
from collections import Counter

import pytest

from conftest import make_wallet, write_roster
from vesting_batcher.core.exceptions import RosterValidationError, RunAlreadyActive
from vesting_batcher.distribution.pipeline import RunHandle, run_distribution, supervise
from vesting_batcher.distribution.record_store import STATUS_PENDING, STATUS_SUCCESS, AttemptRecord, RecordStore


def _run(config, gateway, **kwargs):
    return asyncio.run(run_distribution(RunHandle(), config, gateway, **kwargs))


def _success_counts(config) -> Counter:
    return Counter(r.wallet for r in RecordStore(config.record_path).rows() if r.status == STATUS_SUCCESS)


def test_full_run_then_rerun_submits_nothing(config, gateway, roster_rows):
    write_roster(config.roster_path, roster_rows)

    summary = _run(config, gateway)
    assert summary.pending == 5
    assert summary.batches_succeeded == 3
    assert [len(batch) for batch in gateway.submissions] == [2, 2, 1]
    assert gateway.submitted_wallets == [w for w, _ in roster_rows]

    second = _run(config, gateway, use_resume_offset=False)
    assert second.pending == 0
    assert second.skipped == 5
    assert len(gateway.submissions) == 3
    assert set(_success_counts(config).values()) == {1}


def test_rerun_after_lost_records_relies_on_contract_state(config, gateway, roster_rows):
    write_roster(config.roster_path, roster_rows)
    _run(config, gateway)
    config.record_path.unlink()

    summary = _run(config, gateway)
    assert summary.pending == 0
    assert len(gateway.submissions) == 3


def test_duplicate_roster_aborts_before_any_network_call(config, gateway):
    write_roster(config.roster_path, [(make_wallet(0), "1"), (make_wallet(1), "2"), (make_wallet(0), "3")])
    with pytest.raises(RosterValidationError):
        _run(config, gateway)
    assert gateway.calls == []
    assert not config.record_path.exists()


def test_failed_batch_does_not_stop_the_run(config, gateway, roster_rows):
    write_roster(config.roster_path, roster_rows)
    # first batch burns through all submit attempts, later batches succeed
    gateway.submit_failures = config.max_retries
    summary = _run(config, gateway)
    assert summary.batches_failed == 1
    assert summary.batches_succeeded == 2
    assert summary.failed_wallets == [make_wallet(0), make_wallet(1)]

    # the next default run picks the failed wallets up again
    retry = _run(config, gateway)
    assert retry.start_index == 5
    assert retry.pending == 2
    assert retry.batches_succeeded == 1
    assert set(_success_counts(config)) == {w for w, _ in roster_rows}


def test_dropped_transaction_left_pending_is_resubmitted(config, gateway, roster_rows):
    write_roster(config.roster_path, roster_rows)
    # process died during the inclusion wait and the transaction never landed
    store = RecordStore(config.record_path)
    store.append_many(
        AttemptRecord(wallet=wallet, amount=amount, tx_hash="0xdead", status=STATUS_PENDING)
        for wallet, amount in roster_rows[:2]
    )

    summary = _run(config, gateway)
    assert summary.reconciled == 0
    assert summary.start_index == 2
    assert summary.pending == 5
    assert gateway.submitted_wallets == [w for w, _ in roster_rows]
    assert set(_success_counts(config)) == {w for w, _ in roster_rows}


def test_reverted_batch_is_retried_on_next_run(config, gateway, roster_rows):
    rows = roster_rows[:2]
    write_roster(config.roster_path, rows)
    gateway.revert = True
    gateway.apply_on_submit = False
    first = _run(config, gateway)
    assert first.batches_failed == 1

    gateway.revert = False
    gateway.apply_on_submit = True
    second = _run(config, gateway)
    assert second.start_index == 2
    assert second.pending == 2
    assert second.batches_succeeded == 1
    assert set(_success_counts(config).values()) == {1}
    assert set(_success_counts(config)) == {w for w, _ in rows}


def test_invalid_rows_are_excluded_from_batches(config, gateway):
    write_roster(
        config.roster_path,
        [(make_wallet(0), "5"), ("0xnope", "5"), (make_wallet(2), "five"), (make_wallet(3), "7")],
    )
    summary = _run(config, gateway)
    assert summary.invalid == 2
    assert gateway.submitted_wallets == [make_wallet(0), make_wallet(3)]


def test_explicit_roster_argument(config, gateway):
    from vesting_batcher.distribution.roster import BeneficiaryRow

    rows = [BeneficiaryRow(make_wallet(7), "9")]
    summary = _run(config, gateway, roster=rows)
    assert summary.batches_succeeded == 1
    assert gateway.submitted_wallets == [make_wallet(7)]


def test_run_handle_rejects_reentry():
    handle = RunHandle()
    with handle.acquire():
        assert handle.active
        with pytest.raises(RunAlreadyActive):
            with handle.acquire():
                pass
    assert not handle.active
    assert handle.runs_started == 1


def test_run_handle_released_after_error():
    handle = RunHandle()
    with pytest.raises(RuntimeError):
        with handle.acquire():
            raise RuntimeError("boom")
    with handle.acquire():
        pass
    assert handle.runs_started == 2


def test_supervise_restarts_until_success():
    attempts = {"n": 0}

    async def run_once():
        attempts["n"] += 1
        if attempts["n"] < 3:
            raise ConnectionError("node went away")
        return "done"

    assert asyncio.run(supervise(run_once, max_restarts=2, base_delay=0)) == "done"
    assert attempts["n"] == 3


def test_supervise_gives_up_after_max_restarts():
    attempts = {"n": 0}

    async def run_once():
        attempts["n"] += 1
        raise ConnectionError("still down")

    with pytest.raises(ConnectionError):
        asyncio.run(supervise(run_once, max_restarts=2, base_delay=0))
    assert attempts["n"] == 3


def test_supervise_does_not_restart_roster_errors():
    attempts = {"n": 0}

    async def run_once():
        attempts["n"] += 1
        raise RosterValidationError("Duplicate wallets found in roster.csv")

    with pytest.raises(RosterValidationError):
        asyncio.run(supervise(run_once, max_restarts=5, base_delay=0))
    assert attempts["n"] == 1


def test_supervise_backoff_doubles(monkeypatch):
    delays: list[float] = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr("vesting_batcher.distribution.pipeline.asyncio.sleep", fake_sleep)

    async def run_once():
        raise ConnectionError("down")

    with pytest.raises(ConnectionError):
        asyncio.run(supervise(run_once, max_restarts=3, base_delay=5))
    assert delays == [5, 10, 20]
