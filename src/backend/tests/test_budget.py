"""Tests for the per-run call ledger."""
from tracks.shared.budget import CallLedger


def test_remaining_decreases_per_recorded_call():
    ledger = CallLedger(track_id="t", max_calls=5)
    for n in range(1, 4):
        ledger.record("critique", "prompt", "response", 10, iteration=n)
        assert ledger.remaining == 5 - n
    assert ledger.call_count == 3


def test_failed_calls_are_charged():
    ledger = CallLedger(track_id="t", max_calls=2)
    ledger.record("improve", "prompt", "", 10, succeeded=False)
    assert ledger.remaining == 1
    assert ledger.failed_calls == 1


def test_cache_hits_are_recorded_but_free():
    ledger = CallLedger(track_id="t", max_calls=2)
    entry = ledger.record("critique", "prompt", "cached", 0, cached=True)
    assert not entry.charged
    assert ledger.remaining == 2
    assert ledger.cache_hits == 1
    assert len(ledger.records) == 1


def test_remaining_never_negative():
    ledger = CallLedger(track_id="t", max_calls=1)
    ledger.record("critique", "p", "r", 1)
    ledger.record("critique", "p", "r", 1)
    assert ledger.remaining == 0
    assert not ledger.can_afford(1)


def test_can_afford():
    ledger = CallLedger(track_id="t", max_calls=3)
    ledger.record("critique", "p", "r", 1)
    assert ledger.can_afford(2)
    assert not ledger.can_afford(3)


def test_for_iteration_and_to_dict():
    ledger = CallLedger(track_id="self_refine", max_calls=5)
    ledger.record("critique", "a" * 400, "b" * 40, 5, iteration=1)
    ledger.record("improve", "p", "r", 7, iteration=1)
    ledger.record("critique", "p", "r", 3, iteration=2)
    assert [r.step for r in ledger.for_iteration(1)] == ["critique", "improve"]

    summary = ledger.to_dict()
    assert summary["call_count"] == 3
    assert summary["remaining"] == 2
    assert summary["elapsed_ms"] == 15
    assert summary["estimated_tokens"] == 110
    assert [s["step"] for s in summary["steps"]] == ["critique", "improve", "critique"]
