# [Shared: Track Utilities]
"""
Call Ledger — per-run budget accounting for oracle calls.

Every oracle-consuming step of a run is appended here, successful or not.
Cache hits are recorded too but are not charged against the budget, since
no oracle call was made. Both tracks ask the ledger whether the next step
is affordable before they issue it.
"""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import List


@dataclass(frozen=True)
class OracleCallRecord:
    """One oracle-consuming step: a real call or a cache hit."""
    step: str
    iteration: int = 0          # loop iteration, or layer priority
    request_chars: int = 0
    response_chars: int = 0
    elapsed_ms: int = 0
    cached: bool = False
    succeeded: bool = True
    recorded_at: float = 0.0

    @property
    def charged(self) -> bool:
        return not self.cached

    @property
    def estimated_tokens(self) -> int:
        return (self.request_chars + self.response_chars) // 4


@dataclass
class CallLedger:
    """
    Usage:
        ledger = CallLedger(track_id="self_refine", max_calls=5)
        if ledger.can_afford(2):
            ...
        ledger.record("critique", request, response, elapsed_ms, iteration=1)
    """
    track_id: str
    max_calls: int
    records: List[OracleCallRecord] = field(default_factory=list)

    def record(
        self,
        step: str,
        request: str,
        response: str,
        elapsed_ms: int,
        iteration: int = 0,
        cached: bool = False,
        succeeded: bool = True,
    ) -> OracleCallRecord:
        entry = OracleCallRecord(
            step=step,
            iteration=iteration,
            request_chars=len(request),
            response_chars=len(response),
            elapsed_ms=elapsed_ms,
            cached=cached,
            succeeded=succeeded,
            recorded_at=time.time(),
        )
        self.records.append(entry)
        return entry

    @property
    def call_count(self) -> int:
        """Steps that actually reached the oracle."""
        return sum(1 for r in self.records if r.charged)

    @property
    def cache_hits(self) -> int:
        return len(self.records) - self.call_count

    @property
    def failed_calls(self) -> int:
        return sum(1 for r in self.records if not r.succeeded)

    @property
    def remaining(self) -> int:
        return max(0, self.max_calls - self.call_count)

    def can_afford(self, calls: int = 1) -> bool:
        return self.remaining >= calls

    def for_iteration(self, iteration: int) -> List[OracleCallRecord]:
        return [r for r in self.records if r.iteration == iteration]

    def to_dict(self) -> dict:
        return {
            "track_id": self.track_id,
            "max_calls": self.max_calls,
            "call_count": self.call_count,
            "remaining": self.remaining,
            "cache_hits": self.cache_hits,
            "failed_calls": self.failed_calls,
            "estimated_tokens": sum(r.estimated_tokens for r in self.records),
            "elapsed_ms": sum(r.elapsed_ms for r in self.records),
            "steps": [
                {
                    "step": r.step,
                    "iteration": r.iteration,
                    "cached": r.cached,
                    "succeeded": r.succeeded,
                    "elapsed_ms": r.elapsed_ms,
                }
                for r in self.records
            ],
        }
