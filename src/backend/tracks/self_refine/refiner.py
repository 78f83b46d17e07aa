# [Track S: Self-Refine]
"""
Track S — Core self-refine convergence loop.

On each iteration:
  1. Ask the oracle to critique the current text (one call)
  2. Decide whether to stop: quality target reached, iteration cap,
     diminishing returns, the critique advising to stop, or not enough
     budget left for another improve + critique round
  3. Otherwise ask the oracle for an improved version (one call) and loop

Every critique attempt is recorded as an IterationRecord and every oracle
step in the run's CallLedger. The loop never raises for oracle problems: a
failed critique becomes the fallback report, a failed improvement ends the
run with the current text.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from refiner.config import settings
from refiner.models.schemas import (
    FALLBACK_CRITIQUE,
    CritiqueReport,
    IterationRecord,
    SelfRefineResult,
    StaticAnalysis,
    StopReason,
)
from refiner.services.cache import ResponseCache
from refiner.services.oracle import OracleError, OracleGateway, OracleMalformed
from refiner.tools.static_analysis import analyze_prompt
from tracks.shared.budget import CallLedger
from tracks.shared.modes import BudgetConfiguration

logger = logging.getLogger(__name__)

# Minimum score gain between consecutive critiques worth another round
DIMINISHING_RETURNS_THRESHOLD = 0.3

# An improve call plus the critique that judges it
CALLS_PER_ROUND = 2

# ──────────────────────────────────────────────
# Oracle prompts
# ──────────────────────────────────────────────

CRITIQUE_PROMPT = """You are an expert prompt engineer evaluating this prompt for quality and effectiveness.

PROMPT TO EVALUATE:
{prompt}

Provide a detailed critique focusing on:
1. Overall quality score (0-10)
2. Specific metrics: clarity, effectiveness, completeness
3. What improvements are needed
4. Any remaining concerns
5. Whether further refinement would be beneficial

Respond with ONLY valid JSON in this exact format:
{{
  "score": <0-10 overall score>,
  "clarity": <0-10 how clear and understandable>,
  "effectiveness": <0-10 how well it achieves goals>,
  "completeness": <0-10 how thorough and comprehensive>,
  "improvements": ["specific improvement 1", "specific improvement 2"],
  "concerns": ["remaining concern 1", "remaining concern 2"],
  "recommendation": "brief summary and next steps",
  "shouldContinue": <true/false whether further refinement is beneficial>
}}

Be honest and constructive. Focus on actionable feedback."""

IMPROVE_PROMPT = """You are an expert prompt engineer performing iterative improvement (iteration {iteration}).

CURRENT PROMPT:
{prompt}

CRITIQUE FEEDBACK:
- Overall Score: {score:.1f}/10
- Key Improvements Needed: {improvements}
- Main Concerns: {concerns}
- Recommendation: {recommendation}

STAGE: {stage}
Focus on {focus}.

Create an improved version that directly addresses the critique feedback.

IMPORTANT:
- Respond with ONLY the improved prompt text
- No explanations, no JSON, no markdown code fences around the answer
- Make significant improvements, not minor tweaks"""

STAGES = {
    1: ("initial analysis and structure", "fixing structural issues and adding clarity"),
    2: ("enhancement and detail addition", "adding missing context, examples, and constraints"),
}
POLISH_STAGE = ("final polish and optimization", "final optimization and polish for maximum effectiveness")


def stage_for(iteration: int) -> tuple[str, str]:
    """(stage label, focus) for an iteration; 3 and above are all polish."""
    return STAGES.get(iteration, POLISH_STAGE)


class SelfRefiner:
    """
    Runs the critique/improve convergence loop for a single text.

    Usage:
        refiner = SelfRefiner(config, gateway)
        result = await refiner.refine(text)
    """

    def __init__(
        self,
        config: BudgetConfiguration,
        gateway: Optional[OracleGateway] = None,
        cache: Optional[ResponseCache] = None,
        analyzer: Callable[[str], StaticAnalysis] = analyze_prompt,
    ):
        self.config = config
        self.gateway = gateway or OracleGateway()
        self.cache = cache or ResponseCache(
            max_age_seconds=settings.refine_cache_ttl_seconds,
            max_entries=settings.cache_max_entries,
            prefix_length=100,
        )
        self.analyzer = analyzer

    def _progress(self, message: str) -> None:
        logger.log(logging.INFO if self.config.show_progress else logging.DEBUG, message)

    async def refine(
        self,
        text: str,
        baseline: Optional[StaticAnalysis] = None,
        ledger: Optional[CallLedger] = None,
    ) -> SelfRefineResult:
        """
        Iteratively refine the text until a stop condition holds.

        Args:
            text: The text to refine
            baseline: Static analysis of the original text (computed if omitted);
                      the first iteration's quality gain is measured against it
            ledger: Budget ledger shared with earlier steps of the same run;
                    a fresh one sized to max_oracle_calls when omitted

        Returns:
            SelfRefineResult with the final text, full trace and stop reason
        """
        baseline = baseline or self.analyzer(text)
        baseline_score = baseline.quality_scores.overall
        ledger = ledger or CallLedger(track_id="self_refine", max_calls=self.config.max_oracle_calls)
        iterations: List[IterationRecord] = []
        current = text

        self._progress(
            f"Starting self-refine (target {self.config.target_quality}, "
            f"max {self.config.max_iterations} iterations, {ledger.remaining} calls left)"
        )

        while ledger.can_afford(1):
            t0 = time.monotonic()
            iteration = len(iterations) + 1
            self._progress(f"  [Iteration {iteration}/{self.config.max_iterations}] critiquing")

            critique = await self._critique(current, iteration, ledger)
            previous_score = iterations[-1].critique.overall_score if iterations else baseline_score

            record = IterationRecord(
                iteration=iteration,
                text=current,
                critique=critique,
                static_analysis=self.analyzer(current),
                improvements_requested=list(critique.improvements),
                quality_gain=round(critique.overall_score - previous_score, 3),
                elapsed_ms=int((time.monotonic() - t0) * 1000),
            )
            iterations.append(record)
            self._progress(
                f"  [Iteration {iteration}] quality {critique.overall_score:.1f}/10 "
                f"({record.quality_gain:+.1f})"
            )

            reason = self._stop_reason(iterations, ledger)
            if reason is not None:
                return self._result(current, iterations, ledger, baseline_score, reason)

            improved = await self._improve(current, critique, iteration, ledger)
            if improved is None:
                return self._result(
                    current, iterations, ledger, baseline_score, StopReason.IMPROVEMENT_FAILED
                )
            current = improved

        return self._result(current, iterations, ledger, baseline_score, StopReason.CLAUDE_LIMIT)

    def _stop_reason(
        self,
        iterations: List[IterationRecord],
        ledger: CallLedger,
    ) -> Optional[StopReason]:
        """First matching stop condition for the latest iteration, or None to continue."""
        latest = iterations[-1].critique

        if latest.overall_score >= self.config.target_quality:
            return StopReason.QUALITY_ACHIEVED

        if len(iterations) >= self.config.max_iterations:
            return StopReason.MAX_ITERATIONS

        if len(iterations) >= 2:
            gain = latest.overall_score - iterations[-2].critique.overall_score
            if gain < DIMINISHING_RETURNS_THRESHOLD:
                return StopReason.DIMINISHING_RETURNS

        if not latest.continuation_advice:
            return StopReason.CLAUDE_RECOMMENDATION

        if not ledger.can_afford(CALLS_PER_ROUND):
            return StopReason.CLAUDE_LIMIT

        return None

    async def _critique(self, text: str, iteration: int, ledger: CallLedger) -> CritiqueReport:
        """One critique step. Any oracle failure yields the fallback report."""
        key = self.cache.make_key("critique", text)
        prompt = CRITIQUE_PROMPT.format(prompt=text)

        cached = self.cache.get(key)
        if cached is not None:
            ledger.record("critique", prompt, cached, 0, iteration=iteration, cached=True)
            return OracleGateway.parse_structured(cached, CritiqueReport)

        t0 = time.monotonic()
        try:
            raw = await self.gateway.invoke(prompt)
        except OracleError as e:
            ledger.record(
                "critique", prompt, "", int((time.monotonic() - t0) * 1000),
                iteration=iteration, succeeded=False,
            )
            logger.warning(f"  [Iteration {iteration}] critique failed, using fallback: {e}")
            return FALLBACK_CRITIQUE

        ledger.record(
            "critique", prompt, raw, int((time.monotonic() - t0) * 1000),
            iteration=iteration,
        )
        try:
            critique = OracleGateway.parse_structured(raw, CritiqueReport)
        except OracleMalformed as e:
            logger.warning(f"  [Iteration {iteration}] critique malformed, using fallback: {e}")
            return FALLBACK_CRITIQUE

        self.cache.set(key, raw)
        return critique

    async def _improve(
        self,
        text: str,
        critique: CritiqueReport,
        iteration: int,
        ledger: CallLedger,
    ) -> Optional[str]:
        """One improvement step. Returns None when no usable text came back."""
        stage, focus = stage_for(iteration)
        key = self.cache.make_key("improve", text, {"stage": stage})
        prompt = IMPROVE_PROMPT.format(
            iteration=iteration,
            prompt=text,
            score=critique.overall_score,
            improvements=", ".join(critique.improvements) or "none listed",
            concerns=", ".join(critique.concerns) or "none listed",
            recommendation=critique.recommendation or "none",
            stage=stage,
            focus=focus,
        )

        cached = self.cache.get(key)
        if cached is not None:
            ledger.record("improve", prompt, cached, 0, iteration=iteration, cached=True)
            return cached

        t0 = time.monotonic()
        try:
            improved = await self.gateway.invoke(prompt)
        except OracleError as e:
            ledger.record(
                "improve", prompt, "", int((time.monotonic() - t0) * 1000),
                iteration=iteration, succeeded=False,
            )
            logger.warning(f"  [Iteration {iteration}] improvement failed, keeping current text: {e}")
            return None

        ledger.record(
            "improve", prompt, improved, int((time.monotonic() - t0) * 1000),
            iteration=iteration, succeeded=bool(improved),
        )
        if not improved:
            logger.warning(f"  [Iteration {iteration}] oracle returned an empty improvement")
            return None

        self.cache.set(key, improved)
        return improved

    def _result(
        self,
        text: str,
        iterations: List[IterationRecord],
        ledger: CallLedger,
        baseline_score: float,
        reason: StopReason,
    ) -> SelfRefineResult:
        final_quality = iterations[-1].critique.overall_score if iterations else baseline_score
        self._progress(
            f"Self-refine stopped ({reason.value}) after {len(iterations)} iterations, "
            f"{ledger.call_count} oracle calls, quality {final_quality:.1f}/10"
        )
        if iterations and iterations[-1].critique.concerns:
            logger.debug(f"Remaining concerns: {', '.join(iterations[-1].critique.concerns)}")

        return SelfRefineResult(
            final_text=text,
            iterations=iterations,
            total_iterations=len(iterations),
            final_quality=final_quality,
            total_quality_gain=round(final_quality - baseline_score, 3),
            total_oracle_calls=ledger.call_count,
            convergence_reason=reason,
            ledger=ledger.to_dict(),
        )
