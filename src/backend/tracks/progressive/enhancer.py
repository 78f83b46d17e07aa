# [Track P: Progressive Enhancement]
"""
Track P — Progressive enhancement pipeline.

Applies the layers from tracks.progressive.layers in priority order. For
each layer: check the call budget, check the layer's skip conditions, make
one oracle call for a candidate, then keep the candidate only if the
layer's validator accepts it. Every layer gets exactly one LayerResult,
whatever happened to it.
"""
from __future__ import annotations

import logging
import time
from typing import List, Optional, Sequence

from refiner.config import settings
from refiner.models.schemas import (
    DomainInsights,
    LayerResult,
    LayerStatus,
    ProgressiveEnhancementResult,
    StaticAnalysis,
)
from refiner.services.cache import ResponseCache
from refiner.services.oracle import OracleError, OracleGateway
from refiner.tools.static_analysis import analyze_prompt
from tracks.progressive.layers import LAYERS, EnhancementContext, EnhancementLayer, skip_reason
from tracks.shared.budget import CallLedger
from tracks.shared.modes import BudgetConfiguration

logger = logging.getLogger(__name__)

MAX_OVERALL_IMPROVEMENT = 3.0


def extract_improvements(before: str, after: str) -> List[str]:
    """Describe what changed between two versions by simple textual markers."""
    improvements: List[str] = []

    if "#" in after and "#" not in before:
        improvements.append("Added headers and structure")

    def has_bullets(text: str) -> bool:
        return "- " in text or "* " in text

    if has_bullets(after) and not has_bullets(before):
        improvements.append("Added bullet points")

    if "example" in after and "example" not in before:
        improvements.append("Added examples")

    if "```" in after and "```" not in before:
        improvements.append("Added code blocks or templates")

    if before:
        growth = (len(after) - len(before)) / len(before)
        if growth > 0.2:
            improvements.append(f"Expanded content by {growth * 100:.0f}%")

    return improvements


def overall_improvement(original: str, final: str) -> float:
    """Length ratio plus small bonuses for structure and examples, capped at 3.0."""
    ratio = len(final) / len(original) if original else 1.0
    structure_bonus = 0.5 if ("#" in final or "- " in final) else 0.0
    example_bonus = 0.3 if ("example" in final or "```" in final) else 0.0
    return min(ratio + structure_bonus + example_bonus, MAX_OVERALL_IMPROVEMENT)


class ProgressiveEnhancer:
    """
    Usage:
        enhancer = ProgressiveEnhancer(config, gateway)
        result = await enhancer.enhance(text, static_analysis, dynamic_analysis)
    """

    def __init__(
        self,
        config: BudgetConfiguration,
        gateway: Optional[OracleGateway] = None,
        cache: Optional[ResponseCache] = None,
        layers: Sequence[EnhancementLayer] = LAYERS,
    ):
        self.config = config
        self.gateway = gateway or OracleGateway()
        self.cache = cache or ResponseCache(
            max_age_seconds=settings.enhance_cache_ttl_seconds,
            max_entries=settings.cache_max_entries,
            prefix_length=50,
        )
        self.layers = sorted(layers, key=lambda layer: layer.priority)

    def _progress(self, message: str) -> None:
        logger.log(logging.INFO if self.config.show_progress else logging.DEBUG, message)

    async def enhance(
        self,
        text: str,
        static_analysis: Optional[StaticAnalysis] = None,
        dynamic_analysis: Optional[DomainInsights] = None,
        ledger: Optional[CallLedger] = None,
    ) -> ProgressiveEnhancementResult:
        """
        Run every layer once, in order, over the text.

        Args:
            text: The text to enhance
            static_analysis: Static analysis of the text (computed if omitted)
            dynamic_analysis: Optional oracle-derived insights used as guidance
            ledger: Budget ledger shared with earlier steps of the same run;
                    a fresh one sized to max_oracle_calls when omitted

        Returns:
            ProgressiveEnhancementResult with one LayerResult per layer
        """
        start = time.monotonic()
        static_analysis = static_analysis or analyze_prompt(text)
        context = EnhancementContext.create(text, static_analysis, dynamic_analysis, self.config)
        ledger = ledger or CallLedger(track_id="progressive", max_calls=self.config.max_oracle_calls)
        current = text
        results: List[LayerResult] = []

        self._progress(f"Starting progressive enhancement ({len(self.layers)} layers, {ledger.remaining} calls left)")

        for layer in self.layers:
            result = await self._run_layer(layer, current, context, ledger)
            results.append(result)
            if result.status == LayerStatus.APPLIED:
                current = result.enhanced_text
                context.accepted_layers.append(layer.name)

        applied = sum(1 for r in results if r.status == LayerStatus.APPLIED)
        skipped = sum(1 for r in results if r.status == LayerStatus.SKIPPED)
        total_ms = int((time.monotonic() - start) * 1000)

        self._progress(
            f"Progressive enhancement done: {applied}/{len(self.layers)} applied, "
            f"{skipped} skipped, {ledger.call_count} oracle calls, {total_ms}ms"
        )

        return ProgressiveEnhancementResult(
            final_text=current,
            layer_results=results,
            total_layers=len(self.layers),
            applied_layers=applied,
            skipped_layers=skipped,
            total_elapsed_ms=total_ms,
            overall_improvement=round(overall_improvement(text, current), 3),
            total_oracle_calls=ledger.call_count,
            ledger=ledger.to_dict(),
        )

    async def _run_layer(
        self,
        layer: EnhancementLayer,
        current: str,
        context: EnhancementContext,
        ledger: CallLedger,
    ) -> LayerResult:
        t0 = time.monotonic()

        def skipped(reason: str) -> LayerResult:
            return LayerResult(
                layer_name=layer.name,
                status=LayerStatus.SKIPPED,
                original_text=current,
                enhanced_text=current,
                skip_reason=reason,
                elapsed_ms=int((time.monotonic() - t0) * 1000),
            )

        if not ledger.can_afford(1):
            self._progress(f"  {layer.name}: skipped (claude_call_limit)")
            return skipped("claude_call_limit")

        reason = skip_reason(layer, current)
        if reason is not None:
            self._progress(f"  {layer.name}: skipped ({reason})")
            return skipped(reason)

        self._progress(f"  Applying {layer.name}...")
        request_started = time.monotonic()
        try:
            candidate, cached = await layer.apply(current, context, self.gateway, self.cache)
        except OracleError as e:
            ledger.record(
                layer.key, current, "", int((time.monotonic() - request_started) * 1000),
                iteration=layer.priority, succeeded=False,
            )
            logger.warning(f"  Layer {layer.name} failed: {e}")
            return skipped("layer_failed")

        ledger.record(
            layer.key, current, candidate, int((time.monotonic() - request_started) * 1000),
            iteration=layer.priority, cached=cached,
        )

        passed = layer.validate(current, candidate)
        if passed:
            improvements = extract_improvements(current, candidate)
            self._progress(f"    applied ({len(improvements)} improvements)")
        else:
            improvements = []
            self._progress("    validation failed, keeping previous version")

        return LayerResult(
            layer_name=layer.name,
            status=LayerStatus.APPLIED if passed else LayerStatus.REJECTED,
            original_text=current,
            enhanced_text=candidate,
            improvements=improvements,
            validation_passed=passed,
            elapsed_ms=int((time.monotonic() - t0) * 1000),
        )
