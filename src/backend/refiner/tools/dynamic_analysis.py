# [Core: Dynamic Analysis]
"""
Tool: Dynamic Analyzer

Uses the oracle to find context-specific weaknesses static analysis cannot
see: the domain, implicit assumptions, missing success criteria, edge
cases and context gaps. Results are cached with their own (shorter) TTL.

Callers that cannot proceed without insights use analyze_or_fallback(),
which substitutes FALLBACK_INSIGHTS when the oracle is unavailable or its
answer cannot be parsed.
"""
from __future__ import annotations

import logging
import time
from typing import List, Optional

from refiner.config import settings
from refiner.models.schemas import (
    DomainInsights,
    ExpertiseLevel,
    ImprovementPotential,
    StaticAnalysis,
    SynthesizedInsights,
)
from refiner.services.cache import ResponseCache
from refiner.services.oracle import OracleError, OracleGateway
from tracks.shared.budget import CallLedger

logger = logging.getLogger(__name__)


class AnalysisUnavailable(Exception):
    """Dynamic analysis could not be produced for this text."""


FALLBACK_INSIGHTS = DomainInsights(
    domain_specific_issues=["Unable to perform detailed domain analysis"],
    implicit_assumptions=["Dynamic analysis not available"],
    missing_success_criteria=["Success criteria should be defined"],
    overlooked_edge_cases=["Edge case analysis requires manual review"],
    context_gaps=["Additional context may improve results"],
    improvement_potential=ImprovementPotential.MEDIUM,
    domain_confidence=0.5,
    detected_domain="general",
    suggested_patterns=["structured-output", "clear-instructions"],
    cultural_sensitivity=[],
    expertise_level=ExpertiseLevel.INTERMEDIATE,
)

ANALYSIS_PROMPT = """You are an expert prompt analyst with deep knowledge of AI systems, prompt engineering, and domain-specific requirements. Analyze this prompt for contextual weaknesses that generic static analysis would miss.

PROMPT TO ANALYZE:
{prompt}

Provide analysis focusing on:
1. Domain Detection: what specific domain/field is this prompt targeting?
2. Domain-Specific Issues: what issues are unique to this domain?
3. Implicit Assumptions: what does the prompt assume that should be explicit?
4. Missing Success Criteria: what would "success" look like for this task?
5. Overlooked Edge Cases: which domain edge cases are not addressed?
6. Context Gaps: what missing context would most improve results?
7. Suggested Patterns: which prompt engineering patterns fit best?
8. Cultural Sensitivity: any bias or inclusivity considerations?
9. Expertise Level: what expertise does this prompt assume?

Respond with ONLY valid JSON in this exact format:
{{
  "domainSpecificIssues": ["..."],
  "implicitAssumptions": ["..."],
  "missingSuccessCriteria": ["..."],
  "overlookedEdgeCases": ["..."],
  "contextGaps": ["..."],
  "improvementPotential": "low|medium|high|critical",
  "domainConfidence": 0.95,
  "detectedDomain": "specific domain name",
  "suggestedPatterns": ["..."],
  "culturalSensitivity": ["..."],
  "expertiseLevel": "beginner|intermediate|advanced|expert"
}}"""

HIGH_PRIORITY_KEYWORDS = ("missing", "unclear", "ambiguous", "critical", "edge case", "bias", "assumption")
MEDIUM_PRIORITY_KEYWORDS = ("context", "pattern", "structure", "example", "format")

_POTENTIAL_GAIN = {
    ImprovementPotential.LOW: 0.5,
    ImprovementPotential.MEDIUM: 1.5,
    ImprovementPotential.HIGH: 2.5,
    ImprovementPotential.CRITICAL: 3.5,
}
_POTENTIAL_CONFIDENCE = {
    ImprovementPotential.LOW: 0.3,
    ImprovementPotential.MEDIUM: 0.5,
    ImprovementPotential.HIGH: 0.7,
    ImprovementPotential.CRITICAL: 0.9,
}


class DynamicAnalyzer:
    """
    Usage:
        analyzer = DynamicAnalyzer(gateway)
        insights = await analyzer.analyze_or_fallback(text)
    """

    def __init__(
        self,
        gateway: Optional[OracleGateway] = None,
        cache: Optional[ResponseCache] = None,
    ):
        self.gateway = gateway or OracleGateway()
        self.cache = cache or ResponseCache(
            max_age_seconds=settings.dynamic_cache_ttl_seconds,
            max_entries=settings.cache_max_entries,
        )

    @staticmethod
    def cache_key(text: str) -> str:
        words = text.lower().strip().split()[:20]
        return f"dynamic:{'_'.join(words)}:{len(text)}"

    async def analyze(self, text: str, ledger: Optional[CallLedger] = None) -> DomainInsights:
        """
        Run dynamic analysis on a prompt.

        When a ledger is given the step is recorded on it, so the call
        counts against the same budget as the strategy that follows.

        Raises:
            AnalysisUnavailable: the oracle failed or returned unusable output.
        """
        key = self.cache_key(text)
        prompt = ANALYSIS_PROMPT.format(prompt=text)
        cached = self.cache.get(key)
        if cached is not None:
            if ledger is not None:
                ledger.record("dynamic_analysis", prompt, cached, 0, cached=True)
            return DomainInsights.model_validate_json(cached)

        t0 = time.monotonic()
        raw = ""
        try:
            raw = await self.gateway.invoke(prompt)
            insights = OracleGateway.parse_structured(raw, DomainInsights)
        except OracleError as e:
            if ledger is not None:
                ledger.record(
                    "dynamic_analysis", prompt, raw, int((time.monotonic() - t0) * 1000),
                    succeeded=False,
                )
            raise AnalysisUnavailable(str(e)) from e

        if ledger is not None:
            ledger.record("dynamic_analysis", prompt, raw, int((time.monotonic() - t0) * 1000))
        self.cache.set(key, insights.model_dump_json())
        return insights

    async def analyze_or_fallback(
        self, text: str, ledger: Optional[CallLedger] = None
    ) -> DomainInsights:
        try:
            return await self.analyze(text, ledger)
        except AnalysisUnavailable as e:
            logger.warning(f"Dynamic analysis unavailable, using fallback insights: {e}")
            return FALLBACK_INSIGHTS


def _priority_key(suggestion: str) -> tuple[int, int]:
    lowered = suggestion.lower()
    high = sum(1 for k in HIGH_PRIORITY_KEYWORDS if k in lowered)
    medium = sum(1 for k in MEDIUM_PRIORITY_KEYWORDS if k in lowered)
    return (-high, -medium)


def synthesize_analyses(
    static: StaticAnalysis,
    dynamic: DomainInsights,
) -> SynthesizedInsights:
    """Combine static and dynamic analyses into one prioritized view."""
    all_issues: List[str] = [
        *static.issues,
        *dynamic.domain_specific_issues,
        *(f"Implicit assumption: {a}" for a in dynamic.implicit_assumptions),
        *(f"Missing success criteria: {c}" for c in dynamic.missing_success_criteria),
        *(f"Context gap: {g}" for g in dynamic.context_gaps),
    ]

    suggestions: List[str] = [
        *static.suggestions,
        *(f"Consider edge case: {e}" for e in dynamic.overlooked_edge_cases),
        *(f"Apply pattern: {p}" for p in dynamic.suggested_patterns),
        *(f"Address cultural consideration: {c}" for c in dynamic.cultural_sensitivity),
    ]
    prioritized = sorted(suggestions, key=_priority_key)[:8]

    static_score = static.quality_scores.overall
    domain_bonus = 0.5 if dynamic.domain_confidence > 0.8 else 0.0
    estimated_gain = min(10 - static_score, _POTENTIAL_GAIN[dynamic.improvement_potential] + domain_bonus)

    confidence = (
        (static_score / 10) * 0.4
        + dynamic.domain_confidence * 0.3
        + _POTENTIAL_CONFIDENCE[dynamic.improvement_potential] * 0.3
    )

    approaches: List[str] = []
    if dynamic.expertise_level == ExpertiseLevel.BEGINNER:
        approaches.append("provide detailed explanations and examples")
    if dynamic.cultural_sensitivity:
        approaches.append("address cultural and bias considerations")
    if dynamic.domain_confidence > 0.8:
        approaches.append(f"apply {dynamic.detected_domain}-specific optimizations")
    if static_score < 7:
        approaches.append("focus on structural improvements first")

    next_steps: List[str] = []
    if prioritized:
        next_steps.append(f'Address top priority: "{prioritized[0]}"')
    if dynamic.suggested_patterns:
        next_steps.append(f"Implement pattern: {dynamic.suggested_patterns[0]}")
    if dynamic.context_gaps:
        next_steps.append(f"Add context: {dynamic.context_gaps[0]}")
    if not next_steps:
        next_steps.append("Run iterative refinement for quality improvement")

    return SynthesizedInsights(
        primary_issues=all_issues[:5],
        prioritized_improvements=prioritized,
        estimated_quality_gain=round(estimated_gain, 2),
        confidence_score=round(confidence, 3),
        recommended_approach=(
            ", ".join(approaches) if approaches else "apply general prompt engineering best practices"
        ),
        next_steps=next_steps,
    )
