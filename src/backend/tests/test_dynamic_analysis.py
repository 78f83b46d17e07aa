"""Tests for the oracle-backed dynamic analyzer and synthesis."""
import json

import pytest

from refiner.models.schemas import DomainInsights, ImprovementPotential
from refiner.tools.dynamic_analysis import (
    FALLBACK_INSIGHTS,
    AnalysisUnavailable,
    DynamicAnalyzer,
    synthesize_analyses,
)
from refiner.tools.static_analysis import analyze_prompt
from tracks.shared.budget import CallLedger

TEXT = "Write a function that validates email addresses"

INSIGHTS = json.dumps({
    "domainSpecificIssues": ["No RFC version specified"],
    "implicitAssumptions": ["ASCII-only addresses"],
    "missingSuccessCriteria": ["Which inputs must be rejected"],
    "overlookedEdgeCases": ["Quoted local parts"],
    "contextGaps": ["Target language and runtime"],
    "improvementPotential": "high",
    "domainConfidence": 0.9,
    "detectedDomain": "technical",
    "suggestedPatterns": ["few-shot"],
    "culturalSensitivity": [],
    "expertiseLevel": "advanced",
})


async def test_analyze_parses_and_caches(scripted_gateway):
    gateway, transport = scripted_gateway([INSIGHTS])
    analyzer = DynamicAnalyzer(gateway)

    first = await analyzer.analyze(TEXT)
    second = await analyzer.analyze(TEXT)

    assert first.detected_domain == "technical"
    assert first.improvement_potential == ImprovementPotential.HIGH
    assert second == first
    assert len(transport.requests) == 1


async def test_analyze_records_on_ledger(scripted_gateway):
    gateway, _ = scripted_gateway([INSIGHTS])
    analyzer = DynamicAnalyzer(gateway)
    ledger = CallLedger(track_id="self_refine", max_calls=3)

    await analyzer.analyze(TEXT, ledger)
    await analyzer.analyze(TEXT, ledger)

    assert ledger.call_count == 1
    assert ledger.cache_hits == 1
    assert [r.step for r in ledger.records] == ["dynamic_analysis", "dynamic_analysis"]


async def test_malformed_analysis_is_charged_as_failed(scripted_gateway):
    gateway, _ = scripted_gateway(["no insights here"])
    ledger = CallLedger(track_id="progressive", max_calls=3)

    assert await DynamicAnalyzer(gateway).analyze_or_fallback(TEXT, ledger) == FALLBACK_INSIGHTS
    assert ledger.call_count == 1
    assert ledger.failed_calls == 1


async def test_analyze_raises_when_unavailable(scripted_gateway):
    gateway, _ = scripted_gateway([ConnectionError("down")])
    with pytest.raises(AnalysisUnavailable):
        await DynamicAnalyzer(gateway).analyze(TEXT)


async def test_malformed_output_falls_back_and_is_not_cached(scripted_gateway):
    gateway, transport = scripted_gateway(["no json here", INSIGHTS])
    analyzer = DynamicAnalyzer(gateway)

    assert await analyzer.analyze_or_fallback(TEXT) == FALLBACK_INSIGHTS
    retried = await analyzer.analyze_or_fallback(TEXT)
    assert retried.detected_domain == "technical"
    assert len(transport.requests) == 2


def test_cache_key():
    assert DynamicAnalyzer.cache_key("Hello  World") == "dynamic:hello_world:12"


def test_synthesize_analyses():
    static = analyze_prompt(TEXT)
    dynamic = DomainInsights.model_validate_json(INSIGHTS)
    synthesized = synthesize_analyses(static, dynamic)

    assert len(synthesized.primary_issues) <= 5
    assert len(synthesized.prioritized_improvements) <= 8
    assert synthesized.estimated_quality_gain == round(
        min(10 - static.quality_scores.overall, 3.0), 2
    )
    assert "apply technical-specific optimizations" in synthesized.recommended_approach
    assert synthesized.next_steps[0].startswith("Address top priority")
    assert 0.0 <= synthesized.confidence_score <= 1.0


def test_synthesize_with_fallback_insights():
    synthesized = synthesize_analyses(analyze_prompt("do it"), FALLBACK_INSIGHTS)
    assert synthesized.primary_issues
    assert "focus on structural improvements first" in synthesized.recommended_approach
