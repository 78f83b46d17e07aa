# [Core: Domain Models]
"""
Domain models for the prompt refinement engine.

These Pydantic models define the structured data flowing through both
refinement strategies. Oracle output is validated into these shapes at
the gateway boundary; everything downstream consumes typed models.
"""
from __future__ import annotations

import math
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasGenerator, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


# ──────────────────────────────────────────────
# Enums
# ──────────────────────────────────────────────

class StopReason(str, Enum):
    """
    Why the self-refine loop stopped.

    The first five are the loop's convergence checks. IMPROVEMENT_FAILED is
    an extra terminal reason: the improve call failed or came back empty, so
    the loop ends on the last good text instead of spending more calls on it.
    """
    QUALITY_ACHIEVED = "quality_achieved"
    MAX_ITERATIONS = "max_iterations"
    DIMINISHING_RETURNS = "diminishing_returns"
    CLAUDE_RECOMMENDATION = "claude_recommendation"
    CLAUDE_LIMIT = "claude_limit"
    IMPROVEMENT_FAILED = "improvement_failed"


class LayerStatus(str, Enum):
    APPLIED = "applied"
    REJECTED = "rejected"      # candidate produced but failed validation
    SKIPPED = "skipped"


class ExpertiseLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"


class ImprovementPotential(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Strategy(str, Enum):
    SELF_REFINE = "self_refine"
    PROGRESSIVE = "progressive"


def _coerce_score(value: Any, default: float) -> float:
    """Clamp a score into [0, 10]; anything non-numeric becomes the default."""
    if isinstance(value, bool):
        return default
    try:
        score = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(score):
        return default
    return min(max(score, 0.0), 10.0)


def _coerce_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None]
    return [str(value)]


# ──────────────────────────────────────────────
# Analysis Models
# ──────────────────────────────────────────────

class QualityScores(BaseModel):
    clarity: float = 0.0
    specificity: float = 0.0
    structure: float = 0.0
    context: float = 0.0
    overall: float = 0.0


class StaticAnalysis(BaseModel):
    """Output of the keyword-based static analyzer. Deterministic, no oracle calls."""
    issues: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)
    quality_scores: QualityScores = Field(default_factory=QualityScores)
    task_type: str = "general"
    detected_patterns: List[str] = Field(default_factory=list)
    recommended_frameworks: List[str] = Field(default_factory=list)
    improvement_priority: str = "medium"


class DomainInsights(BaseModel):
    """
    Output of the dynamic (oracle-backed) analyzer.

    Accepts the camelCase keys the oracle is asked to produce as well as
    the snake_case field names used when round-tripping through the cache.
    """
    model_config = ConfigDict(
        alias_generator=AliasGenerator(validation_alias=to_camel),
        populate_by_name=True,
    )

    domain_specific_issues: List[str] = Field(default_factory=list)
    implicit_assumptions: List[str] = Field(default_factory=list)
    missing_success_criteria: List[str] = Field(default_factory=list)
    overlooked_edge_cases: List[str] = Field(default_factory=list)
    context_gaps: List[str] = Field(default_factory=list)
    improvement_potential: ImprovementPotential = ImprovementPotential.MEDIUM
    domain_confidence: float = 0.7
    detected_domain: str = "general"
    suggested_patterns: List[str] = Field(default_factory=list)
    cultural_sensitivity: List[str] = Field(default_factory=list)
    expertise_level: ExpertiseLevel = ExpertiseLevel.INTERMEDIATE

    @field_validator(
        "domain_specific_issues",
        "implicit_assumptions",
        "missing_success_criteria",
        "overlooked_edge_cases",
        "context_gaps",
        "suggested_patterns",
        "cultural_sensitivity",
        mode="before",
    )
    @classmethod
    def _normalise_lists(cls, v: Any) -> List[str]:
        return _coerce_str_list(v)

    @field_validator("improvement_potential", mode="before")
    @classmethod
    def _normalise_potential(cls, v: Any) -> str:
        v = v.lower() if isinstance(v, str) else v
        return v if v in {p.value for p in ImprovementPotential} else "medium"

    @field_validator("expertise_level", mode="before")
    @classmethod
    def _normalise_expertise(cls, v: Any) -> str:
        v = v.lower() if isinstance(v, str) else v
        return v if v in {e.value for e in ExpertiseLevel} else "intermediate"

    @field_validator("domain_confidence", mode="before")
    @classmethod
    def _normalise_confidence(cls, v: Any) -> float:
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return 0.7
        if math.isnan(v) or v < 0 or v > 1:
            return 0.7
        return float(v)

    @field_validator("detected_domain", mode="before")
    @classmethod
    def _normalise_domain(cls, v: Any) -> str:
        return v.strip() if isinstance(v, str) and v.strip() else "general"


class SynthesizedInsights(BaseModel):
    """Static + dynamic analyses merged into one prioritized view."""
    primary_issues: List[str] = Field(default_factory=list)
    prioritized_improvements: List[str] = Field(default_factory=list)
    estimated_quality_gain: float = 0.0
    confidence_score: float = 0.0
    recommended_approach: str = ""
    next_steps: List[str] = Field(default_factory=list)


# ──────────────────────────────────────────────
# Self-Refine Models
# ──────────────────────────────────────────────

class CritiqueReport(BaseModel):
    """
    The oracle's critique of the current text.

    Scores are clamped to [0, 10]. A missing or non-numeric score falls back
    to 5.0 rather than failing validation; only text that cannot be read as a
    JSON object at all is treated as malformed.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    overall_score: float = Field(5.0, validation_alias="score")
    clarity: float = 5.0
    effectiveness: float = 5.0
    completeness: float = 5.0
    improvements: List[str] = Field(default_factory=list)
    concerns: List[str] = Field(default_factory=list)
    recommendation: str = ""
    continuation_advice: bool = Field(False, validation_alias="shouldContinue")

    @field_validator("overall_score", "clarity", "effectiveness", "completeness", mode="before")
    @classmethod
    def _clamp_scores(cls, v: Any) -> float:
        return _coerce_score(v, 5.0)

    @field_validator("improvements", "concerns", mode="before")
    @classmethod
    def _normalise_lists(cls, v: Any) -> List[str]:
        return _coerce_str_list(v)

    @field_validator("recommendation", mode="before")
    @classmethod
    def _normalise_recommendation(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""


FALLBACK_CRITIQUE = CritiqueReport(
    overall_score=6.0,
    clarity=6.0,
    effectiveness=6.0,
    completeness=6.0,
    improvements=["Could not generate detailed critique"],
    concerns=["Critique parsing failed"],
    recommendation="Manual review recommended",
    continuation_advice=False,
)


class IterationRecord(BaseModel):
    """One critique attempt of the self-refine loop. Never mutated after creation."""
    model_config = ConfigDict(frozen=True)

    iteration: int
    text: str
    critique: CritiqueReport
    static_analysis: StaticAnalysis
    improvements_requested: List[str] = Field(default_factory=list)
    quality_gain: float = 0.0
    elapsed_ms: int = 0


class SelfRefineResult(BaseModel):
    final_text: str
    iterations: List[IterationRecord] = Field(default_factory=list)
    total_iterations: int = 0
    final_quality: float = 0.0
    total_quality_gain: float = 0.0
    total_oracle_calls: int = 0
    convergence_reason: StopReason
    ledger: Dict[str, Any] = Field(default_factory=dict)


# ──────────────────────────────────────────────
# Progressive Enhancement Models
# ──────────────────────────────────────────────

class LayerResult(BaseModel):
    """Outcome of one enhancement layer attempt. Never mutated after creation."""
    model_config = ConfigDict(frozen=True)

    layer_name: str
    status: LayerStatus
    original_text: str
    enhanced_text: str
    improvements: List[str] = Field(default_factory=list)
    validation_passed: bool = False
    skip_reason: Optional[str] = None
    elapsed_ms: int = 0

    @property
    def skipped(self) -> bool:
        return self.status == LayerStatus.SKIPPED


class ProgressiveEnhancementResult(BaseModel):
    final_text: str
    layer_results: List[LayerResult] = Field(default_factory=list)
    total_layers: int = 0
    applied_layers: int = 0
    skipped_layers: int = 0
    total_elapsed_ms: int = 0
    overall_improvement: float = 0.0
    total_oracle_calls: int = 0
    ledger: Dict[str, Any] = Field(default_factory=dict)


# ──────────────────────────────────────────────
# API Request / Response Models
# ──────────────────────────────────────────────

class RefineRequest(BaseModel):
    """Request to refine a piece of text under a named mode's budget."""
    text: str = Field(..., description="The prompt text to refine", min_length=1)
    mode: Optional[str] = Field(None, description="fast, balanced, thorough or research")
    strategy: Optional[Strategy] = Field(
        None, description="Refinement strategy; chosen from the mode when omitted"
    )
    overrides: Dict[str, Any] = Field(
        default_factory=dict, description="Field-by-field overrides of the mode's budget"
    )


class RefinementOutcome(BaseModel):
    """Everything one refinement run produced, including its full trace."""
    strategy: Strategy
    mode: str
    config: Dict[str, Any] = Field(default_factory=dict)
    static_analysis: StaticAnalysis
    dynamic_analysis: Optional[DomainInsights] = None
    synthesized: Optional[SynthesizedInsights] = None
    original_text: str
    final_text: str
    self_refine: Optional[SelfRefineResult] = None
    progressive: Optional[ProgressiveEnhancementResult] = None
