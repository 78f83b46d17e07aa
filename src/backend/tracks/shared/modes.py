# [Shared: Track Utilities]
"""
Mode/Budget configuration shared by both refinement tracks.

A named mode resolves to a BudgetConfiguration. Callers may override any
field; the feature-toggle map merges key-by-key instead of being replaced.
Resolved configurations are frozen for the duration of a run.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union


@dataclass(frozen=True)
class BudgetConfiguration:
    """Budgets and feature toggles for one refinement run."""
    mode: str
    target_quality: float = 8.5
    max_iterations: int = 3
    enable_self_refine: bool = True
    show_progress: bool = True
    max_oracle_calls: int = 5
    """
    Hard cap on oracle calls per run. Both tracks check the remaining
    budget before every call and stop issuing calls once it cannot cover
    the next step.
    """
    features: Dict[str, bool] = field(default_factory=dict)

    def feature(self, name: str) -> bool:
        return bool(self.features.get(name, False))

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class DomainProfile:
    """Domain-specific emphasis used when the detected domain is known."""
    prioritize_patterns: Tuple[str, ...]
    frameworks: Tuple[str, ...]
    quality_weights: Dict[str, float] = field(default_factory=dict)


# ──────────────────────────────────────────────
# Mode registry
# ──────────────────────────────────────────────

MODES: Dict[str, BudgetConfiguration] = {
    "fast": BudgetConfiguration(
        mode="fast",
        target_quality=7.0,
        max_iterations=1,
        enable_self_refine=False,
        show_progress=False,
        max_oracle_calls=2,
        features={
            "static_analysis": True,
            "dynamic_analysis": False,
            "pattern_detection": True,
            "framework_recommendation": True,
            "self_critique": False,
        },
    ),
    "balanced": BudgetConfiguration(
        mode="balanced",
        target_quality=8.5,
        max_iterations=3,
        max_oracle_calls=5,
        features={
            "static_analysis": True,
            "dynamic_analysis": True,
            "pattern_detection": True,
            "framework_recommendation": True,
            "self_critique": True,
            "variant_generation": False,
        },
    ),
    "thorough": BudgetConfiguration(
        mode="thorough",
        target_quality=9.0,
        max_iterations=5,
        max_oracle_calls=10,
        features={
            "static_analysis": True,
            "dynamic_analysis": True,
            "pattern_detection": True,
            "framework_recommendation": True,
            "self_critique": True,
            "variant_generation": True,
            "domain_optimization": True,
            "edge_case_analysis": True,
            "multi_stage_refinement": True,
        },
    ),
    "research": BudgetConfiguration(
        mode="research",
        target_quality=9.5,
        max_iterations=7,
        max_oracle_calls=15,
        features={
            "static_analysis": True,
            "dynamic_analysis": True,
            "multi_stage_refinement": True,
            "comprehensive_pattern_analysis": True,
            "cross_domain_optimization": True,
            "academic_frameworks": True,
            "citation_generation": True,
            "pattern_detection": True,
            "framework_recommendation": True,
            "self_critique": True,
        },
    ),
}

DOMAIN_PROFILES: Dict[str, DomainProfile] = {
    "technical": DomainProfile(
        prioritize_patterns=("structured-output", "error-handling", "edge-cases"),
        frameworks=("SOLID", "DRY", "KISS"),
        quality_weights={"accuracy": 1.2, "clarity": 1.1, "thoroughness": 1.3, "conciseness": 0.9},
    ),
    "creative": DomainProfile(
        prioritize_patterns=("role-assignment", "few-shot", "emotion-prompting"),
        frameworks=("CARE", "narrative-arc", "show-dont-tell"),
        quality_weights={
            "accuracy": 0.8, "clarity": 1.0, "thoroughness": 0.9,
            "creativity": 1.5, "conciseness": 0.8,
        },
    ),
    "business": DomainProfile(
        prioritize_patterns=("goal-oriented", "metrics-driven", "stakeholder-aware"),
        frameworks=("SMART", "OKR", "SWOT"),
        quality_weights={
            "accuracy": 1.1, "clarity": 1.2, "conciseness": 1.3,
            "actionability": 1.4, "thoroughness": 1.0,
        },
    ),
    "academic": DomainProfile(
        prioritize_patterns=("evidence-based", "systematic", "peer-review"),
        frameworks=("hypothesis-driven", "literature-review", "methodology"),
        quality_weights={
            "accuracy": 1.5, "thoroughness": 1.4, "citations": 1.3,
            "objectivity": 1.2, "clarity": 1.0, "conciseness": 0.8,
        },
    ),
}

_FIELD_NAMES = {f.name for f in fields(BudgetConfiguration)} - {"mode"}


def resolve_config(
    mode: str = "balanced",
    overrides: Optional[Mapping[str, Any]] = None,
) -> BudgetConfiguration:
    """
    Resolve a mode's defaults merged with caller overrides.

    Raises:
        ValueError: unknown mode, unknown override field, or a features
            override that is not a mapping of booleans.
    """
    if mode not in MODES:
        raise ValueError(f"Unknown mode: {mode!r}. Available: {sorted(MODES)}")
    base = MODES[mode]
    overrides = dict(overrides or {})

    unknown = set(overrides) - _FIELD_NAMES
    if unknown:
        raise ValueError(f"Unknown configuration fields: {sorted(unknown)}")

    feature_overrides = overrides.pop("features", None) or {}
    if not isinstance(feature_overrides, Mapping):
        raise ValueError("features must be a mapping of feature name to true/false")
    not_bool = sorted(str(k) for k, v in feature_overrides.items() if not isinstance(v, bool))
    if not_bool:
        raise ValueError(f"Feature flags must be true or false: {not_bool}")

    features = {**base.features, **feature_overrides}
    return replace(base, features=features, **overrides)


def validate_config(
    config: Union[BudgetConfiguration, Mapping[str, Any]],
) -> List[str]:
    """
    Check numeric bounds. Returns violation messages; never raises.

    Accepts a resolved configuration or a partial mapping of overrides,
    in which case only the fields present are checked.
    """
    values = config.to_dict() if isinstance(config, BudgetConfiguration) else dict(config)
    errors: List[str] = []

    checks = (
        ("target_quality", 0, 10),
        ("max_iterations", 1, 10),
        ("max_oracle_calls", 1, 50),
    )
    for name, low, high in checks:
        value = values.get(name)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not low <= value <= high:
            errors.append(f"{name} must be between {low} and {high}")

    return errors


def get_domain_profile(domain: Optional[str]) -> Optional[DomainProfile]:
    """Profile for a detected domain, or None when there is none."""
    if not domain:
        return None
    return DOMAIN_PROFILES.get(domain.strip().lower())
