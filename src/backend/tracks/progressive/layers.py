# [Track P: Progressive Enhancement]
"""
Track P — Enhancement layer registry.

The five layers are static records applied in priority order:
Structure → Context → Examples → Constraints → Success Criteria.
Each record carries its skip conditions, the request it sends to the
oracle, and the predicate that decides whether the oracle's candidate is
accepted. New layers are added by appending a record to LAYERS.

The validation thresholds below are heuristics reproduced as-is; they can
reject good output and accept poor output.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from refiner.models.schemas import DomainInsights, ExpertiseLevel, StaticAnalysis
from refiner.services.cache import ResponseCache
from refiner.services.oracle import OracleGateway
from tracks.shared.modes import BudgetConfiguration, get_domain_profile


@dataclass
class EnhancementContext:
    """Per-run state threaded through every layer. Owned by one pipeline run."""
    original_text: str
    static_analysis: StaticAnalysis
    dynamic_analysis: Optional[DomainInsights]
    config: BudgetConfiguration
    accepted_layers: List[str] = field(default_factory=list)
    domain_specific: bool = False
    expertise_level: ExpertiseLevel = ExpertiseLevel.INTERMEDIATE
    iteration_count: int = 1

    @classmethod
    def create(
        cls,
        text: str,
        static_analysis: StaticAnalysis,
        dynamic_analysis: Optional[DomainInsights],
        config: BudgetConfiguration,
    ) -> "EnhancementContext":
        return cls(
            original_text=text,
            static_analysis=static_analysis,
            dynamic_analysis=dynamic_analysis,
            config=config,
            domain_specific=bool(dynamic_analysis and dynamic_analysis.domain_confidence > 0.7),
            expertise_level=(
                dynamic_analysis.expertise_level if dynamic_analysis else ExpertiseLevel.INTERMEDIATE
            ),
        )

    @property
    def domain(self) -> str:
        return self.dynamic_analysis.detected_domain if self.dynamic_analysis else "general"

    def top(self, attribute: str, n: int) -> List[str]:
        """First n items of one of the dynamic analysis gap lists."""
        if self.dynamic_analysis is None:
            return []
        return list(getattr(self.dynamic_analysis, attribute))[:n]

    def cache_context(self) -> dict:
        return {
            "expertise": self.expertise_level.value,
            "domain_specific": str(self.domain_specific).lower(),
            "iteration": self.iteration_count,
        }


@dataclass(frozen=True)
class EnhancementLayer:
    key: str
    name: str
    description: str
    priority: int
    skip_conditions: Tuple[str, ...]
    build_request: Callable[[str, EnhancementContext], str]
    validate: Callable[[str, str], bool]

    async def apply(
        self,
        text: str,
        context: EnhancementContext,
        gateway: OracleGateway,
        cache: ResponseCache,
    ) -> Tuple[str, bool]:
        """
        Produce a candidate for this layer with one oracle call.

        Returns:
            (candidate text, whether it came from the cache)

        Raises:
            OracleError: the oracle call failed.
        """
        key = cache.make_key(self.key, text, context.cache_context())
        cached = cache.get(key)
        if cached is not None:
            return cached, True

        candidate = await gateway.invoke(self.build_request(text, context))
        if candidate:
            cache.set(key, candidate)
        return candidate, False


# ──────────────────────────────────────────────
# Skip conditions (checked in this order)
# ──────────────────────────────────────────────

SkipPredicate = Callable[[str], bool]

SKIP_CONDITIONS: List[Tuple[str, SkipPredicate, str]] = [
    ("very_short_prompt", lambda t: len(t) < 50, "prompt_too_short"),
    ("very_long_prompt", lambda t: len(t) > 2000, "prompt_too_long"),
    ("already_structured", lambda t: "#" in t or "- " in t or "1." in t, "already_has_structure"),
    ("example_rich", lambda t: "example" in t.lower() or "e.g." in t, "already_has_examples"),
    ("constraint_heavy", lambda t: "must" in t or "required" in t, "already_has_constraints"),
]


def skip_reason(layer: EnhancementLayer, text: str) -> Optional[str]:
    """Reason for the first declared skip condition that holds, else None."""
    for name, predicate, reason in SKIP_CONDITIONS:
        if name in layer.skip_conditions and predicate(text):
            return reason
    return None


# ──────────────────────────────────────────────
# Validators
# ──────────────────────────────────────────────

CONTEXT_WORDS = ("context", "background", "consider", "given", "assume", "requirements")
CONSTRAINT_WORDS = ("must", "should", "required", "constraint", "limit", "not", "avoid", "ensure", "requirement")
CRITERIA_WORDS = ("success", "criteria", "measure", "evaluate", "assess", "quality", "validate", "check")


def _growth(before: str, after: str) -> float:
    return len(after) / len(before)


def _newly_present(words: Tuple[str, ...], before: str, after: str) -> bool:
    before, after = before.lower(), after.lower()
    return any(word in after and word not in before for word in words)


def validate_structure(before: str, after: str) -> bool:
    if not before:
        return False
    more_lines = after.count("\n") > before.count("\n")
    has_headers = "#" in after
    has_bullets = "- " in after or "* " in after
    has_numbers = re.search(r"\d+\.\s", after) is not None
    return (
        (more_lines or has_headers or has_bullets or has_numbers)
        and len(after) > len(before) * 1.1
        and len(after) < len(before) * 2.5
    )


def validate_context(before: str, after: str) -> bool:
    if not before:
        return False
    growth = _growth(before, after)
    return 1.2 <= growth <= 3.0 and _newly_present(CONTEXT_WORDS, before, after)


def validate_examples(before: str, after: str) -> bool:
    if not before:
        return False
    has_examples = (
        "example" in after.lower()
        or "e.g." in after
        or "for instance" in after
        or "```" in after
        or "such as" in after
    )
    return has_examples and 1.15 <= _growth(before, after) <= 2.5


def validate_constraints(before: str, after: str) -> bool:
    if not before:
        return False
    lower_before, lower_after = before.lower(), after.lower()
    more_constraints = any(
        lower_after.count(word) > lower_before.count(word) for word in CONSTRAINT_WORDS
    )
    return more_constraints and 1.1 <= _growth(before, after) <= 2.0


def validate_success_criteria(before: str, after: str) -> bool:
    if not before:
        return False
    return _newly_present(CRITERIA_WORDS, before, after) and 1.05 <= _growth(before, after) <= 1.5


# ──────────────────────────────────────────────
# Oracle requests
# ──────────────────────────────────────────────

def _profile_hint(context: EnhancementContext) -> str:
    profile = get_domain_profile(context.domain)
    if profile is None:
        return ""
    return (
        f"\n- Prioritize patterns: {', '.join(profile.prioritize_patterns)}"
        f"\n- Relevant frameworks: {', '.join(profile.frameworks)}"
    )


def _request(focus: str, intro: str, text: str, goals: str, guidance: str, rules: str) -> str:
    return (
        f"You are a prompt engineer focusing on {focus}. {intro}\n\n"
        f"CURRENT PROMPT:\n{text}\n\n"
        f"ENHANCEMENT GOALS:\n{goals}\n\n"
        f"GUIDANCE:\n{guidance}\n\n"
        f"IMPORTANT:\n{rules}\n"
        f"- Return ONLY the enhanced prompt text"
    )


def structure_request(text: str, context: EnhancementContext) -> str:
    return _request(
        "STRUCTURE AND CLARITY",
        "Enhance this prompt by adding clear organization and logical flow.",
        text,
        "- Add clear structure using headers, bullet points, or numbered steps\n"
        "- Improve logical flow and organization\n"
        f"- Make the structure appropriate for {context.expertise_level.value} level users",
        f"- Domain: {context.domain}\n"
        f"- User expertise: {context.expertise_level.value}\n"
        f"- Task type: {context.static_analysis.task_type}" + _profile_hint(context),
        "- Keep the original intent and content\n"
        "- Don't add new requirements or change scope\n"
        "- Use markdown formatting for structure",
    )


def context_request(text: str, context: EnhancementContext) -> str:
    gaps = context.top("context_gaps", 3)
    domain_line = (
        f"This is a {context.domain} prompt. Add relevant domain-specific context."
        if context.dynamic_analysis
        else "Add general context that would be helpful."
    )
    return _request(
        "CONTEXT AND BACKGROUND",
        "Add relevant contextual information to this prompt.",
        text,
        "- Add relevant background information and context\n"
        "- Include domain-specific details and considerations\n"
        "- Provide necessary setup or prerequisite information",
        f"{domain_line}\n"
        f"- User expertise: {context.expertise_level.value}\n"
        f"- Key missing context gaps: {', '.join(gaps) or 'general context'}" + _profile_hint(context),
        "- Build on the existing structure\n"
        "- Don't add unnecessary fluff or obvious information",
    )


def examples_request(text: str, context: EnhancementContext) -> str:
    patterns = context.top("suggested_patterns", 2)
    return _request(
        "EXAMPLES AND PATTERNS",
        "Add relevant examples and pattern demonstrations to this prompt.",
        text,
        "- Add 1-2 relevant examples that illustrate the expected output\n"
        "- Include templates or patterns where appropriate\n"
        "- Demonstrate good vs. poor results where helpful",
        (f"Apply these patterns: {', '.join(patterns)}" if patterns else "Add helpful examples")
        + f"\n- Task type: {context.static_analysis.task_type}"
        f"\n- Domain: {context.domain}",
        "- Build on the existing content and structure\n"
        "- Use realistic, practical examples",
    )


def constraints_request(text: str, context: EnhancementContext) -> str:
    edge_cases = context.top("overlooked_edge_cases", 2)
    issues = context.top("domain_specific_issues", 2)
    return _request(
        "CONSTRAINTS AND REQUIREMENTS",
        "Add specific constraints, requirements, and edge case handling.",
        text,
        "- Add specific constraints and requirements\n"
        "- Include edge case handling and error conditions\n"
        "- Specify limits, boundaries, and format requirements",
        (f"Address these edge cases: {', '.join(edge_cases)}" if edge_cases
         else "Add relevant constraints and requirements")
        + f"\n- User expertise: {context.expertise_level.value}"
        f"\n- Domain considerations: {', '.join(issues) or 'standard requirements'}",
        "- Build on the existing structure and content\n"
        "- Be specific about what NOT to do when relevant",
    )


def success_request(text: str, context: EnhancementContext) -> str:
    criteria = context.top("missing_success_criteria", 2)
    return _request(
        "SUCCESS CRITERIA AND VALIDATION",
        "Add clear success criteria and validation methods.",
        text,
        "- Define what success looks like for this task\n"
        "- Add quality criteria and evaluation methods\n"
        "- Specify how to measure or assess the output",
        (f"Define success criteria for: {', '.join(criteria)}" if criteria
         else "Add clear success criteria and quality measures")
        + f"\n- Task type: {context.static_analysis.task_type}"
        f"\n- Expected quality level: {context.config.target_quality}/10",
        "- Build on all previous enhancements\n"
        "- Don't add criteria that are impossible to verify",
    )


# ──────────────────────────────────────────────
# Registry
# ──────────────────────────────────────────────

LAYERS: Tuple[EnhancementLayer, ...] = (
    EnhancementLayer(
        key="structure",
        name="Structure & Clarity",
        description="Add clear structure, organization, and logical flow",
        priority=1,
        skip_conditions=("already_structured", "very_short_prompt"),
        build_request=structure_request,
        validate=validate_structure,
    ),
    EnhancementLayer(
        key="context",
        name="Context & Background",
        description="Add relevant context, background information, and domain-specific details",
        priority=2,
        skip_conditions=("context_rich", "very_long_prompt"),
        build_request=context_request,
        validate=validate_context,
    ),
    EnhancementLayer(
        key="examples",
        name="Examples & Patterns",
        description="Add relevant examples, templates, and pattern demonstrations",
        priority=3,
        skip_conditions=("example_rich", "simple_task"),
        build_request=examples_request,
        validate=validate_examples,
    ),
    EnhancementLayer(
        key="constraints",
        name="Constraints & Requirements",
        description="Add specific constraints, requirements, and edge case handling",
        priority=4,
        skip_conditions=("constraint_heavy", "creative_task"),
        build_request=constraints_request,
        validate=validate_constraints,
    ),
    EnhancementLayer(
        key="success",
        name="Success Criteria & Validation",
        description="Add clear success criteria and validation methods",
        priority=5,
        skip_conditions=("criteria_defined", "simple_output"),
        build_request=success_request,
        validate=validate_success_criteria,
    ),
)
