# [Core: Static Analysis]
"""
Static prompt analyzer — deterministic keyword/regex heuristics.

Produces the baseline quality report both tracks start from. Makes no
oracle calls and never fails: any string, including an empty one, gets a
report.
"""
from __future__ import annotations

import re
from typing import List

from refiner.models.schemas import QualityScores, StaticAnalysis

VAGUE_WORDS = ("good", "nice", "better", "improve", "help", "some", "things")
STRUCTURE_MARKERS = ("<", "###", "1.", "2.", "-")
CONTEXT_WORDS = ("context", "background", "because", "given", "assume", "audience", "goal")

# Pattern -> task type (checked in order, first match wins)
_TASK_PATTERNS: list[tuple[str, str]] = [
    (r"\b(code|function|script|implement|debug|bug|refactor|api|class|sql|regex)\b", "coding"),
    (r"\b(story|poem|creative|fiction|slogan|lyrics|novel)\b", "creative"),
    (r"\b(summari[sz]e|summary|tl;?dr|condense)\b", "summarization"),
    (r"\b(analy[sz]e|compare|evaluate|assess|review|critique)\b", "analysis"),
    (r"\b(translate|translation)\b", "translation"),
    (r"\b(write|draft|compose|email|essay|article|blog)\b", "writing"),
    (r"\b(plan|strategy|roadmap|schedule)\b", "planning"),
    (r"(\?|\b(explain|what|how|why|describe)\b)", "question_answering"),
]

_PATTERN_DETECTORS: list[tuple[str, str]] = [
    (r"\byou are\b|\bact as\b", "role-assignment"),
    (r"\bexamples?\b|\be\.g\.", "few-shot"),
    (r"\bstep[- ]by[- ]step\b|\bthink through\b", "chain-of-thought"),
    (r"\bjson\b|\btable\b|\bformat\b|\bbullet", "structured-output"),
    (r"<\w+>", "xml-tags"),
    (r"\bmust\b|\bshould not\b|\bdo not\b|\bavoid\b", "explicit-constraints"),
]

_FRAMEWORKS_BY_TASK = {
    "coding": ["SOLID", "DRY", "KISS"],
    "creative": ["CARE", "narrative-arc", "show-dont-tell"],
    "analysis": ["SWOT", "hypothesis-driven"],
    "planning": ["SMART", "OKR"],
    "writing": ["CARE", "pyramid-principle"],
    "summarization": ["pyramid-principle"],
    "translation": ["clear-instructions"],
    "question_answering": ["chain-of-thought"],
    "general": ["clear-instructions", "structured-output"],
}


def classify_task(text: str) -> str:
    """Classify the task a prompt asks for, by first matching pattern."""
    lowered = text.lower()
    for pattern, task_type in _TASK_PATTERNS:
        if re.search(pattern, lowered):
            return task_type
    return "general"


def detect_patterns(text: str) -> List[str]:
    lowered = text.lower()
    return [name for pattern, name in _PATTERN_DETECTORS if re.search(pattern, lowered)]


def _score_structure(text: str) -> float:
    families = [
        bool(re.search(r"^\s*#{1,6}\s", text, re.MULTILINE)),
        bool(re.search(r"^\s*[-*]\s", text, re.MULTILINE)),
        bool(re.search(r"^\s*\d+[.)]\s", text, re.MULTILINE)),
        bool(re.search(r"<\w+>", text)),
    ]
    return min(10.0, 3.0 + 2.0 * sum(families) + (1.0 if text.count("\n") >= 3 else 0.0))


def _score_context(text: str, word_count: int) -> float:
    if word_count < 20:
        score = 3.0
    elif word_count < 50:
        score = 5.0
    elif word_count < 150:
        score = 7.0
    else:
        score = 8.0
    lowered = text.lower()
    if any(word in lowered for word in CONTEXT_WORDS):
        score += 1.0
    return min(score, 10.0)


def _score_specificity(text: str, has_vague: bool) -> float:
    score = 6.0
    if has_vague:
        score -= 1.5
    if re.search(r"\d", text):
        score += 1.0
    if re.search(r"\b(exactly|specific|only|at least|at most|no more than)\b", text.lower()):
        score += 1.5
    return min(max(score, 0.0), 10.0)


def _score_clarity(text: str, has_vague: bool) -> float:
    score = 7.0
    if has_vague:
        score -= 1.0
    sentences = [s for s in re.split(r"[.!?]+", text) if s.strip()]
    if sentences:
        avg_words = sum(len(s.split()) for s in sentences) / len(sentences)
        if avg_words > 30:
            score -= 1.0
    else:
        score -= 3.0
    return min(max(score, 0.0), 10.0)


def analyze_prompt(text: str) -> StaticAnalysis:
    """
    Analyze a prompt for common issues and improvement opportunities.

    Returns:
        StaticAnalysis with issues, suggestions, 0-10 quality scores,
        task type, detected patterns and recommended frameworks.
    """
    issues: List[str] = []
    suggestions: List[str] = []
    lowered = text.lower()
    word_count = len(text.split())

    has_vague = any(word in lowered for word in VAGUE_WORDS)
    if has_vague:
        issues.append("Contains vague language")
        suggestions.append("Replace vague terms with specific requirements")

    if not any(marker in text for marker in STRUCTURE_MARKERS):
        issues.append("Lacks clear structure")
        suggestions.append("Add structure using XML tags or numbered steps")

    if word_count < 20:
        issues.append("May lack sufficient context")
        suggestions.append("Add background information and constraints")

    if "example" not in lowered:
        suggestions.append("Consider adding examples of desired output")

    clarity = _score_clarity(text, has_vague)
    specificity = _score_specificity(text, has_vague)
    structure = _score_structure(text)
    context = _score_context(text, word_count)
    overall = round((clarity + specificity + structure + context) / 4, 1)

    if overall < 5.0:
        priority = "high"
    elif overall < 7.5:
        priority = "medium"
    else:
        priority = "low"

    task_type = classify_task(text)

    return StaticAnalysis(
        issues=issues,
        suggestions=suggestions,
        quality_scores=QualityScores(
            clarity=round(clarity, 1),
            specificity=round(specificity, 1),
            structure=round(structure, 1),
            context=round(context, 1),
            overall=overall,
        ),
        task_type=task_type,
        detected_patterns=detect_patterns(text),
        recommended_frameworks=list(_FRAMEWORKS_BY_TASK.get(task_type, _FRAMEWORKS_BY_TASK["general"])),
        improvement_priority=priority,
    )
