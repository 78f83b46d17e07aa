"""Tests for the deterministic static analyzer."""
import pytest

from refiner.tools.static_analysis import analyze_prompt, classify_task, detect_patterns

STRUCTURED = """# Task
You are a senior Python reviewer. Review the function below for correctness.

## Requirements
- Point out exactly 3 issues at most
- Use a table for the output format

1. Read the code
2. List the issues
"""


def test_short_vague_prompt():
    analysis = analyze_prompt("help me make some things better")
    assert "Contains vague language" in analysis.issues
    assert "Lacks clear structure" in analysis.issues
    assert "May lack sufficient context" in analysis.issues
    assert analysis.improvement_priority in ("high", "medium")


def test_structured_prompt_scores_higher():
    plain = analyze_prompt("review this function")
    structured = analyze_prompt(STRUCTURED)
    assert structured.quality_scores.structure > plain.quality_scores.structure
    assert structured.quality_scores.overall > plain.quality_scores.overall
    assert "Lacks clear structure" not in structured.issues


def test_scores_are_bounded():
    for text in ("", "x", STRUCTURED, "word " * 500):
        scores = analyze_prompt(text).quality_scores
        for value in (scores.clarity, scores.specificity, scores.structure, scores.context, scores.overall):
            assert 0.0 <= value <= 10.0


def test_empty_text_never_fails():
    analysis = analyze_prompt("")
    assert analysis.task_type == "general"
    assert analysis.improvement_priority == "high"


def test_deterministic():
    assert analyze_prompt(STRUCTURED) == analyze_prompt(STRUCTURED)


@pytest.mark.parametrize(
    "text, task_type",
    [
        ("Write a function that parses dates", "coding"),
        ("Write a short poem about autumn", "creative"),
        ("Summarize this article", "summarization"),
        ("Compare these two vendors", "analysis"),
        ("Draft an email to the team", "writing"),
        ("Why is the sky blue?", "question_answering"),
        ("Bananas", "general"),
    ],
)
def test_classify_task(text, task_type):
    assert classify_task(text) == task_type


def test_detect_patterns():
    patterns = detect_patterns(STRUCTURED)
    assert "role-assignment" in patterns
    assert "structured-output" in patterns
