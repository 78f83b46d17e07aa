"""Tests for the oracle gateway: transport errors, fences, structured parsing."""
import asyncio
import shlex
import sys

import pytest

from refiner.models.schemas import CritiqueReport, DomainInsights
from refiner.services import oracle as oracle_module
from refiner.services.oracle import (
    OracleGateway,
    OracleMalformed,
    OracleUnavailable,
    strip_code_fences,
)


def test_strip_code_fences_whole_response():
    assert strip_code_fences("```markdown\n# Title\nBody\n```") == "# Title\nBody"


def test_strip_code_fences_leaves_inner_fences():
    text = "Intro\n```python\nprint(1)\n```\nOutro"
    assert strip_code_fences(text) == text


async def test_invoke_counts_and_strips(scripted_gateway):
    gateway, transport = scripted_gateway(["```\nimproved prompt\n```\n"])
    assert await gateway.invoke("hello") == "improved prompt"
    assert gateway.call_count == 1
    assert transport.requests == ["hello"]


async def test_transport_error_becomes_unavailable(scripted_gateway):
    gateway, _ = scripted_gateway([ConnectionError("refused")])
    with pytest.raises(OracleUnavailable):
        await gateway.invoke("hello")
    assert gateway.call_count == 1
    assert gateway.failure_count == 1


async def test_timeout_becomes_unavailable():
    async def slow(_request: str) -> str:
        await asyncio.sleep(1)
        return "late"

    gateway = OracleGateway(transport=slow, timeout_seconds=0.01)
    with pytest.raises(OracleUnavailable, match="timed out"):
        await gateway.invoke("hello")
    assert gateway.failure_count == 1


async def test_invoke_structured_reads_aliases(scripted_gateway, critique):
    gateway, _ = scripted_gateway([critique(7.5, should_continue=False)])
    report = await gateway.invoke_structured("critique", CritiqueReport)
    assert report.overall_score == 7.5
    assert report.continuation_advice is False


def test_parse_json_wrapped_in_prose():
    raw = 'Here is my critique:\n{"score": 8, "shouldContinue": true}\nHope that helps.'
    report = OracleGateway.parse_structured(raw, CritiqueReport)
    assert report.overall_score == 8.0
    assert report.continuation_advice is True


def test_parse_repairs_truncated_json():
    raw = '{"score": 6.5, "improvements": ["add examples", "state the audi'
    report = OracleGateway.parse_structured(raw, CritiqueReport)
    assert report.overall_score == 6.5
    assert len(report.improvements) == 2


def test_parse_clamps_and_defaults_scores():
    report = OracleGateway.parse_structured('{"score": 42, "clarity": "n/a"}', CritiqueReport)
    assert report.overall_score == 10.0
    assert report.clarity == 5.0


def test_parse_rejects_non_object():
    with pytest.raises(OracleMalformed):
        OracleGateway.parse_structured("[1, 2, 3]", CritiqueReport)


def test_parse_rejects_prose():
    with pytest.raises(OracleMalformed) as excinfo:
        OracleGateway.parse_structured("I cannot evaluate this.", CritiqueReport)
    assert excinfo.value.raw == "I cannot evaluate this."


def test_domain_insights_sanitized():
    raw = (
        '{"improvementPotential": "enormous", "expertiseLevel": "Guru", '
        '"domainConfidence": 3, "detectedDomain": "", "contextGaps": "audience"}'
    )
    insights = OracleGateway.parse_structured(raw, DomainInsights)
    assert insights.improvement_potential.value == "medium"
    assert insights.expertise_level.value == "intermediate"
    assert insights.domain_confidence == 0.7
    assert insights.detected_domain == "general"
    assert insights.context_gaps == ["audience"]


def test_parse_skips_bracketed_prose_before_object():
    raw = 'Scores [below]: {"score": 8, "shouldContinue": false}'
    report = OracleGateway.parse_structured(raw, CritiqueReport)
    assert report.overall_score == 8.0
    assert report.continuation_advice is False


def test_parse_ignores_braces_inside_strings():
    raw = 'Critique: {"score": 7, "recommendation": "use {placeholders} and ]"} done'
    report = OracleGateway.parse_structured(raw, CritiqueReport)
    assert report.overall_score == 7.0
    assert report.recommendation == "use {placeholders} and ]"


# ──────────────────────────────────────────────
# CLI backend
# ──────────────────────────────────────────────

def _python_command(code: str) -> str:
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(code)}"


@pytest.fixture
def cli_backend(monkeypatch):
    def use(code: str) -> None:
        monkeypatch.setattr(oracle_module.settings, "oracle_backend", "cli")
        monkeypatch.setattr(oracle_module.settings, "oracle_cli_command", _python_command(code))
    return use


async def test_cli_backend_pipes_stdin(cli_backend):
    cli_backend("import sys; print(sys.stdin.read().upper())")
    gateway = OracleGateway(timeout_seconds=30)
    assert await gateway.invoke("make it loud") == "MAKE IT LOUD"


async def test_cli_backend_nonzero_exit_is_unavailable(cli_backend):
    cli_backend("import sys; sys.stderr.write('no auth'); sys.exit(3)")
    gateway = OracleGateway(timeout_seconds=30)
    with pytest.raises(OracleUnavailable, match="status 3"):
        await gateway.invoke("hello")


async def test_cli_timeout_kills_and_reaps_child(cli_backend, monkeypatch):
    cli_backend("import time; time.sleep(30)")
    spawned = []
    real_exec = asyncio.create_subprocess_exec

    async def tracking_exec(*args, **kwargs):
        proc = await real_exec(*args, **kwargs)
        spawned.append(proc)
        return proc

    monkeypatch.setattr(oracle_module.asyncio, "create_subprocess_exec", tracking_exec)
    gateway = OracleGateway(timeout_seconds=0.5)
    with pytest.raises(OracleUnavailable, match="timed out"):
        await gateway.invoke("hello")

    assert len(spawned) == 1
    assert spawned[0].returncode is not None
