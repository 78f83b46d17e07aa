"""Tests for the command-line entry point."""
import json

import pytest

from refiner.agent.orchestrator import RefinementOrchestrator
from refiner.cli import build_parser, run
from refiner.services.oracle import OracleGateway
from tests.scripted import ScriptedTransport, critique_json

TEXT = "Write a function that validates email addresses and returns a boolean result."


@pytest.fixture
def orchestrator():
    transport = ScriptedTransport(default=lambda request: critique_json(9.5))
    return RefinementOrchestrator(OracleGateway(transport=transport, timeout_seconds=5))


async def test_prints_final_text(orchestrator, capsys):
    code = await run(["--quiet", "--strategy", "self_refine", TEXT], orchestrator)
    assert code == 0
    assert capsys.readouterr().out.strip() == TEXT


async def test_json_output(orchestrator, capsys):
    code = await run(["--json", "--mode", "fast", "--strategy", "self_refine", *TEXT.split()], orchestrator)
    assert code == 0
    outcome = json.loads(capsys.readouterr().out)
    assert outcome["mode"] == "fast"
    assert outcome["original_text"] == TEXT


async def test_reads_file(orchestrator, capsys, tmp_path):
    path = tmp_path / "prompt.txt"
    path.write_text(TEXT + "\n", encoding="utf-8")
    code = await run(["--quiet", "-f", str(path), "--strategy", "self_refine"], orchestrator)
    assert code == 0
    assert capsys.readouterr().out.strip() == TEXT


async def test_invalid_budget_exits_2(orchestrator, capsys):
    code = await run(["--max-calls", "0", TEXT], orchestrator)
    assert code == 2
    assert "max_oracle_calls must be between 1 and 50" in capsys.readouterr().err


def test_overrides_from_flags():
    args = build_parser().parse_args(["--max-iterations", "4", "--max-calls", "9", "--target-quality", "9.1", "x"])
    assert (args.max_iterations, args.max_calls, args.target_quality) == (4, 9, 9.1)
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--mode", "turbo", "x"])
