from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from spectre_harness import cli

REPO_ROOT = Path(__file__).resolve().parent.parent

PASSING = """
from spectre_harness import TestCase, describe_suite

def _cases(context):
    def truth(ctx):
        assert True == True
    return [TestCase("truth", truth)]

suite = describe_suite("A", "passing", "dev", _cases)
"""

FAILING = """
from spectre_harness import TestCase, describe_suite

def _cases(context):
    def wrong(ctx):
        assert 1 == 2, "math is broken"
    return [TestCase("wrong", wrong)]

suite = describe_suite("F", "failing", "zombie", _cases)
"""


@pytest.fixture
def fake_nodes(monkeypatch, recording_provisioner):
    provisioner = recording_provisioner()
    monkeypatch.setattr("spectre_harness.runner.Provisioner", lambda config: provisioner)
    return provisioner


def _suites(tmp_path: Path, **files: str) -> str:
    root = tmp_path / "suites"
    root.mkdir()
    for name, source in files.items():
        (root / f"{name}.py").write_text(source)
    return str(root)


def test_list_bundled_suites() -> None:
    result = CliRunner().invoke(cli.main, ["--suites", str(REPO_ROOT / "suites"), "--list"])

    assert result.exit_code == 0, result.output
    lines = result.output.strip().splitlines()
    assert [line.split("\t")[0] for line in lines] == ["DF0101", "END TO END MVP", "BASIC", "T1"]


def test_list_with_foundation_filter() -> None:
    result = CliRunner().invoke(
        cli.main, ["--suites", str(REPO_ROOT / "suites"), "--list", "--foundation", "zombie"]
    )
    assert result.exit_code == 0, result.output
    assert result.output.strip().split("\t")[0] == "END TO END MVP"


def test_passing_run_exits_zero(tmp_path: Path, fake_nodes) -> None:
    suites = _suites(tmp_path, a=PASSING)
    results = tmp_path / "results"

    result = CliRunner().invoke(cli.main, ["--suites", suites, "--result-dir", str(results)])

    assert result.exit_code == 0, result.output
    assert "Overall: PASSED" in result.output
    report = json.loads((results / "harness-report.json").read_text())
    assert report["suite_results"][0]["state"] == "passed"
    assert len(fake_nodes.teardowns) == 1


def test_failing_run_exits_nonzero(tmp_path: Path, fake_nodes) -> None:
    suites = _suites(tmp_path, a=PASSING, f=FAILING)

    result = CliRunner().invoke(
        cli.main, ["--suites", suites, "--result-dir", str(tmp_path / "results")]
    )

    assert result.exit_code == 1
    assert "math is broken" in result.output
    assert len(fake_nodes.teardowns) == 2


def test_suite_id_filter(tmp_path: Path, fake_nodes) -> None:
    suites = _suites(tmp_path, a=PASSING, f=FAILING)

    result = CliRunner().invoke(
        cli.main, ["--suites", suites, "--suite-id", "A", "--result-dir", str(tmp_path / "r")]
    )
    assert result.exit_code == 0, result.output
    assert len(fake_nodes.provisioned) == 1

    result = CliRunner().invoke(cli.main, ["--suites", suites, "--suite-id", "NOPE"])
    assert result.exit_code == 1


def test_empty_suite_dir_exits_nonzero(tmp_path: Path) -> None:
    result = CliRunner().invoke(cli.main, ["--suites", _suites(tmp_path)])
    assert result.exit_code == 1


def test_bad_config_is_a_usage_error(tmp_path: Path) -> None:
    config = tmp_path / "harness.yml"
    config.write_text("bogus: 1\n")

    result = CliRunner().invoke(cli.main, ["--config", str(config), "--list"])
    assert result.exit_code == 2
    assert "bogus" in result.output


def test_wrongly_typed_config_is_a_usage_error(tmp_path: Path) -> None:
    config = tmp_path / "harness.yml"
    config.write_text("timeout_ms: 2m\n")

    result = CliRunner().invoke(cli.main, ["--config", str(config), "--list"])
    assert result.exit_code == 2
    assert "timeout_ms" in result.output
