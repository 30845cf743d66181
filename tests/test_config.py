from __future__ import annotations

from pathlib import Path

import pytest

from spectre_harness.config import HarnessConfig, Topology
from spectre_harness.errors import ConfigError

REPO_ROOT = Path(__file__).resolve().parent.parent


def test_defaults() -> None:
    config = HarnessConfig()
    assert config.timeout_ms == 120_000
    assert config.timeout_s == 120.0
    assert config.retain_logs_on_failure is True
    assert config.topology.node_names == ["alice", "bob", "collator-01", "collator-02"]
    config.validate()


def test_bundled_yaml_loads() -> None:
    config = HarnessConfig.from_yaml(REPO_ROOT / "harness.yml")
    assert config.topology.para_id == 1000
    assert "--enable-dev-signer" in config.dev_options
    assert config.timeout_ms == 120000


def test_yaml_rejects_unknown_keys(tmp_path: Path) -> None:
    path = tmp_path / "harness.yml"
    path.write_text("timeout_ms: 5000\nnodes: 3\n")
    with pytest.raises(ConfigError) as exc:
        HarnessConfig.from_yaml(path)
    assert "nodes" in exc.value.message

    path.write_text("topology:\n  relays: [alice]\n")
    with pytest.raises(ConfigError):
        HarnessConfig.from_yaml(path)


def test_yaml_topology(tmp_path: Path) -> None:
    path = tmp_path / "harness.yml"
    path.write_text(
        "timeout_ms: 5000\n"
        "topology:\n"
        "  validators: [alice, bob, charlie]\n"
        "  collators: [c1]\n"
        "  para_id: 2000\n"
    )
    config = HarnessConfig.from_yaml(path)
    assert config.timeout_ms == 5000
    assert config.topology.node_count == 4
    assert config.topology.para_id == 2000


def test_invalid_yaml(tmp_path: Path) -> None:
    path = tmp_path / "harness.yml"
    path.write_text("timeout_ms: [\n")
    with pytest.raises(ConfigError):
        HarnessConfig.from_yaml(path)

    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError):
        HarnessConfig.from_yaml(path)


@pytest.mark.parametrize("data", [
    {"validators": []},
    {"collators": []},
    {"validators": ["alice"], "collators": ["alice"]},
])
def test_topology_validation(data) -> None:
    with pytest.raises(ConfigError):
        Topology.from_dict(data)


def test_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("NODE_BINARY", "/opt/spectre-node")
    monkeypatch.setenv("HARNESS_TIMEOUT_MS", "2500")
    monkeypatch.setenv("RETAIN_LOGS_ON_FAILURE", "no")
    monkeypatch.setenv("STOP_ON_FIRST_FAILURE", "true")

    config = HarnessConfig.from_env()
    assert config.node_binary == "/opt/spectre-node"
    assert config.timeout_ms == 2500
    assert config.retain_logs_on_failure is False
    assert config.stop_on_first_failure is True


def test_env_rejects_bad_timeout(monkeypatch) -> None:
    monkeypatch.setenv("HARNESS_TIMEOUT_MS", "soon")
    with pytest.raises(ConfigError):
        HarnessConfig.from_env()


def test_validate_bounds() -> None:
    with pytest.raises(ConfigError):
        HarnessConfig(timeout_ms=0).validate()
    with pytest.raises(ConfigError):
        HarnessConfig(port_stride=4).validate()
    with pytest.raises(ConfigError):
        HarnessConfig(foundations=["docker"]).validate()


def test_defaults_enable_dev_signer() -> None:
    assert "--enable-dev-signer" in HarnessConfig().dev_options


@pytest.mark.parametrize("text", [
    "timeout_ms: 2m\n",
    "retain_logs_on_failure: maybe\n",
    "base_port: true\n",
    "dev_options: --dev\n",
    "foundations: [dev, 3]\n",
    "topology:\n  para_id: one\n",
    "topology: [alice]\n",
])
def test_yaml_rejects_wrong_value_types(tmp_path: Path, text: str) -> None:
    path = tmp_path / "harness.yml"
    path.write_text(text)
    with pytest.raises(ConfigError):
        HarnessConfig.from_yaml(path)


def test_yaml_accepts_int_for_float_fields(tmp_path: Path) -> None:
    path = tmp_path / "harness.yml"
    path.write_text("teardown_timeout_s: 3\nfoundations: null\n")
    config = HarnessConfig.from_yaml(path)
    assert config.teardown_timeout_s == 3
    assert config.foundations is None
