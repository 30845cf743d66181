"""
Configuration management for the Spectre test harness.

Chain constants mirror the node's development chain spec; the rest is
per-run harness configuration layered as defaults -> YAML file -> environment
-> command line.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from .errors import ConfigError

# Chain
EVM_CHAIN_ID = 1281
PARA_ID = 1000
RELAY_CHAIN = "rococo-local"
TOKEN_SYMBOL = "UNIT"
TOKEN_DECIMALS = 18
UNIT = 10**TOKEN_DECIMALS

# Fees
MIN_GAS_PRICE = 10_000_000_000
TRANSFER_GAS = 21_000

# Ports
DEFAULT_BASE_PORT = 9900
DEFAULT_PORT_STRIDE = 100

DEFAULT_DEV_OPTIONS = [
    "--no-hardware-benchmarks",
    "--no-telemetry",
    "--no-prometheus",
    "--rpc-cors=all",
    "--enable-dev-signer",
]

_TRUTHY = ("true", "1", "yes")

# Accepted YAML value types per field annotation.
_VALUE_TYPES: dict[str, tuple[type, ...]] = {
    "str": (str,),
    "int": (int,),
    "float": (int, float),
    "bool": (bool,),
}


def _env_flag(name: str) -> Optional[bool]:
    value = os.environ.get(name)
    if value is None:
        return None
    return value.lower() in _TRUTHY


@dataclass
class Topology:
    """Node layout for a zombie foundation."""
    relay_chain: str = RELAY_CHAIN
    validators: list[str] = field(default_factory=lambda: ["alice", "bob"])
    para_id: int = PARA_ID
    collators: list[str] = field(default_factory=lambda: ["collator-01", "collator-02"])
    collator_options: list[str] = field(default_factory=list)

    @property
    def node_names(self) -> list[str]:
        return [*self.validators, *self.collators]

    @property
    def node_count(self) -> int:
        return len(self.validators) + len(self.collators)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Topology":
        if not isinstance(data, dict):
            raise ConfigError(f"topology must be a mapping, got {data!r}")
        _reject_unknown(cls, data, "topology")
        _check_types(cls, data, "topology")
        topology = cls(**data)
        if not topology.validators:
            raise ConfigError("topology needs at least one relay validator")
        if not topology.collators:
            raise ConfigError("topology needs at least one collator")
        names = topology.node_names
        if len(set(names)) != len(names):
            raise ConfigError(f"topology node names must be unique: {names}")
        return topology


@dataclass
class HarnessConfig:
    """Main configuration for the test harness."""
    # Binaries
    node_binary: str = "spectre-node"
    relay_binary: str = "polkadot"
    zombienet_binary: str = "zombienet"
    dev_options: list[str] = field(default_factory=lambda: list(DEFAULT_DEV_OPTIONS))

    # Zombie network layout
    topology: Topology = field(default_factory=Topology)

    # Paths
    log_dir: str = "tmp/harness"
    result_dir: str = "results"

    # Resources
    base_port: int = DEFAULT_BASE_PORT
    port_stride: int = DEFAULT_PORT_STRIDE

    # Execution settings
    foundations: Optional[list[str]] = None
    stop_on_first_failure: bool = False
    retain_logs_on_failure: bool = True
    verbose: bool = False

    # Timeouts
    timeout_ms: int = 120_000
    teardown_timeout_s: float = 10.0
    case_timeout_s: float = 300.0
    request_timeout_s: float = 30.0
    poll_interval_s: float = 0.5

    @property
    def timeout_s(self) -> float:
        return self.timeout_ms / 1000

    @classmethod
    def from_yaml(cls, path: str | Path) -> "HarnessConfig":
        """Load configuration from a YAML file."""
        with open(path) as f:
            try:
                data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"{path}: invalid YAML: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: top level must be a mapping")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HarnessConfig":
        data = dict(data)
        _reject_unknown(cls, data, "harness config")
        _check_types(cls, data, "harness config")
        topology = data.pop("topology", None)
        config = cls(**data)
        if topology is not None:
            config.topology = Topology.from_dict(topology)
        config.validate()
        return config

    @classmethod
    def from_env(cls, base: Optional["HarnessConfig"] = None) -> "HarnessConfig":
        """Apply environment variable overrides on top of ``base``."""
        config = base or cls()

        config.node_binary = os.environ.get("NODE_BINARY", config.node_binary)
        config.relay_binary = os.environ.get("RELAY_BINARY", config.relay_binary)
        config.zombienet_binary = os.environ.get("ZOMBIENET_BINARY", config.zombienet_binary)
        config.log_dir = os.environ.get("HARNESS_LOG_DIR", config.log_dir)
        config.result_dir = os.environ.get("RESULT_DIR", config.result_dir)

        timeout = os.environ.get("HARNESS_TIMEOUT_MS")
        if timeout:
            try:
                config.timeout_ms = int(timeout)
            except ValueError:
                raise ConfigError(f"HARNESS_TIMEOUT_MS must be an integer, got {timeout!r}")

        retain = _env_flag("RETAIN_LOGS_ON_FAILURE")
        if retain is not None:
            config.retain_logs_on_failure = retain
        if _env_flag("VERBOSE"):
            config.verbose = True
        if _env_flag("STOP_ON_FIRST_FAILURE"):
            config.stop_on_first_failure = True

        config.validate()
        return config

    def validate(self) -> None:
        if self.timeout_ms <= 0:
            raise ConfigError(f"timeout_ms must be positive, got {self.timeout_ms}")
        if self.port_stride < 2 * (self.topology.node_count + 1):
            raise ConfigError(
                f"port_stride {self.port_stride} too small for "
                f"{self.topology.node_count} nodes"
            )
        if not 1024 <= self.base_port <= 65535 - self.port_stride:
            raise ConfigError(f"base_port {self.base_port} out of range")
        if self.foundations is not None:
            unknown = set(self.foundations) - {"dev", "zombie"}
            if unknown:
                raise ConfigError(f"unknown foundations: {sorted(unknown)}")


def _reject_unknown(cls: type, data: dict[str, Any], what: str) -> None:
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"unknown {what} keys: {sorted(unknown)}")


def _check_types(cls: type, data: dict[str, Any], what: str) -> None:
    """Reject values whose type does not match the field annotation."""
    for f in fields(cls):
        if f.name not in data:
            continue
        value = data[f.name]
        expected = f.type
        if expected.startswith("Optional["):
            if value is None:
                continue
            expected = expected[len("Optional["):-1]
        if expected == "list[str]":
            ok = isinstance(value, list) and all(isinstance(v, str) for v in value)
        elif expected in _VALUE_TYPES:
            ok = isinstance(value, _VALUE_TYPES[expected])
            # bool is an int subclass; only bool fields take true/false.
            if expected != "bool" and isinstance(value, bool):
                ok = False
        else:
            continue
        if not ok:
            raise ConfigError(f"{what} key {f.name!r} must be {expected}, got {value!r}")
