"""Shared fixtures: short-timeout config, a recording provisioner, stand-in nodes."""

from __future__ import annotations

import itertools
import os
import stat
import sys
import textwrap
from pathlib import Path
from typing import Any, Callable, Optional

import pytest

from spectre_harness.client import ChainClient
from spectre_harness.config import HarnessConfig
from spectre_harness.errors import TeardownFailure
from spectre_harness.provisioner import Foundation, PortBlock
from spectre_harness.types import FoundationKind

# Each config gets its own slot of three port blocks, offset by pid so
# concurrent runs rarely meet.
_PORT_SLOTS = itertools.count(os.getpid() % 150)


@pytest.fixture
def config(tmp_path: Path) -> HarnessConfig:
    return HarnessConfig(
        log_dir=str(tmp_path / "logs"),
        result_dir=str(tmp_path / "results"),
        base_port=20000 + (next(_PORT_SLOTS) % 150) * 300,
        timeout_ms=3000,
        teardown_timeout_s=2.0,
        case_timeout_s=5.0,
        request_timeout_s=1.0,
        poll_interval_s=0.05,
    )


class RecordingProvisioner:
    """Stands in for Provisioner without starting processes."""

    def __init__(self, workdir: Path, fail_with: Optional[BaseException] = None,
                 teardown_error: Optional[str] = None):
        self.workdir = workdir
        self.fail_with = fail_with
        self.teardown_error = teardown_error
        self.provisioned: list[Foundation] = []
        self.teardowns: list[tuple[Foundation, bool]] = []

    async def provision(self, kind: Any, label: str = "suite") -> Foundation:
        if self.fail_with is not None:
            raise self.fail_with
        kind = FoundationKind.parse(kind)
        name = "dev" if kind is FoundationKind.DEV else "collator-01"
        foundation = Foundation(
            kind=kind,
            workdir=self.workdir,
            ports=PortBlock(index=len(self.provisioned), start=9900, size=100),
            clients={name: ChainClient("http://127.0.0.1:9", name=name)},
            primary=name,
        )
        self.provisioned.append(foundation)
        return foundation

    async def teardown(self, foundation: Foundation, failed: bool = False) -> None:
        self.teardowns.append((foundation, failed))
        foundation.torn_down = True
        if self.teardown_error:
            raise TeardownFailure(self.teardown_error)


@pytest.fixture
def recording_provisioner(tmp_path: Path) -> Callable[..., RecordingProvisioner]:
    def _make(**kwargs: Any) -> RecordingProvisioner:
        return RecordingProvisioner(tmp_path, **kwargs)

    return _make


# Stand-in node: answers JSON-RPC on the port passed as --rpc-port=N.
_FAKE_NODE = """
import json
import sys
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

RESULTS = {
    "system_health": {"peers": 0, "isSyncing": False, "shouldHavePeers": False},
    "eth_chainId": "0x501",
    "eth_blockNumber": "0x0",
}


class Handler(BaseHTTPRequestHandler):
    def do_POST(self):
        body = json.loads(self.rfile.read(int(self.headers["Content-Length"])))
        reply = {"jsonrpc": "2.0", "id": body["id"], "result": RESULTS.get(body["method"])}
        data = json.dumps(reply).encode()
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def log_message(self, *args):
        pass
"""

FAKE_DEV_NODE = _FAKE_NODE + """
port = next(int(a.split("=", 1)[1]) for a in sys.argv if a.startswith("--rpc-port="))
ThreadingHTTPServer(("127.0.0.1", port), Handler).serve_forever()
"""

FAKE_ZOMBIENET = _FAKE_NODE + """
import threading

network = json.load(open(sys.argv[-1]))
nodes = network["relaychain"]["nodes"] + network["parachains"][0]["collators"]
servers = [ThreadingHTTPServer(("127.0.0.1", n["rpc_port"]), Handler) for n in nodes]
for server in servers[1:]:
    threading.Thread(target=server.serve_forever, daemon=True).start()
servers[0].serve_forever()
"""

SLEEPER = """
import time
time.sleep(600)
"""

PORT_CONFLICT = """
import sys
print("Error: Address already in use (os error 98)", flush=True)
sys.exit(1)
"""

CRASHER = """
import sys
print("Error: invalid chain spec", flush=True)
sys.exit(3)
"""


@pytest.fixture
def make_executable(tmp_path: Path) -> Callable[[str, str], str]:
    """Write a Python script with a shebang and return its path."""

    def _make(name: str, source: str) -> str:
        path = tmp_path / "bin" / name
        path.parent.mkdir(exist_ok=True)
        path.write_text(f"#!{sys.executable}\n" + textwrap.dedent(source))
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        return str(path)

    return _make
