"""
Foundation provisioning.

A foundation is the live environment a suite runs against: either a single
manual-seal dev node, or a zombienet-spawned relay chain plus parachain
collators. The provisioner owns every process it starts and guarantees they
are stopped again, even when startup fails halfway.
"""

from __future__ import annotations

import asyncio
import json
import logging
import math
import os
import re
import shutil
import signal
import socket
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Any, Optional

from .client import ChainClient, connect
from .config import HarnessConfig, Topology
from .errors import (
    ErrorCode,
    NodeExited,
    ProvisionConflict,
    ProvisionError,
    ProvisionTimeout,
    TeardownFailure,
    describe,
)
from .types import FoundationKind

logger = logging.getLogger(__name__)

_CONFLICT_PATTERN = re.compile(
    r"address already in use|address in use|os error 98|port .* (?:is )?in use",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class PortBlock:
    """A contiguous range of ports owned by one foundation.

    Node ``i`` gets ``start + 2i`` for RPC and ``start + 2i + 1`` for p2p.
    """
    index: int
    start: int
    size: int

    def rpc_port(self, node: int) -> int:
        return self._port(2 * node)

    def p2p_port(self, node: int) -> int:
        return self._port(2 * node + 1)

    def ports(self, nodes: int) -> list[int]:
        return [self._port(i) for i in range(2 * nodes)]

    def _port(self, offset: int) -> int:
        if offset >= self.size:
            raise ValueError(f"port offset {offset} outside block of {self.size}")
        return self.start + offset


class PortAllocator:
    """Hands out disjoint port blocks, rotating through the range.

    A released block is not handed out again until the others in range have
    been used, so a new foundation rarely lands on ports the previous one just
    closed.
    """

    def __init__(self, base_port: int, stride: int):
        self.base_port = base_port
        self.stride = stride
        self.capacity = max(0, (65536 - base_port) // stride)
        self._in_use: set[int] = set()
        self._next = 0

    def acquire(self) -> PortBlock:
        for offset in range(self.capacity):
            index = (self._next + offset) % self.capacity
            if index not in self._in_use:
                break
        else:
            raise ProvisionConflict(f"no free port block at or above {self.base_port}")
        self._next = index + 1
        self._in_use.add(index)
        return PortBlock(index=index, start=self.base_port + index * self.stride, size=self.stride)

    def release(self, block: PortBlock) -> None:
        self._in_use.discard(block.index)

    @property
    def in_use(self) -> int:
        return len(self._in_use)


def check_ports_free(ports: list[int], host: str = "127.0.0.1") -> None:
    """Raise ProvisionConflict if any of ``ports`` is already bound.

    Sockets left in TIME_WAIT by a previous node do not count; the node binds
    with SO_REUSEADDR as well.
    """
    busy = []
    for port in ports:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            try:
                sock.bind((host, port))
            except OSError:
                busy.append(port)
    if busy:
        raise ProvisionConflict(f"ports already in use: {busy}")


class NodeProcess:
    """A child process with its output captured to a log file."""

    def __init__(self, name: str, argv: list[str], log_path: Path, cwd: Optional[Path] = None):
        self.name = name
        self.argv = argv
        self.log_path = log_path
        self.cwd = cwd
        self.process: Optional[asyncio.subprocess.Process] = None
        self._log: Optional[IO[bytes]] = None

    async def start(self) -> None:
        self._log = open(self.log_path, "wb")
        try:
            self.process = await asyncio.create_subprocess_exec(
                *self.argv,
                stdout=self._log,
                stderr=asyncio.subprocess.STDOUT,
                stdin=asyncio.subprocess.DEVNULL,
                cwd=str(self.cwd) if self.cwd else None,
                start_new_session=True,
            )
        except FileNotFoundError:
            self._close_log()
            raise ProvisionError(
                ErrorCode.BINARY_NOT_FOUND,
                f"[{self.name}] executable not found: {self.argv[0]}",
            )
        logger.debug(f"[{self.name}] started pid {self.process.pid}: {' '.join(self.argv)}")

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode if self.process else None

    @property
    def exited(self) -> bool:
        return self.returncode is not None

    def log_tail(self, lines: int = 20) -> str:
        try:
            text = self.log_path.read_text(errors="replace")
        except OSError:
            return ""
        return "\n".join(text.splitlines()[-lines:])

    def exit_error(self) -> ProvisionError:
        """Classify an early exit from the captured output."""
        tail = self.log_tail()
        message = f"[{self.name}] exited with code {self.returncode} before becoming ready"
        if tail:
            message += f"\n{tail}"
        if _CONFLICT_PATTERN.search(tail):
            return ProvisionConflict(message)
        return NodeExited(message)

    async def terminate(self, timeout: float) -> None:
        """Stop the process group: SIGTERM, then SIGKILL after ``timeout``."""
        try:
            if self.process is None or self.exited:
                return
            self._signal(signal.SIGTERM)
            try:
                await asyncio.wait_for(self.process.wait(), timeout)
            except asyncio.TimeoutError:
                logger.warning(f"[{self.name}] did not stop within {timeout}s, killing")
                self._signal(signal.SIGKILL)
                await self.process.wait()
            logger.debug(f"[{self.name}] stopped with code {self.returncode}")
        finally:
            self._close_log()

    def _signal(self, sig: signal.Signals) -> None:
        try:
            os.killpg(self.process.pid, sig)
        except ProcessLookupError:
            pass
        except PermissionError:
            self.process.send_signal(sig)

    def _close_log(self) -> None:
        if self._log is not None:
            self._log.close()
            self._log = None


@dataclass
class Foundation:
    """A live environment exclusively owned by one suite run."""
    kind: FoundationKind
    workdir: Path
    ports: PortBlock
    processes: list[NodeProcess] = field(default_factory=list)
    clients: dict[str, ChainClient] = field(default_factory=dict)
    endpoints: dict[str, str] = field(default_factory=dict)
    primary: Optional[str] = None
    topology: Optional[Topology] = None
    network_config: Optional[Path] = None
    torn_down: bool = False

    @property
    def client(self) -> ChainClient:
        return self.clients[self.primary]

    @property
    def label(self) -> str:
        return f"{self.kind.value}@{self.ports.start}"


def dev_node_args(config: HarnessConfig, ports: PortBlock) -> list[str]:
    return [
        config.node_binary,
        "--dev",
        "--tmp",
        "--sealing=manual",
        f"--rpc-port={ports.rpc_port(0)}",
        f"--port={ports.p2p_port(0)}",
        *config.dev_options,
    ]


def build_network_config(config: HarnessConfig, ports: PortBlock) -> dict[str, Any]:
    """Build a zombienet network definition with explicit ports per node."""
    topology = config.topology

    relay_nodes = []
    for i, name in enumerate(topology.validators):
        relay_nodes.append({
            "name": name,
            "validator": True,
            "rpc_port": ports.rpc_port(i),
            "p2p_port": ports.p2p_port(i),
        })

    collators = []
    for i, name in enumerate(topology.collators, start=len(topology.validators)):
        collators.append({
            "name": name,
            "command": config.node_binary,
            "rpc_port": ports.rpc_port(i),
            "p2p_port": ports.p2p_port(i),
            "args": list(topology.collator_options),
        })

    return {
        "settings": {
            "provider": "native",
            "timeout": math.ceil(config.timeout_s),
        },
        "relaychain": {
            "chain": topology.relay_chain,
            "default_command": config.relay_binary,
            "nodes": relay_nodes,
        },
        "parachains": [
            {
                "id": topology.para_id,
                "cumulus_based": True,
                "collators": collators,
            }
        ],
    }


class Provisioner:
    """Starts and stops foundations."""

    def __init__(self, config: HarnessConfig):
        self.config = config
        self.ports = PortAllocator(config.base_port, config.port_stride)

    async def provision(self, kind: FoundationKind | str, label: str = "suite") -> Foundation:
        """Stand up a foundation and wait until every node answers RPC.

        On failure, anything already started is stopped before the error
        propagates.
        """
        kind = FoundationKind.parse(kind)
        block = self.ports.acquire()
        try:
            workdir = self._make_workdir(kind, label)
        except OSError:
            self.ports.release(block)
            raise
        foundation = Foundation(kind=kind, workdir=workdir, ports=block)

        logger.info(f"Provisioning {kind.value} foundation for {label} (ports {block.start}+)")
        try:
            if kind is FoundationKind.DEV:
                await self._start_dev(foundation)
            else:
                await self._start_zombie(foundation)
            await self._wait_ready(foundation)
        except BaseException as e:
            logger.error(f"Provisioning {foundation.label} failed: {describe(e)}")
            try:
                await self.teardown(foundation, failed=True)
            except TeardownFailure as td:
                logger.error(f"Cleanup after failed provisioning: {td.message}")
            raise

        logger.info(f"Foundation {foundation.label} ready: {foundation.endpoints}")
        return foundation

    async def teardown(self, foundation: Foundation, failed: bool = False) -> None:
        """Stop all processes and close all clients. Safe to call repeatedly."""
        if foundation.torn_down:
            return
        foundation.torn_down = True

        errors: list[str] = []
        for name, client in foundation.clients.items():
            try:
                await client.close()
            except Exception as e:
                errors.append(f"close {name}: {describe(e)}")

        for process in reversed(foundation.processes):
            try:
                await process.terminate(self.config.teardown_timeout_s)
            except Exception as e:
                errors.append(f"stop {process.name}: {describe(e)}")

        self.ports.release(foundation.ports)

        if failed and self.config.retain_logs_on_failure:
            logger.info(f"Retaining logs for {foundation.label} at {foundation.workdir}")
        else:
            try:
                shutil.rmtree(foundation.workdir)
            except FileNotFoundError:
                pass
            except OSError as e:
                errors.append(f"remove {foundation.workdir}: {describe(e)}")

        logger.info(f"Foundation {foundation.label} torn down")
        if errors:
            raise TeardownFailure("; ".join(errors))

    def _make_workdir(self, kind: FoundationKind, label: str) -> Path:
        os.makedirs(self.config.log_dir, exist_ok=True)
        safe = re.sub(r"[^A-Za-z0-9_.-]+", "_", label).strip("_") or "suite"
        return Path(tempfile.mkdtemp(prefix=f"{kind.value}-{safe}-", dir=self.config.log_dir))

    async def _start_dev(self, foundation: Foundation) -> None:
        check_ports_free(foundation.ports.ports(1))

        process = NodeProcess(
            name="dev",
            argv=dev_node_args(self.config, foundation.ports),
            log_path=foundation.workdir / "dev.log",
            cwd=foundation.workdir,
        )
        foundation.processes.append(process)
        await process.start()

        await self._add_client(foundation, "dev", foundation.ports.rpc_port(0))
        foundation.primary = "dev"

    async def _start_zombie(self, foundation: Foundation) -> None:
        topology = self.config.topology
        check_ports_free(foundation.ports.ports(topology.node_count))

        network = build_network_config(self.config, foundation.ports)
        network_path = foundation.workdir / "network.json"
        network_path.write_text(json.dumps(network, indent=2))
        foundation.network_config = network_path
        foundation.topology = topology

        process = NodeProcess(
            name="zombienet",
            argv=[
                self.config.zombienet_binary,
                "spawn",
                "--provider",
                "native",
                "--dir",
                str(foundation.workdir / "network"),
                str(network_path),
            ],
            log_path=foundation.workdir / "zombienet.log",
            cwd=foundation.workdir,
        )
        foundation.processes.append(process)
        await process.start()

        for i, name in enumerate(topology.node_names):
            await self._add_client(foundation, name, foundation.ports.rpc_port(i))
        foundation.primary = topology.collators[0]

    async def _add_client(self, foundation: Foundation, name: str, port: int) -> None:
        endpoint = f"http://127.0.0.1:{port}"
        foundation.endpoints[name] = endpoint
        foundation.clients[name] = await connect(
            endpoint, name=name, timeout=self.config.request_timeout_s
        )

    async def _wait_ready(self, foundation: Foundation) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.timeout_s
        pending = set(foundation.clients)

        while pending:
            for process in foundation.processes:
                if process.exited:
                    raise process.exit_error()

            remaining = deadline - loop.time()
            if remaining <= 0:
                break

            names = sorted(pending)
            try:
                ready = await asyncio.wait_for(
                    asyncio.gather(*[foundation.clients[name].ping() for name in names]),
                    remaining,
                )
            except asyncio.TimeoutError:
                break
            for name, ok in zip(names, ready):
                if ok:
                    logger.debug(f"[{name}] ready")
                    pending.discard(name)

            if pending:
                await asyncio.sleep(min(self.config.poll_interval_s, max(deadline - loop.time(), 0)))

        if pending:
            raise ProvisionTimeout(
                f"{foundation.label} not ready after {self.config.timeout_ms}ms "
                f"(waiting on {', '.join(sorted(pending))})"
            )
