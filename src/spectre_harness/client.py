"""
JSON-RPC client for a single Spectre node.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Optional

import aiohttp

from .errors import ErrorCode, RpcError
from .transactions import from_hex, normalize_address, to_hex, Address

logger = logging.getLogger(__name__)


class ChainClient:
    """HTTP JSON-RPC client for one node endpoint."""

    def __init__(self, endpoint: str, name: str = "node", timeout: float = 30.0):
        self.endpoint = endpoint
        self.name = name
        self.timeout = timeout
        self.session: Optional[aiohttp.ClientSession] = None
        self._ids = itertools.count(1)

    async def connect(self) -> None:
        """Initialize HTTP session."""
        if self.session is None or self.session.closed:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            self.session = aiohttp.ClientSession(timeout=timeout)

    async def close(self) -> None:
        """Close HTTP session."""
        if self.session:
            await self.session.close()
            self.session = None

    @property
    def connected(self) -> bool:
        return self.session is not None and not self.session.closed

    async def call(self, method: str, params: Optional[list[Any]] = None) -> Any:
        """Issue a JSON-RPC request and return its ``result``."""
        if not self.connected:
            raise RpcError(
                f"[{self.name}] {method}: client is not connected",
                ErrorCode.RPC_TRANSPORT,
            )

        request = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params or [],
        }
        logger.debug(f"[{self.name}] -> {method} {request['params']}")

        try:
            async with self.session.post(self.endpoint, json=request) as resp:
                data = await resp.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise RpcError(
                f"[{self.name}] {method}: {type(e).__name__}: {e}",
                ErrorCode.RPC_TRANSPORT,
            ) from e

        if not isinstance(data, dict):
            raise RpcError(f"[{self.name}] {method}: malformed response {data!r}")
        if data.get("error"):
            error = data["error"]
            if isinstance(error, dict):
                detail = f"{error.get('message', '')} (code {error.get('code')})"
            else:
                detail = str(error)
            raise RpcError(f"[{self.name}] {method}: {detail}")

        return data.get("result")

    async def ping(self) -> bool:
        """Return True if the node answers RPC requests."""
        try:
            await self.system_health()
            return True
        except RpcError as e:
            logger.debug(f"[{self.name}] not ready: {e.message}")
            return False

    # Substrate

    async def system_health(self) -> dict[str, Any]:
        return await self.call("system_health")

    async def create_block(self, create_empty: bool = True, finalize: bool = True) -> dict[str, Any]:
        """Seal a block on a manual-seal dev node."""
        return await self.call("engine_createBlock", [create_empty, finalize, None])

    async def best_block_number(self) -> int:
        header = await self.call("chain_getHeader")
        return from_hex(header["number"])

    # Ethereum

    async def chain_id(self) -> int:
        return from_hex(await self.call("eth_chainId"))

    async def block_number(self) -> int:
        return from_hex(await self.call("eth_blockNumber"))

    async def get_balance(self, address: Address, block: str = "latest") -> int:
        return from_hex(await self.call("eth_getBalance", [normalize_address(address), block]))

    async def get_transaction_count(self, address: Address, block: str = "latest") -> int:
        return from_hex(
            await self.call("eth_getTransactionCount", [normalize_address(address), block])
        )

    async def gas_price(self) -> int:
        return from_hex(await self.call("eth_gasPrice"))

    async def send_transaction(self, tx: dict[str, Any]) -> str:
        """Submit a transaction object for the node's dev signer to sign."""
        return await self.call("eth_sendTransaction", [tx])

    async def send_raw_transaction(self, raw: str) -> str:
        """Submit an externally signed, encoded transaction."""
        if not raw.startswith("0x"):
            raw = "0x" + raw
        return await self.call("eth_sendRawTransaction", [raw])

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[dict[str, Any]]:
        return await self.call("eth_getTransactionReceipt", [tx_hash])

    async def get_block(self, number: int | str = "latest", full: bool = False) -> Optional[dict[str, Any]]:
        tag = to_hex(number) if isinstance(number, int) else number
        return await self.call("eth_getBlockByNumber", [tag, full])


async def connect(endpoint: str, name: str = "node", timeout: float = 30.0) -> ChainClient:
    """Open a client session against ``endpoint``."""
    client = ChainClient(endpoint, name=name, timeout=timeout)
    await client.connect()
    return client
