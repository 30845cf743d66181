"""ChainClient against an in-process aiohttp JSON-RPC stub."""

from __future__ import annotations

import asyncio
from typing import Any, Callable

import pytest
from aiohttp import web
from eth_account import Account

from spectre_harness.accounts import ALITH, BALTATHAR
from spectre_harness.client import ChainClient, connect
from spectre_harness.errors import ErrorCode, RpcError
from spectre_harness.transactions import create_raw_transfer


def _rpc_app(seen: list[dict[str, Any]], handlers: dict[str, Callable[[list], Any]]) -> web.Application:
    async def handle(request: web.Request) -> web.Response:
        body = await request.json()
        seen.append(body)
        handler = handlers.get(body["method"])
        if handler is None:
            return web.json_response({
                "jsonrpc": "2.0",
                "id": body["id"],
                "error": {"code": -32601, "message": "Method not found"},
            })
        return web.json_response({"jsonrpc": "2.0", "id": body["id"], "result": handler(body["params"])})

    app = web.Application()
    app.router.add_post("/", handle)
    return app


def run_with_stub(handlers: dict[str, Callable[[list], Any]], scenario) -> list[dict[str, Any]]:
    """Serve ``handlers`` on a free port and run ``scenario(client)`` against it."""
    seen: list[dict[str, Any]] = []

    async def main() -> None:
        runner = web.AppRunner(_rpc_app(seen, handlers))
        await runner.setup()
        site = web.TCPSite(runner, "127.0.0.1", 0)
        await site.start()
        port = runner.addresses[0][1]
        client = await connect(f"http://127.0.0.1:{port}", name="stub", timeout=2.0)
        try:
            await scenario(client)
        finally:
            await client.close()
            await runner.cleanup()

    asyncio.run(main())
    return seen


def test_call_returns_result_and_numbers_requests() -> None:
    async def scenario(client: ChainClient) -> None:
        assert await client.chain_id() == 1281
        assert await client.block_number() == 16

    seen = run_with_stub({"eth_chainId": lambda p: "0x501", "eth_blockNumber": lambda p: "0x10"}, scenario)

    assert [r["method"] for r in seen] == ["eth_chainId", "eth_blockNumber"]
    assert [r["id"] for r in seen] == [1, 2]
    assert all(r["jsonrpc"] == "2.0" for r in seen)


def test_balance_query_normalizes_address() -> None:
    async def scenario(client: ChainClient) -> None:
        assert await client.get_balance(BALTATHAR) == 10**18

    seen = run_with_stub({"eth_getBalance": lambda p: hex(10**18)}, scenario)
    assert seen[0]["params"] == [BALTATHAR.address.lower(), "latest"]


def test_rpc_error_raises() -> None:
    async def scenario(client: ChainClient) -> None:
        with pytest.raises(RpcError) as exc:
            await client.call("eth_unknown")
        assert exc.value.code == ErrorCode.RPC_ERROR
        assert "Method not found" in exc.value.message

    run_with_stub({}, scenario)


def test_submit_transaction_and_raw() -> None:
    async def scenario(client: ChainClient) -> None:
        assert await client.send_transaction({"from": "0x00"}) == "0xabc"
        assert await client.send_raw_transaction("f86b") == "0xdef"
        assert await client.create_block() == {"hash": "0x01"}

    seen = run_with_stub({
        "eth_sendTransaction": lambda p: "0xabc",
        "eth_sendRawTransaction": lambda p: "0xdef",
        "engine_createBlock": lambda p: {"hash": "0x01"},
    }, scenario)

    assert seen[1]["params"] == ["0xf86b"]
    assert seen[2]["params"] == [True, True, None]


def test_ping_reflects_readiness() -> None:
    async def scenario(client: ChainClient) -> None:
        assert await client.ping()

    run_with_stub({"system_health": lambda p: {"peers": 0}}, scenario)

    async def unreachable() -> None:
        client = await connect("http://127.0.0.1:9", timeout=0.5)
        try:
            assert not await client.ping()
            with pytest.raises(RpcError) as exc:
                await client.system_health()
            assert exc.value.code == ErrorCode.RPC_TRANSPORT
        finally:
            await client.close()

    asyncio.run(unreachable())


def test_call_requires_connection() -> None:
    async def scenario() -> None:
        client = ChainClient("http://127.0.0.1:9")
        with pytest.raises(RpcError) as exc:
            await client.chain_id()
        assert exc.value.code == ErrorCode.RPC_TRANSPORT

    asyncio.run(scenario())


def test_signed_transfer_reaches_node_intact() -> None:
    raw = create_raw_transfer(ALITH, BALTATHAR, 10**18, nonce=0)

    async def scenario(client: ChainClient) -> None:
        assert await client.get_transaction_count(ALITH, "pending") == 0
        assert await client.send_raw_transaction(raw) == "0xfeed"

    seen = run_with_stub({
        "eth_getTransactionCount": lambda p: "0x0",
        "eth_sendRawTransaction": lambda p: "0xfeed",
    }, scenario)

    assert seen[0]["params"] == [ALITH.address.lower(), "pending"]
    submitted = seen[1]["params"][0]
    assert submitted == raw
    assert Account.recover_transaction(submitted) == ALITH.address
