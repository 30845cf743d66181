"""End-to-end checks against a relay chain with Spectre collators."""

import asyncio

from spectre_harness import TestCase, describe_suite
from spectre_harness.config import EVM_CHAIN_ID

BLOCK_WAIT_S = 120


async def _every_node_answers(context):
    for name, client in context.clients.items():
        health = await client.system_health()
        assert "peers" in health, f"{name}: unexpected health {health}"


async def _collators_produce_blocks(context):
    client = context.client
    start = await client.best_block_number()
    loop = asyncio.get_running_loop()
    deadline = loop.time() + BLOCK_WAIT_S
    while loop.time() < deadline:
        if await client.best_block_number() > start:
            return
        await asyncio.sleep(6)
    raise AssertionError(f"no parachain block produced within {BLOCK_WAIT_S}s (stuck at #{start})")


async def _parachain_exposes_evm(context):
    assert await context.client.chain_id() == EVM_CHAIN_ID


def _test_cases(context):
    return [
        TestCase(id="T01", name="should reach every node in the topology", body=_every_node_answers),
        TestCase(
            id="T02",
            name="should produce parachain blocks",
            body=_collators_produce_blocks,
            timeout_s=BLOCK_WAIT_S + 30,
        ),
        TestCase(id="T03", name="should expose the EVM chain id", body=_parachain_exposes_evm),
    ]


suite = describe_suite(
    id="END TO END MVP",
    title="TEST INTEGRATION ON SPECTRE NODE, PHALA CONTRACT AND USER SIMULATED INTERACTION",
    foundation="zombie",
    test_cases=_test_cases,
)
