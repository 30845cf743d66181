"""Dev-chain smoke test for the Spectre node's EVM surface."""

from spectre_harness import TestCase, describe_suite
from spectre_harness.accounts import ALITH, BALTATHAR
from spectre_harness.config import EVM_CHAIN_ID, UNIT


async def _reports_chain_id(context):
    assert await context.client.chain_id() == EVM_CHAIN_ID


async def _alith_is_funded(context):
    assert await context.client.get_balance(ALITH) > 0


async def _transfer_reaches_recipient(context):
    before = await context.client.get_balance(BALTATHAR)
    await context.submit_transfer(ALITH, BALTATHAR, UNIT)
    after = await context.client.get_balance(BALTATHAR)
    assert after - before == UNIT, f"expected +{UNIT}, got +{after - before}"


def _test_cases(context):
    return [
        TestCase(id="T01", name="should report the configured EVM chain id", body=_reports_chain_id),
        TestCase(id="T02", name="should pre-fund Alith", body=_alith_is_funded),
        TestCase(id="T03", name="should transfer 1 UNIT to Baltathar", body=_transfer_reaches_recipient),
    ]


suite = describe_suite(
    id="T1",
    title="spectre integration test",
    foundation="dev",
    test_cases=_test_cases,
)
