"""
With the existential deposit disabled an account can be drained to zero
without being reaped, so its nonce survives.
"""

from spectre_harness import TestCase, describe_suite
from spectre_harness.accounts import ALITH, DOROTHY
from spectre_harness.config import MIN_GAS_PRICE, TRANSFER_GAS


async def _drained_account_keeps_nonce(context):
    client = context.client
    balance = await client.get_balance(DOROTHY)
    nonce = await client.get_transaction_count(DOROTHY)

    fee = TRANSFER_GAS * MIN_GAS_PRICE
    assert balance > fee, "Dorothy must be pre-funded"
    await context.submit_raw_transfer(DOROTHY, ALITH, balance - fee, gas_price=MIN_GAS_PRICE)

    assert await client.get_balance(DOROTHY) == 0
    assert await client.get_transaction_count(DOROTHY) == nonce + 1


def _test_cases(context):
    return [
        TestCase(
            id="T01",
            name="should not reap an account transferring its whole balance",
            body=_drained_account_keeps_nonce,
        ),
    ]


suite = describe_suite(
    id="DF0101",
    title="Existential Deposit disabled",
    foundation="dev",
    test_cases=_test_cases,
)
