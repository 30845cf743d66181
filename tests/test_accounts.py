"""Well-known dev accounts match the node's pre-funded genesis accounts."""

from __future__ import annotations

import pytest

from spectre_harness import accounts


def test_pre_funded_accounts() -> None:
    names = [a.name for a in accounts.PRE_FUNDED]
    assert names == ["Alith", "Baltathar", "Charleth", "Dorothy"]
    assert accounts.ALITH_ADDRESS == "0xf24FF3a9CF04c71Dbc94D0b566f7A27B94566cac"
    assert accounts.BALTATHAR_ADDRESS == "0x3Cd0A705a2DC65e5b1E1205896BaA2be8A07c6e0"

    for acct in accounts.PRE_FUNDED:
        assert len(bytes.fromhex(acct.address[2:])) == 20
        assert len(bytes.fromhex(acct.private_key[2:])) == 32


def test_lookup_is_case_insensitive() -> None:
    assert accounts.by_name("alith") is accounts.ALITH
    assert accounts.by_address(accounts.DOROTHY.address.upper().replace("0X", "0x")) is accounts.DOROTHY

    with pytest.raises(KeyError):
        accounts.by_name("Gerald")
    with pytest.raises(KeyError):
        accounts.by_address("0x" + "00" * 20)


def test_private_keys_derive_addresses() -> None:
    for acct in accounts.PRE_FUNDED:
        derived = accounts.account_from_key(acct.private_key)
        assert derived.address == acct.address
        assert derived.private_key == acct.private_key


def test_generated_accounts_are_unique_and_consistent() -> None:
    first = accounts.generate_account("first")
    second = accounts.generate_account()

    assert first.name == "first"
    assert second.name == second.address
    assert first.address != second.address
    assert accounts.account_from_key(first.private_key).address == first.address
