"""Well-known development accounts.

These are pre-funded in the node's development and local testnet genesis.
Keys are derived from Substrate's canonical dev mnemonic
("bottom drive obey lake curtain smoke basket hold race lonely fit walk").
"""

from __future__ import annotations

from dataclasses import dataclass

from eth_account import Account


@dataclass(frozen=True)
class DevAccount:
    name: str
    address: str
    private_key: str

    @property
    def address_lower(self) -> str:
        return self.address.lower()


ALITH = DevAccount(
    name="Alith",
    address="0xf24FF3a9CF04c71Dbc94D0b566f7A27B94566cac",
    private_key="0x5fb92d6e98884f76de468fa3f6278f8807c48bebc13595d45af5bdc4da702133",
)
BALTATHAR = DevAccount(
    name="Baltathar",
    address="0x3Cd0A705a2DC65e5b1E1205896BaA2be8A07c6e0",
    private_key="0x8075991ce870b93a8870eca0c0f91913d12f47948ca0fd25b49c6fa7cdbeee8b",
)
CHARLETH = DevAccount(
    name="Charleth",
    address="0x798d4Ba9baf0064Ec19eB4F0a1a45785ae9D6DFc",
    private_key="0x0b6e18cafb6ed99687ec547bd28139cafdd2bffe70e6b688025de6b445aa5c5b",
)
DOROTHY = DevAccount(
    name="Dorothy",
    address="0x773539d4Ac0e786233D90A233654ccEE26a613D9",
    private_key="0x39539ab1876910bbf3a223d84a29e28f1cb4e2e456503e7e91ed39b2e7223d68",
)

PRE_FUNDED: tuple[DevAccount, ...] = (ALITH, BALTATHAR, CHARLETH, DOROTHY)

ALITH_ADDRESS = ALITH.address
BALTATHAR_ADDRESS = BALTATHAR.address

_BY_NAME = {acct.name.lower(): acct for acct in PRE_FUNDED}
_BY_ADDRESS = {acct.address_lower: acct for acct in PRE_FUNDED}


def by_name(name: str) -> DevAccount:
    try:
        return _BY_NAME[name.lower()]
    except KeyError:
        raise KeyError(f"no dev account named {name!r}") from None


def by_address(address: str) -> DevAccount:
    try:
        return _BY_ADDRESS[address.lower()]
    except KeyError:
        raise KeyError(f"no dev account with address {address}") from None


def account_from_key(private_key: str, name: str = "") -> DevAccount:
    """Derive the account for a hex private key."""
    local = Account.from_key(private_key)
    key = private_key if private_key.startswith("0x") else "0x" + private_key
    return DevAccount(name=name or local.address, address=local.address, private_key=key.lower())


def generate_account(name: str = "") -> DevAccount:
    """Create a fresh, unfunded account with a random key."""
    local = Account.create()
    return DevAccount(
        name=name or local.address,
        address=local.address,
        private_key="0x" + bytes(local.key).hex(),
    )
