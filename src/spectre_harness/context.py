"""The handle test bodies and hooks receive."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Mapping, Optional

from . import accounts
from .accounts import DevAccount
from .client import ChainClient
from .config import MIN_GAS_PRICE, Topology
from .errors import ContextClosed
from .provisioner import Foundation
from .transactions import Address, TransactionType, create_raw_transfer, create_transfer
from .types import FoundationKind


class Context:
    """Read access to one foundation plus transaction helpers.

    Lifecycle controls stay with the runner. Every attribute raises
    ContextClosed once the foundation is torn down.
    """

    def __init__(self, foundation: Foundation, suite_id: str):
        self._foundation = foundation
        self.suite_id = suite_id
        self._closed = False
        self.log = logging.getLogger(f"spectre_harness.suite.{suite_id}")

    def _live(self, attribute: str) -> Foundation:
        if self._closed or self._foundation.torn_down:
            raise ContextClosed(attribute)
        return self._foundation

    def close(self) -> None:
        self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed or self._foundation.torn_down

    @property
    def foundation_kind(self) -> FoundationKind:
        return self._live("foundation_kind").kind

    @property
    def client(self) -> ChainClient:
        return self._live("client").client

    @property
    def clients(self) -> Mapping[str, ChainClient]:
        return MappingProxyType(self._live("clients").clients)

    def node(self, name: str) -> ChainClient:
        clients = self._live("node").clients
        try:
            return clients[name]
        except KeyError:
            raise KeyError(f"no node {name!r} in {sorted(clients)}") from None

    @property
    def topology(self) -> Optional[Topology]:
        return self._live("topology").topology

    @property
    def accounts(self) -> tuple[DevAccount, ...]:
        self._live("accounts")
        return accounts.PRE_FUNDED

    @property
    def alith(self) -> DevAccount:
        self._live("alith")
        return accounts.ALITH

    @property
    def baltathar(self) -> DevAccount:
        self._live("baltathar")
        return accounts.BALTATHAR

    def generate_account(self, name: str = "") -> DevAccount:
        """A fresh unfunded account whose key the test holds."""
        self._live("generate_account")
        return accounts.generate_account(name)

    def create_transfer(
        self,
        sender: Address,
        recipient: Address,
        amount: int,
        gas_price: int = MIN_GAS_PRICE,
        tx_type: TransactionType = TransactionType.LEGACY,
        nonce: Optional[int] = None,
    ) -> dict[str, Any]:
        self._live("create_transfer")
        return create_transfer(
            sender, recipient, amount, gas_price=gas_price, tx_type=tx_type, nonce=nonce
        )

    async def create_raw_transfer(
        self,
        sender: DevAccount,
        recipient: Address,
        amount: int,
        gas_price: int = MIN_GAS_PRICE,
        tx_type: TransactionType = TransactionType.LEGACY,
        nonce: Optional[int] = None,
    ) -> str:
        """Sign a transfer locally, fetching the pending nonce when omitted."""
        foundation = self._live("create_raw_transfer")
        if nonce is None:
            nonce = await foundation.client.get_transaction_count(sender, "pending")
        return create_raw_transfer(
            sender, recipient, amount, nonce, gas_price=gas_price, tx_type=tx_type
        )

    async def create_block(self) -> dict[str, Any]:
        """Seal a block. Only dev foundations run with manual sealing."""
        foundation = self._live("create_block")
        if foundation.kind is not FoundationKind.DEV:
            raise RuntimeError("create_block is only available on dev foundations")
        return await foundation.client.create_block()

    async def submit_transfer(
        self,
        sender: Address,
        recipient: Address,
        amount: int,
        gas_price: int = MIN_GAS_PRICE,
        tx_type: TransactionType = TransactionType.LEGACY,
        nonce: Optional[int] = None,
    ) -> str:
        """Submit a transfer and, on dev, seal it into a block. Returns the tx hash."""
        foundation = self._live("submit_transfer")
        tx = self.create_transfer(
            sender, recipient, amount, gas_price=gas_price, tx_type=tx_type, nonce=nonce
        )
        tx_hash = await foundation.client.send_transaction(tx)
        self.log.debug(f"submitted transfer {tx_hash}")
        if foundation.kind is FoundationKind.DEV:
            await foundation.client.create_block()
        return tx_hash

    async def submit_raw_transfer(
        self,
        sender: DevAccount,
        recipient: Address,
        amount: int,
        gas_price: int = MIN_GAS_PRICE,
        tx_type: TransactionType = TransactionType.LEGACY,
        nonce: Optional[int] = None,
    ) -> str:
        """Sign locally, submit and, on dev, seal. Returns the tx hash."""
        foundation = self._live("submit_raw_transfer")
        raw = await self.create_raw_transfer(
            sender, recipient, amount, gas_price=gas_price, tx_type=tx_type, nonce=nonce
        )
        tx_hash = await foundation.client.send_raw_transaction(raw)
        self.log.debug(f"submitted signed transfer {tx_hash}")
        if foundation.kind is FoundationKind.DEV:
            await foundation.client.create_block()
        return tx_hash
