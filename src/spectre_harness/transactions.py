"""Pure transaction builders.

``create_transfer`` returns JSON-RPC transaction objects for
``eth_sendTransaction`` (signed by the node's dev signer).
``create_raw_transfer`` signs locally with the sender's key and returns the
encoded transaction for ``eth_sendRawTransaction``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional, Union

from eth_account import Account
from eth_utils import to_checksum_address

from .accounts import DevAccount
from .config import EVM_CHAIN_ID, MIN_GAS_PRICE, TRANSFER_GAS

Address = Union[str, DevAccount]


class TransactionType(Enum):
    LEGACY = "legacy"
    EIP2930 = "eip2930"
    EIP1559 = "eip1559"


def to_hex(value: int) -> str:
    """Encode a non-negative integer as a JSON-RPC quantity."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"quantity must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"quantity must be non-negative, got {value}")
    return hex(value)


def from_hex(value: str) -> int:
    """Decode a JSON-RPC quantity."""
    if not isinstance(value, str) or not value.startswith("0x"):
        raise ValueError(f"not a hex quantity: {value!r}")
    return int(value, 16) if len(value) > 2 else 0


def normalize_address(address: Address) -> str:
    if isinstance(address, DevAccount):
        address = address.address
    raw = address[2:] if address.startswith("0x") else address
    if len(raw) != 40:
        raise ValueError(f"address must be 20 bytes, got {address!r}")
    int(raw, 16)
    return "0x" + raw.lower()


def create_transfer(
    sender: Address,
    recipient: Address,
    amount: int,
    gas_price: int = MIN_GAS_PRICE,
    tx_type: TransactionType = TransactionType.LEGACY,
    nonce: Optional[int] = None,
    gas: int = TRANSFER_GAS,
) -> dict[str, Any]:
    """Build a value transfer.

    The fee parameters are fixed by ``gas`` and ``gas_price`` so the same
    inputs always produce the same transaction object. ``nonce`` is left for
    the node to fill when omitted.
    """
    tx: dict[str, Any] = {
        "from": normalize_address(sender),
        "to": normalize_address(recipient),
        "value": to_hex(amount),
        "gas": to_hex(gas),
    }

    if tx_type is TransactionType.LEGACY:
        tx["gasPrice"] = to_hex(gas_price)
    elif tx_type is TransactionType.EIP2930:
        tx["gasPrice"] = to_hex(gas_price)
        tx["accessList"] = []
        tx["type"] = "0x1"
    elif tx_type is TransactionType.EIP1559:
        tx["maxFeePerGas"] = to_hex(gas_price)
        tx["maxPriorityFeePerGas"] = to_hex(0)
        tx["accessList"] = []
        tx["type"] = "0x2"
    else:
        raise ValueError(f"unsupported transaction type {tx_type!r}")

    if nonce is not None:
        tx["nonce"] = to_hex(nonce)

    return tx


def create_raw_transfer(
    sender: DevAccount,
    recipient: Address,
    amount: int,
    nonce: int,
    gas_price: int = MIN_GAS_PRICE,
    tx_type: TransactionType = TransactionType.LEGACY,
    gas: int = TRANSFER_GAS,
    chain_id: int = EVM_CHAIN_ID,
) -> str:
    """Sign a value transfer with ``sender``'s key.

    Legacy transfers are signed with EIP-155 replay protection. Returns the
    encoded transaction as 0x-prefixed hex.
    """
    if not isinstance(sender, DevAccount):
        raise TypeError(f"signing needs a DevAccount, got {type(sender).__name__}")
    for quantity in (amount, nonce, gas_price, gas, chain_id):
        to_hex(quantity)

    tx: dict[str, Any] = {
        "chainId": chain_id,
        "nonce": nonce,
        "to": to_checksum_address(normalize_address(recipient)),
        "value": amount,
        "gas": gas,
    }

    if tx_type is TransactionType.LEGACY:
        tx["gasPrice"] = gas_price
    elif tx_type is TransactionType.EIP2930:
        tx["type"] = 1
        tx["gasPrice"] = gas_price
        tx["accessList"] = []
    elif tx_type is TransactionType.EIP1559:
        tx["type"] = 2
        tx["maxFeePerGas"] = gas_price
        tx["maxPriorityFeePerGas"] = 0
        tx["accessList"] = []
    else:
        raise ValueError(f"unsupported transaction type {tx_type!r}")

    signed = Account.sign_transaction(tx, sender.private_key)
    return "0x" + bytes(signed.raw_transaction).hex()


def transfer_cost(tx: dict[str, Any]) -> int:
    """Upper bound on what ``tx`` debits from its sender."""
    price = tx.get("gasPrice") or tx.get("maxFeePerGas") or "0x0"
    return from_hex(tx["value"]) + from_hex(tx["gas"]) * from_hex(price)
