"""Account-ledger (EVM legacy, EIP-155) transaction hashing and encoding.

The external signer only ever sees the EIP-155 signing hash; the returned
``(r, s, recovery_id)`` is reattached here to produce the raw RLP bytes
accepted by ``eth_sendRawTransaction``.
"""

from __future__ import annotations

from typing import Any

from eth_account._utils.legacy_transactions import (
    encode_transaction,
    serializable_unsigned_transaction_from_dict,
)
from eth_utils import function_signature_to_4byte_selector

from airgap_tx.keys.recovery import Signature


def signing_hash(tx_dict: dict[str, Any]) -> bytes:
    """EIP-155 signing hash of a legacy transaction dict."""
    return bytes(serializable_unsigned_transaction_from_dict(tx_dict).hash())


def encode_signed(tx_dict: dict[str, Any], signature: Signature) -> bytes:
    """RLP-encode the transaction with the given signature attached."""
    unsigned = serializable_unsigned_transaction_from_dict(tx_dict)
    vrs = (signature.eth_v(tx_dict["chainId"]), signature.r, signature.s)
    return bytes(encode_transaction(unsigned, vrs=vrs))


def call_data(function_signature: str) -> str:
    """Hex calldata for an argument-less call, e.g. ``optOutOfAirdrop()``."""
    return "0x" + function_signature_to_4byte_selector(function_signature).hex()
