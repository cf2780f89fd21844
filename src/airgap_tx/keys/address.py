"""Address encoding for both ledgers.

Account ledger (EVM style):
- keccak256(uncompressed pubkey without prefix)[-20:], EIP-55 checksummed

UTXO ledger (bech32):
- RIPEMD160(SHA256(compressed pubkey)) with the network's human-readable
  prefix; display forms may carry a chain tag such as ``P-`` or ``C-``
"""

from __future__ import annotations

import re

import bech32
from eth_utils import is_hex_address, to_checksum_address

from airgap_tx.errors.definitions import InvalidAddressError
from airgap_tx.keys.codec import PublicKeyLike, to_compressed, to_uncompressed
from airgap_tx.utils.crypto import hash160, is_hex, keccak256, unprefix_0x

_PAYLOAD_LENGTH = 20
_CHAIN_TAG = re.compile(r"^[A-Za-z]-")

# ---------------------------------------------------------------------------
# Account ledger
# ---------------------------------------------------------------------------


def public_key_to_account_address(pubkey: PublicKeyLike) -> str:
    """Derive the EIP-55 checksummed account address of a public key."""
    digest = keccak256(to_uncompressed(pubkey, include_prefix=False))
    return to_checksum_address("0x" + digest[-_PAYLOAD_LENGTH:].hex())


def is_account_address(value: str) -> bool:
    """Structural check: 20 bytes of hex, ``0x`` optional, any letter case."""
    if not isinstance(value, str):
        return False
    return is_hex_address(value if value[:2] in ("0x", "0X") else "0x" + value)


def normalize_account_address(value: str) -> str:
    """Return the checksummed form of an account address.

    Raises:
        InvalidAddressError: If *value* is not a 20-byte hex address.
    """
    if not is_account_address(value):
        raise InvalidAddressError(f"not an account address: {value!r}")
    return to_checksum_address("0x" + unprefix_0x(value))


def equal_account_address(a: str, b: str) -> bool:
    """Case-insensitive equality of two account addresses."""
    if not isinstance(a, str) or not isinstance(b, str):
        return False
    return unprefix_0x(a).lower() == unprefix_0x(b).lower() and is_account_address(a)


# ---------------------------------------------------------------------------
# UTXO ledger
# ---------------------------------------------------------------------------


def strip_chain_tag(value: str) -> str:
    """Drop a leading two-character chain tag (``P-``, ``C-``, ``X-``)."""
    return _CHAIN_TAG.sub("", value, count=1)


def with_chain_tag(chain: str, address: str) -> str:
    """Render *address* with a chain tag, e.g. ``with_chain_tag("P", addr)``."""
    return f"{chain}-{strip_chain_tag(address)}"


def utxo_address_from_bytes(hrp: str, payload: bytes) -> str:
    """Encode a 20-byte payload as bech32 with the given prefix."""
    if len(payload) != _PAYLOAD_LENGTH:
        raise InvalidAddressError(f"UTXO address payload must be 20 bytes, got {len(payload)}")
    words = bech32.convertbits(payload, 8, 5)
    return bech32.bech32_encode(hrp, words)


def public_key_to_utxo_address(hrp: str, pubkey: PublicKeyLike) -> str:
    """Derive the bech32 UTXO address: RIPEMD160(SHA256(compressed key))."""
    return utxo_address_from_bytes(hrp, hash160(to_compressed(pubkey)))


def decode_utxo_address(address: str) -> tuple[str, bytes]:
    """Decode a bech32 UTXO address (chain tag allowed) to ``(hrp, payload)``.

    Raises:
        InvalidAddressError: On a bad checksum, charset, or payload length.
    """
    hrp, words = bech32.bech32_decode(strip_chain_tag(address))
    if hrp is None or words is None:
        raise InvalidAddressError(f"invalid bech32 address: {address!r}")
    payload = bech32.convertbits(words, 5, 8, False)
    if payload is None or len(payload) != _PAYLOAD_LENGTH:
        raise InvalidAddressError(f"invalid UTXO address payload: {address!r}")
    return hrp, bytes(payload)


def utxo_address_to_bytes(address: str) -> bytes:
    """Return the 20-byte payload of a bech32 UTXO address."""
    return decode_utxo_address(address)[1]


def normalize_utxo_address(hrp: str, value: str) -> str:
    """Canonical bech32 form for a tagged, bech32, or raw-hex UTXO address.

    Raises:
        InvalidAddressError: If the value cannot be decoded, or is bech32
            with a prefix other than *hrp*.
    """
    value = strip_chain_tag(value.strip())
    if is_hex(value):
        return utxo_address_from_bytes(hrp, bytes.fromhex(unprefix_0x(value)))
    decoded_hrp, payload = decode_utxo_address(value)
    if decoded_hrp != hrp:
        raise InvalidAddressError(f"address prefix {decoded_hrp!r} does not match network {hrp!r}")
    return utxo_address_from_bytes(hrp, payload)


def is_utxo_address(hrp: str, value: str) -> bool:
    if not isinstance(value, str):
        return False
    try:
        decoded_hrp, _ = decode_utxo_address(value)
    except InvalidAddressError:
        return False
    return decoded_hrp == hrp


def _utxo_payload(value: str) -> bytes:
    value = strip_chain_tag(value)
    if is_hex(value):
        payload = bytes.fromhex(unprefix_0x(value))
        if len(payload) != _PAYLOAD_LENGTH:
            raise InvalidAddressError(f"invalid UTXO address payload: {value!r}")
        return payload
    return utxo_address_to_bytes(value)


def equal_utxo_address(hrp: str, a: str, b: str) -> bool:
    """Payload equality plus a prefix check against the target network.

    Raw-hex operands carry no prefix and are rendered with *hrp*; bech32
    operands must already carry *hrp*.
    """
    if not isinstance(a, str) or not isinstance(b, str):
        return False
    try:
        if _utxo_payload(a) != _utxo_payload(b):
            return False
    except InvalidAddressError:
        return False
    return all(
        is_hex(strip_chain_tag(v)) or is_utxo_address(hrp, v) for v in (a, b)
    )
