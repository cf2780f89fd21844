"""Cryptographic helpers — SHA-256, RIPEMD-160, Hash160, Keccak-256."""

from __future__ import annotations

import hashlib

from Crypto.Hash import RIPEMD160, keccak


def sha256(data: bytes) -> bytes:
    """Single SHA-256 hash."""
    return hashlib.sha256(data).digest()


def ripemd160(data: bytes) -> bytes:
    """RIPEMD-160 hash."""
    return RIPEMD160.new(data).digest()


def hash160(data: bytes) -> bytes:
    """RIPEMD-160(SHA-256(data)) — the UTXO-ledger address payload."""
    return ripemd160(sha256(data))


def keccak256(data: bytes) -> bytes:
    """Keccak-256 (pre-standard SHA-3) as used by the account ledger."""
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


def to_bytes(value: bytes | str) -> bytes:
    """Coerce hex (with or without ``0x``) or raw bytes to bytes.

    Raises:
        ValueError: If *value* is a string that is not valid hex.
    """
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return bytes.fromhex(unprefix_0x(value))


def unprefix_0x(value: str) -> str:
    return value[2:] if value[:2] in ("0x", "0X") else value


def prefix_0x(value: str) -> str:
    return value if value[:2] in ("0x", "0X") else "0x" + value


def is_hex(value: str) -> bool:
    """True if *value* is a non-empty even-length hex string (``0x`` optional)."""
    raw = unprefix_0x(value)
    if not raw or len(raw) % 2:
        return False
    try:
        bytes.fromhex(raw)
    except ValueError:
        return False
    return True
