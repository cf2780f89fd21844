"""Tests for hashing and hex helpers — utils/crypto.py."""

from __future__ import annotations

import pytest

from airgap_tx.utils.crypto import (
    hash160,
    is_hex,
    keccak256,
    prefix_0x,
    ripemd160,
    sha256,
    to_bytes,
    unprefix_0x,
)


class TestHashes:
    def test_sha256(self) -> None:
        assert sha256(b"abc").hex() == (
            "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )

    def test_ripemd160_empty(self) -> None:
        assert ripemd160(b"").hex() == "9c1185a5c5e9fc54612808977ee8f548b2258d31"

    def test_keccak256_empty(self) -> None:
        # Differs from standardised SHA3-256 of the empty string
        assert keccak256(b"").hex() == (
            "c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470"
        )

    def test_hash160_generator(self) -> None:
        compressed = bytes.fromhex(
            "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
        )
        assert hash160(compressed).hex() == "751e76e8199196d454941c45d1b3a323f1433bd6"


class TestHex:
    def test_to_bytes(self) -> None:
        assert to_bytes("0xdead") == b"\xde\xad"
        assert to_bytes("DEAD") == b"\xde\xad"
        assert to_bytes(b"\x01") == b"\x01"
        assert to_bytes(bytearray(b"\x02")) == b"\x02"

    def test_to_bytes_invalid(self) -> None:
        with pytest.raises(ValueError):
            to_bytes("0xzz")

    def test_prefix_helpers(self) -> None:
        assert unprefix_0x("0xab") == "ab"
        assert unprefix_0x("0Xab") == "ab"
        assert unprefix_0x("ab") == "ab"
        assert prefix_0x("ab") == "0xab"
        assert prefix_0x("0xab") == "0xab"

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("0xab", True), ("AB", True), ("", False), ("0x", False), ("abc", False), ("xy", False)],
    )
    def test_is_hex(self, value: str, expected: bool) -> None:
        assert is_hex(value) is expected
