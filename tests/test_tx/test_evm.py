"""Tests for EIP-155 legacy transaction hashing and encoding — tx/evm.py."""

from __future__ import annotations

from airgap_tx.keys.recovery import Signature, recover_from_digest, sign_recoverable
from airgap_tx.tx.evm import call_data, encode_signed, signing_hash
from airgap_tx.tx.models import TransferArgs
from airgap_tx.utils.crypto import keccak256

# Worked example from EIP-155
_ARGS = TransferArgs(
    nonce=9,
    gas_price=20 * 10**9,
    gas_limit=21000,
    to="0x3535353535353535353535353535353535353535",
    value=10**18,
    chain_id=1,
)
_HASH = "daf5a779ae972f972197303d7b574746c7ef83eadac0f2791ad23db92e4c8e53"
_SIGNATURE = Signature(
    r=0x28EF61340BD939BC2195FE537567866003E1A15D3C71FF63E1590620AA636276,
    s=0x67CBE9D8997F761AECB703304B3800CCF555C9F3DC64214B297FB1966A3B6D83,
    recovery_id=0,
)
_RAW = (
    "f86c098504a817c800825208943535353535353535353535353535353535353535880de0b6b3a7640000"
    "8025a028ef61340bd939bc2195fe537567866003e1a15d3c71ff63e1590620aa636276a067cbe9d8997f"
    "761aecb703304b3800ccf555c9f3dc64214b297fb1966a3b6d83"
)


class TestSigningHash:
    def test_eip155_vector(self) -> None:
        assert signing_hash(_ARGS.to_tx_dict()).hex() == _HASH

    def test_chain_id_changes_hash(self) -> None:
        args = TransferArgs(
            nonce=9,
            gas_price=20 * 10**9,
            gas_limit=21000,
            to=_ARGS.to,
            value=10**18,
            chain_id=14,
        )
        assert signing_hash(args.to_tx_dict()).hex() != _HASH


class TestEncodeSigned:
    def test_eip155_vector(self) -> None:
        assert encode_signed(_ARGS.to_tx_dict(), _SIGNATURE).hex() == _RAW

    def test_signed_by_recovered_key(self, ewoq_privkey: bytes, ewoq_pubkey: bytes) -> None:
        digest = signing_hash(_ARGS.to_tx_dict())
        sig = sign_recoverable(ewoq_privkey, digest)
        assert recover_from_digest(digest, sig) == ewoq_pubkey
        raw = encode_signed(_ARGS.to_tx_dict(), sig)
        assert raw[:1] >= b"\xf8"
        assert raw != bytes.fromhex(_RAW)


class TestCallData:
    def test_selector(self) -> None:
        assert call_data("transfer(address,uint256)") == "0xa9059cbb"

    def test_opt_out(self) -> None:
        assert call_data("optOutOfAirdrop()") == "0x" + keccak256(b"optOutOfAirdrop()")[:4].hex()
