"""Shared test fixtures for airgap-tx test suite."""

from __future__ import annotations

import json
from dataclasses import asdict
from typing import TYPE_CHECKING

import pytest

from airgap_tx.config.settings import AppConfig, FinalizeConfig, NetworkParams, StorageConfig
from airgap_tx.context import AirgapContext
from airgap_tx.keys.codec import private_key_to_public_key
from airgap_tx.utils.crypto import keccak256

if TYPE_CHECKING:
    from airgap_tx.keys.recovery import Signature
    from airgap_tx.tx.models import ExportArgs, ImportArgs

# Well-known local-network test key
EWOQ_PRIVKEY = bytes.fromhex("56289e99c94b6912bfc12adc093c9b51124f0dc54ac7a766b2bc5ccf558d8027")

OTHER_PRIVKEY = bytes.fromhex("46" * 32)


# ---------------------------------------------------------------------------
# Fake collaborators
# ---------------------------------------------------------------------------


class FakeLedger:
    """Scripted ledger client.

    ``counter_values`` / ``block_values`` are returned on successive calls;
    the last value repeats once the script runs out.
    """

    def __init__(
        self,
        *,
        counter_values: list[int] | None = None,
        block_values: list[int] | None = None,
        base_fee: int = 25,
        import_fee: int = 1_000_000,
        utxos: list[str] | None = None,
        contract: str = "0x1000000000000000000000000000000000000002",
        opted_out: bool = False,
    ) -> None:
        self._counter = list(counter_values or [7])
        self._blocks = list(block_values or [100])
        self.base_fee = base_fee
        self.import_fee = import_fee
        self.utxos = utxos if utxos is not None else ["0x00aa", "0x00bb"]
        self.contract = contract
        self.opted_out = opted_out
        self.counter_calls = 0
        self.sent: list[bytes] = []
        self.issued: list[bytes] = []

    @staticmethod
    def _next(script: list[int]) -> int:
        return script.pop(0) if len(script) > 1 else script[0]

    async def get_sequence_counter(self, address: str) -> int:
        self.counter_calls += 1
        return self._next(self._counter)

    async def get_block_number(self) -> int:
        return self._next(self._blocks)

    async def get_base_fee(self) -> int:
        return self.base_fee

    async def send_raw_transaction(self, raw_tx: bytes) -> str:
        self.sent.append(raw_tx)
        return "0x" + keccak256(raw_tx).hex()

    async def get_contract_address(self, registry: str, name: str) -> str:
        return self.contract

    async def is_opt_out_candidate(self, contract: str, address: str) -> bool:
        return self.opted_out

    async def get_default_import_fee(self) -> int:
        return self.import_fee

    async def fetch_utxos(self, addresses: list[str], source_chain: str) -> list[str]:
        return list(self.utxos)

    async def issue_tx(self, raw_tx: bytes) -> str:
        self.issued.append(raw_tx)
        return "atomic-" + keccak256(raw_tx).hex()[:16]


class FakeCodec:
    """Deterministic stand-in for the ledger SDK's atomic tx builder."""

    def __init__(self) -> None:
        self.built: list[bytes] = []

    def _encode(self, kind: str, args: object) -> bytes:
        blob = json.dumps({"kind": kind, **asdict(args)}, sort_keys=True).encode()
        self.built.append(blob)
        return blob

    async def build_export_tx(self, args: ExportArgs) -> bytes:
        return self._encode("export", args)

    async def build_import_tx(self, args: ImportArgs) -> bytes:
        return self._encode("import", args)

    def export_cost(self, unsigned_tx: bytes) -> int:
        return len(unsigned_tx) * 2

    def import_cost(self, unsigned_tx: bytes) -> int:
        return len(unsigned_tx) * 3

    def sign_with_raw_signature(self, unsigned_tx: bytes, signature: Signature) -> bytes:
        return unsigned_tx + signature.to_bytes()


async def _no_sleep(seconds: float) -> None:
    return None


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def ewoq_pubkey() -> bytes:
    return private_key_to_public_key(EWOQ_PRIVKEY)


@pytest.fixture
def app_config(tmp_path) -> AppConfig:
    """Provide a test AppConfig on a local network with temp storage."""
    return AppConfig(
        network="local",
        networks={"local": NetworkParams(hrp="local", chain_id=43112, asset_id="asset-1")},
        storage=StorageConfig(base_dir=str(tmp_path / "proposals")),
        finalize=FinalizeConfig(initial_delay_ms=10, max_attempts=4, extra_blocks=2, retries=2),
    )


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def codec() -> FakeCodec:
    return FakeCodec()


@pytest.fixture
def ctx(ewoq_pubkey, app_config, ledger, codec) -> AirgapContext:
    return AirgapContext.create(ewoq_pubkey, app_config, ledger, atomic=codec, sleep=_no_sleep)


@pytest.fixture
def ewoq_privkey() -> bytes:
    return EWOQ_PRIVKEY


@pytest.fixture
def other_privkey() -> bytes:
    return OTHER_PRIVKEY


@pytest.fixture
def make_ledger():
    """Factory for scripted ledgers: ``make_ledger(counter_values=[5, 6])``."""
    return FakeLedger


@pytest.fixture
def no_sleep():
    return _no_sleep


@pytest.fixture
def make_ctx(ewoq_pubkey, app_config, codec):
    """Build a context around a custom ledger."""

    def _make(ledger: FakeLedger, **overrides) -> AirgapContext:
        overrides.setdefault("atomic", codec)
        overrides.setdefault("sleep", _no_sleep)
        return AirgapContext.create(ewoq_pubkey, app_config, ledger, **overrides)

    return _make
