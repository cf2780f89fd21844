"""Signing context — the key, network, and collaborators for one account.

Passed explicitly into every operation instead of module-level client
handles, so independent accounts (and tests) never share state.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from airgap_tx.keys.address import (
    public_key_to_account_address,
    public_key_to_utxo_address,
    with_chain_tag,
)
from airgap_tx.keys.codec import PublicKeyLike, to_uncompressed
from airgap_tx.store.request_store import UnsignedRequestStore

if TYPE_CHECKING:
    from airgap_tx.chain.client import AtomicTxCodec, LedgerClient
    from airgap_tx.chain.finalize import Sleep
    from airgap_tx.config.settings import AppConfig, NetworkParams


@dataclass(frozen=True)
class AirgapContext:
    """Everything a workflow needs for one custody-held key.

    Attributes:
        public_key: 65-byte uncompressed public key of the external signer.
        config: Application configuration.
        ledger: Ledger node client.
        store: Request artifact store.
        atomic: Ledger SDK codec for export/import (None disables them).
        sleep: Awaitable sleep used by finalization polling.
    """

    public_key: bytes
    config: AppConfig
    ledger: LedgerClient
    store: UnsignedRequestStore
    atomic: AtomicTxCodec | None = None
    sleep: Sleep = field(default=asyncio.sleep)

    @classmethod
    def create(
        cls,
        public_key: PublicKeyLike,
        config: AppConfig,
        ledger: LedgerClient,
        *,
        store: UnsignedRequestStore | None = None,
        atomic: AtomicTxCodec | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> AirgapContext:
        """Build a context, validating *public_key* up front.

        Raises:
            InvalidKeyError: If *public_key* is not a valid secp256k1 key.
        """
        return cls(
            public_key=to_uncompressed(public_key),
            config=config,
            ledger=ledger,
            store=store or UnsignedRequestStore.from_config(config.storage),
            atomic=atomic,
            sleep=sleep,
        )

    @property
    def network(self) -> NetworkParams:
        return self.config.network_params

    @property
    def account_address(self) -> str:
        """Checksummed account-ledger address."""
        return public_key_to_account_address(self.public_key)

    @property
    def utxo_address(self) -> str:
        """Untagged bech32 address on the selected network."""
        return public_key_to_utxo_address(self.network.hrp, self.public_key)

    @property
    def p_address(self) -> str:
        return with_chain_tag("P", self.utxo_address)

    @property
    def c_address_bech(self) -> str:
        return with_chain_tag("C", self.utxo_address)
