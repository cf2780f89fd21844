"""Ledger client — collaborator protocols and an httpx JSON-RPC implementation.

Provides an async client for the node endpoints the workflow needs:
- ``eth_*`` on the account-ledger RPC (nonce, blocks, base fee, broadcast, calls)
- ``avax.*`` on the atomic endpoint (UTXO fetch, atomic tx issue)
- ``platform.getTxFee`` for the UTXO-ledger import fee

Building atomic export/import transactions is owned by the ledger SDK and
is modelled by :class:`AtomicTxCodec`; the core treats its output as
opaque bytes to hash and sign.
"""

from __future__ import annotations

import itertools
import logging
from typing import TYPE_CHECKING, Any, Protocol

import httpx
from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from airgap_tx.errors.definitions import LedgerRejectedError, UpstreamUnavailableError

if TYPE_CHECKING:
    from airgap_tx.config.settings import LedgerConfig
    from airgap_tx.keys.recovery import Signature
    from airgap_tx.tx.models import ExportArgs, ImportArgs

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
_NANO = 10**9

# ---------------------------------------------------------------------------
# Collaborator protocols
# ---------------------------------------------------------------------------


class LedgerClient(Protocol):
    """Node calls the workflow depends on."""

    async def get_sequence_counter(self, address: str) -> int: ...

    async def get_block_number(self) -> int: ...

    async def get_base_fee(self) -> int:
        """Current base cost per unit, in nano units."""
        ...

    async def send_raw_transaction(self, raw_tx: bytes) -> str: ...

    async def get_contract_address(self, registry: str, name: str) -> str: ...

    async def is_opt_out_candidate(self, contract: str, address: str) -> bool: ...

    async def get_default_import_fee(self) -> int: ...

    async def fetch_utxos(self, addresses: list[str], source_chain: str) -> list[str]: ...

    async def issue_tx(self, raw_tx: bytes) -> str: ...


class AtomicTxCodec(Protocol):
    """Ledger SDK hooks for atomic cross-ledger transactions."""

    async def build_export_tx(self, args: ExportArgs) -> bytes: ...

    async def build_import_tx(self, args: ImportArgs) -> bytes: ...

    def export_cost(self, unsigned_tx: bytes) -> int: ...

    def import_cost(self, unsigned_tx: bytes) -> int: ...

    def sign_with_raw_signature(self, unsigned_tx: bytes, signature: Signature) -> bytes: ...


# ---------------------------------------------------------------------------
# JSON-RPC client
# ---------------------------------------------------------------------------


class JsonRpcLedgerClient:
    """Async JSON-RPC client implementing :class:`LedgerClient`.

    Usage::

        ledger = JsonRpcLedgerClient(config.ledger)
        await ledger.connect()
        try:
            nonce = await ledger.get_sequence_counter("0x...")
        finally:
            await ledger.close()
    """

    def __init__(self, config: LedgerConfig) -> None:
        self._config = config
        self._client: httpx.AsyncClient | None = None
        self._ids = itertools.count(1)

    async def connect(self) -> None:
        """Create the underlying HTTP client."""
        self._client = httpx.AsyncClient(
            base_url=self._config.url.rstrip("/"),
            headers={"Content-Type": "application/json"},
            timeout=self._config.timeout,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    # ------------------------------------------------------------------
    # Account ledger
    # ------------------------------------------------------------------

    async def get_sequence_counter(self, address: str) -> int:
        result = await self._eth("eth_getTransactionCount", [address, "latest"])
        return int(result, 16)

    async def get_block_number(self) -> int:
        return int(await self._eth("eth_blockNumber", []), 16)

    async def get_base_fee(self) -> int:
        """Return the current base fee converted from wei to nano units."""
        return int(await self._eth("eth_baseFee", []), 16) // _NANO

    async def send_raw_transaction(self, raw_tx: bytes) -> str:
        tx_hash = await self._eth("eth_sendRawTransaction", ["0x" + raw_tx.hex()])
        logger.info("Sent raw transaction %s", tx_hash)
        return tx_hash

    async def eth_call(self, to: str, data: bytes) -> bytes:
        result = await self._eth("eth_call", [{"to": to, "data": "0x" + data.hex()}, "latest"])
        return bytes.fromhex(result.removeprefix("0x"))

    async def get_contract_address(self, registry: str, name: str) -> str:
        """Look up a named contract in the on-chain contract registry."""
        data = function_signature_to_4byte_selector("getContractAddressByName(string)")
        output = await self.eth_call(registry, data + encode(["string"], [name]))
        (address,) = decode(["address"], output)
        return to_checksum_address(address)

    async def is_opt_out_candidate(self, contract: str, address: str) -> bool:
        data = function_signature_to_4byte_selector("optOutCandidate(address)")
        output = await self.eth_call(contract, data + encode(["address"], [address]))
        (flag,) = decode(["bool"], output)
        return bool(flag)

    # ------------------------------------------------------------------
    # Atomic / UTXO ledger
    # ------------------------------------------------------------------

    async def get_default_import_fee(self) -> int:
        result = await self._call(self._config.platform_path, "platform.getTxFee", {})
        return int(result["txFee"])

    async def fetch_utxos(self, addresses: list[str], source_chain: str) -> list[str]:
        result = await self._call(
            self._config.avax_path,
            "avax.getUTXOs",
            {"addresses": addresses, "sourceChain": source_chain, "encoding": "hex"},
        )
        return list(result.get("utxos", []))

    async def issue_tx(self, raw_tx: bytes) -> str:
        result = await self._call(
            self._config.avax_path,
            "avax.issueTx",
            {"tx": "0x" + raw_tx.hex(), "encoding": "hex"},
        )
        logger.info("Issued atomic transaction %s", result["txID"])
        return result["txID"]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _eth(self, method: str, params: list[Any]) -> Any:
        return await self._call(self._config.rpc_path, method, params)

    async def _call(self, path: str, method: str, params: Any) -> Any:
        """POST a JSON-RPC request and return its ``result``.

        Raises:
            UpstreamUnavailableError: On transport errors or non-2xx replies.
            LedgerRejectedError: If the node returns a JSON-RPC error object.
        """
        client = self._ensure_connected()
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            response = await client.post(path, json=payload)
        except httpx.HTTPError as exc:
            raise UpstreamUnavailableError(f"{method} failed: {exc}") from exc

        if response.status_code != 200:
            raise UpstreamUnavailableError(f"{method} failed ({response.status_code})")

        body = response.json()
        if body.get("error"):
            error = body["error"]
            raise LedgerRejectedError(
                f"{method} rejected: {error.get('message', error)}",
                rpc_code=error.get("code"),
            )
        return body.get("result")

    def _ensure_connected(self) -> httpx.AsyncClient:
        if self._client is None:
            msg = "Ledger client not connected. Call connect() first."
            raise UpstreamUnavailableError(msg)
        return self._client
