"""Application settings loaded from environment variables and config files.

Configuration is loaded from (highest priority first):
1. Environment variables (prefix: ``AIRGAP_``, nested via ``__``)
2. YAML config file (``AIRGAP_CONFIG_PATH`` env var or ``AppConfig.from_yaml``)
3. Defaults defined here
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Any, Self

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ---------------------------------------------------------------------------
# Enums for validated choices
# ---------------------------------------------------------------------------


class LogLevel(enum.StrEnum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


# ---------------------------------------------------------------------------
# Network parameters
# ---------------------------------------------------------------------------

_P_CHAIN_BLOCKCHAIN_ID = "11111111111111111111111111111111LpoYY"


class NetworkParams(BaseModel):
    """Per-network address prefix and chain identifiers.

    Attributes:
        hrp: Bech32 human-readable prefix for UTXO-ledger addresses.
        chain_id: EIP-155 chain id of the account ledger.
        p_chain_blockchain_id: Blockchain id of the UTXO ledger.
        asset_id: Native asset id used by atomic export transactions.
    """

    hrp: str
    chain_id: int
    p_chain_blockchain_id: str = _P_CHAIN_BLOCKCHAIN_ID
    asset_id: str = ""


def _default_networks() -> dict[str, NetworkParams]:
    return {
        "flare": NetworkParams(hrp="flare", chain_id=14),
        "songbird": NetworkParams(hrp="songbird", chain_id=19),
        "costwo": NetworkParams(hrp="costwo", chain_id=114),
        "coston": NetworkParams(hrp="coston", chain_id=16),
        "localflare": NetworkParams(hrp="localflare", chain_id=162),
    }


# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class LedgerConfig(BaseSettings):
    """Ledger node JSON-RPC endpoints."""

    model_config = SettingsConfigDict(
        env_prefix="AIRGAP_LEDGER__",
        case_sensitive=False,
    )

    url: str = "http://localhost:9650"
    rpc_path: str = "/ext/bc/C/rpc"
    avax_path: str = "/ext/bc/C/avax"
    platform_path: str = "/ext/bc/P"
    timeout: float = 30.0


class StorageConfig(BaseSettings):
    """Request artifact storage layout."""

    model_config = SettingsConfigDict(
        env_prefix="AIRGAP_STORAGE__",
        case_sensitive=False,
    )

    base_dir: str = "proposals"
    unsigned_dir: str = "unsigned"
    signed_dir: str = "signed"


class FinalizeConfig(BaseSettings):
    """Post-broadcast finalization polling."""

    model_config = SettingsConfigDict(
        env_prefix="AIRGAP_FINALIZE__",
        case_sensitive=False,
    )

    initial_delay_ms: int = Field(default=1000, gt=0)
    backoff_factor: float = Field(default=1.5, ge=1.0)
    max_attempts: int = Field(default=8, ge=0)
    extra_blocks: int = Field(default=2, ge=0)
    retries: int = Field(default=3, ge=1)
    poll_interval_ms: int = Field(default=1000, gt=0)


class TxDefaultsConfig(BaseSettings):
    """Defaults for account-ledger transactions."""

    model_config = SettingsConfigDict(
        env_prefix="AIRGAP_TX__",
        case_sensitive=False,
    )

    gas_price: int = 200_000_000_000
    gas_limit: int = 4_000_000
    registry_address: str = "0xaD67FE66660Fb8dFE9d6b1b4240d8650e30F6019"
    opt_out_program: str = "DistributionToDelegators"
    opt_out_function: str = "optOutOfAirdrop()"


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


def _load_yaml(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file and return its contents as a dict.

    Returns an empty dict if the file doesn't exist or is empty.
    """
    p = Path(path)
    if not p.exists():
        return {}
    text = p.read_text(encoding="utf-8")
    data = yaml.safe_load(text)
    return data if isinstance(data, dict) else {}


class AppConfig(BaseSettings):
    """Top-level application configuration.

    Loads settings from environment variables (``AIRGAP_`` prefix),
    an optional YAML file, and built-in defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="AIRGAP_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    network: str = "flare"
    log_level: LogLevel = LogLevel.INFO
    config_path: str = ""

    networks: dict[str, NetworkParams] = Field(default_factory=_default_networks)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    finalize: FinalizeConfig = Field(default_factory=FinalizeConfig)
    tx: TxDefaultsConfig = Field(default_factory=TxDefaultsConfig)

    @model_validator(mode="before")
    @classmethod
    def _merge_yaml(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Merge YAML config file contents under the env var overrides."""
        config_path = values.get("config_path", "")
        if not config_path:
            return values
        yaml_data = _load_yaml(config_path)
        # YAML values serve as defaults; env vars (already in *values*) win.
        for key, val in yaml_data.items():
            if key not in values or values[key] is None:
                values[key] = val
            elif isinstance(val, dict) and isinstance(values.get(key), dict):
                values[key] = {**val, **values[key]}
        return values

    @model_validator(mode="after")
    def _check_network(self) -> Self:
        if self.network not in self.networks:
            msg = f"unknown network {self.network!r}; known: {sorted(self.networks)}"
            raise ValueError(msg)
        return self

    @property
    def network_params(self) -> NetworkParams:
        """Parameters of the selected network."""
        return self.networks[self.network]

    @classmethod
    def from_yaml(cls, path: str | Path) -> Self:
        """Construct ``AppConfig`` loading defaults from a YAML file.

        Environment variables still override YAML values.
        """
        return cls(config_path=str(path))
