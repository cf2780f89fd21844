"""Tests for the configuration system."""

from __future__ import annotations

import textwrap
from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError

from airgap_tx.config.settings import (
    AppConfig,
    FinalizeConfig,
    LedgerConfig,
    LogLevel,
    StorageConfig,
    TxDefaultsConfig,
    _load_yaml,
)

if TYPE_CHECKING:
    from pathlib import Path

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


class TestDefaults:
    """Verify all default values are correct."""

    def test_app_defaults(self) -> None:
        cfg = AppConfig()
        assert cfg.network == "flare"
        assert cfg.log_level == LogLevel.INFO
        assert cfg.network_params.hrp == "flare"
        assert cfg.network_params.chain_id == 14

    def test_known_networks(self) -> None:
        networks = AppConfig().networks
        assert {name: p.chain_id for name, p in networks.items()} == {
            "flare": 14,
            "songbird": 19,
            "costwo": 114,
            "coston": 16,
            "localflare": 162,
        }
        assert all(p.hrp == name for name, p in networks.items())

    def test_ledger_defaults(self) -> None:
        cfg = LedgerConfig()
        assert cfg.url == "http://localhost:9650"
        assert cfg.rpc_path == "/ext/bc/C/rpc"
        assert cfg.avax_path == "/ext/bc/C/avax"
        assert cfg.platform_path == "/ext/bc/P"

    def test_storage_defaults(self) -> None:
        cfg = StorageConfig()
        assert cfg.base_dir == "proposals"
        assert cfg.unsigned_dir == "unsigned"
        assert cfg.signed_dir == "signed"

    def test_finalize_defaults(self) -> None:
        cfg = FinalizeConfig()
        assert cfg.initial_delay_ms == 1000
        assert cfg.backoff_factor == 1.5
        assert cfg.max_attempts == 8
        assert cfg.extra_blocks == 2

    def test_tx_defaults(self) -> None:
        cfg = TxDefaultsConfig()
        assert cfg.gas_price == 200_000_000_000
        assert cfg.gas_limit == 4_000_000
        assert cfg.opt_out_function == "optOutOfAirdrop()"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    def test_unknown_network(self) -> None:
        with pytest.raises(ValidationError, match="unknown network"):
            AppConfig(network="mainnet")

    def test_bad_backoff(self) -> None:
        with pytest.raises(ValidationError):
            FinalizeConfig(backoff_factor=0.5)

    def test_bad_initial_delay(self) -> None:
        with pytest.raises(ValidationError):
            FinalizeConfig(initial_delay_ms=0)


# ---------------------------------------------------------------------------
# Environment variable overrides
# ---------------------------------------------------------------------------


class TestEnvOverrides:
    """Verify environment variables override defaults."""

    def test_top_level_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AIRGAP_NETWORK", "costwo")
        monkeypatch.setenv("AIRGAP_LOG_LEVEL", "DEBUG")
        cfg = AppConfig()
        assert cfg.network_params.chain_id == 114
        assert cfg.log_level == LogLevel.DEBUG

    def test_nested_env_via_delimiter(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AIRGAP_LEDGER__URL", "http://node.example:9650")
        monkeypatch.setenv("AIRGAP_FINALIZE__MAX_ATTEMPTS", "3")
        cfg = AppConfig()
        assert cfg.ledger.url == "http://node.example:9650"
        assert cfg.finalize.max_attempts == 3


# ---------------------------------------------------------------------------
# YAML loading
# ---------------------------------------------------------------------------


class TestYAML:
    """YAML config file loading."""

    def test_load_yaml_nonexistent(self, tmp_path: Path) -> None:
        assert _load_yaml(tmp_path / "nonexistent.yaml") == {}

    def test_load_yaml_empty_file(self, tmp_path: Path) -> None:
        f = tmp_path / "empty.yaml"
        f.write_text("")
        assert _load_yaml(f) == {}

    def test_load_yaml_non_dict(self, tmp_path: Path) -> None:
        f = tmp_path / "list.yaml"
        f.write_text("- item1\n- item2\n")
        assert _load_yaml(f) == {}

    def test_from_yaml(self, tmp_path: Path) -> None:
        f = tmp_path / "app.yaml"
        f.write_text(
            textwrap.dedent("""\
                network: local
                networks:
                  local:
                    hrp: local
                    chain_id: 43112
                storage:
                  base_dir: /var/lib/airgap
                finalize:
                  initial_delay_ms: 250
            """)
        )
        cfg = AppConfig.from_yaml(f)
        assert cfg.network_params.hrp == "local"
        assert cfg.network_params.chain_id == 43112
        assert cfg.storage.base_dir == "/var/lib/airgap"
        assert cfg.finalize.initial_delay_ms == 250

    def test_env_overrides_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Env vars have higher priority than YAML values."""
        f = tmp_path / "app.yaml"
        f.write_text("network: songbird\n")
        monkeypatch.setenv("AIRGAP_NETWORK", "coston")
        cfg = AppConfig.from_yaml(f)
        assert cfg.network == "coston"
