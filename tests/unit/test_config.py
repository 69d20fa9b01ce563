"""Unit tests for configuration management."""

import json
from pathlib import Path

import pytest
import yaml

from clocktower_app.config.defaults import get_default_config
from clocktower_app.config.loader import ConfigLoader, normalize_chain_name
from clocktower_app.config.notification import NotificationMethod
from clocktower_app.config.validation import ConfigValidator
from clocktower_app.errors import ConfigurationError

LEDGER = "0x1111111111111111111111111111111111111111"
USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"


def base_env(**extra) -> dict:
    env = {
        "RPC_URL_BASE": "https://base-mainnet.g.alchemy.com/v2/",
        "CLOCKTOWER_ADDRESS_BASE": LEDGER,
        "CHAIN_ID_BASE": "8453",
        "USDC_ADDRESS_BASE": USDC,
    }
    env.update(extra)
    return env


class TestDefaultConfig:
    """Test suite for default configuration."""

    def test_default_config_creation(self) -> None:
        config = get_default_config()
        assert config.engine.max_recursion_depth == 5
        assert config.engine.scan_batch_size == 50
        assert config.notifications.min_interval_ms == 500
        assert config.database.path == "clocktower.db"


class TestConfigLoader:
    """Settings precedence: defaults < settings.yaml < environment < overrides."""

    def test_defaults_only(self, tmp_path: Path) -> None:
        settings = ConfigLoader.create(tmp_path, environ={}).load_settings()
        assert settings.engine.max_recursion_depth == 5
        assert settings.caller_address is None

    def test_settings_file_overrides_defaults(self, tmp_path: Path) -> None:
        (tmp_path / "settings.yaml").write_text(yaml.safe_dump({
            "engine": {"max_recursion_depth": 3, "scan_batch_size": 20},
        }))

        settings = ConfigLoader.create(tmp_path, environ={}).load_settings()

        assert settings.engine.max_recursion_depth == 3
        assert settings.engine.scan_batch_size == 20
        assert settings.engine.gas_limit == 1_000_000

    def test_environment_overrides_file(self, tmp_path: Path) -> None:
        (tmp_path / "settings.yaml").write_text(yaml.safe_dump({"engine": {"max_recursion_depth": 3}}))

        settings = ConfigLoader.create(tmp_path, environ={
            "MAX_RECURSION_DEPTH": "7",
            "LEASE_ENABLED": "false",
            "DATABASE_PATH": "/var/lib/clocktower/history.db",
        }).load_settings()

        assert settings.engine.max_recursion_depth == 7
        assert settings.engine.lease_enabled is False
        assert settings.database.path == "/var/lib/clocktower/history.db"

    def test_explicit_overrides_win(self, tmp_path: Path) -> None:
        loader = ConfigLoader.create(tmp_path, environ={"MAX_RECURSION_DEPTH": "7"})
        settings = loader.load_settings({"engine": {"max_recursion_depth": 2}})
        assert settings.engine.max_recursion_depth == 2

    def test_invalid_values_raise(self, tmp_path: Path) -> None:
        loader = ConfigLoader.create(tmp_path, environ={"MAX_RECURSION_DEPTH": "many", "GAS_LIMIT": "0"})

        with pytest.raises(ConfigurationError) as exc_info:
            loader.load_settings()

        fields = {err.field for err in exc_info.value.errors}
        assert fields == {"max_recursion_depth", "gas_limit"}

    def test_invalid_notification_api_url_reported(self, tmp_path: Path) -> None:
        (tmp_path / "settings.yaml").write_text(yaml.safe_dump({"notifications": {"api_url": "not-a-url"}}))

        with pytest.raises(ConfigurationError) as exc_info:
            ConfigLoader.create(tmp_path, environ={}).load_settings()

        assert [err.field for err in exc_info.value.errors] == ["api_url"]

    def test_non_mapping_settings_file_rejected(self, tmp_path: Path) -> None:
        (tmp_path / "settings.yaml").write_text("- just\n- a list\n")
        with pytest.raises(ConfigurationError):
            ConfigLoader.create(tmp_path, environ={}).load_settings()

    def test_credentials_and_keys(self, tmp_path: Path) -> None:
        settings = ConfigLoader.create(tmp_path, environ={
            "CALLER_ADDRESS": " 0x2222222222222222222222222222222222222222 ",
            "ALCHEMY_API_KEY": "alchemy-key",
            "RESEND_API_KEY": "re_key",
            "NOTIFICATION_EMAIL": "ops@example.com",
        }).load_settings()

        assert settings.caller_address == "0x2222222222222222222222222222222222222222"
        assert settings.rpc_api_key == "alchemy-key"

        destinations = settings.notification_config().destinations
        assert [d.method for d in destinations] == [NotificationMethod.EMAIL]
        assert destinations[0].config.recipient == "ops@example.com"

    def test_no_email_credentials_means_no_destinations(self, tmp_path: Path) -> None:
        settings = ConfigLoader.create(tmp_path, environ={"RESEND_API_KEY": "re_key"}).load_settings()
        assert settings.notification_config().destinations == []


class TestChainConfigs:
    """Chain entries from chains.yaml and per-chain environment variables."""

    def test_normalize_chain_name(self) -> None:
        assert normalize_chain_name("sepolia-base") == "SEPOLIA_BASE"
        assert normalize_chain_name(" base ") == "BASE"

    def test_chain_from_environment(self, tmp_path: Path) -> None:
        chains = ConfigLoader.create(tmp_path, environ=base_env()).load_chain_configs()

        assert len(chains) == 1
        chain = chains[0]
        assert chain.name == "base"
        assert chain.chain_id == 8453
        assert chain.ledger_address == LEDGER
        assert chain.label == "Base"
        assert chain.explorer_link("0xabc") == "https://basescan.org/tx/0xabc"
        assert chain.tokens[0].symbol == "USDC"
        assert chain.tokens[0].decimals == 6
        assert not chain.is_testnet

    def test_token_list_json(self, tmp_path: Path) -> None:
        tokens = [
            {"address": USDC, "symbol": "USDC", "decimals": 6},
            {"address": "0x50c5725949A6F0c72E6C4a641F24049A917DB0Cb"},
        ]
        chains = ConfigLoader.create(tmp_path, environ=base_env(TOKENS_BASE=json.dumps(tokens))).load_chain_configs()

        assert [t.symbol for t in chains[0].tokens] == ["USDC", "UNKNOWN"]
        assert chains[0].tokens[0].name == "USDC"
        assert chains[0].tokens[1].decimals == 18

    def test_malformed_token_list_drops_chain(self, tmp_path: Path) -> None:
        chains = ConfigLoader.create(tmp_path, environ=base_env(TOKENS_BASE="[not json")).load_chain_configs()
        assert chains == []

    def test_invalid_chain_skipped_others_kept(self, tmp_path: Path) -> None:
        env = base_env(
            ACTIVE_CHAINS="base, sepolia-base",
            RPC_URL_SEPOLIA_BASE="https://base-sepolia.g.alchemy.com/v2/",
            CLOCKTOWER_ADDRESS_SEPOLIA_BASE="not-an-address",
            CHAIN_ID_SEPOLIA_BASE="84532",
            USDC_ADDRESS_SEPOLIA_BASE=USDC,
        )
        chains = ConfigLoader.create(tmp_path, environ=env).load_chain_configs()
        assert [c.name for c in chains] == ["base"]

    def test_chains_file_with_environment_override(self, tmp_path: Path) -> None:
        (tmp_path / "chains.yaml").write_text(yaml.safe_dump({"chains": {
            "sepolia-base": {
                "chain_id": 84532,
                "rpc_url": "https://base-sepolia.g.alchemy.com/v2/",
                "ledger_address": "0x0000000000000000000000000000000000000001",
                "tokens": [{"address": USDC, "symbol": "USDC", "decimals": 6}],
            },
        }}))

        chains = ConfigLoader.create(tmp_path, environ={
            "CLOCKTOWER_ADDRESS_SEPOLIA_BASE": LEDGER,
        }).load_chain_configs()

        assert [c.name for c in chains] == ["sepolia-base"]
        assert chains[0].ledger_address == LEDGER
        assert chains[0].is_testnet
        assert chains[0].label == "Base Sepolia"

    def test_non_mapping_chain_entry_skipped(self, tmp_path: Path) -> None:
        """A scalar entry in chains.yaml drops that chain only."""
        (tmp_path / "chains.yaml").write_text(yaml.safe_dump({"chains": {
            "base": {
                "chain_id": 8453,
                "rpc_url": "https://base-mainnet.g.alchemy.com/v2/",
                "ledger_address": LEDGER,
                "tokens": [{"address": USDC, "symbol": "USDC", "decimals": 6}],
            },
            "broken": "not-a-mapping",
        }}))

        chains = ConfigLoader.create(tmp_path, environ={}).load_chain_configs()

        assert [c.name for c in chains] == ["base"]

    def test_resolve_rpc_url(self, tmp_path: Path) -> None:
        chain = ConfigLoader.create(tmp_path, environ=base_env()).load_chain_configs()[0]
        assert chain.resolve_rpc_url("key123") == "https://base-mainnet.g.alchemy.com/v2/key123"
        assert chain.resolve_rpc_url(None) == "https://base-mainnet.g.alchemy.com/v2/"


class TestConfigValidator:
    """Test suite for configuration validation."""

    def test_valid_engine_params(self) -> None:
        assert ConfigValidator.validate_engine_params({"max_recursion_depth": 5, "lease_enabled": True}) == []

    def test_boolean_is_not_an_integer(self) -> None:
        errors = ConfigValidator.validate_engine_params({"max_workers": True})
        assert errors[0].field == "max_workers"

    def test_chain_entry_errors(self) -> None:
        errors = ConfigValidator.validate_chain_entry({
            "rpc_url": "",
            "ledger_address": "0x123",
            "chain_id": 0,
            "tokens": [],
            "explorer_url": "https://example.com/tx/",
        })
        assert {err.field for err in errors} == {"rpc_url", "ledger_address", "chain_id", "tokens", "explorer_url"}

    def test_notification_params(self) -> None:
        assert ConfigValidator.validate_notification_params({
            "retry_delay_seconds": 0,
            "api_url": "https://api.resend.com/emails",
        }) == []

        errors = ConfigValidator.validate_notification_params({
            "retry_delay_seconds": -1,
            "api_url": "ftp://mail.example.com",
        })
        assert {err.field for err in errors} == {"retry_delay_seconds", "api_url"}

    def test_credentials(self) -> None:
        missing = ConfigValidator.validate_credentials(None, None)
        assert {err.field for err in missing} == {"CALLER_ADDRESS", "CALLER_PRIVATE_KEY"}

        bad_key = ConfigValidator.validate_credentials("0x" + "2" * 40, "0x1234")
        assert len(bad_key) == 1
        assert bad_key[0].value == "<redacted>"

        assert ConfigValidator.validate_credentials("0x" + "2" * 40, "0x" + "a" * 64) == []
