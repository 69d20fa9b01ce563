"""Configuration loader with 3-tier parameter precedence."""

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional

import structlog
import yaml

from ..errors import ConfigurationError
from ..models.chain import DEFAULT_EXPLORER_URL, ChainConfig, TokenConfig
from .defaults import (
    DatabaseParams,
    DefaultConfig,
    EngineParams,
    NotificationParams,
    get_default_config,
)
from .notification import (
    NotificationConfig,
    NotificationDestination,
    NotificationMethod,
    StdoutNotificationConfig,
    create_email_destination,
)
from .validation import ConfigValidator

logger = structlog.get_logger(__name__)

# Display name and explorer template for chains we know about
KNOWN_CHAINS: dict[str, tuple[str, str]] = {
    "base": ("Base", "https://basescan.org/tx/{tx_hash}"),
    "sepolia-base": ("Base Sepolia", "https://sepolia.basescan.org/tx/{tx_hash}"),
    "ethereum": ("Ethereum", "https://etherscan.io/tx/{tx_hash}"),
    "arbitrum": ("Arbitrum", "https://arbiscan.io/tx/{tx_hash}"),
    "polygon": ("Polygon", "https://polygonscan.com/tx/{tx_hash}"),
}

TESTNET_MARKERS = ("sepolia", "testnet", "goerli")

# Environment variable -> (section, field, parser)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "MAX_RECURSION_DEPTH": ("engine", "max_recursion_depth"),
    "GAS_LIMIT": ("engine", "gas_limit"),
    "SCAN_BATCH_SIZE": ("engine", "scan_batch_size"),
    "RECEIPT_TIMEOUT_SECONDS": ("engine", "receipt_timeout_seconds"),
    "RPC_TIMEOUT_SECONDS": ("engine", "rpc_timeout_seconds"),
    "MAX_WORKERS": ("engine", "max_workers"),
    "LEASE_TTL_SECONDS": ("engine", "lease_ttl_seconds"),
    "EMAIL_MIN_INTERVAL_MS": ("notifications", "min_interval_ms"),
    "DATABASE_PATH": ("database", "path"),
}


@dataclass(frozen=True)
class RuntimeSettings:
    """Resolved, validated settings for one invocation."""
    engine: EngineParams
    notifications: NotificationParams
    database: DatabaseParams
    caller_address: Optional[str] = None
    caller_private_key: Optional[str] = None
    rpc_api_key: Optional[str] = None
    email_api_key: Optional[str] = None
    notification_email: Optional[str] = None
    sender_address: Optional[str] = None

    def notification_config(self) -> NotificationConfig:
        """Build the notification destinations these settings describe."""
        destinations: list[NotificationDestination] = []

        email = create_email_destination(
            self.email_api_key,
            self.notification_email,
            self.sender_address,
            api_url=self.notifications.api_url,
            timeout_seconds=self.notifications.request_timeout_seconds,
            retry_attempts=self.notifications.retry_attempts,
            retry_delay_seconds=self.notifications.retry_delay_seconds,
        )
        if email is not None:
            destinations.append(email)

        if self.notifications.stdout:
            destinations.append(NotificationDestination(
                name="stdout",
                method=NotificationMethod.STDOUT,
                config=StdoutNotificationConfig(),
            ))

        return NotificationConfig(
            destinations=destinations,
            min_interval_ms=self.notifications.min_interval_ms,
        )


def normalize_chain_name(chain_name: str) -> str:
    """Environment suffix for a chain, e.g. "sepolia-base" -> "SEPOLIA_BASE"."""
    return chain_name.strip().upper().replace("-", "_")


def _parse_int(raw: Any) -> Any:
    """Parse an integer, returning the raw value so validation can report it."""
    if isinstance(raw, int):
        return raw
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        return raw


def _parse_bool(raw: str) -> Any:
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    return raw


def _normalize_token(raw: Any) -> Any:
    """Fill token defaults the same way for YAML and JSON sources."""
    if not isinstance(raw, dict):
        return raw

    symbol = raw.get("symbol") or "UNKNOWN"
    decimals = raw.get("decimals")
    return {
        "address": raw.get("address"),
        "symbol": symbol,
        "name": raw.get("name") or raw.get("symbol") or "Unknown Token",
        "decimals": decimals if isinstance(decimals, int) and not isinstance(decimals, bool) else 18,
    }


@dataclass(frozen=True)
class ConfigLoader:
    """Manages configuration loading with 3-tier precedence."""

    config_dir: Path
    defaults: DefaultConfig
    environ: Mapping[str, str]

    @classmethod
    def create(
        cls,
        config_dir: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None
    ) -> "ConfigLoader":
        """Create a ConfigLoader instance."""
        if config_dir is None:
            config_dir = Path(os.environ.get("CLOCKTOWER_CONFIG_DIR", "config"))

        return cls(
            config_dir=Path(config_dir),
            defaults=get_default_config(),
            environ=os.environ if environ is None else environ,
        )

    def _env(self, key: str) -> Optional[str]:
        value = self.environ.get(key)
        if value is None or value.strip() == "":
            return None
        return value.strip()

    def _load_yaml(self, filename: str) -> dict[str, Any]:
        path = self.config_dir / filename

        if not path.exists():
            return {}

        with open(path) as f:
            data = yaml.safe_load(f)

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"{path} must contain a mapping at the top level")
        return data

    def load_settings_file(self) -> dict[str, Any]:
        """Load ``settings.yaml`` overrides from the config directory."""
        return self._load_yaml("settings.yaml")

    def load_chains_file(self) -> dict[str, Any]:
        """Load the ``chains`` mapping from ``chains.yaml``."""
        chains = self._load_yaml("chains.yaml").get("chains", {})
        if not isinstance(chains, dict):
            raise ConfigurationError("chains.yaml: 'chains' must be a mapping of name -> entry")
        return chains

    def _env_overrides(self) -> dict[str, Any]:
        overrides: dict[str, Any] = {}
        for key, (section, field_name) in ENV_OVERRIDES.items():
            raw = self._env(key)
            if raw is None:
                continue
            value = raw if field_name == "path" else _parse_int(raw)
            overrides.setdefault(section, {})[field_name] = value

        lease = self._env("LEASE_ENABLED")
        if lease is not None:
            overrides.setdefault("engine", {})["lease_enabled"] = _parse_bool(lease)

        return overrides

    def merge_config(self, overrides: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """
        Merge configuration with 3-tier precedence.

        Priority order:
        1. Explicit overrides and environment variables (highest priority)
        2. ``settings.yaml`` in the config directory
        3. Global defaults (lowest priority)
        """
        config = self._dataclass_to_dict(self.defaults)

        config = self._deep_merge(config, self.load_settings_file())
        config = self._deep_merge(config, self._env_overrides())

        if overrides:
            config = self._deep_merge(config, overrides)

        return config

    def load_settings(self, overrides: Optional[dict[str, Any]] = None) -> RuntimeSettings:
        """Resolve and validate runtime settings."""
        config = self.merge_config(overrides)

        errors = ConfigValidator.validate_config(config)
        if errors:
            messages = [f"{err.field}: {err.message} (got: {err.value})" for err in errors]
            raise ConfigurationError("Invalid configuration: " + "; ".join(messages), errors=errors)

        return RuntimeSettings(
            engine=self._build(EngineParams, config.get("engine", {})),
            notifications=self._build(NotificationParams, config.get("notifications", {})),
            database=self._build(DatabaseParams, config.get("database", {})),
            caller_address=self._env("CALLER_ADDRESS"),
            caller_private_key=self._env("CALLER_PRIVATE_KEY"),
            rpc_api_key=self._env("RPC_API_KEY") or self._env("ALCHEMY_API_KEY"),
            email_api_key=self._env("RESEND_API_KEY"),
            notification_email=self._env("NOTIFICATION_EMAIL"),
            sender_address=self._env("SENDER_ADDRESS"),
        )

    def active_chain_names(self, file_chains: Optional[dict[str, Any]] = None) -> list[str]:
        """Chains to run: ``ACTIVE_CHAINS``, else those in chains.yaml, else base."""
        raw = self._env("ACTIVE_CHAINS")
        if raw:
            return [name.strip() for name in raw.split(",") if name.strip()]
        if file_chains:
            return list(file_chains.keys())
        return ["base"]

    def parse_tokens_env(self, suffix: str) -> Optional[list[Any]]:
        """
        Parse ``TOKENS_<CHAIN>`` (JSON array) with the ``USDC_ADDRESS_<CHAIN>``
        single-token fallback. Returns None when neither is set.
        """
        raw = self._env(f"TOKENS_{suffix}")
        if raw:
            try:
                tokens = json.loads(raw)
            except json.JSONDecodeError as e:
                logger.warning("Ignoring malformed token list", variable=f"TOKENS_{suffix}", error=str(e))
                return []
            if not isinstance(tokens, list):
                logger.warning("Token list is not a JSON array", variable=f"TOKENS_{suffix}")
                return []
            return tokens

        usdc = self._env(f"USDC_ADDRESS_{suffix}")
        if usdc:
            return [{"address": usdc, "symbol": "USDC", "name": "USD Coin", "decimals": 6}]

        return None

    def _chain_env_entry(self, chain_name: str) -> dict[str, Any]:
        suffix = normalize_chain_name(chain_name)
        entry: dict[str, Any] = {}

        rpc_url = self._env(f"RPC_URL_{suffix}") or self._env(f"ALCHEMY_URL_{suffix}")
        if rpc_url:
            entry["rpc_url"] = rpc_url

        ledger_address = self._env(f"CLOCKTOWER_ADDRESS_{suffix}")
        if ledger_address:
            entry["ledger_address"] = ledger_address

        chain_id = self._env(f"CHAIN_ID_{suffix}")
        if chain_id:
            entry["chain_id"] = chain_id

        tokens = self.parse_tokens_env(suffix)
        if tokens is not None:
            entry["tokens"] = tokens

        for key, field_name in (("EXPLORER_URL", "explorer_url"), ("DISPLAY_NAME", "display_name")):
            value = self._env(f"{key}_{suffix}")
            if value:
                entry[field_name] = value

        return entry

    def build_chain_entry(self, chain_name: str, file_entry: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Merge a chain's chains.yaml entry with its environment variables."""
        entry = self._deep_merge(dict(file_entry or {}), self._chain_env_entry(chain_name))

        if "chain_id" in entry:
            entry["chain_id"] = _parse_int(entry["chain_id"])
        if isinstance(entry.get("tokens"), list):
            entry["tokens"] = [_normalize_token(token) for token in entry["tokens"]]

        return entry

    def load_chain_configs(self) -> list[ChainConfig]:
        """
        Load every active chain, dropping malformed entries with a warning.

        Returns:
            Valid chain configurations in ``ACTIVE_CHAINS`` order
        """
        file_chains = self.load_chains_file()
        chains = []

        for chain_name in self.active_chain_names(file_chains):
            file_entry = file_chains.get(chain_name)
            if file_entry is not None and not isinstance(file_entry, dict):
                logger.warning(
                    "Skipping chain with invalid configuration",
                    chain=chain_name,
                    errors=["chains.yaml entry must be a mapping"]
                )
                continue

            entry = self.build_chain_entry(chain_name, file_entry)
            errors = ConfigValidator.validate_chain_entry(entry)

            if errors:
                logger.warning(
                    "Skipping chain with invalid configuration",
                    chain=chain_name,
                    errors=[f"{err.field}: {err.message}" for err in errors]
                )
                continue

            chains.append(self.to_chain_config(chain_name, entry))

        logger.info("Loaded chain configurations", chains=[c.name for c in chains])
        return chains

    @staticmethod
    def to_chain_config(chain_name: str, entry: dict[str, Any]) -> ChainConfig:
        """Build a ChainConfig from a validated entry."""
        known_display, known_explorer = KNOWN_CHAINS.get(chain_name, (chain_name, DEFAULT_EXPLORER_URL))

        return ChainConfig(
            name=chain_name,
            chain_id=entry["chain_id"],
            rpc_url=entry["rpc_url"],
            ledger_address=entry["ledger_address"],
            tokens=tuple(
                TokenConfig(
                    address=token["address"],
                    symbol=token["symbol"],
                    name=token["name"],
                    decimals=token["decimals"],
                )
                for token in entry["tokens"]
            ),
            display_name=entry.get("display_name") or known_display,
            explorer_url=entry.get("explorer_url") or known_explorer,
            is_testnet=any(marker in chain_name for marker in TESTNET_MARKERS),
        )

    @staticmethod
    def _build(cls: type, values: dict[str, Any]) -> Any:
        """Instantiate a params dataclass, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            logger.warning("Ignoring unknown configuration keys", section=cls.__name__, keys=sorted(unknown))
        return cls(**{k: v for k, v in values.items() if k in known})

    def _dataclass_to_dict(self, obj: Any) -> dict[str, Any]:
        """Convert nested dataclasses to dictionary."""
        if hasattr(obj, '__dataclass_fields__'):
            result = {}
            for field_name, _field in obj.__dataclass_fields__.items():
                value = getattr(obj, field_name)
                if hasattr(value, '__dataclass_fields__'):
                    result[field_name] = self._dataclass_to_dict(value)
                else:
                    result[field_name] = value
            return result
        return obj  # type: ignore[no-any-return]

    def _deep_merge(self, base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result
