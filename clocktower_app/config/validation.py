"""Configuration validation utilities."""

import re
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlparse

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")
PRIVATE_KEY_PATTERN = re.compile(r"^0x[a-fA-F0-9]{64}$")


@dataclass(frozen=True)
class ValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    value: Any


def is_valid_address(value: Any) -> bool:
    return isinstance(value, str) and bool(ADDRESS_PATTERN.match(value))


def is_valid_private_key(value: Any) -> bool:
    return isinstance(value, str) and bool(PRIVATE_KEY_PATTERN.match(value))


def is_valid_http_url(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _is_positive_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


class ConfigValidator:
    """Validates configuration parameters."""

    @staticmethod
    def validate_engine_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate engine parameters."""
        errors = []

        for name in ("max_recursion_depth", "gas_limit", "scan_batch_size",
                     "receipt_timeout_seconds", "rpc_timeout_seconds", "max_workers", "lease_ttl_seconds"):
            if name in params and not _is_positive_int(params[name]):
                errors.append(ValidationError(
                    field=name,
                    message="Must be a positive integer",
                    value=params[name]
                ))

        if "lease_enabled" in params and not isinstance(params["lease_enabled"], bool):
            errors.append(ValidationError(
                field="lease_enabled",
                message="Must be a boolean",
                value=params["lease_enabled"]
            ))

        return errors

    @staticmethod
    def validate_notification_params(params: dict[str, Any]) -> list[ValidationError]:
        """Validate notification parameters."""
        errors = []

        if "min_interval_ms" in params:
            value = params["min_interval_ms"]
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                errors.append(ValidationError(
                    field="min_interval_ms",
                    message="Must be a non-negative integer",
                    value=value
                ))

        for name in ("request_timeout_seconds",):
            if name in params and not _is_positive_int(params[name]):
                errors.append(ValidationError(
                    field=name,
                    message="Must be a positive integer",
                    value=params[name]
                ))

        for name in ("retry_attempts", "retry_delay_seconds"):
            value = params.get(name, 0)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                errors.append(ValidationError(
                    field=name,
                    message="Must be a non-negative integer",
                    value=value
                ))

        if "api_url" in params and not is_valid_http_url(params["api_url"]):
            errors.append(ValidationError(
                field="api_url",
                message="Must be an http(s) URL with a host",
                value=params["api_url"]
            ))

        return errors

    @staticmethod
    def validate_token_entry(token: Any, index: int = 0) -> list[ValidationError]:
        """Validate one tracked token entry."""
        prefix = f"tokens[{index}]"

        if not isinstance(token, dict):
            return [ValidationError(
                field=prefix,
                message="Must be a mapping with an address",
                value=token
            )]

        errors = []

        if not is_valid_address(token.get("address")):
            errors.append(ValidationError(
                field=f"{prefix}.address",
                message="Must be a 40-character hex address starting with 0x",
                value=token.get("address")
            ))

        decimals = token.get("decimals", 18)
        if not isinstance(decimals, int) or isinstance(decimals, bool) or decimals < 0:
            errors.append(ValidationError(
                field=f"{prefix}.decimals",
                message="Must be a non-negative integer",
                value=decimals
            ))

        return errors

    @staticmethod
    def validate_chain_entry(entry: dict[str, Any]) -> list[ValidationError]:
        """Validate a raw chain entry before it becomes a ChainConfig."""
        errors = []

        if not entry.get("rpc_url"):
            errors.append(ValidationError(
                field="rpc_url",
                message="Missing RPC endpoint",
                value=entry.get("rpc_url")
            ))

        if not is_valid_address(entry.get("ledger_address")):
            errors.append(ValidationError(
                field="ledger_address",
                message="Must be a 40-character hex address starting with 0x",
                value=entry.get("ledger_address")
            ))

        if not _is_positive_int(entry.get("chain_id")):
            errors.append(ValidationError(
                field="chain_id",
                message="Must be a positive integer",
                value=entry.get("chain_id")
            ))

        tokens = entry.get("tokens")
        if not isinstance(tokens, list) or not tokens:
            errors.append(ValidationError(
                field="tokens",
                message="At least one tracked token is required",
                value=tokens
            ))
        else:
            for index, token in enumerate(tokens):
                errors.extend(ConfigValidator.validate_token_entry(token, index))

        explorer_url = entry.get("explorer_url")
        if explorer_url is not None and "{tx_hash}" not in str(explorer_url):
            errors.append(ValidationError(
                field="explorer_url",
                message="Must contain the {tx_hash} placeholder",
                value=explorer_url
            ))

        return errors

    @staticmethod
    def validate_credentials(
        caller_address: Optional[str],
        private_key: Optional[str]
    ) -> list[ValidationError]:
        """Validate the funding account credentials."""
        errors = []

        if not caller_address:
            errors.append(ValidationError(
                field="CALLER_ADDRESS",
                message="Missing required environment variable",
                value=None
            ))
        elif not is_valid_address(caller_address):
            errors.append(ValidationError(
                field="CALLER_ADDRESS",
                message="Must be a 40-character hex address starting with 0x",
                value=caller_address
            ))

        if not private_key:
            errors.append(ValidationError(
                field="CALLER_PRIVATE_KEY",
                message="Missing required environment variable",
                value=None
            ))
        elif not is_valid_private_key(private_key):
            # Never echo the key back
            errors.append(ValidationError(
                field="CALLER_PRIVATE_KEY",
                message="Must be a 64-character hex private key starting with 0x",
                value="<redacted>"
            ))

        return errors

    @staticmethod
    def validate_config(config: dict[str, Any]) -> list[ValidationError]:
        """Validate complete configuration."""
        errors = []

        if "engine" in config:
            errors.extend(ConfigValidator.validate_engine_params(config["engine"]))

        if "notifications" in config:
            errors.extend(ConfigValidator.validate_notification_params(config["notifications"]))

        return errors
