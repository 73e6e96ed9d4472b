"""Shared configuration loader for the ORE client."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml
from solders.keypair import Keypair

logger = logging.getLogger(__name__)


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


class KeypairError(RuntimeError):
    """Raised when the signing keypair cannot be loaded."""


DEFAULT_CONFIG_PATH = Path.home() / ".config" / "solana" / "cli" / "config.yml"
DEFAULT_KEYPAIR_PATH = Path.home() / ".config" / "solana" / "id.json"
DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
DEFAULT_COMMITMENT = "confirmed"
COMMITMENT_LEVELS = ("processed", "confirmed", "finalized")

ENV_ADMIN_FLAG = "ORE_CLI_ENABLE_ADMIN"


@dataclass(frozen=True)
class ClientConfig:
    """Resolved endpoint, identity path and fee policy for one process."""

    rpc_url: str
    keypair_path: Path
    commitment: str = DEFAULT_COMMITMENT
    priority_fee: int = 0


@dataclass(frozen=True)
class SubmitterSettings:
    """Retry budget and polling cadence used by the transaction submitter."""

    confirm_attempts: int = 30
    confirm_interval: float = 2.0
    max_expiry_retries: int = 3
    blockhash_refresh_interval: float = 10.0

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> "SubmitterSettings":
        env_map = os.environ if env is None else env
        defaults = cls()
        return cls(
            confirm_attempts=_env_number(
                env_map, "ORE_CONFIRM_ATTEMPTS", defaults.confirm_attempts, int
            ),
            confirm_interval=_env_number(
                env_map, "ORE_CONFIRM_INTERVAL", defaults.confirm_interval, float
            ),
            max_expiry_retries=_env_number(
                env_map, "ORE_MAX_EXPIRY_RETRIES", defaults.max_expiry_retries, int
            ),
            blockhash_refresh_interval=_env_number(
                env_map,
                "ORE_BLOCKHASH_REFRESH_SECONDS",
                defaults.blockhash_refresh_interval,
                float,
            ),
        )


def _env_number(env: Mapping[str, str], name: str, default: Any, kind: type) -> Any:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        value = kind(raw)
    except ValueError:
        logger.warning("Invalid value in %s=%s; using %s", name, raw, default)
        return default
    if value < 0:
        logger.warning("Negative value in %s=%s; using %s", name, raw, default)
        return default
    return value


def _coerce_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off"}:
            return False
    return None


def admin_commands_enabled(env: Mapping[str, str] | None = None) -> bool:
    """Return True when privileged program commands should be exposed."""

    env_map = os.environ if env is None else env
    return bool(_coerce_bool(env_map.get(ENV_ADMIN_FLAG)))


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None and value != "":
            return value
    return default


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Could not find config file `{path}`")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML mapping")
    return loaded


def _validate_rpc_url(raw: str) -> str:
    parsed = urlparse(raw)
    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        raise ConfigurationError(f"Invalid RPC endpoint URL: {raw}")
    return raw


def _coerce_priority_fee(raw: Any, *, source: str) -> int | None:
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid priority fee in {source}: {raw}") from exc
    if value < 0:
        raise ConfigurationError(f"Priority fee must be non-negative ({source}: {raw})")
    return value


def load_client_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ClientConfig:
    """Resolve client configuration from overrides, environment and YAML.

    The YAML file uses the Solana CLI layout (``json_rpc_url``,
    ``keypair_path``, ``commitment``). A path given explicitly, either as
    ``config_path`` or via ``SOLANA_CONFIG``, must exist; the default path is
    optional and silently skipped when absent.
    """

    env_map = os.environ if env is None else env
    override_map = dict(overrides or {})

    env_path = env_map.get("SOLANA_CONFIG")
    explicit = config_path is not None or bool(env_path)
    path = Path(config_path or env_path or DEFAULT_CONFIG_PATH).expanduser()
    file_config = _load_config_file(path, required=explicit)

    rpc_url = _first_value(
        override_map.get("rpc_url"),
        env_map.get("ORE_RPC_URL"),
        file_config.get("json_rpc_url"),
        default=DEFAULT_RPC_URL,
    )
    keypair_path = _first_value(
        override_map.get("keypair_path"),
        env_map.get("ORE_KEYPAIR_PATH"),
        file_config.get("keypair_path"),
        default=str(DEFAULT_KEYPAIR_PATH),
    )
    commitment = str(
        _first_value(
            override_map.get("commitment"),
            env_map.get("ORE_COMMITMENT"),
            file_config.get("commitment"),
            default=DEFAULT_COMMITMENT,
        )
    ).lower()
    if commitment not in COMMITMENT_LEVELS:
        raise ConfigurationError(
            f"Unsupported commitment level {commitment!r}; expected one of {', '.join(COMMITMENT_LEVELS)}"
        )
    priority_fee = _first_value(
        _coerce_priority_fee(override_map.get("priority_fee"), source="--priority-fee"),
        _coerce_priority_fee(env_map.get("ORE_PRIORITY_FEE"), source="ORE_PRIORITY_FEE"),
        default=0,
    )

    return ClientConfig(
        rpc_url=_validate_rpc_url(str(rpc_url)),
        keypair_path=Path(str(keypair_path)).expanduser(),
        commitment=commitment,
        priority_fee=priority_fee,
    )


def load_keypair(path: str | Path) -> Keypair:
    """Read a Solana CLI keypair file (a JSON array of 64 bytes)."""

    keypair_path = Path(path).expanduser()
    try:
        raw = json.loads(keypair_path.read_text())
    except OSError as exc:
        raise KeypairError(f"Could not read keypair file {keypair_path}: {exc}") from exc
    except ValueError as exc:
        raise KeypairError(f"Keypair file {keypair_path} is not valid JSON") from exc

    if not isinstance(raw, list) or len(raw) != 64:
        raise KeypairError(f"Keypair file {keypair_path} must contain a 64-byte array")
    try:
        return Keypair.from_bytes(bytes(raw))
    except ValueError as exc:
        raise KeypairError(f"Keypair file {keypair_path} holds an invalid keypair: {exc}") from exc
