"""Shared configuration loader for the CRC20 resolver."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml

from .cashaddr import prefix_for_network


class ConfigurationError(RuntimeError):
    """Raised when configuration is invalid."""


DEFAULT_CONFIG_PATH = Path.home() / ".crc20.yaml"

DEFAULT_HOST = "scaling.cash"
DEFAULT_PORT = 50004
DEFAULT_PROTOCOL = "wss"
DEFAULT_NETWORK = "mainnet"
DEFAULT_TIMEOUT = 30.0

_PROTOCOLS = {"ws", "wss"}


@dataclass
class ElectrumConfig:
    """Connection details for an Electrum (Fulcrum) WebSocket endpoint."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    protocol: str = DEFAULT_PROTOCOL
    network: str = DEFAULT_NETWORK
    timeout: float = DEFAULT_TIMEOUT
    client_name: str = "crc20-bch"
    protocol_version: str = "1.4.2"

    @property
    def url(self) -> str:
        return f"{self.protocol}://{self.host}:{self.port}"

    @property
    def cashaddr_prefix(self) -> str:
        return prefix_for_network(self.network)


def _load_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigurationError(f"Config file not found: {path}")
        return {}

    try:
        loaded = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:  # pragma: no cover - delegated to PyYAML
        raise ConfigurationError(f"Invalid YAML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Expected {path} to contain a YAML object with an 'electrum' section")
    return loaded


def _coerce_port(raw: Any, *, source: str) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid port in {source}: {raw}") from exc


def _coerce_timeout(raw: Any, *, source: str) -> float | None:
    if raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid timeout in {source}: {raw}") from exc
    if value <= 0:
        raise ConfigurationError(f"Timeout must be positive in {source}: {raw}")
    return value


def _coerce_protocol(raw: Any, *, source: str) -> str | None:
    if raw is None:
        return None
    normalized = str(raw).strip().lower()
    if normalized not in _PROTOCOLS:
        raise ConfigurationError(f"Unsupported protocol in {source}: {raw} (expected ws or wss)")
    return normalized


def _first_value(*values: Any, default: Any = None) -> Any:
    for value in values:
        if value is not None:
            return value
    return default


def _parse_endpoint(raw: str | None) -> tuple[str | None, int | None, str | None]:
    if not raw:
        return None, None, None
    parsed = urlparse(raw)
    if not parsed.scheme or not parsed.hostname:
        raise ConfigurationError(f"Invalid Electrum endpoint URL: {raw}")
    try:
        port = parsed.port
    except ValueError as exc:
        raise ConfigurationError(f"Invalid port in Electrum endpoint URL: {raw}") from exc
    return parsed.hostname, port, _coerce_protocol(parsed.scheme, source="endpoint")


def load_electrum_config(
    *,
    config_path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> ElectrumConfig:
    """Load Electrum configuration from overrides, environment and optional YAML."""

    env_map = os.environ if env is None else env
    explicit_path = config_path is not None
    path = Path(config_path).expanduser() if explicit_path else DEFAULT_CONFIG_PATH

    file_config = _load_config_file(path, required=explicit_path)
    section = file_config.get("electrum", {}) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"Expected 'electrum' to be a mapping in {path}")

    override_map = {key: value for key, value in (overrides or {}).items() if value is not None}

    # Each source's URL outranks that source's individual fields.
    override_host, override_port, override_protocol = _parse_endpoint(override_map.get("url"))
    env_host, env_port, env_protocol = _parse_endpoint(env_map.get("CRC20_ELECTRUM_URL"))
    file_host, file_port, file_protocol = _parse_endpoint(section.get("url"))

    host = _first_value(
        override_host,
        override_map.get("host"),
        env_host,
        env_map.get("CRC20_ELECTRUM_HOST"),
        file_host,
        section.get("host"),
        DEFAULT_HOST,
    )
    port = _first_value(
        override_port,
        _coerce_port(override_map.get("port"), source="overrides"),
        env_port,
        _coerce_port(env_map.get("CRC20_ELECTRUM_PORT"), source="environment"),
        file_port,
        _coerce_port(section.get("port"), source=f"{path} electrum.port"),
        DEFAULT_PORT,
    )
    protocol = _first_value(
        override_protocol,
        _coerce_protocol(override_map.get("protocol"), source="overrides"),
        env_protocol,
        _coerce_protocol(env_map.get("CRC20_ELECTRUM_PROTO"), source="environment"),
        file_protocol,
        _coerce_protocol(section.get("protocol"), source=f"{path} electrum.protocol"),
        DEFAULT_PROTOCOL,
    )
    network = _first_value(
        override_map.get("network"),
        env_map.get("CRC20_NETWORK"),
        section.get("network"),
        DEFAULT_NETWORK,
    )
    try:
        prefix_for_network(str(network))
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc
    timeout = _first_value(
        _coerce_timeout(override_map.get("timeout"), source="overrides"),
        _coerce_timeout(env_map.get("CRC20_ELECTRUM_TIMEOUT"), source="environment"),
        _coerce_timeout(section.get("timeout"), source=f"{path} electrum.timeout"),
        DEFAULT_TIMEOUT,
    )

    return ElectrumConfig(
        host=host,
        port=port,
        protocol=protocol,
        network=str(network),
        timeout=timeout,
    )
