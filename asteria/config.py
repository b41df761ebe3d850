"""Configuration files for the client and server, stored as TOML."""

from __future__ import annotations

import dataclasses
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, TypeVar

import platformdirs
import tomli_w

__all__ = [
    "NetworkConfig",
    "ServerConfig",
    "ClientConfig",
    "config_path",
    "load_config",
    "save_config",
]


@dataclass
class NetworkConfig:
    host: str = "0.0.0.0"
    port: int = 3100


@dataclass
class ServerConfig:
    FILE_NAME: ClassVar[str] = "server.toml"
    network: NetworkConfig = field(default_factory=NetworkConfig)


@dataclass
class ClientConfig:
    FILE_NAME: ClassVar[str] = "client.toml"
    network: NetworkConfig = field(default_factory=NetworkConfig)


ConfigT = TypeVar("ConfigT", ServerConfig, ClientConfig)


def config_path(config_class: type, base_dir: str | Path | None = None) -> Path:
    """Return the file a configuration class is stored in.

    The file lives in ``asteria/`` under ``base_dir``, or under the user's
    configuration directory when no base is given.
    """
    base = Path(base_dir) if base_dir is not None else Path(platformdirs.user_config_dir())
    return base / "asteria" / config_class.FILE_NAME


def _network_from_table(table: Any) -> NetworkConfig:
    if not isinstance(table, dict):
        raise ValueError("'network' must be a table")
    try:
        host, port = table["host"], table["port"]
    except KeyError as exc:
        raise ValueError(f"missing field {exc.args[0]!r} in 'network'") from exc
    if not isinstance(host, str):
        raise ValueError("'network.host' must be a string")
    if isinstance(port, bool) or not isinstance(port, int) or not 0 <= port <= 0xFFFF:
        raise ValueError("'network.port' must be an integer between 0 and 65535")
    return NetworkConfig(host=host, port=port)


def load_config(config_class: type[ConfigT], base_dir: str | Path | None = None) -> ConfigT:
    """Read a configuration, writing and returning the defaults if none exists."""
    path = config_path(config_class, base_dir)
    if not path.exists():
        config = config_class()
        save_config(config, base_dir)
        return config
    data = tomllib.loads(path.read_text(encoding="utf-8"))
    if "network" not in data:
        raise ValueError(f"missing field 'network' in {path}")
    return config_class(network=_network_from_table(data["network"]))


def save_config(config: ServerConfig | ClientConfig, base_dir: str | Path | None = None) -> Path:
    """Write a configuration to its file, creating directories as needed."""
    path = config_path(type(config), base_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(tomli_w.dumps(dataclasses.asdict(config)), encoding="utf-8")
    return path