"""Server configuration: defaults, an optional TOML/JSON file, then environment."""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

ENV_PREFIX = "SERVER_"
_EXTENSIONS = (".toml", ".json")


def _load_file(path: Path) -> dict[str, Any]:
    text = path.read_bytes()
    if path.suffix == ".json":
        data = json.loads(text)
    else:
        data = tomllib.loads(text.decode("utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"configuration file {path} does not hold a table")
    return data


def _find_file(path: str) -> Path | None:
    candidate = Path(path)
    if candidate.is_file():
        return candidate
    if not candidate.suffix:
        for ext in _EXTENSIONS:
            with_ext = Path(path + ext)
            if with_ext.is_file():
                return with_ext
    return None


def _as_str(key: str, value: Any) -> str:
    if isinstance(value, (dict, list)):
        raise ValueError(f"invalid value for {key}: expected a string")
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _as_port(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("invalid value for port: expected an integer")
    try:
        port = int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid value for port: {value!r}") from exc
    if not 0 <= port <= 0xFFFF:
        raise ValueError(f"invalid value for port: {port} out of range")
    return port


@dataclass
class ServerConfig:
    """Settings of the compilation server."""

    port: int = 8888
    ip: str = "127.0.0.1"
    static_dir: str = "./static"
    data_dir: str = "./data"
    pico_sdk: str | None = None

    @classmethod
    def parse(
        cls, path: str, environ: Mapping[str, str] | None = None
    ) -> "ServerConfig":
        """Build the configuration.

        Defaults are overridden by the file at ``path`` if it exists, and that
        by ``SERVER_*`` environment variables. Raises ValueError on bad values.
        """
        if environ is None:
            environ = os.environ

        values: dict[str, Any] = {}
        found = _find_file(path)
        if found is not None:
            values.update({k.lower(): v for k, v in _load_file(found).items()})

        for name, value in environ.items():
            if name.lower().startswith(ENV_PREFIX.lower()):
                values[name[len(ENV_PREFIX):].lower()] = value

        known = {f.name for f in fields(cls)}
        config = cls()
        for key, value in values.items():
            if key not in known:
                continue
            if key == "port":
                config.port = _as_port(value)
            elif key == "pico_sdk" and value is None:
                config.pico_sdk = None
            else:
                setattr(config, key, _as_str(key, value))
        return config