"""Server configuration: its schema, loading from files and include merging."""

import dataclasses
import typing
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from mosdns.data_provider import DataProviderConfig
from mosdns.mlog import LogConfig, default_logger

MAX_INCLUDE_DEPTH = 8
_SUPPORTED_EXTENSIONS = ("json", "yaml", "yml")
_TRUE_STRINGS = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE_STRINGS = {"", "0", "f", "F", "FALSE", "false", "False"}
_UNSIGNED = {"unsigned": True}


@dataclass
class PluginConfig:
    """A plugin: its tag, its type and the arguments its type takes."""

    tag: str = ""
    type: str = ""
    args: Any = None


@dataclass
class ServerListenerConfig:
    """A listener. protocol is "", udp, tcp, dot/tls, doh/https or http."""

    protocol: str = ""
    addr: str = ""
    cert: str = ""
    key: str = ""
    url_path: str = ""
    get_user_ip_from_header: str = ""
    proxy_protocol: bool = False
    idle_timeout: int = field(default=0, metadata=_UNSIGNED)  # seconds


@dataclass
class ServerConfig:
    """A server: the entry it runs, its query timeout and its listeners."""

    exec: str = ""
    timeout: int = field(default=0, metadata=_UNSIGNED)  # seconds
    listeners: list[ServerListenerConfig] = field(default_factory=list)


@dataclass
class APIConfig:
    http: str = ""


@dataclass
class BadIPObserverConfig:
    """Settings of the bad IP observer; a zero threshold disables it."""

    threshold: int = 0
    interval: int = 0  # seconds
    ttl: int = 0  # seconds
    on_update_callback: str = ""
    ipv4_mask: int = 0
    ipv6_mask: int = 0

    def apply_defaults(self) -> None:
        """Fill zero fields with their defaults."""
        self.interval = self.interval or 10
        self.ttl = self.ttl or 600
        self.ipv4_mask = self.ipv4_mask or 32
        self.ipv6_mask = self.ipv6_mask or 48


@dataclass
class SecurityConfig:
    bad_ip_observer: BadIPObserverConfig = field(default_factory=BadIPObserverConfig)


@dataclass
class Config:
    """The whole server configuration."""

    log: LogConfig = field(default_factory=LogConfig)
    include: list[str] = field(default_factory=list)
    data_providers: list[DataProviderConfig] = field(default_factory=list)
    plugins: list[PluginConfig] = field(default_factory=list)
    servers: list[ServerConfig] = field(default_factory=list)
    api: APIConfig = field(default_factory=APIConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "Config":
        """Decode a mapping, converting weakly typed values. Unknown keys raise ValueError."""
        return _decode_into(cls(), mapping)


_SIMPLE_HINTS: dict[str, Any] = {
    "str": str,
    "int": int,
    "bool": bool,
    "float": float,
    "Any": Any,
    "typing.Any": Any,
}

_KNOWN_TYPES: dict[str, Any] = {
    cls.__name__: cls
    for cls in (
        PluginConfig,
        ServerListenerConfig,
        ServerConfig,
        APIConfig,
        BadIPObserverConfig,
        SecurityConfig,
        Config,
        LogConfig,
        DataProviderConfig,
    )
}


def _resolve(hint: Any) -> Any:
    """Turn a field annotation, possibly written as text, into a type."""
    if not isinstance(hint, str):
        return hint
    text = hint.strip()
    if text in _SIMPLE_HINTS:
        return _SIMPLE_HINTS[text]
    if text in _KNOWN_TYPES:
        return _KNOWN_TYPES[text]
    if text.startswith("list[") and text.endswith("]"):
        return list[_resolve(text[5:-1])]
    if "|" in text:
        parts = [part.strip() for part in text.split("|") if part.strip() != "None"]
        if len(parts) == 1:
            return _resolve(parts[0])
    raise TypeError(f"unsupported field type {hint!r}")


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _to_str(value: Any, path: str) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    raise TypeError(f"'{path}' expected a string, got {type(value).__name__}")


def _to_bool(value: Any, path: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        if value in _TRUE_STRINGS:
            return True
        if value in _FALSE_STRINGS:
            return False
        raise ValueError(f"cannot parse '{path}' as bool: {value!r}")
    raise TypeError(f"'{path}' expected a bool, got {type(value).__name__}")


def _to_int(value: Any, path: str) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        if not value:
            return 0
        try:
            return int(value, 0)
        except ValueError as err:
            raise ValueError(f"cannot parse '{path}' as int: {err}") from err
    raise TypeError(f"'{path}' expected an int, got {type(value).__name__}")


def _to_float(value: Any, path: str) -> float:
    if isinstance(value, (bool, int, float)):
        return float(value)
    if isinstance(value, str):
        if not value:
            return 0.0
        try:
            return float(value)
        except ValueError as err:
            raise ValueError(f"cannot parse '{path}' as float: {err}") from err
    raise TypeError(f"'{path}' expected a float, got {type(value).__name__}")


def _zero(hint: Any) -> Any:
    if hint is str:
        return ""
    if hint is bool:
        return False
    if hint is int:
        return 0
    if hint is float:
        return 0.0
    if typing.get_origin(hint) is list:
        return []
    if dataclasses.is_dataclass(hint):
        return hint()
    return None


def _convert(hint: Any, value: Any, path: str, unsigned: bool = False) -> Any:
    hint = _resolve(hint)
    if value is None:
        return _zero(hint)
    if hint is Any:
        return value
    if typing.get_origin(hint) is list:
        (item_hint,) = typing.get_args(hint)
        items = value if isinstance(value, (list, tuple)) else [value]
        return [_convert(item_hint, item, f"{path}[{i}]") for i, item in enumerate(items)]
    if dataclasses.is_dataclass(hint):
        return _decode_into(hint(), value, path)
    if hint is str:
        return _to_str(value, path)
    if hint is bool:
        return _to_bool(value, path)
    if hint is int:
        number = _to_int(value, path)
        if unsigned and number < 0:
            raise ValueError(f"cannot parse '{path}', {number} overflows uint")
        return number
    if hint is float:
        return _to_float(value, path)
    raise TypeError(f"'{path}' has an unsupported type {hint!r}")


def _decode_into(target: Any, mapping: Any, path: str = "") -> Any:
    """Set the fields of the dataclass instance target from mapping and return it."""
    if not isinstance(mapping, Mapping):
        where = path or type(target).__name__
        raise TypeError(f"'{where}' expected a map, got {type(mapping).__name__}")
    fields_by_name = {f.name: f for f in dataclasses.fields(target) if f.init}
    unused = sorted(str(key) for key in mapping if key not in fields_by_name)
    if unused:
        where = path or type(target).__name__
        raise ValueError(f"'{where}' has invalid keys: {', '.join(unused)}")
    for key, value in mapping.items():
        spec = fields_by_name[key]
        converted = _convert(spec.type, value, _join(path, key), spec.metadata.get("unsigned", False))
        setattr(target, key, converted)
    return target


def _find_config_file() -> Path:
    for ext in _SUPPORTED_EXTENSIONS:
        candidate = Path(".") / f"config.{ext}"
        if candidate.is_file():
            return candidate
    raise ValueError(f'failed to read config: Config File "config" Not Found in [{Path.cwd()}]')


def load_config(path: str = "") -> tuple[Config, str]:
    """Load a config file and return it with the path of the file used.

    With an empty path, a file named config.json, config.yaml or config.yml
    in the working directory is used.
    """
    if path:
        file = Path(path)
        if file.suffix.lstrip(".") not in _SUPPORTED_EXTENSIONS:
            raise ValueError(f"failed to read config: Unsupported Config Type {file.suffix.lstrip('.')!r}")
    else:
        file = _find_config_file()
    try:
        text = file.read_text(encoding="utf-8")
        data = yaml.safe_load(text)
    except (OSError, yaml.YAMLError) as err:
        raise ValueError(f"failed to read config: {err}") from err
    if data is None:
        data = {}
    try:
        config = Config.from_mapping(data)
    except (ValueError, TypeError) as err:
        raise ValueError(f"failed to unmarshal config: {err}") from err
    return config, str(file)


def merge_include(config: Config, depth: int = 0, paths: list[str] | None = None) -> None:
    """Load the files config includes, recursively, and put their data
    providers, plugins and servers in front of config's own."""
    paths = list(paths or [])
    depth += 1
    if depth > MAX_INCLUDE_DEPTH:
        raise ValueError(f"maximun include depth reached, include path is {' -> '.join(paths)}")

    data_providers: list[DataProviderConfig] = []
    plugins: list[PluginConfig] = []
    servers: list[ServerConfig] = []
    for sub_file in config.include:
        default_logger().info("reading sub config", extra={"fields": {"file": sub_file}})
        try:
            sub_config, _ = load_config(sub_file)
        except ValueError as err:
            raise ValueError(f"failed to load sub config, {err}") from err
        merge_include(sub_config, depth, [*paths, sub_file])
        data_providers += sub_config.data_providers
        plugins += sub_config.plugins
        servers += sub_config.servers

    config.data_providers = data_providers + config.data_providers
    config.plugins = plugins + config.plugins
    config.servers = servers + config.servers