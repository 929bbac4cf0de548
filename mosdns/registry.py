"""Plugin types, preset plugins and the basic plugin they build on."""

from __future__ import annotations

import abc
import dataclasses
import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from mosdns.chain import NOP_LOGGER
from mosdns.config import PluginConfig, _decode_into


class Plugin(abc.ABC):
    """A configured plugin."""

    @property
    @abc.abstractmethod
    def tag(self) -> str: ...

    @property
    @abc.abstractmethod
    def type(self) -> str: ...

    @abc.abstractmethod
    def close(self) -> None: ...


class BasicPlugin(Plugin):
    """A plugin with a tag, a type, a logger named after its tag and its host."""

    def __init__(
        self,
        tag: str,
        type_: str,
        logger: logging.Logger | None = None,
        host: Any = None,
    ) -> None:
        self._tag = tag
        self._type = type_
        self._logger = (logger or NOP_LOGGER).getChild(tag) if tag else (logger or NOP_LOGGER)
        self._host = host

    @property
    def tag(self) -> str:
        return self._tag

    @property
    def type(self) -> str:
        return self._type

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    @property
    def host(self) -> Any:
        return self._host

    def close(self) -> None:
        return None


NewPluginFunc = Callable[[BasicPlugin, Any], Plugin]
ArgsFactory = Callable[[], Any]
PresetPluginFunc = Callable[[BasicPlugin], Plugin]


@dataclass(frozen=True)
class PluginTypeInfo:
    """How to build plugins of one type, and how to make their args object."""

    new_plugin: NewPluginFunc
    new_args: ArgsFactory | None = None


_types_lock = threading.Lock()
_types: dict[str, PluginTypeInfo] = {}

_presets_lock = threading.Lock()
_presets: dict[str, PresetPluginFunc] = {}


def register_plugin_type(
    type_: str, init_func: NewPluginFunc, args_factory: ArgsFactory | None = None
) -> None:
    """Register a plugin type. Raises ValueError if it is already registered."""
    with _types_lock:
        if type_ in _types:
            raise ValueError(f"duplicate plugin type [{type_}]")
        _types[type_] = PluginTypeInfo(init_func, args_factory)


def delete_plugin_type(type_: str) -> None:
    """Forget a plugin type; a no-op if it is not registered."""
    with _types_lock:
        _types.pop(type_, None)


def get_plugin_type(type_: str) -> PluginTypeInfo | None:
    with _types_lock:
        return _types.get(type_)


def get_all_plugin_types() -> list[str]:
    with _types_lock:
        return list(_types)


def _decode_args(args: Any, mapping: Mapping[str, Any]) -> Any:
    if isinstance(args, dict):
        args.update(mapping)
        return args
    if dataclasses.is_dataclass(args) and not isinstance(args, type):
        return _decode_into(args, mapping, "args")
    raise TypeError(f"cannot decode args into {type(args).__name__}")


def new_plugin(
    config: PluginConfig, logger: logging.Logger | None = None, host: Any = None
) -> Plugin:
    """Build a plugin from config.

    A mapping of args is decoded into the object the type's args factory
    makes; any other args must be of that object's type.
    """
    info = get_plugin_type(config.type)
    if info is None:
        raise ValueError(f"plugin type {config.type} not defined")

    bp = BasicPlugin(config.tag, config.type, logger, host)
    if info.new_args is None:
        return info.new_plugin(bp, config.args)

    args = info.new_args()
    if isinstance(config.args, Mapping):
        try:
            args = _decode_args(args, config.args)
        except (ValueError, TypeError) as err:
            raise ValueError(f"unable to decode plugin args: {err}") from err
    elif config.args is not None:
        if type(config.args) is not type(args):
            raise TypeError(
                f"invalid plugin args type, want {type(args).__name__}, "
                f"got {type(config.args).__name__}"
            )
        args = config.args
    return info.new_plugin(bp, args)


def register_preset_plugin(tag: str, func: PresetPluginFunc) -> None:
    """Register a plugin that is always built, under tag. Raises ValueError on a duplicate."""
    with _presets_lock:
        if tag in _presets:
            raise ValueError(f"preset plugin {tag} has already been registered")
        _presets[tag] = func


def load_preset_plugin_funcs() -> dict[str, PresetPluginFunc]:
    """Return a copy of the registered preset plugin functions."""
    with _presets_lock:
        return dict(_presets)