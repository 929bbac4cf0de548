"""Data files shared by plugins, with optional reload on change."""

from __future__ import annotations

import abc
import logging
import os
import threading
from dataclasses import dataclass

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from mosdns.chain import NOP_LOGGER

DEFAULT_RELOAD_DELAY = 1.0  # seconds

_RELOAD_EVENTS = frozenset({"modified", "created", "deleted", "moved"})


class DataListener(abc.ABC):
    """Something that consumes the content of a data file."""

    @abc.abstractmethod
    def update(self, new_data: bytes) -> None:
        """Take new content; raise if it cannot be used."""


@dataclass
class DataProviderConfig:
    """A data file. With auto_reload, listeners get its content on every change."""

    tag: str = ""
    file: str = ""
    auto_reload: bool = False


class _FileEventHandler(FileSystemEventHandler):
    def __init__(self, path: str, callback) -> None:
        super().__init__()
        self._path = path
        self._callback = callback

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory or event.event_type not in _RELOAD_EVENTS:
            return
        paths = {os.path.abspath(os.fsdecode(event.src_path))}
        dest = getattr(event, "dest_path", "")
        if dest:
            paths.add(os.path.abspath(os.fsdecode(dest)))
        if self._path in paths:
            self._callback(event.event_type)


class DataProvider:
    """Provides the content of one file to its listeners.

    The file is read once on creation, which raises OSError if it cannot be
    read. With auto reload, a change to the file is followed, after
    reload_delay seconds without further changes, by a reload that is
    pushed to every listener.
    """

    def __init__(
        self,
        config: DataProviderConfig,
        logger: logging.Logger | None = None,
        *,
        reload_delay: float = DEFAULT_RELOAD_DELAY,
    ) -> None:
        self._logger = logger or NOP_LOGGER
        self._file = config.file
        self._auto_reload = config.auto_reload
        self._reload_delay = reload_delay
        self._listeners: dict[int, DataListener] = {}
        self._listeners_lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self._timer_lock = threading.Lock()
        self._closed = False
        self._observer = None

        self._load_from_disk()
        if self._auto_reload:
            try:
                self._start_fs_watcher()
            except OSError as err:
                raise OSError(f"failed to start fs watcher, {err}") from err

    @property
    def file(self) -> str:
        return self._file

    def get_data(self) -> bytes:
        """Read and return the current content of the file."""
        with open(self._file, "rb") as fh:
            return fh.read()

    def _load_from_disk(self) -> bytes:
        return self.get_data()

    def load_and_add_listener(self, listener: DataListener) -> None:
        """Hand the current content to listener, then keep it for later reloads.

        Errors from reading the file or from the listener propagate, and the
        listener is not added.
        """
        data = self.get_data()
        listener.update(data)
        with self._listeners_lock:
            self._listeners[id(listener)] = listener

    def delete_listener(self, listener: DataListener) -> None:
        with self._listeners_lock:
            self._listeners.pop(id(listener), None)

    def _push_data(self, data: bytes) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners.values())
        for listener in listeners:
            try:
                listener.update(data)
            except Exception as err:  # noqa: BLE001
                self._logger.error(
                    "failed to update data listener", extra={"fields": {"error": str(err)}}
                )

    def _start_fs_watcher(self) -> None:
        path = os.path.abspath(self._file)
        handler = _FileEventHandler(path, self._on_fs_event)
        observer = Observer()
        observer.schedule(handler, os.path.dirname(path), recursive=False)
        observer.daemon = True
        observer.start()
        self._observer = observer

    def _on_fs_event(self, event_type: str) -> None:
        self._logger.info("fs event", extra={"fields": {"event": event_type, "file": self._file}})
        with self._timer_lock:
            if self._closed:
                return
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self._reload_delay, self._reload)
            self._timer.daemon = True
            self._timer.start()

    def _reload(self) -> None:
        fields = {"file": self._file}
        self._logger.info("reloading file", extra={"fields": fields})
        try:
            data = self._load_from_disk()
        except OSError as err:
            self._logger.error(
                "failed to reload file", extra={"fields": {**fields, "error": str(err)}}
            )
            return
        self._logger.info("file reloaded", extra={"fields": fields})
        self._push_data(data)

    def close(self) -> None:
        """Stop watching the file."""
        with self._timer_lock:
            self._closed = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None

    def __enter__(self) -> DataProvider:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class DataManager:
    """Holds the data providers by tag."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._providers: dict[str, DataProvider] = {}

    def add_data_provider(self, name: str, provider: DataProvider) -> None:
        with self._lock:
            self._providers[name] = provider

    def get_data_provider(self, name: str) -> DataProvider | None:
        with self._lock:
            return self._providers.get(name)