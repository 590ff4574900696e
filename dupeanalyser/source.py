"""Discovery of JSON / NDJSON input files to analyse."""

from __future__ import annotations

import os
import stat
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import BinaryIO, Iterable

GCS_SCHEME = "gs://"
_SUFFIXES = (".json", ".ndjson", ".jsonl")


class DiscoveryError(Exception):
    """Raised when input paths cannot be turned into processable sources."""


class InputSource(ABC):
    """A readable input with a path, a containing folder and a size."""

    @property
    @abstractmethod
    def path(self) -> str:
        """Canonical path of the source."""

    @property
    @abstractmethod
    def dir(self) -> str:
        """Folder (or prefix) that contains the source."""

    @property
    @abstractmethod
    def size(self) -> int:
        """Size of the source in bytes."""

    @abstractmethod
    def open(self) -> BinaryIO:
        """Return a binary stream over the source's content."""


@dataclass(frozen=True)
class LocalFileSource(InputSource):
    """A file on the local filesystem."""

    file_path: str
    size_bytes: int

    @property
    def path(self) -> str:
        return self.file_path

    @property
    def dir(self) -> str:
        return os.path.dirname(self.file_path)

    @property
    def size(self) -> int:
        return self.size_bytes

    def open(self) -> BinaryIO:
        return open(self.file_path, "rb")


class _Cancelled(Exception):
    pass


def _is_cancelled(cancel: threading.Event | None) -> bool:
    return cancel is not None and cancel.is_set()


def _walk(path: str, cancel: threading.Event | None, found: list[InputSource]) -> None:
    # Lexical order, symlinks not followed.
    if _is_cancelled(cancel):
        raise _Cancelled
    info = os.lstat(path)
    if stat.S_ISDIR(info.st_mode):
        for name in sorted(os.listdir(path)):
            _walk(os.path.join(path, name), cancel, found)
    elif path.lower().endswith(_SUFFIXES):
        found.append(LocalFileSource(os.path.abspath(path), info.st_size))


def _discover_local_files(dir_path: str, cancel: threading.Event | None) -> list[InputSource]:
    found: list[InputSource] = []
    try:
        _walk(dir_path, cancel, found)
    except _Cancelled:
        raise DiscoveryError(
            f'failed to walk local directory "{dir_path}": discovery cancelled'
        ) from None
    except OSError as exc:
        raise DiscoveryError(f'failed to walk local directory "{dir_path}": {exc}') from exc
    if not found:
        raise DiscoveryError(f"no .json, .ndjson, or .jsonl files found in {dir_path}")
    return found


def discover(path: str, cancel: threading.Event | None = None) -> list[InputSource]:
    """Find every processable source below ``path``."""
    if path.startswith(GCS_SCHEME):
        raise DiscoveryError(
            f"cannot process GCS path '{path}': Google Cloud Storage support is not available"
        )
    try:
        info = os.stat(path)
    except OSError as exc:
        raise DiscoveryError(f"invalid path: {exc}") from exc
    if not stat.S_ISDIR(info.st_mode):
        raise DiscoveryError(f"local path is not a directory: {path}")
    return _discover_local_files(path, cancel)


def discover_all(paths: Iterable[str], cancel: threading.Event | None = None) -> list[InputSource]:
    """Discover sources for every path, dropping blanks and duplicate sources."""
    unique: list[InputSource] = []
    seen: set[str] = set()
    for raw in paths:
        path = raw.strip()
        if not path:
            continue
        try:
            sources = discover(path, cancel)
        except DiscoveryError as exc:
            raise DiscoveryError(f"error in path '{path}': {exc}") from exc
        for src in sources:
            if src.path not in seen:
                seen.add(src.path)
                unique.append(src)
    if not unique:
        raise DiscoveryError("no processable files found in any of the provided paths")
    return unique