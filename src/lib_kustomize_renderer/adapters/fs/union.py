"""Overlay filesystem composing a read-mostly base with a private overlay.

Purpose
-------
Let the orchestrator shadow files of a caller-owned tree (the rewritten
kustomization, the generated ``values.yaml``) without ever writing to it.

Contents
--------
* :class:`CopyOnWriteBackend` – reads consult the overlay first, listings are
  the union, mutations land in the overlay only.
* :func:`new_union_fs` – composition entry point with override pre-population.

System Role
-----------
Constructed per render call that needs synthetic injection and discarded when
the call returns, so overlays are never shared between threads.
"""

from __future__ import annotations

import os
from typing import Mapping

from ...application.ports import FileSystem
from ...domain.errors import CompositionError, ReadOnlyFilesystemError
from ...observability import log_debug
from .storage import Backend, FileInfo, StorageAdapter, new_memory_fs

_MISSING = (FileNotFoundError, NotADirectoryError)


class CopyOnWriteBackend(Backend):
    """Layer *overlay* over *base*; *base* never receives a mutating call.

    Why
    ----
    Callers must be able to treat the base as borrowed for the whole lifetime
    of the composition, regardless of what the overlay receives.
    """

    def __init__(self, base: Backend, overlay: Backend) -> None:
        self._base = base
        self._overlay = overlay

    def cwd(self) -> str:
        return self._base.cwd()

    def real_path(self, path: str) -> str:
        return self._base.real_path(path)

    def stat(self, path: str) -> FileInfo:
        try:
            return self._overlay.stat(path)
        except _MISSING:
            return self._base.stat(path)

    def read_bytes(self, path: str) -> bytes:
        if self._in_overlay(path):
            return self._overlay.read_bytes(path)
        return self._base.read_bytes(path)

    def list_dir(self, path: str) -> list[str]:
        names: set[str] = set()
        found = False
        for layer in (self._overlay, self._base):
            try:
                names.update(layer.list_dir(path))
            except _MISSING:
                continue
            found = True
        if not found:
            raise FileNotFoundError(f"no such file or directory: {path}")
        return sorted(names)

    def write_bytes(self, path: str, data: bytes) -> None:
        self._prepare_parent(path)
        self._overlay.write_bytes(path, data)

    def mkdir(self, path: str, *, parents: bool = False) -> None:
        try:
            info = self.stat(path)
        except _MISSING:
            info = None
        if info is not None:
            if parents and info.is_dir:
                return
            raise FileExistsError(f"file exists: {path}")
        if not parents:
            parent = os.path.dirname(path)
            if not self._is_dir(parent):
                raise FileNotFoundError(f"no such file or directory: {parent}")
        self._overlay.mkdir(path, parents=True)

    def remove_all(self, path: str) -> None:
        if self._in_base(path):
            raise ReadOnlyFilesystemError("cannot remove a base path through an overlay", path=path)
        self._overlay.remove_all(path)

    def _prepare_parent(self, path: str) -> None:
        """Mirror the parent directory into the overlay, like a copy-on-write union."""

        parent = os.path.dirname(path) or "."
        if self._overlay_is_dir(parent):
            return
        try:
            base_info = self._base.stat(parent)
        except _MISSING as exc:
            raise FileNotFoundError(f"no such file or directory: {parent}") from exc
        if not base_info.is_dir:
            raise NotADirectoryError(f"not a directory: {parent}")
        self._overlay.mkdir(parent, parents=True)

    def _in_overlay(self, path: str) -> bool:
        try:
            return not self._overlay.stat(path).is_dir
        except _MISSING:
            return False

    def _overlay_is_dir(self, path: str) -> bool:
        try:
            return self._overlay.stat(path).is_dir
        except _MISSING:
            return False

    def _in_base(self, path: str) -> bool:
        try:
            self._base.stat(path)
        except _MISSING:
            return False
        return True

    def _is_dir(self, path: str) -> bool:
        try:
            return self.stat(path).is_dir
        except _MISSING:
            return False


def new_union_fs(
    base: FileSystem,
    *,
    overrides: Mapping[str, bytes] | None = None,
    overlay: FileSystem | None = None,
) -> StorageAdapter:
    """Compose *base* with an overlay that shadows it.

    Parameters
    ----------
    base:
        Caller-owned filesystem; treated as borrowed and never mutated.
    overrides:
        ``path -> content`` pairs written into a fresh in-memory overlay.
        Ignored when *overlay* is given.
    overlay:
        Pre-built overlay filesystem taking precedence over *overrides*.

    Raises
    ------
    CompositionError
        When an input is not a storage adapter, or an override cannot be
        written (the message names the failing path).

    Examples
    --------
    >>> from .storage import new_memory_fs
    >>> base = new_memory_fs()
    >>> base.write_file("/cfg.yaml", b"base")
    >>> union = new_union_fs(base, overrides={"/cfg.yaml": b"overlay"})
    >>> union.read_file("/cfg.yaml"), base.read_file("/cfg.yaml")
    (b'overlay', b'base')
    """

    if overlay is None:
        overlay = new_memory_fs()
        for path, content in (overrides or {}).items():
            try:
                overlay.write_file(path, content)
            except OSError as exc:
                raise CompositionError(f"failed to write override {path}: {exc}", path=path) from exc

    if not isinstance(base, StorageAdapter):
        raise CompositionError("base filesystem must be created with the storage constructors")
    if not isinstance(overlay, StorageAdapter):
        raise CompositionError("overlay filesystem must be created with the storage constructors")

    log_debug("overlay_composed", stage="compose", path=None, overrides=sorted(overrides or {}))
    return StorageAdapter(CopyOnWriteBackend(base.unwrap(), overlay.unwrap()))
