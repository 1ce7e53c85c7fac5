"""Application-layer ports describing collaborator responsibilities.

Purpose
-------
Define the narrow capability contracts the orchestrator depends on so storage
backends, caches, and build engines stay substitutable without inheritance.

Contents
--------
* :class:`File` – minimal binary handle returned by ``open``/``create``.
* :class:`FileSystem` – uniform file-access contract over a storage backend.
* :class:`Builder` – external build engine turning a kustomization into mappings.
* :class:`ResourcePlugin` – build-time transformer over the raw build result.
* :class:`Cache` – get/set store for rendered document lists.
* ``Filter`` / ``Transformer`` / ``WarningHandler`` – callable aliases.

System Role
-----------
These protocols enforce Dependency Inversion. Concrete adapters live in
:mod:`lib_kustomize_renderer.adapters`; tests supply fakes that satisfy the
same protocols.
"""

from __future__ import annotations

from typing import Any, Callable, Iterator, Protocol, runtime_checkable

from ..domain.document import Document
from ..domain.source import LoadRestrictions

Filter = Callable[[Document], bool]
"""Return ``True`` to keep a document in the aggregated output."""

Transformer = Callable[[Document], Document]
"""Return the (possibly replaced) document."""

WarningHandler = Callable[[list[str]], None]
"""Receive deprecation warnings; raise to abort the render."""


class File(Protocol):
    def read(self, size: int = -1) -> bytes: ...

    def write(self, data: bytes) -> int: ...

    def close(self) -> None: ...


@runtime_checkable
class FileSystem(Protocol):
    """Uniform file-access contract shared by every storage backend.

    Why
    ----
    The orchestrator and the builder must not care whether files live on disk,
    in memory, inside a package, or in an overlay.
    """

    def create(self, path: str) -> File:
        """Open *path* for writing, truncating existing content."""

    def open(self, path: str) -> File:
        """Open *path* for binary reading."""

    def read_file(self, path: str) -> bytes: ...

    def write_file(self, path: str, data: bytes) -> None: ...

    def mkdir(self, path: str) -> None: ...

    def mkdir_all(self, path: str) -> None: ...

    def remove_all(self, path: str) -> None: ...

    def read_dir(self, path: str) -> list[str]:
        """Return the sorted entry names of directory *path*."""

    def glob(self, pattern: str) -> list[str]: ...

    def walk(self, path: str) -> Iterator[tuple[str, list[str], list[str]]]:
        """Yield ``(dirpath, dirnames, filenames)`` top-down."""

    def exists(self, path: str) -> bool: ...

    def is_dir(self, path: str) -> bool: ...

    def resolve_to_dir_and_name(self, path: str) -> tuple[str, str]:
        """Return ``(absolute_dir, file_name_or_empty)`` for an existing *path*."""


@runtime_checkable
class Builder(Protocol):
    """Build a kustomization directory into raw resource mappings.

    Implementations append human-readable diagnostics to *diagnostics* instead
    of writing to process-wide streams.
    """

    def build(
        self,
        fs: FileSystem,
        path: str,
        *,
        load_restrictions: LoadRestrictions,
        diagnostics: list[str],
    ) -> list[dict[str, Any]]: ...


@runtime_checkable
class ResourcePlugin(Protocol):
    """Transform the raw build result in place before document conversion."""

    def transform(self, resources: list[dict[str, Any]]) -> None: ...


@runtime_checkable
class Cache(Protocol):
    """Keyed store for rendered document lists."""

    def get(self, key: str) -> list[Document] | None:
        """Return a private copy of the cached value, or ``None`` on a miss."""

    def set(self, key: str, value: list[Document], ttl: float | None = None) -> None: ...
