"""Storage backends and the uniform filesystem adapter.

Purpose
-------
Implement the :class:`lib_kustomize_renderer.application.ports.FileSystem`
contract once, on top of small interchangeable backends, so the orchestrator
and the builder can read from disk, memory, package resources, or overlays
through the same calls.

Contents
--------
* :class:`FileInfo` – minimal stat result.
* :class:`Backend` – primitive operations; mutations are refused unless a
  subclass implements them.
* :class:`OsBackend`, :class:`MemoryBackend`, :class:`ReadOnlyBackend`,
  :class:`BasePathBackend`, :class:`TraversableBackend` – concrete stores.
* :class:`StorageAdapter` – the ``FileSystem`` implementation; exposes
  :meth:`StorageAdapter.unwrap` so overlays can compose backends.
* :class:`ReadOnlyWrapper` – refuses writes on foreign filesystems.
* ``new_*`` constructors – the public way to obtain filesystems.

System Role
-----------
Every render builds its own adapter instances; only the caller-supplied base
is shared, and it is never mutated through an overlay.
"""

from __future__ import annotations

import fnmatch
import io
import os
import posixpath
import shutil
import stat as stat_module
import threading
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator

from ...application.ports import FileSystem
from ...domain.errors import CompositionError, NotFound, ReadOnlyFilesystemError
from ...observability import log_debug

if TYPE_CHECKING:
    from importlib.resources.abc import Traversable

_MAGIC_CHARS = frozenset("*?[")


@dataclass(frozen=True, slots=True)
class FileInfo:
    name: str
    is_dir: bool
    size: int = 0


class Backend:
    """Primitive storage operations shared by all stores.

    Why
    ----
    Keeping the primitive surface tiny makes read-only and prefixed views
    trivial and lets :class:`CopyOnWriteBackend` compose any two stores.

    Mutating primitives raise :class:`ReadOnlyFilesystemError` here; writable
    backends override them.
    """

    def cwd(self) -> str:
        return "/"

    def real_path(self, path: str) -> str:
        """Return *path* with symbolic links resolved; stores without links return it unchanged."""

        return path

    def stat(self, path: str) -> FileInfo:
        raise NotImplementedError

    def read_bytes(self, path: str) -> bytes:
        raise NotImplementedError

    def list_dir(self, path: str) -> list[str]:
        raise NotImplementedError

    def write_bytes(self, path: str, data: bytes) -> None:
        raise ReadOnlyFilesystemError("writefile not supported on read-only filesystem", path=path)

    def mkdir(self, path: str, *, parents: bool = False) -> None:
        op = "mkdirall" if parents else "mkdir"
        raise ReadOnlyFilesystemError(f"{op} not supported on read-only filesystem", path=path)

    def remove_all(self, path: str) -> None:
        raise ReadOnlyFilesystemError("removeall not supported on read-only filesystem", path=path)


class OsBackend(Backend):
    """Real on-disk storage; the only backend that resolves symbolic links."""

    def cwd(self) -> str:
        return os.getcwd()

    def real_path(self, path: str) -> str:
        return os.path.realpath(path)

    def stat(self, path: str) -> FileInfo:
        result = os.stat(path)
        return FileInfo(os.path.basename(path), stat_module.S_ISDIR(result.st_mode), result.st_size)

    def read_bytes(self, path: str) -> bytes:
        with open(path, "rb") as handle:
            return handle.read()

    def list_dir(self, path: str) -> list[str]:
        return sorted(os.listdir(path))

    def write_bytes(self, path: str, data: bytes) -> None:
        with open(path, "wb") as handle:
            handle.write(data)

    def mkdir(self, path: str, *, parents: bool = False) -> None:
        if parents:
            os.makedirs(path, exist_ok=True)
        else:
            os.mkdir(path)

    def remove_all(self, path: str) -> None:
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        elif os.path.lexists(path):
            os.remove(path)


class MemoryBackend(Backend):
    """Thread-safe in-memory tree keyed by normalised absolute POSIX paths.

    Writing a file registers its parent directories implicitly.
    """

    def __init__(self) -> None:
        self._files: dict[str, bytes] = {}
        self._dirs: set[str] = {"/"}
        self._lock = threading.RLock()

    @staticmethod
    def _clean(path: str) -> str:
        return posixpath.normpath(posixpath.join("/", os.fspath(path)))

    def stat(self, path: str) -> FileInfo:
        key = self._clean(path)
        with self._lock:
            if key in self._dirs:
                return FileInfo(posixpath.basename(key) or "/", True)
            if key in self._files:
                return FileInfo(posixpath.basename(key), False, len(self._files[key]))
        raise FileNotFoundError(f"no such file or directory: {path}")

    def read_bytes(self, path: str) -> bytes:
        key = self._clean(path)
        with self._lock:
            if key in self._dirs:
                raise IsADirectoryError(f"is a directory: {path}")
            try:
                return self._files[key]
            except KeyError:
                raise FileNotFoundError(f"no such file or directory: {path}") from None

    def list_dir(self, path: str) -> list[str]:
        key = self._clean(path)
        with self._lock:
            if key in self._files:
                raise NotADirectoryError(f"not a directory: {path}")
            if key not in self._dirs:
                raise FileNotFoundError(f"no such file or directory: {path}")
            names = {
                posixpath.basename(entry)
                for entry in (*self._dirs, *self._files)
                if entry != key and posixpath.dirname(entry) == key
            }
        return sorted(names)

    def write_bytes(self, path: str, data: bytes) -> None:
        key = self._clean(path)
        with self._lock:
            if key in self._dirs:
                raise IsADirectoryError(f"is a directory: {path}")
            self._register_parents(key)
            self._files[key] = bytes(data)

    def mkdir(self, path: str, *, parents: bool = False) -> None:
        key = self._clean(path)
        with self._lock:
            if key in self._files:
                raise FileExistsError(f"file exists: {path}")
            if key in self._dirs:
                if parents:
                    return
                raise FileExistsError(f"file exists: {path}")
            parent = posixpath.dirname(key)
            if not parents and parent not in self._dirs:
                raise FileNotFoundError(f"no such file or directory: {parent}")
            self._register_parents(key)
            self._dirs.add(key)

    def remove_all(self, path: str) -> None:
        key = self._clean(path)
        prefix = key.rstrip("/") + "/"
        with self._lock:
            self._files = {k: v for k, v in self._files.items() if k != key and not k.startswith(prefix)}
            self._dirs = {d for d in self._dirs if d == "/" or (d != key and not d.startswith(prefix))}

    def _register_parents(self, key: str) -> None:
        parent = posixpath.dirname(key)
        chain: list[str] = []
        while parent not in self._dirs:
            if parent in self._files:
                raise NotADirectoryError(f"not a directory: {parent}")
            chain.append(parent)
            parent = posixpath.dirname(parent)
        self._dirs.update(chain)


class ReadOnlyBackend(Backend):
    """Forward reads to *inner*; every mutation raises."""

    def __init__(self, inner: Backend) -> None:
        self._inner = inner

    def cwd(self) -> str:
        return self._inner.cwd()

    def real_path(self, path: str) -> str:
        return self._inner.real_path(path)

    def stat(self, path: str) -> FileInfo:
        return self._inner.stat(path)

    def read_bytes(self, path: str) -> bytes:
        return self._inner.read_bytes(path)

    def list_dir(self, path: str) -> list[str]:
        return self._inner.list_dir(path)


class BasePathBackend(Backend):
    """Translate every path through a fixed prefix of *inner*.

    Paths are cleaned as absolute paths before joining, so ``..`` segments
    collapse at the virtual root and cannot reach outside *base*.
    """

    def __init__(self, inner: Backend, base: str) -> None:
        self._inner = inner
        self._base = os.path.normpath(base)

    def _real(self, path: str) -> str:
        clean = posixpath.normpath(posixpath.join("/", os.fspath(path)))
        return os.path.join(self._base, clean.lstrip("/")) if clean != "/" else self._base

    def real_path(self, path: str) -> str:
        """Resolve links in *inner* and map the result back below the virtual root.

        A link that points outside *base* keeps its unresolved virtual path.
        """

        resolved = self._inner.real_path(self._real(path))
        root = self._inner.real_path(self._base)
        if resolved == root:
            return "/"
        if resolved.startswith(root.rstrip(os.sep) + os.sep):
            return "/" + os.path.relpath(resolved, root).replace(os.sep, "/")
        return posixpath.normpath(posixpath.join("/", os.fspath(path)))

    def stat(self, path: str) -> FileInfo:
        return self._inner.stat(self._real(path))

    def read_bytes(self, path: str) -> bytes:
        return self._inner.read_bytes(self._real(path))

    def list_dir(self, path: str) -> list[str]:
        return self._inner.list_dir(self._real(path))

    def write_bytes(self, path: str, data: bytes) -> None:
        self._inner.write_bytes(self._real(path), data)

    def mkdir(self, path: str, *, parents: bool = False) -> None:
        self._inner.mkdir(self._real(path), parents=parents)

    def remove_all(self, path: str) -> None:
        if posixpath.normpath(posixpath.join("/", path)) == "/":
            raise ReadOnlyFilesystemError("refusing to remove the base path root", path=path)
        self._inner.remove_all(self._real(path))


class TraversableBackend(Backend):
    """Read-only view of an :mod:`importlib.resources` tree (embedded sources)."""

    def __init__(self, root: Traversable) -> None:
        self._root = root

    def _node(self, path: str) -> Traversable:
        node = self._root
        for part in posixpath.normpath(posixpath.join("/", os.fspath(path))).split("/"):
            if part:
                node = node.joinpath(part)
        return node

    def stat(self, path: str) -> FileInfo:
        node = self._node(path)
        if node.is_dir():
            return FileInfo(node.name, True)
        if node.is_file():
            return FileInfo(node.name, False)
        raise FileNotFoundError(f"no such file or directory: {path}")

    def read_bytes(self, path: str) -> bytes:
        node = self._node(path)
        if not node.is_file():
            raise FileNotFoundError(f"no such file or directory: {path}")
        return node.read_bytes()

    def list_dir(self, path: str) -> list[str]:
        node = self._node(path)
        if node.is_file():
            raise NotADirectoryError(f"not a directory: {path}")
        if not node.is_dir():
            raise FileNotFoundError(f"no such file or directory: {path}")
        return sorted(child.name for child in node.iterdir())


class _WriteHandle(io.BytesIO):
    """Buffer that commits its content to the backend on close."""

    def __init__(self, backend: Backend, path: str) -> None:
        super().__init__()
        self._backend = backend
        self._path = path

    def close(self) -> None:
        if not self.closed:
            self._backend.write_bytes(self._path, self.getvalue())
        super().close()


class StorageAdapter:
    """Implement the ``FileSystem`` contract on top of a single backend.

    Examples
    --------
    >>> fs = new_memory_fs()
    >>> fs.write_file("/app/kustomization.yaml", b"resources: []")
    >>> fs.resolve_to_dir_and_name("/app/kustomization.yaml")
    ('/app', 'kustomization.yaml')
    >>> fs.read_dir("/app")
    ['kustomization.yaml']
    """

    def __init__(self, backend: Backend) -> None:
        self._backend = backend

    def unwrap(self) -> Backend:
        """Return the underlying backend so overlays can compose it."""

        return self._backend

    def create(self, path: str) -> _WriteHandle:
        self._backend.write_bytes(path, b"")
        return _WriteHandle(self._backend, path)

    def open(self, path: str) -> io.BytesIO:
        return io.BytesIO(self._backend.read_bytes(path))

    def read_file(self, path: str) -> bytes:
        return self._backend.read_bytes(path)

    def write_file(self, path: str, data: bytes) -> None:
        self._backend.write_bytes(path, data)

    def mkdir(self, path: str) -> None:
        self._backend.mkdir(path)

    def mkdir_all(self, path: str) -> None:
        self._backend.mkdir(path, parents=True)

    def remove_all(self, path: str) -> None:
        self._backend.remove_all(path)

    def read_dir(self, path: str) -> list[str]:
        return self._backend.list_dir(path)

    def exists(self, path: str) -> bool:
        try:
            self._backend.stat(path)
        except OSError:
            return False
        return True

    def is_dir(self, path: str) -> bool:
        try:
            return self._backend.stat(path).is_dir
        except OSError:
            return False

    def glob(self, pattern: str) -> list[str]:
        """Return paths matching *pattern*, one ``fnmatch`` segment at a time.

        Mirrors ``filepath.Glob``: no recursive ``**`` and no error for
        directories that do not exist.
        """

        if not _has_magic(pattern):
            return [pattern] if self.exists(pattern) else []
        dirname, basename = os.path.split(pattern)
        directories = self.glob(dirname) if _has_magic(dirname) else [dirname]
        matches: list[str] = []
        for directory in directories:
            if not self.is_dir(directory or "."):
                continue
            for name in self.read_dir(directory or "."):
                if fnmatch.fnmatchcase(name, basename):
                    matches.append(os.path.join(directory, name) if directory else name)
        return matches

    def walk(self, path: str) -> Iterator[tuple[str, list[str], list[str]]]:
        """Yield ``(dirpath, dirnames, filenames)`` top-down like :func:`os.walk`.

        Callers may prune ``dirnames`` in place to skip subtrees.
        """

        if not self.is_dir(path):
            raise NotFound(f"walk root {path!r} is not an existing directory", path=path)
        dirnames: list[str] = []
        filenames: list[str] = []
        for name in self.read_dir(path):
            (dirnames if self.is_dir(os.path.join(path, name)) else filenames).append(name)
        yield path, dirnames, filenames
        for name in dirnames:
            yield from self.walk(os.path.join(path, name))

    def resolve_to_dir_and_name(self, path: str) -> tuple[str, str]:
        """Split *path* into ``(absolute_dir, file_name_or_empty)``.

        Why
        ----
        The orchestrator must know whether a source names a directory before it
        places synthetic files next to the kustomization.

        Raises
        ------
        NotFound
            When *path* does not exist. Other I/O failures propagate verbatim.
        """

        requested = os.fspath(path) or "."
        absolute = os.path.normpath(os.path.join(self._backend.cwd(), requested))
        absolute = self._backend.real_path(absolute)
        try:
            info = self._backend.stat(absolute)
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise NotFound(f"path {requested!r} does not exist", path=requested) from exc
        log_debug("path_resolved", stage="resolve", path=requested, resolved=absolute, is_dir=info.is_dir)
        if info.is_dir:
            return absolute, ""
        return os.path.dirname(absolute), os.path.basename(absolute)

    def __repr__(self) -> str:
        return f"StorageAdapter({type(self._backend).__name__})"


class ReadOnlyWrapper:
    """Read-only view over a foreign ``FileSystem`` that cannot be unwrapped."""

    def __init__(self, base: FileSystem) -> None:
        self._base = base

    def create(self, path: str):
        raise ReadOnlyFilesystemError("create not supported on read-only filesystem", path=path)

    def write_file(self, path: str, data: bytes) -> None:
        raise ReadOnlyFilesystemError("writefile not supported on read-only filesystem", path=path)

    def mkdir(self, path: str) -> None:
        raise ReadOnlyFilesystemError("mkdir not supported on read-only filesystem", path=path)

    def mkdir_all(self, path: str) -> None:
        raise ReadOnlyFilesystemError("mkdirall not supported on read-only filesystem", path=path)

    def remove_all(self, path: str) -> None:
        raise ReadOnlyFilesystemError("removeall not supported on read-only filesystem", path=path)

    def open(self, path: str):
        return self._base.open(path)

    def read_file(self, path: str) -> bytes:
        return self._base.read_file(path)

    def read_dir(self, path: str) -> list[str]:
        return self._base.read_dir(path)

    def glob(self, pattern: str) -> list[str]:
        return self._base.glob(pattern)

    def walk(self, path: str) -> Iterator[tuple[str, list[str], list[str]]]:
        return self._base.walk(path)

    def exists(self, path: str) -> bool:
        return self._base.exists(path)

    def is_dir(self, path: str) -> bool:
        return self._base.is_dir(path)

    def resolve_to_dir_and_name(self, path: str) -> tuple[str, str]:
        return self._base.resolve_to_dir_and_name(path)


def new_fs_on_disk() -> StorageAdapter:
    """Return a filesystem backed by the real disk."""

    return StorageAdapter(OsBackend())


def new_memory_fs() -> StorageAdapter:
    """Return an empty in-memory filesystem (useful for tests and overlays)."""

    return StorageAdapter(MemoryBackend())


def new_read_only_fs(base: FileSystem) -> FileSystem:
    """Wrap *base* so every mutating call raises :class:`ReadOnlyFilesystemError`.

    Storage adapters keep their composability; foreign filesystems get a
    forwarding :class:`ReadOnlyWrapper`.
    """

    if isinstance(base, StorageAdapter):
        return StorageAdapter(ReadOnlyBackend(base.unwrap()))
    return ReadOnlyWrapper(base)


def new_from_resources(root: Traversable, subdir: str = "") -> StorageAdapter:
    """Expose a package resource tree (e.g. ``importlib.resources.files(pkg)``).

    The result is read-only; layer it under an overlay to inject files.

    Examples
    --------
    >>> from importlib.resources import files
    >>> fs = new_from_resources(files("lib_kustomize_renderer"))
    >>> fs.exists("/observability.py")
    True
    """

    node = root
    for part in posixpath.normpath(subdir).split("/") if subdir else ():
        if part and part != ".":
            node = node.joinpath(part)
    return StorageAdapter(TraversableBackend(node))


def new_base_path_fs(base: FileSystem, base_path: str) -> StorageAdapter:
    """Restrict *base* to the subtree at *base_path*.

    Raises
    ------
    CompositionError
        When *base* was not created by this module.
    """

    if not isinstance(base, StorageAdapter):
        raise CompositionError("base filesystem must be created with the storage constructors")
    return StorageAdapter(BasePathBackend(base.unwrap(), base_path))


def _has_magic(pattern: str) -> bool:
    return any(char in _MAGIC_CHARS for char in pattern)
