"""Render-result cache with time-based expiry.

Purpose
-------
Map a render source to a previously produced document list so repeated
renders of the same input skip the build. The store is the only state shared
between concurrent ``process`` calls, so it serialises access internally.

Contents
--------
* :class:`CacheOptions` – TTL and key-derivation settings.
* :func:`default_key_func` / :func:`path_only_key_func` – key derivation.
* :class:`RenderCache` – thread-safe TTL store returning private copies.

Key derivation follows a canonical JSON encoding (sorted keys, compact
separators, UTF-8) hashed with SHA-256, so structurally equal sources produce
the same key in any process.
"""

from __future__ import annotations

import hashlib
import json
import threading
import time
from dataclasses import dataclass
from typing import Callable, Final

from ..domain.document import Document, copy_documents
from ..domain.source import Source
from .ports import Cache

KeyFunc = Callable[[Source], str]

DEFAULT_TTL: Final[float] = 300.0
"""Five minutes, expressed in seconds."""


def default_key_func(source: Source) -> str:
    """Hash path and values; value insertion order never affects the key.

    >>> a = default_key_func(Source("/app", {"a": "1", "b": "2"}))
    >>> b = default_key_func(Source("/app", {"b": "2", "a": "1"}))
    >>> a == b and len(a) == 64
    True
    """

    canonical = json.dumps(
        {"path": source.path, "values": dict(source.values)},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def path_only_key_func(source: Source) -> str:
    """Hash the path alone so values never reach a cache key.

    >>> path_only_key_func(Source("/app", {"token": "s3cret"})) == path_only_key_func(Source("/app"))
    True
    """

    return hashlib.sha256(source.path.encode("utf-8")).hexdigest()


@dataclass(frozen=True, slots=True)
class CacheOptions:
    """Cache settings; ``ttl`` is in seconds and must be positive.

    ``store`` plugs in any object satisfying the :class:`Cache` port instead
    of the built-in :class:`RenderCache`; ``clock`` feeds the built-in one.
    """

    ttl: float = DEFAULT_TTL
    key_func: KeyFunc | None = None
    store: Cache | None = None
    clock: Callable[[], float] = time.monotonic

    def __post_init__(self) -> None:
        if self.ttl <= 0:
            raise ValueError(f"cache ttl must be positive, got {self.ttl!r}")

    def resolved_key_func(self) -> KeyFunc:
        return self.key_func or default_key_func


@dataclass(slots=True)
class _Entry:
    value: list[Document]
    expires_at: float


class RenderCache:
    """Thread-safe TTL cache of document lists.

    Why
    ----
    Callers must never observe another caller's mutations, so values are
    copied on the way in and on the way out.

    Parameters
    ----------
    ttl:
        Default lifetime in seconds for entries stored without an explicit TTL.
    clock:
        Monotonic time source; injectable for deterministic expiry tests.

    Examples
    --------
    >>> now = [0.0]
    >>> cache = RenderCache(ttl=10, clock=lambda: now[0])
    >>> cache.set("k", [Document({"kind": "ConfigMap"})])
    >>> len(cache.get("k"))
    1
    >>> now[0] = 10.5
    >>> cache.get("k") is None
    True
    """

    def __init__(self, ttl: float = DEFAULT_TTL, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> list[Document] | None:
        """Return a private copy of the value, or ``None`` when absent or expired."""

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if self._clock() > entry.expires_at:
                del self._entries[key]
                return None
            return copy_documents(entry.value)

    def set(self, key: str, value: list[Document], ttl: float | None = None) -> None:
        lifetime = self._ttl if ttl is None else ttl
        snapshot = copy_documents(value)
        with self._lock:
            self._entries[key] = _Entry(snapshot, self._clock() + lifetime)

    def sweep(self) -> int:
        """Physically drop expired entries and return how many were removed."""

        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if now > entry.expires_at]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def new_cache(options: CacheOptions | None) -> Cache | None:
    """Return a cache for *options*, or ``None`` when caching is disabled."""

    if options is None:
        return None
    if options.store is not None:
        return options.store
    return RenderCache(ttl=options.ttl, clock=options.clock)
