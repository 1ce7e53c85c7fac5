"""Composition root for ``lib_kustomize_renderer``.

Purpose
-------
Provide the single entry point that wires the filesystem, the builder, the
render orchestrator, and the cache together, and that aggregates the output of
many sources into one document list.

Contents
--------
* :class:`Renderer` – validated sources plus options; :meth:`Renderer.process`
  renders them all.
* :func:`render` – one-shot convenience around :class:`Renderer`.

System Role
-----------
This module is the only place that picks concrete adapters. A renderer is safe
to share between threads: its options are immutable, the cache serialises its
own state, and every ``process`` call builds private overlays.
"""

from __future__ import annotations

import threading
from typing import Iterable, Sequence

from .adapters.fs.storage import new_fs_on_disk
from .adapters.kustomize.builder import KustomizeBuilder
from .application.cache import default_key_func, new_cache
from .application.orchestrator import RENDERER_TYPE, Engine
from .application.options import RendererOptions
from .domain.document import Document
from .domain.errors import PipelineError, RenderCancelled, RenderError, SourceValidationError
from .domain.source import Source
from .observability import bind_trace_id, log_debug, log_error, log_info, make_event


class Renderer:
    """Render kustomization directories into structured documents.

    Why
    ----
    Callers describe *what* to render (sources) and *how* to post-process it
    (options) once, then call :meth:`process` as often as they like.

    Parameters
    ----------
    sources:
        Render inputs, validated eagerly; an invalid source aborts construction.
    options:
        :class:`RendererOptions`; ``None`` uses the defaults (on-disk
        filesystem, bundled builder, no cache, ``RootOnly`` restrictions).

    Raises
    ------
    SourceValidationError
        When *sources* contains a malformed entry.

    Examples
    --------
    >>> from lib_kustomize_renderer.adapters.fs.storage import new_memory_fs
    >>> fs = new_memory_fs()
    >>> fs.write_file("/app/kustomization.yaml", b"resources: [cm.yaml]\\n")
    >>> fs.write_file("/app/cm.yaml", b"apiVersion: v1\\nkind: ConfigMap\\nmetadata: {name: demo}\\n")
    >>> renderer = Renderer([Source("/app")], RendererOptions(file_system=fs))
    >>> [doc.name for doc in renderer.process()]
    ['demo']
    """

    def __init__(self, sources: Iterable[Source], options: RendererOptions | None = None) -> None:
        self._sources: tuple[Source, ...] = tuple(sources)
        for index, source in enumerate(self._sources):
            if not isinstance(source, Source):
                raise SourceValidationError(f"source #{index} must be a Source, got {type(source).__name__}")
            source.validate()

        self._options = options or RendererOptions()
        fs = self._options.file_system or new_fs_on_disk()
        builder = self._options.builder or KustomizeBuilder()
        self._engine = Engine(fs, self._options, builder)
        self._cache = new_cache(self._options.cache)
        self._key_func = self._options.cache.resolved_key_func() if self._options.cache else default_key_func

    @staticmethod
    def name() -> str:
        """Return the renderer type identifier used in source annotations."""

        return RENDERER_TYPE

    @property
    def sources(self) -> tuple[Source, ...]:
        return self._sources

    def process(self, *, cancel: threading.Event | None = None) -> list[Document]:
        """Render every source in order and return the post-processed documents.

        Why
        ----
        Aggregation order must follow source order, then builder order within a
        source, so downstream consumers see a stable sequence.

        What
        ----
        Checks *cancel* before each source, serves cache hits as private
        copies, renders misses through the orchestrator, then applies filters
        and transformers in registration order.

        Raises
        ------
        RenderCancelled
            When *cancel* is set before a source starts.
        RenderError
            Any orchestration failure, tagged with the offending source path.
        PipelineError
            When a filter or transformer raises.
        """

        documents: list[Document] = []
        for source in self._sources:
            if cancel is not None and cancel.is_set():
                raise RenderCancelled(f"rendering cancelled before {source.path!r}", path=source.path)
            documents.extend(self._render_source(source))

        documents = self._apply_pipeline(documents)
        log_info("render_complete", **make_event("render", None, {"sources": len(self._sources), "documents": len(documents)}))
        return documents

    def _render_source(self, source: Source) -> list[Document]:
        key = self._cache_key(source) if self._cache is not None else None
        if key is not None:
            cached = self._cache_get(key, source)
            if cached is not None:
                log_debug("cache_hit", **make_event("cache", source.path, {"documents": len(cached)}))
                return cached

        try:
            rendered = self._engine.run(source)
        except RenderError as exc:
            if exc.path is None:
                exc.path = source.path
            log_error("render_failed", **make_event(exc.stage or "render", source.path, {"error": str(exc)}))
            raise

        if key is not None:
            self._cache_set(key, rendered, source)
        return rendered

    def _cache_key(self, source: Source) -> str | None:
        try:
            return self._key_func(source)
        except Exception as exc:  # noqa: BLE001 - an unusable key renders uncached
            log_error("cache_error", **make_event("cache", source.path, {"operation": "key", "error": str(exc)}))
            return None

    def _cache_get(self, key: str, source: Source) -> list[Document] | None:
        try:
            return self._cache.get(key)
        except Exception as exc:  # noqa: BLE001 - a broken cache degrades to a miss
            log_error("cache_error", **make_event("cache", source.path, {"operation": "get", "error": str(exc)}))
            return None

    def _cache_set(self, key: str, documents: list[Document], source: Source) -> None:
        try:
            self._cache.set(key, documents)
        except Exception as exc:  # noqa: BLE001 - a broken cache degrades to a miss
            log_error("cache_error", **make_event("cache", source.path, {"operation": "set", "error": str(exc)}))
            return
        log_debug("cache_store", **make_event("cache", source.path, {"documents": len(documents)}))

    def _apply_pipeline(self, documents: list[Document]) -> list[Document]:
        try:
            for keep in self._options.filters:
                documents = [doc for doc in documents if keep(doc)]
            for transform in self._options.transformers:
                documents = [transform(doc) for doc in documents]
        except Exception as exc:
            raise PipelineError(f"post-processing failed: {exc}") from exc
        return documents


def render(
    sources: Sequence[Source] | Source,
    options: RendererOptions | None = None,
    *,
    cancel: threading.Event | None = None,
    trace_id: str | None = None,
) -> list[Document]:
    """Render *sources* once and return the documents.

    Parameters
    ----------
    sources:
        One :class:`Source` or a sequence of them.
    trace_id:
        Optional identifier bound to every log entry emitted during the call.

    Examples
    --------
    >>> from lib_kustomize_renderer.adapters.fs.storage import new_memory_fs
    >>> fs = new_memory_fs()
    >>> fs.write_file("/app/kustomization.yaml", b"namespace: prod\\nresources: [cm.yaml]\\n")
    >>> fs.write_file("/app/cm.yaml", b"apiVersion: v1\\nkind: ConfigMap\\nmetadata: {name: demo}\\n")
    >>> render(Source("/app"), RendererOptions(file_system=fs))[0].namespace
    'prod'
    """

    items = [sources] if isinstance(sources, Source) else list(sources)
    bind_trace_id(trace_id)
    try:
        return Renderer(items, options).process(cancel=cancel)
    finally:
        bind_trace_id(None)


__all__ = ["Renderer", "render"]
