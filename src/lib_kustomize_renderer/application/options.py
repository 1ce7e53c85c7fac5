"""Renderer configuration record.

Purpose
-------
Collect every construction-time setting of a renderer in one immutable,
validated value object, so concurrent ``process`` calls read configuration
without locking.

Contents
--------
* :class:`RendererOptions` – filters, transformers, plugins, cache settings,
  source annotations, default load restrictions, warning handler, filesystem,
  and builder.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

from ..domain.source import LoadRestrictions
from .cache import CacheOptions
from .ports import Builder, FileSystem, Filter, ResourcePlugin, Transformer, WarningHandler


@dataclass(frozen=True, slots=True)
class RendererOptions:
    """Immutable renderer settings validated once at construction.

    Attributes
    ----------
    filters / transformers:
        Applied in registration order to the aggregated result of ``process``.
    plugins:
        Build-time transformers run against the raw build result.
    cache:
        ``None`` disables caching.
    source_annotations:
        Attach renderer, source-path, and source-file annotations.
    load_restrictions:
        Renderer-wide default; sources override it unless they say ``UNKNOWN``.
    warning_handler:
        ``None`` means "log warnings to stderr".
    file_system / builder:
        ``None`` selects the on-disk filesystem and the bundled builder.

    Examples
    --------
    >>> RendererOptions(load_restrictions="none").load_restrictions
    <LoadRestrictions.NONE: 'None'>
    >>> RendererOptions(load_restrictions="unknown")
    Traceback (most recent call last):
    ...
    ValueError: renderer default load restrictions must be RootOnly or None
    """

    filters: Sequence[Filter] = field(default_factory=tuple)
    transformers: Sequence[Transformer] = field(default_factory=tuple)
    plugins: Sequence[ResourcePlugin] = field(default_factory=tuple)
    cache: CacheOptions | None = None
    source_annotations: bool = False
    load_restrictions: LoadRestrictions = LoadRestrictions.ROOT_ONLY
    warning_handler: WarningHandler | None = None
    file_system: FileSystem | None = None
    builder: Builder | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "filters", tuple(self.filters))
        object.__setattr__(self, "transformers", tuple(self.transformers))
        object.__setattr__(self, "plugins", tuple(self.plugins))
        restrictions = LoadRestrictions.parse(self.load_restrictions)
        if restrictions is LoadRestrictions.UNKNOWN:
            raise ValueError("renderer default load restrictions must be RootOnly or None")
        object.__setattr__(self, "load_restrictions", restrictions)
        for item in (*self.filters, *self.transformers):
            if not callable(item):
                raise TypeError(f"filters and transformers must be callable, got {item!r}")
        for plugin in self.plugins:
            if not isinstance(plugin, ResourcePlugin):
                raise TypeError(f"plugins must provide transform(resources), got {plugin!r}")
        if self.warning_handler is not None and not callable(self.warning_handler):
            raise TypeError("warning_handler must be callable")
