"""Public package surface for ``lib_kustomize_renderer``.

Exports the renderer, its configuration records, the storage constructors, the
warning handlers, and the error taxonomy so consumers rarely need to import
from submodules.
"""

from __future__ import annotations

from .adapters.fs.storage import (
    new_base_path_fs,
    new_from_resources,
    new_fs_on_disk,
    new_memory_fs,
    new_read_only_fs,
)
from .adapters.fs.union import new_union_fs
from .adapters.kustomize.builder import KustomizeBuilder
from .application.cache import CacheOptions, RenderCache, default_key_func, path_only_key_func
from .application.options import RendererOptions
from .application.warning_handlers import WarningPolicy, handler_for, warning_fail, warning_ignore, warning_log
from .core import Renderer, render
from .domain.document import (
    ANNOTATION_SOURCE_FILE,
    ANNOTATION_SOURCE_PATH,
    ANNOTATION_SOURCE_TYPE,
    Document,
)
from .domain.errors import (
    BuildFailed,
    CompositionError,
    DescriptorLoadError,
    NotFound,
    PathMustBeDirectory,
    PipelineError,
    PluginFailed,
    ReadOnlyFilesystemError,
    RenderCancelled,
    RenderError,
    SerializationFailed,
    SourceValidationError,
    WarningsRejected,
)
from .domain.source import LoadRestrictions, Source
from .observability import bind_trace_id, get_logger

__all__ = [
    "ANNOTATION_SOURCE_FILE",
    "ANNOTATION_SOURCE_PATH",
    "ANNOTATION_SOURCE_TYPE",
    "BuildFailed",
    "CacheOptions",
    "CompositionError",
    "DescriptorLoadError",
    "Document",
    "KustomizeBuilder",
    "LoadRestrictions",
    "NotFound",
    "PathMustBeDirectory",
    "PipelineError",
    "PluginFailed",
    "ReadOnlyFilesystemError",
    "RenderCache",
    "RenderCancelled",
    "RenderError",
    "Renderer",
    "RendererOptions",
    "SerializationFailed",
    "Source",
    "SourceValidationError",
    "WarningPolicy",
    "WarningsRejected",
    "bind_trace_id",
    "default_key_func",
    "get_logger",
    "handler_for",
    "new_base_path_fs",
    "new_from_resources",
    "new_fs_on_disk",
    "new_memory_fs",
    "new_read_only_fs",
    "new_union_fs",
    "path_only_key_func",
    "render",
    "warning_fail",
    "warning_ignore",
    "warning_log",
]
