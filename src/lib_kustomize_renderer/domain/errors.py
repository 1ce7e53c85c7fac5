"""Domain-level exception hierarchy.

Purpose
-------
Expose the stable error taxonomy shared by storage adapters, the render
orchestrator, and consuming applications. The hierarchy lives in the domain
layer so outer layers may depend on it without creating import cycles.

Contents
--------
* :class:`RenderError` – umbrella base class for every library failure.
* :class:`SourceValidationError` – malformed source detected at construction.
* :class:`NotFound` / :class:`ReadOnlyFilesystemError` – filesystem failures
  that also behave like their built-in counterparts.
* :class:`CompositionError` – overlay filesystem could not be assembled.
* :class:`PathMustBeDirectory`, :class:`DescriptorLoadError`,
  :class:`WarningsRejected`, :class:`BuildFailed`, :class:`PluginFailed`,
  :class:`SerializationFailed` – render orchestration stages.
* :class:`PipelineError` / :class:`RenderCancelled` – aggregation failures.

System Role
-----------
Callers catch :class:`RenderError` to handle all library failures uniformly,
or one of the subclasses to special-case a stage (for example "the build
succeeded but carried deprecation warnings you asked to treat as fatal").
"""

from __future__ import annotations


class RenderError(Exception):
    """Base type for all exceptions emitted by ``lib_kustomize_renderer``.

    Why
    ----
    Provide a single catch-all type for consumers that do not need fine-grained
    handling.

    What
    ----
    Carries optional ``path`` (the source or file involved) and ``stage``
    (the orchestration step) so callers can log without re-deriving context.
    """

    stage: str | None = None

    def __init__(self, message: str, *, path: str | None = None, stage: str | None = None) -> None:
        super().__init__(message)
        self.path = path
        if stage is not None:
            self.stage = stage


class SourceValidationError(RenderError, ValueError):
    """Raised when a source is rejected before any filesystem or build work."""

    stage = "validate"


class NotFound(RenderError, FileNotFoundError):
    """A path the caller asked for does not exist.

    Subclasses :class:`FileNotFoundError` so code written against plain
    ``open()`` semantics keeps working.
    """

    stage = "resolve"


class ReadOnlyFilesystemError(RenderError, PermissionError):
    """A mutating call reached a read-only filesystem.

    Typical Sources
    ---------------
    Embedded resource trees, :func:`new_read_only_fs` wrappers, and attempts to
    remove base files through an overlay.
    """

    stage = "write"


class CompositionError(RenderError):
    """An overlay filesystem could not be composed.

    Raised when an input is not a composable storage adapter or when an
    override cannot be written into the fresh overlay.
    """

    stage = "compose"


class PathMustBeDirectory(RenderError):
    """The source path resolves to a file instead of a kustomization directory."""

    stage = "resolve"


class DescriptorLoadError(RenderError):
    """The kustomization file is missing, duplicated, or not valid YAML."""

    stage = "descriptor"


class WarningsRejected(RenderError):
    """The configured warning handler declined deprecation warnings.

    Attributes
    ----------
    warnings:
        The warning messages that triggered the rejection.
    """

    stage = "warnings"

    def __init__(self, warnings: list[str], *, path: str | None = None) -> None:
        message = "kustomize warnings detected:\n" + "\n".join(warnings)
        super().__init__(message, path=path)
        self.warnings = list(warnings)


class BuildFailed(RenderError):
    """The builder failed or a load restriction was violated."""

    stage = "build"


class PluginFailed(RenderError):
    """A build-time transformer plugin raised."""

    stage = "plugin"


class SerializationFailed(RenderError):
    """The values manifest or rewritten descriptor could not be encoded."""

    stage = "serialize"


class PipelineError(RenderError):
    """A renderer-level filter or transformer raised."""

    stage = "pipeline"


class RenderCancelled(RenderError):
    """The caller signalled cancellation before all sources were rendered."""

    stage = "process"
