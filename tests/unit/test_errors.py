from __future__ import annotations

import pytest

from lib_kustomize_renderer.domain.errors import (
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


@pytest.mark.parametrize(
    "error_type",
    [
        BuildFailed,
        CompositionError,
        DescriptorLoadError,
        NotFound,
        PathMustBeDirectory,
        PipelineError,
        PluginFailed,
        ReadOnlyFilesystemError,
        RenderCancelled,
        SerializationFailed,
        SourceValidationError,
    ],
)
def test_every_error_is_a_render_error(error_type) -> None:
    error = error_type("boom", path="/app")
    assert isinstance(error, RenderError)
    assert error.path == "/app"
    assert error.stage


def test_filesystem_errors_keep_builtin_semantics() -> None:
    assert isinstance(NotFound("x"), FileNotFoundError)
    assert isinstance(ReadOnlyFilesystemError("x"), PermissionError)
    assert isinstance(SourceValidationError("x"), ValueError)


def test_stage_override_wins_over_class_default() -> None:
    assert BuildFailed("x").stage == "build"
    assert BuildFailed("x", stage="custom").stage == "custom"


def test_warnings_rejected_joins_messages() -> None:
    error = WarningsRejected(["first", "second"], path="/app")
    assert str(error) == "kustomize warnings detected:\nfirst\nsecond"
    assert error.warnings == ["first", "second"]
    assert error.path == "/app"
