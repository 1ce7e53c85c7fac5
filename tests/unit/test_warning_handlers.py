"""Unit tests for the deprecation-warning handlers."""

from __future__ import annotations

import io
import logging

import pytest

from lib_kustomize_renderer.application.warning_handlers import (
    WarningPolicy,
    handler_for,
    warning_fail,
    warning_ignore,
    warning_log,
)
from lib_kustomize_renderer.domain.errors import WarningsRejected


def test_ignore_accepts_everything() -> None:
    warning_ignore()(["a", "b"])


def test_log_writes_one_line_per_warning(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="lib_kustomize_renderer")
    buffer = io.StringIO()
    warning_log(buffer)(["first", "second"])
    assert buffer.getvalue() == "first\nsecond\n"
    assert [record.getMessage() for record in caplog.records] == ["kustomize_warning", "kustomize_warning"]
    assert [record.context["warning"] for record in caplog.records] == ["first", "second"]


def test_log_defaults_to_stderr_at_call_time(capsys: pytest.CaptureFixture[str]) -> None:
    handler = warning_log()
    handler(["deprecated field"])
    assert capsys.readouterr().err == "deprecated field\n"


def test_fail_raises_with_all_warnings() -> None:
    with pytest.raises(WarningsRejected) as info:
        warning_fail()(["one", "two"])
    assert info.value.warnings == ["one", "two"]


def test_fail_accepts_empty_list() -> None:
    warning_fail()([])


def test_handler_for_maps_policies() -> None:
    with pytest.raises(WarningsRejected):
        handler_for(WarningPolicy.FAIL)(["x"])
    handler_for("ignore")(["x"])


def test_handler_for_rejects_unknown_policy() -> None:
    with pytest.raises(ValueError):
        handler_for("explode")
