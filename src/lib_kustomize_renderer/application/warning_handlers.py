"""Deprecation-warning handlers.

Purpose
-------
Decide what happens when a kustomization uses deprecated fields: ignore the
warnings, write them to a stream, or reject the render with a dedicated error.

Contents
--------
* :func:`warning_ignore` / :func:`warning_log` / :func:`warning_fail` –
  ready-made handlers.
* :class:`WarningPolicy` and :func:`handler_for` – map configuration strings
  (CLI flags, settings files) onto handlers.
"""

from __future__ import annotations

import sys
from enum import Enum
from typing import TextIO

from ..domain.errors import WarningsRejected
from ..observability import log_warning
from .ports import WarningHandler


class WarningPolicy(str, Enum):
    IGNORE = "ignore"
    LOG = "log"
    FAIL = "fail"


def warning_ignore() -> WarningHandler:
    """Return a handler that silently accepts every warning.

    >>> warning_ignore()(["Warning: 'bases' is deprecated."]) is None
    True
    """

    def handler(_warnings: list[str]) -> None:
        return None

    return handler


def warning_log(stream: TextIO | None = None) -> WarningHandler:
    """Return a handler writing one line per warning to *stream*.

    Why
    ----
    Mirrors the upstream tool's default of printing deprecations while still
    rendering. The stream defaults to :data:`sys.stderr` resolved at call time
    so test harnesses that swap it are honoured.

    Examples
    --------
    >>> import io
    >>> buffer = io.StringIO()
    >>> warning_log(buffer)(["first", "second"])
    >>> buffer.getvalue()
    'first\\nsecond\\n'
    """

    def handler(warnings: list[str]) -> None:
        target = stream if stream is not None else sys.stderr
        for message in warnings:
            log_warning("kustomize_warning", stage="warnings", path=None, warning=message)
            target.write(f"{message}\n")

    return handler


def warning_fail() -> WarningHandler:
    """Return a handler that rejects the render when any warning is present.

    >>> warning_fail()(["Warning: 'vars' is deprecated."])
    Traceback (most recent call last):
    ...
    lib_kustomize_renderer.domain.errors.WarningsRejected: kustomize warnings detected:
    Warning: 'vars' is deprecated.
    """

    def handler(warnings: list[str]) -> None:
        if warnings:
            raise WarningsRejected(warnings)

    return handler


def handler_for(policy: WarningPolicy | str) -> WarningHandler:
    """Return the ready-made handler for *policy*.

    >>> handler_for("ignore")([]) is None
    True
    """

    resolved = WarningPolicy(policy)
    if resolved is WarningPolicy.IGNORE:
        return warning_ignore()
    if resolved is WarningPolicy.FAIL:
        return warning_fail()
    return warning_log()
