"""Test helpers for code that renders through ``lib_kustomize_renderer``.

Purpose
    Keep fixture trees and builder instrumentation in one importable place so
    the package's own suites and downstream projects shape kustomization
    layouts the same way.

Contents
    - ``write_tree``: populate any ``FileSystem`` from a ``path -> text`` map.
    - ``CountingBuilder``: wraps a builder and records every invocation, which
      makes cache hits observable.
    - ``kustomization`` / ``CONFIGMAP``: small YAML builders for fixtures.

System Integration
    Used by the unit, application, and end-to-end suites; nothing in the
    runtime path imports it.
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from typing import Any, Final, Mapping

import yaml

from .adapters.kustomize.builder import KustomizeBuilder
from .application.ports import Builder, FileSystem
from .domain.source import LoadRestrictions

CONFIGMAP: Final[str] = """\
apiVersion: v1
kind: ConfigMap
metadata:
  name: {name}
data:
  key: value
"""


def write_tree(fs: FileSystem, root: str, files: Mapping[str, str | bytes]) -> list[str]:
    """Write *files* below *root* and return the absolute paths written.

    Examples
    --------
    >>> from lib_kustomize_renderer.adapters.fs.storage import new_memory_fs
    >>> fs = new_memory_fs()
    >>> write_tree(fs, "/app", {"kustomization.yaml": "resources: []"})
    ['/app/kustomization.yaml']
    """

    written: list[str] = []
    for relative, content in files.items():
        target = os.path.join(root, relative)
        parent = os.path.dirname(target)
        if parent:
            fs.mkdir_all(parent)
        fs.write_file(target, content.encode("utf-8") if isinstance(content, str) else content)
        written.append(target)
    return written


def kustomization(*resources: str, **fields: Any) -> str:
    """Render a kustomization body listing *resources* plus extra top-level *fields*.

    >>> print(kustomization("cm.yaml"), end="")
    apiVersion: kustomize.config.k8s.io/v1beta1
    kind: Kustomization
    resources:
    - cm.yaml
    """

    body: dict[str, Any] = {
        "apiVersion": "kustomize.config.k8s.io/v1beta1",
        "kind": "Kustomization",
        "resources": list(resources),
    }
    body.update(fields)
    return yaml.safe_dump(body, sort_keys=False)


@dataclass
class CountingBuilder:
    """Builder wrapper that counts calls and remembers the arguments it saw."""

    inner: Builder = field(default_factory=KustomizeBuilder)
    calls: list[tuple[str, LoadRestrictions]] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    @property
    def count(self) -> int:
        with self._lock:
            return len(self.calls)

    def build(
        self,
        fs: FileSystem,
        path: str,
        *,
        load_restrictions: LoadRestrictions,
        diagnostics: list[str],
    ) -> list[dict[str, Any]]:
        with self._lock:
            self.calls.append((path, load_restrictions))
        return self.inner.build(fs, path, load_restrictions=load_restrictions, diagnostics=diagnostics)
