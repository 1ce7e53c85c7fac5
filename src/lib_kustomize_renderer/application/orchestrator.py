"""Render orchestration for a single source.

Purpose
-------
Turn one :class:`Source` into structured documents: resolve the effective load
restriction, read the kustomization, route deprecation warnings, inject
synthetic files through an overlay when needed, invoke the builder, run
build-time plugins, and post-process annotations.

Contents
--------
* :data:`RENDERER_TYPE` / :data:`VALUES_FILE_NAME` – stable names.
* :func:`values_manifest` – serialise values as a local-config ConfigMap.
* :func:`origin_path` – read the builder's provenance annotation.
* :class:`Engine` – the orchestrator.

System Role
-----------
Called by :class:`lib_kustomize_renderer.core.Renderer` on every cache miss.
Each call builds its own overlay, so concurrent calls share nothing except the
caller's base filesystem, which is only read.
"""

from __future__ import annotations

import os
from typing import Any, Final, Mapping

import yaml

from ..adapters.fs.union import new_union_fs
from ..domain.document import (
    ANNOTATION_LOCAL_CONFIG,
    ANNOTATION_ORIGIN,
    ANNOTATION_SOURCE_FILE,
    ANNOTATION_SOURCE_PATH,
    ANNOTATION_SOURCE_TYPE,
    Document,
)
from ..domain.errors import BuildFailed, PathMustBeDirectory, PluginFailed, SerializationFailed
from ..domain.kustomization import ORIGIN_ANNOTATIONS, Kustomization
from ..domain.source import LoadRestrictions, Source
from ..observability import log_debug, make_event
from .descriptor import load_kustomization
from .options import RendererOptions
from .ports import Builder, FileSystem
from .warning_handlers import warning_log

RENDERER_TYPE: Final[str] = "kustomize"
VALUES_FILE_NAME: Final[str] = "values.yaml"
VALUES_CONFIGMAP_NAME: Final[str] = "values"


def values_manifest(values: Mapping[str, str]) -> bytes:
    """Serialise *values* as a ConfigMap the overlay's own patches can consume.

    The ConfigMap is marked local-config so it feeds replacements without
    appearing in the build output.

    Examples
    --------
    >>> print(values_manifest({"replicas": "3"}).decode())
    apiVersion: v1
    kind: ConfigMap
    metadata:
      name: values
      annotations:
        config.kubernetes.io/local-config: 'true'
    data:
      replicas: '3'
    <BLANKLINE>
    """

    manifest = {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": VALUES_CONFIGMAP_NAME, "annotations": {ANNOTATION_LOCAL_CONFIG: "true"}},
        "data": dict(values),
    }
    try:
        return yaml.safe_dump(manifest, sort_keys=False).encode("utf-8")
    except yaml.YAMLError as exc:
        raise SerializationFailed(f"failed to create values ConfigMap: {exc}") from exc


def origin_path(document: Document) -> str | None:
    """Return the file recorded in the builder's origin annotation, if any.

    >>> doc = Document({"metadata": {"annotations": {"config.kubernetes.io/origin": "path: cm.yaml\\n"}}})
    >>> origin_path(doc)
    'cm.yaml'
    """

    raw = document.annotations.get(ANNOTATION_ORIGIN)
    if not raw:
        return None
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError:
        return None
    if isinstance(parsed, Mapping) and parsed.get("path"):
        return str(parsed["path"])
    return None


class Engine:
    """Render one source at a time against a fixed filesystem and builder."""

    def __init__(self, fs: FileSystem, options: RendererOptions, builder: Builder) -> None:
        self._fs = fs
        self._options = options
        self._builder = builder

    def run(self, source: Source) -> list[Document]:
        """Render *source* and return its documents in builder order.

        Raises
        ------
        PathMustBeDirectory, DescriptorLoadError, WarningsRejected,
        BuildFailed, PluginFailed, SerializationFailed
            Each tagged with the source path.
        """

        restrictions = self._effective_restrictions(source)
        kust, kust_name = load_kustomization(self._fs, source.path)

        warnings = kust.check_deprecated_fields()
        if warnings:
            handler = self._options.warning_handler or warning_log()
            handler(warnings)

        fs, added_origin = self._prepare_filesystem(source, kust, kust_name)
        resources = self._build(fs, source, restrictions)

        for plugin in self._options.plugins:
            try:
                plugin.transform(resources)
            except Exception as exc:
                raise PluginFailed(
                    f"failed to apply kustomize plugin transformer for path {source.path!r}: {exc}",
                    path=source.path,
                ) from exc

        documents = self._convert(resources, source, added_origin)
        log_debug("source_rendered", **make_event("build", source.path, {"documents": len(documents)}))
        return documents

    def _effective_restrictions(self, source: Source) -> LoadRestrictions:
        if source.load_restrictions is not LoadRestrictions.UNKNOWN:
            return source.load_restrictions
        return self._options.load_restrictions

    def _prepare_filesystem(
        self, source: Source, kust: Kustomization, kust_name: str
    ) -> tuple[FileSystem, bool]:
        """Return the filesystem to build from and whether origin tracking was added here."""

        add_origin = self._options.source_annotations and not kust.has_build_metadata(ORIGIN_ANNOTATIONS)
        if not add_origin and not source.values:
            return self._fs, False

        directory, file_name = self._fs.resolve_to_dir_and_name(source.path)
        if file_name:
            raise PathMustBeDirectory(
                f"path {source.path!r}: path must be a directory containing a kustomization file, got a file instead",
                path=source.path,
            )

        overrides: dict[str, bytes] = {}
        if add_origin:
            overrides[os.path.join(directory, kust_name)] = kust.with_build_metadata(ORIGIN_ANNOTATIONS).to_yaml()
        if source.values:
            overrides[os.path.join(directory, VALUES_FILE_NAME)] = values_manifest(source.values)

        log_debug("overlay_prepared", **make_event("compose", source.path, {"files": sorted(overrides)}))
        return new_union_fs(self._fs, overrides=overrides), add_origin

    def _build(self, fs: FileSystem, source: Source, restrictions: LoadRestrictions) -> list[dict[str, Any]]:
        diagnostics: list[str] = []
        try:
            return self._builder.build(fs, source.path, load_restrictions=restrictions, diagnostics=diagnostics)
        except Exception as exc:
            raise BuildFailed(f"failed to run kustomize for path {source.path!r}: {exc}", path=source.path) from exc
        finally:
            for message in diagnostics:
                log_debug("builder_diagnostic", **make_event("build", source.path, {"diagnostic": message}))

    def _convert(self, resources: list[dict[str, Any]], source: Source, added_origin: bool) -> list[Document]:
        documents: list[Document] = []
        for index, resource in enumerate(resources):
            if not isinstance(resource, Mapping):
                raise BuildFailed(
                    f"failed to convert resource #{index} for path {source.path!r}: not a mapping",
                    path=source.path,
                )
            document = Document(resource)
            source_file = origin_path(document)
            if added_origin:
                document.remove_annotation(ANNOTATION_ORIGIN)
            if self._options.source_annotations:
                annotations = document.annotations
                annotations[ANNOTATION_SOURCE_TYPE] = RENDERER_TYPE
                annotations[ANNOTATION_SOURCE_PATH] = source.path
                if source_file:
                    annotations[ANNOTATION_SOURCE_FILE] = source_file
                document.set_annotations(annotations)
            documents.append(document)
        return documents


__all__ = [
    "Engine",
    "RENDERER_TYPE",
    "VALUES_FILE_NAME",
    "origin_path",
    "values_manifest",
]
