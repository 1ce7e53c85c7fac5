"""Kustomization descriptor value object.

Purpose
-------
Hold the parsed root configuration file of an overlay and answer the questions
the orchestrator asks of it: which deprecated fields it uses, whether it
already requests provenance tracking, and how it serialises after a rewrite.
The module performs no I/O; :mod:`lib_kustomize_renderer.application.descriptor`
locates and reads the file.
"""

from __future__ import annotations

from copy import deepcopy
from typing import Any, Final, Mapping

import yaml

from .errors import DescriptorLoadError, SerializationFailed

KUSTOMIZATION_FILE_NAMES: Final[tuple[str, ...]] = ("kustomization.yaml", "kustomization.yml", "Kustomization")
ORIGIN_ANNOTATIONS: Final[str] = "originAnnotations"

_FIX_HINT: Final[str] = "Run 'kustomize edit fix' to update your Kustomization automatically."

# Ordered the way the upstream tool reports them.
_DEPRECATED_FIELDS: Final[tuple[tuple[str, str], ...]] = (
    ("bases", "'bases' is deprecated. Please use 'resources' instead."),
    ("commonLabels", "'commonLabels' is deprecated. Please use 'labels' instead."),
    ("imageTags", "'imageTags' is deprecated. Please use 'images' instead."),
    ("patchesJson6902", "'patchesJson6902' is deprecated. Please use 'patches' instead."),
    ("patchesStrategicMerge", "'patchesStrategicMerge' is deprecated. Please use 'patches' instead."),
    ("vars", "'vars' is deprecated. Please use 'replacements' instead. [EXPERIMENTAL]"),
)

_ACCEPTED_KINDS: Final[frozenset[str]] = frozenset({"Kustomization", "Component"})


class Kustomization:
    """Parsed kustomization with helpers for the injection decision.

    Examples
    --------
    >>> kust = Kustomization({"resources": ["cm.yaml"], "commonLabels": {"app": "demo"}})
    >>> kust.check_deprecated_fields()[0].startswith("Warning: 'commonLabels' is deprecated")
    True
    >>> kust.has_build_metadata(ORIGIN_ANNOTATIONS)
    False
    >>> kust.with_build_metadata(ORIGIN_ANNOTATIONS).build_metadata
    ['originAnnotations']
    """

    __slots__ = ("_data",)

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = deepcopy(dict(data or {}))

    @classmethod
    def parse(cls, raw: bytes, *, path: str) -> "Kustomization":
        """Parse YAML bytes read from *path*.

        Raises
        ------
        DescriptorLoadError
            For invalid YAML, non-mapping documents, or a foreign ``kind``.
        """

        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise DescriptorLoadError(f"invalid kustomization YAML in {path}: {exc}", path=path) from exc
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise DescriptorLoadError(f"kustomization {path} did not produce a mapping", path=path)
        kind = data.get("kind")
        if kind is not None and kind not in _ACCEPTED_KINDS:
            raise DescriptorLoadError(f"kustomization {path} has unsupported kind {kind!r}", path=path)
        return cls(data)

    @property
    def build_metadata(self) -> list[str]:
        return list(self._data.get("buildMetadata") or [])

    def has_build_metadata(self, entry: str) -> bool:
        return entry in self.build_metadata

    def with_build_metadata(self, entry: str) -> "Kustomization":
        """Return a copy whose ``buildMetadata`` also contains *entry*."""

        clone = Kustomization(self._data)
        if entry not in clone.build_metadata:
            clone._data["buildMetadata"] = [*clone.build_metadata, entry]
        return clone

    def check_deprecated_fields(self) -> list[str]:
        """Return one warning per deprecated field present (empty when clean)."""

        return [
            f"Warning: {message} {_FIX_HINT}"
            for field_name, message in _DEPRECATED_FIELDS
            if self._data.get(field_name)
        ]

    def get(self, key: str, default: Any = None) -> Any:
        return deepcopy(self._data.get(key, default))

    def get_list(self, key: str) -> list[Any]:
        value = self._data.get(key)
        return deepcopy(list(value)) if value else []

    def as_dict(self) -> dict[str, Any]:
        return deepcopy(self._data)

    def to_yaml(self) -> bytes:
        """Serialise the descriptor, preserving key order.

        Raises
        ------
        SerializationFailed
            When the payload holds values YAML cannot represent.
        """

        try:
            return yaml.safe_dump(self._data, sort_keys=False).encode("utf-8")
        except yaml.YAMLError as exc:
            raise SerializationFailed(f"failed to marshal kustomization: {exc}") from exc
