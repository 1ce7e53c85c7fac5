"""Structured document value object.

Purpose
-------
Represent one rendered Kubernetes-style object. The renderer treats the payload
as opaque apart from its identity (group/kind/namespace/name) and its
annotation map, which is the only part the orchestrator ever changes.

Contents
--------
* Annotation key constants attached when source annotations are enabled.
* :class:`Document` – mutable wrapper exposing identity and annotation helpers.

System Role
-----------
Builders return plain mappings; the orchestrator converts each into a
:class:`Document` holding a deep copy so no two callers share nested state.
"""

from __future__ import annotations

from copy import deepcopy
from typing import Any, Final, Mapping

ANNOTATION_SOURCE_TYPE: Final[str] = "manifests.k8s-manifests-lib/source.type"
ANNOTATION_SOURCE_PATH: Final[str] = "manifests.k8s-manifests-lib/source.path"
ANNOTATION_SOURCE_FILE: Final[str] = "manifests.k8s-manifests-lib/source.file"

ANNOTATION_ORIGIN: Final[str] = "config.kubernetes.io/origin"
"""Provenance annotation written by the builder when ``originAnnotations`` is requested."""

ANNOTATION_LOCAL_CONFIG: Final[str] = "config.kubernetes.io/local-config"
"""Marks resources that feed the build but never appear in its output."""


class Document:
    """Mutable structured document with a stable identity.

    Examples
    --------
    >>> doc = Document({"apiVersion": "apps/v1", "kind": "Deployment", "metadata": {"name": "web"}})
    >>> doc.group, doc.kind, doc.name, doc.namespace
    ('apps', 'Deployment', 'web', '')
    >>> doc.set_annotation("team", "core")
    >>> doc.annotations
    {'team': 'core'}
    """

    __slots__ = ("_content",)

    def __init__(self, content: Mapping[str, Any]) -> None:
        self._content: dict[str, Any] = deepcopy(dict(content))

    @property
    def api_version(self) -> str:
        return str(self._content.get("apiVersion") or "")

    @property
    def group(self) -> str:
        """Return the API group (empty for the core group)."""

        api_version = self.api_version
        return api_version.split("/", 1)[0] if "/" in api_version else ""

    @property
    def kind(self) -> str:
        return str(self._content.get("kind") or "")

    @property
    def name(self) -> str:
        return str(self._metadata().get("name") or "")

    @property
    def namespace(self) -> str:
        return str(self._metadata().get("namespace") or "")

    @property
    def annotations(self) -> dict[str, str]:
        """Return a copy of the annotation map (empty when unset)."""

        return dict(self._metadata().get("annotations") or {})

    def set_annotations(self, annotations: Mapping[str, str]) -> None:
        """Replace the annotation map; an empty mapping removes the field."""

        metadata = self._content.get("metadata")
        if not isinstance(metadata, dict):
            metadata = self._content["metadata"] = {}
        if annotations:
            metadata["annotations"] = dict(annotations)
        else:
            metadata.pop("annotations", None)

    def set_annotation(self, key: str, value: str) -> None:
        annotations = self.annotations
        annotations[key] = value
        self.set_annotations(annotations)

    def remove_annotation(self, key: str) -> bool:
        """Drop *key* from the annotation map and report whether it was present."""

        annotations = self.annotations
        if key not in annotations:
            return False
        del annotations[key]
        self.set_annotations(annotations)
        return True

    def get(self, dotted: str, default: Any = None) -> Any:
        """Return the value at a dotted path such as ``spec.replicas``.

        >>> Document({"spec": {"replicas": 3}}).get("spec.replicas")
        3
        """

        current: Any = self._content
        for part in dotted.split("."):
            if not isinstance(current, Mapping) or part not in current:
                return default
            current = current[part]
        return current

    def as_dict(self) -> dict[str, Any]:
        """Return a deep copy of the underlying mapping."""

        return deepcopy(self._content)

    def copy(self) -> "Document":
        return Document(self._content)

    def identity(self) -> tuple[str, str, str, str]:
        return (self.group, self.kind, self.namespace, self.name)

    def _metadata(self) -> Mapping[str, Any]:
        metadata = self._content.get("metadata")
        return metadata if isinstance(metadata, Mapping) else {}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Document):
            return NotImplemented
        return self._content == other._content

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"Document(kind={self.kind!r}, namespace={self.namespace!r}, name={self.name!r})"


def copy_documents(documents: list[Document]) -> list[Document]:
    """Return independent copies of *documents* preserving order."""

    return [document.copy() for document in documents]
