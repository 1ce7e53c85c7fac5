"""Bundled kustomization builder.

Purpose
-------
Provide a working default for the :class:`~lib_kustomize_renderer.application.ports.Builder`
port so the renderer is usable end to end without an external binary. It
interprets the commonly used subset of the kustomization format against any
:class:`FileSystem`, which is what lets overlays inject files transparently.

Supported fields
----------------
``resources`` / ``bases`` (files and nested kustomization directories),
``patches`` / ``patchesStrategicMerge`` (strategic merge as deep merge, with an
optional ``target`` selector), ``namespace``, ``namePrefix``, ``nameSuffix``,
``labels`` / ``commonLabels``, ``commonAnnotations``, ``replacements``, and
``buildMetadata: [originAnnotations]``. Resources marked
``config.kubernetes.io/local-config: "true"`` are dropped from the output.
Any other transforming field (generators, ``images``, ``vars``, ``components``
and the like) fails the build with :class:`BuildFailed` rather than being
skipped, so output never silently diverges from the real tool.

Load restrictions
-----------------
``RootOnly`` rejects file loads outside the directory of the kustomization
that references them; nested kustomization directories start a new root.
"""

from __future__ import annotations

import os
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Final, Mapping

import yaml

from ...application.descriptor import load_kustomization
from ...application.ports import FileSystem
from ...domain.document import ANNOTATION_LOCAL_CONFIG, ANNOTATION_ORIGIN
from ...domain.errors import BuildFailed, PathMustBeDirectory
from ...domain.kustomization import ORIGIN_ANNOTATIONS, Kustomization
from ...domain.source import LoadRestrictions

_CLUSTER_SCOPED: Final[frozenset[str]] = frozenset(
    {
        "APIService",
        "ClusterRole",
        "ClusterRoleBinding",
        "CustomResourceDefinition",
        "MutatingWebhookConfiguration",
        "Namespace",
        "PersistentVolume",
        "PriorityClass",
        "StorageClass",
        "ValidatingWebhookConfiguration",
    }
)
_NOT_RENAMED: Final[frozenset[str]] = frozenset({"Namespace", "CustomResourceDefinition"})
_DELETE_DIRECTIVE: Final[str] = "$patch"
_UNSUPPORTED_FIELDS: Final[tuple[str, ...]] = (
    "components",
    "configMapGenerator",
    "crds",
    "generators",
    "helmCharts",
    "images",
    "imageTags",
    "openapi",
    "patchesJson6902",
    "replicas",
    "secretGenerator",
    "transformers",
    "validators",
    "vars",
)


@dataclass
class _Resource:
    """One accumulated resource plus the file it came from."""

    content: dict[str, Any]
    origin: str | None = None
    original_name: str = field(default="")

    def __post_init__(self) -> None:
        if not self.original_name:
            self.original_name = self.name

    @property
    def kind(self) -> str:
        return str(self.content.get("kind") or "")

    @property
    def name(self) -> str:
        return str(self.metadata.get("name") or "")

    @property
    def metadata(self) -> dict[str, Any]:
        return _mapping_at(self.content, "metadata")

    def matches(self, selector: Mapping[str, Any]) -> bool:
        api_version = str(self.content.get("apiVersion") or "")
        group, _, version = api_version.rpartition("/")
        checks = {
            "kind": self.kind,
            "name": None,
            "namespace": str(self.metadata.get("namespace") or ""),
            "group": group,
            "version": version,
        }
        for key, expected in selector.items():
            if key == "name":
                if expected not in (self.name, self.original_name):
                    return False
            elif key == "labelSelector":
                if not _label_selector_matches(self.metadata.get("labels") or {}, str(expected)):
                    return False
            elif key in checks and checks[key] != expected:
                return False
        return True


class KustomizeBuilder:
    """Build kustomization directories through the ``FileSystem`` port.

    Examples
    --------
    >>> from lib_kustomize_renderer.adapters.fs.storage import new_memory_fs
    >>> fs = new_memory_fs()
    >>> fs.write_file("/app/kustomization.yaml", b"namePrefix: dev-\\nresources: [cm.yaml]\\n")
    >>> fs.write_file("/app/cm.yaml", b"apiVersion: v1\\nkind: ConfigMap\\nmetadata: {name: settings}\\n")
    >>> docs = KustomizeBuilder().build(fs, "/app", load_restrictions=LoadRestrictions.ROOT_ONLY, diagnostics=[])
    >>> docs[0]["metadata"]["name"]
    'dev-settings'
    """

    def build(
        self,
        fs: FileSystem,
        path: str,
        *,
        load_restrictions: LoadRestrictions,
        diagnostics: list[str],
    ) -> list[dict[str, Any]]:
        root, file_name = fs.resolve_to_dir_and_name(path)
        if file_name:
            raise PathMustBeDirectory(f"path {path!r} is a file, expected a kustomization directory", path=path)

        kust, _ = load_kustomization(fs, root)
        resources = self._build_dir(fs, root, kust, load_restrictions, diagnostics, (root,))
        resources = [item for item in resources if not _is_local_config(item)]

        if kust.has_build_metadata(ORIGIN_ANNOTATIONS):
            for item in resources:
                if item.origin:
                    relative = os.path.relpath(item.origin, root)
                    _mapping_at(item.metadata, "annotations")[ANNOTATION_ORIGIN] = yaml.safe_dump(
                        {"path": relative}, sort_keys=False
                    )
        return [deepcopy(item.content) for item in resources]

    def _build_dir(
        self,
        fs: FileSystem,
        root: str,
        kust: Kustomization,
        restrictions: LoadRestrictions,
        diagnostics: list[str],
        stack: tuple[str, ...],
    ) -> list[_Resource]:
        _check_supported(root, kust)
        resources: list[_Resource] = []
        for entry in [*kust.get_list("resources"), *kust.get_list("bases")]:
            target = os.path.normpath(os.path.join(root, str(entry)))
            if fs.is_dir(target):
                if target in stack:
                    raise BuildFailed(f"cycle detected: {target} is already being built", path=target)
                nested, _ = load_kustomization(fs, target)
                for warning in nested.check_deprecated_fields():
                    diagnostics.append(f"{target}: {warning}")
                resources.extend(self._build_dir(fs, target, nested, restrictions, diagnostics, (*stack, target)))
            elif fs.exists(target):
                resources.extend(_Resource(doc, origin=target) for doc in self._load(fs, root, target, restrictions))
            else:
                raise BuildFailed(f"accumulating resources: '{target}': no such file or directory", path=target)

        self._apply_patches(fs, root, kust, resources, restrictions)
        _apply_namespace(kust.get("namespace"), resources)
        _apply_names(kust.get("namePrefix") or "", kust.get("nameSuffix") or "", resources)
        _apply_labels(kust, resources)
        _apply_annotations(kust.get("commonAnnotations") or {}, resources)
        self._apply_replacements(fs, root, kust, resources, restrictions)
        return resources

    def _load(self, fs: FileSystem, root: str, target: str, restrictions: LoadRestrictions) -> list[dict[str, Any]]:
        _check_restriction(root, target, restrictions)
        try:
            loaded = list(yaml.safe_load_all(fs.read_file(target)))
        except yaml.YAMLError as exc:
            raise BuildFailed(f"invalid YAML in {target}: {exc}", path=target) from exc
        documents: list[dict[str, Any]] = []
        for document in loaded:
            if document is None:
                continue
            if not isinstance(document, Mapping):
                raise BuildFailed(f"{target} contains a document that is not a mapping", path=target)
            if str(document.get("kind", "")).endswith("List") and isinstance(document.get("items"), list):
                documents.extend(dict(item) for item in document["items"] if isinstance(item, Mapping))
            else:
                documents.append(dict(document))
        return documents

    def _apply_patches(
        self,
        fs: FileSystem,
        root: str,
        kust: Kustomization,
        resources: list[_Resource],
        restrictions: LoadRestrictions,
    ) -> None:
        specs: list[Mapping[str, Any]] = []
        for entry in kust.get_list("patchesStrategicMerge"):
            specs.append({"patch": entry} if "\n" in str(entry) else {"path": entry})
        specs.extend(entry for entry in kust.get_list("patches") if isinstance(entry, Mapping))

        for spec in specs:
            if "path" in spec:
                bodies = self._load(fs, root, os.path.normpath(os.path.join(root, str(spec["path"]))), restrictions)
            else:
                try:
                    bodies = [doc for doc in yaml.safe_load_all(str(spec.get("patch") or "")) if doc]
                except yaml.YAMLError as exc:
                    raise BuildFailed(f"invalid inline patch in {root}: {exc}", path=root) from exc
            selector = spec.get("target")
            for body in bodies:
                matched = self._select_patch_targets(resources, body, selector)
                if not matched:
                    raise BuildFailed(f"no matches for patch {_describe(body)} in {root}", path=root)
                for item in matched:
                    if body.get(_DELETE_DIRECTIVE) == "delete":
                        resources.remove(item)
                        continue
                    patch = deepcopy(body)
                    if selector:
                        patch.pop("metadata", None)
                        patch.pop("kind", None)
                        patch.pop("apiVersion", None)
                    item.content = _strategic_merge(item.content, patch)

    @staticmethod
    def _select_patch_targets(
        resources: list[_Resource], body: Mapping[str, Any], selector: Mapping[str, Any] | None
    ) -> list[_Resource]:
        if selector:
            return [item for item in resources if item.matches(selector)]
        name = (body.get("metadata") or {}).get("name")
        return [item for item in resources if item.kind == body.get("kind") and name in (item.name, item.original_name)]

    def _apply_replacements(
        self,
        fs: FileSystem,
        root: str,
        kust: Kustomization,
        resources: list[_Resource],
        restrictions: LoadRestrictions,
    ) -> None:
        replacements: list[Any] = []
        for entry in kust.get_list("replacements"):
            if isinstance(entry, Mapping) and "path" in entry:
                target = os.path.normpath(os.path.join(root, str(entry["path"])))
                _check_restriction(root, target, restrictions)
                loaded = yaml.safe_load(fs.read_file(target)) or []
                replacements.extend(loaded if isinstance(loaded, list) else [loaded])
            else:
                replacements.append(entry)

        for replacement in replacements:
            source_selector = dict(replacement.get("source") or {})
            field_path = source_selector.pop("fieldPath", "metadata.name")
            sources = [item for item in resources if item.matches(source_selector)]
            if len(sources) != 1:
                raise BuildFailed(
                    f"replacement source {source_selector} matched {len(sources)} resources, expected exactly 1",
                    path=root,
                )
            found, value = _get_path(sources[0].content, field_path)
            if not found:
                raise BuildFailed(f"replacement source field {field_path!r} not found", path=root)
            for target in replacement.get("targets") or []:
                select = target.get("select") or {}
                reject = target.get("reject") or []
                create = bool((target.get("options") or {}).get("create"))
                for item in resources:
                    if not item.matches(select) or any(item.matches(r) for r in reject):
                        continue
                    for path in target.get("fieldPaths") or []:
                        if not _set_path(item.content, path, deepcopy(value), create=create):
                            raise BuildFailed(
                                f"unable to find field {path!r} in replacement target {_describe(item.content)}",
                                path=root,
                            )


def _check_supported(root: str, kust: Kustomization) -> None:
    unsupported = [name for name in _UNSUPPORTED_FIELDS if kust.get(name)]
    if unsupported:
        raise BuildFailed(
            f"{root}: kustomization fields not supported by the bundled builder: {', '.join(unsupported)}",
            path=root,
        )


def _mapping_at(parent: dict[str, Any], key: str) -> dict[str, Any]:
    """Return ``parent[key]`` as a dict, replacing a null or missing value with ``{}``."""

    value = parent.get(key)
    if not isinstance(value, dict):
        value = {}
        parent[key] = value
    return value


def _check_restriction(root: str, target: str, restrictions: LoadRestrictions) -> None:
    if restrictions is not LoadRestrictions.ROOT_ONLY:
        return
    if target != root and not target.startswith(root.rstrip(os.sep) + os.sep):
        raise BuildFailed(f"security; file '{target}' is not in or below '{root}'", path=target)


def _is_local_config(item: _Resource) -> bool:
    return str((item.metadata.get("annotations") or {}).get(ANNOTATION_LOCAL_CONFIG, "")).lower() == "true"


def _apply_namespace(namespace: str | None, resources: list[_Resource]) -> None:
    if not namespace:
        return
    for item in resources:
        if item.kind not in _CLUSTER_SCOPED:
            item.metadata["namespace"] = namespace


def _apply_names(prefix: str, suffix: str, resources: list[_Resource]) -> None:
    if not prefix and not suffix:
        return
    for item in resources:
        if item.kind not in _NOT_RENAMED and item.name:
            item.metadata["name"] = f"{prefix}{item.name}{suffix}"


def _apply_labels(kust: Kustomization, resources: list[_Resource]) -> None:
    entries: list[Mapping[str, Any]] = []
    common = kust.get("commonLabels") or {}
    if common:
        entries.append({"pairs": common, "includeSelectors": True, "includeTemplates": True})
    entries.extend(entry for entry in kust.get_list("labels") if isinstance(entry, Mapping))

    for entry in entries:
        pairs = {str(k): str(v) for k, v in (entry.get("pairs") or {}).items()}
        if not pairs:
            continue
        for item in resources:
            _mapping_at(item.metadata, "labels").update(pairs)
            spec = item.content.get("spec")
            if not isinstance(spec, dict):
                continue
            if entry.get("includeSelectors"):
                selector = spec.get("selector")
                if isinstance(selector, dict) and isinstance(selector.get("matchLabels"), dict):
                    selector["matchLabels"].update(pairs)
                elif isinstance(selector, dict) and item.kind == "Service":
                    selector.update(pairs)
            if entry.get("includeSelectors") or entry.get("includeTemplates"):
                template = spec.get("template")
                if isinstance(template, dict):
                    _mapping_at(_mapping_at(template, "metadata"), "labels").update(pairs)


def _apply_annotations(annotations: Mapping[str, Any], resources: list[_Resource]) -> None:
    if not annotations:
        return
    pairs = {str(k): str(v) for k, v in annotations.items()}
    for item in resources:
        _mapping_at(item.metadata, "annotations").update(pairs)


def _strategic_merge(base: Any, patch: Any) -> Any:
    """Deep-merge *patch* into *base*; ``None`` deletes a key, lists are replaced.

    >>> _strategic_merge({"a": {"b": 1, "c": 2}}, {"a": {"c": None, "d": 3}})
    {'a': {'b': 1, 'd': 3}}
    """

    if not isinstance(base, dict) or not isinstance(patch, Mapping):
        return deepcopy(patch)
    merged = dict(base)
    for key, value in patch.items():
        if value is None:
            merged.pop(key, None)
        elif isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = _strategic_merge(merged[key], value)
        else:
            merged[key] = deepcopy(value)
    return merged


def _get_path(content: Mapping[str, Any], dotted: str) -> tuple[bool, Any]:
    current: Any = content
    for part in dotted.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return False, None
        current = current[part]
    return True, current


def _set_path(content: dict[str, Any], dotted: str, value: Any, *, create: bool) -> bool:
    parts = dotted.split(".")
    current: Any = content
    for part in parts[:-1]:
        if not isinstance(current, dict):
            return False
        if part not in current:
            if not create:
                return False
            current[part] = {}
        current = current[part]
    if not isinstance(current, dict) or (parts[-1] not in current and not create):
        return False
    current[parts[-1]] = value
    return True


def _label_selector_matches(labels: Mapping[str, Any], selector: str) -> bool:
    for clause in filter(None, (part.strip() for part in selector.split(","))):
        key, _, expected = clause.partition("=")
        if str(labels.get(key.strip())) != expected.strip().lstrip("="):
            return False
    return True


def _describe(content: Mapping[str, Any]) -> str:
    name = (content.get("metadata") or {}).get("name", "")
    return f"{content.get('kind', '?')}/{name}"
