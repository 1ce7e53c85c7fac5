"""Render source value object.

Purpose
-------
Describe one unit of rendering work: a kustomization directory, optional
caller-supplied values, and an optional load-restriction override. The same
object doubles as the cache-key input, so it is immutable once built.

Contents
--------
* :class:`LoadRestrictions` – which files a build may read.
* :class:`Source` – frozen dataclass with validation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from .errors import SourceValidationError


class LoadRestrictions(str, Enum):
    """Policy limiting which files a build may load.

    ``UNKNOWN`` on a :class:`Source` means "use the renderer default".
    """

    ROOT_ONLY = "RootOnly"
    NONE = "None"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: "str | LoadRestrictions") -> "LoadRestrictions":
        """Accept enum members, their values, or kebab/snake spellings.

        >>> LoadRestrictions.parse("root-only")
        <LoadRestrictions.ROOT_ONLY: 'RootOnly'>
        """

        if isinstance(value, LoadRestrictions):
            return value
        folded = value.replace("-", "").replace("_", "").lower()
        for member in cls:
            if member.value.lower() == folded or member.name.replace("_", "").lower() == folded:
                return member
        raise ValueError(f"unknown load restriction: {value!r}")


@dataclass(frozen=True, slots=True)
class Source:
    """A kustomization directory plus the values injected while rendering it.

    Parameters
    ----------
    path:
        Kustomization root. Must be non-empty and must resolve to a directory.
    values:
        String-to-string mapping rendered as a ``values.yaml`` ConfigMap.
        Copied into a read-only mapping; insertion order is preserved.
    load_restrictions:
        Per-source override; ``UNKNOWN`` defers to the renderer default.

    Examples
    --------
    >>> src = Source("/app", {"replicas": "3"})
    >>> dict(src.values)
    {'replicas': '3'}
    >>> src.load_restrictions
    <LoadRestrictions.UNKNOWN: 'Unknown'>
    """

    path: str
    values: Mapping[str, str] = field(default_factory=dict)
    load_restrictions: LoadRestrictions = LoadRestrictions.UNKNOWN

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", str(self.path) if self.path is not None else "")
        object.__setattr__(self, "values", MappingProxyType(dict(self.values or {})))
        object.__setattr__(self, "load_restrictions", LoadRestrictions.parse(self.load_restrictions))

    def __hash__(self) -> int:
        return hash((self.path, frozenset(self.values.items()), self.load_restrictions))

    def validate(self) -> None:
        """Fail fast on malformed sources before any filesystem work.

        >>> Source("").validate()
        Traceback (most recent call last):
        ...
        lib_kustomize_renderer.domain.errors.SourceValidationError: source path must not be empty
        """

        if not self.path.strip():
            raise SourceValidationError("source path must not be empty", path=self.path)
        for key, value in self.values.items():
            if not isinstance(key, str) or not isinstance(value, str):
                raise SourceValidationError(
                    f"source values must map strings to strings, got {key!r}: {value!r}",
                    path=self.path,
                )
