"""Locate and read the kustomization file of an overlay root."""

from __future__ import annotations

import os

from ..domain.errors import DescriptorLoadError, PathMustBeDirectory
from ..domain.kustomization import KUSTOMIZATION_FILE_NAMES, Kustomization
from ..observability import log_debug
from .ports import FileSystem


def load_kustomization(fs: FileSystem, directory: str) -> tuple[Kustomization, str]:
    """Return the parsed descriptor in *directory* and its file name.

    Raises
    ------
    PathMustBeDirectory
        When *directory* names an existing file.
    DescriptorLoadError
        When no descriptor, or more than one, exists, or it cannot be read.
    """

    if fs.exists(directory) and not fs.is_dir(directory):
        raise PathMustBeDirectory(
            f"path {directory!r}: path must be a directory containing a kustomization file, got a file instead",
            path=directory,
        )
    found = [
        name
        for name in KUSTOMIZATION_FILE_NAMES
        if fs.exists(os.path.join(directory, name)) and not fs.is_dir(os.path.join(directory, name))
    ]
    if not found:
        raise DescriptorLoadError(
            f"unable to find one of {list(KUSTOMIZATION_FILE_NAMES)} in directory {directory!r}",
            path=directory,
        )
    if len(found) > 1:
        raise DescriptorLoadError(f"found multiple kustomization files under: {directory}", path=directory)

    file_path = os.path.join(directory, found[0])
    try:
        raw = fs.read_file(file_path)
    except OSError as exc:
        raise DescriptorLoadError(f"unable to read kustomization {file_path}: {exc}", path=directory) from exc
    log_debug("descriptor_loaded", stage="descriptor", path=directory, file=found[0], size=len(raw))
    return Kustomization.parse(raw, path=file_path), found[0]
