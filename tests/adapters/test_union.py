"""Tests for the copy-on-write overlay filesystem."""

from __future__ import annotations

import logging

import pytest
from hypothesis import given
from hypothesis import strategies as st

from lib_kustomize_renderer.adapters.fs.storage import new_memory_fs, new_read_only_fs
from lib_kustomize_renderer.adapters.fs.union import new_union_fs
from lib_kustomize_renderer.domain.errors import CompositionError, ReadOnlyFilesystemError
from lib_kustomize_renderer.testing import write_tree

_names = st.sampled_from(["a.yaml", "b.yaml", "c.yaml", "kustomization.yaml"])
_content = st.binary(min_size=0, max_size=16)


def _base():
    fs = new_memory_fs()
    write_tree(fs, "/app", {"kustomization.yaml": "resources: []\n", "cm.yaml": "kind: ConfigMap\n"})
    return fs


def test_override_shadows_base_without_mutating_it() -> None:
    base = _base()
    union = new_union_fs(base, overrides={"/app/kustomization.yaml": b"shadow"})
    assert union.read_file("/app/kustomization.yaml") == b"shadow"
    assert union.read_file("/app/cm.yaml") == b"kind: ConfigMap\n"
    assert base.read_file("/app/kustomization.yaml") == b"resources: []\n"


def test_listing_is_the_union_of_both_layers() -> None:
    union = new_union_fs(_base(), overrides={"/app/values.yaml": b"data: {}"})
    assert union.read_dir("/app") == ["cm.yaml", "kustomization.yaml", "values.yaml"]


def test_writes_after_composition_land_in_overlay_only() -> None:
    base = _base()
    union = new_union_fs(base)
    union.write_file("/app/extra.yaml", b"x")
    union.mkdir_all("/app/generated/deep")
    assert union.read_file("/app/extra.yaml") == b"x"
    assert union.is_dir("/app/generated/deep")
    assert not base.exists("/app/extra.yaml")
    assert not base.exists("/app/generated")


def test_write_into_missing_directory_fails() -> None:
    union = new_union_fs(_base())
    with pytest.raises(FileNotFoundError):
        union.write_file("/nowhere/file.yaml", b"x")


def test_remove_of_base_path_is_refused() -> None:
    base = _base()
    union = new_union_fs(base, overrides={"/app/values.yaml": b"v"})
    with pytest.raises(ReadOnlyFilesystemError):
        union.remove_all("/app/cm.yaml")
    union.remove_all("/app/values.yaml")
    assert not union.exists("/app/values.yaml")
    assert base.exists("/app/cm.yaml")


def test_read_only_base_is_accepted() -> None:
    base = new_read_only_fs(_base())
    union = new_union_fs(base, overrides={"/app/values.yaml": b"v"})
    assert union.read_file("/app/values.yaml") == b"v"
    assert union.resolve_to_dir_and_name("/app") == ("/app", "")


def test_custom_overlay_takes_precedence_over_overrides() -> None:
    overlay = new_memory_fs()
    overlay.write_file("/app/cm.yaml", b"from-overlay")
    union = new_union_fs(_base(), overrides={"/app/cm.yaml": b"ignored"}, overlay=overlay)
    assert union.read_file("/app/cm.yaml") == b"from-overlay"


def test_foreign_inputs_are_rejected() -> None:
    class Foreign:
        pass

    with pytest.raises(CompositionError, match="base filesystem"):
        new_union_fs(Foreign())  # type: ignore[arg-type]
    with pytest.raises(CompositionError, match="overlay filesystem"):
        new_union_fs(_base(), overlay=Foreign())  # type: ignore[arg-type]


def test_failed_override_names_the_path() -> None:
    with pytest.raises(CompositionError) as info:
        new_union_fs(_base(), overrides={"/app/a": b"file", "/app/a/b": b"nested"})
    assert info.value.path == "/app/a/b"
    assert "/app/a/b" in str(info.value)


def test_composition_is_logged(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG, logger="lib_kustomize_renderer")
    new_union_fs(_base(), overrides={"/app/values.yaml": b"v"})
    record = next(r for r in caplog.records if r.getMessage() == "overlay_composed")
    assert record.context["overrides"] == ["/app/values.yaml"]


@given(
    base_files=st.dictionaries(_names, _content, max_size=4),
    overrides=st.dictionaries(_names, _content, max_size=4),
)
def test_overlay_precedence_and_base_immutability(base_files, overrides) -> None:
    base = new_memory_fs()
    base.mkdir_all("/app")
    for name, content in base_files.items():
        base.write_file(f"/app/{name}", content)

    union = new_union_fs(base, overrides={f"/app/{name}": content for name, content in overrides.items()})

    for name in set(base_files) | set(overrides):
        expected = overrides[name] if name in overrides else base_files[name]
        assert union.read_file(f"/app/{name}") == expected
    assert union.read_dir("/app") == sorted(set(base_files) | set(overrides))
    for name, content in base_files.items():
        assert base.read_file(f"/app/{name}") == content
    assert base.read_dir("/app") == sorted(base_files)
