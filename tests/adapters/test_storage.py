"""Contract tests for the storage adapters and their constructors."""

from __future__ import annotations

import os
from importlib.resources import files
from pathlib import Path

import pytest

from lib_kustomize_renderer.adapters.fs.storage import (
    StorageAdapter,
    new_base_path_fs,
    new_from_resources,
    new_fs_on_disk,
    new_memory_fs,
    new_read_only_fs,
)
from lib_kustomize_renderer.application.ports import FileSystem
from lib_kustomize_renderer.domain.errors import CompositionError, NotFound, ReadOnlyFilesystemError
from lib_kustomize_renderer.testing import write_tree


@pytest.fixture()
def memory_fs() -> StorageAdapter:
    fs = new_memory_fs()
    write_tree(
        fs,
        "/repo",
        {
            "app/kustomization.yaml": "resources: [cm.yaml]\n",
            "app/cm.yaml": "kind: ConfigMap\n",
            "app/overlays/dev/kustomization.yaml": "resources: [../..]\n",
            "README.md": "hello",
        },
    )
    return fs


def test_constructors_satisfy_the_filesystem_port(tmp_path: Path) -> None:
    for fs in (new_fs_on_disk(), new_memory_fs(), new_read_only_fs(new_memory_fs())):
        assert isinstance(fs, FileSystem)


def test_memory_read_write_and_listing(memory_fs: StorageAdapter) -> None:
    assert memory_fs.read_file("/repo/app/cm.yaml") == b"kind: ConfigMap\n"
    assert memory_fs.read_dir("/repo") == ["README.md", "app"]
    assert memory_fs.is_dir("/repo/app/overlays")
    assert not memory_fs.is_dir("/repo/README.md")
    assert not memory_fs.exists("/repo/missing")


def test_memory_missing_file_raises_file_not_found(memory_fs: StorageAdapter) -> None:
    with pytest.raises(FileNotFoundError):
        memory_fs.read_file("/repo/nope.yaml")


def test_create_and_open_handles(memory_fs: StorageAdapter) -> None:
    with memory_fs.create("/repo/new.txt") as handle:
        assert memory_fs.read_file("/repo/new.txt") == b""
        handle.write(b"payload")
    assert memory_fs.read_file("/repo/new.txt") == b"payload"
    assert memory_fs.open("/repo/new.txt").read() == b"payload"


def test_mkdir_requires_parent_but_mkdir_all_does_not(memory_fs: StorageAdapter) -> None:
    with pytest.raises(FileNotFoundError):
        memory_fs.mkdir("/a/b/c")
    memory_fs.mkdir_all("/a/b/c")
    assert memory_fs.is_dir("/a/b")
    memory_fs.mkdir_all("/a/b/c")
    with pytest.raises(FileExistsError):
        memory_fs.mkdir("/a/b/c")


def test_remove_all_deletes_subtree(memory_fs: StorageAdapter) -> None:
    memory_fs.remove_all("/repo/app")
    assert memory_fs.read_dir("/repo") == ["README.md"]
    memory_fs.remove_all("/repo/never-existed")


def test_glob_matches_one_segment_at_a_time(memory_fs: StorageAdapter) -> None:
    assert memory_fs.glob("/repo/app/*.yaml") == ["/repo/app/cm.yaml", "/repo/app/kustomization.yaml"]
    assert memory_fs.glob("/repo/*/kustomization.yaml") == ["/repo/app/kustomization.yaml"]
    assert memory_fs.glob("/repo/README.md") == ["/repo/README.md"]
    assert memory_fs.glob("/missing/*.yaml") == []


def test_walk_is_top_down_and_prunable(memory_fs: StorageAdapter) -> None:
    seen = []
    for dirpath, dirnames, filenames in memory_fs.walk("/repo"):
        seen.append((dirpath, list(filenames)))
        if "overlays" in dirnames:
            dirnames.remove("overlays")
    assert seen == [("/repo", ["README.md"]), ("/repo/app", ["cm.yaml", "kustomization.yaml"])]


def test_walk_rejects_missing_root(memory_fs: StorageAdapter) -> None:
    with pytest.raises(NotFound):
        list(memory_fs.walk("/absent"))


def test_resolve_directory_and_file(memory_fs: StorageAdapter) -> None:
    assert memory_fs.resolve_to_dir_and_name("/repo/app") == ("/repo/app", "")
    assert memory_fs.resolve_to_dir_and_name("/repo/app/cm.yaml") == ("/repo/app", "cm.yaml")
    assert memory_fs.resolve_to_dir_and_name("/repo/app/overlays/dev/../..") == ("/repo/app", "")
    assert memory_fs.resolve_to_dir_and_name("repo/app") == ("/repo/app", "")


def test_resolve_empty_path_means_current_directory() -> None:
    assert new_memory_fs().resolve_to_dir_and_name("") == ("/", "")


def test_resolve_missing_path_raises_not_found(memory_fs: StorageAdapter) -> None:
    with pytest.raises(NotFound) as info:
        memory_fs.resolve_to_dir_and_name("/repo/ghost")
    assert info.value.path == "/repo/ghost"


def test_disk_resolve_follows_symlinks(tmp_path: Path) -> None:
    real = tmp_path / "real"
    real.mkdir()
    (real / "kustomization.yaml").write_text("resources: []\n", encoding="utf-8")
    link = tmp_path / "link"
    try:
        link.symlink_to(real, target_is_directory=True)
    except (OSError, NotImplementedError):
        pytest.skip("symlinks unavailable")
    fs = new_fs_on_disk()
    assert fs.resolve_to_dir_and_name(str(link)) == (os.path.realpath(real), "")


def test_disk_relative_paths_use_working_directory(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "app").mkdir()
    monkeypatch.chdir(tmp_path)
    directory, name = new_fs_on_disk().resolve_to_dir_and_name("app")
    assert directory == os.path.realpath(tmp_path / "app")
    assert name == ""


def test_disk_round_trip(tmp_path: Path) -> None:
    fs = new_fs_on_disk()
    target = str(tmp_path / "nested" / "file.yaml")
    fs.mkdir_all(os.path.dirname(target))
    fs.write_file(target, b"a: 1\n")
    assert Path(target).read_bytes() == b"a: 1\n"
    assert fs.read_dir(str(tmp_path / "nested")) == ["file.yaml"]
    fs.remove_all(str(tmp_path / "nested"))
    assert not (tmp_path / "nested").exists()


@pytest.mark.parametrize(
    "mutate",
    [
        lambda fs: fs.write_file("/repo/x", b""),
        lambda fs: fs.create("/repo/x"),
        lambda fs: fs.mkdir("/repo/x"),
        lambda fs: fs.mkdir_all("/repo/x/y"),
        lambda fs: fs.remove_all("/repo/app"),
    ],
)
def test_read_only_view_rejects_every_mutation(memory_fs: StorageAdapter, mutate) -> None:
    view = new_read_only_fs(memory_fs)
    with pytest.raises(ReadOnlyFilesystemError, match="not supported on read-only filesystem"):
        mutate(view)
    assert view.read_file("/repo/app/cm.yaml") == b"kind: ConfigMap\n"
    assert memory_fs.exists("/repo/app")


def test_read_only_view_of_foreign_filesystem_forwards_reads(memory_fs: StorageAdapter) -> None:
    foreign = new_read_only_fs(new_read_only_fs(memory_fs))
    wrapped = new_read_only_fs(_Foreign(foreign))
    assert not isinstance(wrapped, StorageAdapter)
    assert wrapped.read_dir("/repo") == ["README.md", "app"]
    assert wrapped.resolve_to_dir_and_name("/repo/app/cm.yaml") == ("/repo/app", "cm.yaml")
    with pytest.raises(ReadOnlyFilesystemError):
        wrapped.write_file("/repo/x", b"")


def test_base_path_view_clamps_parent_segments(memory_fs: StorageAdapter) -> None:
    view = new_base_path_fs(memory_fs, "/repo/app")
    assert view.read_file("/cm.yaml") == b"kind: ConfigMap\n"
    assert view.read_file("/../../cm.yaml") == b"kind: ConfigMap\n"
    assert view.read_dir("/") == ["cm.yaml", "kustomization.yaml", "overlays"]
    view.write_file("/extra.yaml", b"x")
    assert memory_fs.read_file("/repo/app/extra.yaml") == b"x"
    with pytest.raises(ReadOnlyFilesystemError):
        view.remove_all("/")


def test_base_path_view_on_disk_resolves_symlinks_inside_the_base(tmp_path: Path) -> None:
    base = tmp_path / "base"
    (base / "real").mkdir(parents=True)
    outside = tmp_path / "outside"
    outside.mkdir()
    try:
        (base / "link").symlink_to(base / "real", target_is_directory=True)
        (base / "out").symlink_to(outside, target_is_directory=True)
    except (OSError, NotImplementedError):
        pytest.skip("symlinks unavailable")
    view = new_base_path_fs(new_fs_on_disk(), str(base))
    assert view.resolve_to_dir_and_name("/link") == ("/real", "")
    assert view.resolve_to_dir_and_name("/") == ("/", "")
    assert view.resolve_to_dir_and_name("/out") == ("/out", "")


def test_base_path_rejects_foreign_filesystems() -> None:
    with pytest.raises(CompositionError):
        new_base_path_fs(_Foreign(new_memory_fs()), "/")


def test_embedded_resources_are_readable_and_read_only() -> None:
    fs = new_from_resources(files("lib_kustomize_renderer"), "domain")
    assert fs.exists("/source.py")
    assert fs.is_dir("/")
    assert "document.py" in fs.read_dir("/")
    assert fs.read_file("/errors.py").startswith(b'"""')
    with pytest.raises(ReadOnlyFilesystemError):
        fs.write_file("/new.py", b"")


class _Foreign:
    """Minimal non-adapter filesystem forwarding to another one."""

    def __init__(self, inner) -> None:
        self._inner = inner

    def __getattr__(self, name):
        return getattr(self._inner, name)
