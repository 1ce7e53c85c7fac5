"""Unit tests for the render cache and key derivation."""

from __future__ import annotations

import threading

import pytest
from hypothesis import given
from hypothesis import strategies as st

from lib_kustomize_renderer.application.cache import (
    DEFAULT_TTL,
    CacheOptions,
    RenderCache,
    default_key_func,
    new_cache,
    path_only_key_func,
)
from lib_kustomize_renderer.domain.document import Document
from lib_kustomize_renderer.domain.source import Source


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _docs(name: str = "demo") -> list[Document]:
    return [Document({"kind": "ConfigMap", "metadata": {"name": name}})]


def test_get_missing_key_returns_none() -> None:
    assert RenderCache().get("absent") is None


def test_entries_expire_after_ttl() -> None:
    clock = FakeClock()
    cache = RenderCache(ttl=10, clock=clock)
    cache.set("k", _docs())
    clock.now = 10.0
    assert cache.get("k") is not None
    clock.now = 10.001
    assert cache.get("k") is None
    assert len(cache) == 0


def test_explicit_ttl_overrides_default() -> None:
    clock = FakeClock()
    cache = RenderCache(ttl=100, clock=clock)
    cache.set("k", _docs(), ttl=1)
    clock.now = 2
    assert cache.get("k") is None


def test_values_are_isolated_on_set_and_get() -> None:
    cache = RenderCache()
    stored = _docs()
    cache.set("k", stored)
    stored[0].set_annotation("mutated", "before-get")

    first = cache.get("k")
    first[0].set_annotation("mutated", "after-get")
    first.append(Document({"kind": "Extra"}))

    second = cache.get("k")
    assert len(second) == 1
    assert second[0].annotations == {}


def test_sweep_drops_expired_entries() -> None:
    clock = FakeClock()
    cache = RenderCache(ttl=5, clock=clock)
    cache.set("old", _docs())
    clock.now = 4
    cache.set("new", _docs())
    clock.now = 6
    assert cache.sweep() == 1
    assert len(cache) == 1
    cache.clear()
    assert len(cache) == 0


def test_concurrent_access_is_safe() -> None:
    cache = RenderCache()
    errors: list[BaseException] = []

    def worker(index: int) -> None:
        try:
            for round_ in range(50):
                key = f"k{(index + round_) % 5}"
                cache.set(key, _docs(key))
                value = cache.get(key)
                assert value is None or value[0].kind == "ConfigMap"
        except BaseException as exc:  # noqa: BLE001 - surfaced below
            errors.append(exc)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert errors == []
    assert len(cache) == 5


@given(st.dictionaries(st.text(max_size=8), st.text(max_size=8), max_size=6))
def test_default_key_ignores_value_insertion_order(values: dict[str, str]) -> None:
    reversed_values = dict(reversed(list(values.items())))
    assert default_key_func(Source("/app", values)) == default_key_func(Source("/app", reversed_values))


def test_default_key_distinguishes_paths_and_values() -> None:
    base = default_key_func(Source("/app", {"a": "1"}))
    assert base != default_key_func(Source("/other", {"a": "1"}))
    assert base != default_key_func(Source("/app", {"a": "2"}))
    assert len(base) == 64


def test_path_only_key_ignores_values() -> None:
    assert path_only_key_func(Source("/app", {"secret": "x"})) == path_only_key_func(Source("/app"))
    assert path_only_key_func(Source("/app")) != path_only_key_func(Source("/other"))


def test_cache_options_validate_ttl() -> None:
    assert CacheOptions().ttl == DEFAULT_TTL == 300.0
    with pytest.raises(ValueError):
        CacheOptions(ttl=0)


def test_cache_options_resolve_key_func() -> None:
    assert CacheOptions().resolved_key_func() is default_key_func
    assert CacheOptions(key_func=path_only_key_func).resolved_key_func() is path_only_key_func


def test_new_cache_honours_options() -> None:
    assert new_cache(None) is None
    assert isinstance(new_cache(CacheOptions()), RenderCache)
    custom = RenderCache()
    assert new_cache(CacheOptions(store=custom)) is custom
