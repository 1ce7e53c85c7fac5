"""Unit tests for ``RendererOptions`` validation."""

from __future__ import annotations

import pytest

from lib_kustomize_renderer.application.options import RendererOptions
from lib_kustomize_renderer.domain.source import LoadRestrictions


class UppercasePlugin:
    def transform(self, resources) -> None:
        for resource in resources:
            resource["kind"] = resource["kind"].upper()


def test_defaults() -> None:
    options = RendererOptions()
    assert options.filters == ()
    assert options.transformers == ()
    assert options.plugins == ()
    assert options.cache is None
    assert options.source_annotations is False
    assert options.load_restrictions is LoadRestrictions.ROOT_ONLY
    assert options.warning_handler is None


def test_sequences_are_frozen_into_tuples() -> None:
    filters = [lambda doc: True]
    options = RendererOptions(filters=filters)
    filters.append(lambda doc: False)
    assert len(options.filters) == 1


def test_unknown_default_restriction_is_rejected() -> None:
    with pytest.raises(ValueError, match="RootOnly or None"):
        RendererOptions(load_restrictions=LoadRestrictions.UNKNOWN)


def test_restriction_strings_are_parsed() -> None:
    assert RendererOptions(load_restrictions="None").load_restrictions is LoadRestrictions.NONE


@pytest.mark.parametrize(
    "kwargs",
    [
        {"filters": ["not callable"]},
        {"transformers": [42]},
        {"plugins": [object()]},
        {"warning_handler": "stderr"},
    ],
)
def test_invalid_members_are_rejected(kwargs) -> None:
    with pytest.raises(TypeError):
        RendererOptions(**kwargs)


def test_plugin_protocol_is_structural() -> None:
    assert RendererOptions(plugins=[UppercasePlugin()]).plugins[0].__class__ is UppercasePlugin


def test_options_are_immutable() -> None:
    options = RendererOptions()
    with pytest.raises(AttributeError):
        options.source_annotations = True  # type: ignore[misc]
