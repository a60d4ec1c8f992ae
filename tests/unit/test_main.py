"""Tests for the server entrypoint's component loading."""

from __future__ import annotations

import pytest

from augment_engine.exceptions import ConfigurationError
from augment_engine.main import load_components


def test_load_components(settings):
    provider, backends = load_components("conftest:fake_components", settings)
    assert sorted(backends) == sorted(settings.fallback_chain)
    assert hasattr(provider, "call")


@pytest.mark.parametrize("path", ["", "conftest", ":fake_components"])
def test_malformed_factory_path(settings, path):
    with pytest.raises(ConfigurationError):
        load_components(path, settings)


def test_unknown_factory(settings):
    with pytest.raises(ConfigurationError):
        load_components("conftest:no_such_factory", settings)
    with pytest.raises(ConfigurationError):
        load_components("no_such_module_xyz:factory", settings)
