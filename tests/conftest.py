"""Conftest for all pytest configuration - fixtures, hooks, and doctest setup."""

import doctest

import pytest

from polyserde import registry as registry_module
from polyserde import settings as settings_module
from polyserde.plugins import manager as manager_module
from polyserde.registry import CapabilityRegistry

# Doctest Configuration


def pytest_configure(config):
    """Configure pytest with custom doctest options."""
    doctest.ELLIPSIS_MARKER = "..."


def pytest_collection_modifyitems(items):
    """Automatically mark doctest items with the 'doctest' marker."""
    for item in items:
        if isinstance(item, pytest.DoctestItem):
            item.add_marker(pytest.mark.doctest)


# Global State Isolation


@pytest.fixture(autouse=True)
def _restore_global_settings(monkeypatch):
    """Every test starts from default settings."""
    monkeypatch.setattr(settings_module, "_GLOBAL_POLYSERDE_SETTINGS", None)


@pytest.fixture
def default_registry(monkeypatch):
    """A fresh default registry, so tests can freeze it and reuse capability names."""
    fresh = CapabilityRegistry()
    monkeypatch.setattr(registry_module, "default_registry", fresh)
    return fresh


@pytest.fixture
def plugin_manager(monkeypatch):
    """A fresh global plugin manager with no hooks registered."""
    fresh = manager_module._create_plugin_manager()
    monkeypatch.setattr(manager_module, "_PLUGIN_MANAGER", fresh)
    return fresh
