"""Tests for the global plugin manager and hook registration."""

from dataclasses import dataclass
from unittest.mock import patch

import pytest

from polyserde.envelope import deserialize
from polyserde.envelope import serialize
from polyserde.exceptions import UnknownKeyError
from polyserde.plugins import hook_impl
from polyserde.plugins import manager
from polyserde.plugins.manager import get_plugin_manager
from polyserde.plugins.manager import register_hooks
from polyserde.plugins.manager import register_plugins_entry_points
from polyserde.plugins.manager import unregister_hooks
from polyserde.registry import CapabilityKind


class RecordingPlugin:
    """Plugin that records every hook call."""

    def __init__(self):
        self.calls = []

    @hook_impl
    def after_register(self, kind, entry):
        self.calls.append(("after_register", kind.name, entry.type))

    @hook_impl
    def after_freeze(self, kind):
        self.calls.append(("after_freeze", kind.name))

    @hook_impl
    def after_serialize(self, kind, value, envelope):
        self.calls.append(("after_serialize", envelope.key))

    @hook_impl
    def after_deserialize(self, kind, envelope, value):
        self.calls.append(("after_deserialize", envelope.key))

    @hook_impl
    def on_decode_error(self, kind, envelope, error):
        self.calls.append(("on_decode_error", type(error)))


@dataclass
class Token:
    value: str


class TestGetPluginManager:
    """Tests for get_plugin_manager()."""

    def test_returns_global_manager(self, plugin_manager):
        """The global manager is returned while it exists."""
        assert get_plugin_manager() is plugin_manager

    def test_created_on_first_use(self, monkeypatch):
        """A manager is created if none exists yet."""
        monkeypatch.setattr(manager, "_PLUGIN_MANAGER", None)
        pm = get_plugin_manager()

        assert pm is not None
        assert get_plugin_manager() is pm
        assert pm.project_name == "polyserde"

    def test_hook_specs_registered(self, plugin_manager):
        """Every hook spec is available on the relay."""
        for name in (
            "after_register",
            "after_freeze",
            "after_serialize",
            "after_deserialize",
            "on_decode_error",
        ):
            assert hasattr(plugin_manager.hook, name)


class TestRegisterHooks:
    """Tests for register_hooks() and unregister_hooks()."""

    def test_register_instance(self, plugin_manager):
        """Plugin instances are registered once."""
        plugin = RecordingPlugin()
        register_hooks(plugin)
        register_hooks(plugin)

        assert plugin_manager.is_registered(plugin)
        assert len(plugin_manager.get_plugins()) == 1

    def test_register_class_rejected(self, plugin_manager):
        """Registering a class instead of an instance is an error."""
        with pytest.raises(TypeError, match="forgotten the `\\(\\)`"):
            register_hooks(RecordingPlugin)

    def test_unregister(self, plugin_manager):
        """Unregistered plugins no longer receive calls."""
        plugin = RecordingPlugin()
        register_hooks(plugin)
        unregister_hooks(plugin)
        unregister_hooks(plugin)

        assert not plugin_manager.is_registered(plugin)

    def test_registered_plugin_sees_lifecycle(self, plugin_manager):
        """A registered plugin observes registration, freeze and envelope traffic."""
        plugin = RecordingPlugin()
        register_hooks(plugin)

        kind = CapabilityKind("Tokens")
        kind.register(Token, key=1)
        kind.freeze()
        envelope = serialize(Token("a"), kind)
        deserialize(envelope, kind)
        with pytest.raises(UnknownKeyError):
            deserialize([2, "a"], kind)

        assert plugin.calls == [
            ("after_register", "Tokens", Token),
            ("after_freeze", "Tokens"),
            ("after_serialize", 1),
            ("after_deserialize", 1),
            ("on_decode_error", UnknownKeyError),
        ]


class TestEntryPoints:
    """Tests for register_plugins_entry_points()."""

    def test_loads_polyserde_hooks_group(self, plugin_manager):
        """Entry points are loaded from the polyserde.hooks group."""
        with patch.object(
            plugin_manager, "load_setuptools_entrypoints", return_value=2
        ) as load:
            assert register_plugins_entry_points() == 2

        load.assert_called_once_with("polyserde.hooks")

    def test_explicit_manager(self, plugin_manager):
        """An explicit manager is used instead of the global one."""
        other = manager._create_plugin_manager()
        with patch.object(other, "load_setuptools_entrypoints", return_value=0) as load:
            assert register_plugins_entry_points(other) == 0

        load.assert_called_once_with("polyserde.hooks")
