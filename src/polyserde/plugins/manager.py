"""Utility functions to manage the project-wide hook configuration."""

import logging
from inspect import isclass
from typing import Any

from pluggy import PluginManager

from .hooks.markers import HOOK_NAMESPACE
from .hooks.specs import EnvelopeSpecs
from .hooks.specs import RegistrySpecs

logger = logging.getLogger(__name__)

_PLUGIN_ENTRY_POINT = "polyserde.hooks"  # entry-point to load hooks from for installed plugins
_PLUGIN_MANAGER: PluginManager | None = None


# region API


def register_hooks(*hooks: Any) -> None:
    """Register specified polyserde pluggy hooks."""
    hook_manager = get_plugin_manager()
    for hooks_collection in hooks:
        if not hook_manager.is_registered(hooks_collection):
            if isclass(hooks_collection):
                raise TypeError(
                    "polyserde expects hooks to be registered as instances. "
                    "Have you forgotten the `()` when registering a hook class?"
                )
            hook_manager.register(hooks_collection)


def unregister_hooks(*hooks: Any) -> None:
    """Unregister previously registered polyserde pluggy hooks."""
    hook_manager = get_plugin_manager()
    for hooks_collection in hooks:
        if hook_manager.is_registered(hooks_collection):
            hook_manager.unregister(hooks_collection)


def register_plugins_entry_points(_plugin_manager: PluginManager | None = None) -> int:
    """
    Register polyserde hooks from Python package entrypoints.

    Returns:
        Number of plugins loaded.
    """
    _plugin_manager = _plugin_manager if _plugin_manager else get_plugin_manager()
    return _plugin_manager.load_setuptools_entrypoints(_PLUGIN_ENTRY_POINT)


def get_plugin_manager() -> PluginManager:
    """Returns initialized global plugin manager, creating it on first use."""
    plugin_manager = _PLUGIN_MANAGER
    if plugin_manager is None:
        plugin_manager = _initialize_plugin_system()
    return plugin_manager


# region Helpers


def _initialize_plugin_system() -> PluginManager:
    """Initializes hooks for the polyserde library."""
    manager = _create_plugin_manager()
    global _PLUGIN_MANAGER
    _PLUGIN_MANAGER = manager
    return manager


def _create_plugin_manager() -> PluginManager:
    """Create a new PluginManager instance and register polyserde's hook specs."""
    manager = PluginManager(HOOK_NAMESPACE)
    manager.trace.root.setwriter(
        logger.debug if logger.getEffectiveLevel() == logging.DEBUG else None
    )
    manager.enable_tracing()
    manager.add_hookspecs(RegistrySpecs)
    manager.add_hookspecs(EnvelopeSpecs)
    return manager
