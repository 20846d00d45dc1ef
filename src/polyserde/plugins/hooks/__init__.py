from polyserde.plugins.hooks.markers import hook_impl
from polyserde.plugins.hooks.markers import hook_spec

__all__ = ["hook_impl", "hook_spec"]
