"""Hook markers for polyserde plugins."""

import pluggy

HOOK_NAMESPACE = "polyserde"

hook_spec = pluggy.HookspecMarker(HOOK_NAMESPACE)
hook_impl = pluggy.HookimplMarker(HOOK_NAMESPACE)
