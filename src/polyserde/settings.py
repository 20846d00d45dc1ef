from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Literal

_GLOBAL_POLYSERDE_SETTINGS: PolyserdeSettings | None = None
_SETTINGS_LOCK = threading.RLock()

MAX_KEY_BITS = 64


@dataclass(frozen=True)
class PolyserdeSettings:
    """Configuration settings for polyserde."""

    key_bits: int = MAX_KEY_BITS
    """
    Width of type keys in bits. Keys live in ``[0, 2**key_bits)``.

    Smaller widths make keys shorter on the wire but raise the odds of hash collisions.
    """

    allocation: Literal["hash", "sequential"] = "hash"
    """
    How new type keys are allocated.

    ``hash`` derives the key from the capability and type names (stable across restarts).
    ``sequential`` hands out keys in registration order.
    """

    collision: Literal["reject", "probe"] = "reject"
    """
    What the hash allocator does when a derived key is already taken by another type.

    ``reject`` raises DuplicateKeyConflict. ``probe`` moves to the next free key.
    """

    default_codec: str = "json"
    """Format of the codec used by capability kinds that don't name one."""

    def __post_init__(self) -> None:
        if not 1 <= self.key_bits <= MAX_KEY_BITS:
            raise ValueError(f"key_bits must be between 1 and {MAX_KEY_BITS}, got {self.key_bits}")
        if self.allocation not in ("hash", "sequential"):
            raise ValueError(f"Unknown allocation policy '{self.allocation}'")
        if self.collision not in ("reject", "probe"):
            raise ValueError(f"Unknown collision policy '{self.collision}'")


def get_global_settings() -> PolyserdeSettings:
    """
    Get the global polyserde settings instance (thread-safe).

    If no global settings have been set, returns a default instance.
    """
    with _SETTINGS_LOCK:
        global _GLOBAL_POLYSERDE_SETTINGS
        if _GLOBAL_POLYSERDE_SETTINGS is None:
            _GLOBAL_POLYSERDE_SETTINGS = PolyserdeSettings()
        return _GLOBAL_POLYSERDE_SETTINGS


def set_global_settings(settings: PolyserdeSettings) -> None:
    """
    Set the global polyserde settings instance (thread-safe).

    Note: Settings are read when a capability kind is created. Kinds that already exist keep the
    allocator they were created with.

    Args:
        settings (PolyserdeSettings): Settings to set as global.
    """
    with _SETTINGS_LOCK:
        global _GLOBAL_POLYSERDE_SETTINGS
        _GLOBAL_POLYSERDE_SETTINGS = settings
