"""
Centralized exception classes for the polyserde library.

All polyserde-specific exceptions inherit from PolyserdeError for easy catching. Registration
errors (RegistryError) are meant to abort startup; encode/decode errors are meant to be handled by
the caller.
"""

from __future__ import annotations

from typing import Any


class PolyserdeError(Exception):
    """Base exception for all polyserde errors."""


# region Registration


class RegistryError(PolyserdeError):
    """Raised when a type or capability kind cannot be registered."""


class DuplicateKeyConflict(RegistryError):
    """Raised when two distinct concrete types would share the same type key."""

    def __init__(self, key: int, existing: str, incoming: str, kind: str | None = None) -> None:
        self.key = key
        self.existing = existing
        self.incoming = incoming
        self.kind = kind
        where = f" in capability '{kind}'" if kind else ""
        super().__init__(
            f"Type key {key}{where} is already held by '{existing}', cannot assign it to "
            f"'{incoming}'"
        )


class KeyspaceExhaustedError(RegistryError):
    """Raised when no free type key is left in a capability's key space."""


class RegistryFrozenError(RegistryError):
    """Raised when registering into a table that has already been frozen."""


class InterfaceMismatchError(RegistryError):
    """Raised when a registered type does not implement the capability's interface."""


class UnsupportedTypeError(RegistryError):
    """Raised when a codec cannot encode or decode a registered type."""


class UnknownCapabilityError(RegistryError):
    """Raised when a capability kind is requested that was never declared."""


# region Encoding


class EncodeError(PolyserdeError):
    """Raised when a value cannot be turned into an envelope."""


class UnregisteredTypeError(EncodeError):
    """Raised when serializing a value whose concrete type is not registered."""

    def __init__(self, type_name: str, kind: str) -> None:
        self.type_name = type_name
        self.kind = kind
        super().__init__(f"Type '{type_name}' is not registered in capability '{kind}'")


# region Decoding


class DecodeError(PolyserdeError):
    """Raised when an envelope cannot be turned back into a value."""


class EnvelopeError(DecodeError):
    """Raised when the envelope itself is malformed (wrong shape or invalid key)."""


class UnknownKeyError(DecodeError):
    """Raised when an envelope's key has no registered entry."""

    def __init__(self, key: int, kind: str, origin: str | None = None) -> None:
        self.key = key
        self.kind = kind
        self.origin = origin
        message = f"Unknown type key {key} for capability '{kind}'"
        if origin is not None:
            message += f" (envelope was produced by capability '{origin}')"
        super().__init__(message)


class PayloadInvalidError(DecodeError):
    """Raised when the codec rejects an envelope's payload for the target type."""

    def __init__(self, key: int, kind: str, type_name: str, reason: Any) -> None:
        self.key = key
        self.kind = kind
        self.type_name = type_name
        super().__init__(
            f"Invalid payload for '{type_name}' (key {key}, capability '{kind}'): {reason}"
        )


class UnexpectedTypeError(DecodeError):
    """Raised when an envelope holds a registered type other than the one the caller expects."""

    def __init__(self, key: int, kind: str, type_name: str, expected: str) -> None:
        self.key = key
        self.kind = kind
        self.type_name = type_name
        self.expected = expected
        super().__init__(
            f"Type key {key} of capability '{kind}' holds '{type_name}', which is not a "
            f"'{expected}'"
        )


class InternalError(DecodeError):
    """Raised when a registry self-consistency check fails. Signals a bug, not bad input."""
