"""Hook specifications for polyserde registry and envelope events."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from polyserde.plugins.hooks.markers import hook_spec

if TYPE_CHECKING:
    from polyserde.envelope import Envelope
    from polyserde.exceptions import DecodeError
    from polyserde.registry import CapabilityKind
    from polyserde.registry import ReconstructionEntry


class RegistrySpecs:
    """Hook specifications for registration lifecycle events."""

    @hook_spec
    def after_register(self, kind: CapabilityKind, entry: ReconstructionEntry) -> None:
        """
        Called after a new concrete type has been registered.

        Not called when an already registered type is registered again.

        Args:
            kind: Capability kind the type was registered in.
            entry: The new table entry.
        """

    @hook_spec
    def after_freeze(self, kind: CapabilityKind) -> None:
        """
        Called after a capability kind has been frozen.

        Args:
            kind: The frozen capability kind.
        """


class EnvelopeSpecs:
    """Hook specifications for serialize/deserialize events."""

    @hook_spec
    def after_serialize(self, kind: CapabilityKind, value: Any, envelope: Envelope) -> None:
        """
        Called after a value has been wrapped in an envelope.

        Args:
            kind: Capability kind used for serialization.
            value: The serialized value.
            envelope: The produced envelope.
        """

    @hook_spec
    def after_deserialize(self, kind: CapabilityKind, envelope: Envelope, value: Any) -> None:
        """
        Called after an envelope has been turned back into a value.

        Args:
            kind: Capability kind used for deserialization.
            envelope: The decoded envelope.
            value: The reconstructed value.
        """

    @hook_spec
    def on_decode_error(self, kind: CapabilityKind, envelope: Any, error: DecodeError) -> None:
        """
        Called when deserialization fails, right before the error is raised to the caller.

        Args:
            kind: Capability kind used for deserialization.
            envelope: The raw envelope that failed to decode.
            error: The error about to be raised.
        """
