"""
Envelope protocol: the ``(key, payload)`` pair that crosses the wire.

``serialize`` wraps a value known only through its interface into an envelope holding its concrete
type's key and its codec encoding. ``deserialize`` reads the key, looks up the reconstruction
closure and rebuilds a value of the right concrete type. Every step works on already validated
in-memory data: an unknown key is an error, never a guess.

Example:
    >>> from dataclasses import dataclass
    >>> from polyserde.registry import CapabilityKind
    >>>
    >>> pets = CapabilityKind("Pet")
    >>> @pets.register(key=7)
    ... @dataclass
    ... class Dog:
    ...     name: str
    >>>
    >>> serialize(Dog("Rex"), pets)
    Envelope(key=7, payload={'name': 'Rex'})
    >>> deserialize([7, {"name": "Rex"}], pets)
    Dog(name='Rex')
    >>> dumps(Dog("Rex"), pets)
    b'[7,{"name":"Rex"}]'
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, NamedTuple

from polyserde.exceptions import DecodeError
from polyserde.exceptions import EncodeError
from polyserde.exceptions import EnvelopeError
from polyserde.exceptions import InternalError
from polyserde.exceptions import PayloadInvalidError
from polyserde.exceptions import UnexpectedTypeError
from polyserde.exceptions import UnknownKeyError
from polyserde.exceptions import UnregisteredTypeError
from polyserde.keys import qualified_name
from polyserde.registry import CapabilityKind
from polyserde.registry import get_default_registry


class _EnvelopeFields(NamedTuple):
    key: int
    """Key of the value's concrete type within its capability."""

    payload: Any
    """Codec encoding of the value."""


class Envelope(_EnvelopeFields):
    """
    A type key paired with the intermediate encoding of a value.

    Envelopes compare and unpack like plain ``(key, payload)`` pairs. An envelope made by
    ``serialize`` also remembers the name of the capability that produced it, so handing it to
    another capability is rejected instead of decoding as an unrelated type that happens to share
    the key. The capability is not part of the wire format.

    Examples:
        >>> envelope = Envelope(3, "hi", capability="Greeting")
        >>> envelope
        Envelope(key=3, payload='hi')
        >>> envelope == (3, "hi")
        True
        >>> envelope.capability
        'Greeting'
    """

    capability: str | None = None
    """Name of the capability that produced the envelope, if known."""

    def __new__(cls, key: int, payload: Any, capability: str | None = None) -> Envelope:
        self = super().__new__(cls, key, payload)
        self.capability = capability
        return self


# region API


def serialize(value: Any, kind: CapabilityKind | str | type) -> Envelope:
    """
    Wrap `value` in an envelope.

    The key is looked up from the value's exact concrete type; subclasses of a registered type
    must be registered themselves.

    Args:
        value: Value to serialize.
        kind: Capability kind, capability name or interface class (resolved in the default
            registry).

    Returns:
        The ``(key, payload)`` envelope, tagged with the capability's name.

    Raises:
        UnregisteredTypeError: If the value's type is not registered in the capability.
        EncodeError: If the codec cannot encode the value.
    """
    kind = _resolve(kind)
    entry = kind.entry_for(type(value))
    if entry is None:
        raise UnregisteredTypeError(qualified_name(type(value)), kind.name)

    try:
        payload = kind.codec.encode(value)
    except kind.codec.errors as e:
        raise EncodeError(
            f"{kind.codec.format} codec failed to encode '{entry.token}' "
            f"(capability '{kind.name}'): {e}"
        ) from e

    envelope = Envelope(entry.key, payload, kind.name)
    kind.hook.after_serialize(kind=kind, value=value, envelope=envelope)
    return envelope


def deserialize(
    envelope: Any, kind: CapabilityKind | str | type, *, expected: type | None = None
) -> Any:
    """
    Rebuild a value of the right concrete type from an envelope.

    Args:
        envelope: An Envelope or any ``[key, payload]`` sequence (e.g. freshly decoded JSON).
        kind: Capability kind, capability name or interface class (resolved in the default
            registry).
        expected: Optional class the result must be an instance of. Checked before the payload
            is decoded.

    Returns:
        A new value of the concrete type registered under the envelope's key.

    Raises:
        EnvelopeError: If `envelope` is not a ``[key, payload]`` pair with an unsigned integer key.
        UnknownKeyError: If the key is not registered in the capability, or `envelope` is an
            Envelope produced by another capability.
        UnexpectedTypeError: If the key's type is not a subclass of `expected`.
        PayloadInvalidError: If the codec rejects the payload for the registered type.
        InternalError: If the registry's self-consistency checks fail.
    """
    kind = _resolve(kind)
    try:
        return _deserialize(envelope, kind, expected)
    except DecodeError as e:
        kind.hook.on_decode_error(kind=kind, envelope=envelope, error=e)
        raise


def dumps(value: Any, kind: CapabilityKind | str | type) -> bytes:
    """
    Serialize `value` and encode the envelope with the capability's wire format.

    Raises:
        UnregisteredTypeError: If the value's type is not registered in the capability.
        EncodeError: If the codec cannot encode the value or the envelope.
    """
    kind = _resolve(kind)
    envelope = serialize(value, kind)
    try:
        return kind.codec.dumps(envelope)
    except kind.codec.errors as e:
        raise EncodeError(f"{kind.codec.format} codec failed to encode envelope: {e}") from e


def loads(
    data: bytes, kind: CapabilityKind | str | type, *, expected: type | None = None
) -> Any:
    """
    Decode wire bytes produced by ``dumps`` and rebuild the value.

    Wire bytes carry no capability name: the caller vouches that `data` was produced by `kind`.

    Raises:
        EnvelopeError: If `data` is not a valid wire envelope.
        UnknownKeyError: If the key is not registered in the capability.
        UnexpectedTypeError: If the key's type is not a subclass of `expected`.
        PayloadInvalidError: If the codec rejects the payload for the registered type.
        InternalError: If the registry's self-consistency checks fail.
    """
    kind = _resolve(kind)
    try:
        try:
            raw = kind.codec.loads(data)
        except kind.codec.errors as e:
            raise EnvelopeError(f"Malformed {kind.codec.format} envelope: {e}") from e
        return _deserialize(raw, kind, expected)
    except DecodeError as e:
        kind.hook.on_decode_error(kind=kind, envelope=data, error=e)
        raise


# region Helpers


def _resolve(kind: CapabilityKind | str | type) -> CapabilityKind:
    if isinstance(kind, CapabilityKind):
        return kind
    return get_default_registry().get_kind(kind)


def _validate_shape(envelope: Any) -> tuple[int, Any]:
    """Check that `envelope` is a ``[key, payload]`` pair with an unsigned integer key."""
    if isinstance(envelope, (str, bytes, bytearray)) or not isinstance(envelope, Sequence):
        raise EnvelopeError(
            f"Expected a [key, payload] sequence, got {type(envelope).__name__}"
        )
    if len(envelope) == 0:
        raise EnvelopeError("Envelope is missing its type key")
    if len(envelope) == 1:
        raise EnvelopeError("Envelope is missing its payload")
    if len(envelope) > 2:
        raise EnvelopeError(f"Envelope has {len(envelope)} elements, expected 2")

    key, payload = envelope
    if isinstance(key, bool) or not isinstance(key, int):
        raise EnvelopeError(f"Envelope key must be an unsigned integer, got {type(key).__name__}")
    if key < 0:
        raise EnvelopeError(f"Envelope key must be an unsigned integer, got {key}")
    return key, payload


def _deserialize(envelope: Any, kind: CapabilityKind, expected: type | None = None) -> Any:
    key, payload = _validate_shape(envelope)

    # Keys are only meaningful in the capability that allocated them
    origin = envelope.capability if isinstance(envelope, Envelope) else None
    if origin is not None and origin != kind.name:
        raise UnknownKeyError(key, kind.name, origin)

    entry = kind.lookup(key)
    if entry is None:
        raise UnknownKeyError(key, kind.name)

    if entry.key != key or entry.token != qualified_name(entry.type):
        raise InternalError(
            f"Entry under key {key} in capability '{kind.name}' is inconsistent "
            f"(holds key {entry.key} for '{entry.token}', type is '{qualified_name(entry.type)}')"
        )
    if kind.entry_for(entry.type) is not entry:
        raise InternalError(
            f"Entry under key {key} for '{entry.token}' does not belong to capability "
            f"'{kind.name}'"
        )

    if expected is not None and not issubclass(entry.type, expected):
        raise UnexpectedTypeError(key, kind.name, entry.token, qualified_name(expected))

    try:
        value = entry.value(payload)
    except kind.codec.errors as e:
        raise PayloadInvalidError(key, kind.name, entry.token, e) from e

    if type(value) is not entry.type or not isinstance(value, kind.interface):
        raise InternalError(
            f"Reconstruction of '{entry.token}' in capability '{kind.name}' produced "
            f"'{qualified_name(type(value))}'"
        )

    kind.hook.after_deserialize(
        kind=kind, envelope=Envelope(key, payload, kind.name), value=value
    )
    return value


__all__ = ["Envelope", "deserialize", "dumps", "loads", "serialize"]
