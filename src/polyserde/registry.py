"""
Capability registry: the process-wide mapping from type keys to reconstruction procedures.

A capability kind names an independent key space, usually "things that implement interface U".
Every concrete type that opts in gets a persistent key in that space, and the key maps back to a
closure that decodes a payload into exactly that type. Given only ``(key, payload)``, a value of the
right concrete type can be rebuilt without the reader naming the type.

Lifecycle: types are registered during a single-threaded bootstrap phase, then ``freeze()``
publishes every table read-only. Lookups are pure reads and never lock.

Example:
    >>> from dataclasses import dataclass
    >>> registry = CapabilityRegistry()
    >>> shapes = registry.kind("Shape")
    >>>
    >>> @shapes.register(key=1)
    ... @dataclass
    ... class Circle:
    ...     radius: float
    >>>
    >>> shapes.key_of(Circle)
    1
    >>> shapes.lookup(1).type is Circle
    True
    >>> shapes.lookup(2) is None
    True
"""

from __future__ import annotations

import importlib.metadata
import logging
import threading
from typing import TYPE_CHECKING, Any, Callable, TypeVar, overload

from pluggy import PluginManager

from polyserde.codecs import AbstractCodec
from polyserde.exceptions import InterfaceMismatchError
from polyserde.exceptions import RegistryError
from polyserde.exceptions import RegistryFrozenError
from polyserde.exceptions import UnknownCapabilityError
from polyserde.keys import KeyAllocator
from polyserde.keys import create_allocator
from polyserde.keys import qualified_name
from polyserde.plugins.manager import get_plugin_manager
from polyserde.settings import get_global_settings
from polyserde.table import TableEntry
from polyserde.table import TypeTable

if TYPE_CHECKING:
    from pluggy import HookRelay

    from polyserde.envelope import Envelope

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=type)

_TYPES_ENTRY_POINT = "polyserde.types"  # entry-point group of packages that register types

Reconstructor = Callable[[Any], Any]
"""Decodes an envelope payload into a value of one concrete type."""

ReconstructionEntry = TableEntry[Reconstructor]
"""Table entry whose value is the reconstruction closure for its type."""


class CapabilityKind:
    """
    An independent key space of concrete types sharing an interface.

    Args:
        name: Name of the capability. Part of every hash-derived key, so renaming a capability
            changes its keys.
        interface: Class every registered type must subclass. Defaults to ``object``.
        codec: Codec instance or format name used for payloads. Defaults to the configured
            ``default_codec``.
        allocator: Key allocator. Defaults to the one described by the global settings.
        hooks: Plugin manager whose hooks are called. Defaults to the global plugin manager.

    Examples:
        >>> anything = CapabilityKind("Anything")
        >>> _ = anything.register(str)
        >>> envelope = anything.serialize("hello world")
        >>> anything.deserialize(envelope)
        'hello world'
    """

    def __init__(
        self,
        name: str,
        interface: type = object,
        codec: AbstractCodec | str | None = None,
        allocator: KeyAllocator | None = None,
        hooks: PluginManager | None = None,
    ) -> None:
        settings = get_global_settings()
        self.name = name
        self.interface = interface
        if isinstance(codec, AbstractCodec):
            self.codec = codec
        else:
            self.codec = AbstractCodec.get(codec or settings.default_codec)
        self._table: TypeTable[Reconstructor] = TypeTable(
            name, self._make_reconstructor, allocator or create_allocator(settings)
        )
        self._hooks = hooks

    def __repr__(self) -> str:
        return (
            f"<CapabilityKind '{self.name}' interface={qualified_name(self.interface)} "
            f"codec={self.codec.format} types={len(self)}>"
        )

    def __len__(self) -> int:
        return len(self._table)

    def __contains__(self, type_: object) -> bool:
        return isinstance(type_, type) and self._table.entry_for(type_) is not None

    @property
    def hook(self) -> HookRelay:
        """Hook relay of the plugin manager used by this capability."""
        return (self._hooks or get_plugin_manager()).hook

    @property
    def frozen(self) -> bool:
        """Whether this capability's table has been frozen."""
        return self._table.frozen

    @property
    def table(self) -> TypeTable[Reconstructor]:
        """The underlying key -> entry table."""
        return self._table

    # region Registration

    @overload
    def register(self, type_: T, *, key: int | None = None) -> T: ...

    @overload
    def register(self, type_: None = None, *, key: int | None = None) -> Callable[[T], T]: ...

    def register(self, type_: T | None = None, *, key: int | None = None) -> T | Callable[[T], T]:
        """
        Register a concrete type in this capability. Idempotent.

        Can be called directly or used as a class decorator, with or without arguments.

        Args:
            type_: Concrete type implementing the capability's interface.
            key: Optional pinned key. Otherwise the allocator picks one.

        Returns:
            The registered type (or a decorator if `type_` is omitted).

        Raises:
            InterfaceMismatchError: If `type_` doesn't implement the interface.
            DuplicateKeyConflict: If the key is already held by another type.
            RegistryFrozenError: If the capability is frozen and `type_` is new.

        Examples:
            >>> numbers = CapabilityKind("Numbers")
            >>> _ = numbers.register(int, key=3)
            >>> numbers.register(int) is int
            True
            >>> numbers.key_of(int)
            3
        """
        if type_ is None:

            def decorator(cls: T) -> T:
                return self.register(cls, key=key)

            return decorator

        self._check_interface(type_)
        is_new = self._table.entry_for(type_) is None
        entry = self._table.add(type_, key=key)
        if is_new:
            self.hook.after_register(kind=self, entry=entry)
        return type_

    def freeze(self) -> None:
        """
        Validate every registered type against the codec and publish the table read-only.

        Raises:
            UnsupportedTypeError: If the codec cannot handle one of the registered types.
        """
        if self._table.frozen:
            return

        for entry in self._table.entries():
            self.codec.check_type(entry.type)

        self._table.freeze()
        self.hook.after_freeze(kind=self)

    # region Lookup

    def lookup(self, key: int) -> ReconstructionEntry | None:
        """Entry registered under `key`, or None. Pure read."""
        return self._table.get(key)

    def entry_for(self, type_: type) -> ReconstructionEntry | None:
        """Entry of a concrete type, or None if it is not registered."""
        return self._table.entry_for(type_)

    def key_of(self, type_: type) -> int | None:
        """Key of a registered concrete type, or None."""
        return self._table.key_of(type_)

    def type_key(self, value: Any) -> int | None:
        """Key of `value`'s concrete type, or None if the type is not registered."""
        return self._table.key_of(type(value))

    def is_registered(self, type_: type) -> bool:
        """Whether `type_` is registered in this capability."""
        return self._table.entry_for(type_) is not None

    # region Envelopes

    def serialize(self, value: Any) -> Envelope:
        """Wrap `value` in an envelope. See polyserde.envelope.serialize."""
        from polyserde.envelope import serialize

        return serialize(value, self)

    def deserialize(self, envelope: Any) -> Any:
        """Rebuild a value from an envelope. See polyserde.envelope.deserialize."""
        from polyserde.envelope import deserialize

        return deserialize(envelope, self)

    def dumps(self, value: Any) -> bytes:
        """Serialize `value` straight to wire bytes. See polyserde.envelope.dumps."""
        from polyserde.envelope import dumps

        return dumps(value, self)

    def loads(self, data: bytes) -> Any:
        """Rebuild a value from wire bytes. See polyserde.envelope.loads."""
        from polyserde.envelope import loads

        return loads(data, self)

    # region Helpers

    def _make_reconstructor(self, type_: type) -> Reconstructor:
        codec = self.codec

        def reconstruct(payload: Any) -> Any:
            return codec.decode(payload, type_)

        reconstruct.__qualname__ = f"reconstruct[{qualified_name(type_)}]"
        return reconstruct

    def _check_interface(self, type_: Any) -> None:
        if not isinstance(type_, type):
            raise InterfaceMismatchError(
                f"Capability '{self.name}' registers classes, got {type_!r}"
            )

        try:
            implements = issubclass(type_, self.interface)
        except TypeError as e:
            raise InterfaceMismatchError(
                f"Cannot check '{qualified_name(type_)}' against interface "
                f"'{qualified_name(self.interface)}' (protocols must be @runtime_checkable): {e}"
            ) from e

        if not implements:
            raise InterfaceMismatchError(
                f"'{qualified_name(type_)}' does not implement "
                f"'{qualified_name(self.interface)}' required by capability '{self.name}'"
            )


class CapabilityRegistry:
    """
    Process-wide collection of capability kinds.

    Args:
        hooks: Plugin manager handed to every capability created by this registry. Defaults to the
            global plugin manager.

    Examples:
        >>> registry = CapabilityRegistry()
        >>> greetings = registry.kind("Greeting")
        >>> _ = registry.register(str, "Greeting")
        >>> registry.get_kind("Greeting") is greetings
        True
        >>> registry.freeze()
        >>> registry.kind("Other")
        Traceback (most recent call last):
        ...
        polyserde.exceptions.RegistryFrozenError: Cannot declare capability 'Other': ...
    """

    def __init__(self, hooks: PluginManager | None = None) -> None:
        self._kinds: dict[str, CapabilityKind] = {}
        self._hooks = hooks
        self._frozen = False
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "open"
        return f"<CapabilityRegistry kinds={sorted(self._kinds)} ({state})>"

    def __contains__(self, name: object) -> bool:
        return name in self._kinds

    def __len__(self) -> int:
        return len(self._kinds)

    @property
    def frozen(self) -> bool:
        """Whether freeze() has been called."""
        return self._frozen

    def kind(
        self,
        name: str,
        *,
        interface: type | None = None,
        codec: AbstractCodec | str | None = None,
        allocator: KeyAllocator | None = None,
    ) -> CapabilityKind:
        """
        Get or declare a capability kind.

        Args:
            name: Name of the capability.
            interface: Class every registered type must subclass. Defaults to ``object`` for a
                new kind. For an existing kind, a different interface is rejected.
            codec: Codec instance or format name. Only used when the kind is created, but a
                conflicting format for an existing kind is rejected.
            allocator: Key allocator. Only used when the kind is created.

        Returns:
            The capability kind.

        Raises:
            RegistryError: If `name` was declared with a different interface or codec.
            RegistryFrozenError: If the registry is frozen and `name` is new.
        """
        with self._lock:
            existing = self._kinds.get(name)
            if existing is not None:
                if interface is not None and existing.interface is not interface:
                    raise RegistryError(
                        f"Capability '{name}' is already declared for interface "
                        f"'{qualified_name(existing.interface)}', not "
                        f"'{qualified_name(interface)}'"
                    )
                fmt = codec.format if isinstance(codec, AbstractCodec) else codec
                if fmt is not None and fmt != existing.codec.format:
                    raise RegistryError(
                        f"Capability '{name}' already uses codec '{existing.codec.format}', "
                        f"not '{fmt}'"
                    )
                return existing

            if self._frozen:
                raise RegistryFrozenError(
                    f"Cannot declare capability '{name}': registry is frozen"
                )

            kind = CapabilityKind(
                name,
                interface=interface or object,
                codec=codec,
                allocator=allocator,
                hooks=self._hooks,
            )
            self._kinds[name] = kind

        logger.debug(f"Declared capability '{name}' ({kind.codec.format} codec)")
        return kind

    def get_kind(self, ref: CapabilityKind | str | type) -> CapabilityKind:
        """
        Resolve a capability kind from the kind itself, its name or its interface class.

        Raises:
            UnknownCapabilityError: If nothing matches.
            RegistryError: If an interface class is shared by several capability kinds.
        """
        if isinstance(ref, CapabilityKind):
            return ref

        if isinstance(ref, str):
            kind = self._kinds.get(ref)
            if kind is None:
                known = ", ".join(sorted(self._kinds)) or "none"
                raise UnknownCapabilityError(
                    f"No capability named '{ref}'. Declared capabilities: {known}"
                )
            return kind

        matches = [kind for kind in self._kinds.values() if kind.interface is ref]
        if not matches:
            raise UnknownCapabilityError(f"No capability declared for interface {ref!r}")
        if len(matches) > 1:
            names = ", ".join(sorted(kind.name for kind in matches))
            raise RegistryError(f"Interface {ref!r} is shared by several capabilities: {names}")
        return matches[0]

    def register(
        self, type_: T, kind: CapabilityKind | str | type, *, key: int | None = None
    ) -> T:
        """Register `type_` in the given capability. See CapabilityKind.register."""
        return self.get_kind(kind).register(type_, key=key)

    def lookup(self, kind: CapabilityKind | str | type, key: int) -> ReconstructionEntry | None:
        """Entry registered under `key` in the given capability, or None. Pure read."""
        return self.get_kind(kind).lookup(key)

    def freeze(self) -> None:
        """
        End the registration phase: freeze every capability and refuse new ones.

        Raises:
            UnsupportedTypeError: If a codec cannot handle one of the registered types.
        """
        with self._lock:
            for kind in self._kinds.values():
                kind.freeze()
            self._frozen = True
        logger.debug(f"Froze capability registry ({len(self._kinds)} capabilities)")

    def load_plugins(self, *names: str) -> None:
        """
        Import type registrations from the ``polyserde.types`` entry points.

        An entry point may name a module (registration happens on import) or a callable, which is
        called with this registry.

        Args:
            *names: Entry point names to load. If empty, loads all of them.

        Raises:
            Exception: Whatever a plugin raises. Registration errors abort startup.

        Examples:
            >>> CapabilityRegistry().load_plugins("not-installed")  # doctest: +SKIP
        """
        for ep in importlib.metadata.entry_points(group=_TYPES_ENTRY_POINT):
            if names and ep.name not in names:
                continue
            loaded = ep.load()
            if callable(loaded) and not isinstance(loaded, type):
                loaded(self)
            logger.debug(f"Loaded polyserde types from entry point '{ep.name}'")


default_registry = CapabilityRegistry()


def get_default_registry() -> CapabilityRegistry:
    """The process-wide registry used by the module-level helpers."""
    return default_registry


# region API


def capability(
    name: str,
    *,
    interface: type | None = None,
    codec: AbstractCodec | str | None = None,
) -> CapabilityKind:
    """Get or declare a capability kind in the default registry."""
    return get_default_registry().kind(name, interface=interface, codec=codec)


@overload
def register(
    type_: T, /, *, kind: CapabilityKind | str | type, key: int | None = None
) -> T: ...


@overload
def register(
    type_: None = None, /, *, kind: CapabilityKind | str | type, key: int | None = None
) -> Callable[[T], T]: ...


def register(
    type_: T | None = None, /, *, kind: CapabilityKind | str | type, key: int | None = None
) -> T | Callable[[T], T]:
    """
    Register a concrete type in a capability of the default registry.

    Usable as a decorator: ``@register(kind="Shape")``.
    """
    return get_default_registry().get_kind(kind).register(type_, key=key)


def lookup(kind: CapabilityKind | str | type, key: int) -> ReconstructionEntry | None:
    """Entry registered under `key` in a capability of the default registry, or None."""
    return get_default_registry().lookup(kind, key)


def freeze() -> None:
    """Freeze the default registry. Call once bootstrap registration is complete."""
    get_default_registry().freeze()


__all__ = [
    "CapabilityKind",
    "CapabilityRegistry",
    "ReconstructionEntry",
    "Reconstructor",
    "capability",
    "default_registry",
    "freeze",
    "get_default_registry",
    "lookup",
    "register",
]
