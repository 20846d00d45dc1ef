"""
Declarative registration for interface hierarchies.

An interface class opts in by subclassing Polymorphic with a ``capability`` name. Every concrete
subclass is then registered in that capability when the class is created, so implementations
never need a separate registration call.

Example:
    >>> from dataclasses import dataclass
    >>> from polyserde.registry import CapabilityRegistry
    >>>
    >>> class Animal(Polymorphic, capability="Animal", registry=CapabilityRegistry()):
    ...     def speak(self) -> str:
    ...         raise NotImplementedError
    >>>
    >>> @dataclass
    ... class Cat(Animal, key=1):
    ...     name: str
    ...
    ...     def speak(self) -> str:
    ...         return f"{self.name} says meow"
    >>>
    >>> Cat("Tom").to_envelope()
    Envelope(key=1, payload={'name': 'Tom'})
    >>> Animal.from_envelope([1, {"name": "Tom"}]).speak()
    'Tom says meow'
"""

from __future__ import annotations

from typing import Any, ClassVar, TypeVar

from polyserde.envelope import Envelope
from polyserde.envelope import deserialize
from polyserde.envelope import dumps
from polyserde.envelope import loads
from polyserde.envelope import serialize
from polyserde.keys import qualified_name
from polyserde.registry import CapabilityKind
from polyserde.registry import CapabilityRegistry
from polyserde.registry import get_default_registry

P = TypeVar("P", bound="Polymorphic")


def _has_abstract_methods(cls: type) -> bool:
    # ABCMeta sets __abstractmethods__ only after __init_subclass__ has run
    return any(
        getattr(getattr(cls, name, None), "__isabstractmethod__", False) for name in dir(cls)
    )


class Polymorphic:
    """
    Base class for interfaces whose implementations round-trip through envelopes.

    Class parameters:
        capability: Declares the class as an interface root with its own capability kind.
        codec: Codec format of a new capability (interface roots only).
        registry: Registry to declare the capability in. Defaults to the default registry.
        key: Pinned key for a concrete implementation.
        register: Set to False to skip registering an intermediate class.

    Subclasses with abstract methods are not registered. Auto-registration keeps the class object
    created by the ``class`` statement, so decorators that replace the class (such as
    ``@dataclass(slots=True)``) are not supported; register those explicitly with
    ``CapabilityKind.register``.
    """

    __capability__: ClassVar[CapabilityKind]

    def __init_subclass__(
        cls,
        *,
        capability: str | None = None,
        codec: str | None = None,
        registry: CapabilityRegistry | None = None,
        key: int | None = None,
        register: bool = True,
        **kwargs: Any,
    ) -> None:
        super().__init_subclass__(**kwargs)

        if capability is not None:
            registry = registry or get_default_registry()
            cls.__capability__ = registry.kind(capability, interface=cls, codec=codec)
            return

        if getattr(cls, "__capability__", None) is None:
            raise TypeError(
                f"'{qualified_name(cls)}' must declare capability=... or subclass an interface "
                f"that does"
            )

        if not register or _has_abstract_methods(cls):
            return

        cls.__capability__.register(cls, key=key)

    @property
    def type_key(self) -> int | None:
        """Key of this value's concrete type in its capability."""
        return self.__capability__.key_of(type(self))

    def to_envelope(self) -> Envelope:
        """Wrap this value in an envelope of its interface's capability."""
        return serialize(self, self.__capability__)

    def dumps(self) -> bytes:
        """Serialize this value straight to wire bytes."""
        return dumps(self, self.__capability__)

    @classmethod
    def from_envelope(cls: type[P], envelope: Any) -> P:
        """
        Rebuild a value from an envelope of this interface's capability.

        Raises:
            UnexpectedTypeError: If the envelope holds a type that is not a subclass of `cls`.
            DecodeError: If the envelope cannot be decoded.
        """
        return deserialize(envelope, cls.__capability__, expected=cls)

    @classmethod
    def loads(cls: type[P], data: bytes) -> P:
        """Rebuild a value from wire bytes produced by ``dumps``."""
        return loads(data, cls.__capability__, expected=cls)


__all__ = ["Polymorphic"]
