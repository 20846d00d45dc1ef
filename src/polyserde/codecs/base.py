"""
Abstract base class for intermediate codecs with automatic registration.

A codec converts concrete values to and from an intermediate representation (the payload of an
envelope) and encodes whole envelopes for the wire. Codecs auto-register via __init_subclass__ under
their format name.
"""

from __future__ import annotations

from abc import ABC
from abc import abstractmethod
from typing import Any, ClassVar, TypeVar

T = TypeVar("T")


class AbstractCodec(ABC):
    """
    Abstract base class for intermediate formats.

    Subclasses auto-register via __init_subclass__ when they declare a format.

    Examples:
        Create a custom codec using class parameters:

        >>> class ReprCodec(AbstractCodec, format="repr-example"):
        ...     def encode(self, value):
        ...         return repr(value)
        ...
        ...     def decode(self, intermediate, type_):
        ...         return type_(intermediate)
        ...
        ...     def dumps(self, envelope):
        ...         return repr(list(envelope)).encode("utf-8")
        ...
        ...     def loads(self, data):
        ...         raise NotImplementedError

        The codec is now registered and can be retrieved:

        >>> codec = AbstractCodec.get("repr-example")
        >>> codec.encode(42)
        '42'
        >>> _ = AbstractCodec._registry.pop("repr-example")
    """

    # Class-level registry: format -> codec class
    _registry: ClassVar[dict[str, type[AbstractCodec]]] = {}

    # Defined by subclasses via __init_subclass__ or as a class variable
    format: ClassVar[str]

    # Exceptions raised by encode/decode for bad input, as opposed to bugs in the codec
    errors: ClassVar[tuple[type[Exception], ...]] = (TypeError, ValueError)

    def __init_subclass__(cls, *, format: str | None = None, **kwargs: Any) -> None:
        """
        Auto-register subclasses in the codec registry.

        Args:
            format: Format identifier (e.g., 'json', 'msgpack'). If None, checks for a class
                variable. If neither exists, this is an abstract intermediate class and won't be
                registered.
            kwargs: Additional keyword arguments.
        """
        super().__init_subclass__(**kwargs)

        resolved_format = format
        if resolved_format is None:
            resolved_format = cls.__dict__.get("format")

        if resolved_format is None:
            return

        cls.format = resolved_format
        AbstractCodec._registry[resolved_format] = cls

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}()"

    @abstractmethod
    def encode(self, value: Any) -> Any:
        """
        Convert a concrete value to the intermediate representation.

        Args:
            value: The value to encode.

        Returns:
            The intermediate representation (the envelope payload).

        Raises:
            Exception: Any codec-specific error; callers wrap it in EncodeError.
        """
        ...

    @abstractmethod
    def decode(self, intermediate: Any, type_: type[T]) -> T:
        """
        Convert an intermediate representation back to a value of `type_`.

        Must not coerce mismatching data (e.g. a number where a string is expected).

        Args:
            intermediate: The envelope payload.
            type_: The concrete type to produce.

        Returns:
            A value of exactly `type_`.

        Raises:
            Exception: Errors listed in `errors` are wrapped in PayloadInvalidError by callers.
                Anything else (e.g. a RuntimeError from user code) propagates unchanged.
        """
        ...

    @abstractmethod
    def dumps(self, envelope: tuple[int, Any]) -> bytes:
        """Encode a ``(key, payload)`` envelope for the wire."""
        ...

    @abstractmethod
    def loads(self, data: bytes) -> Any:
        """Decode wire bytes into an (unvalidated) envelope-shaped object."""
        ...

    def check_type(self, type_: type) -> None:
        """
        Verify that this codec can handle `type_`.

        The default implementation accepts every type.

        Raises:
            UnsupportedTypeError: If the codec cannot encode or decode `type_`.
        """

    @classmethod
    def get(cls, format: str) -> AbstractCodec:
        """
        Look up and instantiate the codec registered for `format`.

        Args:
            format: The format identifier (e.g., 'json').

        Returns:
            A new codec instance.

        Raises:
            ValueError: If no codec is registered for the format.

        Examples:
            >>> AbstractCodec.get("json")
            JsonCodec()
        """
        if format in cls._registry:
            return cls._registry[format]()

        available = ", ".join(sorted(cls._registry)) or "none"
        raise ValueError(
            f"No codec registered for format '{format}'. Available formats: {available}"
        )

    @classmethod
    def formats(cls) -> set[str]:
        """All registered codec formats."""
        return set(cls._registry)


__all__ = ["AbstractCodec"]
