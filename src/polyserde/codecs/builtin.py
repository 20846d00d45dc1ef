"""
Built-in codecs backed by msgspec.

These codecs are automatically registered when the module is imported. They support every type
msgspec supports: builtins, dataclasses, ``msgspec.Struct``, ``NamedTuple``, ``TypedDict`` and
attrs classes. Decoding is strict: mismatching data is rejected, never coerced.
"""

from __future__ import annotations

import dataclasses
from abc import abstractmethod
from typing import Any, TypeVar, get_type_hints

import msgspec
import msgspec.inspect
from typing_extensions import override

from polyserde.codecs.base import AbstractCodec
from polyserde.exceptions import UnsupportedTypeError
from polyserde.keys import qualified_name

T = TypeVar("T")

TRANSPARENT_ATTR = "__polyserde_transparent__"


def transparent(cls: type[T]) -> type[T]:
    """
    Mark a single-field dataclass as a newtype that encodes as its field's value.

    Examples:
        >>> from dataclasses import dataclass
        >>> @transparent
        ... @dataclass
        ... class Name:
        ...     value: str
        >>> JsonCodec().encode(Name("ada"))
        'ada'
        >>> JsonCodec().decode("ada", Name)
        Name(value='ada')
    """
    if not dataclasses.is_dataclass(cls):
        raise TypeError(f"@transparent expects a dataclass, got '{qualified_name(cls)}'")

    fields = dataclasses.fields(cls)
    if len(fields) != 1:
        raise TypeError(
            f"@transparent expects exactly one field, '{qualified_name(cls)}' has {len(fields)}"
        )

    setattr(cls, TRANSPARENT_ATTR, fields[0].name)
    return cls


def _transparent_field(type_: type) -> str | None:
    # Not inherited: a subclass of a newtype may add fields
    return type_.__dict__.get(TRANSPARENT_ATTR)


class MsgspecCodec(AbstractCodec):
    """
    Shared behavior of the msgspec codecs. Subclasses provide the concrete format.

    Validation in a dataclass ``__post_init__`` must raise ValueError or TypeError to reject a
    payload. Any other exception is treated as a bug and propagates unchanged.
    """

    # OverflowError: ints outside the range a wire format can carry
    errors = (msgspec.MsgspecError, OverflowError, TypeError, ValueError)

    @override
    def encode(self, value: Any) -> Any:
        field = _transparent_field(type(value))
        if field is not None:
            value = getattr(value, field)
        return self._encode(value)

    @override
    def decode(self, intermediate: Any, type_: type[T]) -> T:
        field = _transparent_field(type_)
        if field is None:
            return self._decode(intermediate, type_)

        inner = self._decode(intermediate, get_type_hints(type_)[field])
        return type_(**{field: inner})

    @override
    def check_type(self, type_: type) -> None:
        target: Any = type_
        field = _transparent_field(type_)
        if field is not None:
            target = get_type_hints(type_)[field]

        try:
            info = msgspec.inspect.type_info(target)
        except (TypeError, ValueError, NameError) as e:
            raise UnsupportedTypeError(
                f"{self.format} codec cannot inspect '{qualified_name(type_)}': {e}"
            ) from e

        if isinstance(info, msgspec.inspect.CustomType):
            raise UnsupportedTypeError(
                f"{self.format} codec does not support '{qualified_name(type_)}'. Use a "
                f"dataclass, msgspec.Struct, NamedTuple, TypedDict or builtin type."
            )

    @abstractmethod
    def _encode(self, value: Any) -> Any:
        """Encode a plain value (newtypes already unwrapped)."""
        ...

    @abstractmethod
    def _decode(self, intermediate: Any, type_: Any) -> Any:
        """Strictly decode `intermediate` as `type_`."""
        ...


class JsonCodec(MsgspecCodec, format="json"):
    """
    JSON-like tree codec.

    The intermediate representation is a tree of builtins (dict, list, str, int, float, bool,
    None) and the wire format is JSON text. Mapping keys are stored as strings, as on the wire, so
    a ``dict[int, str]`` field survives a trip through JSON bytes.

    Examples:
        >>> codec = JsonCodec()
        >>> codec.encode("hello world")
        'hello world'
        >>> codec.dumps((7, "hello world"))
        b'[7,"hello world"]'
    """

    @override
    def _encode(self, value: Any) -> Any:
        return msgspec.to_builtins(value, str_keys=True)

    @override
    def _decode(self, intermediate: Any, type_: Any) -> Any:
        return msgspec.convert(intermediate, type=type_, strict=True, str_keys=True)

    @override
    def dumps(self, envelope: tuple[int, Any]) -> bytes:
        return msgspec.json.encode(list(envelope))

    @override
    def loads(self, data: bytes) -> Any:
        return msgspec.json.decode(data)


class MsgpackCodec(MsgspecCodec, format="msgpack"):
    """
    MessagePack codec.

    The intermediate representation is the MessagePack encoding of the value (bytes) and the wire
    format is a MessagePack array ``[key, bin]``.

    Examples:
        >>> codec = MsgpackCodec()
        >>> codec.encode(42)
        b'*'
        >>> codec.decode(b'*', int)
        42
    """

    @override
    def _encode(self, value: Any) -> bytes:
        return msgspec.msgpack.encode(value)

    @override
    def _decode(self, intermediate: Any, type_: Any) -> Any:
        if not isinstance(intermediate, (bytes, bytearray, memoryview)):
            raise TypeError(f"Expected a bytes payload, got {type(intermediate).__name__}")
        return msgspec.msgpack.decode(intermediate, type=type_, strict=True)

    @override
    def dumps(self, envelope: tuple[int, Any]) -> bytes:
        return msgspec.msgpack.encode(list(envelope))

    @override
    def loads(self, data: bytes) -> Any:
        return msgspec.msgpack.decode(data)


__all__ = ["JsonCodec", "MsgpackCodec", "MsgspecCodec", "transparent"]
