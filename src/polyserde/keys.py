"""
Type key allocation.

A type key is a small unsigned integer that identifies a concrete type inside one capability
kind. Keys must survive a serialize -> persist -> restart -> deserialize cycle of the same program,
so they are never derived from object ids or from the salted builtin ``hash()``.

Two policies are provided:

- HashKeyAllocator derives the key from a SHA-256 digest of the capability and type names. The
  key only depends on the names, not on registration order.
- SequentialKeyAllocator hands out keys in registration order. Keys are only stable if every run
  registers the same types in the same order.

Keys are not portable across builds that rename or move types. Pin keys explicitly with
``register(type_, key=...)`` when that matters.
"""

from __future__ import annotations

import hashlib
from abc import ABC
from abc import abstractmethod
from typing import Callable

from typing_extensions import override

from polyserde.exceptions import DuplicateKeyConflict
from polyserde.exceptions import KeyspaceExhaustedError
from polyserde.settings import MAX_KEY_BITS
from polyserde.settings import PolyserdeSettings

OwnerLookup = Callable[[int], "str | None"]
"""Returns the type token currently holding a key, or None if the key is free."""


def qualified_name(type_: type) -> str:
    """
    Fully qualified name of a type, used as its identity token.

    Examples:
        >>> qualified_name(int)
        'builtins.int'
        >>> from collections import OrderedDict
        >>> qualified_name(OrderedDict)
        'collections.OrderedDict'
    """
    return f"{type_.__module__}.{type_.__qualname__}"


def key_mask(bits: int) -> int:
    """Largest key representable with `bits` bits."""
    if not 1 <= bits <= MAX_KEY_BITS:
        raise ValueError(f"Key width must be between 1 and {MAX_KEY_BITS} bits, got {bits}")
    return (1 << bits) - 1


def derive_key(kind_name: str, type_name: str, bits: int = MAX_KEY_BITS) -> int:
    """
    Derive a persistent type key from a capability name and a type name.

    The first 8 bytes of the SHA-256 digest are read big-endian and reduced to `bits` bits.

    Args:
        kind_name: Name of the capability kind that owns the key space.
        type_name: Qualified name of the concrete type.
        bits: Width of the key in bits.

    Returns:
        An unsigned integer in ``[0, 2**bits)``.

    Examples:
        >>> derive_key("Shape", "shapes.Circle") == derive_key("Shape", "shapes.Circle")
        True
        >>> derive_key("Shape", "shapes.Circle", bits=8) < 256
        True
    """
    mask = key_mask(bits)
    digest = hashlib.sha256(f"{kind_name}\0{type_name}".encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") & mask


class KeyAllocator(ABC):
    """
    Produces the type key for a (capability kind, concrete type) pair.

    Allocators are only asked about types that are not registered yet; idempotency is handled by
    the table that owns the allocator.
    """

    def __init__(self, bits: int = MAX_KEY_BITS) -> None:
        self.bits = bits
        self.mask = key_mask(bits)

    @property
    def capacity(self) -> int:
        """Number of distinct keys in the key space."""
        return self.mask + 1

    def accepts(self, key: int) -> bool:
        """Whether `key` fits in this allocator's key space."""
        return 0 <= key <= self.mask

    @abstractmethod
    def allocate(self, kind_name: str, type_name: str, owner_of: OwnerLookup) -> int:
        """
        Allocate a key for a type that is not registered yet.

        Args:
            kind_name: Name of the capability kind.
            type_name: Qualified name of the type being registered.
            owner_of: Callable returning the type token holding a key, or None if free.

        Returns:
            A key that `owner_of` reports as free.

        Raises:
            DuplicateKeyConflict: If the policy refuses to resolve a collision.
            KeyspaceExhaustedError: If no free key is left.
        """
        ...


class HashKeyAllocator(KeyAllocator):
    """
    Derives keys from a hash of the capability and type names.

    Args:
        bits: Width of the keys in bits.
        collision: ``reject`` raises on a collision, ``probe`` takes the next free key.

    Examples:
        >>> allocator = HashKeyAllocator(bits=16)
        >>> key = allocator.allocate("Shape", "shapes.Circle", lambda k: None)
        >>> key == derive_key("Shape", "shapes.Circle", bits=16)
        True
    """

    def __init__(self, bits: int = MAX_KEY_BITS, collision: str = "reject") -> None:
        super().__init__(bits)
        if collision not in ("reject", "probe"):
            raise ValueError(f"Unknown collision policy '{collision}'")
        self.collision = collision

    @override
    def allocate(self, kind_name: str, type_name: str, owner_of: OwnerLookup) -> int:
        key = derive_key(kind_name, type_name, self.bits)
        owner = owner_of(key)
        if owner is None:
            return key

        if self.collision == "reject":
            raise DuplicateKeyConflict(key, owner, type_name, kind_name)

        # Linear probing, wrapping around the key space
        probe = key
        for _ in range(self.mask):
            probe = (probe + 1) & self.mask
            if owner_of(probe) is None:
                return probe

        raise KeyspaceExhaustedError(
            f"All {self.capacity} keys of capability '{kind_name}' are taken, "
            f"cannot register '{type_name}'"
        )


class SequentialKeyAllocator(KeyAllocator):
    """
    Hands out keys in registration order, skipping keys that are already taken (e.g. pinned).

    Args:
        bits: Width of the keys in bits.
        start: First key to hand out.

    Examples:
        >>> allocator = SequentialKeyAllocator(start=1)
        >>> taken = {1: "a.A"}
        >>> allocator.allocate("Shape", "b.B", taken.get)
        2
    """

    def __init__(self, bits: int = MAX_KEY_BITS, start: int = 0) -> None:
        super().__init__(bits)
        if not self.accepts(start):
            raise ValueError(f"Start key {start} does not fit in {bits} bits")
        self._next = start

    @override
    def allocate(self, kind_name: str, type_name: str, owner_of: OwnerLookup) -> int:
        while self._next <= self.mask:
            key = self._next
            self._next += 1
            if owner_of(key) is None:
                return key

        raise KeyspaceExhaustedError(
            f"All {self.capacity} keys of capability '{kind_name}' are taken, "
            f"cannot register '{type_name}'"
        )


def create_allocator(settings: PolyserdeSettings) -> KeyAllocator:
    """
    Build the allocator described by `settings`.

    Examples:
        >>> from polyserde.settings import PolyserdeSettings
        >>> create_allocator(PolyserdeSettings(allocation="sequential")).bits
        64
    """
    if settings.allocation == "sequential":
        return SequentialKeyAllocator(bits=settings.key_bits)
    return HashKeyAllocator(bits=settings.key_bits, collision=settings.collision)


__all__ = [
    "HashKeyAllocator",
    "KeyAllocator",
    "SequentialKeyAllocator",
    "create_allocator",
    "derive_key",
    "qualified_name",
]
