"""
Type-indexed tables with persistent keys.

A TypeTable attaches a piece of data to each registered type and files it under the type's key.
Given only the key, the data can be looked up later without knowing which type it belongs to.
Each table owns its own key space: a key is meaningless without the table it came from.

Tables have a two-phase lifecycle. While open, types can be added. After ``freeze()`` the entries
are published as a read-only mapping and never change again, so lookups need no locking.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Generic, Mapping, TypeVar

from polyserde.exceptions import DuplicateKeyConflict
from polyserde.exceptions import RegistryError
from polyserde.exceptions import RegistryFrozenError
from polyserde.keys import KeyAllocator
from polyserde.keys import qualified_name

logger = logging.getLogger(__name__)

D = TypeVar("D")


@dataclass(frozen=True)
class TableEntry(Generic[D]):
    """A registered type together with its key, identity token and attached data."""

    key: int
    """Persistent key of the type within its table."""

    type: type
    """The concrete type."""

    token: str
    """Qualified name of the type, recorded when it was registered."""

    value: D
    """Data attached to the type by the table's factory."""


class TypeTable(Generic[D]):
    """
    Mapping from persistent type keys to per-type data.

    Args:
        name: Name of the table. Part of every derived key, so two tables with different names
            hand out unrelated keys.
        factory: Called once per registered type to produce its data.
        allocator: Allocates keys for new types.

    Examples:
        >>> from polyserde.keys import SequentialKeyAllocator
        >>> names = TypeTable("names", lambda t: t.__name__, SequentialKeyAllocator())
        >>> key = names.add(int).key
        >>> names.get(key).value
        'int'
        >>> names.get(key + 1) is None
        True
    """

    def __init__(self, name: str, factory: Callable[[type], D], allocator: KeyAllocator) -> None:
        self.name = name
        self.allocator = allocator
        self._factory = factory
        self._entries: dict[int, TableEntry[D]] = {}
        self._by_type: dict[type, TableEntry[D]] = {}
        self._view: Mapping[int, TableEntry[D]] = MappingProxyType(self._entries)
        self._frozen = False
        self._lock = threading.RLock()

    def __repr__(self) -> str:
        state = "frozen" if self._frozen else "open"
        return f"<{self.__class__.__name__} '{self.name}' ({len(self)} entries, {state})>"

    def __len__(self) -> int:
        return len(self._view)

    def __contains__(self, key: object) -> bool:
        return key in self._view

    @property
    def frozen(self) -> bool:
        """Whether the table has been published read-only."""
        return self._frozen

    def add(self, type_: type, *, key: int | None = None) -> TableEntry[D]:
        """
        Register a type, allocating its key if needed.

        Registering a type that is already present returns the existing entry unchanged.

        Args:
            type_: Concrete type to register.
            key: Optional pinned key. Bypasses the allocator.

        Returns:
            The entry for `type_`.

        Raises:
            DuplicateKeyConflict: If the (pinned or derived) key belongs to another type.
            RegistryError: If a pinned key doesn't fit the key width, or `type_` is already
                registered under a different key.
            RegistryFrozenError: If the table is frozen and `type_` is new.
        """
        existing = self._by_type.get(type_)
        if existing is not None:
            if key is not None and key != existing.key:
                raise RegistryError(
                    f"'{existing.token}' is already registered with key {existing.key} in "
                    f"table '{self.name}', cannot pin it to {key}"
                )
            return existing

        token = qualified_name(type_)
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(
                    f"Cannot register '{token}': table '{self.name}' is frozen"
                )

            if key is None:
                key = self.allocator.allocate(self.name, token, self._owner_of)
            else:
                if not self.allocator.accepts(key):
                    raise RegistryError(
                        f"Pinned key {key} for '{token}' does not fit in "
                        f"{self.allocator.bits}-bit keys"
                    )
                owner = self._owner_of(key)
                if owner is not None:
                    raise DuplicateKeyConflict(key, owner, token, self.name)

            entry = TableEntry(key=key, type=type_, token=token, value=self._factory(type_))
            self._entries[key] = entry
            self._by_type[type_] = entry

        logger.debug(f"Registered '{token}' with key {key} in table '{self.name}'")
        return entry

    def get(self, key: int) -> TableEntry[D] | None:
        """Look up the entry for `key`, or None if no type holds it. Pure read."""
        return self._view.get(key)

    def entry_for(self, type_: type) -> TableEntry[D] | None:
        """Look up the entry for a concrete type, or None if it is not registered."""
        return self._by_type.get(type_)

    def key_of(self, type_: type) -> int | None:
        """Key of a registered type, or None if it is not registered."""
        entry = self._by_type.get(type_)
        return entry.key if entry is not None else None

    def entries(self) -> list[TableEntry[D]]:
        """Snapshot of all entries, in key order."""
        return [self._view[key] for key in sorted(self._view)]

    def freeze(self) -> None:
        """
        Publish the table read-only. Idempotent.

        After freezing, new types can no longer be added and the entries never change.
        """
        with self._lock:
            if self._frozen:
                return
            self._view = MappingProxyType(dict(self._entries))
            self._frozen = True
        logger.debug(f"Froze table '{self.name}' with {len(self)} entries")

    def _owner_of(self, key: int) -> str | None:
        entry = self._entries.get(key)
        return entry.token if entry is not None else None


__all__ = ["TableEntry", "TypeTable"]
