"""Unit tests for TypeTable."""

import sys
import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from polyserde.exceptions import DuplicateKeyConflict
from polyserde.exceptions import KeyspaceExhaustedError
from polyserde.exceptions import RegistryError
from polyserde.exceptions import RegistryFrozenError
from polyserde.keys import HashKeyAllocator
from polyserde.keys import SequentialKeyAllocator
from polyserde.keys import derive_key
from polyserde.table import TableEntry
from polyserde.table import TypeTable


class Alpha:
    pass


class Beta:
    pass


class Gamma:
    pass


def _names(allocator=None):
    return TypeTable("names", lambda t: t.__name__, allocator or HashKeyAllocator())


class TestTypeTableAdd:
    """Tests for TypeTable.add()."""

    def test_add_returns_entry(self):
        """Adding a type returns its entry with the factory's value."""
        table = _names()
        entry = table.add(Alpha)

        assert isinstance(entry, TableEntry)
        assert entry.type is Alpha
        assert entry.value == "Alpha"
        assert entry.token == f"{__name__}.Alpha"
        assert entry.key == derive_key("names", entry.token)

    def test_add_is_idempotent(self):
        """Adding the same type twice keeps the first entry and calls the factory once."""
        calls = []

        def factory(t):
            calls.append(t)
            return object()

        table = TypeTable("names", factory, HashKeyAllocator())
        first = table.add(Alpha)
        second = table.add(Alpha)

        assert first is second
        assert calls == [Alpha]
        assert len(table) == 1

    def test_add_same_pinned_key_again(self):
        """Re-adding with the key the type already holds is allowed."""
        table = _names()
        table.add(Alpha, key=5)
        assert table.add(Alpha, key=5).key == 5

    def test_add_different_pinned_key(self):
        """Moving a registered type to another key is refused."""
        table = _names()
        table.add(Alpha, key=5)

        with pytest.raises(RegistryError, match="already registered with key 5"):
            table.add(Alpha, key=6)

    def test_pinned_key_taken(self):
        """A pinned key held by another type raises DuplicateKeyConflict."""
        table = _names()
        table.add(Alpha, key=5)

        with pytest.raises(DuplicateKeyConflict) as exc_info:
            table.add(Beta, key=5)

        assert exc_info.value.existing == f"{__name__}.Alpha"
        assert exc_info.value.incoming == f"{__name__}.Beta"
        assert table.get(5).type is Alpha

    def test_pinned_key_out_of_range(self):
        """A pinned key wider than the key width is refused."""
        table = _names(HashKeyAllocator(bits=8))

        with pytest.raises(RegistryError, match="does not fit in 8-bit keys"):
            table.add(Alpha, key=256)

    def test_distinct_types_get_distinct_keys(self):
        """Two types never share a key."""
        table = _names()
        keys = {table.add(t).key for t in (Alpha, Beta, Gamma)}
        assert len(keys) == 3

    def test_pigeonhole_collision_rejected(self):
        """With one-bit keys, three types cannot all be registered without probing."""
        table = _names(HashKeyAllocator(bits=1))
        types = [type(f"T{i}", (), {}) for i in range(3)]

        with pytest.raises(DuplicateKeyConflict):
            for t in types:
                table.add(t)

    def test_probing_fills_key_space(self):
        """Probing resolves collisions until the key space runs out."""
        table = _names(HashKeyAllocator(bits=2, collision="probe"))
        types = [type(f"T{i}", (), {}) for i in range(5)]

        for t in types[:4]:
            table.add(t)
        assert sorted(entry.key for entry in table.entries()) == [0, 1, 2, 3]

        with pytest.raises(KeyspaceExhaustedError):
            table.add(types[4])

    def test_failed_add_leaves_table_unchanged(self):
        """A rejected registration does not leave a partial entry behind."""
        table = _names()
        table.add(Alpha, key=1)

        with pytest.raises(DuplicateKeyConflict):
            table.add(Beta, key=1)

        assert table.entry_for(Beta) is None
        assert len(table) == 1


class TestTypeTableLookup:
    """Tests for TypeTable lookups."""

    def test_get_unknown_key(self):
        """Unknown keys return None."""
        table = _names()
        table.add(Alpha, key=1)

        assert table.get(2) is None
        assert table.get(2**64 - 1) is None

    def test_key_of(self):
        """key_of returns the key of registered types and None otherwise."""
        table = _names()
        table.add(Alpha, key=3)

        assert table.key_of(Alpha) == 3
        assert table.key_of(Beta) is None

    def test_contains_checks_keys(self):
        """Membership is tested on keys."""
        table = _names()
        table.add(Alpha, key=3)

        assert 3 in table
        assert 4 not in table

    def test_entries_sorted_by_key(self):
        """entries() returns a snapshot in key order."""
        table = _names(SequentialKeyAllocator())
        table.add(Gamma, key=10)
        table.add(Alpha)
        table.add(Beta)

        assert [entry.type for entry in table.entries()] == [Alpha, Beta, Gamma]

    def test_repr(self):
        """The repr shows name, size and lifecycle state."""
        table = _names()
        table.add(Alpha)
        assert repr(table) == "<TypeTable 'names' (1 entries, open)>"

        table.freeze()
        assert repr(table) == "<TypeTable 'names' (1 entries, frozen)>"

    def test_tables_with_different_data(self):
        """Several tables can attach different data to the same types."""
        allocator = SequentialKeyAllocator()
        names = TypeTable("names", lambda t: t.__name__, allocator)
        sizes = TypeTable("sizes", lambda t: sys.getsizeof(t()), SequentialKeyAllocator())

        name_key = names.add(Alpha).key
        size_key = sizes.add(Alpha).key

        assert names.get(name_key).value == "Alpha"
        assert sizes.get(size_key).value == sys.getsizeof(Alpha())


class TestTypeTableFreeze:
    """Tests for TypeTable.freeze()."""

    def test_freeze_blocks_new_types(self):
        """New types cannot be added once frozen."""
        table = _names()
        table.add(Alpha)
        table.freeze()

        with pytest.raises(RegistryFrozenError, match="is frozen"):
            table.add(Beta)

    def test_readd_after_freeze_is_noop(self):
        """Re-adding an existing type after freeze returns its entry."""
        table = _names()
        entry = table.add(Alpha)
        table.freeze()

        assert table.add(Alpha) is entry

    def test_freeze_is_idempotent(self):
        """Freezing twice is harmless."""
        table = _names()
        table.add(Alpha)
        table.freeze()
        table.freeze()

        assert table.frozen
        assert len(table) == 1

    def test_lookups_after_freeze(self):
        """Lookups keep working on the published table."""
        table = _names()
        key = table.add(Alpha).key
        table.freeze()

        assert table.get(key).type is Alpha
        assert table.key_of(Alpha) == key

    def test_concurrent_lookups_after_freeze(self):
        """Frozen tables serve lookups from many threads."""
        table = _names()
        keys = {t: table.add(t).key for t in (Alpha, Beta, Gamma)}
        table.freeze()
        barrier = threading.Barrier(8)

        def worker(i):
            barrier.wait()
            t = (Alpha, Beta, Gamma)[i % 3]
            return all(table.get(keys[t]).type is t for _ in range(1000))

        with ThreadPoolExecutor(max_workers=8) as pool:
            assert all(pool.map(worker, range(8)))
