from __future__ import annotations

from conftest import InMemoryStore

from postindex_sync.services.orphan_reclaimer import find_orphans, reclaim_orphans


def test_find_orphans():
    assert find_orphans({"1", "2", "3"}, ["2"]) == {"1", "3"}
    assert find_orphans(set(), ["2"]) == set()


def test_manual_rows_survive_reclamation(office_schema, memory_store: InMemoryStore):
    memory_store.put(office_schema, {"code": "99999", "created_manual": 1})
    memory_store.put(office_schema, {"code": "88888"})
    memory_store.put(office_schema, {"code": "00001"})

    deleted = reclaim_orphans(memory_store, office_schema, {"00001"})

    assert deleted == 1
    assert set(memory_store.tables["offices"]) == {"99999", "00001"}
    # one statement for the whole orphan set
    assert memory_store.count("delete") == 1


def test_nothing_to_reclaim(office_schema, memory_store: InMemoryStore):
    memory_store.put(office_schema, {"code": "00001"})
    assert reclaim_orphans(memory_store, office_schema, {"00001"}) == 0
    assert memory_store.count("delete") == 0
