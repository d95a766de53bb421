from __future__ import annotations

from pathlib import Path

import pytest
from conftest import InMemoryStore, make_workbook

from postindex_sync.db.statements import StorageError
from postindex_sync.logging.error_log import ErrorLogBuffer
from postindex_sync.models.post_index import POST_INFO_SCHEMA
from postindex_sync.services.reconciler import Reconciler, prepare_storage, read_source, sync_file
from postindex_sync.services.schema_mapper import SchemaMappingError

"""End-to-end reconciliation: workbook on disk -> reader -> reconciler -> store."""

LABELS = {f.name: f.source_label for f in POST_INFO_SCHEMA.mapped_fields}
HEADER = [
    LABELS["post_office_id"],
    LABELS["region_ukr_id"],
    LABELS["settlement_ukr_id"],
    LABELS["postal_code"],
    LABELS["region_en_id"],
    LABELS["settlement_en_id"],
    LABELS["post_office_ukr"],
]

SOURCE = [
    HEADER,
    ["01001", "Київська", "Київ", "01001", "Kyivska", "Kyiv", "Київ 1"],
    ["01002", "Київська", "Київ", "01002", "Kyivska", "Kyiv", "Київ 2"],
    ["08200", "Київська", "Ірпінь", "08200", "Kyivska", "Irpin", "Ірпінь"],
    ["79000", "Львівська", "Львів", "79000", "Lvivska", "Lviv", "Львів"],
    ["65000", "Одеська", "Одеса", "65000", "Odeska", "Odesa", "Одеса"],
]


def _run(store: InMemoryStore, path: Path, chunk_size: int = 3000, **options):
    prepare_storage(store, POST_INFO_SCHEMA)
    return sync_file(path, POST_INFO_SCHEMA, store, chunk_size=chunk_size, **options)


@pytest.fixture()
def source(tmp_path: Path) -> Path:
    return make_workbook(tmp_path / "postindex.xlsx", SOURCE)


def test_first_run_inserts_everything(source: Path, memory_store: InMemoryStore):
    result = _run(memory_store, source)
    assert (result.rows_read, result.inserted, result.updated, result.deleted) == (5, 5, 0, 0)
    # 3 regions and 4 settlements in each language
    assert result.dictionary_added == 14
    rows = memory_store.labeled_rows(POST_INFO_SCHEMA)
    assert rows["08200"]["settlement_ukr_id"] == "Ірпінь"
    assert rows["08200"]["created_manual"] == 0


def test_second_run_is_a_noop(source: Path, memory_store: InMemoryStore):
    _run(memory_store, source)
    before = memory_store.labeled_rows(POST_INFO_SCHEMA)
    memory_store.statements.clear()

    result = _run(memory_store, source)

    assert (result.inserted, result.updated, result.deleted, result.dictionary_added) == (0, 0, 0, 0)
    assert result.unchanged == 5
    assert memory_store.labeled_rows(POST_INFO_SCHEMA) == before
    # only reads: no update, insert or delete statements
    assert {op for op, _ in memory_store.statements} == {"select"}


def test_minimal_update_after_one_cell_changes(tmp_path: Path, source: Path, memory_store: InMemoryStore):
    _run(memory_store, source)
    changed = [row[:] for row in SOURCE]
    changed[4][6] = "Львів 1"
    memory_store.statements.clear()

    result = _run(memory_store, make_workbook(tmp_path / "changed.xlsx", changed))

    assert (result.inserted, result.updated, result.unchanged) == (0, 1, 4)
    stored = memory_store.tables["post_info"]["79000"]
    assert stored["post_office_ukr"] == "Львів 1"
    assert stored["updated_at"] >= stored["created_at"]
    assert memory_store.statements.count(("update", 1)) == 1


def test_convergence_to_new_source(tmp_path: Path, source: Path, memory_store: InMemoryStore):
    _run(memory_store, source)
    new_source = [SOURCE[0], SOURCE[1], SOURCE[4], ["04000", "Київська", "Київ", "04000", "Kyivska", "Kyiv", "Київ 4"]]
    second = make_workbook(tmp_path / "second.xlsx", new_source)

    result = _run(memory_store, second)

    assert (result.inserted, result.deleted) == (1, 3)
    fresh = InMemoryStore()
    _run(fresh, second)
    assert memory_store.labeled_rows(POST_INFO_SCHEMA) == fresh.labeled_rows(POST_INFO_SCHEMA)


@pytest.mark.parametrize("chunk_size", [1, 5, 3])
def test_chunking_is_transparent(source: Path, chunk_size: int):
    reference = InMemoryStore()
    _run(reference, source, chunk_size=len(SOURCE) - 1)
    store = InMemoryStore()
    result = _run(store, source, chunk_size=chunk_size)
    assert result.chunks == -(-5 // chunk_size)
    assert store.labeled_rows(POST_INFO_SCHEMA) == reference.labeled_rows(POST_INFO_SCHEMA)
    assert store.dictionaries == reference.dictionaries


def test_dictionary_labels_are_never_duplicated(source: Path):
    store = InMemoryStore()
    _run(store, source, chunk_size=1)
    _run(store, source, chunk_size=2)
    for category, entries in store.dictionaries.items():
        labels = [label for _, label in entries]
        assert len(labels) == len(set(labels)), category


def test_kyiv_row_against_empty_storage(tmp_path: Path, memory_store: InMemoryStore):
    path = make_workbook(tmp_path / "kyiv.xlsx", [[LABELS["post_office_id"], LABELS["region_ukr_id"]], ["00001", "Kyiv"]])
    result = _run(memory_store, path)
    assert result.inserted == 1
    assert memory_store.dictionaries["region_ukr"] == [(1, "Kyiv")]
    row = memory_store.tables["post_info"]["00001"]
    assert row["region_ukr_id"] == 1
    assert row["created_manual"] == 0
    assert row["created_at"] == row["updated_at"] == result.start_time


def test_manual_row_is_retained(source: Path, memory_store: InMemoryStore):
    prepare_storage(memory_store, POST_INFO_SCHEMA)
    memory_store.put(POST_INFO_SCHEMA, {"post_office_id": "99999", "created_manual": 1})
    result = _run(memory_store, source)
    assert result.deleted == 0
    assert "99999" in memory_store.tables["post_info"]


def test_stale_row_is_deleted(source: Path, memory_store: InMemoryStore):
    prepare_storage(memory_store, POST_INFO_SCHEMA)
    memory_store.put(POST_INFO_SCHEMA, {"post_office_id": "88888", "created_manual": 0})
    result = _run(memory_store, source)
    assert result.deleted == 1
    assert "88888" not in memory_store.tables["post_info"]


def test_numeric_keys_are_padded(tmp_path: Path, memory_store: InMemoryStore):
    path = make_workbook(
        tmp_path / "numeric.xlsx",
        [[LABELS["post_office_id"], LABELS["postal_code"]], [1001, 1001], [None, 5]],
    )
    log = ErrorLogBuffer(tmp_path / "logs")
    result = _run(memory_store, path, error_log=log)
    assert result.skipped == 1
    assert memory_store.tables["post_info"]["01001"]["postal_code"] == "01001"
    (record,) = log.records
    assert (record.row, record.error_type) == (3, "EMPTY_NATURAL_KEY")


@pytest.mark.parametrize("chunk_size", [1, 2, 3000])
def test_repeated_key_is_stable_across_runs(tmp_path: Path, memory_store: InMemoryStore, chunk_size: int):
    path = make_workbook(
        tmp_path / "repeated.xlsx",
        [
            [LABELS["post_office_id"], LABELS["postal_code"]],
            ["00001", "01001"],
            ["00002", "01002"],
            ["00001", "09999"],
        ],
    )
    log = ErrorLogBuffer(tmp_path / "logs")
    first = _run(memory_store, path, chunk_size=chunk_size, error_log=log)
    assert (first.inserted, first.updated, first.skipped) == (2, 0, 1)
    assert memory_store.tables["post_info"]["00001"]["postal_code"] == "01001"
    (record,) = log.records
    assert (record.row, record.error_type) == (4, "DUPLICATE_NATURAL_KEY")

    second = _run(memory_store, path, chunk_size=chunk_size)
    assert (second.inserted, second.updated, second.unchanged, second.skipped) == (0, 0, 2, 1)
    assert memory_store.count("update") == 0


def test_unmappable_workbook_fails_before_any_write(tmp_path: Path, memory_store: InMemoryStore):
    path = make_workbook(tmp_path / "nokey.xlsx", [[LABELS["postal_code"]], ["01001"]])
    with pytest.raises(SchemaMappingError):
        read_source(path, POST_INFO_SCHEMA)
    assert memory_store.statements == []
    assert memory_store.commits == 0



def test_partial_failure_then_rerun_converges(source: Path):
    store = InMemoryStore(fail_on_insert_call=2)
    prepare_storage(store, POST_INFO_SCHEMA)
    with pytest.raises(StorageError):
        sync_file(source, POST_INFO_SCHEMA, store, chunk_size=2)
    assert set(store.tables["post_info"]) == {"01001", "01002"}
    assert store.rollbacks == 1

    store.fail_on_insert_call = None
    result = sync_file(source, POST_INFO_SCHEMA, store, chunk_size=2)
    assert result.inserted == 3
    assert result.unchanged == 2

    reference = InMemoryStore()
    _run(reference, source)
    assert store.labeled_rows(POST_INFO_SCHEMA) == reference.labeled_rows(POST_INFO_SCHEMA)


def test_reconciler_accepts_in_memory_rows(memory_store: InMemoryStore):
    prepare_storage(memory_store, POST_INFO_SCHEMA)
    reconciler = Reconciler(POST_INFO_SCHEMA, memory_store, chunk_size=2, timezone="Europe/Kyiv")
    result = reconciler.run(iter(SOURCE), source_name="generated")
    assert result.inserted == 5
    assert str(result.start_time.tzinfo) == "Europe/Kyiv"
    assert result.batch_stats is not None and result.batch_stats.total_batches == 3
