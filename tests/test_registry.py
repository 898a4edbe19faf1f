from io import BytesIO
from pathlib import Path

import pytest
from openpyxl import load_workbook

from school_inventory.errors import ValidationError
from school_inventory.models import InventoryRecord, ItemStatus, RecordForm
from school_inventory.registry import (
    EXPORT_FIELDS,
    RegistryService,
    TimerScheduler,
    export_rows,
    query,
    select_for_export,
    statistics,
)
from school_inventory.storage import JsonStore, StoreKeys

PHOTO = "data:image/jpeg;base64,/9j/4AAQSkZJRgABAQAAAQABAAD"


def _form(**changes) -> RecordForm:
    base = RecordForm(
        category="Электроника",
        name="Ноутбук Lenovo",
        quantity=1,
        inventory_number="INV-100",
        responsible="Сидоров С.С.",
        room_number="101",
        photo_url=PHOTO,
    )
    return base.update(**changes)


def test_add_prepends_record_and_persists(registry: RegistryService, store: JsonStore) -> None:
    first = registry.add(_form(name="Первый"))
    second = registry.add(_form(name="Второй"))

    records = registry.list_records()
    assert [record.id for record in records] == [second.id, first.id]
    assert second.is_synced is False
    assert second.unit == "шт"
    assert second.status is ItemStatus.GOOD
    assert second.date

    stored = store.load(StoreKeys.RECORDS)
    assert [entry["id"] for entry in stored] == [second.id, first.id]
    assert stored[0]["photoUrl"] == PHOTO


def test_add_requires_photo_and_positive_quantity(registry: RegistryService) -> None:
    with pytest.raises(ValidationError) as excinfo:
        registry.add(_form(photo_url=""))
    assert "photo_url" in excinfo.value.fields

    with pytest.raises(ValidationError) as excinfo:
        registry.add(_form(quantity=0))
    assert "quantity" in excinfo.value.fields

    with pytest.raises(ValidationError) as excinfo:
        registry.add(_form(quantity="abc", responsible=" "))
    assert {"quantity", "responsible"} <= set(excinfo.value.fields)

    assert registry.list_records() == []


def test_add_accepts_status_by_name_and_numeric_strings(registry: RegistryService) -> None:
    record = registry.add(_form(status="WRITE_OFF", quantity="3"))
    assert record.status is ItemStatus.WRITE_OFF
    assert record.quantity == 3

    with pytest.raises(ValidationError):
        registry.add(_form(status="Broken"))


def test_delayed_sync_targets_record_by_id(registry: RegistryService, scheduler) -> None:
    target = registry.add(_form(name="Интерактивная доска"))
    assert len(scheduler.jobs) == 1
    sync_target = scheduler.jobs[0]

    other = registry.add(_form(name="Принтер"))
    registry.delete_many([other.id])
    newest = registry.add(_form(name="Сканер"))

    sync_target.callback()

    by_id = {record.id: record for record in registry.list_records()}
    assert by_id[target.id].is_synced is True
    assert by_id[newest.id].is_synced is False


def test_delayed_sync_for_deleted_record_is_a_noop(registry: RegistryService, scheduler) -> None:
    gone = registry.add(_form(name="Старый монитор"))
    kept = registry.add(_form(name="Новый монитор"))
    registry.delete_many([gone.id])

    assert registry.mark_synced(gone.id) is False
    scheduler.run_all()

    records = registry.list_records()
    assert [record.id for record in records] == [kept.id]
    assert records[0].is_synced is True


def test_delete_many_is_idempotent(registry: RegistryService) -> None:
    records = [registry.add(_form(name=f"Стул {index}")) for index in range(4)]
    ids = {records[0].id, records[2].id}

    assert registry.delete_many(ids) == 2
    once = [record.id for record in registry.list_records()]
    assert registry.delete_many(ids) == 0
    twice = [record.id for record in registry.list_records()]

    assert once == twice == [records[3].id, records[1].id]


def test_purge_cancels_pending_sync(registry: RegistryService, scheduler) -> None:
    registry.add(_form())
    registry.add(_form())

    assert registry.purge() == 2
    assert registry.list_records() == []
    assert all(job.cancelled for job in scheduler.jobs)


def test_corrupt_records_are_skipped(tmp_path: Path, scheduler) -> None:
    store = JsonStore(tmp_path / "state.json")
    store.save(
        StoreKeys.RECORDS,
        [
            {"name": "no id"},
            {"id": "ok", "name": "Парта", "quantity": "2", "status": "???"},
        ],
    )
    registry = RegistryService(store, scheduler=scheduler)

    records = registry.list_records()
    assert len(records) == 1
    assert records[0].quantity == 2
    assert records[0].status is ItemStatus.GOOD


def _record(identifier: str, **overrides) -> InventoryRecord:
    values = dict(
        id=identifier,
        category="Мебель",
        name="Стол",
        quantity=1,
        unit="шт",
        inventory_number="",
        model="",
        serial_number="",
        responsible="Иванов",
        room_number="1",
        status=ItemStatus.GOOD,
        date="2024-01-10",
        note="",
        photo_url=PHOTO,
    )
    values.update(overrides)
    return InventoryRecord(**values)


def test_query_matches_name_inventory_number_and_room() -> None:
    records = [
        _record("a", name="Проектор Epson"),
        _record("b", inventory_number="INV-42"),
        _record("c", room_number="Каб. 305"),
        _record("d", name="Шкаф"),
    ]

    assert [r.id for r in query(records, "EPSON")] == ["a"]
    assert [r.id for r in query(records, "inv-4")] == ["b"]
    assert [r.id for r in query(records, "305")] == ["c"]
    assert [r.id for r in query(records, "")] == ["a", "b", "c", "d"]
    assert [r.id for r in query(records, "   ")] == ["a", "b", "c", "d"]
    assert query(records, "нет такого") == []


def test_export_rows_schema_and_photo_placeholder() -> None:
    records = [
        _record("a", name="Первый", photo_url=PHOTO, quantity=3),
        _record("b", name="Второй", photo_url="https://example.org/p.jpg"),
    ]
    snapshot = [record.to_record() for record in records]

    rows = export_rows(records)

    assert [list(row) for row in rows] == [EXPORT_FIELDS, EXPORT_FIELDS]
    assert [row["№"] for row in rows] == [1, 2]
    assert rows[0]["Наименование"] == "Первый"
    assert rows[0]["Количество"] == 3
    assert rows[0]["Ссылка на фото"] == "Локальное фото (Base64)"
    assert rows[1]["Ссылка на фото"] == "https://example.org/p.jpg"
    assert rows[0]["Состояние"] == "Хорошее"
    assert [record.to_record() for record in records] == snapshot


def test_export_workbook_has_single_inventory_sheet(registry: RegistryService) -> None:
    registry.add(_form(name="Первый"))
    registry.add(_form(name="Второй"))

    content, filename = registry.export_workbook(registry.list_records())

    assert filename.startswith("inventory_export_")
    assert filename.endswith(".xlsx")
    workbook = load_workbook(BytesIO(content))
    assert workbook.sheetnames == ["Inventory"]
    rows = list(workbook["Inventory"].iter_rows(values_only=True))
    assert list(rows[0]) == EXPORT_FIELDS
    assert [row[2] for row in rows[1:]] == ["Второй", "Первый"]


def test_select_for_export_prefers_selection_in_collection_order() -> None:
    records = [_record("a"), _record("b"), _record("c")]
    filtered = records[:1]

    assert [r.id for r in select_for_export(records, filtered, {"c", "a"})] == ["a", "c"]
    assert [r.id for r in select_for_export(records, filtered, set())] == ["a"]


def test_statistics_counts_statuses_and_rooms() -> None:
    records = [
        _record("a", quantity=2, status=ItemStatus.EXCELLENT, room_number="1"),
        _record("b", quantity=5, status=ItemStatus.WRITE_OFF, room_number="2", is_synced=True),
        _record("c", quantity=1, status=ItemStatus.REPAIR_NEEDED, room_number="1"),
        _record("d", quantity=1, status=ItemStatus.WRITE_OFF, room_number="3"),
    ]

    stats = statistics(records)

    assert stats["totalItems"] == 9
    assert stats["totalRecords"] == 4
    assert stats["excellent"] == 1
    assert stats["writeOff"] == 2
    assert stats["repairNeeded"] == 1
    assert stats["synced"] == 1
    assert stats["pendingSync"] == 3
    distribution = {entry["status"]: entry for entry in stats["statusDistribution"]}
    assert distribution["Списание"]["percentage"] == 50
    assert stats["rooms"][0] == {"roomNumber": "1", "count": 2}


def test_statistics_of_empty_registry() -> None:
    stats = statistics([])
    assert stats["totalItems"] == 0
    assert stats["statusDistribution"] == []
    assert stats["rooms"] == []


def test_timer_scheduler_fires_and_cancels() -> None:
    scheduler = TimerScheduler()
    fired = []

    timer = scheduler.schedule(0, lambda: fired.append("now"))
    timer.join(timeout=5)
    assert fired == ["now"]

    later = scheduler.schedule(60, lambda: fired.append("later"))
    assert later.daemon
    later.cancel()
    later.join(timeout=5)
    assert not later.is_alive()
    assert fired == ["now"]


def test_registry_cancels_real_timers_on_purge(store: JsonStore) -> None:
    registry = RegistryService(store, sync_delay=60)
    registry.add(_form())

    assert registry.purge() == 1
    assert registry.cancel_pending() == 0
