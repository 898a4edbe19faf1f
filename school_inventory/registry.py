"""Registry of inventoried items: add, delete, search, export and statistics."""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from .errors import ValidationError
from .models import InventoryRecord, ItemStatus, RecordForm, new_identifier, today_iso
from .spreadsheets import export_filename, write_workbook
from .storage import JsonStore, StoreKeys

logger = logging.getLogger(__name__)

EXPORT_FIELDS = [
    "№",
    "Категория",
    "Наименование",
    "Количество",
    "Единица измерения",
    "Инвентарный номер",
    "Модель",
    "Серийный номер",
    "Ответственный",
    "№ кабинета",
    "Ссылка на фото",
    "Состояние",
    "Дата инвентаризации",
    "Примечание",
]
EXPORT_COLUMN_WIDTHS = [5, 20, 30, 10, 10, 20, 15, 20, 25, 12, 20, 15, 15, 40]
EMBEDDED_PHOTO_LABEL = "Локальное фото (Base64)"

_REQUIRED_FIELDS = {
    "category": "Category is required",
    "name": "Name is required",
    "responsible": "Responsible person is required",
    "room_number": "Room number is required",
}


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def schedule(self, delay: float, callback: Callable[[], None]) -> Cancellable: ...


class TimerScheduler:
    """Runs one-shot callbacks on daemon :class:`threading.Timer` threads.

    The caller keeps the returned timer and cancels it if needed.
    """

    def schedule(self, delay: float, callback: Callable[[], None]) -> threading.Timer:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


def _parse_quantity(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def validate_form(form: RecordForm) -> Tuple[int, ItemStatus]:
    """Check a submitted form and return its parsed quantity and status."""

    errors: Dict[str, str] = {}
    for attribute, message in _REQUIRED_FIELDS.items():
        if not str(getattr(form, attribute) or "").strip():
            errors[attribute] = message
    quantity = _parse_quantity(form.quantity)
    if quantity is None or quantity < 1:
        errors["quantity"] = "Quantity must be a positive integer"
    status = ItemStatus.GOOD
    try:
        status = ItemStatus.parse(form.status)
    except ValueError:
        errors["status"] = "Unknown status"
    if not str(form.photo_url or "").strip():
        errors["photo_url"] = "Photograph the item before submitting"
    if errors:
        raise ValidationError("Form is incomplete", errors)
    return int(quantity or 0), status


def query(records: Iterable[InventoryRecord], search_term: Optional[str]) -> List[InventoryRecord]:
    """Case-insensitive substring search over name, inventory and room numbers."""

    needle = (search_term or "").strip().lower()
    if not needle:
        return list(records)
    return [
        record
        for record in records
        if needle in record.name.lower()
        or needle in record.inventory_number.lower()
        or needle in record.room_number.lower()
    ]


def photo_reference(photo_url: str) -> str:
    if photo_url.startswith("data:"):
        return EMBEDDED_PHOTO_LABEL
    return photo_url


def export_rows(records: Sequence[InventoryRecord]) -> List[Dict[str, Any]]:
    rows: List[Dict[str, Any]] = []
    for index, record in enumerate(records, start=1):
        rows.append(
            {
                "№": index,
                "Категория": record.category,
                "Наименование": record.name,
                "Количество": record.quantity,
                "Единица измерения": record.unit,
                "Инвентарный номер": record.inventory_number,
                "Модель": record.model,
                "Серийный номер": record.serial_number,
                "Ответственный": record.responsible,
                "№ кабинета": record.room_number,
                "Ссылка на фото": photo_reference(record.photo_url),
                "Состояние": record.status.value,
                "Дата инвентаризации": record.date,
                "Примечание": record.note,
            }
        )
    return rows


def statistics(records: Sequence[InventoryRecord], *, room_limit: int = 5) -> Dict[str, Any]:
    status_counts: Dict[str, int] = {}
    room_counts: Dict[str, int] = {}
    for record in records:
        status_counts[record.status.value] = status_counts.get(record.status.value, 0) + 1
        room_counts[record.room_number] = room_counts.get(record.room_number, 0) + 1
    total_records = len(records)
    distribution = [
        {
            "status": status,
            "count": count,
            "percentage": round(count / total_records * 100) if total_records else 0,
        }
        for status, count in status_counts.items()
    ]
    synced = sum(1 for record in records if record.is_synced)
    return {
        "totalItems": sum(record.quantity for record in records),
        "totalRecords": total_records,
        "excellent": status_counts.get(ItemStatus.EXCELLENT.value, 0),
        "repairNeeded": status_counts.get(ItemStatus.REPAIR_NEEDED.value, 0),
        "writeOff": status_counts.get(ItemStatus.WRITE_OFF.value, 0),
        "synced": synced,
        "pendingSync": total_records - synced,
        "statusDistribution": distribution,
        "rooms": [
            {"roomNumber": room, "count": count}
            for room, count in list(room_counts.items())[:room_limit]
        ],
    }


class RegistryService:
    """Owns the inventory record collection, newest record first."""

    def __init__(
        self,
        store: JsonStore,
        *,
        sync_delay: float = 2.0,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.store = store
        self.sync_delay = sync_delay
        self.scheduler = scheduler if scheduler is not None else TimerScheduler()
        self._pending: Dict[str, Cancellable] = {}
        self._pending_lock = threading.Lock()

    # public API ---------------------------------------------------------
    def list_records(self) -> List[InventoryRecord]:
        with self.store.lock:
            return self._load_locked()

    def get_record(self, record_id: str) -> InventoryRecord:
        for record in self.list_records():
            if record.id == record_id:
                return record
        raise KeyError(f"Record '{record_id}' not found")

    def add(self, form: RecordForm) -> InventoryRecord:
        quantity, status = validate_form(form)
        record = InventoryRecord(
            id=new_identifier(),
            category=str(form.category).strip(),
            name=str(form.name).strip(),
            quantity=quantity,
            unit=str(form.unit or "").strip() or "шт",
            inventory_number=str(form.inventory_number or "").strip(),
            model=str(form.model or "").strip(),
            serial_number=str(form.serial_number or "").strip(),
            responsible=str(form.responsible).strip(),
            room_number=str(form.room_number).strip(),
            status=status,
            date=str(form.date or "").strip() or today_iso(),
            note=str(form.note or ""),
            photo_url=str(form.photo_url).strip(),
            is_synced=False,
        )
        with self.store.lock:
            records = self._load_locked()
            records.insert(0, record)
            self._save_locked(records)
        logger.info("Added inventory record %s (%s)", record.id, record.name)
        self._schedule_sync(record.id)
        return record

    def mark_synced(self, record_id: str) -> bool:
        """Flag the record with ``record_id`` as synced if it still exists."""

        with self._pending_lock:
            self._pending.pop(record_id, None)
        with self.store.lock:
            records = self._load_locked()
            for record in records:
                if record.id == record_id:
                    record.is_synced = True
                    self._save_locked(records)
                    logger.info("Record %s synced", record_id)
                    return True
        logger.debug("Record %s disappeared before sync completed", record_id)
        return False

    def delete_many(self, ids: Iterable[str]) -> int:
        targets = set(ids)
        with self.store.lock:
            records = self._load_locked()
            remaining = [record for record in records if record.id not in targets]
            removed = len(records) - len(remaining)
            self._save_locked(remaining)
        logger.info("Deleted %d inventory records", removed)
        return removed

    def purge(self) -> int:
        with self.store.lock:
            removed = len(self._load_locked())
            self.store.delete(StoreKeys.RECORDS)
        self.cancel_pending()
        logger.info("Purged %d inventory records", removed)
        return removed

    def search(self, search_term: Optional[str]) -> List[InventoryRecord]:
        return query(self.list_records(), search_term)

    def export_workbook(self, records: Sequence[InventoryRecord]) -> Tuple[bytes, str]:
        content = write_workbook(
            EXPORT_FIELDS,
            export_rows(records),
            column_widths=EXPORT_COLUMN_WIDTHS,
        )
        return content, export_filename()

    def statistics(self) -> Dict[str, Any]:
        return statistics(self.list_records())

    def cancel_pending(self) -> int:
        with self._pending_lock:
            pending, self._pending = self._pending, {}
        for handle in pending.values():
            handle.cancel()
        return len(pending)

    # helpers ------------------------------------------------------------
    def _schedule_sync(self, record_id: str) -> None:
        handle = self.scheduler.schedule(
            self.sync_delay, lambda: self.mark_synced(record_id)
        )
        with self._pending_lock:
            self._pending[record_id] = handle

    def _load_locked(self) -> List[InventoryRecord]:
        records: List[InventoryRecord] = []
        for entry in self.store.load_list(StoreKeys.RECORDS):
            try:
                records.append(InventoryRecord.from_record(entry))
            except ValueError:
                continue
        return records

    def _save_locked(self, records: Iterable[InventoryRecord]) -> None:
        self.store.save(StoreKeys.RECORDS, [record.to_record() for record in records])


def select_for_export(
    records: Sequence[InventoryRecord],
    filtered: Sequence[InventoryRecord],
    selected_ids: Iterable[str],
) -> List[InventoryRecord]:
    """Selected records in collection order, or the filtered view when none are selected."""

    selected = set(selected_ids)
    if selected:
        return [record for record in records if record.id in selected]
    return list(filtered)


__all__ = [
    "EXPORT_FIELDS",
    "RegistryService",
    "TimerScheduler",
    "export_rows",
    "photo_reference",
    "query",
    "select_for_export",
    "statistics",
    "validate_form",
]
