"""Domain entities for users, catalog entries and inventory records."""
from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Any, Dict, Optional


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _serialize_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat()


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def new_identifier() -> str:
    return uuid.uuid4().hex


def today_iso() -> str:
    return date.today().isoformat()


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


class ItemStatus(str, enum.Enum):
    """Physical condition of an inventoried item."""

    EXCELLENT = "Отличное"
    GOOD = "Хорошее"
    USED = "Б/У"
    REPAIR_NEEDED = "Требует ремонта"
    WRITE_OFF = "Списание"

    @classmethod
    def parse(cls, value: Any) -> "ItemStatus":
        """Accept either the stored label or the member name."""

        if isinstance(value, cls):
            return value
        candidate = _text(value)
        for member in cls:
            if candidate == member.value or candidate.upper() == member.name:
                return member
        raise ValueError(f"Unknown status '{candidate}'")


@dataclass
class User:
    """Organization account."""

    email: str
    full_name: str
    organization: str
    job_title: str
    password_hash: str
    is_admin: bool = False
    is_verified: bool = False
    notifications_enabled: bool = True
    created_at: datetime = field(default_factory=_now)

    def to_record(self) -> Dict[str, Any]:
        return {
            "email": self.email,
            "fullName": self.full_name,
            "organization": self.organization,
            "jobTitle": self.job_title,
            "passwordHash": self.password_hash,
            "isAdmin": self.is_admin,
            "isVerified": self.is_verified,
            "notificationsEnabled": self.notifications_enabled,
            "createdAt": _serialize_timestamp(self.created_at),
        }

    def to_public_dict(self) -> Dict[str, Any]:
        record = self.to_record()
        del record["passwordHash"]
        return record

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "User":
        email = _text(record.get("email"))
        if email == "":
            raise ValueError("User record missing email")
        return cls(
            email=email,
            full_name=_text(record.get("fullName")),
            organization=_text(record.get("organization")),
            job_title=_text(record.get("jobTitle")),
            password_hash=str(record.get("passwordHash") or ""),
            is_admin=bool(record.get("isAdmin", False)),
            is_verified=bool(record.get("isVerified", False)),
            notifications_enabled=bool(record.get("notificationsEnabled", True)),
            created_at=_parse_timestamp(record.get("createdAt")) or _now(),
        )


@dataclass
class CatalogItem:
    """One nomenclature entry used for form autocompletion."""

    id: str
    category: str
    name: str
    source_file: Optional[str] = None
    import_date: Optional[str] = None

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "name": self.name,
            "sourceFile": self.source_file,
            "importDate": self.import_date,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "CatalogItem":
        category = _text(record.get("category"))
        name = _text(record.get("name"))
        if not category or not name:
            raise ValueError("Catalog record missing category or name")
        identifier = _text(record.get("id")) or new_identifier()
        source_file = record.get("sourceFile")
        import_date = record.get("importDate")
        return cls(
            id=identifier,
            category=category,
            name=name,
            source_file=None if source_file is None else str(source_file),
            import_date=None if import_date is None else str(import_date),
        )


@dataclass(frozen=True)
class RecordForm:
    """Immutable state of the "new inventory" form.

    Updates go through :meth:`update`, which returns a new form.
    """

    category: str = ""
    name: str = ""
    quantity: Any = 1
    unit: str = "шт"
    inventory_number: str = ""
    model: str = ""
    serial_number: str = ""
    responsible: str = ""
    room_number: str = ""
    status: Any = ItemStatus.GOOD
    date: str = ""
    note: str = ""
    photo_url: str = ""

    _PAYLOAD_KEYS = {
        "category": "category",
        "name": "name",
        "quantity": "quantity",
        "unit": "unit",
        "inventoryNumber": "inventory_number",
        "model": "model",
        "serialNumber": "serial_number",
        "responsible": "responsible",
        "roomNumber": "room_number",
        "status": "status",
        "date": "date",
        "note": "note",
        "photoUrl": "photo_url",
    }

    def update(self, **changes: Any) -> "RecordForm":
        return replace(self, **changes)

    def reset_item_fields(self) -> "RecordForm":
        """Clear per-item fields while keeping category, room and responsible."""

        return replace(
            self, inventory_number="", model="", serial_number="", note="", photo_url=""
        )

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "RecordForm":
        changes: Dict[str, Any] = {}
        for key, attribute in cls._PAYLOAD_KEYS.items():
            if key in payload:
                changes[attribute] = payload[key]
            elif attribute in payload:
                changes[attribute] = payload[attribute]
        return cls().update(**changes)


@dataclass
class InventoryRecord:
    """One inventoried physical item."""

    id: str
    category: str
    name: str
    quantity: int
    unit: str
    inventory_number: str
    model: str
    serial_number: str
    responsible: str
    room_number: str
    status: ItemStatus
    date: str
    note: str
    photo_url: str
    is_synced: bool = False

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "name": self.name,
            "quantity": self.quantity,
            "unit": self.unit,
            "inventoryNumber": self.inventory_number,
            "model": self.model,
            "serialNumber": self.serial_number,
            "responsible": self.responsible,
            "roomNumber": self.room_number,
            "status": self.status.value,
            "date": self.date,
            "note": self.note,
            "photoUrl": self.photo_url,
            "isSynced": self.is_synced,
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "InventoryRecord":
        identifier = _text(record.get("id"))
        if identifier == "":
            raise ValueError("Inventory record missing id")
        try:
            quantity = int(record.get("quantity", 1))
        except (TypeError, ValueError):
            quantity = 1
        try:
            status = ItemStatus.parse(record.get("status"))
        except ValueError:
            status = ItemStatus.GOOD
        return cls(
            id=identifier,
            category=_text(record.get("category")),
            name=_text(record.get("name")),
            quantity=max(quantity, 1),
            unit=_text(record.get("unit")) or "шт",
            inventory_number=_text(record.get("inventoryNumber")),
            model=_text(record.get("model")),
            serial_number=_text(record.get("serialNumber")),
            responsible=_text(record.get("responsible")),
            room_number=_text(record.get("roomNumber")),
            status=status,
            date=_text(record.get("date")) or today_iso(),
            note=str(record.get("note") or ""),
            photo_url=str(record.get("photoUrl") or ""),
            is_synced=bool(record.get("isSynced", False)),
        )


__all__ = [
    "CatalogItem",
    "InventoryRecord",
    "ItemStatus",
    "RecordForm",
    "User",
    "new_identifier",
    "today_iso",
]
