import pytest

from school_inventory.models import CatalogItem, InventoryRecord, ItemStatus, RecordForm, User


def test_status_parse_accepts_label_and_name() -> None:
    assert ItemStatus.parse("Б/У") is ItemStatus.USED
    assert ItemStatus.parse("repair_needed") is ItemStatus.REPAIR_NEEDED
    assert ItemStatus.parse(ItemStatus.WRITE_OFF) is ItemStatus.WRITE_OFF
    with pytest.raises(ValueError):
        ItemStatus.parse("broken")


def test_form_updates_return_new_forms() -> None:
    form = RecordForm(category="Мебель", room_number="12", responsible="Иванов")
    updated = form.update(name="Стул", model="X-1", photo_url="https://example.org/a.jpg")

    assert form.name == ""
    assert updated.name == "Стул"

    reset = updated.reset_item_fields()
    assert reset.model == ""
    assert reset.photo_url == ""
    assert (reset.category, reset.name, reset.room_number, reset.responsible) == (
        "Мебель",
        "Стул",
        "12",
        "Иванов",
    )


def test_form_from_payload_accepts_both_key_styles() -> None:
    form = RecordForm.from_payload(
        {"roomNumber": "7", "serial_number": "SN-1", "quantity": "3", "ignored": True}
    )
    assert form.room_number == "7"
    assert form.serial_number == "SN-1"
    assert form.quantity == "3"
    assert form.unit == "шт"


def test_record_from_record_requires_id() -> None:
    with pytest.raises(ValueError):
        InventoryRecord.from_record({"name": "Стул"})


def test_record_round_trip_uses_camel_case_keys() -> None:
    record = InventoryRecord.from_record(
        {
            "id": "r1",
            "category": "Мебель",
            "name": "Стул",
            "quantity": 0,
            "roomNumber": "12",
            "photoUrl": "https://example.org/a.jpg",
            "status": "Списание",
            "isSynced": True,
        }
    )

    assert record.quantity == 1
    assert record.status is ItemStatus.WRITE_OFF
    stored = record.to_record()
    assert stored["roomNumber"] == "12"
    assert stored["status"] == "Списание"
    assert stored["isSynced"] is True


def test_catalog_item_requires_category_and_name() -> None:
    with pytest.raises(ValueError):
        CatalogItem.from_record({"id": "x", "category": "Мебель", "name": " "})
    item = CatalogItem.from_record({"category": "Мебель", "name": "Стол"})
    assert item.id
    assert item.source_file is None


def test_user_record_defaults() -> None:
    user = User.from_record({"email": "teacher@school.org"})
    assert user.is_verified is False
    assert user.notifications_enabled is True
    with pytest.raises(ValueError):
        User.from_record({"fullName": "No email"})
