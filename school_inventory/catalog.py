"""Catalog of category/name pairs imported from spreadsheets."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .errors import ImportFileError
from .models import CatalogItem, new_identifier
from .spreadsheets import read_first_sheet
from .storage import JsonStore, StoreKeys

logger = logging.getLogger(__name__)

DEFAULT_CATEGORY_ALIASES = ("category", "Category", "Категория")
DEFAULT_NAME_ALIASES = ("name", "Name", "Наименование")


def _now_serialized() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class ImportResult:
    imported: List[CatalogItem]
    imported_count: int
    skipped: int = 0
    messages: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "imported": [item.to_record() for item in self.imported],
            "importedCount": self.imported_count,
            "skipped": self.skipped,
            "messages": list(self.messages),
        }


@dataclass
class SourceFileGroup:
    file_name: Optional[str]
    count: int
    latest_import_date: Optional[str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "fileName": self.file_name,
            "count": self.count,
            "latestImportDate": self.latest_import_date,
        }


def resolve_alias(row: Mapping[str, Any], aliases: Sequence[str]) -> str:
    """Return the first non-empty value among ``aliases``, trimmed."""

    for alias in aliases:
        value = row.get(alias)
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return ""


def group_by_source_file(catalog: Iterable[CatalogItem]) -> List[SourceFileGroup]:
    groups: Dict[Optional[str], SourceFileGroup] = {}
    for item in catalog:
        group = groups.get(item.source_file)
        if group is None:
            group = SourceFileGroup(
                file_name=item.source_file, count=0, latest_import_date=None
            )
            groups[item.source_file] = group
        group.count += 1
        if item.import_date and (
            group.latest_import_date is None or item.import_date > group.latest_import_date
        ):
            group.latest_import_date = item.import_date
    return list(groups.values())


def delete_by_ids(catalog: Iterable[CatalogItem], ids: Iterable[str]) -> List[CatalogItem]:
    targets = set(ids)
    return [item for item in catalog if item.id not in targets]


def delete_by_source_files(
    catalog: Iterable[CatalogItem], file_names: Iterable[Optional[str]]
) -> List[CatalogItem]:
    targets = set(file_names)
    return [item for item in catalog if item.source_file not in targets]


class CatalogService:
    """Owns the catalog collection and persists it after every mutation."""

    def __init__(
        self,
        store: JsonStore,
        *,
        category_aliases: Sequence[str] = DEFAULT_CATEGORY_ALIASES,
        name_aliases: Sequence[str] = DEFAULT_NAME_ALIASES,
    ) -> None:
        self.store = store
        self.category_aliases = tuple(category_aliases)
        self.name_aliases = tuple(name_aliases)

    # public API ---------------------------------------------------------
    def list_items(self) -> List[CatalogItem]:
        with self.store.lock:
            return self._load_locked()

    def import_file(self, file_bytes: bytes, file_name: str) -> ImportResult:
        """Append the valid rows of ``file_name`` to the catalog.

        Structural problems abort the import before anything is written.
        Rows lacking a category or name are skipped and only counted.
        """

        header_labels, rows = read_first_sheet(file_bytes, file_name)
        present = set(header_labels)
        if not present.intersection(self.category_aliases) or not present.intersection(
            self.name_aliases
        ):
            raise ImportFileError(
                "No recognised category/name columns in header row"
            )
        if not rows:
            raise ImportFileError("File is empty or has an invalid structure")

        import_date = _now_serialized()
        imported: List[CatalogItem] = []
        messages: List[str] = []
        for index, row in enumerate(rows, start=2):
            category = resolve_alias(row, self.category_aliases)
            name = resolve_alias(row, self.name_aliases)
            if not category or not name:
                missing = [
                    label
                    for label, value in (("category", category), ("name", name))
                    if not value
                ]
                messages.append(f"Row {index}: missing {', '.join(missing)}, skipped")
                continue
            imported.append(
                CatalogItem(
                    id=new_identifier(),
                    category=category,
                    name=name,
                    source_file=file_name,
                    import_date=import_date,
                )
            )
        if imported:
            with self.store.lock:
                catalog = self._load_locked()
                catalog.extend(imported)
                self._save_locked(catalog)
        logger.info(
            "Imported %d catalog items from %s (%d skipped)",
            len(imported),
            file_name,
            len(messages),
        )
        return ImportResult(
            imported=imported,
            imported_count=len(imported),
            skipped=len(messages),
            messages=messages,
        )

    def group_by_source_file(self) -> List[SourceFileGroup]:
        return group_by_source_file(self.list_items())

    def delete_by_ids(self, ids: Iterable[str]) -> int:
        with self.store.lock:
            catalog = self._load_locked()
            remaining = delete_by_ids(catalog, ids)
            removed = len(catalog) - len(remaining)
            self._save_locked(remaining)
        logger.info("Deleted %d catalog items", removed)
        return removed

    def delete_by_source_files(self, file_names: Iterable[Optional[str]]) -> int:
        names = list(file_names)
        with self.store.lock:
            catalog = self._load_locked()
            remaining = delete_by_source_files(catalog, names)
            removed = len(catalog) - len(remaining)
            self._save_locked(remaining)
        logger.info("Deleted %d catalog items from files %s", removed, names)
        return removed

    def clear(self) -> int:
        with self.store.lock:
            removed = len(self._load_locked())
            self._save_locked([])
        logger.info("Cleared catalog (%d items)", removed)
        return removed

    def categories(self) -> List[str]:
        seen: Dict[str, None] = {}
        for item in self.list_items():
            seen.setdefault(item.category, None)
        return list(seen)

    def names(self, category: Optional[str] = None) -> List[str]:
        return [
            item.name
            for item in self.list_items()
            if not category or item.category == category
        ]

    # helpers ------------------------------------------------------------
    def _load_locked(self) -> List[CatalogItem]:
        items: List[CatalogItem] = []
        changed = False
        for record in self.store.load_list(StoreKeys.CATALOG):
            try:
                item = CatalogItem.from_record(record)
            except ValueError:
                changed = True
                continue
            if record.get("id") != item.id:
                # legacy entries were stored without ids
                changed = True
            items.append(item)
        if changed:
            self._save_locked(items)
        return items

    def _save_locked(self, catalog: Iterable[CatalogItem]) -> None:
        self.store.save(StoreKeys.CATALOG, [item.to_record() for item in catalog])


__all__ = [
    "CatalogService",
    "ImportResult",
    "SourceFileGroup",
    "delete_by_ids",
    "delete_by_source_files",
    "group_by_source_file",
    "resolve_alias",
]
