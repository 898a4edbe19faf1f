"""School inventory package."""
from __future__ import annotations

from .models import CatalogItem, InventoryRecord, ItemStatus, User
from .selection import Selection

__all__ = [
    "create_app",
    "CatalogItem",
    "InventoryRecord",
    "ItemStatus",
    "Selection",
    "User",
]


def create_app(*args, **kwargs):
    from .app import create_app as _create_app

    return _create_app(*args, **kwargs)
