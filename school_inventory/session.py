"""Top-level application session owning every collection and UI state."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional

from .accounts import AccountService
from .analysis import ImageAnalyzer
from .catalog import CatalogService
from .config import Settings
from .models import User
from .registry import RegistryService, Scheduler
from .selection import Selection
from .storage import JsonStore
from .views import ViewRouter

logger = logging.getLogger(__name__)

SELECTION_SCOPES = ("records", "catalog_items", "catalog_files")


class AppSession:
    """Wires the store and services together and hydrates the session user."""

    def __init__(
        self,
        settings: Settings,
        *,
        storage_path: Optional[Path] = None,
        scheduler: Optional[Scheduler] = None,
    ) -> None:
        self.settings = settings
        self.store = JsonStore(Path(storage_path or settings.storage_path))
        self.registry = RegistryService(
            self.store, sync_delay=settings.sync_delay, scheduler=scheduler
        )
        self.catalog = CatalogService(
            self.store,
            category_aliases=settings.category_aliases,
            name_aliases=settings.name_aliases,
        )
        self.accounts = AccountService(
            self.store,
            self.registry,
            min_password_length=settings.min_password_length,
        )
        self.analyzer = ImageAnalyzer(
            settings.analysis_api_key,
            model=settings.analysis_model,
            endpoint=settings.analysis_endpoint,
            timeout=settings.analysis_timeout,
        )
        self.router = ViewRouter()
        self.selections: Dict[str, Selection] = {
            scope: Selection() for scope in SELECTION_SCOPES
        }
        self.user: Optional[User] = self.accounts.current_user()
        if self.user is not None:
            logger.info("Restored session for %s", self.user.email)

    def selection(self, scope: str) -> Selection:
        if scope not in self.selections:
            raise KeyError(f"Unknown selection scope '{scope}'")
        return self.selections[scope]

    def displayed_ids(self, scope: str) -> List[str]:
        if scope == "records":
            return [record.id for record in self.registry.list_records()]
        if scope == "catalog_items":
            return [item.id for item in self.catalog.list_items()]
        if scope == "catalog_files":
            return [
                group.file_name
                for group in self.catalog.group_by_source_file()
                if group.file_name is not None
            ]
        raise KeyError(f"Unknown selection scope '{scope}'")

    def prune_selections(self) -> None:
        """Drop selected ids whose entities no longer exist."""

        for scope, selection in self.selections.items():
            selection.retain(self.displayed_ids(scope))

    def sign_in(self, user: User) -> None:
        self.user = user
        self.router.reset()

    def sign_out(self) -> None:
        self.accounts.logout()
        self.user = None
        self.router.reset()
        for selection in self.selections.values():
            selection.clear()

    def close(self) -> None:
        cancelled = self.registry.cancel_pending()
        if cancelled:
            logger.info("Cancelled %d pending sync updates", cancelled)


__all__ = ["AppSession", "SELECTION_SCOPES"]
