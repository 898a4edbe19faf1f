"""Named views of the application and navigation between them."""
from __future__ import annotations

import enum
from typing import Dict, Optional

from .errors import AuthRequired
from .models import User


class View(str, enum.Enum):
    WELCOME = "welcome"
    PROFILE = "profile"
    STATS = "stats"
    REGISTRY = "registry"
    ADD = "add"
    IMPORT = "import"


VIEW_TITLES: Dict[View, str] = {
    View.WELCOME: "Главная",
    View.PROFILE: "Личный кабинет",
    View.STATS: "Статистика",
    View.REGISTRY: "Реестр имущества",
    View.ADD: "Новая инвентаризация",
    View.IMPORT: "Импорт номенклатуры",
}


class ViewRouter:
    """Selects the active view; every view is reachable from every other one."""

    def __init__(self) -> None:
        self.current = View.WELCOME

    def navigate(self, view: "View | str", user: Optional[User]) -> View:
        if user is None or not user.is_verified:
            raise AuthRequired("Sign in with a verified account first")
        try:
            target = View(view)
        except ValueError as exc:
            raise KeyError(f"Unknown view '{view}'") from exc
        self.current = target
        return target

    def reset(self) -> None:
        self.current = View.WELCOME

    @property
    def title(self) -> str:
        return VIEW_TITLES[self.current]


__all__ = ["View", "ViewRouter", "VIEW_TITLES"]
