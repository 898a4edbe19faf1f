import pytest

from school_inventory.errors import AuthRequired
from school_inventory.models import User
from school_inventory.views import VIEW_TITLES, View, ViewRouter


def _user(verified: bool = True) -> User:
    return User(
        email="teacher@school.org",
        full_name="Teacher",
        organization="School",
        job_title="Teacher",
        password_hash="",
        is_verified=verified,
    )


def test_router_starts_on_welcome() -> None:
    router = ViewRouter()
    assert router.current is View.WELCOME
    assert router.title == "Главная"


def test_every_view_is_reachable_from_every_other() -> None:
    router = ViewRouter()
    user = _user()
    for source in View:
        for target in View:
            router.navigate(source, user)
            assert router.navigate(target.value, user) is target
            assert router.current is target


def test_navigation_requires_verified_user() -> None:
    router = ViewRouter()
    with pytest.raises(AuthRequired):
        router.navigate(View.STATS, None)
    with pytest.raises(AuthRequired):
        router.navigate(View.STATS, _user(verified=False))
    assert router.current is View.WELCOME


def test_unknown_view() -> None:
    with pytest.raises(KeyError):
        ViewRouter().navigate("settings", _user())


def test_reset_returns_to_welcome() -> None:
    router = ViewRouter()
    router.navigate(View.IMPORT, _user())
    assert router.title == VIEW_TITLES[View.IMPORT]
    router.reset()
    assert router.current is View.WELCOME
