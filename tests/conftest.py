from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Iterator, List

import pytest

from school_inventory.app import create_app
from school_inventory.config import Settings
from school_inventory.registry import RegistryService
from school_inventory.storage import JsonStore


class _Job:
    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Collects delayed callbacks so tests decide when they fire."""

    def __init__(self) -> None:
        self.jobs: List[_Job] = []

    def schedule(self, delay: float, callback: Callable[[], None]) -> _Job:
        job = _Job(delay, callback)
        self.jobs.append(job)
        return job

    def run_all(self) -> int:
        jobs, self.jobs = self.jobs, []
        fired = 0
        for job in jobs:
            if job.cancelled:
                continue
            job.callback()
            fired += 1
        return fired


@pytest.fixture()
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture()
def store(tmp_path: Path) -> JsonStore:
    return JsonStore(tmp_path / "state.json")


@pytest.fixture()
def registry(store: JsonStore, scheduler: ManualScheduler) -> RegistryService:
    return RegistryService(store, sync_delay=2.0, scheduler=scheduler)


@pytest.fixture()
def settings() -> Settings:
    return Settings(environment="test", remote_export_delay=0, secret_key="test-secret")


@pytest.fixture()
def app(tmp_path: Path, settings: Settings, scheduler: ManualScheduler) -> Iterator[Any]:
    application = create_app(tmp_path / "state.json", settings, scheduler=scheduler)
    application.config.update(TESTING=True)
    yield application
    application.extensions["school_inventory"].close()


@pytest.fixture()
def client(app):
    return app.test_client()


def _register_and_confirm(client, email: str = "admin@school.org", password: str = "secret1") -> None:
    response = client.post(
        "/api/auth/register",
        json={
            "email": email,
            "password": password,
            "fullName": "Petrov P.P.",
            "organization": "School 7",
            "jobTitle": "Deputy director",
        },
    )
    assert response.status_code == 201
    response = client.post("/api/auth/confirm", json={"email": email})
    assert response.status_code == 200


@pytest.fixture()
def auth_client(client):
    _register_and_confirm(client)
    return client
