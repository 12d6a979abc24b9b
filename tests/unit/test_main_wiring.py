"""Test application wiring from settings to a running app."""

import pytest
from starlette.testclient import TestClient

from training_booking.core.config import Settings
from training_booking.core.enums import StoreBackend
from training_booking.core.errors import ConfigError
from training_booking.main import build_app, build_store
from training_booking.storage.memory_store import InMemoryRecordStore
from training_booking.storage.postgres.repos import SqlRecordStore


class TestBuildStore:
    def test_memory_backend(self):
        assert isinstance(build_store(Settings()), InMemoryRecordStore)

    def test_postgres_backend(self):
        store = build_store(Settings(store_backend=StoreBackend.POSTGRES))
        assert isinstance(store, SqlRecordStore)

    def test_invalid_postgres_url(self):
        settings = Settings(
            store_backend=StoreBackend.POSTGRES,
            database={"url": "mysql://u:p@localhost/db"},
        )
        with pytest.raises(ConfigError):
            build_store(settings)


class TestBuildApp:
    def test_seeded_app_serves_demo_data(self, clock):
        app = build_app(Settings(seed_demo_data=True), clock=clock)

        with TestClient(app) as client:
            booked = client.post("/api/trainings/1/book", params={"userId": 1})
            listing = client.get("/api/users/1/trainings")

        assert booked.status_code == 201
        assert booked.json()["training"]["title"] == "Spring Boot Masterclass"
        body = listing.json()
        assert body["userName"] == "Hardik Jaiswal"
        assert body["totalEnrollments"] == 1

    def test_unseeded_app_has_no_users(self):
        app = build_app(Settings())

        with TestClient(app) as client:
            resp = client.get("/api/users/1/trainings")

        assert resp.status_code == 404

    def test_booking_settings_reach_engine(self):
        app = build_app(Settings(booking={"max_attempts": 9}))
        assert app.state.engine._max_attempts == 9
