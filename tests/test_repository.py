from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from campus_rentals.domain.models import UserRole
from campus_rentals.repository.data_repository import DataRepository
from campus_rentals.utils.config import get_settings


NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _build_test_settings(tmp_path, filename: str):
    get_settings.cache_clear()
    return replace(get_settings(), database_path=tmp_path / filename, seed_demo_data=False)


def _build_repository(tmp_path) -> DataRepository:
    repository = DataRepository(_build_test_settings(tmp_path, "repository.db"))
    repository.initialize_database()
    return repository


def test_insert_room_fails_loudly_when_row_cannot_be_read_back(tmp_path, monkeypatch):
    repository = _build_repository(tmp_path)
    monkeypatch.setattr(repository, "get_room", lambda *args, **kwargs: None)

    with pytest.raises(RuntimeError, match="Inserted room"):
        repository.insert_room(
            owner_id=1,
            name="Hall",
            address="A",
            capacity=10,
            created_at=NOW,
        )


def test_insert_rental_fails_loudly_when_row_cannot_be_read_back(tmp_path, monkeypatch):
    repository = _build_repository(tmp_path)
    room = repository.insert_room(owner_id=1, name="Hall", address="A", capacity=10, created_at=NOW)
    monkeypatch.setattr(repository, "get_rental", lambda *args, **kwargs: None)

    with pytest.raises(RuntimeError, match="Inserted rental"):
        repository.insert_rental(
            room_id=room.room_id,
            renter_id=2,
            start_time=NOW + timedelta(hours=1),
            end_time=NOW + timedelta(hours=2),
            created_at=NOW,
        )


def test_seed_runs_once(tmp_path):
    repository = _build_repository(tmp_path)

    repository.seed_demo_data(now=NOW)
    repository.seed_demo_data(now=NOW)

    assert repository.count_rooms() == 4
    admin = repository.resolve_user(1)
    assert admin is not None
    assert admin.role is UserRole.ADMIN
    assert repository.resolve_user(999) is None
