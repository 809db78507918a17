#!/usr/bin/env python3
"""Validate local rental engine environment readiness."""

from __future__ import annotations

import importlib
import shutil
import sys
import tempfile
from dataclasses import replace
from datetime import timedelta
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from campus_rentals.domain.errors import ConflictError
from campus_rentals.domain.models import RentalStatus, UserRole
from campus_rentals.repository.data_repository import DataRepository
from campus_rentals.services.rental_service import RentalService
from campus_rentals.services.room_service import RoomService
from campus_rentals.utils.clock import utc_now
from campus_rentals.utils.config import get_settings

SEPARATOR_LINE = "=" * 44
EXPECTED_DEMO_ROOMS = 4


def _print_result(name: str, success: bool, detail: str = "") -> tuple[bool, str]:
    if success:
        return True, f"[PASS] {name}{detail}"
    return False, f"[FAIL] {name}: {detail}"


def main() -> int:
    results: list[str] = []
    all_passed = True
    temp_dir = tempfile.mkdtemp(prefix="campus-rentals-env-")

    # CHECK 1: Python version >= 3.11
    if sys.version_info >= (3, 11):
        ok, line = _print_result("Python " + sys.version.split()[0], True)
    else:
        ok, line = _print_result(
            "Python version >= 3.11",
            False,
            f"found {sys.version.split()[0]}",
        )
    results.append(line)
    all_passed = all_passed and ok

    # CHECK 2: Required packages importable with versions
    package_specs = [
        ("fastapi", "fastapi"),
        ("uvicorn", "uvicorn"),
        ("pydantic", "pydantic"),
        ("httpx", "httpx"),
        ("pytest", "pytest"),
    ]
    import_errors: list[str] = []
    from importlib.metadata import PackageNotFoundError, version

    for module_name, dist_name in package_specs:
        try:
            importlib.import_module(module_name)
            version(dist_name)
        except (ImportError, PackageNotFoundError) as exc:
            import_errors.append(f"{module_name} ({exc})")
    if import_errors:
        ok, line = _print_result(
            "Required packages",
            False,
            "missing/unimportable -> " + "; ".join(import_errors),
        )
    else:
        ok, line = _print_result("Required packages: all importable", True)
    results.append(line)
    all_passed = all_passed and ok

    try:
        validation_settings = replace(
            get_settings(),
            database_path=Path(temp_dir) / "validation.db",
        )
        repository = DataRepository(validation_settings)

        # CHECK 3: Database initialization
        try:
            repository.initialize_database()
            ok, line = _print_result("Database initialization", True)
        except RuntimeError as exc:
            ok, line = _print_result("Database initialization", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 4: Demo catalog seeding
        try:
            repository.seed_demo_data()
            room_count = repository.count_rooms()
            if room_count != EXPECTED_DEMO_ROOMS:
                raise RuntimeError(f"expected {EXPECTED_DEMO_ROOMS} rooms, got {room_count}")
            ok, line = _print_result(f"Demo catalog: {room_count} rooms", True)
        except RuntimeError as exc:
            ok, line = _print_result("Demo catalog", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

        # CHECK 5: Request, approve, and conflict round trip
        try:
            room_service = RoomService(repository=repository, settings=validation_settings)
            rental_service = RentalService(repository=repository, settings=validation_settings)
            organizer_id = repository.create_user("Validation Organizer", UserRole.ORGANIZER)
            renter_id = repository.create_user("Validation Renter", UserRole.STUDENT)
            room = room_service.create_room(organizer_id, "Validation Room", "Nowhere", 10)

            start = utc_now() + timedelta(days=1)
            first = rental_service.request_rental(room.room_id, renter_id, start, start + timedelta(hours=2))
            second = rental_service.request_rental(room.room_id, renter_id, start, start + timedelta(hours=1))
            approved = rental_service.approve_rental(first.rental_id, organizer_id)
            if approved.status is not RentalStatus.APPROVED:
                raise RuntimeError("first rental was not approved")
            try:
                rental_service.approve_rental(second.rental_id, organizer_id)
            except ConflictError:
                pass
            else:
                raise RuntimeError("overlapping approval was not refused")
            ok, line = _print_result("Booking round trip", True)
        except Exception as exc:
            ok, line = _print_result("Booking round trip", False, str(exc))
        results.append(line)
        all_passed = all_passed and ok

    finally:
        shutil.rmtree(temp_dir, ignore_errors=True)

    print(SEPARATOR_LINE)
    print(" Campus Room Rentals Environment Validation")
    print(SEPARATOR_LINE)
    for line in results:
        print(f" {line}")
    print(SEPARATOR_LINE)
    if all_passed:
        print(" All checks passed. Environment is ready.")
        print(SEPARATOR_LINE)
        return 0
    print(" One or more checks failed.")
    print(SEPARATOR_LINE)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
