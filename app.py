"""
app.py: FastAPI application factory and startup lifecycle.

This is the ASGI application object imported by uvicorn.
It wires the rental engine services, registers routers, and runs startup
initialization.

Usage (via launcher):
    python main.py

Usage (direct uvicorn):
    uvicorn app:app --reload
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from campus_rentals.controllers.auth_controller import router as auth_router
from campus_rentals.controllers.rentals_controller import router as rentals_router
from campus_rentals.controllers.rooms_controller import router as rooms_router
from campus_rentals.repository.data_repository import DataRepository
from campus_rentals.services.auth_service import AuthService
from campus_rentals.services.availability_service import AvailabilityService
from campus_rentals.services.rental_service import RentalService
from campus_rentals.services.room_service import RoomService
from campus_rentals.utils.config import Settings, get_settings
from campus_rentals.utils.locks import RoomLockArena
from campus_rentals.utils.logger import get_logger


logger = get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build and wire the FastAPI application.

    Instantiates all services with explicit dependency injection via app.state.
    Room and rental services share one lock arena so that status changes on
    the same room are serialized no matter which service performs them.
    """
    settings = settings or get_settings()

    # --- Repository (SQLite connection factory, also the identity resolver) ---
    repository = DataRepository(settings)
    locks = RoomLockArena()

    # --- Services (business logic, no direct DB access) ---
    room_service = RoomService(
        repository=repository,
        settings=settings,
        locks=locks,
    )
    rental_service = RentalService(
        repository=repository,
        settings=settings,
        locks=locks,
    )
    availability_service = AvailabilityService(
        repository=repository,
        settings=settings,
    )
    auth_service = AuthService(settings=settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Run startup initialization before accepting requests."""
        _startup(app, settings)
        yield

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    # --- Routers ---
    app.include_router(auth_router)
    app.include_router(rooms_router)
    app.include_router(rentals_router)

    # --- Inject services into app.state for dependency resolution ---
    app.state.repository = repository
    app.state.room_service = room_service
    app.state.rental_service = rental_service
    app.state.availability_service = availability_service
    app.state.auth_service = auth_service

    return app


def _startup(app: FastAPI, settings: Settings) -> None:
    """
    Idempotent startup sequence. Safe to re-run on server restarts.

    Schema must exist before the optional demo catalog is seeded.
    """
    repository: DataRepository = app.state.repository

    logger.info("Startup: initializing database schema")
    repository.initialize_database()

    if settings.seed_demo_data:
        logger.info("Startup: seeding demo users and rooms (skipped if Users table not empty)")
        repository.seed_demo_data()

    logger.info("Startup complete: system ready")


# Module-level app object for uvicorn
app = create_app()
