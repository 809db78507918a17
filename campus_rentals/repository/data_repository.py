"""Repository layer responsible for all database access."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Iterable, Iterator, Optional, Sequence

from campus_rentals.domain.models import (
    RentalStatus,
    Room,
    RoomRental,
    RoomStatus,
    UserIdentity,
    UserRole,
)
from campus_rentals.utils.clock import from_storage, to_storage, utc_now
from campus_rentals.utils.config import Settings, get_settings
from campus_rentals.utils.logger import get_logger


logger = get_logger(__name__)


_ROOM_ORDERINGS = {
    "id": "r.id ASC",
    "name": "r.name COLLATE NOCASE ASC, r.id ASC",
    "newest": "r.created_at DESC, r.id DESC",
}

_RENTAL_ORDERINGS = {
    "id": "rr.id ASC",
    "start_time": "rr.start_time ASC, rr.id ASC",
    "newest": "rr.created_at DESC, rr.id DESC",
}


def _optional_datetime(value: Optional[str]) -> Optional[datetime]:
    return from_storage(value) if value is not None else None


def _optional_decimal(value: Optional[str]) -> Optional[Decimal]:
    return Decimal(value) if value is not None else None


def _decimal_to_storage(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


def _datetime_to_storage(value: Optional[datetime]) -> Optional[str]:
    return to_storage(value) if value is not None else None


def _split_amenities(value: Optional[str]) -> tuple[str, ...]:
    if not value:
        return ()
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _row_to_room(row: sqlite3.Row) -> Room:
    return Room(
        room_id=int(row["id"]),
        owner_id=int(row["owner_id"]),
        name=str(row["name"]),
        address=str(row["address"]),
        capacity=int(row["capacity"]),
        status=RoomStatus(row["status"]),
        created_at=from_storage(row["created_at"]),
        availability_start=_optional_datetime(row["availability_start"]),
        availability_end=_optional_datetime(row["availability_end"]),
        hourly_rate=_optional_decimal(row["hourly_rate"]),
        room_info=row["room_info"],
        amenities=_split_amenities(row["amenities"]),
        disabled_reason=row["disabled_reason"],
    )


def _row_to_rental(row: sqlite3.Row) -> RoomRental:
    expected_attendees = row["expected_attendees"]
    return RoomRental(
        rental_id=int(row["id"]),
        room_id=int(row["room_id"]),
        renter_id=int(row["renter_id"]),
        start_time=from_storage(row["start_time"]),
        end_time=from_storage(row["end_time"]),
        status=RentalStatus(row["status"]),
        created_at=from_storage(row["created_at"]),
        purpose=row["purpose"],
        expected_attendees=int(expected_attendees) if expected_attendees is not None else None,
        admin_notes=row["admin_notes"],
        total_cost=_optional_decimal(row["total_cost"]),
    )


class DataRepository:
    """Encapsulates SQLite access so business logic stays storage-agnostic.

    Every public method accepts an optional ``conn``. When given, the call
    joins that connection's open transaction; otherwise it runs on its own
    short-lived autocommit connection.
    """

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(
            self._db_path,
            timeout=self._settings.database_timeout_seconds,
            isolation_level=None,
            check_same_thread=False,
        )
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON;")
        return connection

    @contextmanager
    def _session(self, conn: Optional[sqlite3.Connection]) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        connection = self._connect()
        try:
            yield connection
        finally:
            connection.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Open a write-locked transaction; rolls back on any exception.

        ``BEGIN IMMEDIATE`` takes the database write lock up front, so a
        read-check-write sequence inside the block cannot interleave with
        another writer, including writers in other processes.
        """
        connection = self._connect()
        try:
            connection.execute("BEGIN IMMEDIATE;")
            try:
                yield connection
            except BaseException:
                connection.execute("ROLLBACK;")
                raise
            connection.execute("COMMIT;")
        finally:
            connection.close()

    def initialize_database(self) -> None:
        """Create all persistence artifacts before API startup."""
        try:
            with self._session(None) as conn:
                conn.executescript(
                    """
                    CREATE TABLE IF NOT EXISTS Users (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        name TEXT NOT NULL,
                        role TEXT NOT NULL CHECK (role IN ('STUDENT', 'ORGANIZER', 'ADMIN'))
                    );

                    CREATE TABLE IF NOT EXISTS Rooms (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        owner_id INTEGER NOT NULL,
                        name TEXT NOT NULL,
                        address TEXT NOT NULL,
                        room_info TEXT,
                        amenities TEXT NOT NULL DEFAULT '',
                        capacity INTEGER NOT NULL CHECK (capacity >= 1),
                        status TEXT NOT NULL DEFAULT 'ENABLED'
                            CHECK (status IN ('ENABLED', 'DISABLED')),
                        disabled_reason TEXT,
                        availability_start TEXT,
                        availability_end TEXT,
                        hourly_rate TEXT,
                        created_at TEXT NOT NULL
                    );

                    CREATE TABLE IF NOT EXISTS RoomRentals (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        room_id INTEGER NOT NULL,
                        renter_id INTEGER NOT NULL,
                        start_time TEXT NOT NULL,
                        end_time TEXT NOT NULL,
                        status TEXT NOT NULL DEFAULT 'PENDING'
                            CHECK (status IN ('PENDING', 'APPROVED', 'REJECTED', 'CANCELLED')),
                        purpose TEXT,
                        expected_attendees INTEGER,
                        admin_notes TEXT,
                        total_cost TEXT,
                        created_at TEXT NOT NULL,
                        CHECK (end_time > start_time),
                        FOREIGN KEY (room_id) REFERENCES Rooms(id) ON DELETE RESTRICT
                    );

                    CREATE INDEX IF NOT EXISTS idx_rooms_owner
                    ON Rooms(owner_id);

                    CREATE INDEX IF NOT EXISTS idx_rentals_room_status_start
                    ON RoomRentals(room_id, status, start_time);

                    CREATE INDEX IF NOT EXISTS idx_rentals_renter
                    ON RoomRentals(renter_id);
                    """
                )
            logger.info("Database initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Database initialization failed: {exc}") from exc

    def seed_demo_data(self, now: Optional[datetime] = None) -> None:
        """Seed a small deterministic catalog only when tables are empty."""
        reference = now or utc_now()
        try:
            with self.transaction() as conn:
                count = int(conn.execute("SELECT COUNT(*) AS count FROM Users;").fetchone()["count"])
                if count > 0:
                    logger.info("Demo data already present; skipping seed")
                    return

                admin_id = self.create_user("Campus Admin", UserRole.ADMIN, conn=conn)
                organizer_id = self.create_user("Events Office", UserRole.ORGANIZER, conn=conn)
                second_organizer_id = self.create_user("Student Union", UserRole.ORGANIZER, conn=conn)
                self.create_user("Alex Student", UserRole.STUDENT, conn=conn)
                self.create_user("Sam Student", UserRole.STUDENT, conn=conn)

                window_start = reference.replace(hour=0, minute=0, second=0, microsecond=0)
                rooms = [
                    (organizer_id, "Auditorium A", "Main Building, Floor 1", 120,
                     None, None, Decimal("45.00"), "projector,wifi,ac"),
                    (organizer_id, "Seminar Room 204", "Main Building, Floor 2", 30,
                     None, None, Decimal("15.00"), "whiteboard,wifi"),
                    (second_organizer_id, "Union Lounge", "Student Union Building", 60,
                     window_start + timedelta(days=1), window_start + timedelta(days=90),
                     None, "wifi"),
                    (second_organizer_id, "Study Pod 3", "Library, Level 3", 4,
                     None, None, None, "whiteboard"),
                ]
                for owner, name, address, capacity, start, end, rate, amenities in rooms:
                    self.insert_room(
                        owner_id=owner,
                        name=name,
                        address=address,
                        capacity=capacity,
                        created_at=reference,
                        availability_start=start,
                        availability_end=end,
                        hourly_rate=rate,
                        amenities=_split_amenities(amenities),
                        conn=conn,
                    )
            logger.info("Demo seed completed (admin user id %s)", admin_id)
        except sqlite3.Error as exc:
            raise RuntimeError(f"Demo data seeding failed: {exc}") from exc

    # ----- Users -----

    def create_user(
        self,
        name: str,
        role: UserRole,
        *,
        conn: Optional[sqlite3.Connection] = None,
    ) -> int:
        with self._session(conn) as c:
            cursor = c.execute(
                "INSERT INTO Users (name, role) VALUES (?, ?);",
                (name, role.value),
            )
            return int(cursor.lastrowid)

    def resolve_user(
        self,
        user_id: int,
        *,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[UserIdentity]:
        with self._session(conn) as c:
            row = c.execute(
                "SELECT id, name, role FROM Users WHERE id = ?;",
                (user_id,),
            ).fetchone()
            if row is None:
                return None
            return UserIdentity(
                user_id=int(row["id"]),
                name=str(row["name"]),
                role=UserRole(row["role"]),
            )

    # ----- Rooms -----

    def insert_room(
        self,
        *,
        owner_id: int,
        name: str,
        address: str,
        capacity: int,
        created_at: datetime,
        availability_start: Optional[datetime] = None,
        availability_end: Optional[datetime] = None,
        hourly_rate: Optional[Decimal] = None,
        room_info: Optional[str] = None,
        amenities: Sequence[str] = (),
        conn: Optional[sqlite3.Connection] = None,
    ) -> Room:
        with self._session(conn) as c:
            cursor = c.execute(
                """
                INSERT INTO Rooms (
                    owner_id,
                    name,
                    address,
                    room_info,
                    amenities,
                    capacity,
                    status,
                    availability_start,
                    availability_end,
                    hourly_rate,
                    created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, 'ENABLED', ?, ?, ?, ?);
                """,
                (
                    owner_id,
                    name,
                    address,
                    room_info,
                    ",".join(amenities),
                    capacity,
                    _datetime_to_storage(availability_start),
                    _datetime_to_storage(availability_end),
                    _decimal_to_storage(hourly_rate),
                    to_storage(created_at),
                ),
            )
            room = self.get_room(int(cursor.lastrowid), conn=c)
            if room is None:
                raise RuntimeError("Inserted room could not be read back")
            return room

    def get_room(
        self,
        room_id: int,
        *,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[Room]:
        with self._session(conn) as c:
            row = c.execute("SELECT * FROM Rooms AS r WHERE r.id = ?;", (room_id,)).fetchone()
            return _row_to_room(row) if row is not None else None

    def save_room_details(
        self,
        room: Room,
        *,
        conn: Optional[sqlite3.Connection] = None,
    ) -> None:
        """Persist editable room attributes; status is written separately."""
        with self._session(conn) as c:
            c.execute(
                """
                UPDATE Rooms
                SET name = ?,
                    address = ?,
                    room_info = ?,
                    amenities = ?,
                    capacity = ?,
                    availability_start = ?,
                    availability_end = ?,
                    hourly_rate = ?
                WHERE id = ?;
                """,
                (
                    room.name,
                    room.address,
                    room.room_info,
                    ",".join(room.amenities),
                    room.capacity,
                    _datetime_to_storage(room.availability_start),
                    _datetime_to_storage(room.availability_end),
                    _decimal_to_storage(room.hourly_rate),
                    room.room_id,
                ),
            )

    def set_room_status(
        self,
        room_id: int,
        status: RoomStatus,
        disabled_reason: Optional[str],
        *,
        conn: Optional[sqlite3.Connection] = None,
    ) -> None:
        with self._session(conn) as c:
            c.execute(
                "UPDATE Rooms SET status = ?, disabled_reason = ? WHERE id = ?;",
                (status.value, disabled_reason, room_id),
            )

    def list_rooms(
        self,
        *,
        status: Optional[RoomStatus] = None,
        owner_id: Optional[int] = None,
        min_capacity: Optional[int] = None,
        order_by: str = "id",
        conn: Optional[sqlite3.Connection] = None,
    ) -> list[Room]:
        clauses: list[str] = []
        params: list[object] = []
        if status is not None:
            clauses.append("r.status = ?")
            params.append(status.value)
        if owner_id is not None:
            clauses.append("r.owner_id = ?")
            params.append(owner_id)
        if min_capacity is not None:
            clauses.append("r.capacity >= ?")
            params.append(min_capacity)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._session(conn) as c:
            rows = c.execute(
                f"SELECT * FROM Rooms AS r {where} ORDER BY {_ROOM_ORDERINGS[order_by]};",
                tuple(params),
            ).fetchall()
            return [_row_to_room(row) for row in rows]

    def count_rooms(self) -> int:
        with self._session(None) as c:
            return int(c.execute("SELECT COUNT(*) AS count FROM Rooms;").fetchone()["count"])

    # ----- Rentals -----

    def insert_rental(
        self,
        *,
        room_id: int,
        renter_id: int,
        start_time: datetime,
        end_time: datetime,
        created_at: datetime,
        purpose: Optional[str] = None,
        expected_attendees: Optional[int] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> RoomRental:
        with self._session(conn) as c:
            cursor = c.execute(
                """
                INSERT INTO RoomRentals (
                    room_id,
                    renter_id,
                    start_time,
                    end_time,
                    status,
                    purpose,
                    expected_attendees,
                    created_at
                )
                VALUES (?, ?, ?, ?, 'PENDING', ?, ?, ?);
                """,
                (
                    room_id,
                    renter_id,
                    to_storage(start_time),
                    to_storage(end_time),
                    purpose,
                    expected_attendees,
                    to_storage(created_at),
                ),
            )
            rental = self.get_rental(int(cursor.lastrowid), conn=c)
            if rental is None:
                raise RuntimeError("Inserted rental could not be read back")
            return rental

    def get_rental(
        self,
        rental_id: int,
        *,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[RoomRental]:
        with self._session(conn) as c:
            row = c.execute(
                "SELECT * FROM RoomRentals AS rr WHERE rr.id = ?;",
                (rental_id,),
            ).fetchone()
            return _row_to_rental(row) if row is not None else None

    def list_rentals(
        self,
        *,
        room_id: Optional[int] = None,
        renter_id: Optional[int] = None,
        owner_id: Optional[int] = None,
        statuses: Optional[Iterable[RentalStatus]] = None,
        overlapping: Optional[tuple[datetime, datetime]] = None,
        order_by: str = "id",
        conn: Optional[sqlite3.Connection] = None,
    ) -> list[RoomRental]:
        clauses: list[str] = []
        params: list[object] = []
        if room_id is not None:
            clauses.append("rr.room_id = ?")
            params.append(room_id)
        if renter_id is not None:
            clauses.append("rr.renter_id = ?")
            params.append(renter_id)
        if owner_id is not None:
            clauses.append("r.owner_id = ?")
            params.append(owner_id)
        if statuses is not None:
            status_values = [status.value for status in statuses]
            if not status_values:
                return []
            placeholders = ",".join("?" for _ in status_values)
            clauses.append(f"rr.status IN ({placeholders})")
            params.extend(status_values)
        if overlapping is not None:
            # Narrowing only; callers still run the conflict detector on the result.
            window_start, window_end = overlapping
            clauses.append("rr.start_time < ? AND rr.end_time > ?")
            params.extend([to_storage(window_end), to_storage(window_start)])
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._session(conn) as c:
            rows = c.execute(
                f"""
                SELECT rr.*
                FROM RoomRentals AS rr
                INNER JOIN Rooms AS r ON r.id = rr.room_id
                {where}
                ORDER BY {_RENTAL_ORDERINGS[order_by]};
                """,
                tuple(params),
            ).fetchall()
            return [_row_to_rental(row) for row in rows]

    def update_rental_status(
        self,
        rental_id: int,
        status: RentalStatus,
        *,
        admin_notes: Optional[str] = None,
        total_cost: Optional[Decimal] = None,
        conn: Optional[sqlite3.Connection] = None,
    ) -> None:
        """Write a status change; notes and cost are only overwritten when given."""
        with self._session(conn) as c:
            c.execute(
                """
                UPDATE RoomRentals
                SET status = ?,
                    admin_notes = COALESCE(?, admin_notes),
                    total_cost = COALESCE(?, total_cost)
                WHERE id = ?;
                """,
                (
                    status.value,
                    admin_notes,
                    _decimal_to_storage(total_cost),
                    rental_id,
                ),
            )

    def count_rentals(self, status: Optional[RentalStatus] = None) -> int:
        with self._session(None) as c:
            if status is None:
                row = c.execute("SELECT COUNT(*) AS count FROM RoomRentals;").fetchone()
            else:
                row = c.execute(
                    "SELECT COUNT(*) AS count FROM RoomRentals WHERE status = ?;",
                    (status.value,),
                ).fetchone()
            return int(row["count"])
