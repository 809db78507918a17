"""Domain models for rooms, rentals and the identities acting on them."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Protocol


class RoomStatus(str, Enum):
    ENABLED = "ENABLED"
    DISABLED = "DISABLED"


class RentalStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class UserRole(str, Enum):
    STUDENT = "STUDENT"
    ORGANIZER = "ORGANIZER"
    ADMIN = "ADMIN"


@dataclass(frozen=True)
class UserIdentity:
    user_id: int
    name: str
    role: UserRole


class UserResolver(Protocol):
    """Identity collaborator consulted once per authorization decision."""

    def resolve_user(self, user_id: int) -> Optional[UserIdentity]:
        ...


@dataclass(frozen=True)
class Room:
    room_id: int
    owner_id: int
    name: str
    address: str
    capacity: int
    status: RoomStatus
    created_at: datetime
    availability_start: Optional[datetime] = None
    availability_end: Optional[datetime] = None
    hourly_rate: Optional[Decimal] = None
    room_info: Optional[str] = None
    amenities: tuple[str, ...] = field(default_factory=tuple)
    disabled_reason: Optional[str] = None

    @property
    def is_enabled(self) -> bool:
        return self.status is RoomStatus.ENABLED

    def accepts_interval(self, start_time: datetime, end_time: datetime) -> bool:
        if self.availability_start is not None and start_time < self.availability_start:
            return False
        if self.availability_end is not None and end_time > self.availability_end:
            return False
        return True


@dataclass(frozen=True)
class RoomRental:
    rental_id: int
    room_id: int
    renter_id: int
    start_time: datetime
    end_time: datetime
    status: RentalStatus
    created_at: datetime
    purpose: Optional[str] = None
    expected_attendees: Optional[int] = None
    admin_notes: Optional[str] = None
    total_cost: Optional[Decimal] = None

    @property
    def is_binding(self) -> bool:
        return self.status is RentalStatus.APPROVED

    @property
    def duration_hours(self) -> Decimal:
        seconds = Decimal(str((self.end_time - self.start_time).total_seconds()))
        return seconds / Decimal(3600)
