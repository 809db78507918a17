"""Error taxonomy shared by every rental engine operation."""

from __future__ import annotations

from enum import Enum
from typing import ClassVar


class ErrorKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    INVALID = "INVALID"
    FORBIDDEN = "FORBIDDEN"
    CONFLICT = "CONFLICT"


class RentalError(Exception):
    """Base failure carrying a stable kind and a user-facing reason.

    None of these indicate corrupted state; the operation that raised left
    previously stored data untouched.
    """

    kind: ClassVar[ErrorKind]

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class NotFoundError(RentalError):
    """Referenced room, rental or user does not exist."""

    kind = ErrorKind.NOT_FOUND


class InvalidRequestError(RentalError):
    """Malformed or out-of-policy input, including wrong lifecycle state."""

    kind = ErrorKind.INVALID


class ForbiddenError(RentalError):
    """Actor is not allowed to perform the operation."""

    kind = ErrorKind.FORBIDDEN


class ConflictError(RentalError):
    """Requested interval overlaps a binding booking."""

    kind = ErrorKind.CONFLICT
