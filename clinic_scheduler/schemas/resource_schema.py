"""Schedulable resources (doctors and rooms) and their pricing profiles."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ResourceKind(str, Enum):
    DOCTOR = "doctor"
    ROOM = "room"


@dataclass(frozen=True)
class Resource:
    """
    Identifies one schedulable timeline.

    A doctor and a room never share a timeline, even with equal ids.
    """
    kind: ResourceKind
    resource_id: str

    @classmethod
    def doctor(cls, resource_id: str) -> "Resource":
        return cls(ResourceKind.DOCTOR, resource_id)

    @classmethod
    def room(cls, resource_id: str) -> "Resource":
        return cls(ResourceKind.ROOM, resource_id)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.resource_id}"


class DoctorProfile(BaseModel):
    """Doctor record as kept by the backend."""
    id: str
    full_name: str
    consultation_fee: Decimal = Decimal("0")
    consultation_fee_virtual: Optional[Decimal] = None


class Room(BaseModel):
    """Consulting room that can be rented or assigned to appointments."""
    id: str
    name: str
    hourly_rate: Optional[Decimal] = None
    is_active: bool = True
