"""Hotel inventory Pydantic schemas."""
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Iterator, List, Optional
from datetime import datetime
from yatra.db.models import HotelType, ToiletType


GROUND_FLOOR_LABEL = "G"


def floor_level(label: str) -> int:
    """Numeric level for a floor label; the ground marker is level 0."""
    label = (label or "").strip()
    if label.upper() == GROUND_FLOOR_LABEL:
        return 0
    return int(label)


class Room(BaseModel):
    """A bookable room and its occupancy state."""
    room_number: str = Field(..., min_length=1, description="Room number, unique within its hotel")
    floor: int = Field(default=0, description="Floor level (0 = ground)")
    toilet_type: ToiletType = Field(default=ToiletType.WESTERN, description="Toilet type")
    number_of_beds: int = Field(default=1, gt=0, description="Beds in the room")
    charge_per_day: float = Field(default=0.0, ge=0, description="Charge per day in INR")
    occupied_by: Optional[str] = Field(None, description="Registration ID holding the room, None when free")

    @field_validator("room_number")
    @classmethod
    def strip_room_number(cls, value: str) -> str:
        return value.strip()

    @property
    def is_occupied(self) -> bool:
        return self.occupied_by is not None


class Floor(BaseModel):
    """A floor and its ordered rooms."""
    label: str = Field(..., description="Floor number or 'G' for ground")
    rooms: List[Room] = Field(default_factory=list)

    @field_validator("label")
    @classmethod
    def validate_label(cls, value: str) -> str:
        value = value.strip()
        if value.upper() == GROUND_FLOOR_LABEL:
            return GROUND_FLOOR_LABEL
        if not value.isdigit():
            raise ValueError(f"Floor label must be a number or '{GROUND_FLOOR_LABEL}', got {value!r}")
        return value

    @property
    def level(self) -> int:
        return floor_level(self.label)


class HotelBase(BaseModel):
    """Fields shared by hotel create and response schemas."""
    trip_id: Optional[str] = Field(None, description="Yatra the hotel is booked for")
    name: str = Field(..., min_length=1, description="Hotel name")
    address: Optional[str] = Field(None, description="Street address")
    map_link: Optional[str] = Field(None, description="Map URL")
    hotel_type: HotelType = Field(default=HotelType.A, description="Hotel category")
    manager_name: Optional[str] = Field(None, description="Hotel manager")
    manager_contact: Optional[str] = Field(None, description="Manager contact number")
    has_elevator: bool = Field(default=False, description="Whether the hotel has an elevator")
    check_in_time: Optional[str] = Field(None, description="Check-in time, HH:MM")
    check_out_time: Optional[str] = Field(None, description="Check-out time, HH:MM")
    number_of_days: Optional[int] = Field(None, description="Rental period in days")
    floors: List[Floor] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_unique_room_numbers(self):
        seen = set()
        for floor in self.floors:
            for room in floor.rooms:
                if room.room_number in seen:
                    raise ValueError(f"Duplicate room number {room.room_number} in hotel {self.name}")
                seen.add(room.room_number)
                room.floor = floor.level
        return self


class HotelCreate(HotelBase):
    """Schema for registering a hotel's inventory."""

    @model_validator(mode="after")
    def check_free_rooms(self):
        # New inventory always starts free; occupancy is written by the allocation engine only
        for room in self.iter_rooms():
            if room.occupied_by is not None:
                raise ValueError(f"Room {room.room_number} cannot be created occupied")
        return self

    def iter_rooms(self) -> Iterator[Room]:
        for floor in self.floors:
            yield from floor.rooms


class Hotel(HotelBase):
    """Canonical hotel snapshot with its full Floor -> Room tree."""
    id: str
    created_at: Optional[datetime] = None

    def iter_rooms(self) -> Iterator[Room]:
        for floor in self.floors:
            yield from floor.rooms

    @property
    def rooms(self) -> List[Room]:
        return list(self.iter_rooms())

    def find_room(self, room_number: str) -> Optional[Room]:
        room_number = (room_number or "").strip()
        for room in self.iter_rooms():
            if room.room_number == room_number:
                return room
        return None

    def rooms_held_by(self, registration_id: str) -> List[Room]:
        return [room for room in self.iter_rooms() if room.occupied_by == registration_id]

    def available_rooms(self) -> List[Room]:
        return [room for room in self.iter_rooms() if not room.is_occupied]
