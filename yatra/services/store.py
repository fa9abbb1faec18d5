"""Store interface consumed by the allocation engine, and its in-memory implementation."""
from abc import ABC, abstractmethod
from datetime import datetime
from threading import RLock
from typing import Dict, List, Optional, Union
import uuid
from yatra.db.models import RoomStatus
from yatra.schemas.allocation import Changeset
from yatra.schemas.inventory import Hotel, HotelCreate
from yatra.schemas.registration import Registration, RegistrationCreate


class StoreCommitError(Exception):
    """Raised when a changeset cannot be applied; nothing from it was written."""


class AllocationStore(ABC):
    """
    Canonical store of hotels and registrations.

    Reads return detached snapshots. ``apply`` is the only write path for
    existing records and must apply a changeset completely or not at all.
    """

    @abstractmethod
    def get_hotel(self, hotel_id: str) -> Optional[Hotel]:
        ...

    @abstractmethod
    def list_hotels(self, trip_id: Optional[str] = None) -> List[Hotel]:
        ...

    @abstractmethod
    def add_hotel(self, hotel: Union[HotelCreate, Hotel]) -> Hotel:
        ...

    @abstractmethod
    def get_registration(self, registration_id: str) -> Optional[Registration]:
        ...

    @abstractmethod
    def list_registrations(
        self,
        trip_id: Optional[str] = None,
        room_status: Optional[RoomStatus] = None
    ) -> List[Registration]:
        ...

    @abstractmethod
    def add_registration(self, registration: Union[RegistrationCreate, Registration]) -> Registration:
        ...

    @abstractmethod
    def apply(self, changeset: Changeset) -> None:
        """
        Apply a changeset atomically.

        Every room change is compare-and-set on its expected occupant.

        Raises:
            StoreCommitError: a referenced record is missing or a room's
                occupant differs from the expected one
        """


class InMemoryAllocationStore(AllocationStore):
    """Thread-safe in-memory store, for tests and embedding."""

    def __init__(self):
        self._lock = RLock()
        self._hotels: Dict[str, Hotel] = {}
        self._registrations: Dict[str, Registration] = {}

    def get_hotel(self, hotel_id: str) -> Optional[Hotel]:
        with self._lock:
            hotel = self._hotels.get(hotel_id)
            return hotel.model_copy(deep=True) if hotel else None

    def list_hotels(self, trip_id: Optional[str] = None) -> List[Hotel]:
        with self._lock:
            return [
                hotel.model_copy(deep=True)
                for hotel in self._hotels.values()
                if trip_id is None or hotel.trip_id == trip_id
            ]

    def add_hotel(self, hotel: Union[HotelCreate, Hotel]) -> Hotel:
        data = hotel.model_dump()
        data.setdefault("id", str(uuid.uuid4()))
        data["created_at"] = data.get("created_at") or datetime.utcnow()
        stored = Hotel.model_validate(data)
        with self._lock:
            if stored.id in self._hotels:
                raise ValueError(f"Hotel {stored.id} already exists")
            self._hotels[stored.id] = stored
            return stored.model_copy(deep=True)

    def get_registration(self, registration_id: str) -> Optional[Registration]:
        with self._lock:
            registration = self._registrations.get(registration_id)
            return registration.model_copy(deep=True) if registration else None

    def list_registrations(
        self,
        trip_id: Optional[str] = None,
        room_status: Optional[RoomStatus] = None
    ) -> List[Registration]:
        with self._lock:
            return [
                registration.model_copy(deep=True)
                for registration in self._registrations.values()
                if (trip_id is None or registration.trip_id == trip_id)
                and (room_status is None or registration.room_status == room_status)
            ]

    def add_registration(self, registration: Union[RegistrationCreate, Registration]) -> Registration:
        data = registration.model_dump()
        data.setdefault("id", str(uuid.uuid4()))
        data["created_at"] = data.get("created_at") or datetime.utcnow()
        stored = Registration.model_validate(data)
        with self._lock:
            if stored.id in self._registrations:
                raise ValueError(f"Registration {stored.id} already exists")
            self._registrations[stored.id] = stored
            return stored.model_copy(deep=True)

    def apply(self, changeset: Changeset) -> None:
        with self._lock:
            if changeset.registration_id not in self._registrations:
                raise StoreCommitError(f"Registration {changeset.registration_id} does not exist")

            # Work on copies and swap them in only once every change has validated
            staged: Dict[str, Hotel] = {}
            for change in changeset.rooms:
                if change.hotel_id not in staged:
                    if change.hotel_id not in self._hotels:
                        raise StoreCommitError(f"Hotel {change.hotel_id} does not exist")
                    staged[change.hotel_id] = self._hotels[change.hotel_id].model_copy(deep=True)
                room = staged[change.hotel_id].find_room(change.room_number)
                if room is None:
                    raise StoreCommitError(f"Room {change.room_number} does not exist in hotel {change.hotel_id}")
                if room.occupied_by != change.expected_occupant:
                    raise StoreCommitError(
                        f"Room {change.room_number} is held by {room.occupied_by!r}, "
                        f"expected {change.expected_occupant!r}"
                    )
                room.occupied_by = change.new_occupant

            self._hotels.update(staged)
            self._registrations[changeset.registration_id] = changeset.registration.model_copy(deep=True)
