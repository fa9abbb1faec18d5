"""Room allocation engine."""
import logging
from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Optional, Tuple
from yatra.db.models import RoomStatus
from yatra.schemas.allocation import (
    Changeset, DraftAllocation, FailureKind, OperationResult, RoomOccupancyChange, parse_bed_key,
)
from yatra.schemas.inventory import Hotel
from yatra.schemas.registration import Registration
from yatra.services.locking import KeyedLockRegistry, get_lock_registry, hotel_key, registration_key
from yatra.services.store import AllocationStore, StoreCommitError


logger = logging.getLogger(__name__)


class InventoryCorruptionError(RuntimeError):
    """A registration and the inventory disagree about which rooms it holds."""


class AllocationEngine:
    """
    Assigns, reassigns and releases rooms for registrations.

    The engine is the only writer of room occupancy. Every operation reads,
    validates and commits one changeset while holding the locks of the
    registration and of every hotel it touches, so a room and the
    registration holding it are never observed half-updated.

    Business-rule refusals come back as failed ``OperationResult`` values;
    only programmer errors (blank identifiers, corrupt inventory) raise.
    """

    def __init__(self, store: AllocationStore, locks: Optional[KeyedLockRegistry] = None):
        self.store = store
        self.locks = locks or get_lock_registry()

    # Public operations

    def assign(self, registration_id: str, room_number: str, hotel_id: Optional[str] = None) -> OperationResult:
        """
        Assign a free room to a registration that holds none.

        Args:
            registration_id: Registration to house
            room_number: Target room number
            hotel_id: Hotel of the room; may be omitted when the number is
                unique across the registration's yatra

        Returns:
            OperationResult carrying the updated registration and changeset
        """
        _require_id(registration_id, "registration_id")
        _require_id(room_number, "room_number")
        room_number = room_number.strip()

        registration = self.store.get_registration(registration_id)
        refusal = self._check_assignable(registration, room_number, hotel_id, "assign")
        if refusal:
            return refusal

        target_hotel_id, refusal = self._resolve_hotel(registration, room_number, hotel_id, "assign")
        if refusal:
            return refusal

        return self._run_locked(
            registration_id,
            [target_hotel_id],
            lambda current: self._assign_locked(current, target_hotel_id, room_number),
        )

    def reassign(self, registration_id: str, new_room_number: str, hotel_id: Optional[str] = None) -> OperationResult:
        """
        Move a registration to another room in one atomic step.

        Every room the registration holds is freed and the new room occupied
        in the same changeset. Reassigning to the current primary room is a
        no-op success; a registration holding no room is simply assigned.
        """
        _require_id(registration_id, "registration_id")
        _require_id(new_room_number, "new_room_number")
        new_room_number = new_room_number.strip()

        registration = self.store.get_registration(registration_id)
        if registration is None:
            return self._refuse("reassign", registration_id, FailureKind.REGISTRATION_NOT_FOUND)
        if registration.is_cancelled:
            return self._refuse(
                "reassign", registration_id, FailureKind.REGISTRATION_NOT_ELIGIBLE, "The registration is cancelled."
            )

        target_hotel_id, refusal = self._resolve_hotel(registration, new_room_number, hotel_id, "reassign")
        if refusal:
            return refusal

        return self._run_locked(
            registration_id,
            [target_hotel_id],
            lambda current: self._reassign_locked(current, target_hotel_id, new_room_number),
        )

    def unassign(self, registration_id: str) -> OperationResult:
        """
        Release every room a registration holds.

        Idempotent: a registration already pending allotment returns success
        without writing anything.
        """
        _require_id(registration_id, "registration_id")

        registration = self.store.get_registration(registration_id)
        if registration is None:
            return self._refuse("unassign", registration_id, FailureKind.REGISTRATION_NOT_FOUND)
        if not registration.is_assigned:
            return OperationResult.success("Registration holds no room.", registration=registration)

        return self._run_locked(registration_id, [], self._unassign_locked)

    def commit_draft(self, draft: DraftAllocation) -> OperationResult:
        """
        Commit a multi-room selection.

        Every selected room becomes occupied by the registration; the first
        selected room is the primary room and the others are recorded as
        secondary rooms. Bed placements are validated and returned as the
        result's bed plan but are not persisted.
        """
        _require_id(draft.registration_id, "registration_id")
        _require_id(draft.hotel_id, "hotel_id")
        action = "commit_draft"

        registration = self.store.get_registration(draft.registration_id)
        if registration is None:
            return self._refuse(action, draft.registration_id, FailureKind.REGISTRATION_NOT_FOUND)
        if registration.is_cancelled:
            return self._refuse(
                action, registration.id, FailureKind.REGISTRATION_NOT_ELIGIBLE, "The registration is cancelled."
            )
        if not draft.selected_rooms:
            return self._refuse(action, registration.id, FailureKind.EMPTY_SELECTION)

        refusal = self._check_bed_plan(draft, registration, draft.room_beds)
        if refusal:
            return refusal

        hotel = self.store.get_hotel(draft.hotel_id)
        if hotel is None or not _same_trip(hotel, registration):
            return self._refuse(action, registration.id, FailureKind.ROOM_NOT_FOUND, "Unknown hotel.")

        return self._run_locked(
            registration.id,
            [draft.hotel_id],
            lambda current: self._commit_draft_locked(current, draft),
        )

    # Locked bodies

    def _assign_locked(self, current: Optional[Registration], hotel_id: str, room_number: str) -> OperationResult:
        refusal = self._check_assignable(current, room_number, hotel_id, "assign")
        if refusal:
            return refusal

        hotel = self.store.get_hotel(hotel_id)
        room = hotel.find_room(room_number) if hotel else None
        if room is None:
            return self._refuse("assign", current.id, FailureKind.ROOM_NOT_FOUND, f"Room {room_number}.")
        if room.occupied_by is not None:
            return self._refuse("assign", current.id, FailureKind.ROOM_UNAVAILABLE, f"Room {room_number} is taken.")

        changeset = Changeset(
            action="assign",
            registration=_with_rooms(current, hotel_id, [room_number]),
            rooms=[RoomOccupancyChange(
                hotel_id=hotel_id, room_number=room_number, expected_occupant=None, new_occupant=current.id
            )],
        )
        return self._commit(changeset, f"Room {room_number} assigned.")

    def _reassign_locked(self, current: Optional[Registration], hotel_id: str, room_number: str) -> OperationResult:
        if current is None:
            return self._refuse("reassign", None, FailureKind.REGISTRATION_NOT_FOUND)
        if current.is_cancelled:
            return self._refuse(
                "reassign", current.id, FailureKind.REGISTRATION_NOT_ELIGIBLE, "The registration is cancelled."
            )
        if not current.is_assigned:
            return self._assign_locked(current, hotel_id, room_number)
        if current.hotel_id == hotel_id and current.room_number == room_number:
            return OperationResult.success(f"Registration already holds room {room_number}.", registration=current)

        hotel = self.store.get_hotel(hotel_id)
        room = hotel.find_room(room_number) if hotel else None
        if room is None:
            return self._refuse("reassign", current.id, FailureKind.ROOM_NOT_FOUND, f"Room {room_number}.")
        if room.occupied_by not in (None, current.id):
            return self._refuse("reassign", current.id, FailureKind.ROOM_UNAVAILABLE, f"Room {room_number} is taken.")

        # A secondary room promoted to primary stays occupied instead of being released
        changes = [
            change for change in self._release_changes(current)
            if not (change.hotel_id == hotel_id and change.room_number == room_number)
        ]
        if room.occupied_by is None:
            changes.append(RoomOccupancyChange(
                hotel_id=hotel_id, room_number=room_number, expected_occupant=None, new_occupant=current.id
            ))

        changeset = Changeset(
            action="reassign",
            registration=_with_rooms(current, hotel_id, [room_number]),
            rooms=changes,
        )
        return self._commit(changeset, f"Room reassigned from {current.room_number} to {room_number}.")

    def _unassign_locked(self, current: Optional[Registration]) -> OperationResult:
        if current is None:
            return self._refuse("unassign", None, FailureKind.REGISTRATION_NOT_FOUND)
        if not current.is_assigned:
            return OperationResult.success("Registration holds no room.", registration=current)

        changeset = Changeset(
            action="unassign",
            registration=_with_rooms(current, None, []),
            rooms=self._release_changes(current),
        )
        return self._commit(changeset, f"Room {current.room_number} is now available.")

    def _commit_draft_locked(self, current: Optional[Registration], draft: DraftAllocation) -> OperationResult:
        action = "commit_draft"
        if current is None:
            return self._refuse(action, None, FailureKind.REGISTRATION_NOT_FOUND)
        if current.is_cancelled:
            return self._refuse(
                action, current.id, FailureKind.REGISTRATION_NOT_ELIGIBLE, "The registration is cancelled."
            )
        if current.is_assigned and not draft.reassigning:
            return self._refuse(
                action, current.id, FailureKind.REGISTRATION_NOT_ELIGIBLE,
                f"Already assigned to room {current.room_number}; reassign instead.",
            )

        hotel = self.store.get_hotel(draft.hotel_id)
        if hotel is None:
            return self._refuse(action, current.id, FailureKind.ROOM_NOT_FOUND, "Unknown hotel.")

        occupy = []
        beds_per_room = {}
        for number in draft.selected_rooms:
            room = hotel.find_room(number)
            if room is None:
                return self._refuse(action, current.id, FailureKind.ROOM_NOT_FOUND, f"Room {number}.")
            if room.occupied_by not in (None, current.id):
                return self._refuse(action, current.id, FailureKind.ROOM_UNAVAILABLE, f"Room {number} is taken.")
            if room.occupied_by is None:
                occupy.append(number)
            beds_per_room[number] = room.number_of_beds

        # Bed indexes are checked against the stored rooms, not the draft's copy of them
        refusal = self._check_bed_plan(draft, current, beds_per_room)
        if refusal:
            return refusal
        bed_plan = draft.bed_plan()

        selected = set(draft.selected_rooms)
        changes = []
        if current.is_assigned:
            changes = [
                change for change in self._release_changes(current)
                if not (change.hotel_id == draft.hotel_id and change.room_number in selected)
            ]
        changes.extend(
            RoomOccupancyChange(
                hotel_id=draft.hotel_id, room_number=number, expected_occupant=None, new_occupant=current.id
            )
            for number in occupy
        )

        changeset = Changeset(
            action=action,
            registration=_with_rooms(current, draft.hotel_id, draft.selected_rooms),
            rooms=changes,
        )
        result = self._commit(
            changeset,
            f"{len(draft.selected_rooms)} room(s) assigned, primary room {draft.primary_room}.",
        )
        if result.ok:
            result.bed_plan = bed_plan
        return result

    # Helpers

    def _run_locked(
        self,
        registration_id: str,
        hotel_ids: Iterable[str],
        operation: Callable[[Optional[Registration]], OperationResult]
    ) -> OperationResult:
        """
        Run ``operation`` on a fresh registration snapshot under the write locks.

        The hotel the registration currently lives in is only known after
        reading it, so the lock set is re-checked once held and the attempt
        repeated if the registration moved in the meantime.
        """
        hotel_ids = set(hotel_ids)
        while True:
            registration = self.store.get_registration(registration_id)
            locked_hotels = set(hotel_ids)
            if registration is not None and registration.hotel_id:
                locked_hotels.add(registration.hotel_id)
            keys = [registration_key(registration_id)] + [hotel_key(h) for h in locked_hotels]

            with self.locks.hold(keys):
                current = self.store.get_registration(registration_id)
                if current is not None and current.hotel_id and current.hotel_id not in locked_hotels:
                    continue
                return operation(current)

    def _check_assignable(
        self,
        registration: Optional[Registration],
        room_number: str,
        hotel_id: Optional[str],
        action: str
    ) -> Optional[OperationResult]:
        if registration is None:
            return self._refuse(action, None, FailureKind.REGISTRATION_NOT_FOUND)
        if registration.is_cancelled:
            return self._refuse(
                action, registration.id, FailureKind.REGISTRATION_NOT_ELIGIBLE, "The registration is cancelled."
            )
        if registration.is_assigned:
            if registration.room_number == room_number and hotel_id in (None, registration.hotel_id):
                detail = f"It already holds room {room_number}."
            else:
                detail = f"It is already assigned to room {registration.room_number}; reassign instead."
            return self._refuse(action, registration.id, FailureKind.REGISTRATION_NOT_ELIGIBLE, detail)
        return None

    def _resolve_hotel(
        self,
        registration: Registration,
        room_number: str,
        hotel_id: Optional[str],
        action: str
    ) -> Tuple[Optional[str], Optional[OperationResult]]:
        """Find the hotel of a room within the registration's yatra."""
        if hotel_id:
            hotel = self.store.get_hotel(hotel_id)
            if hotel is None or not _same_trip(hotel, registration) or hotel.find_room(room_number) is None:
                return None, self._refuse(action, registration.id, FailureKind.ROOM_NOT_FOUND, f"Room {room_number}.")
            return hotel_id, None

        matches = [
            hotel.id for hotel in self.store.list_hotels(registration.trip_id)
            if hotel.find_room(room_number) is not None
        ]
        if not matches:
            return None, self._refuse(action, registration.id, FailureKind.ROOM_NOT_FOUND, f"Room {room_number}.")
        if len(matches) > 1:
            return None, self._refuse(
                action, registration.id, FailureKind.ROOM_AMBIGUOUS, f"Room {room_number} is in {len(matches)} hotels."
            )
        return matches[0], None

    def _release_changes(self, registration: Registration) -> List[RoomOccupancyChange]:
        """Room changes freeing everything the registration holds."""
        hotel = self.store.get_hotel(registration.hotel_id) if registration.hotel_id else None
        if hotel is None:
            raise InventoryCorruptionError(
                f"Registration {registration.id} is assigned but its hotel {registration.hotel_id!r} does not exist"
            )

        changes = []
        for number in registration.held_room_numbers:
            room = hotel.find_room(number)
            if room is None:
                raise InventoryCorruptionError(
                    f"Registration {registration.id} holds room {number} missing from hotel {hotel.id}"
                )
            if room.occupied_by != registration.id:
                raise InventoryCorruptionError(
                    f"Registration {registration.id} holds room {number} but the room is held by {room.occupied_by!r}"
                )
            changes.append(RoomOccupancyChange(
                hotel_id=hotel.id, room_number=number, expected_occupant=registration.id, new_occupant=None
            ))
        return changes

    def _check_bed_plan(
        self,
        draft: DraftAllocation,
        registration: Registration,
        beds_per_room: Dict[str, int]
    ) -> Optional[OperationResult]:
        """Refuse bed placements outside the selected rooms or the party."""
        action = "commit_draft"
        if len(draft.bed_assignments) > registration.number_of_persons:
            return self._refuse(
                action, registration.id, FailureKind.CAPACITY_EXCEEDED,
                f"{len(draft.bed_assignments)} beds for {registration.number_of_persons} passenger(s).",
            )
        party_size = min(draft.party_size, registration.number_of_persons)
        seen = set()
        for key, person_index in draft.bed_assignments.items():
            number, bed_index = parse_bed_key(key)
            if number not in draft.selected_rooms or not 0 <= bed_index < beds_per_room.get(number, 0):
                return self._refuse(action, registration.id, FailureKind.BED_NOT_FOUND, f"Bed {key}.")
            if not 0 <= person_index < party_size:
                return self._refuse(
                    action, registration.id, FailureKind.BED_NOT_FOUND, f"Unknown passenger on bed {key}."
                )
            if person_index in seen:
                return self._refuse(action, registration.id, FailureKind.PERSON_ALREADY_PLACED)
            seen.add(person_index)
        return None

    def _commit(self, changeset: Changeset, message: str) -> OperationResult:
        try:
            self.store.apply(changeset)
        except StoreCommitError as exc:
            logger.error(
                "%s for registration %s was not committed: %s",
                changeset.action, changeset.registration_id, exc
            )
            return OperationResult.failed(FailureKind.COMMIT_FAILED)

        logger.info(
            "%s committed for registration %s: occupied=%s freed=%s",
            changeset.action, changeset.registration_id, changeset.occupied_rooms(), changeset.freed_rooms()
        )
        return OperationResult.success(message, registration=changeset.registration, changeset=changeset)

    def _refuse(
        self,
        action: str,
        registration_id: Optional[str],
        kind: FailureKind,
        detail: Optional[str] = None
    ) -> OperationResult:
        logger.info("%s refused for registration %s: %s", action, registration_id, kind.value)
        return OperationResult.failed(kind, detail)


def _require_id(value: Optional[str], name: str) -> None:
    if value is None or not str(value).strip():
        raise ValueError(f"{name} must be a non-empty identifier")


def _same_trip(hotel: Hotel, registration: Registration) -> bool:
    return registration.trip_id is None or hotel.trip_id == registration.trip_id


def _with_rooms(registration: Registration, hotel_id: Optional[str], room_numbers: List[str]) -> Registration:
    """Copy of ``registration`` holding ``room_numbers`` (primary first), or nothing."""
    if not room_numbers:
        update = dict(hotel_id=None, room_number=None, secondary_room_numbers=[], room_status=RoomStatus.PENDING)
    else:
        update = dict(
            hotel_id=hotel_id,
            room_number=room_numbers[0],
            secondary_room_numbers=list(room_numbers[1:]),
            room_status=RoomStatus.ASSIGNED,
        )
    return registration.model_copy(update=update, deep=True)


def find_inconsistencies(hotels: Iterable[Hotel], registrations: Iterable[Registration]) -> List[str]:
    """
    List every disagreement between inventory and registrations.

    Checks that each assigned registration's rooms exist and are held by it,
    that pending registrations reference no room, that no room is referenced
    by two registrations and that every occupied room is referenced by its
    occupant. An empty list means the data is consistent.
    """
    problems = []
    hotels_by_id = {hotel.id: hotel for hotel in hotels}
    registrations = list(registrations)
    registration_ids = {registration.id for registration in registrations}
    references = defaultdict(list)

    for registration in registrations:
        if registration.room_status == RoomStatus.PENDING:
            if registration.room_number or registration.secondary_room_numbers:
                problems.append(f"Registration {registration.id} is Pending but references rooms")
            continue

        if not registration.room_number:
            problems.append(f"Registration {registration.id} is Assigned without a room number")
            continue

        hotel = hotels_by_id.get(registration.hotel_id)
        if hotel is None:
            problems.append(f"Registration {registration.id} references unknown hotel {registration.hotel_id}")
            continue

        for number in registration.held_room_numbers:
            references[(hotel.id, number)].append(registration.id)
            room = hotel.find_room(number)
            if room is None:
                problems.append(f"Registration {registration.id} references missing room {number}")
            elif room.occupied_by != registration.id:
                problems.append(
                    f"Room {number} in hotel {hotel.id} is held by {room.occupied_by!r}, "
                    f"not by registration {registration.id}"
                )

    for (hotel_id, number), holders in references.items():
        if len(holders) > 1:
            problems.append(f"Room {number} in hotel {hotel_id} is referenced by {len(holders)} registrations")

    for hotel in hotels_by_id.values():
        for room in hotel.iter_rooms():
            if room.occupied_by is None:
                continue
            if room.occupied_by not in registration_ids:
                problems.append(f"Room {room.room_number} in hotel {hotel.id} is held by unknown registration")
            elif room.occupied_by not in references.get((hotel.id, room.room_number), []):
                problems.append(
                    f"Room {room.room_number} in hotel {hotel.id} is held by {room.occupied_by} "
                    f"which does not reference it"
                )

    return problems
