"""Allocation Pydantic schemas: results, changesets and the draft bed plan."""
from pydantic import BaseModel, Field
from typing import Dict, List, Optional, Tuple
import enum
from yatra.schemas.inventory import Room
from yatra.schemas.registration import Registration


class FailureKind(str, enum.Enum):
    """Why an allocation or review operation was refused."""
    ROOM_UNAVAILABLE = "room_unavailable"
    REGISTRATION_NOT_ELIGIBLE = "registration_not_eligible"
    ROOM_NOT_FOUND = "room_not_found"
    ROOM_AMBIGUOUS = "room_ambiguous"
    REGISTRATION_NOT_FOUND = "registration_not_found"
    REASON_REQUIRED = "reason_required"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    EMPTY_SELECTION = "empty_selection"
    BED_NOT_FOUND = "bed_not_found"
    PERSON_ALREADY_PLACED = "person_already_placed"
    INVALID_TRANSITION = "invalid_transition"
    COMMIT_FAILED = "commit_failed"


FAILURE_MESSAGES = {
    FailureKind.ROOM_UNAVAILABLE: "Room is already occupied by another registration. Choose a free room.",
    FailureKind.REGISTRATION_NOT_ELIGIBLE: "Registration is not eligible for this room assignment.",
    FailureKind.ROOM_NOT_FOUND: "Room does not exist in the hotels of this yatra.",
    FailureKind.ROOM_AMBIGUOUS: "Room number exists in more than one hotel. Select the hotel first.",
    FailureKind.REGISTRATION_NOT_FOUND: "Registration not found.",
    FailureKind.REASON_REQUIRED: "Please provide a reason for rejection.",
    FailureKind.CAPACITY_EXCEEDED: "All passengers already assigned. Unassign a bed first.",
    FailureKind.EMPTY_SELECTION: "Please select at least one room.",
    FailureKind.BED_NOT_FOUND: "Bed does not exist in the selected rooms.",
    FailureKind.PERSON_ALREADY_PLACED: "Passenger already has a bed. Unassign that bed first.",
    FailureKind.INVALID_TRANSITION: "Documents of a cancelled registration cannot be reviewed.",
    FailureKind.COMMIT_FAILED: "The change could not be saved and nothing was modified. Retry the operation.",
}


class RoomOccupancyChange(BaseModel):
    """One side of a changeset: a room's occupant before and after."""
    hotel_id: str
    room_number: str
    expected_occupant: Optional[str] = Field(None, description="Occupant the store must currently hold")
    new_occupant: Optional[str] = Field(None, description="Occupant after the change, None frees the room")


class Changeset(BaseModel):
    """Two-sided mutation the store must apply atomically."""
    action: str = Field(..., description="assign, reassign, unassign, commit_draft, approve, reject, cancel")
    registration: Registration = Field(..., description="Registration as it must look after the change")
    rooms: List[RoomOccupancyChange] = Field(default_factory=list)

    @property
    def registration_id(self) -> str:
        return self.registration.id

    def freed_rooms(self) -> List[str]:
        return [c.room_number for c in self.rooms if c.new_occupant is None]

    def occupied_rooms(self) -> List[str]:
        return [c.room_number for c in self.rooms if c.new_occupant is not None]


class OperationResult(BaseModel):
    """Explicit success/failure outcome of an engine or review operation."""
    ok: bool
    failure: Optional[FailureKind] = None
    message: str = ""
    registration: Optional[Registration] = None
    changeset: Optional[Changeset] = None
    bed_plan: Dict[str, str] = Field(default_factory=dict, description="Bed key -> passenger name")

    @classmethod
    def success(cls, message: str = "", **kwargs) -> "OperationResult":
        return cls(ok=True, message=message, **kwargs)

    @classmethod
    def failed(cls, kind: FailureKind, detail: Optional[str] = None, **kwargs) -> "OperationResult":
        message = FAILURE_MESSAGES[kind]
        if detail:
            message = f"{message} {detail}"
        return cls(ok=False, failure=kind, message=message, **kwargs)

    @property
    def freed_rooms(self) -> List[str]:
        return self.changeset.freed_rooms() if self.changeset else []

    @property
    def occupied_rooms(self) -> List[str]:
        return self.changeset.occupied_rooms() if self.changeset else []


def bed_key(room_number: str, bed_index: int) -> str:
    """Key of one bed in a draft, e.g. "101-0"."""
    return f"{room_number}-{bed_index}"


def parse_bed_key(key: str) -> Tuple[str, int]:
    # Room numbers may contain dashes themselves, the bed index never does
    room_number, _, index = key.rpartition("-")
    return room_number, int(index)


class DraftAllocation(BaseModel):
    """
    In-progress multi-room selection and per-bed passenger placement.

    Only the room selection is persisted on commit; bed placements are
    returned to the caller as a plan and then discarded.
    """
    registration_id: str
    hotel_id: str
    persons: List[str] = Field(..., min_length=1, description="Passenger names in registration order")
    reassigning: bool = Field(default=False, description="Registration already holds rooms to release")
    selected_rooms: List[str] = Field(default_factory=list)
    room_beds: Dict[str, int] = Field(default_factory=dict, description="Beds per selected room")
    bed_assignments: Dict[str, int] = Field(default_factory=dict, description="Bed key -> person index")

    @classmethod
    def start(cls, registration: Registration, hotel_id: str) -> "DraftAllocation":
        return cls(
            registration_id=registration.id,
            hotel_id=hotel_id,
            persons=[person.name for person in registration.persons] or [registration.name],
            reassigning=registration.is_assigned,
        )

    @property
    def party_size(self) -> int:
        return len(self.persons)

    @property
    def primary_room(self) -> Optional[str]:
        return self.selected_rooms[0] if self.selected_rooms else None

    def toggle_room(self, room: Room, hotel_id: Optional[str] = None) -> OperationResult:
        """
        Select a room, or deselect it together with its bed placements.

        ``room`` must come from the draft's hotel; pass the hotel it was read
        from as ``hotel_id`` to have that checked. The engine resolves every
        selected number against the draft's hotel again on commit.
        """
        number = room.room_number
        if hotel_id is not None and hotel_id != self.hotel_id:
            return OperationResult.failed(FailureKind.ROOM_NOT_FOUND, f"Room {number} is in another hotel.")
        if number in self.selected_rooms:
            # Drop the room's beds before the room leaves the selection
            for key in [k for k in self.bed_assignments if parse_bed_key(k)[0] == number]:
                del self.bed_assignments[key]
            self.selected_rooms.remove(number)
            self.room_beds.pop(number, None)
            return OperationResult.success(f"Room {number} deselected")

        if room.occupied_by is not None and room.occupied_by != self.registration_id:
            return OperationResult.failed(FailureKind.ROOM_UNAVAILABLE, f"Room {number} is taken.")

        self.selected_rooms.append(number)
        self.room_beds[number] = room.number_of_beds
        return OperationResult.success(f"Room {number} selected")

    def toggle_bed(self, room_number: str, bed_index: int, person_index: Optional[int] = None) -> OperationResult:
        """
        Place a passenger on a bed, or clear the bed if it is already taken.

        When ``person_index`` is omitted the first unplaced passenger is used.
        """
        key = bed_key(room_number, bed_index)
        if key in self.bed_assignments:
            del self.bed_assignments[key]
            return OperationResult.success(f"Bed {bed_index + 1} unassigned")

        beds = self.room_beds.get(room_number)
        if beds is None or not 0 <= bed_index < beds:
            return OperationResult.failed(FailureKind.BED_NOT_FOUND, f"Room {room_number}, bed {bed_index + 1}.")

        if len(self.bed_assignments) >= self.party_size:
            return OperationResult.failed(FailureKind.CAPACITY_EXCEEDED)

        if person_index is None:
            person_index = self.unplaced_persons()[0]
        if not 0 <= person_index < self.party_size:
            raise ValueError(f"Person index {person_index} out of range for party of {self.party_size}")
        if person_index in self.bed_assignments.values():
            return OperationResult.failed(
                FailureKind.PERSON_ALREADY_PLACED, f"{self.persons[person_index]} is already placed."
            )

        self.bed_assignments[key] = person_index
        return OperationResult.success(f"{self.persons[person_index]} assigned to Bed {bed_index + 1}")

    def unplaced_persons(self) -> List[int]:
        placed = set(self.bed_assignments.values())
        return [i for i in range(self.party_size) if i not in placed]

    def bed_plan(self) -> Dict[str, str]:
        return {key: self.persons[index] for key, index in sorted(self.bed_assignments.items())}


class AssignRequest(BaseModel):
    """Schema for assigning or reassigning a single room."""
    room_number: str = Field(..., min_length=1, description="Target room number")
    hotel_id: Optional[str] = Field(None, description="Hotel of the room, required when numbers repeat across hotels")


class BedPlacement(BaseModel):
    """One passenger placed on one bed."""
    room_number: str
    bed_index: int = Field(..., ge=0)
    person_index: Optional[int] = Field(None, ge=0)


class DraftCommitRequest(BaseModel):
    """Schema for committing a multi-room selection."""
    hotel_id: str
    room_numbers: List[str] = Field(default_factory=list, description="Selected rooms, primary first")
    beds: List[BedPlacement] = Field(default_factory=list)
