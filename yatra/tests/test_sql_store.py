"""Tests for the SQLAlchemy allocation store."""
import pytest
from yatra.db.models import DocumentStatus, Room as RoomModel, RoomStatus
from yatra.db.repository import SqlAlchemyAllocationStore
from yatra.schemas.allocation import Changeset, DraftAllocation, FailureKind, RoomOccupancyChange
from yatra.schemas.inventory import HotelCreate
from yatra.schemas.registration import RegistrationCreate
from yatra.services.allocation import AllocationEngine, find_inconsistencies
from yatra.services.document_review import DocumentReviewService
from yatra.services.locking import KeyedLockRegistry
from yatra.services.store import StoreCommitError


@pytest.fixture
def sql_store(db_session):
    return SqlAlchemyAllocationStore(db_session)


@pytest.fixture
def sql_hotel(sql_store, sample_hotel_data):
    return sql_store.add_hotel(HotelCreate(**sample_hotel_data))


@pytest.fixture
def sql_registration(sql_store, sample_registration_data):
    return sql_store.add_registration(RegistrationCreate(**sample_registration_data))


def test_hotel_round_trip(sql_store, sql_hotel, sample_hotel_data):
    """Test that floors and rooms come back in entry order."""
    hotel = sql_store.get_hotel(sql_hotel.id)

    assert hotel.name == sample_hotel_data["name"]
    assert [floor.label for floor in hotel.floors] == ["G", "1"]
    assert [room.room_number for room in hotel.rooms] == ["101", "102", "201", "202"]
    assert [room.floor for room in hotel.rooms] == [0, 0, 1, 1]
    assert hotel.find_room("201").number_of_beds == 3
    assert hotel.available_rooms() == hotel.rooms
    assert sql_store.list_hotels(sample_hotel_data["trip_id"]) == [hotel]
    assert sql_store.list_hotels("other-yatra") == []


def test_registration_round_trip(sql_store, sql_registration, sample_registration_data):
    """Test that persons keep their order and defaults are applied."""
    registration = sql_store.get_registration(sql_registration.id)

    assert [p.name for p in registration.persons] == [p["name"] for p in sample_registration_data["persons"]]
    assert registration.boarding_point.city == "Indore"
    assert registration.document_status == DocumentStatus.PENDING
    assert registration.room_status == RoomStatus.PENDING
    assert registration.secondary_room_numbers == []
    assert sql_store.get_registration("missing") is None


def test_engine_over_sql_store(db_session, sql_store, sql_hotel, sql_registration):
    """Test assign, reassign and unassign against the database."""
    engine = AllocationEngine(sql_store, KeyedLockRegistry())

    assert engine.assign(sql_registration.id, "101").ok
    assert engine.reassign(sql_registration.id, "201").ok

    room = db_session.query(RoomModel).filter_by(hotel_id=sql_hotel.id, room_number="201").one()
    db_session.refresh(room)
    assert room.occupied_by == sql_registration.id
    assert sql_store.get_hotel(sql_hotel.id).find_room("101").occupied_by is None
    assert sql_store.list_registrations(room_status=RoomStatus.ASSIGNED)[0].room_number == "201"

    assert engine.unassign(sql_registration.id).ok
    assert sql_store.get_hotel(sql_hotel.id).available_rooms() == sql_store.get_hotel(sql_hotel.id).rooms
    assert sql_store.list_registrations(room_status=RoomStatus.ASSIGNED) == []


def test_multi_room_draft_over_sql_store(sql_store, sql_hotel, sql_registration):
    """Test that secondary rooms are persisted."""
    engine = AllocationEngine(sql_store, KeyedLockRegistry())
    draft = DraftAllocation.start(sql_registration, sql_hotel.id)
    draft.toggle_room(sql_hotel.find_room("102"))
    draft.toggle_room(sql_hotel.find_room("202"))

    assert engine.commit_draft(draft).ok

    stored = sql_store.get_registration(sql_registration.id)
    assert stored.room_number == "102"
    assert stored.secondary_room_numbers == ["202"]
    assert find_inconsistencies(sql_store.list_hotels(), sql_store.list_registrations()) == []


def test_conflicting_assign_over_sql_store(sql_store, sql_hotel, sql_registration, sample_registration_data):
    """Test that a taken room is refused."""
    engine = AllocationEngine(sql_store, KeyedLockRegistry())
    other = sql_store.add_registration(RegistrationCreate(**dict(sample_registration_data, pnr="9988776655")))
    engine.assign(other.id, "101")

    result = engine.assign(sql_registration.id, "101")

    assert result.failure == FailureKind.ROOM_UNAVAILABLE


def test_apply_is_compare_and_set(sql_store, sql_hotel, sql_registration, sample_registration_data):
    """Test that a stale changeset is rolled back entirely."""
    engine = AllocationEngine(sql_store, KeyedLockRegistry())
    other = sql_store.add_registration(RegistrationCreate(**dict(sample_registration_data, pnr="9988776655")))
    engine.assign(sql_registration.id, "101")
    engine.assign(other.id, "102")

    moved = sql_store.get_registration(sql_registration.id).model_copy(update={"room_number": "102"})
    changeset = Changeset(
        action="reassign",
        registration=moved,
        rooms=[
            RoomOccupancyChange(
                hotel_id=sql_hotel.id, room_number="101", expected_occupant=sql_registration.id, new_occupant=None
            ),
            RoomOccupancyChange(
                hotel_id=sql_hotel.id, room_number="102", expected_occupant=None, new_occupant=sql_registration.id
            ),
        ],
    )
    with pytest.raises(StoreCommitError):
        sql_store.apply(changeset)

    hotel = sql_store.get_hotel(sql_hotel.id)
    assert hotel.find_room("101").occupied_by == sql_registration.id
    assert hotel.find_room("102").occupied_by == other.id
    assert sql_store.get_registration(sql_registration.id).room_number == "101"


def test_review_over_sql_store(sql_store, sql_registration):
    """Test that review transitions are persisted."""
    review = DocumentReviewService(sql_store, KeyedLockRegistry())

    assert review.reject(sql_registration.id, "Blurry").ok
    assert sql_store.get_registration(sql_registration.id).rejection_reason == "Blurry"
    assert review.cancel(sql_registration.id, "No longer travelling").ok

    stored = sql_store.get_registration(sql_registration.id)
    assert stored.document_status == DocumentStatus.CANCELLED
    assert stored.cancellation_reason == "No longer travelling"
