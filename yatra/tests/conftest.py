"""Pytest configuration and fixtures."""
import itertools
import pytest
from sqlalchemy.orm import sessionmaker
from yatra.db.models import Base
from yatra.db.session import build_engine, get_db
from yatra.main import app
from yatra.schemas.inventory import HotelCreate
from yatra.schemas.registration import RegistrationCreate
from yatra.services.allocation import AllocationEngine
from yatra.services.document_review import DocumentReviewService
from yatra.services.locking import KeyedLockRegistry
from yatra.services.store import InMemoryAllocationStore
from fastapi.testclient import TestClient
import tempfile
import os


TRIP_ID = "yatra-2024-kashi"


@pytest.fixture(scope="function")
def db_session():
    """Create a test database session."""
    # Create temporary SQLite database
    db_fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(db_fd)

    engine = build_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
        os.unlink(db_path)


@pytest.fixture(scope="function")
def client(db_session):
    """Create a test client."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def sample_hotel_data():
    """Hotel with two floors and four rooms."""
    return {
        "trip_id": TRIP_ID,
        "name": "Ganga Darshan Lodge",
        "address": "Dashashwamedh Ghat Road, Varanasi",
        "hotel_type": "B",
        "manager_name": "Ramesh Tiwari",
        "manager_contact": "9415012345",
        "has_elevator": False,
        "check_in_time": "12:00",
        "check_out_time": "10:00",
        "number_of_days": 3,
        "floors": [
            {
                "label": "G",
                "rooms": [
                    {"room_number": "101", "toilet_type": "western", "number_of_beds": 2, "charge_per_day": 800},
                    {"room_number": "102", "toilet_type": "indian", "number_of_beds": 2, "charge_per_day": 700},
                ]
            },
            {
                "label": "1",
                "rooms": [
                    {"room_number": "201", "toilet_type": "western", "number_of_beds": 3, "charge_per_day": 1200},
                    {"room_number": "202", "toilet_type": "indian", "number_of_beds": 1, "charge_per_day": 500},
                ]
            }
        ]
    }


@pytest.fixture
def sample_registration_data():
    """Registration for a group of three."""
    return {
        "trip_id": TRIP_ID,
        "pnr": "4521367890",
        "name": "Suresh Sharma",
        "contact_number": "9876543210",
        "persons": [
            {"name": "Suresh Sharma", "age": 52, "gender": "male", "is_handicapped": False},
            {"name": "Kamla Sharma", "age": 48, "gender": "female", "is_handicapped": False},
            {"name": "Mohan Sharma", "age": 17, "gender": "male", "is_handicapped": True},
        ],
        "boarding_point": {"city": "Indore", "state": "Madhya Pradesh"},
        "arrival_date": "2024-11-02",
        "return_date": "2024-11-05",
        "ticket_images": ["https://images.example.com/tickets/4521367890.jpg"]
    }


@pytest.fixture
def store():
    """Empty in-memory store."""
    return InMemoryAllocationStore()


@pytest.fixture
def locks():
    """Lock registry private to one test."""
    return KeyedLockRegistry("hotel")


@pytest.fixture
def hotel(store, sample_hotel_data):
    """The sample hotel, stored."""
    return store.add_hotel(HotelCreate(**sample_hotel_data))


@pytest.fixture
def make_registration(store, sample_registration_data):
    """Factory storing a registration with ``persons`` travellers."""
    counter = itertools.count(1)

    def _make(persons: int = 2, trip_id: str = TRIP_ID):
        n = next(counter)
        data = dict(sample_registration_data)
        data.update(
            trip_id=trip_id,
            pnr=f"PNR{n:03d}",
            name=f"Group {n}",
            persons=[
                {"name": f"Pilgrim {n}.{i}", "age": 30 + i, "gender": "female" if i % 2 else "male"}
                for i in range(persons)
            ],
        )
        return store.add_registration(RegistrationCreate(**data))

    return _make


@pytest.fixture
def allocation_engine(store, locks):
    """Allocation engine over the in-memory store."""
    return AllocationEngine(store, locks)


@pytest.fixture
def review_service(store, locks):
    """Document review service sharing the engine's locks."""
    return DocumentReviewService(store, locks)
