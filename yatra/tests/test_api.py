"""API integration tests."""
import pytest
from yatra.db.models import AuditLog


@pytest.fixture
def hotel_id(client, sample_hotel_data):
    response = client.post("/api/hotels", json=sample_hotel_data)
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def create_registration(client, sample_registration_data):
    def _create(pnr="4521367890"):
        response = client.post("/api/registrations", json=dict(sample_registration_data, pnr=pnr))
        assert response.status_code == 201
        return response.json()["id"]
    return _create


def test_health(client):
    """Test the health endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_create_hotel(client, sample_hotel_data):
    """Test registering a hotel with floors and rooms."""
    response = client.post("/api/hotels", json=sample_hotel_data)
    assert response.status_code == 201
    data = response.json()
    assert data["name"] == sample_hotel_data["name"]
    assert [floor["label"] for floor in data["floors"]] == ["G", "1"]
    assert data["floors"][1]["rooms"][0]["floor"] == 1
    assert all(room["occupied_by"] is None for floor in data["floors"] for room in floor["rooms"])


def test_create_hotel_rejects_duplicate_rooms(client, sample_hotel_data):
    """Test that room numbers must be unique within a hotel."""
    sample_hotel_data["floors"][1]["rooms"][0]["room_number"] = "101"
    response = client.post("/api/hotels", json=sample_hotel_data)
    assert response.status_code == 422


def test_list_hotels_by_trip(client, hotel_id, sample_hotel_data):
    """Test filtering hotels by yatra."""
    response = client.get("/api/hotels", params={"trip_id": sample_hotel_data["trip_id"]})
    assert response.status_code == 200
    assert [hotel["id"] for hotel in response.json()] == [hotel_id]

    response = client.get("/api/hotels", params={"trip_id": "other"})
    assert response.json() == []


def test_get_missing_hotel(client):
    """Test 404 for an unknown hotel."""
    assert client.get("/api/hotels/missing").status_code == 404
    assert client.get("/api/hotels/missing/occupancy").status_code == 404


def test_create_and_get_registration(client, create_registration):
    """Test registration creation defaults."""
    registration_id = create_registration()

    response = client.get(f"/api/registrations/{registration_id}")
    assert response.status_code == 200
    data = response.json()
    assert data["document_status"] == "pending"
    assert data["room_status"] == "Pending"
    assert len(data["persons"]) == 3

    assert client.get("/api/registrations/missing").status_code == 404


def test_assign_and_occupancy(client, db_session, hotel_id, create_registration):
    """Test assigning a room and reading occupancy back."""
    registration_id = create_registration()

    response = client.post(f"/api/registrations/{registration_id}/assign", json={"room_number": "101"})
    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is True
    assert data["registration"]["room_number"] == "101"
    assert data["registration"]["room_status"] == "Assigned"

    occupancy = client.get(f"/api/hotels/{hotel_id}/occupancy").json()
    assert occupancy["rooms"] == {"total": 4, "occupied": 1, "available": 3}
    assert occupancy["beds"] == {"total": 8, "occupied": 2, "available": 6}
    assert occupancy["expense"] == 9600.0
    assert occupancy["occupancy_percent"] == 25

    available = client.get(f"/api/hotels/{hotel_id}/available-rooms").json()
    assert [room["room_number"] for room in available] == ["102", "201", "202"]

    audit = db_session.query(AuditLog).filter_by(registration_id=registration_id).all()
    assert [entry.action for entry in audit] == ["assign"]
    assert audit[0].metadata_json == {"occupied_rooms": ["101"], "freed_rooms": []}
    assert audit[0].before_hash != audit[0].after_hash


def test_assign_taken_room_conflict(client, hotel_id, create_registration):
    """Test 409 with the failure kind when a room is taken."""
    first = create_registration("1111111111")
    second = create_registration("2222222222")
    client.post(f"/api/registrations/{first}/assign", json={"room_number": "101"})

    response = client.post(f"/api/registrations/{second}/assign", json={"room_number": "101"})

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["failure"] == "room_unavailable"
    assert detail["message"].startswith("Room is already occupied")


def test_assign_unknown_room(client, hotel_id, create_registration):
    """Test 404 for a room outside the yatra's hotels."""
    registration_id = create_registration()
    response = client.post(f"/api/registrations/{registration_id}/assign", json={"room_number": "999"})
    assert response.status_code == 404
    assert response.json()["detail"]["failure"] == "room_not_found"


def test_reassign_and_unassign(client, hotel_id, create_registration):
    """Test moving a registration and releasing its room."""
    registration_id = create_registration()
    client.post(f"/api/registrations/{registration_id}/assign", json={"room_number": "101"})

    response = client.post(
        f"/api/registrations/{registration_id}/reassign",
        json={"room_number": "202", "hotel_id": hotel_id}
    )
    assert response.status_code == 200
    assert response.json()["registration"]["room_number"] == "202"

    response = client.post(f"/api/registrations/{registration_id}/unassign")
    assert response.status_code == 200
    assert response.json()["registration"]["room_status"] == "Pending"

    occupancy = client.get(f"/api/hotels/{hotel_id}/occupancy").json()
    assert occupancy["rooms"]["occupied"] == 0


def test_commit_rooms_with_beds(client, hotel_id, create_registration):
    """Test a multi-room assignment with bed placement."""
    registration_id = create_registration()

    response = client.post(
        f"/api/registrations/{registration_id}/rooms",
        json={
            "hotel_id": hotel_id,
            "room_numbers": ["201", "202"],
            "beds": [
                {"room_number": "201", "bed_index": 0},
                {"room_number": "201", "bed_index": 1},
                {"room_number": "202", "bed_index": 0, "person_index": 2},
            ],
        }
    )

    assert response.status_code == 200
    data = response.json()
    assert data["registration"]["room_number"] == "201"
    assert data["registration"]["secondary_room_numbers"] == ["202"]
    assert data["bed_plan"] == {
        "201-0": "Suresh Sharma",
        "201-1": "Kamla Sharma",
        "202-0": "Mohan Sharma",
    }


def test_commit_rooms_refusals(client, hotel_id, create_registration):
    """Test draft rule violations over the API."""
    registration_id = create_registration()
    url = f"/api/registrations/{registration_id}/rooms"

    empty = client.post(url, json={"hotel_id": hotel_id, "room_numbers": []})
    assert empty.status_code == 422
    assert empty.json()["detail"]["failure"] == "empty_selection"

    missing_bed = client.post(url, json={
        "hotel_id": hotel_id,
        "room_numbers": ["202"],
        "beds": [{"room_number": "202", "bed_index": 3}],
    })
    assert missing_bed.status_code == 422
    assert missing_bed.json()["detail"]["failure"] == "bed_not_found"

    unknown_hotel = client.post(url, json={"hotel_id": "missing", "room_numbers": ["101"]})
    assert unknown_hotel.status_code == 404


def test_document_review_flow(client, hotel_id, create_registration):
    """Test reject, approve and cancel over the API."""
    registration_id = create_registration()

    response = client.post(f"/api/registrations/{registration_id}/reject", json={"reason": ""})
    assert response.status_code == 422
    assert response.json()["detail"]["failure"] == "reason_required"

    response = client.post(f"/api/registrations/{registration_id}/reject", json={"reason": "Blurry ticket"})
    assert response.status_code == 200
    assert response.json()["registration"]["rejection_reason"] == "Blurry ticket"

    response = client.post(f"/api/registrations/{registration_id}/approve")
    assert response.status_code == 200
    assert response.json()["registration"]["document_status"] == "approved"

    response = client.post(f"/api/registrations/{registration_id}/cancel", json={"reason": "Plans changed"})
    assert response.status_code == 200

    response = client.post(f"/api/registrations/{registration_id}/approve")
    assert response.status_code == 409
    assert response.json()["detail"]["failure"] == "invalid_transition"

    response = client.post(f"/api/registrations/{registration_id}/assign", json={"room_number": "101"})
    assert response.status_code == 409
    assert response.json()["detail"]["failure"] == "registration_not_eligible"


def test_list_registrations_filters(client, hotel_id, create_registration, sample_registration_data):
    """Test registration filters."""
    first = create_registration("1111111111")
    second = create_registration("2222222222")
    client.post(f"/api/registrations/{first}/assign", json={"room_number": "101"})
    client.post(f"/api/registrations/{second}/approve")

    trip_id = sample_registration_data["trip_id"]
    everything = client.get("/api/registrations", params={"trip_id": trip_id}).json()
    assert everything["total"] == 2

    assigned = client.get("/api/registrations", params={"room_status": "Assigned"}).json()
    assert [r["id"] for r in assigned["registrations"]] == [first]

    approved = client.get("/api/registrations", params={"document_status": "approved"}).json()
    assert [r["id"] for r in approved["registrations"]] == [second]


def test_fleet_occupancy_and_dashboard(client, hotel_id, create_registration, sample_hotel_data):
    """Test fleet rollup and dashboard endpoints."""
    registration_id = create_registration()
    client.post(f"/api/registrations/{registration_id}/assign", json={"room_number": "201"})
    trip_id = sample_hotel_data["trip_id"]

    fleet = client.get("/api/hotels/occupancy", params={"trip_id": trip_id}).json()
    assert fleet["hotel_count"] == 1
    assert fleet["beds"]["available"] == 5

    dashboard = client.get("/api/admin/dashboard", params={"trip_id": trip_id})
    assert dashboard.status_code == 200
    data = dashboard.json()
    assert data["stats"]["total_registrations"] == 1
    assert data["stats"]["allotted_registrations"] == 1
    assert data["stats"]["available_rooms"] == 3
    assert data["hotel_analytics"][0]["available_beds"] == 5
    assert data["registrations_analytics"]["handicap_count"] == 1
