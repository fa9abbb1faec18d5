"""Registration Pydantic schemas."""
from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import date, datetime
from yatra.db.models import DocumentStatus, Gender, RoomStatus


class Person(BaseModel):
    """A traveller within a registration."""
    name: str = Field(..., min_length=1, description="Full name")
    age: int = Field(..., ge=0, le=120, description="Age in years")
    gender: Gender = Field(..., description="Gender")
    is_handicapped: bool = Field(default=False, description="Needs accessible accommodation")


class BoardingPoint(BaseModel):
    """Where the group boards."""
    city: str = Field(..., description="Boarding city")
    state: str = Field(..., description="Boarding state")


class RegistrationCreate(BaseModel):
    """Schema for a registration submitted by the public registration flow."""
    trip_id: Optional[str] = Field(None, description="Yatra the registration belongs to")
    pnr: str = Field(..., min_length=1, description="Ticket booking reference")
    name: str = Field(..., min_length=1, description="Primary contact name")
    contact_number: str = Field(..., min_length=1, description="Primary contact (WhatsApp) number")
    persons: List[Person] = Field(..., min_length=1, description="Travellers in the group")
    boarding_point: BoardingPoint
    arrival_date: Optional[date] = None
    return_date: Optional[date] = None
    ticket_images: List[str] = Field(default_factory=list, description="Uploaded ticket image URLs")


class Registration(RegistrationCreate):
    """Canonical registration snapshot."""
    id: str
    document_status: DocumentStatus = DocumentStatus.PENDING
    rejection_reason: Optional[str] = None
    cancellation_reason: Optional[str] = None
    room_status: RoomStatus = RoomStatus.PENDING
    hotel_id: Optional[str] = None
    room_number: Optional[str] = Field(None, description="Primary assigned room")
    secondary_room_numbers: List[str] = Field(
        default_factory=list, description="Other rooms held from a multi-room assignment"
    )
    created_at: Optional[datetime] = None

    @property
    def number_of_persons(self) -> int:
        return max(len(self.persons), 1)

    @property
    def is_cancelled(self) -> bool:
        return self.document_status == DocumentStatus.CANCELLED

    @property
    def is_assigned(self) -> bool:
        return self.room_status == RoomStatus.ASSIGNED

    @property
    def held_room_numbers(self) -> List[str]:
        """Primary room first, then secondary rooms."""
        if not self.room_number:
            return []
        return [self.room_number, *self.secondary_room_numbers]


class RegistrationList(BaseModel):
    """Schema for list of registrations."""
    registrations: List[Registration]
    total: int


class RejectRequest(BaseModel):
    """Schema for rejecting uploaded documents."""
    reason: str = Field(default="", description="Why the documents were rejected")


class CancelRequest(BaseModel):
    """Schema for cancelling a registration."""
    reason: Optional[str] = Field(None, description="Why the registration was cancelled")
