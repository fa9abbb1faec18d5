"""SQLAlchemy 2.0 database models."""
from sqlalchemy import (
    Column, String, Integer, DateTime, Date, ForeignKey, JSON, Enum as SQLEnum,
    Boolean, Float, UniqueConstraint,
)
from sqlalchemy.orm import relationship, declarative_base
from datetime import datetime
import enum
import uuid


Base = declarative_base()


class HotelType(str, enum.Enum):
    """Hotel category enumeration."""
    A = "A"
    B = "B"
    C = "C"
    D = "D"


class ToiletType(str, enum.Enum):
    """Toilet type enumeration."""
    WESTERN = "western"
    INDIAN = "indian"


class Gender(str, enum.Enum):
    """Gender enumeration."""
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


class DocumentStatus(str, enum.Enum):
    """Document review status enumeration."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class RoomStatus(str, enum.Enum):
    """Room allotment status of a registration."""
    PENDING = "Pending"
    ASSIGNED = "Assigned"


class Hotel(Base):
    """Hotel model."""
    __tablename__ = "hotels"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    trip_id = Column(String, nullable=True, index=True)  # Yatra identifier, opaque here
    name = Column(String, nullable=False)
    address = Column(String, nullable=True)
    map_link = Column(String, nullable=True)
    hotel_type = Column(SQLEnum(HotelType), default=HotelType.A, nullable=False)
    manager_name = Column(String, nullable=True)
    manager_contact = Column(String, nullable=True)
    has_elevator = Column(Boolean, default=False, nullable=False)
    check_in_time = Column(String, nullable=True)  # "HH:MM"
    check_out_time = Column(String, nullable=True)
    number_of_days = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    floors = relationship(
        "Floor", back_populates="hotel", cascade="all, delete-orphan", order_by="Floor.position"
    )
    rooms = relationship("Room", back_populates="hotel", cascade="all, delete-orphan")


class Floor(Base):
    """Floor model."""
    __tablename__ = "floors"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    hotel_id = Column(String, ForeignKey("hotels.id"), nullable=False, index=True)
    label = Column(String, nullable=False)  # "G" or a number
    position = Column(Integer, nullable=False, default=0)

    # Relationships
    hotel = relationship("Hotel", back_populates="floors")
    rooms = relationship("Room", back_populates="floor_ref", order_by="Room.position")


class Room(Base):
    """Room model."""
    __tablename__ = "rooms"
    __table_args__ = (
        UniqueConstraint("hotel_id", "room_number", name="uq_rooms_hotel_room_number"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    hotel_id = Column(String, ForeignKey("hotels.id"), nullable=False, index=True)
    floor_id = Column(String, ForeignKey("floors.id"), nullable=False, index=True)
    room_number = Column(String, nullable=False)
    floor = Column(Integer, nullable=False, default=0)
    position = Column(Integer, nullable=False, default=0)
    toilet_type = Column(SQLEnum(ToiletType), default=ToiletType.WESTERN, nullable=False)
    number_of_beds = Column(Integer, nullable=False, default=1)
    charge_per_day = Column(Float, nullable=False, default=0.0)
    occupied_by = Column(String, ForeignKey("registrations.id"), nullable=True, index=True)

    # Relationships
    hotel = relationship("Hotel", back_populates="rooms")
    floor_ref = relationship("Floor", back_populates="rooms")


class Registration(Base):
    """Registration model: one travel group."""
    __tablename__ = "registrations"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    trip_id = Column(String, nullable=True, index=True)
    pnr = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    contact_number = Column(String, nullable=False)
    boarding_city = Column(String, nullable=True)
    boarding_state = Column(String, nullable=True)
    arrival_date = Column(Date, nullable=True)
    return_date = Column(Date, nullable=True)
    ticket_images = Column(JSON, default=list)
    document_status = Column(SQLEnum(DocumentStatus), default=DocumentStatus.PENDING, nullable=False)
    rejection_reason = Column(String, nullable=True)
    cancellation_reason = Column(String, nullable=True)
    room_status = Column(SQLEnum(RoomStatus), default=RoomStatus.PENDING, nullable=False)
    hotel_id = Column(String, ForeignKey("hotels.id"), nullable=True)
    room_number = Column(String, nullable=True)
    secondary_room_numbers = Column(JSON, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    persons = relationship(
        "Person", back_populates="registration", cascade="all, delete-orphan", order_by="Person.position"
    )


class Person(Base):
    """Person travelling under a registration."""
    __tablename__ = "persons"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    registration_id = Column(String, ForeignKey("registrations.id"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    name = Column(String, nullable=False)
    age = Column(Integer, nullable=False)
    gender = Column(SQLEnum(Gender), nullable=False)
    is_handicapped = Column(Boolean, default=False, nullable=False)

    # Relationships
    registration = relationship("Registration", back_populates="persons")


class AuditLog(Base):
    """Audit log model for tracking allocation and review actions."""
    __tablename__ = "audit_logs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    trip_id = Column(String, nullable=True, index=True)
    registration_id = Column(String, nullable=True, index=True)
    user = Column(String, nullable=False)
    action = Column(String, nullable=False)  # assign, reassign, unassign, approve, reject, cancel
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    before_hash = Column(String, nullable=True)
    after_hash = Column(String, nullable=True)
    metadata_json = Column(JSON, nullable=True)
