"""Occupancy and dashboard Pydantic schemas."""
from pydantic import BaseModel, Field
from typing import Dict, List, Optional


class RoomCounts(BaseModel):
    """Room occupancy counts."""
    total: int = Field(default=0, ge=0)
    occupied: int = Field(default=0, ge=0)
    available: int = Field(default=0, ge=0)


class BedCounts(BaseModel):
    """Bed counts; a room's beds are all occupied or all available."""
    total: int = Field(default=0, ge=0)
    occupied: int = Field(default=0, ge=0)
    available: int = Field(default=0, ge=0)


class HotelOccupancy(BaseModel):
    """Occupancy statistics for one hotel."""
    hotel_id: Optional[str] = None
    name: str = ""
    rooms: RoomCounts = Field(default_factory=RoomCounts)
    beds: BedCounts = Field(default_factory=BedCounts)
    expense: float = Field(default=0.0, ge=0, description="Nominal charge of all rooms x rental days, INR")
    occupancy_percent: int = Field(default=0, ge=0, le=100)
    bed_availability_percent: int = Field(default=0, ge=0, le=100)


class FleetOccupancy(BaseModel):
    """Statistics summed over every hotel of a yatra."""
    hotel_count: int = 0
    rooms: RoomCounts = Field(default_factory=RoomCounts)
    beds: BedCounts = Field(default_factory=BedCounts)
    expense: float = Field(default=0.0, ge=0)
    occupancy_percent: int = Field(default=0, ge=0, le=100)
    bed_availability_percent: int = Field(default=0, ge=0, le=100)
    hotels: List[HotelOccupancy] = Field(default_factory=list)


class DashboardStats(BaseModel):
    """Headline numbers for the admin dashboard."""
    total_registrations: int = 0
    total_people: int = 0
    allotted_registrations: int = 0
    pending_allotment: int = 0
    cancelled_registrations: int = 0
    available_rooms: int = 0
    available_beds: int = 0


class HotelAvailability(BaseModel):
    """Availability row per hotel."""
    name: str
    total_rooms: int
    available_rooms: int
    total_beds: int
    available_beds: int


class CityBreakdown(BaseModel):
    """Travellers boarding from one city."""
    city: str
    total_count: int = 0
    gender: Dict[str, int] = Field(default_factory=dict)
    age_ranges: Dict[str, int] = Field(default_factory=dict)
    handicapped_count: int = 0


class StateBreakdown(BaseModel):
    """Travellers boarding from one state."""
    state: str
    total_count: int = 0
    cities: List[CityBreakdown] = Field(default_factory=list)


class RegistrationAnalytics(BaseModel):
    """Demographics over all persons of non-cancelled registrations."""
    state_data: List[StateBreakdown] = Field(default_factory=list)
    gender_data: Dict[str, int] = Field(default_factory=dict)
    age_data: Dict[str, int] = Field(default_factory=dict)
    handicap_count: int = 0


class DashboardData(BaseModel):
    """Everything the dashboard shows for one yatra."""
    stats: DashboardStats
    registrations_analytics: RegistrationAnalytics
    hotel_analytics: List[HotelAvailability]
