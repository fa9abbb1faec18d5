"""Hotel inventory and occupancy API endpoints."""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import List, Optional
from yatra.db.repository import get_store
from yatra.schemas.inventory import Hotel as HotelSchema, HotelCreate, Room as RoomSchema
from yatra.schemas.occupancy import FleetOccupancy, HotelOccupancy
from yatra.services.occupancy import OccupancyService
from yatra.services.store import AllocationStore

router = APIRouter()
occupancy_service = OccupancyService()


def _get_hotel_or_404(store: AllocationStore, hotel_id: str) -> HotelSchema:
    hotel = store.get_hotel(hotel_id)
    if not hotel:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Hotel {hotel_id} not found"
        )
    return hotel


@router.post("/hotels", response_model=HotelSchema, status_code=status.HTTP_201_CREATED)
async def create_hotel(
    hotel: HotelCreate,
    store: AllocationStore = Depends(get_store)
):
    """Register a hotel with its floors and rooms."""
    return store.add_hotel(hotel)


@router.get("/hotels", response_model=List[HotelSchema])
async def list_hotels(
    trip_id: Optional[str] = Query(None, description="Filter by yatra"),
    store: AllocationStore = Depends(get_store)
):
    """List hotels, optionally for one yatra."""
    return store.list_hotels(trip_id)


@router.get("/hotels/occupancy", response_model=FleetOccupancy)
async def fleet_occupancy(
    trip_id: Optional[str] = Query(None, description="Filter by yatra"),
    store: AllocationStore = Depends(get_store)
):
    """Occupancy, bed availability and expense summed over all hotels."""
    return occupancy_service.summarize_fleet(store.list_hotels(trip_id))


@router.get("/hotels/{hotel_id}", response_model=HotelSchema)
async def get_hotel(
    hotel_id: str,
    store: AllocationStore = Depends(get_store)
):
    """Get a specific hotel by ID."""
    return _get_hotel_or_404(store, hotel_id)


@router.get("/hotels/{hotel_id}/occupancy", response_model=HotelOccupancy)
async def hotel_occupancy(
    hotel_id: str,
    store: AllocationStore = Depends(get_store)
):
    """Occupancy statistics for one hotel."""
    return occupancy_service.summarize_hotel(_get_hotel_or_404(store, hotel_id))


@router.get("/hotels/{hotel_id}/available-rooms", response_model=List[RoomSchema])
async def available_rooms(
    hotel_id: str,
    store: AllocationStore = Depends(get_store)
):
    """Rooms of a hotel that can still be assigned."""
    return _get_hotel_or_404(store, hotel_id).available_rooms()
