"""Admin dashboard API endpoints."""
from fastapi import APIRouter, Depends, Query
from typing import Optional
from yatra.db.repository import get_store
from yatra.schemas.occupancy import DashboardData
from yatra.services.dashboard import DashboardService
from yatra.services.store import AllocationStore

router = APIRouter()
dashboard_service = DashboardService()


@router.get("/admin/dashboard", response_model=DashboardData)
async def get_dashboard(
    trip_id: Optional[str] = Query(None, description="Yatra to report on"),
    store: AllocationStore = Depends(get_store)
):
    """Registration, allotment and hotel availability metrics for a yatra."""
    return dashboard_service.build(
        store.list_registrations(trip_id),
        store.list_hotels(trip_id),
    )
