"""Admin dashboard aggregation service."""
from collections import defaultdict
from typing import Dict, Iterable, List
from yatra.db.models import Gender
from yatra.schemas.inventory import Hotel
from yatra.schemas.occupancy import (
    CityBreakdown, DashboardData, DashboardStats, HotelAvailability, RegistrationAnalytics, StateBreakdown,
)
from yatra.schemas.registration import Registration
from yatra.services.occupancy import OccupancyService


AGE_RANGES = ["0-18", "19-35", "36-50", "50+"]


def age_range(age: int) -> str:
    if age <= 18:
        return "0-18"
    if age <= 35:
        return "19-35"
    if age <= 50:
        return "36-50"
    return "50+"


class DashboardService:
    """Service computing dashboard statistics for one yatra."""

    def __init__(self):
        self.occupancy = OccupancyService()

    def compute_stats(self, registrations: Iterable[Registration], hotels: Iterable[Hotel]) -> DashboardStats:
        """
        Compute headline registration and availability numbers.

        Cancelled registrations count towards the total but not towards
        pending allotment.
        """
        registrations = list(registrations)
        fleet = self.occupancy.summarize_fleet(hotels)
        return DashboardStats(
            total_registrations=len(registrations),
            total_people=sum(len(r.persons) for r in registrations),
            allotted_registrations=sum(1 for r in registrations if r.is_assigned),
            pending_allotment=sum(1 for r in registrations if not r.is_assigned and not r.is_cancelled),
            cancelled_registrations=sum(1 for r in registrations if r.is_cancelled),
            available_rooms=fleet.rooms.available,
            available_beds=fleet.beds.available,
        )

    def hotel_availability(self, hotels: Iterable[Hotel]) -> List[HotelAvailability]:
        """Per-hotel availability rows."""
        rows = []
        for summary in self.occupancy.summarize_fleet(hotels).hotels:
            rows.append(HotelAvailability(
                name=summary.name,
                total_rooms=summary.rooms.total,
                available_rooms=summary.rooms.available,
                total_beds=summary.beds.total,
                available_beds=summary.beds.available,
            ))
        return rows

    def registration_analytics(self, registrations: Iterable[Registration]) -> RegistrationAnalytics:
        """
        Demographics of travellers in non-cancelled registrations.

        Returns:
            RegistrationAnalytics grouped by boarding state and city
        """
        gender_data: Dict[str, int] = {g.value: 0 for g in Gender}
        age_data: Dict[str, int] = {r: 0 for r in AGE_RANGES}
        handicap_count = 0
        cities: Dict[str, Dict[str, CityBreakdown]] = defaultdict(dict)

        for registration in registrations:
            if registration.is_cancelled:
                continue
            state = registration.boarding_point.state
            city_name = registration.boarding_point.city
            city = cities[state].get(city_name)
            if city is None:
                city = cities[state][city_name] = CityBreakdown(
                    city=city_name,
                    gender={g.value: 0 for g in Gender},
                    age_ranges={r: 0 for r in AGE_RANGES},
                )

            for person in registration.persons:
                bucket = age_range(person.age)
                gender_data[person.gender.value] += 1
                age_data[bucket] += 1
                city.total_count += 1
                city.gender[person.gender.value] += 1
                city.age_ranges[bucket] += 1
                if person.is_handicapped:
                    handicap_count += 1
                    city.handicapped_count += 1

        state_data = [
            StateBreakdown(
                state=state,
                total_count=sum(c.total_count for c in by_city.values()),
                cities=sorted(by_city.values(), key=lambda c: c.total_count, reverse=True),
            )
            for state, by_city in cities.items()
        ]
        state_data.sort(key=lambda s: s.total_count, reverse=True)

        return RegistrationAnalytics(
            state_data=state_data,
            gender_data=gender_data,
            age_data=age_data,
            handicap_count=handicap_count,
        )

    def build(self, registrations: Iterable[Registration], hotels: Iterable[Hotel]) -> DashboardData:
        registrations = list(registrations)
        hotels = list(hotels)
        return DashboardData(
            stats=self.compute_stats(registrations, hotels),
            registrations_analytics=self.registration_analytics(registrations),
            hotel_analytics=self.hotel_availability(hotels),
        )
