"""Occupancy aggregation service."""
import math
from typing import Iterable, Optional
from yatra.schemas.inventory import Hotel
from yatra.schemas.occupancy import RoomCounts, BedCounts, HotelOccupancy, FleetOccupancy


DEFAULT_RENTAL_DAYS = 1


def occupancy_percent(part: int, total: int) -> int:
    """Whole percentage of ``part`` in ``total``, rounded half up; 0 for an empty total."""
    if not total or total <= 0:
        return 0
    return int(math.floor(part * 100 / total + 0.5))


class OccupancyService:
    """
    Read-side projection of hotel inventory.

    Every method works on the hotel snapshot it is given and never mutates it,
    so statistics for one snapshot always agree with that snapshot's room
    listing. Missing hotels, floors or rooms yield zero-valued statistics.
    """

    def room_counts(self, hotel: Optional[Hotel]) -> RoomCounts:
        """Total, occupied and available rooms."""
        if hotel is None:
            return RoomCounts()
        rooms = hotel.rooms
        occupied = sum(1 for room in rooms if room.is_occupied)
        return RoomCounts(total=len(rooms), occupied=occupied, available=len(rooms) - occupied)

    def bed_counts(self, hotel: Optional[Hotel]) -> BedCounts:
        """
        Total and available beds.

        An occupied room contributes all of its beds to ``occupied`` whatever
        the size of the party using it.
        """
        if hotel is None:
            return BedCounts()
        total = 0
        available = 0
        for room in hotel.iter_rooms():
            total += room.number_of_beds
            if not room.is_occupied:
                available += room.number_of_beds
        return BedCounts(total=total, occupied=total - available, available=available)

    def rental_days(self, hotel: Optional[Hotel]) -> int:
        if hotel is None or not hotel.number_of_days or hotel.number_of_days <= 0:
            return DEFAULT_RENTAL_DAYS
        return hotel.number_of_days

    def expense(self, hotel: Optional[Hotel]) -> float:
        """
        Capacity expense of a hotel.

        Sum of every room's charge per day, occupied or not, multiplied by the
        rental period.

        Args:
            hotel: Hotel snapshot

        Returns:
            Expense in INR, 0 for a missing hotel or one without rooms
        """
        if hotel is None:
            return 0.0
        charge_per_day = sum(room.charge_per_day for room in hotel.iter_rooms())
        return round(charge_per_day * self.rental_days(hotel), 2)

    def summarize_hotel(self, hotel: Optional[Hotel]) -> HotelOccupancy:
        """All statistics for one hotel, computed from the same snapshot."""
        if hotel is None:
            return HotelOccupancy()
        rooms = self.room_counts(hotel)
        beds = self.bed_counts(hotel)
        return HotelOccupancy(
            hotel_id=hotel.id,
            name=hotel.name,
            rooms=rooms,
            beds=beds,
            expense=self.expense(hotel),
            occupancy_percent=occupancy_percent(rooms.occupied, rooms.total),
            bed_availability_percent=occupancy_percent(beds.available, beds.total),
        )

    def summarize_fleet(self, hotels: Optional[Iterable[Hotel]]) -> FleetOccupancy:
        """
        Fleet-wide rollup: plain sums of the per-hotel values.

        Args:
            hotels: Hotel snapshots, typically every hotel of one yatra

        Returns:
            FleetOccupancy with per-hotel rows in input order
        """
        summaries = [self.summarize_hotel(hotel) for hotel in (hotels or []) if hotel is not None]

        rooms = RoomCounts(
            total=sum(s.rooms.total for s in summaries),
            occupied=sum(s.rooms.occupied for s in summaries),
            available=sum(s.rooms.available for s in summaries),
        )
        beds = BedCounts(
            total=sum(s.beds.total for s in summaries),
            occupied=sum(s.beds.occupied for s in summaries),
            available=sum(s.beds.available for s in summaries),
        )

        return FleetOccupancy(
            hotel_count=len(summaries),
            rooms=rooms,
            beds=beds,
            expense=round(sum(s.expense for s in summaries), 2),
            occupancy_percent=occupancy_percent(rooms.occupied, rooms.total),
            bed_availability_percent=occupancy_percent(beds.available, beds.total),
            hotels=summaries,
        )
