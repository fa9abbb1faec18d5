"""SQLAlchemy-backed allocation store."""
import logging
from typing import List, Optional, Union
from fastapi import Depends
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload
from yatra.db.models import (
    Hotel as HotelModel,
    Floor as FloorModel,
    Room as RoomModel,
    Registration as RegistrationModel,
    Person as PersonModel,
    RoomStatus,
)
from yatra.db.session import get_db
from yatra.schemas.allocation import Changeset
from yatra.schemas.inventory import Floor, Hotel, HotelCreate, Room
from yatra.schemas.registration import BoardingPoint, Person, Registration, RegistrationCreate
from yatra.services.store import AllocationStore, StoreCommitError


logger = logging.getLogger(__name__)


def hotel_from_row(row: HotelModel) -> Hotel:
    """Translate an ORM hotel with its floors and rooms into the canonical schema."""
    return Hotel(
        id=row.id,
        trip_id=row.trip_id,
        name=row.name,
        address=row.address,
        map_link=row.map_link,
        hotel_type=row.hotel_type,
        manager_name=row.manager_name,
        manager_contact=row.manager_contact,
        has_elevator=row.has_elevator,
        check_in_time=row.check_in_time,
        check_out_time=row.check_out_time,
        number_of_days=row.number_of_days,
        created_at=row.created_at,
        floors=[
            Floor(
                label=floor.label,
                rooms=[
                    Room(
                        room_number=room.room_number,
                        floor=room.floor,
                        toilet_type=room.toilet_type,
                        number_of_beds=room.number_of_beds,
                        charge_per_day=room.charge_per_day,
                        occupied_by=room.occupied_by,
                    )
                    for room in floor.rooms
                ],
            )
            for floor in row.floors
        ],
    )


def registration_from_row(row: RegistrationModel) -> Registration:
    """Translate an ORM registration into the canonical schema."""
    return Registration(
        id=row.id,
        trip_id=row.trip_id,
        pnr=row.pnr,
        name=row.name,
        contact_number=row.contact_number,
        persons=[
            Person(name=p.name, age=p.age, gender=p.gender, is_handicapped=p.is_handicapped)
            for p in row.persons
        ],
        boarding_point=BoardingPoint(city=row.boarding_city or "", state=row.boarding_state or ""),
        arrival_date=row.arrival_date,
        return_date=row.return_date,
        ticket_images=list(row.ticket_images or []),
        document_status=row.document_status,
        rejection_reason=row.rejection_reason,
        cancellation_reason=row.cancellation_reason,
        room_status=row.room_status,
        hotel_id=row.hotel_id,
        room_number=row.room_number,
        secondary_room_numbers=list(row.secondary_room_numbers or []),
        created_at=row.created_at,
    )


class SqlAlchemyAllocationStore(AllocationStore):
    """
    Allocation store over a SQLAlchemy session.

    Every read re-populates rows from the database so a snapshot taken
    under the engine's locks never reflects stale identity-map state. Each
    changeset is one transaction with compare-and-set updates on rooms.
    """

    def __init__(self, db: Session):
        self.db = db

    def _hotel_query(self):
        return (
            select(HotelModel)
            .options(selectinload(HotelModel.floors).selectinload(FloorModel.rooms))
            .execution_options(populate_existing=True)
        )

    def _registration_query(self):
        return (
            select(RegistrationModel)
            .options(selectinload(RegistrationModel.persons))
            .execution_options(populate_existing=True)
        )

    def get_hotel(self, hotel_id: str) -> Optional[Hotel]:
        row = self.db.execute(self._hotel_query().where(HotelModel.id == hotel_id)).scalar_one_or_none()
        return hotel_from_row(row) if row else None

    def list_hotels(self, trip_id: Optional[str] = None) -> List[Hotel]:
        query = self._hotel_query().order_by(HotelModel.created_at)
        if trip_id is not None:
            query = query.where(HotelModel.trip_id == trip_id)
        return [hotel_from_row(row) for row in self.db.execute(query).scalars().all()]

    def add_hotel(self, hotel: Union[HotelCreate, Hotel]) -> Hotel:
        db_hotel = HotelModel(**hotel.model_dump(exclude={"floors"}, exclude_none=True))
        for floor_position, floor in enumerate(hotel.floors):
            db_floor = FloorModel(label=floor.label, position=floor_position)
            db_hotel.floors.append(db_floor)
            for room_position, room in enumerate(floor.rooms):
                db_room = RoomModel(
                    room_number=room.room_number,
                    floor=floor.level,
                    position=room_position,
                    toilet_type=room.toilet_type,
                    number_of_beds=room.number_of_beds,
                    charge_per_day=room.charge_per_day,
                    occupied_by=room.occupied_by,
                )
                db_floor.rooms.append(db_room)
                db_hotel.rooms.append(db_room)

        self.db.add(db_hotel)
        self.db.commit()
        return self.get_hotel(db_hotel.id)

    def get_registration(self, registration_id: str) -> Optional[Registration]:
        row = self.db.execute(
            self._registration_query().where(RegistrationModel.id == registration_id)
        ).scalar_one_or_none()
        return registration_from_row(row) if row else None

    def list_registrations(
        self,
        trip_id: Optional[str] = None,
        room_status: Optional[RoomStatus] = None
    ) -> List[Registration]:
        query = self._registration_query().order_by(RegistrationModel.created_at)
        if trip_id is not None:
            query = query.where(RegistrationModel.trip_id == trip_id)
        if room_status is not None:
            query = query.where(RegistrationModel.room_status == room_status)
        return [registration_from_row(row) for row in self.db.execute(query).scalars().all()]

    def add_registration(self, registration: Union[RegistrationCreate, Registration]) -> Registration:
        data = registration.model_dump(exclude={"persons", "boarding_point"}, exclude_none=True)
        db_registration = RegistrationModel(
            **data,
            boarding_city=registration.boarding_point.city,
            boarding_state=registration.boarding_point.state,
        )
        for position, person in enumerate(registration.persons):
            db_registration.persons.append(PersonModel(position=position, **person.model_dump()))

        self.db.add(db_registration)
        self.db.commit()
        return self.get_registration(db_registration.id)

    def apply(self, changeset: Changeset) -> None:
        target = changeset.registration
        try:
            for change in changeset.rooms:
                statement = update(RoomModel).where(
                    RoomModel.hotel_id == change.hotel_id,
                    RoomModel.room_number == change.room_number,
                )
                if change.expected_occupant is None:
                    statement = statement.where(RoomModel.occupied_by.is_(None))
                else:
                    statement = statement.where(RoomModel.occupied_by == change.expected_occupant)
                result = self.db.execute(
                    statement.values(occupied_by=change.new_occupant).execution_options(synchronize_session=False)
                )
                if result.rowcount != 1:
                    raise StoreCommitError(
                        f"Room {change.room_number} in hotel {change.hotel_id} is not held by "
                        f"{change.expected_occupant!r}"
                    )

            row = self.db.get(RegistrationModel, target.id)
            if row is None:
                raise StoreCommitError(f"Registration {target.id} does not exist")
            row.document_status = target.document_status
            row.rejection_reason = target.rejection_reason
            row.cancellation_reason = target.cancellation_reason
            row.room_status = target.room_status
            row.hotel_id = target.hotel_id
            row.room_number = target.room_number
            row.secondary_room_numbers = list(target.secondary_room_numbers)

            self.db.commit()
        except StoreCommitError:
            self.db.rollback()
            raise
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Database error applying %s for registration %s", changeset.action, target.id)
            raise StoreCommitError(str(exc)) from exc


def get_store(db: Session = Depends(get_db)) -> SqlAlchemyAllocationStore:
    """Dependency for FastAPI to get the allocation store."""
    return SqlAlchemyAllocationStore(db)
