import logging
import threading
import weakref
from contextlib import contextmanager

from sqlalchemy.orm import Session

from . import config, crud, schemas, utils
from .errors import (
    ConnectorMismatch,
    InvalidSlot,
    InvalidStationUpdate,
    InvalidStatusTransition,
    NotFound,
    ServiceError,
    SlotNotFound,
    SlotUnavailable,
    StationInUse,
    StationNotOperational,
)

"""
Availability and booking consistency.

BookingService is the only writer of Slot.status and Station.available_slots.
Every operation that can change a slot's status runs its checks and writes
while holding the lock of the owning station, and commits once at the end;
any error rolls the whole unit back. On top of the in-process lock the slot
is claimed with a compare-and-swap UPDATE, so two processes sharing one
database cannot both move the same slot out of "available" either.
"""

logger = logging.getLogger("evslot_logger")

# Bookings in these states hold their slot
ACTIVE_STATUSES = ("confirmed", "in_progress")


class KeyedLock:
    ''' One threading.Lock per key, created on first use and dropped once nobody holds or waits on it. '''

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = weakref.WeakValueDictionary()

    @contextmanager
    def hold(self, key):
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
        with lock:
            yield


class BookingService:
    def __init__(self, notifier=None, assumed_charging_kw: float = config.ASSUMED_CHARGING_KW):
        self.notifier = notifier
        self.assumed_charging_kw = assumed_charging_kw
        self.station_locks = KeyedLock()

    @contextmanager
    def _station_transaction(self, db: Session, station_id: int):
        with self.station_locks.hold(station_id):
            # Anything loaded before the lock was taken may be stale
            db.expire_all()
            try:
                yield
                db.commit()
            except Exception:
                db.rollback()
                raise

    def estimate_cost(self, price_per_kwh: float, duration: int) -> float:
        ''' Price of the energy an average session of `duration` minutes would draw. Not a metered value. '''
        return round(price_per_kwh * (duration / 60) * self.assumed_charging_kw, 2)

    def recount_station_availability(self, db: Session, station_id: int) -> int:
        available = crud.count_slots_with_status(db, station_id, "available")
        crud.update_station(db, station_id, {"available_slots": available}, commit=False)
        return available

    # Bookings
    def reserve(self, db: Session, booking: schemas.BookingCreate):
        '''
        Books a slot for a time window.
        Checked in order: the user exists, the slot exists at the given station,
        the station is operational, the connector matches, the slot is available,
        and no active booking on the slot overlaps the requested window.
        '''
        try:
            if crud.get_user(db, booking.user_id) is None:
                raise NotFound("User not found")

            with self._station_transaction(db, booking.station_id):
                db_slot = crud.get_slot(db, booking.slot_id)
                if db_slot is None or db_slot.station_id != booking.station_id:
                    raise SlotNotFound("Slot not found at this station")

                db_station = crud.get_station(db, booking.station_id)
                if db_station is None:
                    raise SlotNotFound("Slot not found at this station")
                if db_station.status != "operational":
                    raise StationNotOperational(f"Station is {db_station.status}")

                if db_slot.connector_type != booking.connector_type:
                    raise ConnectorMismatch(
                        f"Slot {db_slot.slot_number} has connector {db_slot.connector_type}, not {booking.connector_type}"
                    )
                if db_slot.status != "available":
                    raise SlotUnavailable("Slot is not available for booking")

                end_time = utils.add_minutes(booking.start_time, booking.duration)
                if self._find_overlap(db, db_slot.id, booking.start_time, end_time) is not None:
                    raise SlotUnavailable("Slot is already booked for an overlapping time")

                db_booking = crud.create_booking(db, {
                    "user_id": booking.user_id,
                    "station_id": booking.station_id,
                    "slot_id": booking.slot_id,
                    "booking_date": booking.booking_date or booking.start_time.date(),
                    "start_time": booking.start_time,
                    "duration": booking.duration,
                    "status": "confirmed",
                    "vehicle": booking.vehicle.model_dump() if booking.vehicle else None,
                    "connector_type": booking.connector_type,
                    "estimated_cost": self.estimate_cost(db_station.price_per_kwh, booking.duration),
                }, commit=False)

                if not crud.claim_slot(db, db_slot.id, "available", "booked"):
                    raise SlotUnavailable("Slot was taken by another booking")

                self.recount_station_availability(db, db_station.id)
        except ServiceError as e:
            logger.info(f"Reservation of slot {booking.slot_id} at station {booking.station_id} rejected: {e.message}")
            raise

        logger.info(
            f"Booking {db_booking.id} confirmed: slot {db_slot.slot_number} at station {db_station.id}, "
            f"{db_station.available_slots}/{db_station.total_slots} slots left."
        )
        self._notify_slot(db_station, db_slot)
        self._notify_booking("confirmed", db_booking)
        return db_booking

    def cancel(self, db: Session, booking_id: int):
        '''
        Cancels a booking and frees its slot. Cancelling a booking that is
        already cancelled changes nothing and returns it as is.
        '''
        db_booking = crud.get_booking(db, booking_id)
        if db_booking is None:
            raise NotFound("Booking not found")

        released = False
        with self._station_transaction(db, db_booking.station_id):
            db_booking = crud.get_booking(db, booking_id)
            if db_booking is None:
                raise NotFound("Booking not found")
            if db_booking.status != "cancelled":
                self._release(db, db_booking)
                released = True

        if released:
            logger.info(f"Booking {db_booking.id} cancelled.")
            self._after_release(db, db_booking)
        return db_booking

    def update_booking(self, db: Session, booking_id: int, patch: schemas.BookingUpdate):
        changes = patch.to_patch()
        new_status = changes.pop("status", None)

        db_booking = crud.get_booking(db, booking_id)
        if db_booking is None:
            raise NotFound("Booking not found")

        released = False
        with self._station_transaction(db, db_booking.station_id):
            db_booking = crud.get_booking(db, booking_id)
            if db_booking is None:
                raise NotFound("Booking not found")

            if db_booking.status == "cancelled" and new_status not in (None, "cancelled"):
                raise InvalidStatusTransition("A cancelled booking cannot be reopened")

            was_active = db_booking.status in ACTIVE_STATUSES
            will_be_active = new_status in ACTIVE_STATUSES or (new_status is None and was_active)
            start_time = changes.get("start_time", db_booking.start_time)
            duration = changes.get("duration", db_booking.duration)
            rescheduled = "start_time" in changes or "duration" in changes

            # A booking entering or keeping the active set must not overlap another one on its slot
            if will_be_active and (rescheduled or not was_active):
                end_time = utils.add_minutes(start_time, duration)
                if self._find_overlap(db, db_booking.slot_id, start_time, end_time, exclude_id=db_booking.id):
                    raise SlotUnavailable("Slot is already booked for an overlapping time")
            if rescheduled:
                db_station = crud.get_station(db, db_booking.station_id)
                changes["estimated_cost"] = self.estimate_cost(db_station.price_per_kwh, duration)

            crud.update_booking(db, booking_id, changes, commit=False)

            if new_status == "cancelled":
                if db_booking.status != "cancelled":
                    self._release(db, db_booking)
                    released = True
            elif new_status is not None:
                # Other transitions leave the slot as it is
                crud.update_booking(db, booking_id, {"status": new_status}, commit=False)

        if released:
            logger.info(f"Booking {db_booking.id} cancelled through update.")
            self._after_release(db, db_booking)
        elif new_status is not None:
            self._notify_booking(new_status, db_booking)
        return db_booking

    def _find_overlap(self, db: Session, slot_id: int, start_time, end_time, exclude_id=None):
        for other in crud.get_bookings_by_slot(db, slot_id, ACTIVE_STATUSES):
            if other.id == exclude_id:
                continue
            other_end = utils.add_minutes(other.start_time, other.duration)
            if utils.ranges_overlap(start_time, end_time, other.start_time, other_end):
                return other
        return None

    def _release(self, db: Session, db_booking):
        crud.update_booking(db, db_booking.id, {"status": "cancelled"}, commit=False)
        # The slot stays booked while another active booking still holds it
        if not crud.get_bookings_by_slot(db, db_booking.slot_id, ACTIVE_STATUSES):
            crud.update_slot(db, db_booking.slot_id, {"status": "available"}, commit=False)
        self.recount_station_availability(db, db_booking.station_id)

    def _after_release(self, db: Session, db_booking):
        db_slot = crud.get_slot(db, db_booking.slot_id)
        db_station = crud.get_station(db, db_booking.station_id)
        if db_slot is not None and db_station is not None:
            self._notify_slot(db_station, db_slot)
        self._notify_booking("cancelled", db_booking)

    # Stations
    def create_station(self, db: Session, station: schemas.StationCreate):
        ''' Creates the station together with one available slot per bay. '''
        data = station.model_dump()
        connector_types = data["connector_types"]
        try:
            db_station = crud.create_station(db, {**data, "available_slots": 0}, commit=False)
            for number in range(1, db_station.total_slots + 1):
                crud.create_slot(db, {
                    "station_id": db_station.id,
                    "slot_number": number,
                    "status": "available",
                    "connector_type": connector_types[(number - 1) % len(connector_types)],
                }, commit=False)
            self.recount_station_availability(db, db_station.id)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info(f"Station {db_station.id} ({db_station.name}) created with {db_station.total_slots} slots.")
        return db_station

    def update_station(self, db: Session, station_id: int, patch: schemas.StationUpdate):
        changes = patch.to_patch()
        with self._station_transaction(db, station_id):
            db_station = crud.get_station(db, station_id)
            if db_station is None:
                raise NotFound("Station not found")

            db_slots = crud.get_slots_by_station(db, station_id)
            if "total_slots" in changes and db_slots:
                highest = max(s.slot_number for s in db_slots)
                if changes["total_slots"] < highest:
                    raise InvalidStationUpdate(f"total_slots cannot be below existing slot number {highest}")
            if "connector_types" in changes:
                orphaned = {s.connector_type for s in db_slots} - set(changes["connector_types"])
                if orphaned:
                    raise InvalidStationUpdate(
                        f"Connector types still used by slots: {', '.join(sorted(orphaned))}"
                    )

            db_station = crud.update_station(db, station_id, changes, commit=False)
        return db_station

    def delete_station(self, db: Session, station_id: int):
        '''
        Deletes a station with its slots and booking history. Refused while any
        booking on the station is still active.
        '''
        with self._station_transaction(db, station_id):
            if crud.get_station(db, station_id) is None:
                raise NotFound("Station not found")
            active = crud.count_bookings_by_station(db, station_id, ACTIVE_STATUSES)
            if active:
                raise StationInUse(f"Station has {active} active booking(s)")

            bookings = crud.delete_bookings_by_station(db, station_id)
            slots = crud.delete_slots_by_station(db, station_id)
            crud.delete_station(db, station_id, commit=False)

        logger.info(f"Station {station_id} deleted with {slots} slots and {bookings} bookings.")

    # Slots
    def create_slot(self, db: Session, slot: schemas.SlotCreate):
        with self._station_transaction(db, slot.station_id):
            db_station = crud.get_station(db, slot.station_id)
            if db_station is None:
                raise NotFound("Station not found")
            if slot.slot_number > db_station.total_slots:
                raise InvalidSlot(f"Slot number must be between 1 and {db_station.total_slots}")
            if crud.get_slot_by_number(db, slot.station_id, slot.slot_number) is not None:
                raise InvalidSlot(f"Slot number {slot.slot_number} already exists at this station")
            if slot.connector_type not in db_station.connector_types:
                raise ConnectorMismatch(f"Station does not offer connector {slot.connector_type}")

            db_slot = crud.create_slot(db, slot.model_dump(), commit=False)
            self.recount_station_availability(db, db_station.id)

        self._notify_slot(db_station, db_slot)
        return db_slot

    def update_slot(self, db: Session, slot_id: int, patch: schemas.SlotUpdate):
        changes = patch.to_patch()

        db_slot = crud.get_slot(db, slot_id)
        if db_slot is None:
            raise SlotNotFound("Slot not found")

        with self._station_transaction(db, db_slot.station_id):
            db_slot = crud.get_slot(db, slot_id)
            if db_slot is None:
                raise SlotNotFound("Slot not found")
            db_station = crud.get_station(db, db_slot.station_id)

            if "connector_type" in changes and changes["connector_type"] not in db_station.connector_types:
                raise ConnectorMismatch(f"Station does not offer connector {changes['connector_type']}")

            previous_status = db_slot.status
            db_slot = crud.update_slot(db, slot_id, changes, commit=False)
            if "status" in changes:
                self.recount_station_availability(db, db_station.id)

        if db_slot.status != previous_status:
            logger.info(f"Slot {db_slot.id} at station {db_station.id}: {previous_status} -> {db_slot.status}.")
            self._notify_slot(db_station, db_slot)
        return db_slot

    # Notifications
    def _notify_slot(self, db_station, db_slot):
        if self.notifier is None:
            return
        self.notifier.send_slot_update(
            db_station.id, db_slot.id, db_slot.slot_number, db_slot.status, db_station.available_slots
        )

    def _notify_booking(self, event: str, db_booking):
        if self.notifier is None:
            return
        self.notifier.send_booking_event(event, db_booking)
