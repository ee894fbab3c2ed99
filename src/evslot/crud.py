from typing import Optional

from sqlalchemy.orm import Session

from . import models, utils

"""
This file contains methods used for interacting directly with the database.

Writes commit by default. The booking service passes commit=False to group
several writes into one transaction and commits (or rolls back) itself.
Slot status and station availability are not meant to be changed from here
directly; go through BookingService so the station count stays in sync.
"""


def _save(db: Session, obj, commit: bool):
    db.add(obj)
    if commit:
        db.commit()
        db.refresh(obj)
    else:
        db.flush()
    return obj


def _apply_patch(db: Session, obj, patch: dict, commit: bool):
    # Shallow merge: list fields are replaced, not appended to.
    for field, value in patch.items():
        setattr(obj, field, value)
    return _save(db, obj, commit)


def _delete(db: Session, obj, commit: bool) -> bool:
    if obj is None:
        return False
    db.delete(obj)
    if commit:
        db.commit()
    else:
        db.flush()
    return True


# User
def get_user(db: Session, user_id: int):
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_username(db: Session, username: str):
    return db.query(models.User).filter(models.User.username == username).first()


def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email).first()


def create_user(db: Session, data: dict, commit: bool = True):
    return _save(db, models.User(**data), commit)


# Station
def get_station(db: Session, station_id: int):
    return db.query(models.Station).filter(models.Station.id == station_id).first()


def get_all_stations(db: Session):
    return db.query(models.Station).order_by(models.Station.id).all()


def get_stations_by_location(db: Session, lat: float, lng: float, radius_km: float):
    ''' Linear scan over all stations, nearest first. Returns (station, distance_km) pairs. '''
    result = []
    for station in get_all_stations(db):
        if utils.within_radius(lat, lng, station, radius_km):
            result.append((station, utils.haversine_km(lat, lng, station.latitude, station.longitude)))
    result.sort(key=lambda pair: pair[1])
    return result


def count_stations(db: Session) -> int:
    return db.query(models.Station).count()


def create_station(db: Session, data: dict, commit: bool = True):
    return _save(db, models.Station(**data), commit)


def update_station(db: Session, station_id: int, patch: dict, commit: bool = True):
    db_station = get_station(db, station_id)
    if db_station is None:
        return None
    return _apply_patch(db, db_station, patch, commit)


def delete_station(db: Session, station_id: int, commit: bool = True) -> bool:
    return _delete(db, get_station(db, station_id), commit)


# Slot
def get_slot(db: Session, slot_id: int):
    return db.query(models.Slot).filter(models.Slot.id == slot_id).first()


def get_slots_by_station(db: Session, station_id: int):
    return (
        db.query(models.Slot)
        .filter(models.Slot.station_id == station_id)
        .order_by(models.Slot.slot_number)
        .all()
    )


def get_slot_by_number(db: Session, station_id: int, slot_number: int):
    return (
        db.query(models.Slot)
        .filter(models.Slot.station_id == station_id, models.Slot.slot_number == slot_number)
        .first()
    )


def count_slots_with_status(db: Session, station_id: int, status: str) -> int:
    return (
        db.query(models.Slot)
        .filter(models.Slot.station_id == station_id, models.Slot.status == status)
        .count()
    )


def create_slot(db: Session, data: dict, commit: bool = True):
    return _save(db, models.Slot(**data), commit)


def update_slot(db: Session, slot_id: int, patch: dict, commit: bool = True):
    db_slot = get_slot(db, slot_id)
    if db_slot is None:
        return None
    return _apply_patch(db, db_slot, patch, commit)


def claim_slot(db: Session, slot_id: int, from_status: str, to_status: str) -> bool:
    '''
    Compare-and-swap on slot status. The UPDATE only matches while the slot
    still has `from_status`, so of two writers racing on the same slot only
    one sees a changed row.
    '''
    changed = (
        db.query(models.Slot)
        .filter(models.Slot.id == slot_id, models.Slot.status == from_status)
        .update({models.Slot.status: to_status}, synchronize_session="fetch")
    )
    return changed == 1


def delete_slots_by_station(db: Session, station_id: int) -> int:
    return (
        db.query(models.Slot)
        .filter(models.Slot.station_id == station_id)
        .delete(synchronize_session="fetch")
    )


# Booking
def get_booking(db: Session, booking_id: int):
    return db.query(models.Booking).filter(models.Booking.id == booking_id).first()


def get_all_bookings(db: Session):
    return db.query(models.Booking).order_by(models.Booking.id).all()


def get_bookings_by_user(db: Session, user_id: int):
    return (
        db.query(models.Booking)
        .filter(models.Booking.user_id == user_id)
        .order_by(models.Booking.id)
        .all()
    )


def get_bookings_by_station(db: Session, station_id: int):
    return (
        db.query(models.Booking)
        .filter(models.Booking.station_id == station_id)
        .order_by(models.Booking.id)
        .all()
    )


def get_bookings_by_slot(db: Session, slot_id: int, statuses: Optional[tuple] = None):
    query = db.query(models.Booking).filter(models.Booking.slot_id == slot_id)
    if statuses is not None:
        query = query.filter(models.Booking.status.in_(statuses))
    return query.order_by(models.Booking.id).all()


def count_bookings_by_station(db: Session, station_id: int, statuses: tuple) -> int:
    return (
        db.query(models.Booking)
        .filter(models.Booking.station_id == station_id, models.Booking.status.in_(statuses))
        .count()
    )


def create_booking(db: Session, data: dict, commit: bool = True):
    return _save(db, models.Booking(**data), commit)


def update_booking(db: Session, booking_id: int, patch: dict, commit: bool = True):
    db_booking = get_booking(db, booking_id)
    if db_booking is None:
        return None
    return _apply_patch(db, db_booking, patch, commit)


def delete_bookings_by_station(db: Session, station_id: int) -> int:
    return (
        db.query(models.Booking)
        .filter(models.Booking.station_id == station_id)
        .delete(synchronize_session="fetch")
    )


# Vehicle
def get_vehicle(db: Session, vehicle_id: int):
    return db.query(models.Vehicle).filter(models.Vehicle.id == vehicle_id).first()


def get_vehicles_by_user(db: Session, user_id: int):
    return (
        db.query(models.Vehicle)
        .filter(models.Vehicle.user_id == user_id)
        .order_by(models.Vehicle.id)
        .all()
    )


def create_vehicle(db: Session, data: dict, commit: bool = True):
    return _save(db, models.Vehicle(**data), commit)


def update_vehicle(db: Session, vehicle_id: int, patch: dict, commit: bool = True):
    db_vehicle = get_vehicle(db, vehicle_id)
    if db_vehicle is None:
        return None
    return _apply_patch(db, db_vehicle, patch, commit)


def delete_vehicle(db: Session, vehicle_id: int, commit: bool = True) -> bool:
    return _delete(db, get_vehicle(db, vehicle_id), commit)
