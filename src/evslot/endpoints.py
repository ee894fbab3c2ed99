from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy import text
from sqlalchemy.orm import Session

from . import accounts, config, crud, schemas
from .booking import BookingService
from .database import get_db
from .errors import NotFound, SlotNotFound

"""
This file contains definitions for all the REST API endpoints of the server.
Request bodies are validated by the schemas before anything here runs;
domain errors raised by the service are turned into responses in run.py.
"""

router = APIRouter(prefix="/api")


def get_booking_service(request: Request) -> BookingService:
    return request.app.state.booking_service


@router.get("/health", status_code=200)
def health(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {"status": "ok", "database": "ok"}


# Auth
@router.post("/auth/register", response_model=schemas.User, status_code=201)
def register(user: schemas.UserCreate, db: Session = Depends(get_db)):
    return accounts.register(db, user)


@router.post("/auth/login", response_model=schemas.User)
def login(credentials: schemas.LoginRequest, db: Session = Depends(get_db)):
    return accounts.login(db, credentials.username, credentials.password)


@router.get("/users/{user_id}", response_model=schemas.User)
def get_user(user_id: int, db: Session = Depends(get_db)):
    db_user = crud.get_user(db, user_id)
    if db_user is None:
        raise NotFound("User not found")
    return db_user


# Station
@router.get("/stations", response_model=list[schemas.Station])
def get_stations(db: Session = Depends(get_db)):
    return crud.get_all_stations(db)


@router.get("/stations/nearby", response_model=list[schemas.StationWithDistance])
def get_nearby_stations(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    radius: float = Query(config.DEFAULT_SEARCH_RADIUS_KM, gt=0, description="Search radius in km"),
    db: Session = Depends(get_db),
):
    found = []
    for db_station, distance in crud.get_stations_by_location(db, lat, lng, radius):
        item = schemas.Station.model_validate(db_station).model_dump()
        item["distance_km"] = round(distance, 2)
        found.append(item)
    return found


@router.get("/stations/{station_id}", response_model=schemas.Station)
def get_station(station_id: int, db: Session = Depends(get_db)):
    db_station = crud.get_station(db, station_id)
    if db_station is None:
        raise NotFound("Station not found")
    return db_station


@router.post("/stations", response_model=schemas.Station, status_code=201)
def create_station(
    station: schemas.StationCreate,
    db: Session = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    return service.create_station(db, station)


@router.put("/stations/{station_id}", response_model=schemas.Station)
def update_station(
    station_id: int,
    station: schemas.StationUpdate,
    db: Session = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    return service.update_station(db, station_id, station)


@router.delete("/stations/{station_id}", status_code=204)
def delete_station(
    station_id: int,
    db: Session = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    service.delete_station(db, station_id)
    return Response(status_code=204)


# Slot
@router.get("/stations/{station_id}/slots", response_model=list[schemas.Slot])
def get_station_slots(station_id: int, db: Session = Depends(get_db)):
    if crud.get_station(db, station_id) is None:
        raise NotFound("Station not found")
    return crud.get_slots_by_station(db, station_id)


@router.get("/slots/{slot_id}", response_model=schemas.Slot)
def get_slot(slot_id: int, db: Session = Depends(get_db)):
    db_slot = crud.get_slot(db, slot_id)
    if db_slot is None:
        raise SlotNotFound("Slot not found")
    return db_slot


@router.post("/slots", response_model=schemas.Slot, status_code=201)
def create_slot(
    slot: schemas.SlotCreate,
    db: Session = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    return service.create_slot(db, slot)


@router.put("/slots/{slot_id}", response_model=schemas.Slot)
def update_slot(
    slot_id: int,
    slot: schemas.SlotUpdate,
    db: Session = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    return service.update_slot(db, slot_id, slot)


# Booking
@router.get("/bookings", response_model=list[schemas.Booking])
def get_bookings(db: Session = Depends(get_db)):
    return crud.get_all_bookings(db)


@router.get("/bookings/{booking_id}", response_model=schemas.Booking)
def get_booking(booking_id: int, db: Session = Depends(get_db)):
    db_booking = crud.get_booking(db, booking_id)
    if db_booking is None:
        raise NotFound("Booking not found")
    return db_booking


@router.get("/users/{user_id}/bookings", response_model=list[schemas.Booking])
def get_user_bookings(user_id: int, db: Session = Depends(get_db)):
    return crud.get_bookings_by_user(db, user_id)


@router.get("/stations/{station_id}/bookings", response_model=list[schemas.Booking])
def get_station_bookings(station_id: int, db: Session = Depends(get_db)):
    return crud.get_bookings_by_station(db, station_id)


@router.post("/bookings", response_model=schemas.Booking, status_code=201)
def create_booking(
    booking: schemas.BookingCreate,
    db: Session = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    '''
    Reserves a slot. Failures say why, so the client can send the user back
    to slot selection:
        * 404 slot_not_found: the slot does not exist at this station
        * 400 connector_mismatch: the slot has another connector
        * 409 slot_unavailable: the slot is already booked or in use
        * 409 station_not_operational: the station is in maintenance or offline
    '''
    return service.reserve(db, booking)


@router.put("/bookings/{booking_id}", response_model=schemas.Booking)
def update_booking(
    booking_id: int,
    booking: schemas.BookingUpdate,
    db: Session = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    return service.update_booking(db, booking_id, booking)


@router.post("/bookings/{booking_id}/cancel", response_model=schemas.Booking)
def cancel_booking(
    booking_id: int,
    db: Session = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    return service.cancel(db, booking_id)


# Vehicle
@router.get("/users/{user_id}/vehicles", response_model=list[schemas.Vehicle])
def get_user_vehicles(user_id: int, db: Session = Depends(get_db)):
    return crud.get_vehicles_by_user(db, user_id)


@router.post("/users/{user_id}/vehicles", response_model=schemas.Vehicle, status_code=201)
def create_user_vehicle(user_id: int, vehicle: schemas.VehicleIn, db: Session = Depends(get_db)):
    return _create_vehicle(db, schemas.VehicleCreate(user_id=user_id, **vehicle.model_dump()))


@router.post("/vehicles", response_model=schemas.Vehicle, status_code=201)
def create_vehicle(vehicle: schemas.VehicleCreate, db: Session = Depends(get_db)):
    return _create_vehicle(db, vehicle)


def _create_vehicle(db: Session, vehicle: schemas.VehicleCreate):
    if crud.get_user(db, vehicle.user_id) is None:
        raise NotFound("User not found")
    return crud.create_vehicle(db, vehicle.model_dump())


@router.get("/vehicles/{vehicle_id}", response_model=schemas.Vehicle)
def get_vehicle(vehicle_id: int, db: Session = Depends(get_db)):
    db_vehicle = crud.get_vehicle(db, vehicle_id)
    if db_vehicle is None:
        raise NotFound("Vehicle not found")
    return db_vehicle


@router.put("/vehicles/{vehicle_id}", response_model=schemas.Vehicle)
def update_vehicle(vehicle_id: int, vehicle: schemas.VehicleUpdate, db: Session = Depends(get_db)):
    db_vehicle = crud.update_vehicle(db, vehicle_id, vehicle.to_patch())
    if db_vehicle is None:
        raise NotFound("Vehicle not found")
    return db_vehicle


@router.delete("/vehicles/{vehicle_id}", status_code=204)
def delete_vehicle(vehicle_id: int, db: Session = Depends(get_db)):
    if not crud.delete_vehicle(db, vehicle_id):
        raise NotFound("Vehicle not found")
    return Response(status_code=204)
