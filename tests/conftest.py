from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from evslot import accounts, crud, schemas, utils
from evslot.database import make_engine
from evslot.run import create_app


class RecordingNotifier:
    ''' Stands in for the MQTT client and remembers what would have been published. '''

    def __init__(self):
        self.slot_updates = []
        self.booking_events = []

    def send_slot_update(self, station_id, slot_id, slot_number, status, available_slots):
        self.slot_updates.append((station_id, slot_id, slot_number, status, available_slots))

    def send_booking_event(self, event, booking):
        self.booking_events.append((event, booking.id, booking.status))


STATION_DATA = {
    "name": "Test Station",
    "address": "1 Main Rd",
    "city": "Bengaluru",
    "state": "Karnataka",
    "zip_code": "560001",
    "latitude": 12.9716,
    "longitude": 77.5946,
    "total_slots": 2,
    "price_per_kwh": 10.0,
    "fast_charging_available": True,
    "amenities": ["Parking"],
    "connector_types": ["CCS"],
}


def future(hours=24):
    return (utils.utcnow() + timedelta(hours=hours)).replace(second=0, microsecond=0)


def booking_request(user, station, slot, **overrides):
    data = {
        "user_id": user.id,
        "station_id": station.id,
        "slot_id": slot.id,
        "start_time": future(),
        "duration": 60,
        "connector_type": slot.connector_type,
    }
    data.update(overrides)
    return schemas.BookingCreate(**data)


def assert_availability_consistent(db):
    db.expire_all()
    for station in crud.get_all_stations(db):
        available = crud.count_slots_with_status(db, station.id, "available")
        assert station.available_slots == available
        assert 0 <= station.available_slots <= station.total_slots


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def app(tmp_path, notifier):
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    app = create_app(engine=engine, notifier=notifier, seed=False)
    yield app
    engine.dispose()


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


@pytest.fixture
def session_factory(app):
    return app.state.session_factory


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def service(app):
    return app.state.booking_service


@pytest.fixture
def user(db):
    return accounts.register(db, schemas.UserCreate(
        username="driver", email="driver@mail.com", password="secret-pw", name="Driver",
    ))


@pytest.fixture
def station(db, service):
    return service.create_station(db, schemas.StationCreate(**STATION_DATA))


@pytest.fixture
def slots(db, station):
    return crud.get_slots_by_station(db, station.id)
