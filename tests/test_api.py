import pytest

from conftest import STATION_DATA, future

USER = {"username": "alice", "email": "alice@x.com", "password": "wonderland", "name": "Alice"}


def register(client, **overrides):
    r = client.post("/api/auth/register", json={**USER, **overrides})
    assert r.status_code == 201, r.text
    return r.json()


def create_station(client, **overrides):
    r = client.post("/api/stations", json={**STATION_DATA, **overrides})
    assert r.status_code == 201, r.text
    return r.json()


def booking_body(user, station, slot, **overrides):
    body = {
        "user_id": user["id"],
        "station_id": station["id"],
        "slot_id": slot["id"],
        "start_time": future().isoformat(),
        "duration": 60,
        "connector_type": slot["connector_type"],
    }
    body.update(overrides)
    return body


def first_slot(client, station):
    return client.get(f"/api/stations/{station['id']}/slots").json()[0]


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


# Auth
def test_register_hides_password(client):
    user = register(client)
    assert user["username"] == "alice"
    assert user["role"] == "user"
    assert "password" not in user
    assert "password_hash" not in user


def test_register_duplicate_username(client):
    register(client)
    r = client.post("/api/auth/register", json={**USER, "email": "second@x.com"})
    assert r.status_code == 400
    assert r.json()["error"] == "duplicate_username"


def test_register_invalid_email(client):
    r = client.post("/api/auth/register", json={**USER, "email": "not-an-email"})
    assert r.status_code == 400
    assert r.json()["error"] == "validation_error"
    assert r.json()["errors"]


def test_login(client):
    register(client)
    r = client.post("/api/auth/login", json={"username": "alice", "password": "wonderland"})
    assert r.status_code == 200
    assert r.json()["email"] == "alice@x.com"
    assert "password_hash" not in r.json()


def test_login_wrong_password(client):
    register(client)
    r = client.post("/api/auth/login", json={"username": "alice", "password": "nope"})
    assert r.status_code == 401
    assert r.json()["error"] == "invalid_credentials"


def test_login_missing_fields(client):
    r = client.post("/api/auth/login", json={"username": "alice"})
    assert r.status_code == 400


def test_get_user(client):
    user = register(client)
    assert client.get(f"/api/users/{user['id']}").json()["username"] == "alice"
    assert client.get("/api/users/999").status_code == 404


# Stations
def test_station_crud(client):
    station = create_station(client)
    assert station["available_slots"] == 2
    assert station["status"] == "operational"

    assert client.get("/api/stations").json() == [station]
    assert client.get(f"/api/stations/{station['id']}").json() == station

    r = client.put(f"/api/stations/{station['id']}", json={"name": "Renamed", "amenities": ["Cafe"]})
    assert r.status_code == 200
    assert r.json()["name"] == "Renamed"
    assert r.json()["amenities"] == ["Cafe"]
    assert r.json()["city"] == STATION_DATA["city"]

    r = client.delete(f"/api/stations/{station['id']}")
    assert r.status_code == 204
    assert client.get(f"/api/stations/{station['id']}").status_code == 404


def test_station_validation(client):
    r = client.post("/api/stations", json={**STATION_DATA, "connector_types": []})
    assert r.status_code == 400
    r = client.post("/api/stations", json={**STATION_DATA, "latitude": 123})
    assert r.status_code == 400


def test_station_update_cannot_set_available_slots(client):
    station = create_station(client)
    r = client.put(f"/api/stations/{station['id']}", json={"available_slots": 0})
    assert r.status_code == 400
    assert client.get(f"/api/stations/{station['id']}").json()["available_slots"] == 2


def test_station_update_rejects_null_for_required_field(client):
    station = create_station(client)
    r = client.put(f"/api/stations/{station['id']}", json={"name": None})
    assert r.status_code == 400


def test_missing_station(client):
    assert client.get("/api/stations/5").status_code == 404
    assert client.put("/api/stations/5", json={"name": "x"}).status_code == 404
    assert client.delete("/api/stations/5").status_code == 404
    assert client.get("/api/stations/5/slots").status_code == 404


def test_delete_station_with_active_booking(client):
    user = register(client)
    station = create_station(client)
    client.post("/api/bookings", json=booking_body(user, station, first_slot(client, station)))

    r = client.delete(f"/api/stations/{station['id']}")
    assert r.status_code == 409
    assert r.json()["error"] == "station_in_use"


def test_nearby_stations(client):
    near = create_station(client, name="Near", latitude=12.9716 + 0.018, longitude=77.5946)
    create_station(client, name="Far", latitude=12.9716 + 0.09, longitude=77.5946)

    r = client.get("/api/stations/nearby", params={"lat": 12.9716, "lng": 77.5946, "radius": 5})
    assert r.status_code == 200
    found = r.json()
    assert [s["name"] for s in found] == ["Near"]
    assert found[0]["id"] == near["id"]
    assert found[0]["distance_km"] == 2.0


def test_nearby_default_radius_sorted_by_distance(client):
    create_station(client, name="Farther", latitude=12.9716 + 0.05, longitude=77.5946)
    create_station(client, name="Closer", latitude=12.9716 + 0.01, longitude=77.5946)

    r = client.get("/api/stations/nearby", params={"lat": 12.9716, "lng": 77.5946})
    assert [s["name"] for s in r.json()] == ["Closer", "Farther"]


def test_nearby_requires_valid_coordinates(client):
    assert client.get("/api/stations/nearby", params={"lat": "abc", "lng": 77.5}).status_code == 400
    assert client.get("/api/stations/nearby", params={"lng": 77.5}).status_code == 400
    assert client.get("/api/stations/nearby", params={"lat": 95, "lng": 77.5}).status_code == 400


# Slots
def test_slot_update_recounts_station(client):
    station = create_station(client)
    slot = first_slot(client, station)

    r = client.put(f"/api/slots/{slot['id']}", json={"status": "in_use"})
    assert r.status_code == 200
    assert r.json()["status"] == "in_use"
    assert client.get(f"/api/stations/{station['id']}").json()["available_slots"] == 1


def test_slot_update_rejects_unknown_status(client):
    station = create_station(client)
    slot = first_slot(client, station)
    r = client.put(f"/api/slots/{slot['id']}", json={"status": "broken"})
    assert r.status_code == 400


def test_create_slot(client):
    station = create_station(client)
    client.put(f"/api/stations/{station['id']}", json={"total_slots": 3})

    r = client.post("/api/slots", json={"station_id": station["id"], "slot_number": 3, "connector_type": "CCS"})
    assert r.status_code == 201
    assert client.get(f"/api/slots/{r.json()['id']}").json()["slot_number"] == 3
    assert client.get(f"/api/stations/{station['id']}").json()["available_slots"] == 3

    r = client.post("/api/slots", json={"station_id": station["id"], "slot_number": 3, "connector_type": "CCS"})
    assert r.status_code == 400
    assert r.json()["error"] == "invalid_slot"


def test_missing_slot(client):
    assert client.get("/api/slots/42").status_code == 404
    assert client.put("/api/slots/42", json={"status": "in_use"}).status_code == 404


@pytest.mark.parametrize("path, code", [
    ("/api/users/999", "not_found"),
    ("/api/stations/999", "not_found"),
    ("/api/stations/999/slots", "not_found"),
    ("/api/slots/999", "slot_not_found"),
    ("/api/bookings/999", "not_found"),
    ("/api/vehicles/999", "not_found"),
])
def test_missing_resources_share_the_error_body(client, path, code):
    r = client.get(path)
    assert r.status_code == 404
    assert r.json()["error"] == code
    assert r.json()["detail"].endswith("not found")


# Bookings
def test_booking_round_trip(client):
    user = register(client)
    station = create_station(client)
    slot = first_slot(client, station)

    r = client.post("/api/bookings", json=booking_body(user, station, slot, vehicle={"make": "MG", "model": "ZS EV"}))
    assert r.status_code == 201, r.text
    booking = r.json()
    assert booking["status"] == "confirmed"
    assert booking["estimated_cost"] == 300.0
    assert booking["vehicle"] == {"make": "MG", "model": "ZS EV", "year": None}
    assert client.get(f"/api/stations/{station['id']}").json()["available_slots"] == 1
    assert client.get(f"/api/slots/{slot['id']}").json()["status"] == "booked"

    assert client.get(f"/api/bookings/{booking['id']}").json() == booking
    assert client.get("/api/bookings").json() == [booking]
    assert client.get(f"/api/users/{user['id']}/bookings").json() == [booking]
    assert client.get(f"/api/stations/{station['id']}/bookings").json() == [booking]

    r = client.put(f"/api/bookings/{booking['id']}", json={"status": "cancelled"})
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"
    assert client.get(f"/api/slots/{slot['id']}").json()["status"] == "available"
    assert client.get(f"/api/stations/{station['id']}").json()["available_slots"] == 2


def test_booking_failures_explain_why(client):
    user = register(client)
    station = create_station(client)
    slot = first_slot(client, station)

    r = client.post("/api/bookings", json=booking_body(user, station, slot, connector_type="CHAdeMO"))
    assert r.status_code == 400
    assert r.json()["error"] == "connector_mismatch"

    r = client.post("/api/bookings", json=booking_body(user, station, slot, slot_id=999))
    assert r.status_code == 404
    assert r.json()["error"] == "slot_not_found"

    assert client.post("/api/bookings", json=booking_body(user, station, slot)).status_code == 201
    r = client.post("/api/bookings", json=booking_body(user, station, slot))
    assert r.status_code == 409
    assert r.json()["error"] == "slot_unavailable"
    assert client.get(f"/api/stations/{station['id']}").json()["available_slots"] == 1


def test_booking_validation(client):
    user = register(client)
    station = create_station(client)
    slot = first_slot(client, station)

    for bad in ({"duration": 0}, {"duration": -5}, {"start_time": "yesterday"}, {"surprise": True}):
        r = client.post("/api/bookings", json=booking_body(user, station, slot, **bad))
        assert r.status_code == 400, bad
        assert r.json()["error"] == "validation_error"
    assert client.get("/api/bookings").json() == []


def test_cancel_endpoint_is_idempotent(client):
    user = register(client)
    station = create_station(client)
    slot = first_slot(client, station)
    booking = client.post("/api/bookings", json=booking_body(user, station, slot)).json()

    first = client.post(f"/api/bookings/{booking['id']}/cancel")
    second = client.post(f"/api/bookings/{booking['id']}/cancel")
    assert first.status_code == second.status_code == 200
    assert first.json() == second.json()
    assert client.get(f"/api/stations/{station['id']}").json()["available_slots"] == 2


def test_reopening_cancelled_booking_conflicts(client):
    user = register(client)
    station = create_station(client)
    booking = client.post("/api/bookings", json=booking_body(user, station, first_slot(client, station))).json()
    client.post(f"/api/bookings/{booking['id']}/cancel")

    r = client.put(f"/api/bookings/{booking['id']}", json={"status": "confirmed"})
    assert r.status_code == 409
    assert r.json()["error"] == "invalid_status_transition"


def test_missing_booking(client):
    assert client.get("/api/bookings/3").status_code == 404
    assert client.put("/api/bookings/3", json={"status": "cancelled"}).status_code == 404
    assert client.post("/api/bookings/3/cancel").status_code == 404


def test_repeated_reads_are_identical(client):
    user = register(client)
    station = create_station(client)
    client.post("/api/bookings", json=booking_body(user, station, first_slot(client, station)))

    for path in ("/api/stations", f"/api/stations/{station['id']}", "/api/bookings"):
        assert client.get(path).content == client.get(path).content


# Vehicles
def test_vehicle_crud(client):
    user = register(client)
    body = {"make": "Tata", "model": "Nexon EV", "year": "2023", "connector_types": ["CCS"]}

    r = client.post(f"/api/users/{user['id']}/vehicles", json=body)
    assert r.status_code == 201
    vehicle = r.json()
    assert vehicle["user_id"] == user["id"]

    r = client.post("/api/vehicles", json={**body, "model": "Tiago EV", "user_id": user["id"]})
    assert r.status_code == 201

    listed = client.get(f"/api/users/{user['id']}/vehicles").json()
    assert [v["model"] for v in listed] == ["Nexon EV", "Tiago EV"]

    r = client.put(f"/api/vehicles/{vehicle['id']}", json={"connector_types": ["CCS", "Type 2"]})
    assert r.status_code == 200
    assert r.json()["connector_types"] == ["CCS", "Type 2"]
    assert r.json()["make"] == "Tata"

    assert client.get(f"/api/vehicles/{vehicle['id']}").json() == r.json()
    assert client.delete(f"/api/vehicles/{vehicle['id']}").status_code == 204
    assert client.get(f"/api/vehicles/{vehicle['id']}").status_code == 404
    assert client.delete(f"/api/vehicles/{vehicle['id']}").status_code == 404


def test_vehicle_validation(client):
    user = register(client)
    r = client.post(f"/api/users/{user['id']}/vehicles", json={"make": "Tata", "model": "X", "year": "2023", "connector_types": []})
    assert r.status_code == 400
    r = client.post("/api/users/999/vehicles", json={"make": "Tata", "model": "X", "year": "2023", "connector_types": ["CCS"]})
    assert r.status_code == 404
    assert client.put("/api/vehicles/999", json={"make": "Kia"}).status_code == 404
