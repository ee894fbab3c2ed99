import logging

from sqlalchemy.orm import Session

from . import crud, schemas

logger = logging.getLogger("evslot_logger")

IMAGE_URL = "https://images.unsplash.com/photo-1558428818-a3e48549249d?auto=format&fit=crop&w=600&h=300"

# (station, number of bays that start out available; the rest are in use)
SAMPLE_STATIONS = [
    ({
        "name": "Ather Grid Charging Station – Jayanagar",
        "address": "#64, 10th Main Rd, 4th Block, Jayanagar",
        "city": "Bengaluru",
        "state": "Karnataka",
        "zip_code": "560011",
        "latitude": 12.9257,
        "longitude": 77.5960,
        "total_slots": 4,
        "price_per_kwh": 15.00,
        "fast_charging_available": False,
        "amenities": ["Parking", "24/7 Access"],
        "connector_types": ["AC Type 2"],
        "image_url": IMAGE_URL,
        "contact_phone": "9789214555",
        "contact_email": "support@athergrid.com",
        "operating_hours": "24 hours, 7 days a week",
        "status": "operational",
    }, 3),
    ({
        "name": "IKEA Bengaluru Charging Station",
        "address": "IKEA, Nagasandra",
        "city": "Bengaluru",
        "state": "Karnataka",
        "zip_code": "560073",
        "latitude": 13.0359,
        "longitude": 77.5085,
        "total_slots": 12,
        "price_per_kwh": 0.00,
        "fast_charging_available": False,
        "amenities": ["Parking", "Shopping", "Restaurant", "Restrooms"],
        "connector_types": ["Type 2"],
        "image_url": IMAGE_URL,
        "contact_phone": "1800 419 4532",
        "contact_email": "customer.care@ikea.in",
        "operating_hours": "10:00 AM - 10:00 PM",
        "status": "operational",
    }, 10),
    ({
        "name": "Mahindra EV Charging Station – Eva Mall",
        "address": "Eva Mall, 60, Brigade Road",
        "city": "Bengaluru",
        "state": "Karnataka",
        "zip_code": "560025",
        "latitude": 12.9730,
        "longitude": 77.6090,
        "total_slots": 3,
        "price_per_kwh": 18.00,
        "fast_charging_available": False,
        "amenities": ["Parking", "Shopping", "Restrooms"],
        "connector_types": ["AC Plug Point", "Socket 3PIN", "IEC 60309"],
        "image_url": IMAGE_URL,
        "contact_phone": "8041531162",
        "contact_email": "support@mahindraelectric.com",
        "operating_hours": "10:00 AM - 7:00 PM",
        "status": "operational",
    }, 1),
    ({
        "name": "BESCOM Charging Station – Indiranagar",
        "address": "BESCOM E6 Indiranagar SDO",
        "city": "Bengaluru",
        "state": "Karnataka",
        "zip_code": "560038",
        "latitude": 12.9781,
        "longitude": 77.6408,
        "total_slots": 3,
        "price_per_kwh": 12.00,
        "fast_charging_available": True,
        "amenities": ["Parking", "Government Facility"],
        "connector_types": ["AC", "DC"],
        "image_url": IMAGE_URL,
        "contact_phone": "080-2294-4300",
        "contact_email": "bescom@karnataka.gov.in",
        "operating_hours": "8:00 AM - 8:00 PM",
        "status": "operational",
    }, 2),
    ({
        "name": "ElectricPe Charging Station – Pariwar Presidency",
        "address": "Pariwar Presidency Block-B, Phase 2, Anugraha Layout, Ramanashree Enclave, Bilekahalli",
        "city": "Bengaluru",
        "state": "Karnataka",
        "zip_code": "560076",
        "latitude": 12.8943,
        "longitude": 77.6080,
        "total_slots": 6,
        "price_per_kwh": 16.00,
        "fast_charging_available": True,
        "amenities": ["Parking", "WiFi", "24/7 Access"],
        "connector_types": ["Type 2", "CCS", "CHAdeMO"],
        "image_url": IMAGE_URL,
        "contact_phone": "1800-209-1234",
        "contact_email": "support@electricpe.com",
        "operating_hours": "24 hours, 7 days a week",
        "status": "operational",
    }, 4),
]


def seed_sample_data(db: Session, service) -> int:
    ''' Adds the sample stations to an empty database. Returns how many were created. '''
    if crud.count_stations(db) > 0:
        return 0

    for data, initially_available in SAMPLE_STATIONS:
        db_station = service.create_station(db, schemas.StationCreate(**data))
        for db_slot in crud.get_slots_by_station(db, db_station.id):
            if db_slot.slot_number > initially_available:
                service.update_slot(db, db_slot.id, schemas.SlotUpdate(status="in_use"))

    logger.info(f"Seeded {len(SAMPLE_STATIONS)} sample stations.")
    return len(SAMPLE_STATIONS)
