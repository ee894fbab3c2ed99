from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, JSON, String, UniqueConstraint
from sqlalchemy.orm import relationship
from .database import Base
from .utils import utcnow

"""
This file contains the database model definitions, with their relationships.
(Object–relational mapping)

Every table uses AUTOINCREMENT on SQLite so identifiers are never reused
after a delete.
"""

class User(Base):
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    username = Column(String(80), unique=True, index=True, nullable=False)
    email = Column(String(200), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    name = Column(String(120), nullable=False)

    # "user" | "admin"
    role = Column(String(20), nullable=False, default="user")

    created_at = Column(DateTime, default=utcnow)


class Station(Base):
    __tablename__ = "stations"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    address = Column(String(500), nullable=False)
    city = Column(String(100), nullable=False)
    state = Column(String(100), nullable=False)
    zip_code = Column(String(20), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)

    total_slots = Column(Integer, nullable=False)
    # Derived from slot statuses, only written by BookingService
    available_slots = Column(Integer, nullable=False, default=0)

    price_per_kwh = Column(Float, nullable=False)
    fast_charging_available = Column(Boolean, default=False)
    amenities = Column(JSON, nullable=False, default=list)
    connector_types = Column(JSON, nullable=False)
    image_url = Column(String(500), nullable=True)
    contact_phone = Column(String(50), nullable=True)
    contact_email = Column(String(200), nullable=True)
    operating_hours = Column(String(120), default="24 hours, 7 days a week")

    # "operational" | "maintenance" | "offline"
    status = Column(String(20), nullable=False, default="operational")

    created_at = Column(DateTime, default=utcnow)

    slots = relationship("Slot", back_populates="station", order_by="Slot.slot_number")


class Slot(Base):
    __tablename__ = "slots"
    __table_args__ = (
        UniqueConstraint("station_id", "slot_number", name="uq_station_slot_number"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True)
    station_id = Column(Integer, ForeignKey("stations.id"), nullable=False, index=True)
    slot_number = Column(Integer, nullable=False)

    # "available" | "in_use" | "booked"
    status = Column(String(20), nullable=False, default="available")
    connector_type = Column(String(50), nullable=False)

    station = relationship("Station", back_populates="slots")


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    station_id = Column(Integer, ForeignKey("stations.id"), nullable=False, index=True)
    slot_id = Column(Integer, ForeignKey("slots.id"), nullable=False, index=True)

    booking_date = Column(Date, nullable=False)
    start_time = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=False)  # minutes

    # "confirmed" | "in_progress" | "completed" | "cancelled"
    status = Column(String(20), nullable=False, default="confirmed")

    # {"make": ..., "model": ..., "year": ...}
    vehicle = Column(JSON, nullable=True)
    connector_type = Column(String(50), nullable=False)
    estimated_cost = Column(Float, nullable=True)

    created_at = Column(DateTime, default=utcnow)


class Vehicle(Base):
    __tablename__ = "vehicles"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    make = Column(String(80), nullable=False)
    model = Column(String(80), nullable=False)
    year = Column(String(10), nullable=False)
    connector_types = Column(JSON, nullable=False)
