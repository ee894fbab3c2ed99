from datetime import date, datetime
from typing import ClassVar, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

from . import utils

"""
This file contains the formats of data returned from the server, and received by the server.
The <Entity>Create classes are used when users wants to create a new entity.
The <Entity> classes are used when users are getting an entity from the database.
The <Entity>Update classes are used when users wants to update a entity.

Request bodies are closed: unknown fields are rejected instead of passed through.
"""

StationStatus = Literal["operational", "maintenance", "offline"]
SlotStatus = Literal["available", "in_use", "booked"]
BookingStatus = Literal["confirmed", "in_progress", "completed", "cancelled"]
Role = Literal["user", "admin"]


class RequestModel(BaseModel):
    model_config = ConfigDict(extra="forbid")


class PatchModel(RequestModel):
    '''
    Partial update. Only the fields the client actually sent end up in the
    patch; an explicit null is accepted only for the fields in `nullable`.
    '''
    nullable: ClassVar[frozenset] = frozenset()

    @model_validator(mode="after")
    def _reject_nulls(self):
        for name in self.model_fields_set:
            if getattr(self, name) is None and name not in self.nullable:
                raise ValueError(f"{name} cannot be null")
        return self

    def to_patch(self) -> dict:
        return self.model_dump(exclude_unset=True)


def _future_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return value
    value = utils.to_naive_utc(value)
    if utils.is_date_passed(value):
        raise ValueError("start_time has already passed")
    return value


# User
class UserBase(BaseModel):
    username: str = Field(..., min_length=1, max_length=80)
    email: EmailStr
    name: str = Field(..., min_length=1, max_length=120)
    role: Role = "user"


class UserCreate(UserBase, RequestModel):
    password: str = Field(..., min_length=6)


class User(UserBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime


class LoginRequest(RequestModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


# Station
class StationBase(BaseModel):
    name: str = Field(..., min_length=1)
    address: str
    city: str
    state: str
    zip_code: str
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    total_slots: int = Field(..., ge=1)
    price_per_kwh: float = Field(..., ge=0)
    fast_charging_available: bool = False
    amenities: list[str] = Field(default_factory=list)
    connector_types: list[str] = Field(..., min_length=1)
    image_url: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    operating_hours: str = "24 hours, 7 days a week"
    status: StationStatus = "operational"


class StationCreate(StationBase, RequestModel):
    pass


class StationUpdate(PatchModel):
    nullable: ClassVar[frozenset] = frozenset({"image_url", "contact_phone", "contact_email"})

    name: Optional[str] = Field(None, min_length=1)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    total_slots: Optional[int] = Field(None, ge=1)
    price_per_kwh: Optional[float] = Field(None, ge=0)
    fast_charging_available: Optional[bool] = None
    amenities: Optional[list[str]] = None
    connector_types: Optional[list[str]] = Field(None, min_length=1)
    image_url: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    operating_hours: Optional[str] = None
    status: Optional[StationStatus] = None


class Station(StationBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    available_slots: int
    created_at: datetime


class StationWithDistance(Station):
    distance_km: float


# Slot
class SlotBase(BaseModel):
    station_id: int
    slot_number: int = Field(..., ge=1)
    status: SlotStatus = "available"
    connector_type: str = Field(..., min_length=1)


class SlotCreate(SlotBase, RequestModel):
    pass


class SlotUpdate(PatchModel):
    status: Optional[SlotStatus] = None
    connector_type: Optional[str] = Field(None, min_length=1)


class Slot(SlotBase):
    model_config = ConfigDict(from_attributes=True)

    id: int


# Booking
class BookingVehicle(RequestModel):
    make: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    year: Optional[str] = None


class BookingBase(BaseModel):
    user_id: int
    station_id: int
    slot_id: int
    start_time: datetime
    duration: int = Field(..., gt=0, description="Duration in minutes")
    connector_type: str = Field(..., min_length=1)
    vehicle: Optional[BookingVehicle] = None


class BookingCreate(BookingBase, RequestModel):
    booking_date: Optional[date] = None

    @field_validator("start_time")
    @classmethod
    def _start_in_future(cls, value):
        return _future_naive_utc(value)


class BookingUpdate(PatchModel):
    nullable: ClassVar[frozenset] = frozenset({"vehicle"})

    start_time: Optional[datetime] = None
    duration: Optional[int] = Field(None, gt=0)
    status: Optional[BookingStatus] = None
    vehicle: Optional[BookingVehicle] = None
    booking_date: Optional[date] = None

    @field_validator("start_time")
    @classmethod
    def _start_in_future(cls, value):
        return _future_naive_utc(value)


class Booking(BookingBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    booking_date: date
    status: BookingStatus
    estimated_cost: Optional[float] = None
    created_at: datetime


# Vehicle
class VehicleBase(BaseModel):
    make: str = Field(..., min_length=1)
    model: str = Field(..., min_length=1)
    year: str = Field(..., min_length=1)
    connector_types: list[str] = Field(..., min_length=1)


class VehicleIn(VehicleBase, RequestModel):
    pass


class VehicleCreate(VehicleIn):
    user_id: int


class VehicleUpdate(PatchModel):
    make: Optional[str] = Field(None, min_length=1)
    model: Optional[str] = Field(None, min_length=1)
    year: Optional[str] = Field(None, min_length=1)
    connector_types: Optional[list[str]] = Field(None, min_length=1)


class Vehicle(VehicleBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
