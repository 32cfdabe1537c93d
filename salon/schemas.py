# salon/schemas.py

from pydantic import BaseModel, Field, field_validator
from enum import Enum
from datetime import datetime, date, time
from typing import List, Optional


class UserRole(str, Enum):
    client = "client"
    stylist = "stylist"


class AppointmentStatus(str, Enum):
    reserved = "reserved"
    cancelled = "cancelled"


class AvailabilityRequest(BaseModel):
    stylist_id: int
    day: date
    service_ids: List[int] = Field(min_length=1)

    @field_validator("service_ids")
    @classmethod
    def unique_services(cls, value: List[int]) -> List[int]:
        if len(value) != len(set(value)):
            raise ValueError("service_ids cannot contain duplicates")
        return value


class ReservationRequest(AvailabilityRequest):
    start_time: time
    notes: Optional[str] = None

    @field_validator("start_time")
    @classmethod
    def whole_minutes(cls, value: time) -> time:
        # Availability works in whole minutes
        if value.second or value.microsecond:
            raise ValueError("start_time must be given in whole minutes")
        return value


class StartWindow(BaseModel):
    earliest: str   # "HH:MM"
    latest: str


class AvailabilityResponse(BaseModel):
    total_duration: int
    windows: List[StartWindow]
    reason: Optional[str] = None


class ServiceLine(BaseModel):
    id: int
    name: str
    duration_minutes: int
    price: float


class ReservationPreview(BaseModel):
    stylist: str
    services: List[ServiceLine]
    starts_at: datetime
    ends_at: datetime
    total_duration: int
    total_price: float
    notes: Optional[str] = None


class ReservationPublic(BaseModel):
    id: int
    status: AppointmentStatus


class CancelResponse(BaseModel):
    success: bool = True
    message: str


class AppointmentOverview(ReservationPreview):
    id: int
    status: AppointmentStatus
    cancel_url: str


class WorkIntervalCreate(BaseModel):
    day: date
    start: time
    end: time


class WorkIntervalPublic(WorkIntervalCreate):
    id: int
    url: str
