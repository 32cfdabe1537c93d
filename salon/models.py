# salon/models.py

from typing import Optional
from datetime import datetime, date as Date, time

from sqlalchemy import Column, DateTime
from sqlmodel import SQLModel, Field


class Client(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    first_name: str
    last_name: str
    email: str


class Stylist(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    username: str = Field(index=True, unique=True)
    first_name: str
    last_name: str

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class Service(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(unique=True)
    category: str = Field(index=True)
    price: float
    duration_minutes: int
    description: str = ""


class Specialization(SQLModel, table=True):
    # A stylist may perform every service of a category they specialize in
    stylist_id: int = Field(foreign_key="stylist.id", primary_key=True)
    category: str = Field(primary_key=True)


class WorkInterval(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    stylist_id: int = Field(foreign_key="stylist.id", index=True)
    day: Date = Field(index=True)
    start: time
    end: time


class Appointment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    client_id: int = Field(foreign_key="client.id", index=True)
    stylist_id: int = Field(foreign_key="stylist.id", index=True)
    # Naive local time, as booked
    starts_at: datetime = Field(sa_column=Column(DateTime(timezone=False), index=True, nullable=False))
    status: str = "reserved"
    notes: Optional[str] = None


class AppointmentService(SQLModel, table=True):
    __tablename__ = "appointment_service"

    appointment_id: int = Field(foreign_key="appointment.id", primary_key=True)
    service_id: int = Field(foreign_key="service.id", primary_key=True)


class BookingLock(SQLModel, table=True):
    __tablename__ = "booking_lock"

    stylist_id: int = Field(foreign_key="stylist.id", primary_key=True)
    day: Date = Field(primary_key=True)
    version: int = 0
