"""Shared fixtures: a fresh SQLite store per test seeded with a small salon."""

from datetime import date, datetime, time
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from salon.auth import create_access_token
from salon.db import SalonStore
from salon.main import create_app
from salon.models import (
    Appointment,
    AppointmentService,
    Client,
    Service,
    Specialization,
    Stylist,
    WorkInterval,
)

DAY = date(2030, 6, 10)


@pytest.fixture
def store(tmp_path):
    """File-backed store so several threads can share it."""
    store = SalonStore(f"sqlite:///{tmp_path / 'salon.db'}")
    store.init_schema()
    yield store
    store.dispose()


@pytest.fixture
def salon(store):
    """Two clients, two stylists, three services and Ana's 09:00-12:00 shift on DAY."""
    with store.session() as session:
        eva = Client(username="eva", first_name="Eva", last_name="Kos", email="eva@example.com")
        maja = Client(username="maja", first_name="Maja", last_name="Zupan", email="maja@example.com")
        ana = Stylist(username="ana", first_name="Ana", last_name="Novak")
        marko = Stylist(username="marko", first_name="Marko", last_name="Horvat")
        haircut = Service(name="Haircut", category="haircut", price=15.0, duration_minutes=30)
        coloring = Service(name="Coloring", category="coloring", price=45.0, duration_minutes=60)
        beard = Service(name="Beard trim", category="beard", price=10.0, duration_minutes=15)
        session.add_all([eva, maja, ana, marko, haircut, coloring, beard])
        session.commit()

        session.add_all([
            Specialization(stylist_id=ana.id, category="haircut"),
            Specialization(stylist_id=ana.id, category="coloring"),
            Specialization(stylist_id=marko.id, category="beard"),
            WorkInterval(stylist_id=ana.id, day=DAY, start=time(9, 0), end=time(12, 0)),
        ])
        session.commit()

        return SimpleNamespace(
            eva=eva.id,
            maja=maja.id,
            ana=ana.id,
            marko=marko.id,
            haircut=haircut.id,
            coloring=coloring.id,
            beard=beard.id,
        )


def add_appointment(store, client_id, stylist_id, starts_at: datetime, service_ids, status="reserved"):
    """Insert an appointment directly, bypassing the booking checks."""
    with store.session() as session:
        appointment = Appointment(
            client_id=client_id,
            stylist_id=stylist_id,
            starts_at=starts_at,
            status=status,
        )
        session.add(appointment)
        session.flush()
        session.add_all(
            AppointmentService(appointment_id=appointment.id, service_id=service_id)
            for service_id in service_ids
        )
        session.commit()
        return appointment.id


def auth_headers(user_id: int, role: str) -> dict:
    token = create_access_token({"sub": str(user_id), "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(store):
    """Test client wired to the per-test store."""
    return TestClient(create_app(store=store))
