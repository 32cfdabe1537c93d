"""Tests for BookingService: availability, preview, commit and cancellation."""

import threading
from datetime import datetime, time, timedelta

import pytest
from pydantic import ValidationError
from sqlalchemy import func
from sqlmodel import select

from conftest import DAY, add_appointment
from salon.booking import FULLY_BOOKED_REASON, NOT_WORKING_REASON, BookingService
from salon.errors import Conflict, InvalidRequest, NotFound
from salon.models import Appointment, AppointmentService
from salon.schemas import (
    AppointmentStatus,
    AvailabilityRequest,
    ReservationPublic,
    ReservationRequest,
)


@pytest.fixture
def booking(store):
    return BookingService(store)


def count_rows(store, model):
    with store.session() as session:
        return session.exec(select(func.count()).select_from(model)).one()


def reservation(salon, start, service_ids, day=DAY, notes=None):
    return ReservationRequest(
        stylist_id=salon.ana,
        day=day,
        start_time=start,
        service_ids=service_ids,
        notes=notes,
    )


class TestAvailability:
    def test_free_windows_around_booking(self, store, salon, booking):
        """09:00-12:00 with 10:00-10:30 booked gives 09:00-09:30 and 10:30-11:30."""
        add_appointment(store, salon.maja, salon.ana, datetime.combine(DAY, time(10, 0)), [salon.haircut])

        result = booking.availability(
            AvailabilityRequest(stylist_id=salon.ana, day=DAY, service_ids=[salon.haircut])
        )

        assert result.total_duration == 30
        assert [(w.earliest, w.latest) for w in result.windows] == [
            ("09:00", "09:30"),
            ("10:30", "11:30"),
        ]
        assert result.reason is None

    def test_total_duration_sums_services(self, salon, booking):
        result = booking.availability(
            AvailabilityRequest(
                stylist_id=salon.ana, day=DAY, service_ids=[salon.haircut, salon.coloring]
            )
        )

        assert result.total_duration == 90
        assert [(w.earliest, w.latest) for w in result.windows] == [("09:00", "10:30")]

    def test_cancelled_appointments_do_not_block(self, store, salon, booking):
        add_appointment(
            store, salon.maja, salon.ana, datetime.combine(DAY, time(10, 0)),
            [salon.haircut], status="cancelled",
        )

        result = booking.availability(
            AvailabilityRequest(stylist_id=salon.ana, day=DAY, service_ids=[salon.haircut])
        )

        assert [(w.earliest, w.latest) for w in result.windows] == [("09:00", "11:30")]

    def test_day_off_has_reason(self, salon, booking):
        result = booking.availability(
            AvailabilityRequest(
                stylist_id=salon.ana, day=DAY + timedelta(days=1), service_ids=[salon.haircut]
            )
        )

        assert result.windows == []
        assert result.reason == NOT_WORKING_REASON

    def test_fully_booked_day_has_different_reason(self, store, salon, booking):
        for hour in (9, 10, 11):
            add_appointment(
                store, salon.maja, salon.ana, datetime.combine(DAY, time(hour, 0)), [salon.coloring]
            )

        result = booking.availability(
            AvailabilityRequest(stylist_id=salon.ana, day=DAY, service_ids=[salon.haircut])
        )

        assert result.windows == []
        assert result.reason == FULLY_BOOKED_REASON

    def test_unknown_stylist(self, salon, booking):
        with pytest.raises(NotFound):
            booking.availability(
                AvailabilityRequest(stylist_id=999, day=DAY, service_ids=[salon.haircut])
            )

    def test_stylist_without_capability(self, salon, booking):
        with pytest.raises(InvalidRequest):
            booking.availability(
                AvailabilityRequest(stylist_id=salon.ana, day=DAY, service_ids=[salon.beard])
            )

    def test_unknown_service(self, salon, booking):
        with pytest.raises(InvalidRequest):
            booking.availability(
                AvailabilityRequest(stylist_id=salon.ana, day=DAY, service_ids=[salon.haircut, 999])
            )


class TestPreview:
    def test_preview_summary(self, salon, booking):
        preview = booking.preview(
            reservation(salon, time(9, 30), [salon.haircut, salon.coloring], notes="Short sides")
        )

        assert preview.stylist == "Ana Novak"
        assert [s.name for s in preview.services] == ["Haircut", "Coloring"]
        assert preview.starts_at == datetime.combine(DAY, time(9, 30))
        assert preview.ends_at == datetime.combine(DAY, time(11, 0))
        assert preview.total_duration == 90
        assert preview.total_price == 60.0
        assert preview.notes == "Short sides"

    def test_preview_never_writes(self, store, salon, booking):
        for _ in range(3):
            booking.preview(reservation(salon, time(9, 0), [salon.haircut]))

        assert count_rows(store, Appointment) == 0
        assert count_rows(store, AppointmentService) == 0

    def test_preview_outside_working_hours(self, salon, booking):
        with pytest.raises(Conflict):
            booking.preview(reservation(salon, time(12, 0), [salon.haircut]))

    def test_preview_unknown_stylist(self, salon, booking):
        request = reservation(salon, time(9, 0), [salon.haircut])
        request.stylist_id = 999

        with pytest.raises(NotFound):
            booking.preview(request)


class TestReserve:
    def test_reserve_creates_appointment_and_lines(self, store, salon, booking):
        result = booking.reserve(salon.eva, reservation(salon, time(9, 0), [salon.haircut, salon.coloring]))

        assert result.status == AppointmentStatus.reserved
        with store.session() as session:
            appointment = session.get(Appointment, result.id)
            assert appointment.client_id == salon.eva
            assert appointment.starts_at == datetime.combine(DAY, time(9, 0))
            lines = session.exec(
                select(AppointmentService.service_id).where(AppointmentService.appointment_id == result.id)
            ).all()
            assert sorted(lines) == sorted([salon.haircut, salon.coloring])

    def test_overlapping_booking_is_rejected(self, store, salon, booking):
        """60 minutes at 10:00 collides with an appointment at 10:30-11:00."""
        add_appointment(store, salon.maja, salon.ana, datetime.combine(DAY, time(10, 30)), [salon.haircut])

        with pytest.raises(Conflict):
            booking.reserve(salon.eva, reservation(salon, time(10, 0), [salon.coloring]))

        assert count_rows(store, Appointment) == 1

    def test_adjacent_booking_is_accepted(self, store, salon, booking):
        add_appointment(store, salon.maja, salon.ana, datetime.combine(DAY, time(10, 30)), [salon.haircut])

        result = booking.reserve(salon.eva, reservation(salon, time(9, 30), [salon.coloring]))

        assert result.status == AppointmentStatus.reserved

    def test_start_must_be_inside_working_interval(self, salon, booking):
        with pytest.raises(Conflict):
            booking.reserve(salon.eva, reservation(salon, time(8, 30), [salon.haircut]))
        with pytest.raises(Conflict):
            booking.reserve(salon.eva, reservation(salon, time(12, 0), [salon.haircut]))

    def test_capability_rechecked_on_commit(self, salon, booking):
        with pytest.raises(InvalidRequest):
            booking.reserve(salon.eva, reservation(salon, time(9, 0), [salon.haircut, salon.beard]))

    def test_duplicate_services_rejected(self, salon):
        with pytest.raises(ValidationError):
            reservation(salon, time(9, 0), [salon.haircut, salon.haircut])

    def test_start_time_must_be_whole_minutes(self, salon):
        with pytest.raises(ValidationError):
            reservation(salon, time(10, 0, 30), [salon.haircut])

    def test_starts_at_column_is_naive(self):
        assert Appointment.__table__.c.starts_at.type.timezone is False

    def test_commit_rechecks_after_preview(self, store, salon, booking):
        request = reservation(salon, time(9, 0), [salon.haircut])
        booking.preview(request)
        add_appointment(store, salon.maja, salon.ana, datetime.combine(DAY, time(9, 15)), [salon.haircut])

        with pytest.raises(Conflict):
            booking.reserve(salon.eva, request)

    def test_concurrent_commits_only_one_wins(self, store, salon, booking):
        request = reservation(salon, time(10, 0), [salon.coloring])
        barrier = threading.Barrier(2)
        results = []

        def attempt(client_id):
            barrier.wait()
            try:
                results.append(booking.reserve(client_id, request))
            except Conflict as exc:
                results.append(exc)

        threads = [threading.Thread(target=attempt, args=(c,)) for c in (salon.eva, salon.maja)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len([r for r in results if isinstance(r, ReservationPublic)]) == 1
        assert len([r for r in results if isinstance(r, Conflict)]) == 1
        assert count_rows(store, Appointment) == 1

    def test_reads_do_not_wait_for_open_commit(self, store, salon, booking):
        """Availability still answers while a commit holds the write lock."""
        with store.transaction() as session:
            store.lock_stylist_day(session, salon.ana, DAY)

            response = booking.availability(
                AvailabilityRequest(stylist_id=salon.ana, day=DAY, service_ids=[salon.haircut])
            )

        assert [(w.earliest, w.latest) for w in response.windows] == [("09:00", "11:30")]


class TestCancel:
    def service_at(self, store, now):
        return BookingService(store, now=lambda: now)

    def test_cancel_24_hours_ahead(self, store, salon):
        starts_at = datetime.combine(DAY, time(10, 0))
        appointment_id = add_appointment(store, salon.eva, salon.ana, starts_at, [salon.haircut])

        result = self.service_at(store, starts_at - timedelta(hours=24)).cancel(salon.eva, appointment_id)

        assert result.success is True
        with store.session() as session:
            assert session.get(Appointment, appointment_id).status == "cancelled"

    def test_cancel_23_hours_ahead_is_too_late(self, store, salon):
        starts_at = datetime.combine(DAY, time(10, 0))
        appointment_id = add_appointment(store, salon.eva, salon.ana, starts_at, [salon.haircut])

        with pytest.raises(Conflict):
            self.service_at(store, starts_at - timedelta(hours=23)).cancel(salon.eva, appointment_id)

        with store.session() as session:
            assert session.get(Appointment, appointment_id).status == "reserved"

    def test_cancel_twice(self, store, salon):
        starts_at = datetime.combine(DAY, time(10, 0))
        appointment_id = add_appointment(store, salon.eva, salon.ana, starts_at, [salon.haircut])
        service = self.service_at(store, starts_at - timedelta(days=3))

        service.cancel(salon.eva, appointment_id)
        with pytest.raises(Conflict):
            service.cancel(salon.eva, appointment_id)

    def test_other_clients_appointment_looks_missing(self, store, salon):
        starts_at = datetime.combine(DAY, time(10, 0))
        appointment_id = add_appointment(store, salon.eva, salon.ana, starts_at, [salon.haircut])
        service = self.service_at(store, starts_at - timedelta(days=3))

        with pytest.raises(NotFound):
            service.cancel(salon.maja, appointment_id)
        with pytest.raises(NotFound):
            service.cancel(salon.eva, 999)

    def test_cancelled_slot_can_be_booked_again(self, store, salon):
        starts_at = datetime.combine(DAY, time(10, 0))
        appointment_id = add_appointment(store, salon.eva, salon.ana, starts_at, [salon.haircut])
        service = self.service_at(store, starts_at - timedelta(days=3))

        service.cancel(salon.eva, appointment_id)
        result = service.reserve(salon.maja, reservation(salon, time(10, 0), [salon.haircut]))

        assert result.status == AppointmentStatus.reserved
