# salon/booking.py
"""
Availability, reservation and cancellation against the store.

Preview and commit run the same checks (:meth:`BookingService._check_slot`).
Commit never trusts a preview: it re-reads every fact inside its own
transaction after taking the (stylist, day) booking lock, so two commits for
the same stylist and day cannot both pass the overlap check.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Callable, Dict, List, Sequence, Tuple

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, col, select

from salon.core import candidate_starts, free_blocks, from_minutes, overlaps, to_minutes
from salon.db import SalonStore
from salon.errors import Conflict, InvalidRequest, NotFound, ServerError
from salon.models import (
    Appointment,
    AppointmentService,
    Service,
    Specialization,
    Stylist,
    WorkInterval,
)
from salon.schemas import (
    AppointmentOverview,
    AppointmentStatus,
    AvailabilityRequest,
    AvailabilityResponse,
    CancelResponse,
    ReservationPreview,
    ReservationPublic,
    ReservationRequest,
    ServiceLine,
    StartWindow,
)

logger = logging.getLogger(__name__)

NOT_WORKING_REASON = "Stylist does not work on this day."
FULLY_BOOKED_REASON = "No free time left for the requested services on this day."


@dataclass
class SlotCheck:
    stylist: Stylist
    services: List[Service]
    starts_at: datetime
    total_duration: int
    total_price: float

    @property
    def ends_at(self) -> datetime:
        return self.starts_at + timedelta(minutes=self.total_duration)


class BookingService:
    def __init__(
        self,
        store: SalonStore,
        cancellation_notice: timedelta = timedelta(hours=24),
        now: Callable[[], datetime] = datetime.now,
    ):
        self.store = store
        self.cancellation_notice = cancellation_notice
        self.now = now

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    def availability(self, request: AvailabilityRequest) -> AvailabilityResponse:
        with self.store.session() as session:
            self._get_stylist(session, request.stylist_id)
            self._ensure_capability(session, request.stylist_id, request.service_ids)
            services = self._get_services(session, request.service_ids)
            total_duration = _total_duration(services)

            work = self._work_intervals(session, request.stylist_id, request.day)
            if not work:
                return AvailabilityResponse(
                    total_duration=total_duration, windows=[], reason=NOT_WORKING_REASON
                )

            midnight = datetime.combine(request.day, time.min)
            booked = []
            for starts_at, duration in self._booked(session, request.stylist_id, request.day):
                offset = int((starts_at - midnight).total_seconds() // 60)
                booked.append((offset, offset + duration))

        blocks = free_blocks(
            [(to_minutes(w.start), to_minutes(w.end)) for w in work], booked
        )
        windows = [
            StartWindow(
                earliest=from_minutes(earliest).strftime("%H:%M"),
                latest=from_minutes(latest).strftime("%H:%M"),
            )
            for earliest, latest in candidate_starts(blocks, total_duration)
        ]
        return AvailabilityResponse(
            total_duration=total_duration,
            windows=windows,
            reason=None if windows else FULLY_BOOKED_REASON,
        )

    # ------------------------------------------------------------------
    # Reservation
    # ------------------------------------------------------------------

    def preview(self, request: ReservationRequest) -> ReservationPreview:
        """Run every reservation check without writing anything."""
        with self.store.session() as session:
            check = self._check_slot(session, request)

        return ReservationPreview(
            stylist=check.stylist.display_name,
            services=[_service_line(s) for s in check.services],
            starts_at=check.starts_at,
            ends_at=check.ends_at,
            total_duration=check.total_duration,
            total_price=check.total_price,
            notes=request.notes,
        )

    def reserve(self, client_id: int, request: ReservationRequest) -> ReservationPublic:
        try:
            with self.store.transaction() as session:
                self.store.lock_stylist_day(session, request.stylist_id, request.day)
                check = self._check_slot(session, request)

                appointment = Appointment(
                    client_id=client_id,
                    stylist_id=request.stylist_id,
                    starts_at=check.starts_at,
                    status=AppointmentStatus.reserved.value,
                    notes=request.notes,
                )
                session.add(appointment)
                session.flush()  # fills appointment.id

                session.add_all(
                    AppointmentService(appointment_id=appointment.id, service_id=s.id)
                    for s in check.services
                )
                session.flush()
                reserved = ReservationPublic(
                    id=appointment.id, status=AppointmentStatus.reserved
                )
        except (Conflict, InvalidRequest, NotFound) as exc:
            logger.info(
                "Reservation rejected for client %s with stylist %s at %s %s: %s",
                client_id, request.stylist_id, request.day, request.start_time, exc.message,
            )
            raise
        except SQLAlchemyError:
            logger.exception(
                "Reservation failed for client %s with stylist %s", client_id, request.stylist_id
            )
            raise ServerError("Could not reserve the appointment.")

        logger.info(
            "Appointment %s reserved for client %s with stylist %s at %s %s",
            reserved.id, client_id, request.stylist_id, request.day, request.start_time,
        )
        return reserved

    # ------------------------------------------------------------------
    # Cancellation
    # ------------------------------------------------------------------

    def cancel(self, client_id: int, appointment_id: int) -> CancelResponse:
        try:
            with self.store.transaction() as session:
                # Someone else's appointment looks exactly like a missing one
                appointment = session.exec(
                    select(Appointment)
                    .where(Appointment.id == appointment_id)
                    .where(Appointment.client_id == client_id)
                ).first()
                if appointment is None:
                    raise NotFound("Appointment not found.")

                if appointment.status != AppointmentStatus.reserved.value:
                    raise Conflict("This appointment cannot be cancelled.")

                if appointment.starts_at - self.now() < self.cancellation_notice:
                    hours = int(self.cancellation_notice.total_seconds() // 3600)
                    raise Conflict(
                        f"Appointments can only be cancelled at least {hours} hours before they start."
                    )

                result = session.connection().execute(
                    update(Appointment)
                    .where(Appointment.id == appointment_id)
                    .where(Appointment.status == AppointmentStatus.reserved.value)
                    .values(status=AppointmentStatus.cancelled.value)
                )
                if not result.rowcount:
                    raise Conflict("This appointment cannot be cancelled.")
        except SQLAlchemyError:
            logger.exception("Cancelling appointment %s failed", appointment_id)
            raise ServerError("Could not cancel the appointment.")

        logger.info("Appointment %s cancelled by client %s", appointment_id, client_id)
        return CancelResponse(message="Appointment cancelled.")

    # ------------------------------------------------------------------
    # Client overview
    # ------------------------------------------------------------------

    def client_appointments(self, client_id: int, base_url: str) -> List[AppointmentOverview]:
        with self.store.session() as session:
            rows = session.exec(
                select(Appointment, Stylist, Service)
                .join(Stylist, Stylist.id == Appointment.stylist_id)
                .join(AppointmentService, AppointmentService.appointment_id == Appointment.id)
                .join(Service, Service.id == AppointmentService.service_id)
                .where(Appointment.client_id == client_id)
                .order_by(Appointment.starts_at, Appointment.id, Service.id)
            ).all()

            grouped: Dict[int, Tuple[Appointment, Stylist, List[Service]]] = {}
            for appointment, stylist, service in rows:
                grouped.setdefault(appointment.id, (appointment, stylist, []))[2].append(service)

            overview = []
            for appointment, stylist, services in grouped.values():
                total_duration = sum(s.duration_minutes for s in services)
                overview.append(
                    AppointmentOverview(
                        id=appointment.id,
                        stylist=stylist.display_name,
                        services=[_service_line(s) for s in services],
                        starts_at=appointment.starts_at,
                        ends_at=appointment.starts_at + timedelta(minutes=total_duration),
                        total_duration=total_duration,
                        total_price=sum(s.price for s in services),
                        notes=appointment.notes,
                        status=appointment.status,
                        cancel_url=f"{base_url.rstrip('/')}/appointments/{appointment.id}/cancel",
                    )
                )
        return overview

    # ------------------------------------------------------------------
    # Shared checks
    # ------------------------------------------------------------------

    def _check_slot(self, session: Session, request: ReservationRequest) -> SlotCheck:
        stylist = self._get_stylist(session, request.stylist_id)
        self._ensure_capability(session, request.stylist_id, request.service_ids)

        work = self._work_intervals(session, request.stylist_id, request.day)
        if not any(w.start <= request.start_time < w.end for w in work):
            raise Conflict("Stylist is unavailable at the requested time.")

        services = self._get_services(session, request.service_ids)
        total_duration = _total_duration(services)
        total_price = sum(s.price for s in services)

        starts_at = datetime.combine(request.day, request.start_time)
        ends_at = starts_at + timedelta(minutes=total_duration)
        for existing_start, duration in self._booked(session, request.stylist_id, request.day):
            existing_end = existing_start + timedelta(minutes=duration)
            if overlaps(starts_at, ends_at, existing_start, existing_end):
                raise Conflict("Requested slot is unavailable.")

        return SlotCheck(
            stylist=stylist,
            services=services,
            starts_at=starts_at,
            total_duration=total_duration,
            total_price=total_price,
        )

    def _get_stylist(self, session: Session, stylist_id: int) -> Stylist:
        stylist = session.get(Stylist, stylist_id)
        if stylist is None:
            raise NotFound("Stylist not found.")
        return stylist

    def _ensure_capability(self, session: Session, stylist_id: int, service_ids: Sequence[int]) -> None:
        qualified = session.exec(
            select(Service.id)
            .join(Specialization, Specialization.category == Service.category)
            .where(Specialization.stylist_id == stylist_id)
            .where(col(Service.id).in_(service_ids))
        ).all()
        if len(set(qualified)) != len(service_ids):
            raise InvalidRequest("Stylist does not perform all requested services.")

    def _get_services(self, session: Session, service_ids: Sequence[int]) -> List[Service]:
        rows = session.exec(select(Service).where(col(Service.id).in_(service_ids))).all()
        by_id = {s.id: s for s in rows}
        if len(by_id) != len(service_ids):
            raise InvalidRequest("Invalid services.")
        return [by_id[service_id] for service_id in service_ids]

    def _work_intervals(self, session: Session, stylist_id: int, day: date) -> List[WorkInterval]:
        return list(
            session.exec(
                select(WorkInterval)
                .where(WorkInterval.stylist_id == stylist_id)
                .where(WorkInterval.day == day)
                .order_by(WorkInterval.start)
            ).all()
        )

    def _booked(self, session: Session, stylist_id: int, day: date) -> List[Tuple[datetime, int]]:
        """Start and total duration of every reserved appointment of the stylist that day."""
        day_start = datetime.combine(day, time.min)
        rows = session.exec(
            select(Appointment.starts_at, func.sum(Service.duration_minutes))
            .join(AppointmentService, AppointmentService.appointment_id == Appointment.id)
            .join(Service, Service.id == AppointmentService.service_id)
            .where(Appointment.stylist_id == stylist_id)
            .where(Appointment.status == AppointmentStatus.reserved.value)
            .where(Appointment.starts_at >= day_start)
            .where(Appointment.starts_at < day_start + timedelta(days=1))
            .group_by(Appointment.id, Appointment.starts_at)
            .order_by(Appointment.starts_at)
        ).all()
        return [(starts_at, int(duration)) for starts_at, duration in rows]


def _total_duration(services: Sequence[Service]) -> int:
    total = sum(s.duration_minutes or 0 for s in services)
    if total <= 0:
        raise InvalidRequest("Invalid services.")
    return total


def _service_line(service: Service) -> ServiceLine:
    return ServiceLine(
        id=service.id,
        name=service.name,
        duration_minutes=service.duration_minutes,
        price=service.price,
    )
