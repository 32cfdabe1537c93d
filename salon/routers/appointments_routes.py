# salon/routers/appointments_routes.py

from typing import List

from fastapi import APIRouter, Depends

from salon.auth import get_current_user
from salon.booking import BookingService
from salon.config import Settings, get_settings
from salon.deps import get_booking_service, require_role
from salon.schemas import (
    AppointmentOverview,
    AvailabilityRequest,
    AvailabilityResponse,
    CancelResponse,
    ReservationPreview,
    ReservationPublic,
    ReservationRequest,
    UserRole,
)

router = APIRouter(
    prefix="/appointments",
    tags=["appointments"],
)


@router.post("/availability", response_model=AvailabilityResponse)
def check_availability(
    request: AvailabilityRequest,
    booking: BookingService = Depends(get_booking_service),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, UserRole.client.value)
    return booking.availability(request)


@router.post("/preview", response_model=ReservationPreview)
def preview_reservation(
    request: ReservationRequest,
    booking: BookingService = Depends(get_booking_service),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, UserRole.client.value)
    return booking.preview(request)


@router.post("", response_model=ReservationPublic, status_code=201)
def reserve_appointment(
    request: ReservationRequest,
    booking: BookingService = Depends(get_booking_service),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, UserRole.client.value)
    return booking.reserve(current_user["id"], request)


@router.patch("/{appointment_id}/cancel", response_model=CancelResponse)
def cancel_appointment(
    appointment_id: int,
    booking: BookingService = Depends(get_booking_service),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, UserRole.client.value)
    return booking.cancel(current_user["id"], appointment_id)


@router.get("/me", response_model=List[AppointmentOverview])
def list_my_appointments(
    booking: BookingService = Depends(get_booking_service),
    settings: Settings = Depends(get_settings),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, UserRole.client.value)
    return booking.client_appointments(current_user["id"], settings.base_url)
