# salon/deps.py

from datetime import timedelta

from fastapi import Depends, HTTPException

from salon.booking import BookingService
from salon.config import Settings, get_settings
from salon.db import SalonStore, get_store


def require_role(user: dict, role: str):
    if user["role"] != role:
        raise HTTPException(status_code=403, detail="Forbidden")


def get_booking_service(
    store: SalonStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> BookingService:
    return BookingService(
        store,
        cancellation_notice=timedelta(hours=settings.cancellation_notice_hours),
    )
