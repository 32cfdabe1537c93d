# salon/routers/work_intervals_routes.py

import logging
from datetime import date, time
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlmodel import Session, select

from salon.auth import get_current_user
from salon.config import Settings, get_settings
from salon.core import overlaps
from salon.db import SalonStore, get_session, get_store, get_write_session
from salon.deps import require_role
from salon.errors import Conflict, InvalidRequest, NotFound
from salon.models import WorkInterval
from salon.schemas import UserRole, WorkIntervalCreate, WorkIntervalPublic

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/work-intervals",
    tags=["work-intervals"],
)


def _to_public(interval: WorkInterval, settings: Settings) -> dict:
    return {
        "id": interval.id,
        "day": interval.day,
        "start": interval.start,
        "end": interval.end,
        "url": f"{settings.base_url.rstrip('/')}/work-intervals/{interval.id}",
    }


def _ensure_no_overlap(
    session: Session,
    stylist_id: int,
    day: date,
    start: time,
    end: time,
    exclude_id: Optional[int] = None,
):
    same_day = session.exec(
        select(WorkInterval)
        .where(WorkInterval.stylist_id == stylist_id)
        .where(WorkInterval.day == day)
    ).all()

    for existing in same_day:
        if existing.id == exclude_id:
            continue
        if overlaps(start, end, existing.start, existing.end):
            raise Conflict("Working interval overlaps an existing one.")


def _get_owned(session: Session, interval_id: int, stylist_id: int) -> WorkInterval:
    interval = session.get(WorkInterval, interval_id)
    if interval is None or interval.stylist_id != stylist_id:
        raise NotFound("Working interval not found.")
    return interval


@router.get("", response_model=List[WorkIntervalPublic])
def list_work_intervals(
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, UserRole.stylist.value)

    intervals = session.exec(
        select(WorkInterval)
        .where(WorkInterval.stylist_id == current_user["id"])
        .order_by(WorkInterval.day, WorkInterval.start)
    ).all()
    if not intervals:
        raise NotFound("No working intervals set.")

    return [_to_public(i, settings) for i in intervals]


@router.post("", response_model=WorkIntervalPublic, status_code=201)
def create_work_interval(
    payload: WorkIntervalCreate,
    session: Session = Depends(get_write_session),
    store: SalonStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, UserRole.stylist.value)
    if payload.start >= payload.end:
        raise InvalidRequest("Start must be before end.")

    stylist_id = current_user["id"]
    # Same lock as bookings: no interleaving writes for this stylist and day
    store.lock_stylist_day(session, stylist_id, payload.day)
    _ensure_no_overlap(session, stylist_id, payload.day, payload.start, payload.end)

    interval = WorkInterval(
        stylist_id=stylist_id,
        day=payload.day,
        start=payload.start,
        end=payload.end,
    )
    session.add(interval)
    session.commit()
    session.refresh(interval)

    logger.info("Stylist %s added working interval %s on %s", stylist_id, interval.id, interval.day)
    return _to_public(interval, settings)


@router.put("/{interval_id}", response_model=WorkIntervalPublic)
def update_work_interval(
    interval_id: int,
    payload: WorkIntervalCreate,
    session: Session = Depends(get_write_session),
    store: SalonStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, UserRole.stylist.value)
    if payload.start >= payload.end:
        raise InvalidRequest("Start must be before end.")

    stylist_id = current_user["id"]
    store.lock_stylist_day(session, stylist_id, payload.day)
    interval = _get_owned(session, interval_id, stylist_id)
    _ensure_no_overlap(
        session, stylist_id, payload.day, payload.start, payload.end, exclude_id=interval.id
    )

    interval.day = payload.day
    interval.start = payload.start
    interval.end = payload.end
    session.add(interval)
    session.commit()
    session.refresh(interval)

    logger.info("Stylist %s updated working interval %s", stylist_id, interval.id)
    return _to_public(interval, settings)


@router.delete("/{interval_id}")
def delete_work_interval(
    interval_id: int,
    session: Session = Depends(get_write_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, UserRole.stylist.value)

    interval = _get_owned(session, interval_id, current_user["id"])
    session.delete(interval)
    session.commit()

    logger.info("Stylist %s deleted working interval %s", current_user["id"], interval_id)
    return {"message": "Working interval deleted."}
