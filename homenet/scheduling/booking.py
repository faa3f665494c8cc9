# homenet/scheduling/booking.py
"""Persisting a booking without letting two overlapping requests both through.

Every booking transaction first bumps the ``booking_day`` row for its date.
That write takes the row lock (or SQLite's writer lock), so a second request
for the same date waits until the first commits and then re-reads the
calendar before deciding.  The partial unique index on ``(date, time)``
catches anything that still slips past.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, time, timedelta
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from homenet import db
from homenet.errors import SLOT_UNAVAILABLE
from homenet.models import BookingDay, Schedule, utcnow
from homenet.scheduling.conflicts import (
    Appointment,
    SlotDecision,
    BOOKING_WINDOW_DAYS,
    check_business_rules,
    check_conflicts,
    check_slot,
    parse_time,
)

logger = logging.getLogger(__name__)

DUPLICATE_WINDOW = timedelta(hours=24)


@dataclass(frozen=True)
class BookingRequest:
    name: str
    email: str
    date: date
    start: time
    appointment_type: str
    duration: int
    quote_id: Optional[int] = None
    notes: Optional[str] = None
    ip: Optional[str] = None

    def as_appointment(self) -> Appointment:
        return Appointment(self.date, self.start, self.duration, self.appointment_type)


@dataclass(frozen=True)
class BookingOutcome:
    decision: SlotDecision
    schedule: Optional[Schedule] = None

    @property
    def accepted(self) -> bool:
        return self.decision.accepted


def to_appointment(schedule: Schedule) -> Appointment:
    return Appointment(schedule.date, parse_time(schedule.time),
                       schedule.duration, schedule.appointment_type)


def active_on(day: date):
    return Schedule.query.filter(Schedule.date == day, Schedule.status != 'cancelled')


def _lock_day(day: date) -> bool:
    stmt = (
        update(BookingDay)
        .where(BookingDay.date == day)
        .values(version=BookingDay.version + 1)
        .execution_options(synchronize_session=False)
    )
    if db.session.execute(stmt).rowcount:
        return True
    db.session.add(BookingDay(date=day, version=1))
    try:
        db.session.flush()
    except IntegrityError:
        # Another request created the row first; its lock is what we want
        db.session.rollback()
        return False
    return True


def book_slot(req: BookingRequest, today: date | None = None, now=None,
              window_days: int = BOOKING_WINDOW_DAYS) -> BookingOutcome:
    today = today or date.today()
    now = now or utcnow()
    candidate = req.as_appointment()

    decision = check_business_rules(candidate, today, window_days=window_days)
    if not decision.accepted:
        return BookingOutcome(decision)

    if not (_lock_day(req.date) or _lock_day(req.date)):
        return BookingOutcome(SlotDecision.reject(SLOT_UNAVAILABLE, 'Calendar busy, try again'))

    try:
        existing = [to_appointment(s) for s in active_on(req.date).all()]
        recent = Schedule.query.filter(
            Schedule.email == req.email,
            Schedule.created_at >= now - DUPLICATE_WINDOW,
        ).first()
        decision = check_slot(candidate, existing, today,
                              recent_booking=recent is not None,
                              window_days=window_days)
        if not decision.accepted:
            db.session.rollback()
            logger.info('Booking rejected for %s on %s %s: %s',
                        req.email, req.date, req.start, decision.reason)
            return BookingOutcome(decision)

        schedule = Schedule(
            name             = req.name,
            email            = req.email,
            date             = req.date,
            time             = req.start.strftime('%H:%M'),
            appointment_type = req.appointment_type,
            duration         = req.duration,
            quote_id         = req.quote_id,
            notes            = req.notes,
            ip               = req.ip,
        )
        db.session.add(schedule)
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        logger.warning('Booking for %s %s lost to a concurrent insert', req.date, req.start)
        return BookingOutcome(SlotDecision.reject(SLOT_UNAVAILABLE,
                                                  'Requested time was just booked'))

    logger.info('Booked %s on %s %s for %s minutes',
                req.appointment_type, req.date, req.start, req.duration)
    return BookingOutcome(decision, schedule)


def reactivate(schedule: Schedule, status: str, updated_by: str | None = None) -> SlotDecision:
    """Move a cancelled appointment back onto the calendar if its slot is still free."""
    day = schedule.date
    if not (_lock_day(day) or _lock_day(day)):
        return SlotDecision.reject(SLOT_UNAVAILABLE, 'Calendar busy, try again')

    try:
        others = [to_appointment(s)
                  for s in active_on(day).filter(Schedule.id != schedule.id).all()]
        decision = check_conflicts(to_appointment(schedule), others)
        if not decision.accepted:
            db.session.rollback()
            logger.info('Reactivation of appointment %s refused: %s',
                        schedule.id, decision.detail)
            return decision
        schedule.status = status
        schedule.updated_by = updated_by
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        return SlotDecision.reject(SLOT_UNAVAILABLE, 'That slot has been booked again')

    logger.info('Appointment %s reactivated as %s', schedule.id, status)
    return decision
