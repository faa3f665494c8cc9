# homenet/scheduling/conflicts.py
"""Slot rules for the single installation crew calendar.

Two views of a day exist.  The booking pages render hour buckets: every
appointment occupies every hour bucket its start-to-end span touches
(09:30 for 120 minutes holds 9, 10 and 11), and a whole-home install
takes the whole day.  The authoritative check at booking time
additionally refuses any start within 60 minutes of an existing
appointment's start.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, time, timedelta
from typing import Iterable, Optional, Set

from homenet.errors import (
    SLOT_UNAVAILABLE,
    DUPLICATE_RECENT_BOOKING,
    OUTSIDE_BUSINESS_RULES,
)

DROPS_INSTALL = 'drops-only-install'
WHOLE_HOME_SURVEY = 'whole-home-survey'
WHOLE_HOME_INSTALL = 'whole-home-install'
APPOINTMENT_TYPES = (DROPS_INSTALL, WHOLE_HOME_SURVEY, WHOLE_HOME_INSTALL)

SURVEY_MINUTES = 120
WHOLE_DAY = frozenset(range(24))
BUFFER_MINUTES = 60
SLOT_GRID_MINUTES = 30
BOOKING_WINDOW_DAYS = 90


@dataclass(frozen=True)
class BookingSurface:
    """Bookable start hours for one booking page: ``first_hour`` up to ``close_hour`` - 1."""
    name: str
    first_hour: int
    close_hour: int

    @property
    def start_hours(self):
        return range(self.first_hour, self.close_hour)

    def allows(self, start: time) -> bool:
        minutes = start.hour * 60 + start.minute
        return (start.minute % SLOT_GRID_MINUTES == 0
                and self.first_hour * 60 <= minutes <= (self.close_hour - 1) * 60)


# The drops and survey pages use different windows over the same calendar.
DROPS_SURFACE = BookingSurface('drops', 8, 18)
SURVEY_SURFACE = BookingSurface('survey', 8, 17)
SURFACES = {s.name: s for s in (DROPS_SURFACE, SURVEY_SURFACE)}


def surface_for(appointment_type: str) -> BookingSurface:
    return SURVEY_SURFACE if appointment_type == WHOLE_HOME_SURVEY else DROPS_SURFACE


@dataclass(frozen=True)
class Appointment:
    date: date
    start: time
    duration: int
    appointment_type: str = DROPS_INSTALL

    @property
    def start_minutes(self) -> int:
        return self.start.hour * 60 + self.start.minute


@dataclass(frozen=True)
class SlotDecision:
    accepted: bool
    reason: Optional[str] = None
    detail: Optional[str] = None

    @classmethod
    def accept(cls) -> 'SlotDecision':
        return cls(True)

    @classmethod
    def reject(cls, reason: str, detail: str | None = None) -> 'SlotDecision':
        return cls(False, reason, detail)


def parse_time(value: str) -> time:
    hours, minutes = value.split(':')
    return time(int(hours), int(minutes))


def occupied_hours(appointment: Appointment) -> Set[int]:
    if appointment.appointment_type == WHOLE_HOME_INSTALL:
        return set(WHOLE_DAY)
    start = appointment.start_minutes
    end = start + max(appointment.duration, 1)
    return set(range(start // 60, math.ceil(end / 60)))


def booked_hours(existing: Iterable[Appointment]) -> Set[int]:
    hours: Set[int] = set()
    for appt in existing:
        hours |= occupied_hours(appt)
    return hours


def available_start_times(surface: BookingSurface, existing: Iterable[Appointment]):
    """Whole-hour start times the booking page should offer."""
    taken = booked_hours(existing)
    return [f'{h:02d}:00' for h in surface.start_hours if h not in taken]


def check_business_rules(candidate: Appointment, today: date,
                         surface: BookingSurface | None = None,
                         window_days: int = BOOKING_WINDOW_DAYS) -> SlotDecision:
    surface = surface or surface_for(candidate.appointment_type)
    if candidate.date < today:
        return SlotDecision.reject(OUTSIDE_BUSINESS_RULES, 'Date is in the past')
    if candidate.date > today + timedelta(days=window_days):
        return SlotDecision.reject(OUTSIDE_BUSINESS_RULES,
                                   f'Date is more than {window_days} days out')
    if candidate.date.weekday() >= 5:
        return SlotDecision.reject(OUTSIDE_BUSINESS_RULES, 'Appointments are weekdays only')
    if not surface.allows(candidate.start):
        return SlotDecision.reject(OUTSIDE_BUSINESS_RULES, 'Time is outside business hours')
    return SlotDecision.accept()


def check_conflicts(candidate: Appointment, existing: Iterable[Appointment]) -> SlotDecision:
    same_day = [a for a in existing if a.date == candidate.date]
    if occupied_hours(candidate) & booked_hours(same_day):
        return SlotDecision.reject(SLOT_UNAVAILABLE, 'Requested time overlaps a booking')
    for appt in same_day:
        if abs(appt.start_minutes - candidate.start_minutes) <= BUFFER_MINUTES:
            return SlotDecision.reject(SLOT_UNAVAILABLE,
                                       'Requested time is too close to a booking')
    return SlotDecision.accept()


def check_slot(candidate: Appointment, existing: Iterable[Appointment], today: date,
               recent_booking: bool = False,
               window_days: int = BOOKING_WINDOW_DAYS) -> SlotDecision:
    """Full decision for one candidate, in the order the booking endpoint applies it."""
    decision = check_business_rules(candidate, today, window_days=window_days)
    if not decision.accepted:
        return decision
    if recent_booking:
        return SlotDecision.reject(DUPLICATE_RECENT_BOOKING,
                                   'An appointment was already booked in the last 24 hours')
    return check_conflicts(candidate, existing)
