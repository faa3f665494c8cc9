# homenet/scheduling/routes.py

import re
from datetime import date

from flask import Blueprint, request, jsonify, current_app

from homenet.errors import (
    ValidationError,
    BusinessRuleError,
    SLOT_UNAVAILABLE,
    DUPLICATE_RECENT_BOOKING,
    OUTSIDE_BUSINESS_RULES,
)
from homenet.models import Quote, Schedule
from homenet.notifications import notify_admin
from homenet.pricing.calculator import DropsOnlyInput, WHOLE_HOME
from homenet.pricing.duration import MINIMUM_MINUTES, WHOLE_HOME_MINUTES, estimate_duration
from homenet.pricing.table import load_pricing_table
from homenet.scheduling.booking import BookingRequest, active_on, book_slot, to_appointment
from homenet.scheduling.conflicts import (
    APPOINTMENT_TYPES,
    DROPS_INSTALL,
    WHOLE_HOME_INSTALL,
    WHOLE_HOME_SURVEY,
    SURFACES,
    SURVEY_MINUTES,
    available_start_times,
    booked_hours,
    parse_time,
    surface_for,
)
from homenet.utils import client_ip, clean_name, clean_email, json_body

bp = Blueprint('scheduling', __name__)

TIME_RE = re.compile(r'^([01]?\d|2[0-3]):[0-5]\d$')
MAX_DURATION = WHOLE_HOME_MINUTES

REJECTION_STATUS = {
    SLOT_UNAVAILABLE: 409,
    DUPLICATE_RECENT_BOOKING: 429,
    OUTSIDE_BUSINESS_RULES: 422,
}


def _parse_date(value, errors):
    try:
        return date.fromisoformat(str(value))
    except (TypeError, ValueError):
        errors.append('Date must be in YYYY-MM-DD format')
        return None


@bp.route('/slots')
def slots():
    """
    With ?date=YYYY-MM-DD: booked hours and open start times for that day.
    Without: upcoming appointments, no customer details.
    """
    if 'date' not in request.args:
        upcoming = (Schedule.query
                    .filter(Schedule.date >= date.today(), Schedule.status != 'cancelled')
                    .order_by(Schedule.date, Schedule.time)
                    .all())
        return jsonify(upcomingAppointments=[s.to_dict(public=True) for s in upcoming])

    errors = []
    day = _parse_date(request.args['date'], errors)
    surface_name = request.args.get('surface')
    if surface_name is None:
        surface = surface_for(request.args.get('appointmentType', DROPS_INSTALL))
    elif surface_name in SURFACES:
        surface = SURFACES[surface_name]
    else:
        errors.append('Surface must be one of: ' + ', '.join(sorted(SURFACES)))
    if errors:
        raise ValidationError(errors)

    existing = [to_appointment(s) for s in active_on(day).all()]
    taken = sorted(booked_hours(existing))
    available = available_start_times(surface, existing)
    return jsonify(
        date=day.isoformat(),
        surface=surface.name,
        bookedSlots=[f'{h:02d}:00' for h in taken],
        availableSlots=available,
        fullyBooked=not available,
    )


@bp.route('/book', methods=['POST'])
def book():
    data = json_body()
    errors = []
    name = clean_name(data.get('name'), errors)
    email = clean_email(data.get('email'), errors)
    day = _parse_date(data.get('date'), errors)
    raw_time = str(data.get('time') or '')
    if not TIME_RE.match(raw_time):
        errors.append('Time must be in HH:MM format')
    appointment_type = data.get('appointmentType') or DROPS_INSTALL
    if appointment_type not in APPOINTMENT_TYPES:
        errors.append('Invalid appointment type')
    notes = data.get('notes')
    if notes is not None and (not isinstance(notes, str) or len(notes) > 500):
        errors.append('Notes must be under 500 characters')

    quote = None
    quote_number = data.get('quoteNumber')
    if quote_number:
        quote = Quote.query.filter_by(quote_number=str(quote_number)).first()
        if quote is None:
            errors.append('Quote number not found. Please verify your quote number.')
        elif quote.service_type == WHOLE_HOME and appointment_type == DROPS_INSTALL:
            errors.append('Appointment type does not match the quote')
    if errors:
        raise ValidationError(errors)

    duration = _duration_for(appointment_type, quote, data.get('duration'))

    outcome = book_slot(
        BookingRequest(
            name=name,
            email=email,
            date=day,
            start=parse_time(raw_time),
            appointment_type=appointment_type,
            duration=duration,
            quote_id=quote.id if quote else None,
            notes=notes,
            ip=client_ip(),
        ),
        window_days=current_app.config['BOOKING_WINDOW_DAYS'],
    )
    if not outcome.accepted:
        reason = outcome.decision.reason
        raise BusinessRuleError(outcome.decision.detail or reason, reason,
                                REJECTION_STATUS.get(reason, 400))

    schedule = outcome.schedule
    notify_admin(
        f'New Appointment {schedule.date.isoformat()} {schedule.time}',
        [
            f'Name: {schedule.name}',
            f'Email: {schedule.email}',
            f'Type: {schedule.appointment_type}',
            f'Duration: {schedule.duration} minutes',
            f'Quote: #{quote.quote_number}' if quote else '',
        ],
    )
    message = 'Appointment scheduled successfully'
    if quote:
        message += f' for Quote #{quote.quote_number}'
    return jsonify(message=message, appointment=schedule.to_dict()), 201


def _duration_for(appointment_type, quote, requested):
    if appointment_type == WHOLE_HOME_INSTALL:
        return WHOLE_HOME_MINUTES
    if appointment_type == WHOLE_HOME_SURVEY:
        return SURVEY_MINUTES
    if quote is not None:
        selection = DropsOnlyInput(runs=quote.runs, services=quote.services,
                                   discount=quote.discount or 0)
        return estimate_duration(selection, load_pricing_table())
    if requested in (None, ''):
        return MINIMUM_MINUTES
    try:
        duration = int(requested)
    except (TypeError, ValueError):
        duration = 0
    if not MINIMUM_MINUTES <= duration <= MAX_DURATION:
        raise ValidationError(
            f'Duration must be between {MINIMUM_MINUTES} and {MAX_DURATION} minutes')
    return duration
