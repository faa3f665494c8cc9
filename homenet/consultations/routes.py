# homenet/consultations/routes.py

from datetime import timedelta

from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import IntegrityError

from homenet import db
from homenet.consultations.catalogue import (
    CURRENT_ISSUES,
    INTERESTED_SERVICES,
    PACKAGE_CHOICES,
    PACKAGE_LABELS,
    PACKAGES,
    SERVICE_LABELS,
    SQUARE_FOOTAGE,
    STANDALONE_SERVICES,
)
from homenet.errors import (
    ValidationError,
    BusinessRuleError,
    QuoteNumberExhausted,
    DUPLICATE_RECENT_REQUEST,
)
from homenet.models import ConsultationRequest, utcnow
from homenet.notifications import notify_admin
from homenet.quotes.numbers import generate_quote_number, request_number_taken
from homenet.utils import (
    client_ip,
    clean_name,
    clean_email,
    clean_phone,
    json_body,
    sub_object,
)

bp = Blueprint('consultations', __name__)

MAX_ISSUES = 8
MAX_SERVICES = len(INTERESTED_SERVICES)


@bp.route('/packages')
def packages():
    return jsonify(PACKAGES)


@bp.route('/services')
def services():
    return jsonify(STANDALONE_SERVICES)


def _choices(value, allowed, max_items, errors, shape_error, item_error, min_items=0):
    """Validate a multi-select list; returns it unchanged when it is usable."""
    if value is None:
        value = []
    if not isinstance(value, list) or not min_items <= len(value) <= max_items:
        errors.append(shape_error)
        return []
    if any(v not in allowed for v in value):
        errors.append(item_error)
    return value


@bp.route('/create', methods=['POST'])
def create_consultation():
    """Intake form from the get-started page.

    Validates the whole form at once, applies a per-email cooldown and
    stores the request under a random 8-digit request number.
    """
    data = json_body()
    customer = sub_object(data, 'customer', 'Customer', required=True)
    prop = sub_object(data, 'property', 'Property')

    errors = []
    name = clean_name(customer.get('name'), errors)
    email = clean_email(customer.get('email'), errors)
    phone = clean_phone(customer.get('phone'), errors)

    square_footage = prop.get('squareFootage')
    if square_footage not in SQUARE_FOOTAGE:
        errors.append('Please select a square footage range')
    isp = prop.get('isp')
    if isp is not None and not isinstance(isp, str):
        errors.append('ISP name must be text')
        isp = None
    isp = (isp or '').strip() or None
    if isp and len(isp) > 200:
        errors.append('ISP name must be under 200 characters')

    issues = _choices(prop.get('currentIssues'), CURRENT_ISSUES, MAX_ISSUES, errors,
                      'Invalid current issues selection', 'Invalid issue selection')
    interested = _choices(data.get('interestedServices'), INTERESTED_SERVICES, MAX_SERVICES,
                          errors, 'Select at least one service', 'Invalid service selection',
                          min_items=1)
    package = data.get('interestedPackage') or 'unsure'
    if package not in PACKAGE_CHOICES:
        errors.append('Invalid package selection')
    if data.get('honeypot'):
        errors.append('Bot detection triggered')
    if errors:
        raise ValidationError(errors)

    cooldown = current_app.config['CONSULTATION_COOLDOWN_MINUTES']
    recent = ConsultationRequest.query.filter(
        ConsultationRequest.customer_email == email,
        ConsultationRequest.created_at >= utcnow() - timedelta(minutes=cooldown),
    ).first()
    if recent:
        raise BusinessRuleError(
            f'Please wait {cooldown} minutes between consultation requests.',
            DUPLICATE_RECENT_REQUEST, 429)

    result = generate_quote_number(request_number_taken)
    if not result.ok:
        raise QuoteNumberExhausted(result.attempts, 'request number')

    consultation = ConsultationRequest(
        request_number      = result.number,
        customer_name       = name,
        customer_email      = email,
        customer_phone      = phone,
        square_footage      = square_footage,
        isp                 = isp,
        current_issues      = issues,
        interested_services = interested,
        interested_package  = package,
        ip                  = client_ip(),
        user_agent          = (request.headers.get('User-Agent') or 'Unknown')[:200],
    )
    db.session.add(consultation)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        current_app.logger.warning('Request number %s collided on insert', result.number)
        raise QuoteNumberExhausted(result.attempts, 'request number')

    current_app.logger.info('Consultation request %s created for %s',
                            consultation.request_number, email)
    notify_admin(f'New Consultation Request #{consultation.request_number}',
                 _consultation_mail_lines(consultation))

    return jsonify(
        id=consultation.id,
        requestNumber=consultation.request_number,
        message="We'll review your submission and send a booking link within 24 hours.",
    ), 201


def _consultation_mail_lines(consultation):
    return [
        f'Name: {consultation.customer_name}',
        f'Email: {consultation.customer_email}',
        f'Phone: {consultation.customer_phone}' if consultation.customer_phone else '',
        'Property:',
        f'  Square Footage: {consultation.square_footage}',
        f'  ISP: {consultation.isp}' if consultation.isp else '',
        (f"  Current Issues: {', '.join(consultation.current_issues)}"
         if consultation.current_issues else ''),
        'Interested Services: ' + ', '.join(
            SERVICE_LABELS.get(s, s) for s in consultation.interested_services),
        f'Package Interest: {PACKAGE_LABELS[consultation.interested_package]}',
        f'IP Address: {consultation.ip}',
        f'Timestamp: {consultation.created_at.isoformat()}',
    ]
