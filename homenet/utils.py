# homenet/utils.py
"""Request helpers shared by the public blueprints."""

import re

from flask import request

from homenet.errors import ValidationError

NAME_RE = re.compile(r"^[A-Za-z\s'-]+$")
EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$')
PHONE_RE = re.compile(r'^[\d\s()+-]{7,20}$')

DISPOSABLE_DOMAINS = {
    '10minutemail.com', 'mailinator.com', 'guerrillamail.com',
    'tempmail.org', 'temp-mail.org', '0-mail.com',
}


def json_body(form_fallback=False):
    """The request JSON as a dict; anything else is a validation error."""
    data = request.get_json(silent=True)
    if data is None:
        return request.form if form_fallback else {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def sub_object(data, key, label, required=False):
    """``data[key]`` when it is an object, ``{}`` when absent."""
    value = data.get(key)
    if value is None:
        if required:
            raise ValidationError(f'{label} is required')
        return {}
    if not isinstance(value, dict):
        raise ValidationError(f'{label} must be an object')
    return value


def client_ip():
    """First hop of X-Forwarded-For, else the socket address."""
    forwarded = request.headers.get('X-Forwarded-For')
    if forwarded:
        return forwarded.split(',')[0].strip()
    return request.remote_addr


def clean_name(value, errors):
    name = (value or '').strip() if isinstance(value, str) else ''
    if not 2 <= len(name) <= 100:
        errors.append('Name must be between 2 and 100 characters')
    elif not NAME_RE.match(name):
        errors.append('Name can only contain letters, spaces, apostrophes, and hyphens')
    return name


def clean_email(value, errors):
    email = (value or '').strip().lower() if isinstance(value, str) else ''
    if not EMAIL_RE.match(email):
        errors.append('Valid email address is required')
    elif email.rsplit('@', 1)[1] in DISPOSABLE_DOMAINS:
        errors.append('Please use a permanent email address')
    return email


def clean_phone(value, errors):
    if not value:
        return None
    phone = str(value).strip()
    if not PHONE_RE.match(phone):
        errors.append('Please enter a valid phone number')
    return phone


def page_args(default_limit=20, max_limit=50):
    """``(page, limit)`` from the query string, clamped."""
    try:
        page = max(1, int(request.args.get('page', 1)))
    except ValueError:
        page = 1
    try:
        limit = min(max(1, int(request.args.get('limit', default_limit))), max_limit)
    except ValueError:
        limit = default_limit
    return page, limit
