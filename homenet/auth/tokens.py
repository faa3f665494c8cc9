# homenet/auth/tokens.py
"""JWT issue/verify for admin sessions, and the route guards built on them."""

import logging
from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
from flask import current_app, g, jsonify, request, session

from homenet import db
from homenet.models import Admin

logger = logging.getLogger(__name__)

ACCESS_COOKIE = 'adminAccessToken'
REFRESH_COOKIE = 'adminRefreshToken'
ROLE_LEVELS = {'admin': 1, 'superadmin': 2}


def _encode(admin, token_type, lifetime):
    now = datetime.now(timezone.utc)
    cfg = current_app.config
    payload = {
        'id': admin.id,
        'username': admin.username,
        'type': token_type,
        'iat': now,
        'exp': now + lifetime,
        'iss': cfg['JWT_ISSUER'],
        'aud': cfg['JWT_ISSUER'],
    }
    if token_type == 'access':
        payload['role'] = admin.role
    return jwt.encode(payload, cfg['ADMIN_JWT_SECRET'], algorithm='HS256')


def generate_access_token(admin) -> str:
    return _encode(admin, 'access',
                   timedelta(minutes=current_app.config['JWT_ACCESS_MINUTES']))


def generate_refresh_token(admin) -> str:
    return _encode(admin, 'refresh',
                   timedelta(days=current_app.config['JWT_REFRESH_DAYS']))


def verify_token(token: str, token_type: str = 'access'):
    """Decoded claims, or ``None`` when the token is bad, expired or the wrong type."""
    cfg = current_app.config
    try:
        claims = jwt.decode(
            token,
            cfg['ADMIN_JWT_SECRET'],
            algorithms=['HS256'],
            audience=cfg['JWT_ISSUER'],
            issuer=cfg['JWT_ISSUER'],
        )
    except jwt.InvalidTokenError as exc:
        logger.debug('Token rejected: %s', exc)
        return None
    if claims.get('type') != token_type:
        return None
    return claims


def _token_from_request():
    header = request.headers.get('Authorization', '')
    if header.startswith('Bearer '):
        return header[len('Bearer '):].strip()
    return request.cookies.get(ACCESS_COOKIE)


def current_admin():
    """Resolve the admin for this request from a token, then the session."""
    token = _token_from_request()
    if token:
        claims = verify_token(token, 'access')
        if claims is None:
            return None, 'TOKEN_INVALID'
        admin_id = claims['id']
    elif session.get('admin_id'):
        admin_id = session['admin_id']
    else:
        return None, 'TOKEN_MISSING'

    admin = db.session.get(Admin, admin_id)
    if admin is None or not admin.is_active:
        return None, 'ADMIN_INVALID'
    return admin, None


def admin_required(f):
    """Reject the request unless an active admin is authenticated."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        admin, code = current_admin()
        if admin is None:
            logger.warning('Unauthenticated admin request to %s (%s)', request.endpoint, code)
            return jsonify(error='Authentication required', code=code), 401
        g.admin = admin
        return f(*args, **kwargs)
    return decorated_function


def role_required(role):
    """Must be placed after ``admin_required``."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            admin = g.get('admin')
            if admin is None:
                return jsonify(error='Authentication required', code='AUTH_REQUIRED'), 401
            if ROLE_LEVELS.get(admin.role, 0) < ROLE_LEVELS.get(role, 999):
                logger.warning('%s (%s) denied %s resource %s',
                               admin.username, admin.role, role, request.endpoint)
                return jsonify(error=f'Insufficient privileges - {role} required',
                               code='INSUFFICIENT_PRIVILEGES'), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


superadmin_required = role_required('superadmin')
