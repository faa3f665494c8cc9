# homenet/auth/routes.py

import re
from datetime import timedelta

from flask import Blueprint, request, jsonify, session, current_app, g

from homenet import db
from homenet.auth.tokens import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    admin_required,
    generate_access_token,
    generate_refresh_token,
    verify_token,
)
from homenet.errors import ValidationError
from homenet.models import Admin, utcnow
from homenet.utils import client_ip, json_body

bp = Blueprint('auth', __name__)

USERNAME_RE = re.compile(r'^[A-Za-z0-9_-]{3,50}$')


def authenticate(username, password, ip=None):
    """Returns ``(admin, None)`` on success or ``(None, reason)``."""
    admin = Admin.query.filter_by(username=username, is_active=True).first()
    if admin is None:
        return None, 'invalid_credentials'
    if admin.is_locked:
        return None, 'account_locked'

    if not admin.check_password(password):
        if admin.lock_until and admin.lock_until <= utcnow():
            # previous lock has expired, start counting again
            admin.lock_until = None
            admin.login_attempts = 0
        admin.login_attempts += 1
        if admin.login_attempts >= Admin.MAX_LOGIN_ATTEMPTS:
            admin.lock_until = utcnow() + timedelta(minutes=Admin.LOCK_MINUTES)
        db.session.commit()
        return None, 'invalid_credentials'

    admin.login_attempts = 0
    admin.lock_until = None
    admin.last_login = utcnow()
    admin.last_login_ip = ip
    db.session.commit()
    return admin, None


def _set_token_cookies(resp, access, refresh=None):
    secure = current_app.config.get('SESSION_COOKIE_SECURE', False)
    resp.set_cookie(ACCESS_COOKIE, access, httponly=True, secure=secure,
                    samesite='Strict',
                    max_age=current_app.config['JWT_ACCESS_MINUTES'] * 60)
    if refresh:
        resp.set_cookie(REFRESH_COOKIE, refresh, httponly=True, secure=secure,
                        samesite='Strict', path='/auth',
                        max_age=current_app.config['JWT_REFRESH_DAYS'] * 86400)
    return resp


@bp.route('/login', methods=['POST'])
def login():
    data = json_body(form_fallback=True)
    username = (data.get('username') or '').strip()
    password = data.get('password') or ''

    errors = []
    if not USERNAME_RE.match(username):
        errors.append('Invalid username format')
    if len(password) < 8:
        errors.append('Password must be at least 8 characters')
    if errors:
        raise ValidationError(errors)

    ip = client_ip()
    admin, reason = authenticate(username, password, ip)
    if admin is None:
        current_app.logger.warning('Login failed: %s from %s (%s)', username, ip, reason)
        if reason == 'account_locked':
            return jsonify(error='Account temporarily locked due to failed login attempts',
                           reason=reason), 423
        return jsonify(error='Invalid username or password', reason=reason), 401

    session['admin_id'] = admin.id
    session['username'] = admin.username
    session['role'] = admin.role
    access = generate_access_token(admin)
    refresh = generate_refresh_token(admin)
    current_app.logger.info('Login: %s from %s', admin.username, ip)

    resp = jsonify(
        success=True,
        accessToken=access,
        refreshToken=refresh,
        user={'id': admin.id, 'username': admin.username, 'role': admin.role},
    )
    return _set_token_cookies(resp, access, refresh)


@bp.route('/refresh', methods=['POST'])
def refresh():
    data = json_body()
    token = data.get('refreshToken') or request.cookies.get(REFRESH_COOKIE)
    if not token:
        return jsonify(error='Refresh token required', code='TOKEN_MISSING'), 401
    claims = verify_token(token, 'refresh')
    if claims is None:
        return jsonify(error='Invalid or expired refresh token', code='TOKEN_INVALID'), 401
    admin = db.session.get(Admin, claims['id'])
    if admin is None or not admin.is_active:
        return jsonify(error='Admin account not found or inactive', code='ADMIN_INVALID'), 401

    access = generate_access_token(admin)
    return _set_token_cookies(jsonify(success=True, accessToken=access), access)


@bp.route('/logout', methods=['POST'])
def logout():
    username = session.get('username')
    session.clear()
    resp = jsonify(success=True)
    resp.delete_cookie(ACCESS_COOKIE)
    resp.delete_cookie(REFRESH_COOKIE, path='/auth')
    if username:
        current_app.logger.info('Logout: %s', username)
    return resp


@bp.route('/verify')
@admin_required
def verify():
    admin = g.admin
    return jsonify(valid=True, user={
        'id': admin.id,
        'username': admin.username,
        'role': admin.role,
        'lastLogin': admin.last_login.isoformat() if admin.last_login else None,
    })
