import os
import sys
from datetime import timedelta

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from homenet import create_app, db
from homenet.auth.tokens import generate_refresh_token, verify_token
from homenet.cli import create_admin_command
from homenet.models import Admin, utcnow


def setup_app():
    app = create_app('testing')
    with app.app_context():
        db.drop_all()
        db.create_all()
        admin = Admin(username='ops', role='admin')
        admin.set_password('correct-horse')
        db.session.add(admin)
        db.session.commit()
    return app


def login(client, password='correct-horse', username='ops'):
    return client.post('/auth/login', json={'username': username, 'password': password})


def test_login_returns_tokens_and_verify_accepts_them():
    app = setup_app()
    client = app.test_client()
    resp = login(client)
    assert resp.status_code == 200
    data = resp.get_json()
    assert data['user']['username'] == 'ops'

    with app.app_context():
        claims = verify_token(data['accessToken'], 'access')
        assert claims['role'] == 'admin'
        assert verify_token(data['accessToken'], 'refresh') is None
        assert verify_token(data['refreshToken'], 'refresh')['username'] == 'ops'

    other = app.test_client()
    resp = other.get('/auth/verify',
                     headers={'Authorization': f"Bearer {data['accessToken']}"})
    assert resp.status_code == 200
    assert resp.get_json()['valid'] is True


def test_verify_without_token_is_401():
    app = setup_app()
    resp = app.test_client().get('/auth/verify')
    assert resp.status_code == 401
    assert resp.get_json()['code'] == 'TOKEN_MISSING'

    resp = app.test_client().get('/auth/verify', headers={'Authorization': 'Bearer junk'})
    assert resp.status_code == 401
    assert resp.get_json()['code'] == 'TOKEN_INVALID'


def test_bad_password_and_malformed_login():
    app = setup_app()
    client = app.test_client()
    assert login(client, 'wrong-password').status_code == 401
    resp = login(client, 'short', username='a b')
    assert resp.status_code == 400
    assert len(resp.get_json()['details']) == 2
    resp = client.post('/auth/login', json=['ops', 'correct-horse'])
    assert resp.status_code == 400


def test_lockout_after_five_failures():
    app = setup_app()
    client = app.test_client()
    for _ in range(Admin.MAX_LOGIN_ATTEMPTS):
        assert login(client, 'wrong-password').status_code == 401
    resp = login(client)
    assert resp.status_code == 423

    with app.app_context():
        admin = Admin.query.filter_by(username='ops').one()
        assert admin.is_locked
        admin.lock_until = utcnow() - timedelta(minutes=1)
        db.session.commit()
    resp = login(client)
    assert resp.status_code == 200
    with app.app_context():
        assert Admin.query.filter_by(username='ops').one().login_attempts == 0


def test_refresh_issues_new_access_token():
    app = setup_app()
    with app.app_context():
        refresh = generate_refresh_token(Admin.query.one())
    client = app.test_client()
    resp = client.post('/auth/refresh', json={'refreshToken': refresh})
    assert resp.status_code == 200
    access = resp.get_json()['accessToken']

    resp = client.post('/auth/refresh', json={'refreshToken': access})
    assert resp.status_code == 401


def test_logout_clears_session():
    app = setup_app()
    client = app.test_client()
    login(client)
    assert client.get('/auth/verify').status_code == 200
    assert client.post('/auth/logout').status_code == 200
    assert client.get('/auth/verify').status_code == 401


def test_create_admin_command():
    app = setup_app()
    runner = app.test_cli_runner()
    result = runner.invoke(create_admin_command,
                           ['boss', '--password', 'sup3r-secret', '--role', 'superadmin'])
    assert result.exit_code == 0, result.output
    assert "Created superadmin 'boss'" in result.output
    with app.app_context():
        boss = Admin.query.filter_by(username='boss').one()
        assert boss.role == 'superadmin'
        assert boss.check_password('sup3r-secret')
