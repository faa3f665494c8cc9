import os
import smtplib
import sys
from datetime import timedelta

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from homenet import create_app, db
from homenet.auth.tokens import generate_access_token
from homenet.models import Admin, ConsultationRequest
from homenet.quotes.numbers import MAX_ATTEMPTS, QuoteNumberResult


def setup_app(**config):
    app = create_app('testing')
    app.config.update(config)
    with app.app_context():
        db.drop_all()
        db.create_all()
    return app


def consultation_body(email='pat@example.com', **overrides):
    body = {
        'customer': {'name': 'Pat Doe', 'email': email, 'phone': '555-123-4567'},
        'property': {
            'squareFootage': '1,500-2,500',
            'isp': 'Comcast',
            'currentIssues': ['Weak WiFi', 'Dead zones'],
        },
        'interestedServices': ['networking', 'cameras'],
        'interestedPackage': 'backbone',
    }
    body.update(overrides)
    return body


def test_package_and_service_catalogue():
    client = setup_app().test_client()
    packages = client.get('/api/consultations/packages').get_json()
    assert [p['id'] for p in packages] == ['foundation', 'backbone', 'security', 'performance']
    assert packages[0]['priceRange'] == '$799-$1,499'
    services = client.get('/api/consultations/services').get_json()
    assert [s['id'] for s in services] == [
        'ethernet-drops', 'camera-install', 'ap-install', 'network-cleanup']


def test_create_consultation():
    app = setup_app()
    client = app.test_client()
    resp = client.post('/api/consultations/create', json=consultation_body(),
                       headers={'User-Agent': 'pytest-browser'})
    assert resp.status_code == 201
    data = resp.get_json()
    assert len(data['requestNumber']) == 8
    assert data['message'].startswith("We'll review your submission")
    with app.app_context():
        consultation = ConsultationRequest.query.one()
        assert consultation.status == 'new'
        assert consultation.current_issues == ['Weak WiFi', 'Dead zones']
        assert consultation.interested_package == 'backbone'
        assert consultation.user_agent == 'pytest-browser'


def test_package_defaults_to_unsure():
    app = setup_app()
    client = app.test_client()
    body = consultation_body(interestedPackage=None)
    body['property'] = {'squareFootage': 'Over 5,000'}
    assert client.post('/api/consultations/create', json=body).status_code == 201
    with app.app_context():
        consultation = ConsultationRequest.query.one()
        assert consultation.interested_package == 'unsure'
        assert consultation.current_issues == []
        assert consultation.isp is None


def test_validation_errors_are_listed():
    app = setup_app()
    client = app.test_client()
    body = consultation_body(interestedServices=[], interestedPackage='platinum',
                             honeypot='spam')
    body['property'] = {'squareFootage': 'Huge', 'isp': 'x' * 201,
                        'currentIssues': ['Weak WiFi', 'Ghosts']}
    resp = client.post('/api/consultations/create', json=body)
    assert resp.status_code == 400
    details = resp.get_json()['details']
    assert 'Please select a square footage range' in details
    assert 'ISP name must be under 200 characters' in details
    assert 'Invalid issue selection' in details
    assert 'Select at least one service' in details
    assert 'Invalid package selection' in details
    assert 'Bot detection triggered' in details

    resp = client.post('/api/consultations/create',
                       json=consultation_body(interestedServices=['networking', 'pool']))
    assert resp.get_json()['details'] == ['Invalid service selection']

    for body in (consultation_body(property='big'), consultation_body(customer=None),
                 [consultation_body()]):
        resp = client.post('/api/consultations/create', json=body)
        assert resp.status_code == 400
    with app.app_context():
        assert ConsultationRequest.query.count() == 0


def test_cooldown_per_email():
    app = setup_app()
    client = app.test_client()
    assert client.post('/api/consultations/create', json=consultation_body()).status_code == 201
    resp = client.post('/api/consultations/create', json=consultation_body())
    assert resp.status_code == 429
    assert resp.get_json()['reason'] == 'duplicate recent request'

    with app.app_context():
        consultation = ConsultationRequest.query.one()
        consultation.created_at = consultation.created_at - timedelta(minutes=11)
        db.session.commit()
    assert client.post('/api/consultations/create', json=consultation_body()).status_code == 201


def test_exhausted_numbers_return_503(monkeypatch):
    app = setup_app()
    client = app.test_client()
    monkeypatch.setattr('homenet.consultations.routes.generate_quote_number',
                        lambda exists: QuoteNumberResult(None, MAX_ATTEMPTS))
    resp = client.post('/api/consultations/create', json=consultation_body())
    assert resp.status_code == 503
    assert resp.get_json() == {'error': 'Could not allocate a request number, please retry',
                               'retryable': True}


class FakeSMTP:
    sent = []

    def __init__(self, host, port, timeout=None):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def ehlo(self):
        pass

    def starttls(self, context=None):
        pass

    def login(self, user, password):
        pass

    def send_message(self, message):
        FakeSMTP.sent.append(message)


def test_admin_is_notified(monkeypatch):
    FakeSMTP.sent = []
    monkeypatch.setattr(smtplib, 'SMTP', FakeSMTP)
    app = setup_app(MAIL_SERVER='smtp.test', ADMIN_EMAIL='owner@example.com')
    resp = app.test_client().post('/api/consultations/create', json=consultation_body())
    number = resp.get_json()['requestNumber']
    message = FakeSMTP.sent[0]
    assert message['Subject'] == f'New Consultation Request #{number}'
    body = message.get_content()
    assert 'Interested Services: Networking, Cameras' in body
    assert 'Package Interest: Smart Home Backbone ($1,500-$3,500)' in body
    assert 'Current Issues: Weak WiFi, Dead zones' in body


def admin_headers(app):
    with app.app_context():
        admin = Admin(username='ops', role='admin')
        admin.set_password('correct-horse')
        db.session.add(admin)
        db.session.commit()
        return {'Authorization': f'Bearer {generate_access_token(admin)}'}


def test_admin_lists_and_updates_consultations():
    app = setup_app()
    client = app.test_client()
    headers = admin_headers(app)
    consultation_id = client.post('/api/consultations/create',
                                  json=consultation_body()).get_json()['id']

    assert client.get('/admin/consultations').status_code == 401
    resp = client.get('/admin/consultations?status=new', headers=headers)
    assert resp.get_json()['pagination']['total'] == 1
    assert client.get('/admin/consultations?status=lost', headers=headers).status_code == 400

    resp = client.put(f'/admin/consultations/{consultation_id}', headers=headers, json={
        'status': 'quoted',
        'adminNotes': 'Wants APs upstairs',
        'quotedAmount': '1850.00',
        'scheduledConsultation': '2030-01-07T10:00:00',
    })
    assert resp.status_code == 200
    data = resp.get_json()['consultation']
    assert data['status'] == 'quoted'
    assert data['quotedAmount'] == 1850.0
    assert data['scheduledConsultation'] == '2030-01-07T10:00:00'

    resp = client.put(f'/admin/consultations/{consultation_id}', headers=headers,
                      json={'status': 'won', 'quotedAmount': -5})
    assert resp.status_code == 400
    assert len(resp.get_json()['details']) == 2
    resp = client.get(f'/admin/consultations/{consultation_id}', headers=headers)
    assert resp.get_json()['status'] == 'quoted'
    assert resp.get_json()['adminNotes'] == 'Wants APs upstairs'
    assert client.get('/admin/consultations/999', headers=headers).status_code == 404
