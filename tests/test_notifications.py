import os
import smtplib
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from homenet import create_app, db
from homenet.notifications import notify_admin


def setup_app(**config):
    app = create_app('testing')
    app.config.update(config)
    with app.app_context():
        db.drop_all()
        db.create_all()
    return app


class FakeSMTP:
    sent = []

    def __init__(self, host, port, timeout=None):
        self.host = host

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


class BrokenSMTP(FakeSMTP):
    def send_message(self, message):
        raise smtplib.SMTPServerDisconnected('gone')


def test_skipped_when_mail_not_configured():
    app = setup_app()
    with app.app_context():
        assert notify_admin('Hello', ['line']) is False


def test_sends_to_admin(monkeypatch):
    FakeSMTP.sent = []
    monkeypatch.setattr(smtplib, 'SMTP', FakeSMTP)
    app = setup_app(MAIL_SERVER='smtp.test', ADMIN_EMAIL='owner@example.com',
                    MAIL_USERNAME='bot@example.com')
    with app.app_context():
        assert notify_admin('New Quote Submitted #12345678', ['Name: Pat', '', 'Email: p@x.io'])
    message = FakeSMTP.sent[0]
    assert message['To'] == 'owner@example.com'
    assert message['Subject'] == 'New Quote Submitted #12345678'
    assert message.get_content().strip() == 'Name: Pat\nEmail: p@x.io'


def test_delivery_failure_does_not_block_quote(monkeypatch, caplog):
    monkeypatch.setattr(smtplib, 'SMTP', BrokenSMTP)
    app = setup_app(MAIL_SERVER='smtp.test', ADMIN_EMAIL='owner@example.com')
    client = app.test_client()
    resp = client.post('/api/quotes/create', json={
        'customer': {'name': 'Pat Doe', 'email': 'pat@example.com'},
        'serviceType': 'Drops Only',
        'runs': {'fiber': 1},
        'centralization': 'Loose Termination',
    })
    assert resp.status_code == 201
    assert 'Notification failed' in caplog.text
