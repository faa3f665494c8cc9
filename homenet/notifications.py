# homenet/notifications.py
"""Fire-and-forget admin email.

Delivery problems are logged and never reach the caller: a quote or booking
that has been committed stays committed whether or not the mail goes out.
"""

import logging
import smtplib
import ssl
import threading
from email.message import EmailMessage

from flask import current_app

logger = logging.getLogger(__name__)


def mail_configured(config) -> bool:
    return bool(config.get('MAIL_SERVER') and config.get('ADMIN_EMAIL'))


def send_email(config, recipient: str, subject: str, body: str) -> None:
    message = EmailMessage()
    message['Subject'] = subject
    message['From'] = config.get('MAIL_USERNAME') or recipient
    message['To'] = recipient
    message.set_content(body)

    with smtplib.SMTP(config['MAIL_SERVER'], config['MAIL_PORT'], timeout=10) as smtp:
        smtp.ehlo()
        if config.get('MAIL_USE_TLS'):
            smtp.starttls(context=ssl.create_default_context())
            smtp.ehlo()
        if config.get('MAIL_USERNAME'):
            smtp.login(config['MAIL_USERNAME'], config.get('MAIL_PASSWORD') or '')
        smtp.send_message(message)


def _deliver(config, subject, body):
    try:
        send_email(config, config['ADMIN_EMAIL'], subject, body)
        logger.info('Notification sent: %s', subject)
    except (smtplib.SMTPException, OSError) as exc:
        logger.warning('Notification failed (%s): %s', subject, exc)


def notify_admin(subject: str, lines) -> bool:
    """Queue an email to the admin address. Returns False when mail is off."""
    config = dict(current_app.config)
    if not mail_configured(config):
        logger.debug('Mail not configured, skipping notification: %s', subject)
        return False

    body = '\n'.join(line for line in lines if line)
    if config.get('NOTIFY_ASYNC'):
        threading.Thread(target=_deliver, args=(config, subject, body), daemon=True).start()
    else:
        _deliver(config, subject, body)
    return True
