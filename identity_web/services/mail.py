"""Provides a unified API for sending website email."""

from email.message import EmailMessage
from typing import List
import logging
import smtplib

from flask import current_app, g, render_template

from .. import domain
from .exceptions import MailDeliveryFailed

logger = logging.getLogger(__name__)

SUBJECTS = {
    'reset': 'Your password reset passcode',
    'verify': 'Verify your email address'
}


class MailSession(object):
    """An open session with an SMTP service."""

    def __init__(self, host: str = "", port: int = 0) -> None:
        self._host = host
        self._port = port
        self._conn = self._new_connection()

    def _new_connection(self) -> smtplib.SMTP:
        return smtplib.SMTP(
            host=self._host,
            port=self._port
        )

    def send_message(self, message: EmailMessage) -> None:
        try:
            self._conn.send_message(message)
        except smtplib.SMTPException as e:
            raise MailDeliveryFailed(f'Could not send mail: {e}') from e

    def close(self) -> None:
        try:
            self._conn.quit()
        except smtplib.SMTPServerDisconnected:
            pass


def outbox() -> List[EmailMessage]:
    """Messages held back in this context because sending is suppressed."""
    if 'outbox' not in g:
        g.outbox = []
    return g.outbox     # type: ignore


def send(message: EmailMessage) -> None:
    """Send a message, or hold it in :func:`outbox` if mail is suppressed."""
    config = current_app.config
    if not message['From']:
        message['From'] = config['MAIL_SENDER']
    if config.get('MAIL_SUPPRESS_SEND'):
        logger.info('Suppressed mail to %s: %s', message['To'],
                    message['Subject'])
        outbox().append(message)
        return
    session = MailSession(config['MAIL_SERVER'], int(config['MAIL_PORT']))
    try:
        session.send_message(message)
    finally:
        session.close()
    logger.debug('Sent mail to %s: %s', message['To'], message['Subject'])


def send_passcode(identity: domain.Identity, passcode: str,
                  usage: str) -> None:
    """Mail a passcode to the owner of an identity."""
    message = EmailMessage()
    message['To'] = identity.email
    message['Subject'] = SUBJECTS[usage]
    message.set_content(render_template(
        'mail/passcode.txt',
        identity=identity,
        passcode=passcode,
        usage=usage,
        site_name=current_app.config['SITE_NAME'],
        base_url=current_app.config['BASE_URL']
    ))
    send(message)
