# Overview: Outbound email through Flask-Mail.

"""
Thin wrapper around Flask-Mail so the rest of the code only needs
send_message(recipient, subject, body). Under TESTING, Flask-Mail suppresses
delivery and tests can capture outgoing messages with mail.record_messages().
"""

import logging
import smtplib

from flask_mail import Message

from ..errors import FrostyError
from ..extensions import mail

logger = logging.getLogger(__name__)


class MailDeliveryError(FrostyError):
    """The mail server refused or could not be reached."""

    status_code = 502


def send_message(*, recipient: str, subject: str, body: str) -> None:
    msg = Message(subject=subject, recipients=[recipient], body=body)
    try:
        mail.send(msg)
    except (smtplib.SMTPException, OSError) as exc:
        logger.exception("Failed to send mail to %s", recipient)
        raise MailDeliveryError("Failed to send email") from exc
