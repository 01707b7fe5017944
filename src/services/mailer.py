"""
SMTP delivery for notification emails.

This module builds the MIME message (plain text + HTML alternative, optional
attachment) and sends it through the configured relay.
"""

import logging
import mimetypes
import smtplib
from email.message import EmailMessage
from typing import Optional

from domain.errors import MailError
from domain.models import NotificationMessage

logger = logging.getLogger(__name__)


def build_mime_message(message: NotificationMessage) -> EmailMessage:
    """
    Convert a NotificationMessage to a MIME message.

    Args:
        message: Composed notification

    Returns:
        EmailMessage: multipart/alternative (text, html), wrapped in
            multipart/mixed when an attachment is present
    """
    msg = EmailMessage()
    msg['Subject'] = message.subject
    msg['From'] = message.sender
    msg['To'] = ', '.join(message.recipients)

    msg.set_content(message.text_body)
    msg.add_alternative(message.html_body, subtype='html')

    if message.attachment is not None:
        content_type = message.attachment.content_type
        if not content_type or content_type == 'application/octet-stream':
            guessed, _ = mimetypes.guess_type(message.attachment.filename)
            content_type = guessed or 'application/octet-stream'
        maintype, _, subtype = content_type.partition('/')
        msg.add_attachment(
            message.attachment.content,
            maintype=maintype,
            subtype=subtype or 'octet-stream',
            filename=message.attachment.filename
        )

    return msg


class Mailer:
    """
    Sends notifications through an SMTP relay.

    Args:
        host: Relay host
        port: Relay port
        username: SMTP username (login skipped if None)
        password: SMTP password
        domain: HELO/EHLO domain presented to the relay
        starttls: Upgrade the connection with STARTTLS before login
        timeout: Socket timeout in seconds for connect and every command
    """

    def __init__(self, host: str, port: int = 587, username: Optional[str] = None,
                 password: Optional[str] = None, domain: Optional[str] = None,
                 starttls: bool = True, timeout: int = 30):
        if not host:
            raise ValueError("SMTP host cannot be empty")
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.domain = domain
        self.starttls = starttls
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings) -> 'Mailer':
        return cls(
            host=settings.email_server,
            port=settings.email_port,
            username=settings.email_user,
            password=settings.email_password,
            domain=settings.email_domain,
            starttls=settings.email_starttls,
            timeout=settings.email_timeout
        )

    def send(self, message: NotificationMessage) -> None:
        """
        Deliver a notification.

        Args:
            message: Composed notification with at least one recipient

        Raises:
            MailError: On auth failure, refused connection, relay rejection
                or timeout
        """
        if not message.recipients:
            raise MailError("Notification has no recipients")

        try:
            mime = build_mime_message(message)
        except ValueError as e:
            # Header injection or malformed addresses from form values
            logger.error(f"Could not build notification MIME message: {e}")
            raise MailError(f"Invalid notification headers: {e}") from e

        logger.info(
            f"Sending notification via {self.host}:{self.port}: "
            f"recipients={len(message.recipients)}, "
            f"attachment={message.attachment.filename if message.attachment else None}"
        )

        try:
            with smtplib.SMTP(self.host, self.port, local_hostname=self.domain,
                              timeout=self.timeout) as server:
                if self.starttls:
                    server.starttls()
                    server.ehlo()
                if self.username:
                    server.login(self.username, self.password or '')
                refused = server.send_message(
                    mime,
                    from_addr=message.sender,
                    to_addrs=list(message.recipients)
                )
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed for {self.username}: {e}")
            raise MailError("SMTP authentication failed") from e
        except smtplib.SMTPException as e:
            logger.error(f"SMTP relay rejected notification: {e}")
            raise MailError(f"SMTP relay error: {e}") from e
        except OSError as e:
            # Refused connections, DNS failures and socket timeouts
            logger.error(f"SMTP network error for {self.host}:{self.port}: {e}")
            raise MailError(f"SMTP connection failed: {e}") from e

        if refused:
            logger.warning(f"Relay refused some recipients: {list(refused)}")

        logger.info(f"Notification sent to {len(message.recipients)} recipient(s)")
