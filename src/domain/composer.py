"""
Notification email composition.

Renders the staff/submitter notification for a Submission: an HTML summary
listing every field, and a short generic plaintext body for non-HTML mail
clients.
"""

import html
import logging
from typing import Sequence, Tuple

from .models import MessageAttachment, NotificationMessage, Submission
from services.templates import TemplateLoader, format_template

logger = logging.getLogger(__name__)

SUBJECT = 'New Submission: Opportunity Center Sign Up'

HTML_TEMPLATE = 'notification.html'
TEXT_TEMPLATE = 'notification.txt'

# (Submission attribute, label) in display order
FIELD_LABELS: Tuple[Tuple[str, str], ...] = (
    ('first_name', 'First Name:'),
    ('last_name', 'Last Name:'),
    ('preferred_contact_method', 'Best way to contact:'),
    ('email', 'Email:'),
    ('phone', 'Phone:'),
    ('text_number', 'Text:'),
    ('referral_source', 'Referred by:'),
    ('neighborhood', 'Which neighborhood:'),
    ('young_adult', 'Are you a young adult?'),
    ('veteran', 'Are you a veteran?'),
    ('no_transportation', 'Do you have little access to transportation?'),
    ('homeless', 'Are you homeless or staying with someone temporarily?'),
    ('no_drivers_license', "I don't have a driver's license."),
    ('no_state_id', "I don't have a state-issued I.D."),
    ('disabled', 'I am disabled.'),
    ('childcare', 'I need childcare.'),
    ('criminal', 'I have an open criminal charge.'),
    ('previously_incarcerated', 'I have been previously incarcerated.'),
    ('using_drugs', 'I am using drugs and want to get help.'),
    ('none_of_above', 'None of the above.'),
)


class NotificationComposer:
    """Builds a NotificationMessage from a Submission."""

    def __init__(self, sender: str, loader: TemplateLoader):
        self.sender = sender
        self.loader = loader

    @classmethod
    def from_settings(cls, settings) -> 'NotificationComposer':
        return cls(sender=settings.sender_email, loader=TemplateLoader.from_settings(settings))

    def compose(self, submission: Submission, recipients: Sequence[str]) -> NotificationMessage:
        """
        Render the notification for one submission.

        Args:
            submission: Submission to summarize
            recipients: Resolved recipient addresses

        Returns:
            NotificationMessage: Ready to hand to the Mailer

        Raises:
            ValueError: If a template is missing
        """
        html_body = format_template(
            self.loader.load(HTML_TEMPLATE),
            fields=render_field_rows(submission)
        )
        text_body = self.loader.load(TEXT_TEMPLATE)

        attachment = None
        if submission.resume is not None:
            attachment = MessageAttachment(
                filename=submission.resume.filename,
                content=submission.resume.content,
                content_type=submission.resume.content_type
            )

        logger.info(
            f"Composed notification: html={len(html_body)}, text={len(text_body)}, "
            f"attachment={attachment.filename if attachment else None}"
        )

        return NotificationMessage(
            subject=SUBJECT,
            html_body=html_body,
            text_body=text_body,
            recipients=tuple(recipients),
            sender=self.sender,
            attachment=attachment
        )


def render_field_rows(submission: Submission) -> str:
    """One escaped <p> line per field, in FIELD_LABELS order."""
    rows = []
    for attribute, label in FIELD_LABELS:
        value = getattr(submission, attribute) or ''
        rows.append(f"<p>{html.escape(label)} {html.escape(value)}</p>")
    if submission.resume is not None:
        rows.append(f"<p>Resume: {html.escape(submission.resume.filename)}</p>")
    return '\n'.join(rows)
