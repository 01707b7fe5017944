"""
Inbound form parsing for Lambda proxy events.

This module turns an API Gateway form post (urlencoded or multipart with an
optional resume file part) into a Submission.
"""

import base64
import binascii
import logging
from email import policy
from email.parser import BytesParser
from typing import Any, Dict, Optional, Sequence, Tuple
from urllib.parse import parse_qs

from domain.errors import ValidationError
from domain.models import ResumeAttachment, Submission

logger = logging.getLogger(__name__)

RESUME_FIELD = 'resume'


def _header(event: Dict[str, Any], name: str) -> str:
    """Case-insensitive header lookup (API Gateway v1 and v2 events)."""
    headers = event.get('headers') or {}
    for key, value in headers.items():
        if key.lower() == name.lower():
            return value or ''
    return ''


def _body_bytes(event: Dict[str, Any]) -> bytes:
    body = event.get('body')
    if body is None:
        raise ValidationError("Request body is empty")

    if event.get('isBase64Encoded'):
        try:
            return base64.b64decode(body, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError(f"Request body is not valid base64: {e}")

    return body.encode('utf-8') if isinstance(body, str) else body


def client_basename(filename: str) -> str:
    """Strip a client-side directory (old IE sends C:\\fakepath\\cv.pdf)."""
    return filename.replace('\\', '/').rsplit('/', 1)[-1]


def parse_urlencoded(body: bytes) -> Dict[str, str]:
    """First value per key; blank values are kept."""
    try:
        parsed = parse_qs(body.decode('utf-8'), keep_blank_values=True)
    except UnicodeDecodeError as e:
        raise ValidationError(f"Form body is not valid UTF-8: {e}")
    return {key: values[0] for key, values in parsed.items()}


def parse_multipart(content_type: str, body: bytes) -> Tuple[Dict[str, str], Optional[ResumeAttachment]]:
    """
    Parse a multipart/form-data body.

    Args:
        content_type: Full Content-Type header (including boundary)
        body: Raw body bytes

    Returns:
        Tuple of (form fields, resume attachment or None)

    Raises:
        ValidationError: If the boundary is missing or no parts are found
    """
    # Prepend the header so the stdlib MIME parser sees a complete message
    msg = BytesParser(policy=policy.default).parsebytes(
        b'Content-Type: ' + content_type.encode('latin-1') + b'\r\n\r\n' + body
    )

    if not msg.is_multipart() or msg.get_boundary() is None:
        raise ValidationError("Multipart form body has no boundary")

    params: Dict[str, str] = {}
    resume = None

    for part in msg.iter_parts():
        name = part.get_param('name', header='content-disposition')
        if not name:
            logger.warning("Skipping form part without a name")
            continue

        filename = part.get_filename()
        payload = part.get_payload(decode=True) or b''

        if name == RESUME_FIELD:
            # Browsers send an empty file part when no file was chosen
            if filename and payload:
                resume = ResumeAttachment(
                    filename=client_basename(filename),
                    content=payload,
                    content_type=part.get_content_type()
                )
            continue

        if name not in params:
            params[name] = payload.decode(part.get_content_charset() or 'utf-8', errors='replace')

    return params, resume


def parse_form_event(event: Dict[str, Any], routing_keys: Sequence[str] = ()) -> Submission:
    """
    Build a Submission from a Lambda proxy event.

    Args:
        event: API Gateway proxy event for the form POST
        routing_keys: Extra form keys to keep for recipient routing

    Returns:
        Submission: Unsaved submission

    Raises:
        ValidationError: If the body is missing, malformed or of an
            unsupported content type
    """
    content_type = _header(event, 'content-type')
    body = _body_bytes(event)
    media_type = content_type.split(';', 1)[0].strip().lower()

    if media_type == 'multipart/form-data':
        params, resume = parse_multipart(content_type, body)
    elif media_type in ('application/x-www-form-urlencoded', ''):
        params, resume = parse_urlencoded(body), None
    else:
        raise ValidationError(f"Unsupported content type: {media_type}")

    logger.info(
        f"Parsed form: fields={len(params)}, "
        f"resume={resume.filename if resume else None}"
    )

    return Submission.from_form(params, resume=resume, routing_keys=tuple(routing_keys))
