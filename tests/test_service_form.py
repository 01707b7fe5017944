"""
Tests for inbound form parsing.
"""

import base64
import pytest
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from domain.errors import ValidationError
from services.form import client_basename, parse_form_event, parse_multipart, parse_urlencoded

BOUNDARY = '----WebKitFormBoundary7MA4YWxkTrZu0gW'
ROUTING_KEYS = ('email_submission', 'job1', 'goodwill', 'tca')


def multipart_body(fields, files=()):
    """Build a multipart/form-data body (CRLF line endings)."""
    lines = []
    for name, value in fields:
        lines.append(f'--{BOUNDARY}'.encode())
        lines.append(f'Content-Disposition: form-data; name="{name}"'.encode())
        lines.append(b'')
        lines.append(value.encode('utf-8'))
    for name, filename, content_type, content in files:
        lines.append(f'--{BOUNDARY}'.encode())
        lines.append(
            f'Content-Disposition: form-data; name="{name}"; filename="{filename}"'.encode()
        )
        lines.append(f'Content-Type: {content_type}'.encode())
        lines.append(b'')
        lines.append(content)
    lines.append(f'--{BOUNDARY}--'.encode())
    lines.append(b'')
    return b'\r\n'.join(lines)


def multipart_event(body, base64_encoded=True):
    return {
        'httpMethod': 'POST',
        'headers': {'Content-Type': f'multipart/form-data; boundary={BOUNDARY}'},
        'body': base64.b64encode(body).decode('ascii') if base64_encoded else body.decode('utf-8'),
        'isBase64Encoded': base64_encoded,
    }


class TestParseUrlencoded:
    """Test urlencoded form bodies."""

    def test_first_value_and_blanks(self):
        """Test first value wins and blank values are kept."""
        params = parse_urlencoded(b'first_name=Jane&first_name=Janet&tca=&veteran=true')

        assert params == {'first_name': 'Jane', 'tca': '', 'veteran': 'true'}

    def test_percent_decoding(self):
        """Test encoded characters are decoded."""
        params = parse_urlencoded(b'last_name=O%27Brien+%26+Sons')

        assert params['last_name'] == "O'Brien & Sons"


class TestClientBasename:
    """Test stripping client-side directories from upload names."""

    def test_windows_fakepath(self):
        """Test legacy browsers' full Windows paths are reduced to the name."""
        assert client_basename('C:\\fakepath\\resume.pdf') == 'resume.pdf'

    def test_posix_path(self):
        """Test forward-slash paths are reduced to the name."""
        assert client_basename('/home/jane/resume.pdf') == 'resume.pdf'

    def test_plain_name_unchanged(self):
        """Test plain names pass through byte-for-byte."""
        assert client_basename('Jane Doe CV (2024).pdf') == 'Jane Doe CV (2024).pdf'


class TestParseMultipart:
    """Test multipart form bodies."""

    def test_fields_and_resume(self):
        """Test text fields and the resume file part."""
        body = multipart_body(
            [('first_name', 'Jane'), ('email_submission', 'jane@x.com')],
            [('resume', 'resume.pdf', 'application/pdf', b'%PDF-1.4\r\n\x00\xffbinary')]
        )

        params, resume = parse_multipart(f'multipart/form-data; boundary={BOUNDARY}', body)

        assert params == {'first_name': 'Jane', 'email_submission': 'jane@x.com'}
        assert resume.filename == 'resume.pdf'
        assert resume.content_type == 'application/pdf'
        assert resume.content == b'%PDF-1.4\r\n\x00\xffbinary'

    def test_empty_file_part_means_no_resume(self):
        """Test browsers' empty file part when no file was chosen."""
        body = multipart_body(
            [('first_name', 'Jane')],
            [('resume', '', 'application/octet-stream', b'')]
        )

        params, resume = parse_multipart(f'multipart/form-data; boundary={BOUNDARY}', body)

        assert resume is None
        assert 'resume' not in params

    def test_utf8_values(self):
        """Test non-ASCII text fields."""
        body = multipart_body([('neighborhood', 'Faubourg Marigny – Bywater')])

        params, _ = parse_multipart(f'multipart/form-data; boundary={BOUNDARY}', body)

        assert params['neighborhood'] == 'Faubourg Marigny – Bywater'

    def test_missing_boundary(self):
        """Test a multipart content type without a boundary is rejected."""
        with pytest.raises(ValidationError, match="no boundary"):
            parse_multipart('multipart/form-data', b'first_name=Jane')


class TestParseFormEvent:
    """Test building a Submission from a Lambda proxy event."""

    def test_urlencoded_event(self):
        """Test a plain form post without a file."""
        event = {
            'headers': {'content-type': 'application/x-www-form-urlencoded'},
            'body': 'first_name=Jane&email_submission=jane%40x.com&best_way=Email&none=true&goodwill=gw%40example.org',
            'isBase64Encoded': False,
        }

        submission = parse_form_event(event, routing_keys=ROUTING_KEYS)

        assert submission.first_name == 'Jane'
        assert submission.email == 'jane@x.com'
        assert submission.preferred_contact_method == 'Email'
        assert submission.none_of_above == 'true'
        assert submission.routing_contacts == {'goodwill': 'gw@example.org'}
        assert submission.resume is None

    def test_multipart_event_with_resume(self):
        """Test a base64-encoded multipart post carrying a resume."""
        body = multipart_body(
            [('first_name', 'Jane'), ('veteran', 'true'), ('job1', 'job1@example.org')],
            [('resume', 'resume.pdf', 'application/pdf', b'%PDF-1.4')]
        )

        submission = parse_form_event(multipart_event(body), routing_keys=ROUTING_KEYS)

        assert submission.first_name == 'Jane'
        assert submission.veteran == 'true'
        assert submission.routing_contacts == {'job1': 'job1@example.org'}
        assert submission.resume_filename == 'resume.pdf'
        assert submission.resume.content == b'%PDF-1.4'

    def test_unencoded_multipart_event(self):
        """Test multipart bodies that API Gateway passed through as text."""
        body = multipart_body([('first_name', 'Jane')])

        submission = parse_form_event(multipart_event(body, base64_encoded=False))

        assert submission.first_name == 'Jane'

    def test_missing_body(self):
        """Test a POST without a body is rejected."""
        with pytest.raises(ValidationError, match="body is empty"):
            parse_form_event({'headers': {}, 'body': None})

    def test_invalid_base64(self):
        """Test undecodable base64 bodies are rejected."""
        event = {
            'headers': {'Content-Type': 'application/x-www-form-urlencoded'},
            'body': '***not base64***',
            'isBase64Encoded': True,
        }

        with pytest.raises(ValidationError, match="not valid base64"):
            parse_form_event(event)

    def test_unsupported_content_type(self):
        """Test JSON posts are not accepted by the form endpoint."""
        event = {
            'headers': {'Content-Type': 'application/json'},
            'body': '{"first_name": "Jane"}',
        }

        with pytest.raises(ValidationError, match="Unsupported content type: application/json"):
            parse_form_event(event)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
