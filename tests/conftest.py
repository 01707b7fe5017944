"""
Pytest configuration and fixtures for all tests.
"""

import os
import sys
import pytest

# Add src to Python path before any imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

# Set up test environment variables before importing any modules
os.environ.setdefault('ENVIRONMENT', 'test')
os.environ.setdefault('LOG_LEVEL', 'INFO')
os.environ.setdefault('EMAIL_SERVER', 'smtp.example.com')
os.environ.setdefault('OWNER_EMAIL', 'owner@example.org')
os.environ.setdefault('SENDER_EMAIL', 'noreply@example.org')


@pytest.fixture
def test_settings():
    """Settings with every optional integration switched off."""
    from domain.settings import Settings
    return Settings(
        environment='test',
        email_server='smtp.example.com',
        owner_email='owner@example.org',
        sender_email='noreply@example.org'
    )


@pytest.fixture
def jane_submission():
    """Submission from scenario A: first name and email only, no attachment."""
    from domain.models import Submission
    return Submission(first_name='Jane', email='jane@x.com')
