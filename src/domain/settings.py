"""
Deployment configuration for the intake pipeline.

All tunables are read from environment variables exactly once, at process
start, into an immutable Settings object that is passed to every
collaborator.
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Optional, Tuple
from urllib.parse import quote_plus

from .errors import ConfigurationError
from .models import RoutingRule

logger = logging.getLogger(__name__)

DEFAULT_ROUTING_FIELDS = "email_submission:submitter,job1:job1,goodwill:goodwill,tca:tca"

_TRUTHY = {'1', 'true', 'yes', 'on'}
_FALSY = {'0', 'false', 'no', 'off', ''}
_LOG_LEVELS = ('CRITICAL', 'ERROR', 'WARNING', 'INFO', 'DEBUG')


class PersistenceFailurePolicy(Enum):
    """
    What the orchestrator does when the record store fails.

    ABORT: stop before any downstream branch and fail the request.
    NOTIFY: log the failure and still upload, mirror and email, so staff
        receive the submission even though no durable record exists.
    """
    ABORT = 'abort'
    NOTIFY = 'notify'


@dataclass(frozen=True)
class Settings:
    """Immutable per-deployment configuration."""
    environment: str = 'dev'
    log_level: str = 'INFO'

    # Record store
    database_url: str = 'sqlite:///./intake.db'
    database_connect_timeout: int = 10

    # Object store
    resume_bucket: str = ''
    resume_key_prefix: str = 'resumes'
    aws_region: str = 'us-east-1'
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    resume_max_size_bytes: int = 20 * 1024 * 1024
    s3_connect_timeout: int = 10
    s3_read_timeout: int = 60

    # Ledger mirror
    sheet_enabled: bool = False
    google_service_account_file: str = 'client_secret.json'
    sheet_title: str = 'contact'
    sheet_timeout: int = 30

    # Mail relay
    email_server: str = ''
    email_port: int = 587
    email_user: Optional[str] = None
    email_password: Optional[str] = None
    email_domain: Optional[str] = None
    email_starttls: bool = True
    email_timeout: int = 30
    owner_email: str = ''
    sender_email: str = ''

    routing_rules: Tuple[RoutingRule, ...] = field(
        default_factory=lambda: parse_routing_rules(DEFAULT_ROUTING_FIELDS)
    )
    persistence_failure_policy: PersistenceFailurePolicy = PersistenceFailurePolicy.ABORT

    # Notification templates
    template_bucket: Optional[str] = None
    template_key_prefix: str = 'templates/'
    template_cache_ttl: int = 300

    redirect_location: str = '/'

    @property
    def uploads_configured(self) -> bool:
        """True when a resume bucket is set."""
        return bool(self.resume_bucket)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'Settings':
        """
        Build Settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            Settings: Frozen configuration object

        Raises:
            ConfigurationError: If a value cannot be parsed or a required
                mail setting is missing
        """
        env = os.environ if environ is None else environ

        max_size_mb = _get_int(env, 'RESUME_MAX_SIZE_MB', 20)

        policy_name = env.get('PERSISTENCE_FAILURE_POLICY', 'abort').strip().lower()
        try:
            policy = PersistenceFailurePolicy(policy_name)
        except ValueError:
            raise ConfigurationError(
                f"PERSISTENCE_FAILURE_POLICY must be 'abort' or 'notify', got: '{policy_name}'"
            )

        settings = cls(
            environment=env.get('ENVIRONMENT', 'dev'),
            log_level=env.get('LOG_LEVEL', 'INFO').upper(),
            database_url=_database_url(env),
            database_connect_timeout=_get_int(env, 'DATABASE_CONNECT_TIMEOUT', 10),
            resume_bucket=env.get('RESUME_S3_BUCKET', ''),
            resume_key_prefix=env.get('RESUME_KEY_PREFIX', 'resumes').strip('/'),
            aws_region=env.get('AWS_REGION', 'us-east-1'),
            aws_access_key_id=env.get('AWS_ACCESS') or None,
            aws_secret_access_key=env.get('AWS_SECRET') or None,
            resume_max_size_bytes=max_size_mb * 1024 * 1024,
            s3_connect_timeout=_get_int(env, 'S3_CONNECT_TIMEOUT', 10),
            s3_read_timeout=_get_int(env, 'S3_READ_TIMEOUT', 60),
            sheet_enabled=_get_bool(env, 'SHEET_ENABLED', False),
            google_service_account_file=env.get('GOOGLE_SERVICE_ACCOUNT_FILE', 'client_secret.json'),
            sheet_title=env.get('SHEET_TITLE', 'contact'),
            sheet_timeout=_get_int(env, 'SHEET_TIMEOUT', 30),
            email_server=env.get('EMAIL_SERVER', ''),
            email_port=_get_int(env, 'EMAIL_PORT', 587),
            email_user=env.get('EMAIL_USER') or None,
            email_password=env.get('EMAIL_PASSWORD') or None,
            email_domain=env.get('EMAIL_DOMAIN') or None,
            email_starttls=_get_bool(env, 'EMAIL_STARTTLS', True),
            email_timeout=_get_int(env, 'EMAIL_TIMEOUT', 30),
            owner_email=env.get('OWNER_EMAIL', ''),
            sender_email=env.get('SENDER_EMAIL', ''),
            routing_rules=parse_routing_rules(env.get('ROUTING_FIELDS', DEFAULT_ROUTING_FIELDS)),
            persistence_failure_policy=policy,
            template_bucket=env.get('TEMPLATE_BUCKET') or None,
            template_key_prefix=env.get('TEMPLATE_KEY_PREFIX', 'templates/'),
            template_cache_ttl=_get_int(env, 'TEMPLATE_CACHE_TTL', 300),
            redirect_location=env.get('REDIRECT_LOCATION', '/'),
        )
        settings.validate()

        logger.info(
            f"Settings loaded: environment={settings.environment}, "
            f"uploads={settings.uploads_configured}, sheet={settings.sheet_enabled}, "
            f"routing={[r.field for r in settings.routing_rules]}, "
            f"persistence_policy={settings.persistence_failure_policy.value}"
        )
        return settings

    def validate(self) -> None:
        """
        Check settings that every request depends on.

        Raises:
            ConfigurationError: If the mail relay, owner or sender is missing,
                or LOG_LEVEL is not a standard level name
        """
        if self.log_level not in _LOG_LEVELS:
            raise ConfigurationError(
                f"LOG_LEVEL must be one of {', '.join(_LOG_LEVELS)}, got: '{self.log_level}'"
            )

        missing = [
            name for name, value in (
                ('EMAIL_SERVER', self.email_server),
                ('OWNER_EMAIL', self.owner_email),
                ('SENDER_EMAIL', self.sender_email),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"Required environment variable(s) not set: {', '.join(missing)}"
            )


def parse_routing_rules(value: str) -> Tuple[RoutingRule, ...]:
    """
    Parse a routing table of the form "field:role,field:role".

    A bare field name uses the field name as its role.

    Args:
        value: Comma-separated routing entries

    Returns:
        Tuple of RoutingRule in configured order

    Raises:
        ConfigurationError: If an entry has an empty field name
    """
    rules = []
    for entry in value.split(','):
        entry = entry.strip()
        if not entry:
            continue
        field_name, _, role = entry.partition(':')
        field_name = field_name.strip()
        if not field_name:
            raise ConfigurationError(f"Invalid ROUTING_FIELDS entry: '{entry}'")
        rules.append(RoutingRule(field=field_name, role=role.strip() or field_name))
    return tuple(rules)


def _database_url(env: Mapping[str, str]) -> str:
    """DATABASE_URL, or a postgres URL composed from the RDS_* variables."""
    url = env.get('DATABASE_URL')
    if url:
        return url

    if env.get('RDS_HOSTNAME'):
        user = quote_plus(env.get('RDS_USERNAME', ''))
        password = quote_plus(env.get('RDS_PASSWORD', ''))
        return (
            f"postgresql://{user}:{password}@{env['RDS_HOSTNAME']}:"
            f"{env.get('RDS_PORT', '5432')}/{env.get('RDS_DB_NAME', '')}"
        )

    return Settings.database_url


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got: '{raw}'")


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in _TRUTHY:
        return True
    if normalized in _FALSY:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got: '{raw}'")
