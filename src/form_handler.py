"""
AWS Lambda handler for the public intake form (API Gateway proxy integration).

Thin orchestration layer that parses the form post and delegates to
SubmissionProcessor. Success redirects back to the site; any failure after
parsing surfaces as an error response.
"""

import json
import logging
from functools import lru_cache
from typing import Any, Dict

from domain.errors import ConfigurationError, IntakeError, ValidationError
from domain.settings import Settings
from domain.submission_processor import SubmissionProcessor
from services.form import parse_form_event

# Configure logging
logger = logging.getLogger()

# Add console handler for local testing (AWS Lambda provides handlers automatically)
if not logger.handlers:
    console_handler = logging.StreamHandler()
    formatter = logging.Formatter('%(levelname)s - %(message)s')
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings.from_env()
    logger.setLevel(settings.log_level)
    return settings


@lru_cache(maxsize=1)
def get_processor() -> SubmissionProcessor:
    """Build the pipeline once per container (reused across warm invocations)."""
    settings = get_settings()
    processor = SubmissionProcessor.from_settings(settings)
    # Deployed databases are migrated out of band
    if settings.environment == 'dev':
        processor.record_store.create_schema()
    return processor


def _json_response(status_code: int, payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': {'Content-Type': 'application/json'},
        'body': json.dumps(payload)
    }


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Handle one intake form POST.

    Args:
        event: API Gateway proxy event
        context: Lambda context

    Returns:
        302 redirect on success, 400 for invalid input, 500 otherwise
    """
    logger.info("=" * 70)
    logger.info("Intake Form Submission - Started")
    logger.info("=" * 70)

    try:
        settings = get_settings()
        processor = get_processor()

        routing_keys = [rule.field for rule in settings.routing_rules]
        submission = parse_form_event(event, routing_keys=routing_keys)
        result = processor.process(submission)

    except ValidationError as ve:
        logger.warning(f"Rejected submission: {ve}")
        return _json_response(400, {'error': str(ve)})

    except ConfigurationError as ce:
        logger.error(f"Configuration error: {ce}")
        return _json_response(500, {'error': 'Internal server error'})

    except IntakeError as ie:
        # PersistenceError (ABORT policy) and MailError end here
        logger.error(f"Submission failed: {ie.__class__.__name__}: {ie}", exc_info=True)
        return _json_response(500, {'error': 'Internal server error'})

    except Exception as e:
        logger.error(f"Unexpected error processing submission: {e}", exc_info=True)
        return _json_response(500, {'error': 'Internal server error'})

    if result.errors:
        logger.warning(f"✓ Submission {result.submission_id} completed with best-effort failures")
    else:
        logger.info(f"✓ Submission {result.submission_id} completed")

    return {
        'statusCode': 302,
        'headers': {'Location': settings.redirect_location},
        'body': ''
    }


def health_check(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Simple health check endpoint for monitoring.
    """
    try:
        settings = get_settings()
    except ConfigurationError as ce:
        return _json_response(503, {'status': 'misconfigured', 'error': str(ce)})

    return _json_response(200, {
        'status': 'healthy',
        'environment': settings.environment,
        'uploadsConfigured': settings.uploads_configured,
        'sheetEnabled': settings.sheet_enabled,
        'routingFields': [rule.field for rule in settings.routing_rules],
        'persistencePolicy': settings.persistence_failure_policy.value
    })
