"""
Resume upload to S3.

Object keys are built from the environment, the submission id and a
sanitized filename: resumes/{env}/{submission_id}/{filename}. The filename
comes straight from the submitter and is validated before any upload.
"""

import logging
import re
import uuid
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from domain.errors import StorageError, ValidationError

logger = logging.getLogger(__name__)

MAX_FILENAME_LENGTH = 255

_CONTROL_CHARS = re.compile(r'[\x00-\x1f\x7f]')


def validate_filename(filename: str) -> None:
    """
    Reject filenames that are unsafe to use inside an object key.

    Args:
        filename: Filename supplied by the submitter

    Raises:
        ValidationError: If the name is empty, too long, contains a path
            separator, a parent reference or control characters
    """
    if not filename or not filename.strip():
        raise ValidationError("Resume filename cannot be empty")
    if len(filename) > MAX_FILENAME_LENGTH:
        raise ValidationError(
            f"Resume filename too long ({len(filename)} > {MAX_FILENAME_LENGTH} characters)"
        )
    if '/' in filename or '\\' in filename:
        raise ValidationError(f"Resume filename contains a path separator: {filename!r}")
    if filename.strip() in ('.', '..'):
        raise ValidationError(f"Resume filename is a relative path reference: {filename!r}")
    if _CONTROL_CHARS.search(filename):
        raise ValidationError("Resume filename contains control characters")


def _sanitize_for_s3_key(value: str) -> str:
    """
    Sanitize a string for use in S3 object keys.

    Removes/replaces characters that are problematic in S3 keys or URLs.
    """
    result = value.strip()

    # Replace problematic characters
    result = re.sub(r'[/\\#?&%<>"{}|^`\[\]]', '_', result)

    # Remove any remaining control characters
    result = _CONTROL_CHARS.sub('', result)

    return result


class ObjectStoreClient:
    """
    Uploads resumes to the configured S3 bucket.

    Args:
        bucket: Destination bucket
        environment: Deployment environment, used in the key path
        key_prefix: Top-level key prefix
        client: Preconfigured boto3 S3 client (built from settings if None)
    """

    def __init__(self, bucket: str, environment: str = 'dev', key_prefix: str = 'resumes',
                 client=None):
        if not bucket:
            raise ValueError("S3 bucket name cannot be empty")
        self.bucket = bucket
        self.environment = environment
        self.key_prefix = key_prefix
        self.client = client

    @classmethod
    def from_settings(cls, settings) -> 'ObjectStoreClient':
        # Explicit timeouts, no retries: the submitter is waiting on this request
        s3_config = Config(
            retries={
                'max_attempts': 1,
                'mode': 'standard'
            },
            connect_timeout=settings.s3_connect_timeout,
            read_timeout=settings.s3_read_timeout
        )
        client = boto3.client(
            's3',
            region_name=settings.aws_region,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            config=s3_config
        )
        logger.info(
            f"S3 client initialized: region={settings.aws_region}, "
            f"connect={settings.s3_connect_timeout}s, read={settings.s3_read_timeout}s, max_attempts=1"
        )
        return cls(
            bucket=settings.resume_bucket,
            environment=settings.environment,
            key_prefix=settings.resume_key_prefix,
            client=client
        )

    def build_key(self, filename: str, submission_id: Optional[str]) -> str:
        """
        Object key for a resume.

        Submissions that were not persisted get a random path segment so
        identical filenames never overwrite each other.
        """
        owner = _sanitize_for_s3_key(submission_id) if submission_id else f"unsaved-{uuid.uuid4()}"
        return f"{self.key_prefix}/{self.environment}/{owner}/{_sanitize_for_s3_key(filename)}"

    def upload(
        self,
        filename: str,
        content: bytes,
        submission_id: Optional[str] = None,
        content_type: str = 'application/octet-stream'
    ) -> str:
        """
        Upload a resume.

        Args:
            filename: Original filename (validated, then sanitized into the key)
            content: Binary content
            submission_id: Id of the persisted submission
            content_type: MIME type

        Returns:
            str: The object key written

        Raises:
            ValidationError: If the filename is unsafe
            StorageError: On network, auth, quota or timeout failures
        """
        validate_filename(filename)
        if content is None:
            raise ValueError("Content cannot be None")

        key = self.build_key(filename, submission_id)

        try:
            logger.info(
                f"Uploading resume to S3: bucket={self.bucket}, key={key}, "
                f"size={len(content)} bytes"
            )

            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content,
                ContentType=content_type
            )

            logger.info(f"Successfully uploaded resume to S3: bucket={self.bucket}, key={key}")
            return key

        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            error_message = e.response.get('Error', {}).get('Message', str(e))

            logger.error(
                f"Failed to upload resume to S3: "
                f"bucket={self.bucket}, key={key}, "
                f"error_code={error_code}, error_message={error_message}"
            )
            raise StorageError(f"S3 upload failed ({error_code}): {error_message}") from e

        except BotoCoreError as e:
            # Connection errors and connect/read timeouts
            logger.error(f"Failed to reach S3 for s3://{self.bucket}/{key}: {e}")
            raise StorageError(f"S3 upload failed: {e}") from e
