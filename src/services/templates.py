"""
Notification template management.

This module loads email templates with the following priority:
1. S3 override (optional, for copy changes without redeploy)
2. Local filesystem (templates/ directory packaged with the Lambda)

Templates are cached in memory for warm Lambda invocations with TTL.
"""

import logging
import time
from pathlib import Path
from typing import Dict, Optional, Tuple

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

logger = logging.getLogger(__name__)

# Path to templates directory (relative to this file)
# src/services/templates.py -> src/templates/
TEMPLATES_DIR = Path(__file__).parent.parent / 'templates'


class TemplateLoader:
    """
    Loads and caches notification templates.

    Args:
        templates_dir: Directory holding the packaged templates
        bucket: Optional S3 bucket with template overrides
        key_prefix: Key prefix for overrides inside the bucket
        cache_ttl: Seconds a loaded template stays cached
        s3_client: Preconfigured boto3 S3 client (created lazily if None)
    """

    def __init__(
        self,
        templates_dir: Path = TEMPLATES_DIR,
        bucket: Optional[str] = None,
        key_prefix: str = 'templates/',
        cache_ttl: int = 300,
        s3_client=None,
        region: Optional[str] = None
    ):
        self.templates_dir = Path(templates_dir)
        self.bucket = bucket
        self.key_prefix = key_prefix
        self.cache_ttl = cache_ttl
        self.region = region
        self._s3_client = s3_client
        # {template_name: (content, timestamp)}
        self._cache: Dict[str, Tuple[str, float]] = {}

    @classmethod
    def from_settings(cls, settings) -> 'TemplateLoader':
        return cls(
            bucket=settings.template_bucket,
            key_prefix=settings.template_key_prefix,
            cache_ttl=settings.template_cache_ttl,
            region=settings.aws_region
        )

    @property
    def s3_client(self):
        if self._s3_client is None:
            # No retries and short timeouts: a slow override must not hold up a submission
            s3_config = Config(
                retries={'max_attempts': 1, 'mode': 'standard'},
                connect_timeout=5,
                read_timeout=10
            )
            self._s3_client = boto3.client('s3', region_name=self.region, config=s3_config)
            logger.info("Templates S3 client initialized with timeouts: connect=5s, read=10s")
        return self._s3_client

    def _load_from_filesystem(self, template_name: str) -> str:
        template_path = self.templates_dir / template_name
        logger.info(f"Loading template from filesystem: {template_path}")

        with open(template_path, 'r', encoding='utf-8') as f:
            content = f.read()

        logger.info(f"Loaded template from filesystem: {len(content)} characters")
        return content

    def _load_from_s3(self, template_name: str) -> str:
        s3_key = f"{self.key_prefix}{template_name}"
        logger.info(f"Loading template from S3: s3://{self.bucket}/{s3_key}")

        response = self.s3_client.get_object(Bucket=self.bucket, Key=s3_key)

        content = response['Body'].read().decode('utf-8')
        logger.info(f"Loaded template from S3: {len(content)} characters")
        return content

    def load(self, template_name: str, use_cache: bool = True) -> str:
        """
        Load a template with caching and fallback.

        Priority: Cache -> S3 override -> Local filesystem

        Args:
            template_name: Template file name (e.g., "notification.html")
            use_cache: Use cached version if available (default: True)

        Returns:
            str: Template content

        Raises:
            ValueError: If the template is not found
        """
        current_time = time.time()

        if use_cache and template_name in self._cache:
            cached_content, cached_time = self._cache[template_name]
            if current_time - cached_time < self.cache_ttl:
                return cached_content
            logger.info(f"Cache expired for template: {template_name}, reloading...")

        content = None

        if self.bucket:
            try:
                content = self._load_from_s3(template_name)
                logger.info(f"Using S3 override for template: {template_name}")
            except (ClientError, BotoCoreError) as e:
                logger.info(
                    f"S3 override not available ({e.__class__.__name__}), "
                    f"falling back to local filesystem"
                )

        if content is None:
            try:
                content = self._load_from_filesystem(template_name)
            except FileNotFoundError:
                logger.error(
                    f"Template not found: {template_name}. "
                    f"Expected location: {self.templates_dir / template_name}"
                )
                raise ValueError(
                    f"Template '{template_name}' not found in S3 or local filesystem"
                )

        self._cache[template_name] = (content, current_time)
        return content

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.info("Template cache cleared")


def format_template(template: str, **variables) -> str:
    """
    Format a template with variables.

    Uses str.format(). Substituted values are inserted as-is and never
    parsed again, so braces in user content are harmless.

    Args:
        template: Template string with {variable} placeholders
        **variables: Values to substitute

    Returns:
        str: Formatted template

    Raises:
        ValueError: If a placeholder has no matching variable

    Example:
        >>> format_template("Hello {name}", name="Jane")
        'Hello Jane'
    """
    try:
        return template.format(**variables)
    except KeyError as e:
        missing_var = str(e).strip("'")
        logger.error(f"Missing variable in template: {missing_var}")
        raise ValueError(f"Missing required variable in template: {missing_var}")
