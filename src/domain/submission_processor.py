"""
Submission fan-out pipeline - core business logic.

This module handles one intake form post end to end:
1. Validate the submission
2. Persist it in the record store
3. Upload the resume to S3 (if one was attached)
4. Append a row to the ledger mirror sheet (if configured)
5. Resolve recipients and compose the notification
6. Send the notification email

Steps 3 and 4 are best-effort: failures are logged and collected in the
SubmissionResult. A mail failure always propagates. A persistence failure
propagates or is tolerated according to PersistenceFailurePolicy.
"""

import logging
import time
from dataclasses import replace
from typing import Optional, Tuple

from .composer import NotificationComposer
from .errors import PersistenceError, SheetError, StorageError, ValidationError
from .models import Submission, SubmissionResult
from .recipients import RecipientResolver
from .settings import PersistenceFailurePolicy, Settings
from services.mailer import Mailer
from services.object_store import ObjectStoreClient, validate_filename
from services.record_store import RecordStore
from services.sheets import SheetAppender

logger = logging.getLogger(__name__)


class SubmissionProcessor:
    """
    Sequences the intake pipeline for one submission at a time.

    Collaborators are injected; object_store and sheet_appender are optional
    and their branches are skipped entirely when absent.
    """

    def __init__(
        self,
        record_store: RecordStore,
        resolver: RecipientResolver,
        composer: NotificationComposer,
        mailer: Mailer,
        object_store: Optional[ObjectStoreClient] = None,
        sheet_appender: Optional[SheetAppender] = None,
        persistence_policy: PersistenceFailurePolicy = PersistenceFailurePolicy.ABORT,
        max_resume_bytes: int = 20 * 1024 * 1024
    ):
        self.record_store = record_store
        self.resolver = resolver
        self.composer = composer
        self.mailer = mailer
        self.object_store = object_store
        self.sheet_appender = sheet_appender
        self.persistence_policy = persistence_policy
        self.max_resume_bytes = max_resume_bytes

    @classmethod
    def from_settings(cls, settings: Settings) -> 'SubmissionProcessor':
        """Wire every collaborator from one Settings object."""
        object_store = None
        if settings.uploads_configured:
            object_store = ObjectStoreClient.from_settings(settings)
        else:
            logger.info("RESUME_S3_BUCKET not set, resume uploads disabled")

        sheet_appender = None
        if settings.sheet_enabled:
            sheet_appender = SheetAppender.from_settings(settings)

        return cls(
            record_store=RecordStore.from_settings(settings),
            resolver=RecipientResolver.from_settings(settings),
            composer=NotificationComposer.from_settings(settings),
            mailer=Mailer.from_settings(settings),
            object_store=object_store,
            sheet_appender=sheet_appender,
            persistence_policy=settings.persistence_failure_policy,
            max_resume_bytes=settings.resume_max_size_bytes
        )

    def process(self, submission: Submission) -> SubmissionResult:
        """
        Run the full pipeline for one submission.

        Args:
            submission: Unsaved submission parsed from the form

        Returns:
            SubmissionResult describing what each branch did

        Raises:
            ValidationError: If the submission is rejected before persisting
            PersistenceError: If saving fails under the ABORT policy
            MailError: If the notification cannot be sent
        """
        start_time = time.time()
        logger.info(
            f"Processing submission: resume={submission.resume_filename}, "
            f"sheet={'on' if self.sheet_appender else 'off'}"
        )

        self.validate(submission)
        submission, resume_error = self._screen_resume(submission)

        submission = self._persist(submission)
        result = SubmissionResult(
            submission_id=submission.submission_id,
            persisted=submission.submission_id is not None
        )
        if resume_error:
            result.errors.append(resume_error)

        if submission.has_resume:
            self._upload_resume(submission, result)

        if self.sheet_appender is not None:
            self._append_to_sheet(submission, result)

        recipients = self.resolver.resolve(submission)
        result.recipients = recipients.as_list()

        message = self.composer.compose(submission, recipients)
        self.mailer.send(message)

        self._log_processing_success(submission, result, time.time() - start_time)
        return result

    def validate(self, submission: Submission) -> None:
        """
        Reject submissions that must not enter the pipeline.

        Raises:
            ValidationError: If the submission was already persisted
        """
        if submission.submission_id is not None:
            raise ValidationError("Submission was already persisted")

    def _screen_resume(self, submission: Submission) -> Tuple[Submission, Optional[str]]:
        """
        Drop a resume that cannot be stored or mailed.

        The contact details are still persisted and emailed; the reason is
        returned so it lands in SubmissionResult.errors.
        """
        if submission.resume is None:
            return submission, None

        try:
            validate_filename(submission.resume.filename)
            if submission.resume.size > self.max_resume_bytes:
                raise ValidationError(
                    f"Resume too large: {submission.resume.size:,} bytes > "
                    f"{self.max_resume_bytes:,} limit"
                )
        except ValidationError as e:
            logger.warning(f"Dropping resume {submission.resume.filename!r}: {e}")
            return replace(submission, resume=None), f"resume dropped: {e}"

        return submission, None

    def _persist(self, submission: Submission) -> Submission:
        try:
            submission_id = self.record_store.save(submission)
        except PersistenceError as e:
            if self.persistence_policy is PersistenceFailurePolicy.ABORT:
                logger.error(f"Persistence failed, aborting submission: {e}")
                raise
            logger.error(
                f"Persistence failed, continuing under NOTIFY policy "
                f"(no durable record exists): {e}"
            )
            return submission

        return submission.with_id(submission_id)

    def _upload_resume(self, submission: Submission, result: SubmissionResult) -> None:
        if self.object_store is None:
            logger.warning(
                f"Resume {submission.resume_filename} received but uploads are not configured"
            )
            result.errors.append("resume upload not configured")
            return

        try:
            result.resume_key = self.object_store.upload(
                filename=submission.resume.filename,
                content=submission.resume.content,
                submission_id=submission.submission_id,
                content_type=submission.resume.content_type
            )
        except StorageError as e:
            logger.error(f"Resume upload failed, continuing: {e}")
            result.errors.append(f"resume upload failed: {e}")

    def _append_to_sheet(self, submission: Submission, result: SubmissionResult) -> None:
        try:
            self.sheet_appender.append_submission(submission)
            result.sheet_appended = True
        except SheetError as e:
            logger.error(f"Sheet append failed, continuing: {e}")
            result.errors.append(f"sheet append failed: {e}")

    def _log_processing_success(
        self,
        submission: Submission,
        result: SubmissionResult,
        elapsed: float
    ) -> None:
        """Log successful processing summary."""
        logger.info("=" * 50)
        logger.info("SUBMISSION PROCESSED")
        logger.info(f"Id: {result.submission_id} (persisted={result.persisted})")
        logger.info(f"Resume: {submission.resume_filename} -> {result.resume_key}")
        logger.info(f"Sheet appended: {result.sheet_appended}")
        logger.info(f"Recipients: {len(result.recipients)}")
        if result.errors:
            logger.warning(f"Best-effort failures: {result.errors}")
        logger.info(f"Elapsed: {elapsed:.3f}s")
        logger.info("=" * 50)
