"""
Relational persistence for intake submissions.

One row per Submission in the `contacts` table. Rows are insert-only; there
is no update or delete path.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, String, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from domain.errors import PersistenceError
from domain.models import RECORD_FIELDS, Submission

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


class ContactRecord(Base):
    __tablename__ = "contacts"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    first_name: Mapped[Optional[str]] = mapped_column(String(255))
    last_name: Mapped[Optional[str]] = mapped_column(String(255))
    preferred_contact_method: Mapped[Optional[str]] = mapped_column(String(255))
    email: Mapped[Optional[str]] = mapped_column(String(320))
    phone: Mapped[Optional[str]] = mapped_column(String(64))
    text_number: Mapped[Optional[str]] = mapped_column(String(64))
    neighborhood: Mapped[Optional[str]] = mapped_column(String(255))
    referral_source: Mapped[Optional[str]] = mapped_column(Text)

    young_adult: Mapped[Optional[str]] = mapped_column(String(64))
    veteran: Mapped[Optional[str]] = mapped_column(String(64))
    no_transportation: Mapped[Optional[str]] = mapped_column(String(64))
    homeless: Mapped[Optional[str]] = mapped_column(String(64))
    no_drivers_license: Mapped[Optional[str]] = mapped_column(String(64))
    no_state_id: Mapped[Optional[str]] = mapped_column(String(64))
    disabled: Mapped[Optional[str]] = mapped_column(String(64))
    childcare: Mapped[Optional[str]] = mapped_column(String(64))
    criminal: Mapped[Optional[str]] = mapped_column(String(64))
    previously_incarcerated: Mapped[Optional[str]] = mapped_column(String(64))
    using_drugs: Mapped[Optional[str]] = mapped_column(String(64))
    none_of_above: Mapped[Optional[str]] = mapped_column(String(64))

    resume_filename: Mapped[Optional[str]] = mapped_column(String(255))


class RecordStore:
    """
    Saves and reads submissions through SQLAlchemy.

    Args:
        database_url: SQLAlchemy database URL
        connect_timeout: Seconds allowed to open a connection (network databases)
        engine: Prebuilt engine (mainly for tests)
    """

    def __init__(self, database_url: Optional[str] = None, connect_timeout: int = 10,
                 engine: Optional[Engine] = None):
        if engine is None:
            if not database_url:
                raise ValueError("Database URL cannot be empty")
            connect_args = {}
            if not database_url.startswith('sqlite'):
                connect_args['connect_timeout'] = connect_timeout
            engine = create_engine(database_url, pool_pre_ping=True, connect_args=connect_args)
        self.engine = engine
        self._session_factory = sessionmaker(engine, expire_on_commit=False)

    @classmethod
    def from_settings(cls, settings) -> 'RecordStore':
        return cls(settings.database_url, connect_timeout=settings.database_connect_timeout)

    def create_schema(self) -> None:
        """Create the contacts table if it does not exist."""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to create schema: {e}") from e

    def save(self, submission: Submission) -> str:
        """
        Persist a submission as a new row.

        Args:
            submission: Unsaved submission

        Returns:
            str: The assigned submission id

        Raises:
            PersistenceError: On constraint violation or lost connectivity
        """
        submission_id = str(uuid.uuid4())
        record = ContactRecord(
            id=submission_id,
            created_at=datetime.now(timezone.utc),
            resume_filename=submission.resume_filename,
            **{name: getattr(submission, name) for name in RECORD_FIELDS}
        )

        try:
            with self._session_factory() as session:
                with session.begin():
                    session.add(record)
        except SQLAlchemyError as e:
            logger.error(f"Failed to save submission: {e.__class__.__name__}: {e}")
            raise PersistenceError(f"Failed to save submission: {e.__class__.__name__}") from e

        logger.info(f"Saved submission: id={submission_id}")
        return submission_id

    def get(self, submission_id: str) -> Submission:
        """
        Load a persisted submission by id.

        The resume content is not stored here, so the returned Submission has
        no attachment (see get_resume_filename).

        Raises:
            PersistenceError: If the row is missing or the query fails
        """
        record = self._load_record(submission_id)
        return Submission(
            submission_id=record.id,
            **{name: getattr(record, name) for name in RECORD_FIELDS}
        )

    def get_resume_filename(self, submission_id: str) -> Optional[str]:
        """Filename of the resume recorded with a submission, if any."""
        return self._load_record(submission_id).resume_filename

    def _load_record(self, submission_id: str) -> ContactRecord:
        try:
            with self._session_factory() as session:
                record = session.get(ContactRecord, submission_id)
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to load submission {submission_id}: {e}") from e

        if record is None:
            raise PersistenceError(f"Submission not found: {submission_id}")
        return record
