"""
Error taxonomy for the intake pipeline.

Service modules wrap library exceptions (botocore, SQLAlchemy, gspread,
smtplib) into these classes so the orchestrator and the Lambda handler only
deal with one family of errors.
"""


class IntakeError(Exception):
    """Base class for all intake pipeline errors."""
    pass


class ConfigurationError(IntakeError):
    """Raised when settings are missing or invalid."""
    pass


class ValidationError(IntakeError):
    """Raised when an inbound submission is malformed or unsafe."""
    pass


class PersistenceError(IntakeError):
    """Raised when the record store cannot save or load a submission."""
    pass


class StorageError(IntakeError):
    """Raised when a resume cannot be uploaded to object storage."""
    pass


class SheetError(IntakeError):
    """Raised when the ledger mirror row cannot be appended."""
    pass


class MailError(IntakeError):
    """Raised when the notification email cannot be delivered."""
    pass
