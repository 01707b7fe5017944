"""
Data models for the intake submission domain.

These type-safe data structures define clear contracts between components.
"""

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple


class FlagState(Enum):
    """Tri-state reading of a barrier checkbox delivered as a free-form string."""
    ABSENT = 'absent'
    SET = 'set'
    OTHER = 'other'


_SET_VALUES = {'true', 't', 'yes', 'y', 'on', '1'}


def flag_state(value: Optional[str]) -> FlagState:
    """
    Interpret a raw form value as a barrier flag.

    Args:
        value: Raw string from the form, or None if the key was not posted

    Returns:
        FlagState.ABSENT for None/blank, SET for "true"-ish values, else OTHER

    Example:
        >>> flag_state(' True ')
        <FlagState.SET: 'set'>
    """
    if value is None or not value.strip():
        return FlagState.ABSENT
    if value.strip().lower() in _SET_VALUES:
        return FlagState.SET
    return FlagState.OTHER


BARRIER_FIELDS: Tuple[str, ...] = (
    'young_adult',
    'veteran',
    'no_transportation',
    'homeless',
    'no_drivers_license',
    'no_state_id',
    'disabled',
    'childcare',
    'criminal',
    'previously_incarcerated',
    'using_drugs',
    'none_of_above',
)

# Inbound form key -> Submission attribute, where they differ
FORM_FIELD_ALIASES: Dict[str, str] = {
    'best_way': 'preferred_contact_method',
    'email_submission': 'email',
    'phone_submission': 'phone',
    'text_submission': 'text_number',
    'referral': 'referral_source',
    'none': 'none_of_above',
}


@dataclass(frozen=True)
class ResumeAttachment:
    """
    Resume file uploaded with the form.

    Attributes:
        filename: Filename exactly as supplied by the submitter (untrusted)
        content: Binary content
        content_type: MIME type from the file part
    """
    filename: str
    content: bytes = field(repr=False)
    content_type: str = 'application/octet-stream'

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class Submission:
    """
    One intake record from the public form.

    Immutable: persisting returns a copy carrying the assigned id.
    """
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    preferred_contact_method: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    text_number: Optional[str] = None
    neighborhood: Optional[str] = None
    referral_source: Optional[str] = None

    young_adult: Optional[str] = None
    veteran: Optional[str] = None
    no_transportation: Optional[str] = None
    homeless: Optional[str] = None
    no_drivers_license: Optional[str] = None
    no_state_id: Optional[str] = None
    disabled: Optional[str] = None
    childcare: Optional[str] = None
    criminal: Optional[str] = None
    previously_incarcerated: Optional[str] = None
    using_drugs: Optional[str] = None
    none_of_above: Optional[str] = None

    resume: Optional[ResumeAttachment] = None
    routing_contacts: Mapping[str, str] = field(default_factory=dict, hash=False)
    submission_id: Optional[str] = None

    def __post_init__(self):
        # Read-only copy so the frozen submission cannot change through it
        object.__setattr__(self, 'routing_contacts', MappingProxyType(dict(self.routing_contacts)))

    @property
    def resume_filename(self) -> Optional[str]:
        return self.resume.filename if self.resume else None

    @property
    def has_resume(self) -> bool:
        return self.resume is not None

    def barrier_flags(self) -> Dict[str, FlagState]:
        """Tri-state reading of every barrier flag, in form order."""
        return {name: flag_state(getattr(self, name)) for name in BARRIER_FIELDS}

    def form_value(self, key: str) -> Optional[str]:
        """
        Look up a value by its inbound form key.

        Known form keys resolve to Submission attributes (through
        FORM_FIELD_ALIASES); anything else is read from routing_contacts.
        """
        attribute = FORM_FIELD_ALIASES.get(key, key)
        if attribute in RECORD_FIELDS:
            return getattr(self, attribute)
        return self.routing_contacts.get(key)

    def with_id(self, submission_id: str) -> 'Submission':
        return replace(self, submission_id=submission_id)

    @classmethod
    def from_form(
        cls,
        params: Mapping[str, str],
        resume: Optional[ResumeAttachment] = None,
        routing_keys: Tuple[str, ...] = ()
    ) -> 'Submission':
        """
        Build a Submission from inbound form parameters.

        Args:
            params: Form key -> value (first value per key)
            resume: Uploaded resume, if any
            routing_keys: Extra form keys to keep for recipient routing

        Returns:
            Submission: Unsaved submission (submission_id is None)
        """
        values = {}
        for key, value in params.items():
            attribute = FORM_FIELD_ALIASES.get(key, key)
            if attribute in RECORD_FIELDS:
                values[attribute] = value

        routing_contacts = {
            key: params[key]
            for key in routing_keys
            if FORM_FIELD_ALIASES.get(key, key) not in RECORD_FIELDS and params.get(key)
        }

        return cls(resume=resume, routing_contacts=routing_contacts, **values)


# Persisted string columns, in form order
RECORD_FIELDS: Tuple[str, ...] = tuple(
    f.name for f in fields(Submission)
    if f.name not in ('resume', 'routing_contacts', 'submission_id')
)


@dataclass(frozen=True)
class RoutingRule:
    """
    One entry of the recipient routing table.

    Attributes:
        field: Inbound form key whose value is a recipient address
        role: Label used in logs (e.g. "submitter", "goodwill")
    """
    field: str
    role: str


@dataclass(frozen=True)
class RecipientSet:
    """Deduplicated, order-preserving list of notification addresses."""
    addresses: Tuple[str, ...]

    @classmethod
    def build(cls, owner: str, candidates: List[str]) -> 'RecipientSet':
        seen = set()
        ordered = []
        for address in [owner] + candidates:
            if address in seen:
                continue
            seen.add(address)
            ordered.append(address)
        return cls(addresses=tuple(ordered))

    def __iter__(self):
        return iter(self.addresses)

    def __len__(self) -> int:
        return len(self.addresses)

    def as_list(self) -> List[str]:
        return list(self.addresses)


@dataclass(frozen=True)
class MessageAttachment:
    """Attachment carried by a NotificationMessage."""
    filename: str
    content: bytes = field(repr=False)
    content_type: str = 'application/octet-stream'


@dataclass(frozen=True)
class NotificationMessage:
    """
    Email built once per Submission and sent at most once.

    Attributes:
        subject: Subject line
        html_body: HTML body (all user values escaped)
        text_body: Plain text body for non-HTML clients
        recipients: Destination addresses
        sender: From address
        attachment: Resume attachment, if any
    """
    subject: str
    html_body: str
    text_body: str
    recipients: Tuple[str, ...]
    sender: str
    attachment: Optional[MessageAttachment] = None

    @property
    def has_attachment(self) -> bool:
        return self.attachment is not None


@dataclass
class SubmissionResult:
    """
    Result of processing one submission.

    Best-effort branch failures are collected in errors rather than raised.

    Attributes:
        submission_id: Id assigned by the record store (None if not persisted)
        persisted: Whether the record store accepted the submission
        recipients: Addresses the notification was sent to
        resume_key: Object key of the uploaded resume (None if skipped/failed)
        sheet_appended: Whether the ledger mirror row was written
        errors: Messages from best-effort branches that failed
    """
    submission_id: Optional[str]
    persisted: bool
    recipients: List[str] = field(default_factory=list)
    resume_key: Optional[str] = None
    sheet_appended: bool = False
    errors: List[str] = field(default_factory=list)

    @property
    def fully_succeeded(self) -> bool:
        return self.persisted and not self.errors

    def __repr__(self) -> str:
        """Human-readable representation for logging."""
        return (
            f"SubmissionResult(submission_id={self.submission_id}, persisted={self.persisted}, "
            f"resume_key={self.resume_key}, sheet_appended={self.sheet_appended}, "
            f"recipients={len(self.recipients)}, errors={len(self.errors)})"
        )
