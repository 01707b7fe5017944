"""
Recipient routing for submission notifications.

The notification always goes to the configured owner, plus one address per
routing rule whose form field was filled in (the submitter's own email and
any partner inboxes picked on the form).
"""

import logging
from typing import Sequence

from .models import RecipientSet, RoutingRule, Submission

logger = logging.getLogger(__name__)


class RecipientResolver:
    """Evaluates the configured routing table against a Submission."""

    def __init__(self, owner: str, rules: Sequence[RoutingRule]):
        if not owner:
            raise ValueError("Owner address cannot be empty")
        self.owner = owner
        self.rules = tuple(rules)

    @classmethod
    def from_settings(cls, settings) -> 'RecipientResolver':
        return cls(owner=settings.owner_email, rules=settings.routing_rules)

    def resolve(self, submission: Submission) -> RecipientSet:
        """
        Compute the recipients for one submission.

        Args:
            submission: Submission to route

        Returns:
            RecipientSet: Owner first, then non-empty routed values in rule order
        """
        candidates = []
        for rule in self.rules:
            value = submission.form_value(rule.field)
            if value and value.strip():
                candidates.append(value.strip())
                logger.info(f"Routing to {rule.role} via '{rule.field}'")

        recipients = RecipientSet.build(self.owner, candidates)
        logger.info(f"Resolved {len(recipients)} recipient(s)")
        return recipients
