"""
Service adapters for the intake pipeline.

This package contains the boundary clients used by the submission pipeline:
relational persistence, S3 resume upload, the Google Sheets ledger mirror,
SMTP delivery, template loading and inbound form parsing.
"""

__all__ = ['form', 'mailer', 'object_store', 'record_store', 'sheets', 'templates']
