"""
Ledger mirror: appends each submission as a row of a Google Sheet.

The column order below is a hand-maintained contract with the spreadsheet.
Changing the Submission fields means changing SHEET_COLUMNS and the sheet's
header row together; the appender refuses to write when they disagree.
"""

import logging
import threading
from typing import List, Sequence

import gspread
import requests
from google.auth.exceptions import GoogleAuthError
from gspread.exceptions import GSpreadException

from domain.errors import SheetError
from domain.models import Submission

logger = logging.getLogger(__name__)

# Header row of the sheet, using the inbound form keys
SHEET_COLUMNS = (
    'first_name', 'last_name', 'best_way', 'email_submission', 'phone_submission',
    'text_submission', 'referral', 'neighborhood', 'young_adult', 'veteran',
    'no_transportation', 'homeless', 'no_drivers_license', 'no_state_id',
    'disabled', 'childcare', 'criminal', 'previously_incarcerated', 'using_drugs',
    'none', 'resume',
)

_SHEET_ERRORS = (GSpreadException, GoogleAuthError, requests.exceptions.RequestException, OSError)


def row_for(submission: Submission) -> List[str]:
    """Stringified values of a submission in SHEET_COLUMNS order."""
    row = []
    for column in SHEET_COLUMNS:
        if column == 'resume':
            value = submission.resume_filename
        else:
            value = submission.form_value(column)
        row.append('' if value is None else str(value))
    return row


class SheetAppender:
    """
    Appends rows to the first worksheet of a spreadsheet.

    Appends go through the Sheets values.append API, so the row position is
    chosen server-side. A lock serializes appends within this process.

    Args:
        service_account_file: Path to the Google service account key
        sheet_title: Spreadsheet title
        timeout: Seconds allowed per Sheets API request
        worksheet: Pre-opened gspread Worksheet (mainly for tests)
    """

    _lock = threading.Lock()

    def __init__(self, service_account_file: str = 'client_secret.json', sheet_title: str = 'contact',
                 timeout: int = 30, worksheet=None):
        self.service_account_file = service_account_file
        self.sheet_title = sheet_title
        self.timeout = timeout
        self._worksheet = worksheet
        self._header_checked = False

    @classmethod
    def from_settings(cls, settings) -> 'SheetAppender':
        return cls(
            service_account_file=settings.google_service_account_file,
            sheet_title=settings.sheet_title,
            timeout=settings.sheet_timeout
        )

    @property
    def worksheet(self):
        """Open the worksheet on first use (session reused afterwards)."""
        if self._worksheet is None:
            logger.info(f"Opening spreadsheet '{self.sheet_title}' with {self.service_account_file}")
            client = gspread.service_account(filename=self.service_account_file)
            client.set_timeout(self.timeout)
            self._worksheet = client.open(self.sheet_title).sheet1
        return self._worksheet

    def append_submission(self, submission: Submission) -> None:
        """
        Mirror one submission into the sheet.

        Raises:
            SheetError: On auth/session expiry, quota, timeout or column drift
        """
        self.append_row(row_for(submission))

    def append_row(self, values: Sequence[str]) -> None:
        """
        Append a row of already-ordered values.

        Raises:
            SheetError: On any Sheets API failure or column drift
        """
        if len(values) != len(SHEET_COLUMNS):
            raise SheetError(
                f"Row has {len(values)} values, sheet expects {len(SHEET_COLUMNS)}"
            )

        with self._lock:
            try:
                worksheet = self.worksheet
                self._check_header(worksheet)
                worksheet.append_row(list(values), value_input_option='RAW')
            except SheetError:
                raise
            except _SHEET_ERRORS as e:
                logger.error(f"Failed to append row to sheet '{self.sheet_title}': {e}")
                # Drop the session so the next request re-authenticates
                self._worksheet = None
                self._header_checked = False
                raise SheetError(f"Sheet append failed: {e.__class__.__name__}: {e}") from e

        logger.info(f"Appended row to sheet '{self.sheet_title}'")

    def _check_header(self, worksheet) -> None:
        if self._header_checked:
            return

        header = [cell.strip() for cell in worksheet.row_values(1)]
        if not header:
            logger.info(f"Sheet '{self.sheet_title}' is blank, writing header row")
            worksheet.append_row(list(SHEET_COLUMNS), value_input_option='RAW')
        elif header != list(SHEET_COLUMNS):
            raise SheetError(
                f"Sheet '{self.sheet_title}' columns drifted: expected {list(SHEET_COLUMNS)}, "
                f"found {header}"
            )
        self._header_checked = True

