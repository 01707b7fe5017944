"""
Tests for the Google Sheets ledger mirror.
"""

import pytest
from unittest.mock import MagicMock, patch
import requests
from gspread.exceptions import GSpreadException
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from domain.errors import SheetError
from domain.models import ResumeAttachment, Submission
from services.sheets import SHEET_COLUMNS, SheetAppender, row_for


class FakeWorksheet:
    """In-memory worksheet that stores appended rows."""

    def __init__(self):
        self.rows = []

    def row_values(self, index):
        return list(self.rows[index - 1]) if len(self.rows) >= index else []

    def append_row(self, values, value_input_option=None):
        self.rows.append(list(values))


@pytest.fixture
def mock_worksheet():
    worksheet = MagicMock()
    worksheet.row_values.return_value = list(SHEET_COLUMNS)
    return worksheet


@pytest.fixture
def appender(mock_worksheet):
    return SheetAppender(sheet_title='contact', worksheet=mock_worksheet)


class TestRowFor:
    """Test row layout."""

    def test_row_matches_column_contract(self):
        """Test values come out in SHEET_COLUMNS order, stringified."""
        submission = Submission(
            first_name='Jane',
            last_name='Doe',
            preferred_contact_method='Email',
            email='jane@x.com',
            phone='504-555-0100',
            text_number=None,
            referral_source='Friend',
            neighborhood='Treme',
            veteran='true',
            none_of_above='true',
            resume=ResumeAttachment(filename='resume.pdf', content=b'%PDF')
        )

        row = row_for(submission)

        assert len(row) == len(SHEET_COLUMNS)
        assert row[:8] == ['Jane', 'Doe', 'Email', 'jane@x.com', '504-555-0100', '', 'Friend', 'Treme']
        assert row[SHEET_COLUMNS.index('veteran')] == 'true'
        assert row[SHEET_COLUMNS.index('none')] == 'true'
        assert row[-1] == 'resume.pdf'

    def test_empty_submission_row(self):
        """Test missing values are written as empty strings."""
        assert row_for(Submission()) == [''] * len(SHEET_COLUMNS)


class TestAppendRow:
    """Test appending rows."""

    def test_append_submission(self, appender, mock_worksheet, jane_submission):
        """Test a submission is appended as one raw row."""
        appender.append_submission(jane_submission)

        mock_worksheet.append_row.assert_called_once_with(
            row_for(jane_submission),
            value_input_option='RAW'
        )

    def test_header_checked_once(self, appender, mock_worksheet, jane_submission):
        """Test the header row is read only on the first append."""
        appender.append_submission(jane_submission)
        appender.append_submission(jane_submission)

        mock_worksheet.row_values.assert_called_once_with(1)
        assert mock_worksheet.append_row.call_count == 2

    def test_blank_sheet_gets_header(self, jane_submission):
        """Test a blank sheet is seeded with the header and stays writable."""
        sheet = FakeWorksheet()

        SheetAppender(worksheet=sheet).append_submission(jane_submission)
        # A fresh container re-reads the header
        SheetAppender(worksheet=sheet).append_submission(Submission(first_name='Bob'))

        assert sheet.rows[0] == list(SHEET_COLUMNS)
        assert sheet.rows[1] == row_for(jane_submission)
        assert sheet.rows[2][0] == 'Bob'
        assert len(sheet.rows) == 3

    def test_column_drift_rejected(self, appender, mock_worksheet, jane_submission):
        """Test a mismatched header stops the write."""
        drifted = list(SHEET_COLUMNS)
        drifted.insert(3, 'middle_name')
        mock_worksheet.row_values.return_value = drifted

        with pytest.raises(SheetError, match="columns drifted"):
            appender.append_submission(jane_submission)

        mock_worksheet.append_row.assert_not_called()

    def test_wrong_row_length_rejected(self, appender, mock_worksheet):
        """Test rows that do not match the contract are refused."""
        with pytest.raises(SheetError, match="sheet expects"):
            appender.append_row(['Jane', 'Doe'])

        mock_worksheet.append_row.assert_not_called()

    def test_api_error_wrapped(self, appender, mock_worksheet, jane_submission):
        """Test gspread errors (quota, expired session) become SheetError."""
        mock_worksheet.append_row.side_effect = GSpreadException('RESOURCE_EXHAUSTED')

        with pytest.raises(SheetError, match="RESOURCE_EXHAUSTED") as exc_info:
            appender.append_submission(jane_submission)

        assert isinstance(exc_info.value.__cause__, GSpreadException)

    def test_timeout_wrapped(self, appender, mock_worksheet, jane_submission):
        """Test request timeouts become SheetError."""
        mock_worksheet.append_row.side_effect = requests.exceptions.ReadTimeout('timed out')

        with pytest.raises(SheetError, match="ReadTimeout"):
            appender.append_submission(jane_submission)

    def test_session_dropped_after_failure(self, appender, mock_worksheet, jane_submission):
        """Test a failed append forces a fresh session next time."""
        mock_worksheet.append_row.side_effect = GSpreadException('UNAUTHENTICATED')

        with pytest.raises(SheetError):
            appender.append_submission(jane_submission)

        assert appender._worksheet is None


class TestWorksheet:
    """Test lazy worksheet opening."""

    @patch('services.sheets.gspread.service_account')
    def test_opens_first_worksheet_with_timeout(self, mock_service_account, jane_submission):
        """Test the service account client is built once with a timeout."""
        mock_client = MagicMock()
        mock_service_account.return_value = mock_client
        worksheet = mock_client.open.return_value.sheet1
        worksheet.row_values.return_value = list(SHEET_COLUMNS)

        appender = SheetAppender(service_account_file='key.json', sheet_title='contact', timeout=12)
        appender.append_submission(jane_submission)
        appender.append_submission(jane_submission)

        mock_service_account.assert_called_once_with(filename='key.json')
        mock_client.set_timeout.assert_called_once_with(12)
        mock_client.open.assert_called_once_with('contact')
        assert worksheet.append_row.call_count == 2

    @patch('services.sheets.gspread.service_account')
    def test_missing_key_file(self, mock_service_account, jane_submission):
        """Test a missing service account file becomes SheetError."""
        mock_service_account.side_effect = FileNotFoundError('key.json')

        appender = SheetAppender(service_account_file='key.json')

        with pytest.raises(SheetError, match="FileNotFoundError"):
            appender.append_submission(jane_submission)

    def test_from_settings(self, test_settings):
        """Test file, title and timeout come from Settings."""
        appender = SheetAppender.from_settings(test_settings)

        assert appender.service_account_file == 'client_secret.json'
        assert appender.sheet_title == 'contact'
        assert appender.timeout == 30


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
