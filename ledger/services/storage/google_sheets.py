"""
Google Sheets Key-Value Backend

DESIGN DECISION: A worksheet with two columns (key, value) is enough to
satisfy the KeyValueBackend contract:
1. Non-technical users can inspect their data directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Every get is a column search; fine for personal ledgers, not for
  heavy traffic
- A cell holds at most 50,000 characters, which bounds shard size.
  Day-and-bucket shards stay far below that
- No transactions; the record store never relies on them

gspread is synchronous, so calls run in worker threads. This lets
fan-out reads proceed concurrently.
"""

import asyncio
from typing import Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from ledger.config import GoogleSheetsSettings, get_settings
from ledger.services.storage.interface import (
    BackendUnavailableError,
    KeyValueBackend,
)


KV_COLUMNS = ["key", "value"]


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for the connection
    handshake. Reads and writes are not retried here.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheet: Optional[gspread.Worksheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise BackendUnavailableError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise BackendUnavailableError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise BackendUnavailableError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_kv_sheet(self) -> gspread.Worksheet:
        """Get or create the key/value worksheet."""
        if self._worksheet is None:
            spreadsheet = self.get_spreadsheet()
            try:
                sheet = spreadsheet.worksheet(self._settings.worksheet_name)
            except gspread.WorksheetNotFound:
                # Create the sheet with headers
                sheet = spreadsheet.add_worksheet(
                    title=self._settings.worksheet_name,
                    rows=1000,
                    cols=len(KV_COLUMNS),
                )
                sheet.append_row(KV_COLUMNS)
            self._worksheet = sheet
        return self._worksheet


class GoogleSheetsKeyValueBackend(KeyValueBackend):
    """
    Google Sheets implementation of the raw key-value backend.

    Row 1 is the header; every other row is one (key, value) pair.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _find_row(self, sheet: gspread.Worksheet, key: str) -> Optional[int]:
        """Row number holding the key, skipping the header."""
        for cell in sheet.findall(key, in_column=1):
            if cell.row > 1:
                return cell.row
        return None

    def _get_sync(self, key: str) -> Optional[str]:
        sheet = self._client.get_kv_sheet()
        row = self._find_row(sheet, key)
        if row is None:
            return None
        return sheet.cell(row, 2).value or ""

    def _put_sync(self, key: str, value: str) -> None:
        sheet = self._client.get_kv_sheet()
        row = self._find_row(sheet, key)
        if row is None:
            sheet.append_row([key, value], value_input_option="RAW")
        else:
            sheet.update(
                values=[[value]],
                range_name=f"B{row}",
                value_input_option="RAW",
            )

    async def get(self, key: str) -> Optional[str]:
        """Read a value from the worksheet."""
        try:
            return await asyncio.to_thread(self._get_sync, key)
        except BackendUnavailableError:
            raise
        except Exception as e:
            raise BackendUnavailableError(f"Failed to read {key}: {e}") from e

    async def put(self, key: str, value: str) -> None:
        """Insert or overwrite a value in the worksheet."""
        try:
            await asyncio.to_thread(self._put_sync, key, value)
        except BackendUnavailableError:
            raise
        except Exception as e:
            raise BackendUnavailableError(f"Failed to write {key}: {e}") from e
