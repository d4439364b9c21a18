"""
Google Sheets client.

Reads the input columns and writes result rows through the Sheets v4 REST
API, authenticated with a service account.
"""

from typing import Dict, List, Optional, Sequence, Tuple
from urllib.parse import quote

import requests
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

from github_scanner.errors import ConfigError, SinkError

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

ColumnRules = Sequence[Tuple[Sequence[str], str]]


def column_letter_to_number(letter: str) -> int:
    """A -> 1, Z -> 26, AA -> 27."""
    number = 0
    for char in letter.upper():
        number = number * 26 + (ord(char) - ord("A") + 1)
    return number


def column_number_to_letter(number: int) -> str:
    """1 -> A, 26 -> Z, 27 -> AA."""
    letters = ""
    while number > 0:
        number, remainder = divmod(number - 1, 26)
        letters = chr(ord("A") + remainder) + letters
    return letters


def rename_column(column_name: str, rules: ColumnRules) -> str:
    """
    Canonical name for a spreadsheet header.

    The first rule with a keyword contained in the header (case-insensitive)
    wins; unmatched headers keep their name.
    """
    lower = column_name.lower()
    for keywords, new_name in rules:
        if any(keyword.lower() in lower for keyword in keywords):
            return new_name
    return column_name


def clean_column_names(
    columns: Dict[str, List[str]],
    rules: ColumnRules,
) -> Dict[str, List[str]]:
    """Rename headers by rules; columns mapping to the same name are concatenated."""
    cleaned: Dict[str, List[str]] = {}
    for original_name, values in columns.items():
        cleaned.setdefault(rename_column(original_name, rules), []).extend(values)
    return cleaned


class SheetsClient:
    """Minimal Sheets v4 values API wrapper bound to one spreadsheet."""

    BASE_URL = "https://sheets.googleapis.com/v4/spreadsheets"

    def __init__(self, spreadsheet_id: str, session: requests.Session, timeout: int = 30):
        self.spreadsheet_id = spreadsheet_id
        self.session = session
        self.timeout = timeout

    @classmethod
    def from_service_account_file(
        cls,
        path: str,
        spreadsheet_id: str,
        timeout: int = 30,
    ) -> "SheetsClient":
        """
        Authenticate with a service-account key file.

        Raises:
            ConfigError: the key file is missing or invalid
        """
        try:
            credentials = service_account.Credentials.from_service_account_file(path, scopes=SCOPES)
        except (OSError, ValueError) as e:
            raise ConfigError(f"Cannot load service account key {path}: {e}")
        return cls(spreadsheet_id, AuthorizedSession(credentials), timeout=timeout)

    def _values_url(self, a1_range: str) -> str:
        return f"{self.BASE_URL}/{self.spreadsheet_id}/values/{quote(a1_range, safe='')}"

    def _get_values(self, a1_range: str) -> List[List[str]]:
        try:
            response = self.session.get(self._values_url(a1_range), timeout=self.timeout)
        except requests.RequestException as e:
            raise SinkError(f"Reading {a1_range} failed: {e}", a1_range)

        if response.status_code >= 400:
            raise SinkError(f"Reading {a1_range} returned HTTP {response.status_code}: {response.text}", a1_range)

        try:
            data = response.json()
        except ValueError as e:
            raise SinkError(f"Malformed response for {a1_range}: {e}", a1_range)

        if not isinstance(data, dict):
            raise SinkError(f"Malformed response for {a1_range}: expected an object", a1_range)
        return data.get("values", [])

    def _update_values(self, a1_range: str, values: List[List[str]]) -> None:
        body = {
            "range": a1_range,
            "majorDimension": "ROWS",
            "values": values,
        }
        try:
            response = self.session.put(
                self._values_url(a1_range),
                params={"valueInputOption": "RAW"},
                json=body,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise SinkError(f"Writing {a1_range} failed: {e}", a1_range)

        if response.status_code >= 400:
            raise SinkError(f"Writing {a1_range} returned HTTP {response.status_code}: {response.text}", a1_range)

    def read_column(self, sheet_name: str, a1_range: str) -> List[str]:
        """First cell of every row in the range."""
        rows = self._get_values(f"'{sheet_name}'!{a1_range}")
        return [row[0] if row else "" for row in rows]

    def read_columns(self, sheet_name: str, a1_range: str) -> Dict[str, List[str]]:
        """
        Read a range as header -> values.

        The first row holds headers; short rows are padded with "".
        """
        rows = self._get_values(f"'{sheet_name}'!{a1_range}")
        if not rows:
            return {}

        headers = rows[0]
        columns: Dict[str, List[str]] = {header: [] for header in headers}
        for row in rows[1:]:
            for i, header in enumerate(headers):
                columns[header].append(row[i] if i < len(row) else "")
        return columns

    def write_cell(self, sheet_name: str, column: str, row: int, value: str) -> None:
        self._update_values(f"'{sheet_name}'!{column}{row}", [[value]])

    def write_row(
        self,
        sheet_name: str,
        start_column: str,
        row: int,
        values: Sequence[str],
        end_column: Optional[str] = None,
    ) -> None:
        """Write values left to right starting at start_column on one row."""
        if not values:
            return
        if end_column is None:
            end_column = column_number_to_letter(column_letter_to_number(start_column) + len(values) - 1)
        a1_range = f"'{sheet_name}'!{start_column}{row}:{end_column}{row}"
        self._update_values(a1_range, [list(values)])
