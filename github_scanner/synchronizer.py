"""
Writes OutputRecords to the search index and the spreadsheet.

Each call to sync() consumes exactly one spreadsheet row, in call order.
Failures are contained to the record being synchronized.
"""

import json
import logging
from dataclasses import dataclass
from typing import Optional, Sequence, Set

from models import OutputRecord
from github_scanner.errors import SinkError
from github_scanner.ingest import IngestClient
from github_scanner.sheets import SheetsClient

logger = logging.getLogger(__name__)


@dataclass
class SyncOutcome:
    """What happened to one record."""
    row: int
    ingested: bool = False
    skip_reason: Optional[str] = None
    ingest_error: Optional[str] = None
    sheet_error: Optional[str] = None
    error: Optional[str] = None  # upstream error written to the error cell

    @property
    def failed(self) -> bool:
        return bool(self.error or self.ingest_error or self.sheet_error)


class SinkSynchronizer:
    """
    Idempotent writer for both sinks.

    A commit SHA is ingested at most once: SHAs ingested during this run are
    remembered, and the index is asked before every new ingest. Records
    without a SHA are never ingested.
    """

    def __init__(
        self,
        sheets: Optional[SheetsClient],
        ingest: Optional[IngestClient],
        sheet_name: str,
        update_data_column: str,
        user_column: str = "",
        start_row: int = 2,
    ):
        """
        Args:
            sheets: Spreadsheet sink (rows are not written if None)
            ingest: Index sink (nothing is ingested if None)
            sheet_name: Sheet receiving result rows
            update_data_column: First column of the result row / error cell
            user_column: Column for the (owner, origin) pair of expanded users
            start_row: First row index to write
        """
        self.sheets = sheets
        self.ingest = ingest
        self.sheet_name = sheet_name
        self.update_data_column = update_data_column
        self.user_column = user_column
        self.next_row = start_row
        self._ingested_ids: Set[str] = set()

    def sync(
        self,
        record: Optional[OutputRecord],
        error: Optional[str] = None,
        user_cells: Optional[Sequence[str]] = None,
    ) -> SyncOutcome:
        """
        Synchronize one record, or an error marker, at the next row.

        Args:
            record: Built record (None when the input could not be processed)
            error: Human-readable reason the input failed upstream
            user_cells: Values written at user_column for user/org expansions

        Returns:
            SyncOutcome for this row
        """
        row = self.next_row
        self.next_row += 1

        if error is None and (record is None or record.is_empty()):
            error = "No repository data"

        outcome = SyncOutcome(row=row, error=error)

        if error is None:
            self._ingest_record(record, outcome)

        if user_cells and self.user_column:
            self._write(outcome, lambda: self.sheets.write_row(self.sheet_name, self.user_column, row, list(user_cells)))

        if error is not None:
            cell = f"Error: {error}"
            self._write(outcome, lambda: self.sheets.write_cell(self.sheet_name, self.update_data_column, row, cell))
        else:
            values = [
                json.dumps(record.to_dict(), ensure_ascii=False),
                record.keyword_matches,
                record.snapshot_url,
            ]
            self._write(outcome, lambda: self.sheets.write_row(self.sheet_name, self.update_data_column, row, values))
            if not outcome.sheet_error:
                logger.info("Row %d updated", row)

        return outcome

    def _ingest_record(self, record: OutputRecord, outcome: SyncOutcome) -> None:
        doc_id = record.commit_sha
        target = f"{record.owner}/{record.repo_name}"

        if self.ingest is None:
            outcome.skip_reason = "index sink disabled"
            return

        if not doc_id:
            outcome.skip_reason = "no commit sha"
            logger.info("Not ingesting %s: no commit SHA", target)
            return

        if doc_id in self._ingested_ids:
            outcome.skip_reason = "already ingested in this run"
            logger.info("Not ingesting %s: commit %s already ingested in this run", target, doc_id)
            return

        try:
            exists = self.ingest.document_exists(doc_id)
        except SinkError as e:
            outcome.skip_reason = "existence check failed"
            logger.error("Not ingesting %s: could not check index for %s: %s", target, doc_id, e)
            return

        if exists:
            self._ingested_ids.add(doc_id)
            outcome.skip_reason = "already indexed"
            logger.info("Not ingesting %s: commit %s already indexed", target, doc_id)
            return

        try:
            summary = self.ingest.ingest(record.to_dict())
        except SinkError as e:
            outcome.ingest_error = str(e)
            logger.error("Ingest of %s failed: %s", target, e)
            return

        self._ingested_ids.add(doc_id)
        outcome.ingested = True
        logger.info("Ingest response for %s: %s", target, summary)

    def _write(self, outcome: SyncOutcome, write) -> None:
        if self.sheets is None:
            return
        try:
            write()
        except SinkError as e:
            outcome.sheet_error = str(e)
            logger.error("Writing row %d failed: %s", outcome.row, e)
