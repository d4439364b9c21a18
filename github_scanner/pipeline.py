"""
Scan-and-sync pipeline orchestrator.

Routes every input (spreadsheet cell or code search hit) to concrete
repositories, scans each one, and hands the resulting record to the sinks.
Repositories are processed strictly one at a time, in input order.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from models import CommitInfo, OutputRecord, RepositoryRef, UrlKind
from github_scanner.config import ScannerConfig
from github_scanner.errors import ConfigError, ScannerError
from github_scanner.ingest import IngestClient
from github_scanner.inspector import RepositoryInspector
from github_scanner.rate_limiter import RateLimiter
from github_scanner.record_builder import build_record
from github_scanner.search import GitHubSearch
from github_scanner.session import create_github_session
from github_scanner.sheets import SheetsClient, clean_column_names
from github_scanner.synchronizer import SinkSynchronizer, SyncOutcome
from github_scanner.url_classifier import classify_github_url, parse_github_url

logger = logging.getLogger(__name__)

CODE_SEARCH_ORIGIN = "code-search"


@dataclass
class RunSummary:
    """Counters for one run."""
    rows: int = 0
    processed: int = 0
    ingested: int = 0
    skipped: int = 0
    failed: int = 0

    def record(self, outcome: SyncOutcome) -> None:
        self.rows += 1
        if outcome.error is None:
            self.processed += 1
        if outcome.ingested:
            self.ingested += 1
        if outcome.failed or outcome.skip_reason == "existence check failed":
            self.failed += 1


class SyncPipeline:
    """
    Main pipeline orchestrator.

    input URL -> (user expansion) -> RepositoryRef -> scan + provenance ->
    OutputRecord -> enrichment -> SinkSynchronizer
    """

    def __init__(
        self,
        config: ScannerConfig,
        sheets: Optional[SheetsClient] = None,
        ingest: Optional[IngestClient] = None,
        inspector: Optional[RepositoryInspector] = None,
        search: Optional[GitHubSearch] = None,
        synchronizer: Optional[SinkSynchronizer] = None,
    ):
        """
        Initialize pipeline.

        Args:
            config: ScannerConfig with settings
            sheets: Spreadsheet sink and input source
            ingest: Index sink
            inspector: Repository scanner (built from config if None)
            search: Repository discovery client (built from config if None)
            synchronizer: Sink writer (built from config if None)
        """
        self.config = config
        self.sheets = sheets

        # GitHub clients share one session and one rate limiter
        if inspector is None or search is None:
            shared_rate_limiter = RateLimiter()
            session = create_github_session(config.github_token, config.user_agent)
        if inspector is None:
            inspector = RepositoryInspector(
                rate_limiter=shared_rate_limiter,
                session=session,
                timeout=config.request_timeout,
                strict_file_errors=config.strict_file_errors,
            )
        if search is None:
            search = GitHubSearch(
                rate_limiter=shared_rate_limiter,
                session=session,
                timeout=config.request_timeout,
            )
        self.inspector = inspector
        self.search = search

        self.synchronizer = synchronizer or SinkSynchronizer(
            sheets=sheets,
            ingest=ingest,
            sheet_name=config.write_sheet_name,
            update_data_column=config.update_data_column,
            user_column=config.user_column,
            start_row=config.start_row,
        )

        self.records: List[OutputRecord] = []
        self.summary = RunSummary()

    @classmethod
    def from_config(cls, config: ScannerConfig) -> "SyncPipeline":
        """
        Build the pipeline with real sink clients.

        Raises:
            ConfigError: credentials for a configured sink cannot be loaded, or
                INGEST_ENDPOINT is set without ELASTICSEARCH_URL
        """
        sheets = None
        if config.spreadsheet_id:
            sheets = SheetsClient.from_service_account_file(
                config.service_account_file,
                config.spreadsheet_id,
                timeout=config.request_timeout,
            )

        ingest = None
        if config.ingest_endpoint:
            # existence checks go to the index
            config.require("elasticsearch_url", "index_name")
            ingest = IngestClient(
                endpoint=config.ingest_endpoint,
                api_key=config.ingest_api_key,
                elasticsearch_url=config.elasticsearch_url,
                index_name=config.index_name,
                username=config.elasticsearch_username,
                password=config.elasticsearch_password,
            )
        else:
            logger.warning("INGEST_ENDPOINT not set; records will not be ingested")

        return cls(config, sheets=sheets, ingest=ingest)

    def resolve_provenance(self, ref: RepositoryRef) -> CommitInfo:
        """Latest commit of the repository, or the empty-SHA fallback."""
        try:
            return self.inspector.get_last_commit_info(ref.owner, ref.name)
        except ScannerError as e:
            logger.warning("No commit info for %s, using fallback (%s error): %s", ref.full_name, e.kind.value, e)
            return CommitInfo.fallback()

    def process_repository(
        self, ref: RepositoryRef, origin: str
    ) -> Tuple[Optional[OutputRecord], Optional[str]]:
        """
        Scan one repository and build its record.

        Returns:
            (record, None) on success, (None, error message) if the scan failed
        """
        logger.info("Processing repository %s", ref.full_name)
        commit = self.resolve_provenance(ref)

        try:
            scan = self.inspector.scan_repository(
                ref.owner,
                ref.name,
                self.config.keywords,
                self.config.allowed_extensions,
                self.config.file_limit,
            )
        except ScannerError as e:
            logger.error("Error processing %s (%s error): %s", ref.full_name, e.kind.value, e)
            return None, "Failed to process repo data"

        return build_record(ref, commit, scan, origin), None

    def _sync(
        self,
        record: Optional[OutputRecord],
        error: Optional[str],
        user_cells: Optional[Sequence[str]] = None,
    ) -> SyncOutcome:
        outcome = self.synchronizer.sync(record, error, user_cells)
        self.summary.record(outcome)
        if record is not None:
            self.records.append(record)
        return outcome

    def _scan_and_sync(
        self,
        ref: RepositoryRef,
        origin: str,
        columns: Optional[Dict[str, List[str]]] = None,
        data_index: int = -1,
        user_cells: Optional[Sequence[str]] = None,
        filter_unmatched: bool = False,
    ) -> Optional[SyncOutcome]:
        record, error = self.process_repository(ref, origin)

        if record is not None and filter_unmatched and self.config.skip_unmatched:
            if record.keyword_matches == "0":
                logger.info("Skipping %s: no keyword matches", ref.full_name)
                self.summary.skipped += 1
                return None

        if record is not None and columns:
            record.add_fields_if_exist(columns, self.config.enrich_fields, data_index)

        return self._sync(record, error, user_cells)

    def process_input(
        self,
        url: str,
        origin: str,
        columns: Optional[Dict[str, List[str]]] = None,
        data_index: int = -1,
    ) -> List[SyncOutcome]:
        """
        Route one input URL and synchronize every repository it names.

        A user/org URL expands to all of its repositories, one row each. An
        invalid URL, or a user without repositories, still consumes one row
        holding an error marker.
        """
        target = classify_github_url(url)
        outcomes = []

        if target.kind == UrlKind.USER:
            logger.info("Detected GitHub user/org: %s", target.user)
            repo_urls = self.search.fetch_user_repos(target.user)
            logger.info("Found %d repos for %s", len(repo_urls), target.user)

            if not repo_urls:
                outcomes.append(self._sync(None, f"No repositories found for {target.user}"))

            for repo_url in repo_urls:
                parsed = parse_github_url(repo_url)
                if parsed is None:
                    outcomes.append(self._sync(None, f"Invalid GitHub URL {repo_url}"))
                    continue
                outcome = self._scan_and_sync(
                    RepositoryRef(*parsed),
                    origin,
                    columns,
                    data_index,
                    user_cells=[target.user, origin],
                    filter_unmatched=True,
                )
                if outcome is not None:
                    outcomes.append(outcome)

        elif target.kind == UrlKind.REPOSITORY:
            logger.info("Detected GitHub repo: %s", target.repository.full_name)
            outcomes.append(self._scan_and_sync(target.repository, origin, columns, data_index))

        else:
            logger.warning("Invalid GitHub URL: %r", url)
            outcomes.append(self._sync(None, "Invalid GitHub URL"))

        return outcomes

    def run_sheet(self) -> List[OutputRecord]:
        """
        Process every repository listed in the input sheet.

        Raises:
            ConfigError: spreadsheet settings are missing
            SinkError: the input range cannot be read
        """
        self.config.require(
            "spreadsheet_id", "read_sheet_name", "write_sheet_name", "read_range", "update_data_column"
        )
        if self.sheets is None:
            raise ConfigError("Spreadsheet client is not configured")

        columns = self.sheets.read_columns(self.config.read_sheet_name, self.config.read_range)
        columns = clean_column_names(columns, self.config.column_rules)
        repo_urls = columns.get("snapshot_url", [])
        logger.info("Read %d inputs from %s", len(repo_urls), self.config.read_sheet_name)

        for data_index, url in enumerate(repo_urls):
            logger.info("Reading input %d in %s: %s", data_index + 1, self.config.read_sheet_name, url)
            self.process_input(url, self.config.read_sheet_name, columns, data_index)

        return self.records

    def run_search(
        self,
        queries: Optional[Iterable[str]] = None,
        exclude_keywords: Optional[Iterable[str]] = None,
    ) -> List[OutputRecord]:
        """Process every repository found by code search, in URL order."""
        repo_urls = self.search.search_repositories(
            queries if queries is not None else self.config.search_queries,
            exclude_keywords if exclude_keywords is not None else self.config.excluded_owners,
        )

        for repo_url in sorted(repo_urls):
            parsed = parse_github_url(repo_url)
            if parsed is None:
                continue
            self._scan_and_sync(RepositoryRef(*parsed), CODE_SEARCH_ORIGIN, filter_unmatched=True)

        return self.records

    def log_summary(self) -> None:
        s = self.summary
        logger.info(
            "Run finished: %d rows, %d processed, %d ingested, %d skipped, %d failed",
            s.rows, s.processed, s.ingested, s.skipped, s.failed,
        )
