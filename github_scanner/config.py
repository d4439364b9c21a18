"""
Runtime configuration.

All settings live on one immutable ScannerConfig that is passed explicitly to
every component; nothing reads the environment after load_config().
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv

from github_scanner.errors import ConfigError
from github_scanner.session import DEFAULT_USER_AGENT

KEYWORDS: Tuple[str, ...] = (
    "ephemeral-rollups-sdk",
    "#[ephemeral]",
    "#[commit]",
    "#[delegate]",
    "delegate_account",
    "undelegate_account",
    "commit_accounts",
    "commit_and_undelegate_accounts",
)

ALLOWED_EXTENSIONS: Tuple[str, ...] = (".toml", ".json", ".rs", ".ts")

SEARCH_QUERIES: Tuple[str, ...] = (
    "ephemeral-rollups-sdk filename:Cargo.toml",
    "ephemeral-rollups-sdk filename:package.json",
)

EXCLUDED_OWNERS: Tuple[str, ...] = ("magicblock-labs",)

ENRICH_FIELDS: Tuple[str, ...] = (
    "snapshot_url",
    "presentation_link",
    "technical_link",
    "files_processed",
    "location",
    "tracks",
    "contact",
)

# (header substrings, canonical name); first matching rule wins
COLUMN_RULES: Tuple[Tuple[Tuple[str, ...], str], ...] = (
    (("gh", "github", "repo"), "snapshot_url"),
    (("presentation",), "presentation_link"),
    (("website",), "website_link"),
    (("technical", "demo"), "technical_link"),
    (("files_processed",), "files_processed"),
    (("location", "country"), "location"),
    (("track",), "tracks"),
    (("contact", "team", "twitter"), "contact"),
    (("wallet", "solana"), "wallet"),
    (("twitter", "social link"), "social_link"),
)

_TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ScannerConfig:
    """Configuration for a scan-and-sync run."""
    github_token: str
    user_agent: str = DEFAULT_USER_AGENT
    keywords: Tuple[str, ...] = KEYWORDS
    allowed_extensions: Tuple[str, ...] = ALLOWED_EXTENSIONS
    file_limit: int = 100
    strict_file_errors: bool = False
    skip_unmatched: bool = False
    request_timeout: int = 30

    # Spreadsheet
    spreadsheet_id: str = ""
    read_sheet_name: str = ""
    write_sheet_name: str = ""
    read_range: str = ""
    update_data_column: str = ""
    user_column: str = ""
    service_account_file: str = "./service-account.json"
    start_row: int = 2
    enrich_fields: Tuple[str, ...] = ENRICH_FIELDS
    column_rules: Tuple[Tuple[Tuple[str, ...], str], ...] = COLUMN_RULES

    # Search index
    ingest_endpoint: str = ""
    ingest_api_key: str = ""
    elasticsearch_url: str = ""
    elasticsearch_username: str = ""
    elasticsearch_password: str = ""
    index_name: str = "github-repos"

    # Code search
    search_queries: Tuple[str, ...] = SEARCH_QUERIES
    excluded_owners: Tuple[str, ...] = EXCLUDED_OWNERS

    output_path: str = "results.json"

    def require(self, *names: str) -> None:
        """Raise ConfigError if any of the named settings is empty."""
        missing = [name for name in names if not getattr(self, name)]
        if missing:
            raise ConfigError(f"Missing required settings: {', '.join(missing)}")


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    value = env.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {value!r}")


def load_config(
    env_file: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> ScannerConfig:
    """
    Build ScannerConfig from a .env file and the process environment.

    Args:
        env_file: Path to a .env file (python-dotenv searches upwards if None)
        environ: Mapping to read instead of os.environ (the .env file is not loaded then)

    Raises:
        ConfigError: PRIVATE_GITHUB_TOKEN is missing or a number is malformed
    """
    if environ is None:
        load_dotenv(env_file)
        environ = os.environ

    token = environ.get("PRIVATE_GITHUB_TOKEN", "")
    if not token:
        raise ConfigError("PRIVATE_GITHUB_TOKEN is not set")

    defaults = ScannerConfig(github_token=token)
    return ScannerConfig(
        github_token=token,
        user_agent=environ.get("GITHUB_USER_AGENT") or defaults.user_agent,
        file_limit=_get_int(environ, "FILE_LIMIT", defaults.file_limit),
        strict_file_errors=_get_bool(environ, "STRICT_FILE_ERRORS", defaults.strict_file_errors),
        skip_unmatched=_get_bool(environ, "SKIP_UNMATCHED", defaults.skip_unmatched),
        spreadsheet_id=environ.get("SPREADSHEET_ID", ""),
        read_sheet_name=environ.get("READ_SHEET_NAME", ""),
        write_sheet_name=environ.get("WRITE_SHEET_NAME", ""),
        read_range=environ.get("READ_RANGE", ""),
        update_data_column=environ.get("UPDATE_DATA_COLUMN", ""),
        user_column=environ.get("USER_COLUMN", ""),
        service_account_file=environ.get("SERVICE_ACCOUNT_FILE") or defaults.service_account_file,
        start_row=_get_int(environ, "START_ROW", defaults.start_row),
        ingest_endpoint=environ.get("INGEST_ENDPOINT", ""),
        ingest_api_key=environ.get("INGEST_API_KEY", ""),
        elasticsearch_url=environ.get("ELASTICSEARCH_URL", ""),
        elasticsearch_username=environ.get("ELASTICSEARCH_USERNAME", ""),
        elasticsearch_password=environ.get("ELASTICSEARCH_PASSWORD", ""),
        index_name=environ.get("INDEX_NAME") or defaults.index_name,
        output_path=environ.get("OUTPUT_PATH") or defaults.output_path,
    )
