"""
Data models for the GitHub keyword scanner.

Every repository that flows through the pipeline ends up as one OutputRecord,
which is the unit written to the spreadsheet and to the search index.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple


class UrlKind(str, Enum):
    """What a spreadsheet cell points at."""
    USER = "user"
    REPOSITORY = "repository"
    INVALID = "invalid"


@dataclass(frozen=True)
class RepositoryRef:
    """Immutable owner/name pair identifying a scan target."""
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def html_url(self) -> str:
        return f"https://github.com/{self.owner}/{self.name}"


@dataclass(frozen=True)
class GitHubUrl:
    """Result of classifying an arbitrary input string."""
    kind: UrlKind
    user: Optional[str] = None
    repository: Optional[RepositoryRef] = None

    @classmethod
    def single_user(cls, user: str) -> "GitHubUrl":
        return cls(kind=UrlKind.USER, user=user)

    @classmethod
    def single_repository(cls, owner: str, name: str) -> "GitHubUrl":
        return cls(kind=UrlKind.REPOSITORY, repository=RepositoryRef(owner, name))

    @classmethod
    def invalid(cls) -> "GitHubUrl":
        return cls(kind=UrlKind.INVALID)


@dataclass
class KeywordResult:
    """Occurrences of one keyword across a repository."""
    count: int = 0
    files: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"count": self.count, "files": list(self.files)}


# keyword -> KeywordResult, one map per repository scan
RepoKeywordMap = Dict[str, KeywordResult]


@dataclass(frozen=True)
class ScanResult:
    """Output of a tree scan."""
    keyword_counts: RepoKeywordMap
    file_types: str
    files_processed: int


@dataclass(frozen=True)
class CommitInfo:
    """Latest-commit provenance for a repository's default branch."""
    sha: str
    date: str
    email: str
    name: str

    @classmethod
    def fallback(cls, now: Optional[datetime] = None) -> "CommitInfo":
        """
        Placeholder used when provenance could not be resolved.

        The SHA stays empty so the record is never ingested into the index.
        """
        now = now or datetime.now(timezone.utc)
        return cls(sha="", date=now.isoformat(), email="", name="")


@dataclass
class OutputRecord:
    """
    One normalized record per repository.

    Built once by the record builder; afterwards only the enrichment
    backfill (add_fields_if_exist) may change it.
    """
    commit_sha: str = ""
    email: str = ""
    keyword_counts: RepoKeywordMap = field(default_factory=dict)
    keyword_matches: str = ""
    commit_date: str = ""
    name: str = ""
    owner: str = ""
    repo_name: str = ""
    snapshot_url: str = ""
    origin: str = ""
    file_types: str = ""
    files_processed: str = ""

    # Optional fields sourced from the spreadsheet
    location: Optional[str] = None
    presentation_link: Optional[str] = None
    technical_link: Optional[str] = None
    tracks: Optional[str] = None
    contact: Optional[str] = None
    website_link: Optional[str] = None
    social_link: Optional[str] = None
    wallet: Optional[str] = None

    def is_empty(self) -> bool:
        """True iff no field carries any data."""
        for record_field in fields(self):
            value = getattr(self, record_field.name)
            if value is None:
                continue
            if isinstance(value, (str, dict, list)) and len(value) == 0:
                continue
            return False
        return True

    def add_fields_if_exist(
        self,
        columns: Mapping[str, Sequence[str]],
        field_names: Sequence[str],
        row_index: int,
    ) -> List[str]:
        """
        Backfill empty fields from already-loaded spreadsheet columns.

        Args:
            columns: Column header -> ordered cell values
            field_names: Fields to consider; names outside ENRICHABLE_FIELDS are ignored
            row_index: Index into each column's values

        Returns:
            Names of the fields that were filled in
        """
        filled = []
        for field_name in field_names:
            accessor = ENRICHABLE_FIELDS.get(field_name)
            if accessor is None:
                continue
            getter, setter = accessor

            current = getter(self)
            if current:
                continue

            values = columns.get(field_name)
            if values is None or row_index < 0 or row_index >= len(values):
                continue

            setter(self, values[row_index])
            filled.append(field_name)
        return filled

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON document shape used by both sinks."""
        data = {}
        for record_field in fields(self):
            value = getattr(self, record_field.name)
            if record_field.name == "keyword_counts":
                value = {keyword: result.to_dict() for keyword, result in value.items()}
            data[record_field.name] = value
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "OutputRecord":
        known = {record_field.name for record_field in fields(cls)}
        kwargs = {key: value for key, value in data.items() if key in known}
        kwargs["keyword_counts"] = {
            keyword: KeywordResult(count=int(result.get("count", 0)), files=list(result.get("files", [])))
            for keyword, result in (data.get("keyword_counts") or {}).items()
        }
        return cls(**kwargs)


Accessor = Tuple[Callable[[OutputRecord], Optional[str]], Callable[[OutputRecord, str], None]]


def _attribute_accessor(name: str) -> Accessor:
    return (
        lambda record: getattr(record, name),
        lambda record, value: setattr(record, name, value),
    )


# Fields the spreadsheet may backfill: field name -> (getter, setter)
ENRICHABLE_FIELDS: Dict[str, Accessor] = {
    name: _attribute_accessor(name)
    for name in (
        "snapshot_url",
        "files_processed",
        "origin",
        "location",
        "presentation_link",
        "technical_link",
        "tracks",
        "contact",
        "website_link",
        "social_link",
        "wallet",
    )
}
