"""
Builds the normalized OutputRecord for a scanned repository.
"""

from typing import Optional

from models import CommitInfo, OutputRecord, RepoKeywordMap, RepositoryRef, ScanResult


def count_keyword_matches(keyword_counts: RepoKeywordMap) -> int:
    """Number of distinct keywords with at least one occurrence."""
    return sum(1 for result in keyword_counts.values() if result.count > 0)


def snapshot_url(ref: RepositoryRef, commit_sha: str) -> str:
    return f"https://github.com/{ref.owner}/{ref.name}/tree/{commit_sha}"


def build_record(
    ref: RepositoryRef,
    commit: CommitInfo,
    scan: ScanResult,
    origin: Optional[str] = None,
) -> OutputRecord:
    """
    Merge scan results and provenance into one OutputRecord.

    keyword_matches counts distinct matching keywords, not occurrences;
    downstream filtering relies on that.

    Args:
        ref: Repository that was scanned
        commit: Latest commit, or CommitInfo.fallback()
        scan: Result of RepositoryInspector.scan_repository
        origin: Sheet or source that produced this repository
    """
    return OutputRecord(
        commit_sha=commit.sha,
        email=commit.email,
        keyword_counts=dict(scan.keyword_counts),
        keyword_matches=str(count_keyword_matches(scan.keyword_counts)),
        commit_date=commit.date,
        name=commit.name,
        owner=ref.owner,
        repo_name=ref.name,
        snapshot_url=snapshot_url(ref, commit.sha),
        origin=origin or "unknown",
        file_types=scan.file_types,
        files_processed=str(scan.files_processed),
    )
