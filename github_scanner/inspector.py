"""
Repository inspector module.

Scans a repository's file tree for keywords and resolves its latest commit,
without cloning.
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence
from urllib.parse import quote

import requests

from models import CommitInfo, KeywordResult, RepoKeywordMap, ScanResult
from github_scanner.errors import DecodeError, ScannerError
from github_scanner.rate_limiter import RateLimiter
from github_scanner.session import DEFAULT_USER_AGENT, create_github_session, get_json

logger = logging.getLogger(__name__)


@dataclass
class FileNode:
    """A blob entry of a repository tree listing."""
    path: str


def count_keywords(text: str, keywords: Sequence[str]) -> Dict[str, int]:
    """
    Count non-overlapping, case-insensitive occurrences of each keyword.

    Only keywords that occur at least once are returned.
    """
    lowered = text.lower()
    counts = {}
    for keyword in keywords:
        if not keyword:
            continue
        count = lowered.count(keyword.lower())
        if count > 0:
            counts[keyword] = count
    return counts


def decode_content(encoded: str, target: Optional[str] = None) -> str:
    """Decode a base64 contents-API payload, which GitHub wraps with newlines."""
    try:
        raw = base64.b64decode(encoded.replace("\n", ""), validate=True)
    except (binascii.Error, ValueError, AttributeError) as e:
        raise DecodeError(f"Invalid base64 content: {e}", target)
    return raw.decode("utf-8", errors="replace")


class RepositoryInspector:
    """
    Inspect GitHub repositories via REST API.

    Fetches:
    - Recursive tree listing at HEAD
    - Contents of allow-listed files (base64)
    - Repository metadata and latest commit on the default branch
    """

    BASE_URL = "https://api.github.com"

    def __init__(
        self,
        token: Optional[str] = None,
        rate_limiter: Optional[RateLimiter] = None,
        session: Optional[requests.Session] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: int = 30,
        strict_file_errors: bool = False,
    ):
        """
        Initialize repository inspector.

        Args:
            token: GitHub personal access token
            rate_limiter: RateLimiter shared with every other GitHub client
            session: Pre-configured session (built from token if None)
            user_agent: User-Agent header for a session built here
            timeout: Per-request timeout in seconds
            strict_file_errors: Abort the whole scan when a single file fails
        """
        self.rate_limiter = rate_limiter or RateLimiter()
        self.session = session or create_github_session(token, user_agent)
        self.timeout = timeout
        self.strict_file_errors = strict_file_errors

    def scan_repository(
        self,
        owner: str,
        repo: str,
        keywords: Sequence[str],
        allowed_extensions: Sequence[str],
        file_limit: int,
    ) -> ScanResult:
        """
        Count keyword occurrences across a repository's allow-listed files.

        Args:
            owner: Repository owner
            repo: Repository name
            keywords: Keyword vocabulary (matched case-insensitively)
            allowed_extensions: Path suffixes to scan, e.g. ".rs"
            file_limit: Maximum number of files to fetch

        Returns:
            ScanResult with the keyword map, extension label and files processed

        Raises:
            TransportError/DecodeError: tree listing failed, or a file failed
                while strict_file_errors is set
        """
        full_name = f"{owner}/{repo}"
        files = self.list_matching_files(owner, repo, allowed_extensions, file_limit)
        logger.info("Number of matching files: %d for %s", len(files), full_name)

        results: RepoKeywordMap = {}
        files_processed = 0

        for node in files:
            try:
                text = self.fetch_file_content(owner, repo, node.path)
            except ScannerError as e:
                if self.strict_file_errors:
                    raise
                logger.warning("Skipping %s in %s: %s", node.path, full_name, e)
                continue

            files_processed += 1
            permalink = f"https://github.com/{owner}/{repo}/blob/HEAD/{node.path}"

            for keyword, count in count_keywords(text, keywords).items():
                entry = results.setdefault(keyword, KeywordResult())
                entry.count += count
                entry.files.append(permalink)

        return ScanResult(
            keyword_counts=results,
            file_types=", ".join(allowed_extensions),
            files_processed=files_processed,
        )

    def list_matching_files(
        self,
        owner: str,
        repo: str,
        allowed_extensions: Sequence[str],
        file_limit: int,
    ) -> List[FileNode]:
        """
        Blobs from the recursive HEAD tree whose path ends with an allowed
        extension, truncated to file_limit in listing order.
        """
        full_name = f"{owner}/{repo}"
        url = f"{self.BASE_URL}/repos/{owner}/{repo}/git/trees/HEAD"
        data = get_json(
            self.session, self.rate_limiter, url, full_name,
            params={"recursive": 1}, timeout=self.timeout,
        )

        if not isinstance(data, dict) or not isinstance(data.get("tree"), list):
            raise DecodeError("Tree listing has no 'tree' array", full_name)

        suffixes = tuple(allowed_extensions)
        files = []
        for item in data["tree"]:
            if len(files) >= file_limit:
                break
            try:
                path = item["path"]
                item_type = item["type"]
            except (KeyError, TypeError):
                raise DecodeError("Tree entry without path/type", full_name)

            if item_type == "blob" and path.endswith(suffixes):
                files.append(FileNode(path=path))

        return files

    def fetch_file_content(self, owner: str, repo: str, file_path: str) -> str:
        """
        Fetch and decode the content of a single file.

        Returns:
            File content as text (invalid UTF-8 replaced)
        """
        target = f"{owner}/{repo}/{file_path}"
        url = f"{self.BASE_URL}/repos/{owner}/{repo}/contents/{quote(file_path)}"
        file_data = get_json(self.session, self.rate_limiter, url, target, timeout=self.timeout)

        if not isinstance(file_data, dict) or "content" not in file_data:
            raise DecodeError("Contents response has no 'content'", target)

        return decode_content(file_data["content"], target)

    def get_default_branch(self, owner: str, repo: str) -> str:
        full_name = f"{owner}/{repo}"
        url = f"{self.BASE_URL}/repos/{owner}/{repo}"
        repo_json = get_json(self.session, self.rate_limiter, url, full_name, timeout=self.timeout)
        branch = repo_json.get("default_branch") if isinstance(repo_json, dict) else None
        if not isinstance(branch, str) or not branch:
            raise DecodeError("Repository metadata has no default_branch", full_name)
        return branch

    def get_last_commit_info(self, owner: str, repo: str) -> CommitInfo:
        """
        Resolve the latest commit on the default branch.

        Author email and name default to "unknown" when GitHub omits them.

        Raises:
            TransportError/DecodeError: either lookup failed
        """
        full_name = f"{owner}/{repo}"
        branch = self.get_default_branch(owner, repo)

        url = f"{self.BASE_URL}/repos/{owner}/{repo}/commits/{quote(branch)}"
        commit_json = get_json(self.session, self.rate_limiter, url, full_name, timeout=self.timeout)

        try:
            sha = commit_json["sha"]
            author = commit_json["commit"]["author"] or {}
            date = author["date"]
        except (KeyError, TypeError):
            raise DecodeError(f"Commit {branch} is missing sha or author date", full_name)

        if not isinstance(sha, str) or not isinstance(date, str):
            raise DecodeError(f"Commit {branch} has malformed sha or date", full_name)

        return CommitInfo(
            sha=sha,
            date=date,
            email=author.get("email") or "unknown",
            name=author.get("name") or "unknown",
        )
