"""
Routing of spreadsheet cells to GitHub users or repositories.

Pure functions, no network access.
"""

from typing import List, Optional, Tuple
from urllib.parse import urlparse

from models import GitHubUrl


def _path_segments(url: str) -> Optional[List[str]]:
    """Non-empty path segments of an absolute URL, or None if it does not parse."""
    if not isinstance(url, str):
        return None
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return None
    if not parsed.scheme or not parsed.netloc:
        return None
    return [segment for segment in parsed.path.split("/") if segment]


def classify_github_url(url: str) -> GitHubUrl:
    """
    Classify a URL as a user/org, a repository, or invalid.

    One path segment names a user or organization, two name a repository.
    Anything else (including unparsable input) is invalid.
    """
    segments = _path_segments(url)
    if segments is None:
        return GitHubUrl.invalid()

    if len(segments) == 1:
        return GitHubUrl.single_user(segments[0])
    if len(segments) == 2:
        return GitHubUrl.single_repository(segments[0], segments[1])
    return GitHubUrl.invalid()


def parse_github_url(url: str) -> Optional[Tuple[str, str]]:
    """Owner and repository from the first two path segments of any GitHub URL."""
    segments = _path_segments(url)
    if not segments or len(segments) < 2:
        return None
    return segments[0], segments[1]


def get_github_repo(url: str) -> Optional[str]:
    """
    Canonical repository URL for a file or repository URL.

    e.g. https://github.com/acme/widgets/blob/main/Cargo.toml
         -> https://github.com/acme/widgets
    """
    parsed = parse_github_url(url)
    if parsed is None:
        return None
    owner, repo = parsed
    return f"https://github.com/{owner}/{repo}"
