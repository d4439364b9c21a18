"""
GitHub repository discovery module.

Enumerates a user's or organization's repositories and finds candidate
repositories through code search, with pagination and rate limiting.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set

import requests

from github_scanner.errors import DecodeError, ScannerError
from github_scanner.rate_limiter import RateLimiter
from github_scanner.session import DEFAULT_USER_AGENT, create_github_session, get_json
from github_scanner.url_classifier import get_github_repo

logger = logging.getLogger(__name__)


@dataclass
class GitHubCodeItem:
    """A single code search hit."""
    html_url: str
    repository_full_name: str

    @property
    def repository_url(self) -> Optional[str]:
        """Repository of the hit; falls back to the full name if html_url does not parse."""
        repo_url = get_github_repo(self.html_url)
        full_name = self.repository_full_name
        if repo_url is None and isinstance(full_name, str) and full_name.count("/") == 1:
            repo_url = f"https://github.com/{full_name}"
        return repo_url


class GitHubSearch:
    """
    Discover repositories via REST API.

    Supports:
    - Paginated user/organization repository listing
    - Code search across several queries with deduplication
    - Exclusion of known non-candidate organizations
    """

    BASE_URL = "https://api.github.com"
    SEARCH_ENDPOINT = "/search/code"
    PER_PAGE = 100  # GitHub API max

    def __init__(
        self,
        token: Optional[str] = None,
        rate_limiter: Optional[RateLimiter] = None,
        session: Optional[requests.Session] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: int = 30,
    ):
        """
        Initialize GitHub search client.

        Args:
            token: GitHub personal access token (optional, increases rate limit)
            rate_limiter: RateLimiter instance (optional)
            session: Pre-configured session (built from token if None)
            user_agent: User-Agent header for a session built here
            timeout: Per-request timeout in seconds
        """
        self.rate_limiter = rate_limiter or RateLimiter()
        self.session = session or create_github_session(token, user_agent)
        self.timeout = timeout

    def fetch_user_repos(self, username: str) -> List[str]:
        """
        List every repository URL of a user or organization.

        Pages are requested in order from page 1 until an empty page. A
        transport or decode error ends the enumeration early; repositories
        collected so far are still returned.

        Args:
            username: GitHub user or organization login

        Returns:
            Repository html URLs in API listing order
        """
        repo_urls = []
        page = 1

        while True:
            url = f"{self.BASE_URL}/users/{username}/repos"
            params = {"per_page": self.PER_PAGE, "page": page}

            try:
                repos = get_json(
                    self.session, self.rate_limiter, url, username,
                    params=params, timeout=self.timeout,
                )
            except ScannerError as e:
                logger.warning("Stopped listing repositories of %s at page %d: %s", username, page, e)
                break

            if not isinstance(repos, list):
                logger.warning("Unexpected repository listing for %s at page %d", username, page)
                break

            if not repos:
                break  # No more results

            for repo in repos:
                if not isinstance(repo, dict):
                    continue
                name = repo.get("name")
                html_url = repo.get("html_url")
                if isinstance(name, str) and isinstance(html_url, str):
                    repo_urls.append(html_url)

            page += 1

        return repo_urls

    def search_code(self, query: str) -> List[GitHubCodeItem]:
        """
        Run one code search query, returning up to one maximum-size page.

        Raises:
            TransportError/DecodeError: the request failed or the body is malformed
        """
        url = f"{self.BASE_URL}{self.SEARCH_ENDPOINT}"
        params = {"q": query, "per_page": self.PER_PAGE}
        data = get_json(
            self.session, self.rate_limiter, url, query,
            params=params, timeout=self.timeout,
        )

        if not isinstance(data, dict) or not isinstance(data.get("items"), list):
            raise DecodeError("Code search response has no 'items' array", query)

        items = []
        for item in data["items"]:
            try:
                items.append(self._parse_code_item(item))
            except (KeyError, TypeError) as e:
                logger.debug("Skipping malformed code search hit for %r: %s", query, e)
        return items

    def _parse_code_item(self, item: Dict[str, Any]) -> GitHubCodeItem:
        return GitHubCodeItem(
            html_url=item.get("html_url") or "",
            repository_full_name=item["repository"]["full_name"],
        )

    def search_repositories(
        self,
        queries: Iterable[str],
        exclude_keywords: Iterable[str] = (),
    ) -> Set[str]:
        """
        Unique repository URLs reached by any of the queries.

        A repository found through several queries or files is kept once.
        URLs containing any exclude keyword (case-insensitive) are dropped
        after all queries have been merged.

        Args:
            queries: Code search query strings
            exclude_keywords: Substrings of repository URLs to drop

        Returns:
            Set of https://github.com/{owner}/{repo} URLs
        """
        seen_repos: Set[str] = set()

        for query in queries:
            try:
                items = self.search_code(query)
            except ScannerError as e:
                logger.error("Error fetching results for %r: %s", query, e)
                continue

            for item in items:
                repo_url = item.repository_url
                if repo_url:
                    seen_repos.add(repo_url)

        blocked = [keyword.lower() for keyword in exclude_keywords if keyword]
        filtered = {
            repo_url for repo_url in seen_repos
            if not any(keyword in repo_url.lower() for keyword in blocked)
        }

        logger.info("Found %d unique repos from queries", len(filtered))
        return filtered
