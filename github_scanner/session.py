"""
HTTP session setup and JSON fetching for the GitHub REST API.
"""

from typing import TYPE_CHECKING, Any, Dict, Optional

import requests

from github_scanner.errors import DecodeError, TransportError

if TYPE_CHECKING:
    from github_scanner.rate_limiter import RateLimiter

DEFAULT_USER_AGENT = "github-keyword-scanner"


def create_github_session(
    token: Optional[str] = None,
    user_agent: str = DEFAULT_USER_AGENT,
) -> requests.Session:
    """
    Build a requests.Session carrying GitHub auth and identification headers.

    Args:
        token: GitHub personal access token (optional, increases rate limit)
        user_agent: User-Agent header, required by the GitHub API

    Returns:
        Configured requests.Session
    """
    session = requests.Session()
    session.headers.update({
        "Accept": "application/vnd.github.v3+json",
        "User-Agent": user_agent,
    })

    if token:
        session.headers["Authorization"] = f"token {token}"

    return session


def get_json(
    session: requests.Session,
    rate_limiter: "RateLimiter",
    url: str,
    target: str,
    params: Optional[Dict[str, Any]] = None,
    timeout: int = 30,
) -> Any:
    """
    GET a GitHub endpoint, throttle on its quota headers, and decode the body.

    The rate limiter runs as soon as headers are available, before the body
    is parsed and before any further request can be issued.

    Raises:
        TransportError: network failure or HTTP status >= 400
        DecodeError: body is not valid JSON
    """
    try:
        response = session.get(url, params=params, timeout=timeout)
    except requests.RequestException as e:
        raise TransportError(f"Request to {url} failed: {e}", target)

    rate_limiter.throttle(response)

    if response.status_code >= 400:
        raise TransportError(f"GET {url} returned HTTP {response.status_code}", target)

    try:
        return response.json()
    except ValueError as e:
        raise DecodeError(f"Malformed JSON from {url}: {e}", target)
