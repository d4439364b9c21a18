"""
GitHub keyword scanner.

This package provides a crawler that:
- Routes spreadsheet URLs to users/organizations or repositories
- Enumerates user repositories and searches code across GitHub
- Counts keyword occurrences in each repository's file tree
- Synchronizes one record per repository to a spreadsheet and a search index
"""

from github_scanner.config import ScannerConfig, load_config
from github_scanner.inspector import RepositoryInspector
from github_scanner.pipeline import SyncPipeline
from github_scanner.rate_limiter import RateLimiter
from github_scanner.search import GitHubSearch
from github_scanner.synchronizer import SinkSynchronizer

__all__ = [
    "GitHubSearch",
    "RateLimiter",
    "RepositoryInspector",
    "ScannerConfig",
    "SinkSynchronizer",
    "SyncPipeline",
    "load_config",
]
