"""
Scan GitHub repositories for keywords and sync the results.

Usage:
    python sync_repositories.py          # repositories listed in the input sheet
    python sync_repositories.py search   # repositories found by code search

Settings are read from .env / the environment (see github_scanner.config).
"""

import logging
import sys

from github_scanner.config import load_config
from github_scanner.errors import ConfigError, SinkError
from github_scanner.pipeline import SyncPipeline
from github_scanner.storage import OutputStorage

logger = logging.getLogger("sync_repositories")

MODES = ("sheet", "search")


def main(argv=None) -> int:
    """Run one full pass and save results.json at the end."""
    argv = sys.argv[1:] if argv is None else argv
    mode = argv[0] if argv else "sheet"
    if mode not in MODES:
        print(f"Unknown mode {mode!r}; expected one of: {', '.join(MODES)}")
        return 2

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config()
        pipeline = SyncPipeline.from_config(config)
    except ConfigError as e:
        logger.error("Startup failed: %s", e)
        return 1

    storage = OutputStorage(config.output_path)

    try:
        if mode == "search":
            records = pipeline.run_search()
        else:
            records = pipeline.run_sheet()
    except (ConfigError, SinkError) as e:
        logger.error("Run aborted: %s", e)
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted; results of this run were not saved")
        return 130

    storage.save_results(records)
    pipeline.log_summary()
    logger.info("All results saved.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
