"""
Output storage for scan results.

All records of a run are saved once, at the end, as a pretty-printed JSON array.
"""

import json
import logging
from pathlib import Path
from typing import Iterable, List

from models import OutputRecord

logger = logging.getLogger(__name__)


class OutputStorage:
    """Stores the records of a run in a single JSON file."""

    def __init__(self, output_path: str = "results.json"):
        """
        Initialize output storage.

        Args:
            output_path: File receiving the JSON array
        """
        self.output_path = Path(output_path)

    def save_results(self, records: Iterable[OutputRecord]) -> int:
        """
        Write every non-empty record, replacing any previous file.

        Returns:
            Number of records written
        """
        data = [record.to_dict() for record in records if not record.is_empty()]

        if self.output_path.parent != Path("."):
            self.output_path.parent.mkdir(parents=True, exist_ok=True)

        with open(self.output_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.write("\n")

        logger.info("Saved %d results to %s", len(data), self.output_path)
        return len(data)

    def load_results(self) -> List[OutputRecord]:
        """Records from a previous run, or [] if there is no file yet."""
        if not self.output_path.exists():
            return []
        with open(self.output_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return [OutputRecord.from_dict(item) for item in data]
