"""
JSON document helpers for the file-backed store.

The store keeps every key in one JSON object on disk. Writes replace the whole
document through a sibling temp file and ``os.replace``.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

logger = logging.getLogger(__name__)


class JSONRepository:
    """Reads and atomically rewrites a single JSON object document."""

    @staticmethod
    def load_json(path: Path) -> Dict[str, Any]:
        """Return the document at ``path``, or an empty dict if it is absent.

        Raises:
            json.JSONDecodeError: If the file holds malformed JSON.
            OSError: If the file exists but cannot be read.
        """
        if not path.exists():
            return {}

        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        if not isinstance(data, dict):
            logger.warning(f"Store document {path} is not an object, starting fresh")
            return {}
        return data

    @staticmethod
    def save_json(path: Path, data: Dict[str, Any]) -> None:
        """Replace the document at ``path`` with ``data``."""
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_file = path.with_suffix(path.suffix + ".tmp")
        with open(temp_file, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(temp_file, path)
        logger.debug(f"Wrote store document {path}")
