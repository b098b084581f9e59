"""Per-user local session cache stored as a JSON document on disk."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

KEY_PREFIX = "pomodoro_sessions_"


class LocalSessionCache:
    """Key/value cache of serialized session lists, one entry per user.

    The whole document is rewritten on each save; writes go through a
    temporary file so a crash never leaves half a document behind.
    """

    def __init__(self, path: Path):
        self.path = path

    @staticmethod
    def key_for(user_id: str | int) -> str:
        return f"{KEY_PREFIX}{user_id}"

    def _read_document(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        with open(self.path, encoding="utf-8") as f:
            document = json.load(f)
        if not isinstance(document, dict):
            raise ValueError(f"Cache document is not an object: {self.path}")
        return document

    def load(self, user_id: str | int) -> list[dict[str, Any]]:
        """Return the raw cached session dicts for a user.

        Raises OSError or ValueError when the cache cannot be read.
        """
        entries = self._read_document().get(self.key_for(user_id), [])
        if not isinstance(entries, list):
            raise ValueError(f"Cache entry for user {user_id} is not a list")
        return entries

    def save(self, user_id: str | int, entries: list[dict[str, Any]]) -> None:
        """Replace a user's cached session list.

        Raises OSError or ValueError when the cache cannot be written.
        """
        try:
            document = self._read_document()
        except ValueError:
            logger.warning(f"Discarding unreadable cache document: {self.path}")
            document = {}

        document[self.key_for(user_id)] = entries

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(document, f, indent=2)
        os.replace(tmp_path, self.path)
