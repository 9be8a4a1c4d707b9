# server/services/score_store.py
"""Best-score persistence in a small JSON file."""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from models.entities import GameStats, HighScore
from config.settings import HIGH_SCORE_KEY, HIGH_SCORE_PATH

logger = logging.getLogger(__name__)


class HighScoreStore:
    """Reads and writes a single ``{wpm, accuracy}`` record under a fixed key."""

    def __init__(self, path: Union[str, Path] = HIGH_SCORE_PATH, key: str = HIGH_SCORE_KEY):
        self.path = Path(path)
        self.key = key

    def _read_document(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            document = json.loads(self.path.read_text())
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read high score file {self.path}: {e}")
            return {}
        return document if isinstance(document, dict) else {}

    def load(self) -> Optional[HighScore]:
        record = self._read_document().get(self.key)
        if not isinstance(record, dict):
            return None
        try:
            return HighScore(wpm=int(record["wpm"]), accuracy=int(record["accuracy"]))
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Ignoring malformed high score record: {record!r}")
            return None

    def save_if_better(self, stats: GameStats) -> Optional[HighScore]:
        """Persist the result when its wpm strictly beats the stored one.

        Returns the best score after the comparison.
        """
        current = self.load()
        if current is not None and stats.wpm <= current.wpm:
            return current
        if current is None and stats.wpm <= 0:
            return None

        best = HighScore(wpm=stats.wpm, accuracy=stats.accuracy)
        document = self._read_document()
        document[self.key] = {"wpm": best.wpm, "accuracy": best.accuracy}
        try:
            self.path.write_text(json.dumps(document))
        except OSError as e:
            logger.warning(f"Could not write high score file {self.path}: {e}")
        return best
