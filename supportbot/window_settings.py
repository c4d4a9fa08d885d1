"""Local settings store and saved window position.

Settings live in a single JSON object on disk. A missing or unreadable
file reads as empty; nothing here raises on bad stored data.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

WINDOW_POSITION_KEY = "WindowPosition"


class LocalSettings:
    """Key-value settings persisted as JSON."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read(self) -> Dict[str, Any]:
        try:
            if self.path.exists():
                data = json.loads(self.path.read_text())
                if isinstance(data, dict):
                    return data
                logger.warning(f"Settings file {self.path} is not an object; ignoring")
        except (OSError, ValueError):
            logger.warning(f"Failed to read settings from {self.path}; using defaults")
        return {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._read().get(key, default)

    def set(self, key: str, value: Any):
        data = self._read()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2))
        logger.debug(f"Saved setting {key} to {self.path}")


class WindowPositionStore:
    """Last window screen position, stored as "x,y"."""

    def __init__(self, settings: LocalSettings):
        self.settings = settings

    def save_position(self, x: float, y: float):
        self.settings.set(WINDOW_POSITION_KEY, f"{x},{y}")

    def get_position(self) -> Optional[Tuple[float, float]]:
        """Saved (x, y), or None when absent or malformed."""
        value = self.settings.get(WINDOW_POSITION_KEY)
        if value is None:
            return None

        parts = str(value).split(",")
        if len(parts) != 2:
            return None
        try:
            return float(parts[0]), float(parts[1])
        except ValueError:
            return None
