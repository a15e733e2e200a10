"""Local JSON file key-value store (default persistence back end)."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)


class JsonFileStore:
    """Key-value store backed by a single JSON object on disk.

    Writes go to a temporary file that is then renamed over the target, so
    a crash mid-write never leaves a truncated state file behind.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()
        logger.debug(f"Initialized JsonFileStore at {self.path}")

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Could not read state file {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error(f"State file {self.path} does not hold a JSON object, ignoring it")
            return {}
        return data

    def get(self, key: str) -> Optional[Any]:
        return self._read_all().get(key)

    def set(self, key: str, value: Any) -> None:
        data = self._read_all()
        data[key] = value

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2, default=str), encoding="utf-8")
        os.replace(tmp_path, self.path)
        logger.debug(f"Saved '{key}' to {self.path}")
