from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Protocol

from ..core.constants import DEFAULT_CACHE_NAMESPACE
from ..core.exceptions import CacheError

logger = logging.getLogger(__name__)


class CacheStore(Protocol):
    """Local cache holding one serialized snapshot blob."""

    def read(self) -> Optional[dict[str, Any]]:
        raise NotImplementedError

    def write(self, blob: dict[str, Any]) -> None:
        raise NotImplementedError


class JsonFileCache:
    """Cache blob stored as ``<directory>/<namespace>.json``.

    Note: writes go to a temp file first and are swapped in with ``os.replace``,
    so a crash mid-write never leaves a half-written blob behind.
    """

    def __init__(self, directory: str | Path, *, namespace: str = DEFAULT_CACHE_NAMESPACE):
        self._directory = Path(directory)
        self._namespace = namespace

    @property
    def path(self) -> Path:
        return self._directory / f"{self._namespace}.json"

    def read(self) -> Optional[dict[str, Any]]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError:
            logger.exception("Cannot read cache file %s", self.path)
            return None

        try:
            blob = json.loads(text)
        except json.JSONDecodeError:
            logger.error("Cache parsing error in %s, ignoring cached state", self.path)
            return None
        if not isinstance(blob, dict):
            logger.error("Cache blob in %s is not an object, ignoring cached state", self.path)
            return None
        return blob

    def write(self, blob: dict[str, Any]) -> None:
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=self._directory, prefix=f".{self._namespace}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(blob, fh, ensure_ascii=False)
                os.replace(tmp_path, self.path)
            except BaseException:
                Path(tmp_path).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise CacheError(f"Cannot write cache file {self.path}: {e}") from e
