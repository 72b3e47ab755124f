"""
MealTracker Backend - Local Image Cache
========================================

What:  Reads and writes the database image file on local storage.
How:   Async file I/O via aiofiles. Writes go to a sibling temp file that is
       then renamed over the target, so a crash mid-write never leaves a
       truncated image behind.
Who:   Used by DurableStore through its persistence strategy.

Two roles, depending on the strategy:
    LocalFileStrategy:   ./database.db is THE durable copy.
    RemoteSyncStrategy:  <tempdir>/database.db is a best-effort copy that only
                         lives as long as the execution environment does.
"""

import logging
import os
import uuid
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from mealtracker.exceptions import PersistenceIOError

logger = logging.getLogger(__name__)


class LocalImageCache:
    """Single-file store for the serialized database image."""

    def __init__(self, path: os.PathLike | str):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    async def read(self) -> Optional[bytes]:
        """
        Return the cached image, or None when no cache file exists.

        Raises:
            PersistenceIOError: The file exists but could not be read.
        """
        if not self.exists():
            return None
        try:
            async with aiofiles.open(self.path, "rb") as f:
                data = await f.read()
        except OSError as e:
            logger.error("Failed to read database cache %s: %s", self.path, str(e))
            raise PersistenceIOError(
                path=str(self.path),
                message="Failed to read the local database cache",
                context={"os_error": str(e)},
            ) from e

        logger.debug("Read database cache %s (%d bytes)", self.path, len(data))
        return data

    async def write(self, image: bytes) -> None:
        """
        Replace the cache file with `image`.

        Raises:
            PersistenceIOError: Directory creation, write or rename failed.
        """
        tmp_path = self.path.with_name(f".{self.path.name}.{uuid.uuid4().hex[:8]}.tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(image)
            await aiofiles.os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error("Failed to write database cache %s: %s", self.path, str(e))
            await self._discard(tmp_path)
            raise PersistenceIOError(
                path=str(self.path),
                message="Failed to write the local database cache",
                context={"os_error": str(e), "size": len(image)},
            ) from e

        logger.debug("Wrote database cache %s (%d bytes)", self.path, len(image))

    async def _discard(self, tmp_path: Path) -> None:
        try:
            if tmp_path.exists():
                await aiofiles.os.remove(tmp_path)
        except OSError as e:
            logger.warning("Failed to remove partial cache file %s: %s", tmp_path, str(e))
