"""
MealTracker Backend - Local Image Cache Tests
==============================================

What we test:
    ✅ Missing file reads as None
    ✅ Write then read returns the same bytes, parent directories are created
    ✅ No temp files are left behind, on success or on failure
    ✅ OS errors surface as PersistenceIOError
"""

from unittest.mock import patch

import pytest

from mealtracker.exceptions import PersistenceIOError
from mealtracker.storage.local_cache import LocalImageCache


class TestLocalImageCache:

    @pytest.mark.asyncio
    async def test_missing_file_reads_none(self, tmp_path):
        cache = LocalImageCache(tmp_path / "database.db")
        assert not cache.exists()
        assert await cache.read() is None

    @pytest.mark.asyncio
    async def test_write_then_read(self, tmp_path):
        cache = LocalImageCache(tmp_path / "nested" / "dir" / "database.db")
        await cache.write(b"image-v1")
        await cache.write(b"image-v2")

        assert cache.exists()
        assert await cache.read() == b"image-v2"
        assert [p.name for p in cache.path.parent.iterdir()] == ["database.db"]

    @pytest.mark.asyncio
    async def test_write_failure_raises_and_cleans_up(self, tmp_path):
        target = tmp_path / "database.db"
        target.mkdir()  # a directory cannot be replaced by a file
        cache = LocalImageCache(target)

        with pytest.raises(PersistenceIOError) as exc_info:
            await cache.write(b"image")

        assert exc_info.value.path == str(target)
        assert [p.name for p in tmp_path.iterdir()] == ["database.db"]

    @pytest.mark.asyncio
    async def test_read_failure_raises(self, tmp_path):
        cache = LocalImageCache(tmp_path / "database.db")
        cache.path.write_bytes(b"image")

        with patch(
            "mealtracker.storage.local_cache.aiofiles.open",
            side_effect=PermissionError("denied"),
        ):
            with pytest.raises(PersistenceIOError):
                await cache.read()
