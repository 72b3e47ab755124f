"""
MealTracker Backend - Persistence Strategies
=============================================

What:  Where the database image comes from at startup and where it goes after
       every mutation.
How:   One strategy object, picked once by build_strategy() from the resolved
       PERSISTENCE_MODE. DurableStore only talks to the strategy, so nothing
       outside this module branches on the runtime environment.

Strategies:
    LocalFileStrategy    ./database.db is the durable copy. A mutation is DURABLE
                         as soon as the file write succeeded.
    RemoteSyncStrategy   <tempdir>/database.db is a scratch cache; the durable copy
                         is a file in a GitHub repository. A mutation is DURABLE
                         only once the upload landed.

Concurrent writers (remote sync):
    Every upload carries the sha last seen by this process. When GitHub rejects
    it (409 stale sha, 422 sha missing for an existing file) the remote copy is
    left untouched and the report is flagged as a conflict. DurableStore then
    reloads the remote image, replays the statement on it and uploads again
    (compare-and-swap, bounded by CAS_MAX_ATTEMPTS). The strategy itself never
    overwrites a copy it has not seen.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

import aiofiles
import httpx

from mealtracker.config import Settings
from mealtracker.exceptions import PersistenceIOError
from mealtracker.storage.github_store import GitHubBlobStore, RemoteBlob
from mealtracker.storage.local_cache import LocalImageCache

logger = logging.getLogger(__name__)


class PersistOutcome(str, Enum):
    """How far a mutation got after the in-memory statement succeeded."""

    DURABLE = "durable"
    LOCAL_ONLY = "local_only"
    FAILED = "failed"


@dataclass(frozen=True)
class PersistReport:
    """
    outcome:   how far the image got
    token:     sha to use for the next upload
    conflict:  the remote moved on and rejected the upload; it was not overwritten
    """

    outcome: PersistOutcome
    token: Optional[str]
    conflict: bool = False


class PersistenceStrategy(ABC):
    """
    Base class for the two persistence modes.

    Args:
        cache:      file holding the local copy of the image
        seed_path:  optional read-only image used when nothing else has one
    """

    mode: str = ""
    # Uploads per mutation, conflicts included; only remote strategies conflict
    cas_max_attempts: int = 1
    cas_min_wait: float = 0.0
    cas_max_wait: float = 0.0

    def __init__(self, cache: LocalImageCache, seed_path: Optional[str] = None):
        self.cache = cache
        self.seed_path = Path(seed_path) if seed_path else None

    @property
    def has_remote(self) -> bool:
        return False

    async def load_cached(self) -> Optional[bytes]:
        """Cached image, or None when it is missing or unreadable."""
        try:
            return await self.cache.read()
        except PersistenceIOError as e:
            logger.warning("Ignoring unreadable database cache: %s", e.message)
            return None

    async def load_seed(self) -> Optional[bytes]:
        if self.seed_path is None or not self.seed_path.is_file():
            return None
        try:
            async with aiofiles.open(self.seed_path, "rb") as f:
                return await f.read()
        except OSError as e:
            logger.warning("Ignoring unreadable seed image %s: %s", self.seed_path, str(e))
            return None

    async def fetch_remote(self) -> Optional[RemoteBlob]:
        """
        Read the remote copy. Strategies without a remote have nothing to fetch.

        Raises:
            RemoteError: The remote store failed (remote strategies only).
        """
        return None

    async def write_cache(self, image: bytes) -> bool:
        """Write the local copy; report success instead of raising."""
        try:
            await self.cache.write(image)
        except PersistenceIOError as e:
            logger.error(
                "Database image not written to %s: %s", self.cache.path, e.context.get("os_error")
            )
            return False
        return True

    @abstractmethod
    async def persist(self, image: bytes, token: Optional[str]) -> PersistReport:
        """
        Push a freshly exported image to durable storage.

        Never raises. The returned token replaces the store's token.
        """

    async def aclose(self) -> None:
        pass


class LocalFileStrategy(PersistenceStrategy):
    """Persistent local file, no remote sync."""

    mode = "local"

    async def persist(self, image: bytes, token: Optional[str]) -> PersistReport:
        if await self.write_cache(image):
            return PersistReport(PersistOutcome.DURABLE, token)
        return PersistReport(PersistOutcome.FAILED, token)


class RemoteSyncStrategy(PersistenceStrategy):
    """Scratch-space cache plus a GitHub-hosted durable copy."""

    mode = "remote"

    def __init__(
        self,
        cache: LocalImageCache,
        remote: GitHubBlobStore,
        seed_path: Optional[str] = None,
        cas_max_attempts: int = 3,
        cas_min_wait: float = 0.5,
        cas_max_wait: float = 4.0,
    ):
        super().__init__(cache, seed_path=seed_path)
        self.remote = remote
        self.cas_max_attempts = cas_max_attempts
        self.cas_min_wait = cas_min_wait
        self.cas_max_wait = cas_max_wait

    @property
    def has_remote(self) -> bool:
        return True

    async def fetch_remote(self) -> Optional[RemoteBlob]:
        return await self.remote.fetch()

    async def persist(self, image: bytes, token: Optional[str]) -> PersistReport:
        """
        Write the cache, then upload once with `token`.

        A rejected sha is reported as a conflict, never retried here: the
        image was built on a copy the remote has moved past.
        """
        cached = await self.write_cache(image)
        result = await self.remote.upload(image, token)
        if result.ok:
            return PersistReport(PersistOutcome.DURABLE, result.token)

        outcome = PersistOutcome.LOCAL_ONLY if cached else PersistOutcome.FAILED
        if result.conflict:
            logger.warning(
                "Upload to %s rejected (status=%s, sha=%s is not current); remote copy kept",
                self.remote.location,
                result.status_code,
                (token or "none")[:7],
            )
        else:
            logger.warning(
                "Mutation not synced to %s (status=%s); persistence=%s, token kept",
                self.remote.location,
                result.status_code,
                outcome.value,
            )
        return PersistReport(outcome, token, conflict=result.conflict)

    async def aclose(self) -> None:
        await self.remote.aclose()


def build_strategy(
    settings: Settings, client: Optional[httpx.AsyncClient] = None
) -> PersistenceStrategy:
    """
    Pick the persistence strategy for this process.

    Args:
        settings:  application settings (PERSISTENCE_MODE is resolved here, once)
        client:    optional httpx client for the remote store (tests)
    """
    mode = settings.resolved_mode()
    if mode == "remote":
        cache = LocalImageCache(Path(settings.cache_dir) / settings.db_filename)
        strategy: PersistenceStrategy = RemoteSyncStrategy(
            cache,
            GitHubBlobStore.from_settings(settings, client=client),
            seed_path=settings.seed_image_path,
            cas_max_attempts=settings.cas_max_attempts,
            cas_min_wait=settings.retry_min_wait,
            cas_max_wait=settings.retry_max_wait,
        )
    else:
        strategy = LocalFileStrategy(
            LocalImageCache(settings.local_db_path),
            seed_path=settings.seed_image_path,
        )

    logger.info("Persistence mode: %s (cache at %s)", strategy.mode, strategy.cache.path)
    return strategy
