"""
MealTracker Backend - Durable Store Manager
============================================

What:  The single owner of the in-memory database image and of its durability.
How:   Lazily materializes the image on first use, runs statements through
       EmbeddedDatabase, and after every mutation exports the image and hands
       it to the persistence strategy before returning.
Who:   Built once in main.py's lifespan, stored on app.state, injected into the
       routes with Depends(get_store).
When:  First query/execute of the process triggers acquisition.

State Machine:
    UNINITIALIZED ──first call──> (cache | remote | seed) ──> READY
                                   └─ nothing found ──> BOOTSTRAPPING ──> READY
    READY ──execute──> statement + persist ──> READY
    any   ──close()──> CLOSED

Image sources, in order:
    1. Local cache file (a corrupt or unreadable one counts as absent)
    2. Remote store, remote sync only (a RemoteError counts as absent, logged)
    3. Seed image from SEED_IMAGE_PATH, if configured
    4. Bootstrap: fresh empty image with the schema applied

    Step 2 degrading on RemoteError means a cold start during a remote outage
    begins from an empty image with no sha. Its first upload is rejected by
    the remote, which triggers the rebase below instead of an overwrite.

Rejected uploads (compare-and-swap):
    When the remote refuses our sha, the in-memory image is replaced by the
    current remote copy, the statement is run again on it and the result is
    uploaded with the fresh sha. Up to CAS_MAX_ATTEMPTS uploads per mutation,
    exponential backoff between rounds. Mutations that only ever reached the
    local cache (LOCAL_ONLY) are dropped by a rebase; the remote copy wins.

Concurrency:
    One asyncio.Lock serializes every entry point, so statements and the
    persistence that follows them never interleave within a process.
"""

import asyncio
import logging
import sqlite3
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
from fastapi import Request
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from mealtracker.config import Settings
from mealtracker.database import EmbeddedDatabase, StatementResult
from mealtracker.exceptions import CorruptImageError, MealTrackerError, RemoteError
from mealtracker.schema import apply_schema
from mealtracker.storage.strategy import (
    PersistenceStrategy,
    PersistOutcome,
    PersistReport,
    build_strategy,
)

logger = logging.getLogger(__name__)


class StoreState(str, Enum):
    UNINITIALIZED = "uninitialized"
    BOOTSTRAPPING = "bootstrapping"
    READY = "ready"
    CLOSED = "closed"


@dataclass(frozen=True)
class ExecuteResult:
    """
    Result of a mutating statement.

    inserted_row_id:  SELECT last_insert_rowid() right after the statement
    rows_affected:    rows changed by the statement
    persistence:      how far the new image got (see PersistOutcome)
    """

    inserted_row_id: int
    rows_affected: int
    persistence: PersistOutcome


class DurableStore:
    """
    Query/execute facade over the persisted database image.

    Usage:
        store = DurableStore.from_settings(settings)
        rows = await store.query("SELECT * FROM restaurants")
        result = await store.execute("INSERT INTO restaurants (name) VALUES (?)", ["Cafe X"])
        await store.close()
    """

    def __init__(self, strategy: PersistenceStrategy, echo: bool = False):
        self.strategy = strategy
        self.echo = echo
        self._lock = asyncio.Lock()
        self._database: Optional[EmbeddedDatabase] = None
        self._state = StoreState.UNINITIALIZED
        self._token: Optional[str] = None
        self._image_source: Optional[str] = None
        self._last_persistence: Optional[PersistOutcome] = None

    @classmethod
    def from_settings(
        cls, settings: Settings, client: Optional[httpx.AsyncClient] = None
    ) -> "DurableStore":
        return cls(build_strategy(settings, client=client))

    # ── Introspection ─────────────────────────────────────────────────────

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def mode(self) -> str:
        return self.strategy.mode

    @property
    def token(self) -> Optional[str]:
        """sha of the last remote copy this process read or wrote."""
        return self._token

    @property
    def image_source(self) -> Optional[str]:
        """Where the image came from: cache, remote, seed or bootstrap."""
        return self._image_source

    @property
    def last_persistence(self) -> Optional[PersistOutcome]:
        return self._last_persistence

    # ── Public API ────────────────────────────────────────────────────────

    async def materialize(self) -> None:
        """Acquire the image now instead of on the first statement."""
        async with self._lock:
            await self._ensure_ready()

    async def query(
        self, statement: str, parameters: Sequence[Any] = ()
    ) -> List[Dict[str, Any]]:
        """
        Run a read statement and return all rows as dicts.

        Raises:
            QueryError: The statement could not run.
        """
        async with self._lock:
            database = await self._ensure_ready()
            return list(database.query(statement, parameters))

    async def get(
        self, statement: str, parameters: Sequence[Any] = ()
    ) -> Optional[Dict[str, Any]]:
        """First row of a read statement, or None."""
        async with self._lock:
            database = await self._ensure_ready()
            rows = list(database.query(statement, parameters))
            return rows[0] if rows else None

    async def execute(self, statement: str, parameters: Sequence[Any] = ()) -> ExecuteResult:
        """
        Run a mutating statement, then persist the resulting image.

        The statement's effect is visible to every later call in this process
        whether or not persistence succeeded; result.persistence says which.
        If the remote copy moved on, the statement is replayed on it and the
        returned ids and counts are those of the replay.

        Raises:
            QueryError: The statement could not run (nothing is persisted),
                        either locally or when replayed on the newer remote copy.
        """
        async with self._lock:
            database = await self._ensure_ready()
            result = database.execute(statement, parameters)
            report = await self._persist(database)
            if report.conflict:
                result, report = await self._replay_on_remote(statement, parameters, result, report)
            return ExecuteResult(
                inserted_row_id=result.inserted_row_id,
                rows_affected=result.rows_affected,
                persistence=report.outcome,
            )

    async def close(self) -> None:
        async with self._lock:
            if self._state is StoreState.CLOSED:
                return
            if self._database is not None:
                self._database.close()
                self._database = None
            await self.strategy.aclose()
            self._state = StoreState.CLOSED
            logger.info("Database store closed")

    # ── Acquisition ───────────────────────────────────────────────────────

    async def _ensure_ready(self) -> EmbeddedDatabase:
        if self._state is StoreState.CLOSED:
            raise MealTrackerError(message="Database store is closed")
        if self._database is None:
            try:
                self._database = await self._acquire()
            except Exception:
                self._state = StoreState.UNINITIALIZED
                raise
            self._state = StoreState.READY
            logger.info(
                "Database ready (mode=%s, source=%s, token=%s)",
                self.mode,
                self._image_source,
                (self._token or "none")[:7],
            )
        return self._database

    async def _acquire(self) -> EmbeddedDatabase:
        database = self._load("cache", await self.strategy.load_cached())

        if database is None and self.strategy.has_remote:
            database = await self._load_remote()

        if database is None:
            database = self._load("seed", await self.strategy.load_seed())
            if database is not None:
                apply_schema(database)

        if database is None:
            self._state = StoreState.BOOTSTRAPPING
            logger.info("No existing database image found, bootstrapping a new one")
            database = EmbeddedDatabase(echo=self.echo)
            apply_schema(database)
            self._image_source = "bootstrap"

        # Per-connection flag, so it is asserted again for whichever image won
        database.enable_foreign_keys()
        return database

    async def _load_remote(self) -> Optional[EmbeddedDatabase]:
        try:
            blob = await self.strategy.fetch_remote()
        except RemoteError as e:
            logger.error(
                "Remote fetch failed (status=%s): %s; continuing without the remote copy",
                e.status_code,
                e.message,
            )
            return None
        if blob is None:
            return None

        # Kept even if the blob turns out unusable, so the first upload replaces it
        self._token = blob.token
        database = self._load("remote", blob.content)
        if database is not None:
            await self.strategy.write_cache(blob.content)
        return database

    def _load(self, source: str, image: Optional[bytes]) -> Optional[EmbeddedDatabase]:
        if image is None:
            return None
        try:
            database = EmbeddedDatabase.from_image(image, echo=self.echo)
        except CorruptImageError as e:
            logger.warning("Skipping %s image (%d bytes): %s", source, len(image), e.context)
            return None
        self._image_source = source
        logger.info("Loaded database image from %s (%d bytes)", source, len(image))
        return database

    # ── Persisting ────────────────────────────────────────────────────────

    async def _persist(self, database: EmbeddedDatabase) -> PersistReport:
        try:
            image = database.export_image()
        except sqlite3.Error as e:
            logger.error("Could not export database image: %s", str(e))
            self._last_persistence = PersistOutcome.FAILED
            return PersistReport(PersistOutcome.FAILED, self._token)

        report = await self.strategy.persist(image, self._token)
        self._token = report.token
        self._last_persistence = report.outcome
        return report

    async def _replay_on_remote(
        self,
        statement: str,
        parameters: Sequence[Any],
        result: StatementResult,
        report: PersistReport,
    ) -> Tuple[StatementResult, PersistReport]:
        """
        Rebase onto the current remote copy and run `statement` again.

        Returns the statement result and persistence report of the last round.
        A remote that stays unreadable ends the loop with the conflict report;
        the remote copy is never overwritten blind.

        Raises:
            QueryError: The statement is not valid against the remote copy.
        """
        rounds = self.strategy.cas_max_attempts - 1
        if rounds < 1:
            return result, report

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_result(lambda outcome: outcome[1].conflict),
                stop=stop_after_attempt(rounds),
                wait=wait_exponential(
                    multiplier=self.strategy.cas_min_wait, max=self.strategy.cas_max_wait
                )
                + wait_random(0, self.strategy.cas_min_wait),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                retry_error_callback=lambda state: state.outcome.result(),
            ):
                with attempt:
                    if await self._rebase():
                        result = self._database.execute(statement, parameters)
                    report = await self._persist(self._database)
                if not attempt.retry_state.outcome.failed:
                    attempt.retry_state.set_result((result, report))
        except RemoteError as e:
            logger.error(
                "Could not re-read the remote copy after a rejected upload (status=%s): %s",
                e.status_code,
                e.message,
            )

        if report.conflict:
            logger.error(
                "Mutation not synced after %d rejected uploads; persistence=%s, remote copy kept",
                self.strategy.cas_max_attempts,
                report.outcome.value,
            )
        return result, report

    async def _rebase(self) -> bool:
        """
        Adopt the remote copy as the in-memory image.

        Returns True when the image was replaced, so the pending statement has
        to be run again. Returns False when our image stays: the remote file
        is gone (the next upload recreates it) or is not a database at all.

        Raises:
            RemoteError: The remote copy could not be read.
        """
        blob = await self.strategy.fetch_remote()
        if blob is None:
            logger.warning("Remote copy disappeared; recreating it from the local image")
            self._token = None
            return False

        try:
            database = EmbeddedDatabase.from_image(blob.content, echo=self.echo)
        except CorruptImageError as e:
            logger.warning("Remote copy is not a database image (%s); replacing it", e.context)
            self._token = blob.token
            return False

        database.enable_foreign_keys()
        if self._database is not None:
            self._database.close()
        self._database = database
        self._token = blob.token
        self._image_source = "remote"
        await self.strategy.write_cache(blob.content)
        logger.warning(
            "Rebased onto remote copy (sha=%s, %d bytes) to replay the rejected mutation",
            blob.token[:7],
            len(blob.content),
        )
        return True


def get_store(request: Request) -> DurableStore:
    """
    FastAPI dependency returning the application's DurableStore.

    Usage:
        @router.get("/api/restaurants")
        async def list_restaurants(store: DurableStore = Depends(get_store)):
            ...
    """
    return request.app.state.store
