"""
MealTracker Backend - Test Configuration (conftest.py)
=======================================================

What:  Shared pytest fixtures for the whole suite.
How:   The GitHub contents API is replaced by FakeContentsAPI, an in-memory
       implementation served through httpx.MockTransport. It enforces the sha
       check on writes the same way GitHub does, so conflict handling is
       exercised for real.

Fixture Hierarchy (all function-scoped):
    contents_api ─> http_client ─> blob_store ─> remote_strategy ─> remote_store
    local_store                                   (./database.db in tmp_path)
    make_remote_store                             (factory: several processes, one remote)
    database                                      (EmbeddedDatabase with the schema)
    app_client                                    (httpx.AsyncClient over the ASGI app)
"""

import base64
import hashlib
import json
import os
from typing import Dict, List, Optional, Tuple

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Before any mealtracker import: the module-level settings/app must never
# point at a real repository
os.environ["PERSISTENCE_MODE"] = "local"
os.environ["GITHUB_TOKEN"] = "test-token-not-real"
os.environ["LOG_LEVEL"] = "WARNING"

from mealtracker.database import EmbeddedDatabase  # noqa: E402
from mealtracker.schema import apply_schema  # noqa: E402
from mealtracker.storage.github_store import GitHubBlobStore  # noqa: E402
from mealtracker.storage.local_cache import LocalImageCache  # noqa: E402
from mealtracker.storage.manager import DurableStore  # noqa: E402
from mealtracker.storage.strategy import LocalFileStrategy, RemoteSyncStrategy  # noqa: E402

OWNER = "octo"
REPO = "meals"
REMOTE_PATH = "database.db"
CONTENTS_PREFIX = f"/repos/{OWNER}/{REPO}/contents/"


# ══════════════════════════════════════════════════════════════════════════
# In-memory GitHub contents API
# ══════════════════════════════════════════════════════════════════════════


class FakeContentsAPI:
    """
    Minimal GitHub contents API for one repository.

    Knobs:
        fail_with:           status code returned for every request
        fail_puts_with:      status code returned for PUT requests only
        fail_gets_with:      status code returned for GET requests only
        transport_failures:  number of upcoming requests that raise ConnectError
        transport_error:     exception raised by every request (e.g. ReadTimeout)
        inline_limit:        files larger than this come back with encoding "none"
    """

    def __init__(self):
        self.files: Dict[str, Tuple[bytes, str]] = {}
        self.requests: List[httpx.Request] = []
        self.fail_with: Optional[int] = None
        self.fail_puts_with: Optional[int] = None
        self.fail_gets_with: Optional[int] = None
        self.transport_failures = 0
        self.transport_error: Optional[Exception] = None
        self.inline_limit = 1024 * 1024
        self._version = 0

    # ── helpers for tests ────────────────────────────────────────────────

    def seed(self, content: bytes, path: str = REMOTE_PATH) -> str:
        sha = self._next_sha(content)
        self.files[path] = (content, sha)
        return sha

    def content(self, path: str = REMOTE_PATH) -> Optional[bytes]:
        entry = self.files.get(path)
        return entry[0] if entry else None

    def sha(self, path: str = REMOTE_PATH) -> Optional[str]:
        entry = self.files.get(path)
        return entry[1] if entry else None

    def count(self, method: str) -> int:
        return sum(1 for r in self.requests if r.method == method)

    def _next_sha(self, content: bytes) -> str:
        self._version += 1
        return hashlib.sha1(content + self._version.to_bytes(4, "big")).hexdigest()

    # ── transport handler ────────────────────────────────────────────────

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if self.transport_error is not None:
            raise self.transport_error
        if self.transport_failures > 0:
            self.transport_failures -= 1
            raise httpx.ConnectError("connection refused", request=request)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, json={"message": "Server Error"})

        if not request.url.path.startswith(CONTENTS_PREFIX):
            return httpx.Response(404, json={"message": "Not Found"})
        path = request.url.path[len(CONTENTS_PREFIX):]

        if request.method == "GET":
            if self.fail_gets_with is not None:
                return httpx.Response(self.fail_gets_with, json={"message": "Server Error"})
            return self._get(request, path)
        if request.method == "PUT":
            if self.fail_puts_with is not None:
                return httpx.Response(self.fail_puts_with, json={"message": "Server Error"})
            return self._put(request, path)
        return httpx.Response(405)

    def _get(self, request: httpx.Request, path: str) -> httpx.Response:
        if path not in self.files:
            return httpx.Response(404, json={"message": "Not Found"})
        content, sha = self.files[path]
        if request.headers.get("accept") == "application/vnd.github.raw":
            return httpx.Response(200, content=content)
        if len(content) > self.inline_limit:
            payload = {"type": "file", "encoding": "none", "content": "", "size": len(content), "sha": sha}
        else:
            payload = {
                "type": "file",
                "encoding": "base64",
                "content": base64.encodebytes(content).decode("ascii"),
                "size": len(content),
                "sha": sha,
            }
        return httpx.Response(200, json=payload)

    def _put(self, request: httpx.Request, path: str) -> httpx.Response:
        body = json.loads(request.content)
        existing = self.files.get(path)
        sent_sha = body.get("sha")

        if existing is not None and sent_sha is None:
            return httpx.Response(
                422, json={"message": 'Invalid request.\n\n"sha" wasn\'t supplied.'}
            )
        if existing is not None and sent_sha != existing[1]:
            return httpx.Response(409, json={"message": f"{path} does not match {sent_sha}"})
        if existing is None and sent_sha is not None:
            return httpx.Response(409, json={"message": f"{path} does not exist"})

        content = base64.b64decode(body["content"])
        sha = self._next_sha(content)
        self.files[path] = (content, sha)
        return httpx.Response(
            201 if existing is None else 200,
            json={"content": {"path": path, "sha": sha}, "commit": {"message": body["message"]}},
        )


# ══════════════════════════════════════════════════════════════════════════
# Fixtures
# ══════════════════════════════════════════════════════════════════════════


@pytest.fixture
def contents_api():
    return FakeContentsAPI()


@pytest_asyncio.fixture
async def http_client(contents_api):
    async with httpx.AsyncClient(transport=httpx.MockTransport(contents_api.handler)) as client:
        yield client


@pytest.fixture
def blob_store(http_client):
    """GitHubBlobStore against FakeContentsAPI, retries without waiting."""
    return GitHubBlobStore(
        owner=OWNER,
        repo=REPO,
        path=REMOTE_PATH,
        token="test-token",
        client=http_client,
        retry_attempts=2,
        retry_min_wait=0,
        retry_max_wait=0,
    )


@pytest.fixture
def remote_strategy(tmp_path, blob_store):
    return RemoteSyncStrategy(
        LocalImageCache(tmp_path / "cache" / "database.db"),
        blob_store,
        cas_max_attempts=3,
        cas_min_wait=0,
        cas_max_wait=0,
    )


@pytest_asyncio.fixture
async def remote_store(remote_strategy):
    store = DurableStore(remote_strategy)
    yield store
    await store.close()


@pytest_asyncio.fixture
async def local_store(tmp_path):
    store = DurableStore(LocalFileStrategy(LocalImageCache(tmp_path / "database.db")))
    yield store
    await store.close()


@pytest_asyncio.fixture
async def make_remote_store(tmp_path, http_client):
    """
    Factory for stores that share one remote but have their own cache file,
    like two serverless instances of the app.

    Usage:
        store_a = make_remote_store("a")
        store_b = make_remote_store("b")
    """
    created: List[DurableStore] = []

    def _make(name: str) -> DurableStore:
        remote = GitHubBlobStore(
            owner=OWNER,
            repo=REPO,
            path=REMOTE_PATH,
            token="test-token",
            client=http_client,
            retry_attempts=1,
            retry_min_wait=0,
            retry_max_wait=0,
        )
        strategy = RemoteSyncStrategy(
            LocalImageCache(tmp_path / name / "database.db"),
            remote,
            cas_max_attempts=3,
            cas_min_wait=0,
            cas_max_wait=0,
        )
        store = DurableStore(strategy)
        created.append(store)
        return store

    yield _make
    for store in created:
        await store.close()


@pytest.fixture
def database():
    """Fresh in-memory database with the three tables."""
    db = EmbeddedDatabase()
    apply_schema(db)
    yield db
    db.close()


@pytest_asyncio.fixture
async def app_client(local_store):
    """
    HTTPX AsyncClient talking to a fresh app backed by `local_store`.

    Usage:
        async def test_health(app_client):
            response = await app_client.get("/health")
    """
    from mealtracker.main import create_app

    app = create_app(store=local_store)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
