"""
MealTracker Backend - Remote Blob Store Client (GitHub Contents API)
====================================================================

What:  Authenticated read/write of one opaque binary file in a GitHub repository.
How:   httpx.AsyncClient against the contents API. Every write carries the blob
       sha last seen by this process; GitHub rejects the write if the file has
       moved on since (optimistic lock).
Who:   RemoteSyncStrategy (storage/strategy.py).
When:  Once at first use (fetch) and after every mutation (upload).

Wire Contract:
    GET  /repos/{owner}/{repo}/contents/{path}?ref={branch}
         200 → {"content": "<base64>", "encoding": "base64", "sha": "<token>"}
         404 → file does not exist yet
    PUT  /repos/{owner}/{repo}/contents/{path}
         body {"message", "content": "<base64>", "sha"?: "<token>", "branch"}
         200/201 → {"content": {"sha": "<new token>"}}
         409     → sha does not match the current file (someone else wrote)
         422     → sha missing although the file exists

    Files above the contents API inline limit (1 MB) come back with
    "encoding": "none" and empty content; those are re-read with
    Accept: application/vnd.github.raw.

Failure semantics:
    fetch()  raises RemoteError for anything except 2xx / 404.
             Transport errors and timeouts are retried with tenacity first.
    upload() never raises; it returns an UploadResult describing the outcome.
    put()    never raises; new token on success, None on any failure.
"""

import base64
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from mealtracker.config import Settings
from mealtracker.exceptions import RemoteError, RemoteWriteFailure

logger = logging.getLogger(__name__)

GITHUB_JSON_MEDIA_TYPE = "application/vnd.github+json"
GITHUB_RAW_MEDIA_TYPE = "application/vnd.github.raw"
GITHUB_API_VERSION = "2022-11-28"

# 409: stale sha. 422: sha omitted for a file that already exists.
CONFLICT_STATUS_CODES = frozenset({409, 422})


@dataclass(frozen=True)
class RemoteBlob:
    """The remote copy of the image plus its concurrency token (blob sha)."""

    content: bytes
    token: str


@dataclass(frozen=True)
class UploadResult:
    """
    Outcome of one upload attempt.

    token:        new concurrency token, None when the write did not land
    status_code:  HTTP status, None when no response was received
    detail:       response body or transport error text (failures only)
    """

    token: Optional[str]
    status_code: Optional[int] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.token is not None

    @property
    def conflict(self) -> bool:
        return self.status_code in CONFLICT_STATUS_CODES


class GitHubBlobStore:
    """
    Client for a single file in a GitHub repository.

    Args:
        owner, repo, path, branch: address of the file
        token:           credential sent as a bearer token
        api_url:         API root (GitHub Enterprise uses https://<host>/api/v3)
        commit_message:  message of every commit created by an upload
        timeout:         seconds allowed per request; expiry counts as a remote failure
        retry_attempts / retry_min_wait / retry_max_wait:
                         tenacity settings for transient read failures
        client:          pre-built httpx.AsyncClient (tests inject a MockTransport)
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        path: str,
        token: str,
        branch: str = "main",
        api_url: str = "https://api.github.com",
        commit_message: str = "Update database.db via App",
        timeout: float = 10.0,
        user_agent: str = "mealtracker-backend/1.0",
        retry_attempts: int = 3,
        retry_min_wait: float = 0.5,
        retry_max_wait: float = 4.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.owner = owner
        self.repo = repo
        self.path = path.lstrip("/")
        self.branch = branch
        self.api_url = api_url.rstrip("/")
        self.commit_message = commit_message
        self.timeout = timeout
        self.user_agent = user_agent
        self.retry_attempts = retry_attempts
        self.retry_min_wait = retry_min_wait
        self.retry_max_wait = retry_max_wait
        self._token = token
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout))

    @classmethod
    def from_settings(
        cls, settings: Settings, client: Optional[httpx.AsyncClient] = None
    ) -> "GitHubBlobStore":
        return cls(
            owner=settings.github_owner,
            repo=settings.github_repo,
            path=settings.github_path,
            token=settings.github_token.get_secret_value(),
            branch=settings.github_branch,
            api_url=settings.github_api_url,
            commit_message=settings.github_commit_message,
            timeout=settings.remote_timeout_seconds,
            user_agent=settings.user_agent,
            retry_attempts=settings.retry_max_attempts,
            retry_min_wait=settings.retry_min_wait,
            retry_max_wait=settings.retry_max_wait,
            client=client,
        )

    @property
    def contents_url(self) -> str:
        return (
            f"{self.api_url}/repos/{quote(self.owner)}/{quote(self.repo)}"
            f"/contents/{quote(self.path)}"
        )

    @property
    def location(self) -> str:
        """Human-readable address used in log lines."""
        return f"{self.owner}/{self.repo}:{self.path}@{self.branch}"

    def _headers(self, accept: str = GITHUB_JSON_MEDIA_TYPE) -> Dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Authorization": f"Bearer {self._token}",
            "Accept": accept,
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
        }

    # ══════════════════════════════════════════════════════════════════════
    # Read path
    # ══════════════════════════════════════════════════════════════════════

    async def fetch(self) -> Optional[RemoteBlob]:
        """
        Download the remote image.

        Returns:
            RemoteBlob with the decoded bytes and the blob sha, or None if the
            file does not exist on the branch.

        Raises:
            RemoteError: Non-2xx/non-404 status, malformed payload, or the
                         store stayed unreachable after all retries.
        """
        payload = await self._get_contents()
        if payload is None:
            logger.info("Remote database %s not found", self.location)
            return None

        sha = payload.get("sha")
        if not sha:
            raise RemoteError(status_code=200, message="Remote response carried no sha")

        content = payload.get("content") or ""
        if payload.get("encoding") == "none" or (not content and payload.get("size", 0)):
            data = await self._get_raw()
        else:
            try:
                # GitHub wraps the base64 at 60 columns; b64decode drops the newlines
                data = base64.b64decode(content)
            except (ValueError, TypeError) as e:
                raise RemoteError(
                    status_code=200, message="Remote content is not valid base64"
                ) from e

        logger.info(
            "Fetched remote database %s (%d bytes, sha=%s)", self.location, len(data), sha[:7]
        )
        return RemoteBlob(content=data, token=sha)

    async def _get_contents(self) -> Optional[Dict[str, Any]]:
        response = await self._request(
            "GET", self.contents_url, params={"ref": self.branch}, retrying=True
        )
        if response.status_code == 404:
            return None
        if not response.is_success:
            raise RemoteError(status_code=response.status_code, body=response.text)
        try:
            payload = response.json()
        except ValueError as e:
            raise RemoteError(
                status_code=response.status_code, message="Remote response is not JSON"
            ) from e
        if not isinstance(payload, dict):
            # A directory listing comes back as a JSON array
            raise RemoteError(
                status_code=response.status_code,
                message=f"Remote path {self.path} is not a file",
            )
        return payload

    async def _get_raw(self) -> bytes:
        response = await self._request(
            "GET",
            self.contents_url,
            params={"ref": self.branch},
            accept=GITHUB_RAW_MEDIA_TYPE,
            retrying=True,
        )
        if not response.is_success:
            raise RemoteError(status_code=response.status_code, body=response.text)
        return response.content

    # ══════════════════════════════════════════════════════════════════════
    # Write path
    # ══════════════════════════════════════════════════════════════════════

    async def upload(self, content: bytes, previous_token: Optional[str]) -> UploadResult:
        """
        Write `content` as the new version of the remote file.

        Args:
            content:         full database image
            previous_token:  sha this process last saw; None creates the file

        Returns:
            UploadResult. Never raises: a remote outage must not break the
            request that triggered the upload.
        """
        body: Dict[str, Any] = {
            "message": self.commit_message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": self.branch,
        }
        if previous_token:
            body["sha"] = previous_token

        try:
            status_code, new_token = await self._send_put(body)
        except RemoteWriteFailure as e:
            logger.warning(
                "Remote upload to %s failed (status=%s, had_token=%s): %s",
                self.location,
                e.status_code,
                previous_token is not None,
                e.detail[:200],
            )
            return UploadResult(token=None, status_code=e.status_code, detail=e.detail)

        logger.info(
            "Uploaded database to %s (%d bytes, sha=%s)",
            self.location,
            len(content),
            new_token[:7],
        )
        return UploadResult(token=new_token, status_code=status_code)

    async def put(self, content: bytes, previous_token: Optional[str]) -> Optional[str]:
        """Upload and return the new token, or None on any failure."""
        result = await self.upload(content, previous_token)
        return result.token

    async def _send_put(self, body: Dict[str, Any]):
        try:
            response = await self._request("PUT", self.contents_url, json=body, retrying=False)
        except RemoteError as e:
            raise RemoteWriteFailure(status_code=None, detail=e.message) from e

        if response.status_code not in (200, 201):
            raise RemoteWriteFailure(status_code=response.status_code, detail=response.text)

        try:
            new_token = response.json()["content"]["sha"]
        except (ValueError, KeyError, TypeError) as e:
            raise RemoteWriteFailure(
                status_code=response.status_code,
                detail=f"Unreadable upload response: {e}",
            ) from e
        if not isinstance(new_token, str) or not new_token:
            raise RemoteWriteFailure(
                status_code=response.status_code,
                detail=f"Upload response carried no usable sha: {new_token!r}",
            )
        return response.status_code, new_token

    # ══════════════════════════════════════════════════════════════════════
    # Transport
    # ══════════════════════════════════════════════════════════════════════

    async def _request(
        self,
        method: str,
        url: str,
        accept: str = GITHUB_JSON_MEDIA_TYPE,
        retrying: bool = True,
        **kwargs: Any,
    ) -> httpx.Response:
        attempts = self.retry_attempts if retrying else 1
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(httpx.TransportError),
                stop=stop_after_attempt(attempts),
                wait=wait_exponential(multiplier=self.retry_min_wait, max=self.retry_max_wait)
                + wait_random(0, self.retry_min_wait),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    return await self._client.request(
                        method,
                        url,
                        headers=self._headers(accept),
                        timeout=self.timeout,
                        **kwargs,
                    )
        except httpx.TimeoutException as e:
            raise RemoteError(
                message=f"Remote store timed out after {self.timeout:.1f}s",
                context={"method": method, "error_type": type(e).__name__},
            ) from e
        except httpx.HTTPError as e:
            raise RemoteError(
                message=f"Remote store unreachable: {e}",
                context={"method": method, "error_type": type(e).__name__},
            ) from e

        raise RemoteError(
            message="Remote store request was never attempted",
            context={"method": method, "attempts": attempts},
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
