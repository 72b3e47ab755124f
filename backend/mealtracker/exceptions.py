"""
MealTracker Backend - Custom Exception Hierarchy
=================================================

What:  Application-specific exceptions for the HTTP layer and the persistence core.
How:   Every exception carries a human-readable message and an optional context dict.
       Global handlers (registered in main.py) turn the request-facing ones into
       structured JSON responses. The persistence-facing ones are raised and caught
       inside mealtracker.storage and only ever show up in logs.

Exception Hierarchy:
    MealTrackerError (base)
    ├── ValidationError            → 400 Bad Request
    ├── NotFoundError              → 404 Not Found
    ├── QueryError                 → 400 Bad Request (statement could not run)
    │   └── IntegrityViolationError → 409 Conflict (foreign key / NOT NULL)
    ├── CorruptImageError          → never surfaced (image source skipped)
    ├── RemoteError                → never surfaced (startup degrades to bootstrap)
    ├── RemoteWriteFailure         → never surfaced (upload reported as failed)
    └── PersistenceIOError         → never surfaced (local cache write failed)

Propagation policy:
    Statement and validation errors reach the caller. Persistence errors stop at
    the DurableStore boundary and are reported through PersistOutcome plus logs.
"""

from typing import Any, Dict, Optional


class MealTrackerError(Exception):
    """
    Base exception for all MealTracker application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class ValidationError(MealTrackerError):
    """
    Raised when client input fails validation.

    When:    Blank names, names over the length limit, missing parent ids.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class NotFoundError(MealTrackerError):
    """
    Raised when a requested resource does not exist.

    When:    DELETE/PATCH on an id that matches no row, or creating a child
             under a parent that does not exist.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id is not None:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id is not None:
            ctx["resource_id"] = str(resource_id)
        super().__init__(message=message, context=ctx)


class QueryError(MealTrackerError):
    """
    Raised when a statement cannot run against the in-memory image.

    When:    Malformed SQL, placeholder/parameter count mismatch, more than one
             statement per call, or any other engine-level failure.
    HTTP:    400 Bad Request

    The statement text is kept in context for the server log only.
    """

    def __init__(
        self,
        message: str = "The database statement could not be executed",
        statement: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if statement is not None:
            ctx["statement"] = " ".join(statement.split())
        super().__init__(message=message, context=ctx)
        self.statement = statement


class IntegrityViolationError(QueryError):
    """
    Raised when a statement violates a declared constraint.

    When:    Inserting a section for a missing restaurant (foreign key enforcement
             on), NOT NULL violations.
    HTTP:    409 Conflict
    """

    def __init__(
        self,
        message: str = "The change conflicts with existing data",
        statement: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, statement=statement, context=context)


class CorruptImageError(MealTrackerError):
    """Raised when a blob handed to the engine is not a usable SQLite image."""

    def __init__(
        self,
        message: str = "Database image could not be loaded",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class RemoteError(MealTrackerError):
    """
    Raised when the remote blob store answers a read with anything other than
    2xx or 404, or cannot be reached at all (timeouts included).

    Recovery:
        DurableStore logs it and continues with the next image source
        (seed image, then bootstrap). It never reaches a request handler.
    """

    def __init__(
        self,
        status_code: Optional[int] = None,
        body: str = "",
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            if status_code is None:
                message = "Remote store unreachable"
            else:
                message = f"Remote store error: HTTP {status_code}"
        ctx = context or {}
        ctx["status_code"] = status_code
        if body:
            ctx["body"] = body[:500]
        super().__init__(message=message, context=ctx)
        self.status_code = status_code
        self.body = body


class RemoteWriteFailure(MealTrackerError):
    """
    Raised inside the upload path when the remote store rejects or drops a write.

    GitHubBlobStore converts it into an UploadResult; callers of put() only ever
    see None. The local cache stays the only durable copy until the next
    successful upload.
    """

    def __init__(
        self,
        status_code: Optional[int] = None,
        detail: str = "",
        context: Optional[Dict[str, Any]] = None,
    ):
        message = "Remote write failed"
        if status_code is not None:
            message = f"Remote write failed: HTTP {status_code}"
        ctx = context or {}
        ctx["status_code"] = status_code
        if detail:
            ctx["detail"] = detail[:500]
        super().__init__(message=message, context=ctx)
        self.status_code = status_code
        self.detail = detail


class PersistenceIOError(MealTrackerError):
    """
    Raised when the local cache file cannot be read or written.

    Disk full, permission denied, read-only file system. The mutation already
    happened in memory, so later reads in the same process still see it even
    though nothing reached the disk.
    """

    def __init__(
        self,
        path: Optional[str] = None,
        message: str = "Local database cache operation failed",
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if path is not None:
            ctx["path"] = path
        super().__init__(message=message, context=ctx)
        self.path = path
