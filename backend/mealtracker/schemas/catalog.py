"""
MealTracker Backend - Pydantic Request/Response Schemas
========================================================

What:  The API contract for restaurants, sections and meals.
How:   FastAPI validates request bodies against the *Create/*Update models and
       serializes responses through the *Response models.
Who:   Route handlers and services.

Body fields the original client may omit (name, restaurant_id, tried, ...) are
Optional here so that a missing value reaches the service and comes back as a
400 validation_error instead of FastAPI's generic 422.

Row mapping:
    SQLite returns `tried` as 0/1 and timestamps as 'YYYY-MM-DD HH:MM:SS' text.
    Pydantic coerces 0/1 to bool; timestamps are passed through as strings.
"""

from typing import Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class RestaurantCreate(BaseModel):
    name: Optional[str] = Field(default=None, description="Restaurant name")


class SectionCreate(BaseModel):
    restaurant_id: Optional[int] = Field(default=None, description="Owning restaurant")
    name: Optional[str] = Field(default=None, description="Section name, e.g. 'Mains'")


class MealCreate(BaseModel):
    section_id: Optional[int] = Field(default=None, description="Owning menu section")
    name: Optional[str] = Field(default=None, description="Meal name")


class MealUpdate(BaseModel):
    tried: Optional[bool] = Field(default=None, description="Whether the meal has been tried")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class RestaurantResponse(BaseModel):
    id: int = Field(description="Restaurant id")
    name: str = Field(description="Restaurant name")
    created_at: Optional[str] = Field(default=None, description="Creation time (UTC, SQLite text)")


class SectionResponse(BaseModel):
    id: int = Field(description="Section id")
    restaurant_id: int = Field(description="Owning restaurant id")
    name: str = Field(description="Section name")


class MealResponse(BaseModel):
    """
    A meal as listed under its section.

    Newly created meals are returned with tried=false and no created_at.
    """

    id: int = Field(description="Meal id")
    section_id: int = Field(description="Owning section id")
    name: str = Field(description="Meal name")
    tried: bool = Field(default=False, description="Whether the meal has been tried")
    created_at: Optional[str] = Field(default=None, description="Creation time (UTC, SQLite text)")


class MealTriedResponse(BaseModel):
    id: int = Field(description="Meal id")
    tried: bool = Field(description="New tried flag")


class DeleteResponse(BaseModel):
    success: bool = Field(default=True)


# ══════════════════════════════════════════════════════════════════════════
# Error / Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    Standardized error body for every non-2xx response.

    Example:
        {
            "error": "not_found",
            "message": "restaurant with ID '7' was not found",
            "request_id": "1f2e3d4c"
        }
    """

    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """
    Service status plus the state of the database store.

    last_persistence is null until the first mutation of the process.
    """

    status: str = Field(description="healthy or degraded")
    version: str = Field(description="Application version")
    store_state: str = Field(description="uninitialized, bootstrapping, ready or closed")
    mode: str = Field(description="Persistence mode: local or remote")
    image_source: Optional[str] = Field(
        default=None, description="Where the image came from: cache, remote, seed, bootstrap"
    )
    last_persistence: Optional[str] = Field(
        default=None, description="Outcome of the last mutation: durable, local_only, failed"
    )
    uptime_seconds: float = Field(description="Seconds since service started")
