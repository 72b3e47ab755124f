"""
MealTracker Backend - Section Route Handlers
=============================================

What:  Menu sections of a restaurant.
Routes:
    GET    /api/restaurants/{restaurant_id}/sections
    GET    /api/sections?restaurantId=       (same listing, query-string form)
    POST   /api/sections                     {restaurant_id, name}
    DELETE /api/sections/{section_id}
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from mealtracker.routes import set_persistence_header
from mealtracker.schemas.catalog import DeleteResponse, ErrorResponse, SectionCreate, SectionResponse
from mealtracker.services.section_service import section_service
from mealtracker.storage import DurableStore, get_store

router = APIRouter(prefix="/api", tags=["Sections"])


@router.get(
    "/restaurants/{restaurant_id}/sections",
    response_model=List[SectionResponse],
    summary="List the sections of a restaurant",
)
async def list_restaurant_sections(
    restaurant_id: int,
    store: DurableStore = Depends(get_store),
) -> List[SectionResponse]:
    return await section_service.list_sections(store, restaurant_id)


@router.get(
    "/sections",
    response_model=List[SectionResponse],
    responses={400: {"description": "restaurantId missing", "model": ErrorResponse}},
    summary="List the sections of a restaurant (query-string form)",
)
async def list_sections(
    restaurant_id: Optional[int] = Query(default=None, alias="restaurantId"),
    store: DurableStore = Depends(get_store),
) -> List[SectionResponse]:
    return await section_service.list_sections(store, restaurant_id)


@router.post(
    "/sections",
    response_model=SectionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "restaurant_id or name missing", "model": ErrorResponse},
        404: {"description": "Restaurant not found", "model": ErrorResponse},
    },
    summary="Create a section",
)
async def create_section(
    body: SectionCreate,
    response: Response,
    store: DurableStore = Depends(get_store),
) -> SectionResponse:
    section, outcome = await section_service.create_section(store, body.restaurant_id, body.name)
    set_persistence_header(response, outcome)
    return section


@router.delete(
    "/sections/{section_id}",
    response_model=DeleteResponse,
    responses={404: {"description": "Section not found", "model": ErrorResponse}},
    summary="Delete a section and its meals",
)
async def delete_section(
    section_id: int,
    response: Response,
    store: DurableStore = Depends(get_store),
) -> DeleteResponse:
    outcome = await section_service.delete_section(store, section_id)
    set_persistence_header(response, outcome)
    return DeleteResponse(success=True)
