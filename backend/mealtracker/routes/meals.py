"""
MealTracker Backend - Meal Route Handlers
==========================================

What:  Meals of a menu section.
Routes:
    GET    /api/sections/{section_id}/meals
    GET    /api/meals?sectionId=           (same listing, query-string form)
    POST   /api/meals                      {section_id, name}
    PATCH  /api/meals/{meal_id}            {tried}
    DELETE /api/meals/{meal_id}

Listings put untried meals first; see services/meal_service.py.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status

from mealtracker.routes import set_persistence_header
from mealtracker.schemas.catalog import (
    DeleteResponse,
    ErrorResponse,
    MealCreate,
    MealResponse,
    MealTriedResponse,
    MealUpdate,
)
from mealtracker.services.meal_service import meal_service
from mealtracker.storage import DurableStore, get_store

router = APIRouter(prefix="/api", tags=["Meals"])


@router.get(
    "/sections/{section_id}/meals",
    response_model=List[MealResponse],
    summary="List the meals of a section, untried first",
)
async def list_section_meals(
    section_id: int,
    store: DurableStore = Depends(get_store),
) -> List[MealResponse]:
    return await meal_service.list_meals(store, section_id)


@router.get(
    "/meals",
    response_model=List[MealResponse],
    responses={400: {"description": "sectionId missing", "model": ErrorResponse}},
    summary="List the meals of a section (query-string form)",
)
async def list_meals(
    section_id: Optional[int] = Query(default=None, alias="sectionId"),
    store: DurableStore = Depends(get_store),
) -> List[MealResponse]:
    return await meal_service.list_meals(store, section_id)


@router.post(
    "/meals",
    response_model=MealResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "section_id or name missing", "model": ErrorResponse},
        404: {"description": "Section not found", "model": ErrorResponse},
    },
    summary="Create a meal (untried)",
)
async def create_meal(
    body: MealCreate,
    response: Response,
    store: DurableStore = Depends(get_store),
) -> MealResponse:
    meal, outcome = await meal_service.create_meal(store, body.section_id, body.name)
    set_persistence_header(response, outcome)
    return meal


@router.patch(
    "/meals/{meal_id}",
    response_model=MealTriedResponse,
    responses={
        400: {"description": "tried missing", "model": ErrorResponse},
        404: {"description": "Meal not found", "model": ErrorResponse},
    },
    summary="Mark a meal tried or untried",
)
async def update_meal(
    meal_id: int,
    body: MealUpdate,
    response: Response,
    store: DurableStore = Depends(get_store),
) -> MealTriedResponse:
    result, outcome = await meal_service.set_tried(store, meal_id, body.tried)
    set_persistence_header(response, outcome)
    return result


@router.delete(
    "/meals/{meal_id}",
    response_model=DeleteResponse,
    responses={404: {"description": "Meal not found", "model": ErrorResponse}},
    summary="Delete a meal",
)
async def delete_meal(
    meal_id: int,
    response: Response,
    store: DurableStore = Depends(get_store),
) -> DeleteResponse:
    outcome = await meal_service.delete_meal(store, meal_id)
    set_persistence_header(response, outcome)
    return DeleteResponse(success=True)
