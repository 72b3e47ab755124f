"""
MealTracker Backend - Restaurant Route Handlers
================================================

What:  GET/POST /api/restaurants, DELETE /api/restaurants/{id}.
How:   Thin HTTP layer: pull input from the request, call restaurant_service,
       report how far the write got in the X-Persistence header.
Who:   The RestaurantSelect component of the frontend.
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, Response, status

from mealtracker.routes import set_persistence_header
from mealtracker.schemas.catalog import (
    DeleteResponse,
    ErrorResponse,
    RestaurantCreate,
    RestaurantResponse,
)
from mealtracker.services.restaurant_service import restaurant_service
from mealtracker.storage import DurableStore, get_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Restaurants"])


@router.get(
    "/restaurants",
    response_model=List[RestaurantResponse],
    summary="List restaurants, newest first",
)
async def list_restaurants(store: DurableStore = Depends(get_store)) -> List[RestaurantResponse]:
    return await restaurant_service.list_restaurants(store)


@router.post(
    "/restaurants",
    response_model=RestaurantResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"description": "Name missing or invalid", "model": ErrorResponse}},
    summary="Create a restaurant",
)
async def create_restaurant(
    body: RestaurantCreate,
    response: Response,
    store: DurableStore = Depends(get_store),
) -> RestaurantResponse:
    restaurant, outcome = await restaurant_service.create_restaurant(store, body.name)
    set_persistence_header(response, outcome)
    return restaurant


@router.delete(
    "/restaurants/{restaurant_id}",
    response_model=DeleteResponse,
    responses={404: {"description": "Restaurant not found", "model": ErrorResponse}},
    summary="Delete a restaurant with its sections and meals",
)
async def delete_restaurant(
    restaurant_id: int,
    response: Response,
    store: DurableStore = Depends(get_store),
) -> DeleteResponse:
    outcome = await restaurant_service.delete_restaurant(store, restaurant_id)
    set_persistence_header(response, outcome)
    return DeleteResponse(success=True)
