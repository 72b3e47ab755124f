"""
MealTracker Backend - Restaurant Service
=========================================

What:  List, create and delete restaurants.
How:   Parameterised SQL through DurableStore; rows mapped to RestaurantResponse.
Who:   routes/restaurants.py.

Deleting a restaurant removes its sections and their meals through the
ON DELETE CASCADE foreign keys (enforced because the store keeps
PRAGMA foreign_keys = ON).
"""

import logging
from typing import List, Tuple

from mealtracker.exceptions import NotFoundError
from mealtracker.schemas.catalog import RestaurantResponse
from mealtracker.services.validation import clean_name
from mealtracker.storage import DurableStore, PersistOutcome

logger = logging.getLogger(__name__)


class RestaurantService:
    """Stateless; the store is passed in on every call."""

    async def list_restaurants(self, store: DurableStore) -> List[RestaurantResponse]:
        """All restaurants, newest first."""
        rows = await store.query(
            "SELECT id, name, created_at FROM restaurants ORDER BY created_at DESC, id DESC"
        )
        return [RestaurantResponse(**row) for row in rows]

    async def create_restaurant(
        self, store: DurableStore, name: str | None
    ) -> Tuple[RestaurantResponse, PersistOutcome]:
        """
        Insert a restaurant.

        Raises:
            ValidationError: name missing, blank or too long
        """
        cleaned = clean_name(name)
        result = await store.execute("INSERT INTO restaurants (name) VALUES (?)", [cleaned])
        row = await store.get(
            "SELECT id, name, created_at FROM restaurants WHERE id = ?",
            [result.inserted_row_id],
        )
        logger.info(
            "Restaurant %d created (persistence=%s)",
            result.inserted_row_id,
            result.persistence.value,
        )
        if row is None:
            return RestaurantResponse(id=result.inserted_row_id, name=cleaned), result.persistence
        return RestaurantResponse(**row), result.persistence

    async def delete_restaurant(self, store: DurableStore, restaurant_id: int) -> PersistOutcome:
        """
        Delete a restaurant and, by cascade, everything under it.

        Raises:
            NotFoundError: no restaurant has this id
        """
        result = await store.execute("DELETE FROM restaurants WHERE id = ?", [restaurant_id])
        if result.rows_affected == 0:
            raise NotFoundError(resource="restaurant", resource_id=restaurant_id)
        logger.info("Restaurant %d deleted (persistence=%s)", restaurant_id, result.persistence.value)
        return result.persistence


restaurant_service = RestaurantService()
