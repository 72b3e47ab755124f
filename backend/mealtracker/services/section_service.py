"""
MealTracker Backend - Section Service
======================================

What:  Menu sections of a restaurant: list, create, delete.
Who:   routes/sections.py (both /api/restaurants/{id}/sections and
       /api/sections?restaurantId=).
"""

import logging
from typing import List, Optional, Tuple

from mealtracker.exceptions import IntegrityViolationError, NotFoundError
from mealtracker.schemas.catalog import SectionResponse
from mealtracker.services.validation import clean_name, require_id
from mealtracker.storage import DurableStore, PersistOutcome

logger = logging.getLogger(__name__)


class SectionService:

    async def list_sections(
        self, store: DurableStore, restaurant_id: Optional[int]
    ) -> List[SectionResponse]:
        """Sections of one restaurant in creation order. Unknown ids give an empty list."""
        restaurant_id = require_id(restaurant_id, "restaurantId")
        rows = await store.query(
            "SELECT id, restaurant_id, name FROM sections WHERE restaurant_id = ? ORDER BY id",
            [restaurant_id],
        )
        return [SectionResponse(**row) for row in rows]

    async def create_section(
        self, store: DurableStore, restaurant_id: Optional[int], name: Optional[str]
    ) -> Tuple[SectionResponse, PersistOutcome]:
        """
        Insert a section under an existing restaurant.

        Raises:
            ValidationError: restaurant_id or name missing/invalid
            NotFoundError:   the restaurant does not exist (foreign key rejected the row)
        """
        restaurant_id = require_id(restaurant_id, "restaurant_id")
        cleaned = clean_name(name)
        try:
            result = await store.execute(
                "INSERT INTO sections (restaurant_id, name) VALUES (?, ?)",
                [restaurant_id, cleaned],
            )
        except IntegrityViolationError as e:
            raise NotFoundError(
                resource="restaurant", resource_id=restaurant_id, context=e.context
            ) from e

        logger.info(
            "Section %d created under restaurant %d (persistence=%s)",
            result.inserted_row_id,
            restaurant_id,
            result.persistence.value,
        )
        section = SectionResponse(
            id=result.inserted_row_id, restaurant_id=restaurant_id, name=cleaned
        )
        return section, result.persistence

    async def delete_section(self, store: DurableStore, section_id: int) -> PersistOutcome:
        """
        Delete a section and its meals.

        Raises:
            NotFoundError: no section has this id
        """
        result = await store.execute("DELETE FROM sections WHERE id = ?", [section_id])
        if result.rows_affected == 0:
            raise NotFoundError(resource="section", resource_id=section_id)
        return result.persistence


section_service = SectionService()
