"""
MealTracker Backend - Meal Service
===================================

What:  Meals of a menu section: list, create, mark tried/untried, delete.
How:   Parameterised SQL through DurableStore.
Who:   routes/meals.py.

Listing order:
    Untried meals first, then tried ones; newest first inside each group.
    id DESC breaks ties between meals created within the same second
    (CURRENT_TIMESTAMP has one-second resolution).
"""

import logging
from typing import List, Optional, Tuple

from mealtracker.exceptions import IntegrityViolationError, NotFoundError, ValidationError
from mealtracker.schemas.catalog import MealResponse, MealTriedResponse
from mealtracker.services.validation import clean_name, require_id
from mealtracker.storage import DurableStore, PersistOutcome

logger = logging.getLogger(__name__)


class MealService:
    """
    Business rules for meals.

    Error Handling:
        Statement errors (QueryError) propagate unchanged. A foreign key
        rejection on insert means the section is gone and becomes NotFoundError.
    """

    async def list_meals(self, store: DurableStore, section_id: Optional[int]) -> List[MealResponse]:
        section_id = require_id(section_id, "sectionId")
        rows = await store.query(
            "SELECT id, section_id, name, tried, created_at FROM meals "
            "WHERE section_id = ? ORDER BY tried ASC, created_at DESC, id DESC",
            [section_id],
        )
        return [MealResponse(**row) for row in rows]

    async def create_meal(
        self, store: DurableStore, section_id: Optional[int], name: Optional[str]
    ) -> Tuple[MealResponse, PersistOutcome]:
        """
        Insert an untried meal under an existing section.

        Raises:
            ValidationError: section_id or name missing/invalid
            NotFoundError:   the section does not exist
        """
        section_id = require_id(section_id, "section_id")
        cleaned = clean_name(name)
        try:
            result = await store.execute(
                "INSERT INTO meals (section_id, name) VALUES (?, ?)",
                [section_id, cleaned],
            )
        except IntegrityViolationError as e:
            raise NotFoundError(resource="section", resource_id=section_id, context=e.context) from e

        logger.info(
            "Meal %d created in section %d (persistence=%s)",
            result.inserted_row_id,
            section_id,
            result.persistence.value,
        )
        meal = MealResponse(id=result.inserted_row_id, section_id=section_id, name=cleaned, tried=False)
        return meal, result.persistence

    async def set_tried(
        self, store: DurableStore, meal_id: int, tried: Optional[bool]
    ) -> Tuple[MealTriedResponse, PersistOutcome]:
        """
        Flip the tried flag of one meal.

        Raises:
            ValidationError: tried missing
            NotFoundError:   no meal has this id
        """
        if tried is None:
            raise ValidationError(message="tried is required", field="tried")
        result = await store.execute(
            "UPDATE meals SET tried = ? WHERE id = ?", [1 if tried else 0, meal_id]
        )
        if result.rows_affected == 0:
            raise NotFoundError(resource="meal", resource_id=meal_id)
        return MealTriedResponse(id=meal_id, tried=tried), result.persistence

    async def delete_meal(self, store: DurableStore, meal_id: int) -> PersistOutcome:
        result = await store.execute("DELETE FROM meals WHERE id = ?", [meal_id])
        if result.rows_affected == 0:
            raise NotFoundError(resource="meal", resource_id=meal_id)
        return result.persistence


meal_service = MealService()
