"""
MealTracker Backend - Table Declarations
=========================================

What:  SQLAlchemy declarative models for the three tables of the image.
How:   Importing this package registers every table on Base.metadata, which
       mealtracker.schema.apply_schema() uses to create missing tables.

Relationships:
    restaurants 1 ──< sections 1 ──< meals
    Both foreign keys are declared ON DELETE CASCADE.
"""

from mealtracker.models.meal import Meal
from mealtracker.models.restaurant import Restaurant
from mealtracker.models.section import Section

__all__ = ["Meal", "Restaurant", "Section"]
