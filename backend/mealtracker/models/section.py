"""
MealTracker Backend - Section Model
====================================

What:  The `sections` table: a menu section ("Mains", "Desserts") of one restaurant.
Constraint:
    restaurant_id must reference a live restaurant; deleting the restaurant
    deletes its sections (and, through meals.section_id, their meals).
    Both only hold while PRAGMA foreign_keys is ON for the connection.
"""

from sqlalchemy import ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from mealtracker.database import Base


class Section(Base):
    """A menu section belonging to a restaurant."""

    __tablename__ = "sections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    restaurant_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("restaurants.id", ondelete="CASCADE"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        Index("idx_sections_restaurant_id", "restaurant_id"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return f"<Section(id={self.id}, restaurant_id={self.restaurant_id}, name='{self.name}')>"
