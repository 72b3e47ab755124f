"""
MealTracker Backend - Meal Model
=================================

What:  The `meals` table: one dish on a menu section, with a "tried" flag.
How:   `tried` is a SQLite BOOLEAN, so rows come back with 0 / 1.

Query Patterns:
    - Meals of a section, untried first then newest first:
      SELECT * FROM meals WHERE section_id = ?
      ORDER BY tried ASC, created_at DESC, id DESC
      → idx_meals_section_id narrows to the section before sorting
"""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, Text, func, text
from sqlalchemy.orm import Mapped, mapped_column

from mealtracker.database import Base


class Meal(Base):
    """A dish on a menu section."""

    __tablename__ = "meals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    section_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("sections.id", ondelete="CASCADE"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(Text, nullable=False)

    tried: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        server_default=text("0"),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.current_timestamp(),
    )

    __table_args__ = (
        Index("idx_meals_section_id", "section_id"),
        {"sqlite_autoincrement": True},
    )

    def __repr__(self) -> str:
        return f"<Meal(id={self.id}, section_id={self.section_id}, tried={self.tried})>"
