"""
MealTracker Backend - Restaurant Model
=======================================

What:  The `restaurants` table: top of the restaurant → section → meal tree.
Query Patterns:
    - List restaurants: SELECT * FROM restaurants ORDER BY created_at DESC
    - Delete one: DELETE FROM restaurants WHERE id = ?  (cascades to sections, meals)
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from mealtracker.database import Base


class Restaurant(Base):
    """A place whose menu is being tracked."""

    __tablename__ = "restaurants"
    # AUTOINCREMENT: ids of deleted restaurants are never handed out again
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    name: Mapped[str] = mapped_column(Text, nullable=False)

    # Stored by SQLite as 'YYYY-MM-DD HH:MM:SS' (UTC)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.current_timestamp(),
    )

    def __repr__(self) -> str:
        return f"<Restaurant(id={self.id}, name='{self.name}')>"
