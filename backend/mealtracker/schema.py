"""
MealTracker Backend - Schema / Bootstrap
=========================================

What:  Idempotent creation of the restaurants, sections and meals tables.
How:   Base.metadata.create_all(checkfirst=True) on the engine wrapper's connection:
       existing tables are left alone, missing ones are created with their
       foreign keys (ON DELETE CASCADE) and indexes.
Who:   DurableStore, when no prior image was found (Bootstrapping) or a seed image
       was loaded.

Referential integrity:
    The cascade and reference checks declared here are only enforced while
    PRAGMA foreign_keys = ON for the consuming connection. SQLite leaves it off
    by default. EmbeddedDatabase enables it on connect and DurableStore
    re-enables it after every image load.
"""

import logging
from typing import Tuple

from mealtracker.database import Base, EmbeddedDatabase
from mealtracker import models  # noqa: F401  (registers tables on Base.metadata)

logger = logging.getLogger(__name__)

TABLE_NAMES: Tuple[str, ...] = ("restaurants", "sections", "meals")


def apply_schema(database: EmbeddedDatabase) -> None:
    """
    Create any of the application tables missing from `database`.

    Safe to call on an image that already has them (no-op) and on a brand-new
    empty image (creates all three).
    """
    before = set(database.table_names())
    Base.metadata.create_all(database.connection, checkfirst=True)
    created = [name for name in TABLE_NAMES if name not in before]
    if created:
        logger.info("Schema applied: created tables %s", ", ".join(created))
    else:
        logger.debug("Schema applied: all tables already present")
