"""
MealTracker Backend - API Routes Package
=========================================

What:  HTTP route handlers that accept requests and return responses.

Route Inventory:
    - restaurants.py:  GET/POST /api/restaurants, DELETE /api/restaurants/{id}
    - sections.py:     GET /api/restaurants/{id}/sections, GET/POST /api/sections,
                       DELETE /api/sections/{id}
    - meals.py:        GET /api/sections/{id}/meals, GET/POST /api/meals,
                       PATCH/DELETE /api/meals/{id}
    - health.py:       GET /health

Routes stay thin: they extract input, call a service and format the response.
Every mutating route reports the PersistOutcome of its write in X-Persistence.
"""

from fastapi import Response

from mealtracker.storage import PersistOutcome

PERSISTENCE_HEADER = "X-Persistence"


def set_persistence_header(response: Response, outcome: PersistOutcome) -> None:
    response.headers[PERSISTENCE_HEADER] = outcome.value
