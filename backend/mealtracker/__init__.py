"""
MealTracker Backend - Application Package
==========================================

Layers:
    ┌─────────────────────────────────────┐
    │      Routes (API Layer, FastAPI)    │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │      Services (Business Rules)      │  ← validation, row mapping
    ├─────────────────────────────────────┤
    │  DurableStore (storage package)     │  ← image acquisition + persistence
    ├─────────────────────────────────────┤
    │  EmbeddedDatabase (in-memory SQLite)│  ← query / execute
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
