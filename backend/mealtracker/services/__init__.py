"""
MealTracker Backend - Services Layer
=====================================

Business rules between the routes and the DurableStore.

Service Inventory:
    - RestaurantService:  list / create / delete restaurants
    - SectionService:     list / create / delete menu sections
    - MealService:        list / create / mark tried / delete meals
    - validation:         shared name and id checks

Services are stateless singletons; the store is passed in on every call, so
tests can hand them an isolated DurableStore.
"""
