"""
LocalSpots Backend - Application Package Initializer
====================================================

What: Marks the `app` directory as a Python package.
Who:  Used by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The backend is split into layers:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← CRUD, proximity search
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Routes parse query strings and map exceptions to status codes, services
    talk to the database through SQLAlchemy, and the proximity search picks
    its distance backend once at startup.
"""

__version__ = "1.0.0"
