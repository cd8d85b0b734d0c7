"""
Venue Gallery Backend — Application Package Initializer
========================================================

What: Marks the `app` directory as a Python package.
Who:  Used implicitly by Python's import system and explicitly by Alembic, pytest, and uvicorn.

Architecture Note:
    The backend follows a layered architecture:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │  Category / Image Services          │  ← Orchestration, cascade, counters
    ├─────────────────────────────────────┤
    │  Storage Gateway │ Asset Host       │  ← SQLAlchemy │ Cloudinary
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    └─────────────────────────────────────┘

    Calls only flow downward: routes never touch the gateways directly and
    gateways never call back into services.
"""

__version__ = "1.0.0"
