"""
ClubShelf Voting Backend — Application Package Initializer
============================================================

What: Marks the `app` directory as a Python package.
Who:  Imported by uvicorn (`app.main:app`), Alembic, pytest and the sweep job.

Architecture Note:
    The backend keeps a layered layout:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │     Services (Voting Cycle Logic)   │  ← Preconditions, transactions
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Club-level voting state (cycle fields, current book) is only ever
    written by the voting and winner services, each inside one
    transaction that holds a lock on the club row.
"""

__version__ = "1.0.0"
