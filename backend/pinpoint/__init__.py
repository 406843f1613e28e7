"""
Pinpoint Backend — Application Package Initializer
===================================================

What: Collaborative image annotation service (users, images, markers, comments).
Who:  Imported by uvicorn (`pinpoint.main:app`), Alembic and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │   Routes + WebSocket (API Layer)    │  ← HTTP / realtime concerns only
    ├─────────────────────────────────────┤
    │  Services (store, users, realtime)  │  ← Invariants, cascades, fan-out
    ├─────────────────────────────────────┤
    │  Security (credentials, tokens)     │  ← scrypt + signed session tokens
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    Every service is constructed once per application in `registry.py` and
    handed to routes through FastAPI dependencies.
"""

__version__ = "1.0.0"
__description__ = "Collaborative image annotation with markers and threaded comments"
