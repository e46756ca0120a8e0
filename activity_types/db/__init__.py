"""Database helpers (engine/session export)."""

from .session import Base, get_engine, get_session, unit_of_work

__all__ = ["Base", "get_engine", "get_session", "unit_of_work"]
