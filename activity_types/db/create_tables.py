"""Create (or drop) the activity type schema.

Usage:
  python -m activity_types.db.create_tables [--drop]
"""
from __future__ import annotations

import argparse

from sqlalchemy.exc import SQLAlchemyError

from .session import Base, get_engine
from . import models  # noqa: F401  # ensure models are imported for metadata


def create_all(engine=None) -> None:
    Base.metadata.create_all(bind=engine or get_engine())


def drop_all(engine=None) -> None:
    Base.metadata.drop_all(bind=engine or get_engine())


def main() -> None:
    ap = argparse.ArgumentParser(description="Create the activity type tables")
    ap.add_argument("--drop", action="store_true", help="drop existing tables first")
    args = ap.parse_args()
    if args.drop:
        drop_all()
    create_all()
    print("Database tables created successfully.")


if __name__ == "__main__":
    try:
        main()
    except SQLAlchemyError as exc:
        raise SystemExit(f"Failed to create tables: {exc}") from exc
