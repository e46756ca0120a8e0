from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure the activity_types package is importable when running tests locally
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from activity_types.core import config as core_config  # noqa: E402
from activity_types.core import events  # noqa: E402
from activity_types.db import models  # noqa: E402
from activity_types.db import session as db_session  # noqa: E402
from activity_types.repositories.sql_repository import UserDirectory  # noqa: E402


def _clear_caches() -> None:
    core_config.get_settings.cache_clear()
    db_session.get_engine.cache_clear()
    db_session._get_sessionmaker.cache_clear()  # type: ignore[attr-defined]


@pytest.fixture()
def db_env(tmp_path, monkeypatch):
    """Point DATABASE_URL at a temporary SQLite file and reset settings/engine caches."""
    db_file = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_file}")
    monkeypatch.delenv("MAX_PINNED_ACTIVITY_TYPES", raising=False)
    monkeypatch.delenv("ACTIVITY_TYPE_QUARANTINE_BASE", raising=False)
    _clear_caches()
    events.get_buffered_events(clear=True)
    monkeypatch.setattr(events, "_SUBSCRIBERS", {})

    engine = db_session.get_engine()
    models.Base.metadata.drop_all(bind=engine)
    models.Base.metadata.create_all(bind=engine)

    yield db_file

    try:
        models.Base.metadata.drop_all(bind=engine)
    finally:
        engine.dispose()
        _clear_caches()
        events.get_buffered_events(clear=True)


@pytest.fixture()
def make_user(db_env):
    def _make(username: str = "alice", user_id: str | None = None) -> str:
        with db_session.unit_of_work() as session:
            return UserDirectory(session).create_user(username, user_id=user_id).id

    return _make


@pytest.fixture()
def make_items(db_env):
    """Insert activity types directly: ``[(title, order_num, is_pinned), ...]`` -> {title: id}."""

    def _make(owner_id: str, specs) -> dict[str, str]:
        ids: dict[str, str] = {}
        with db_session.unit_of_work() as session:
            for spec in specs:
                title, order_num = spec[0], spec[1]
                pinned = spec[2] if len(spec) > 2 else False
                item = models.ActivityType(
                    title=title, icon="⭐", owner_id=owner_id, order_num=order_num, is_pinned=pinned
                )
                session.add(item)
                session.flush()
                ids[title] = item.id
        return ids

    return _make
