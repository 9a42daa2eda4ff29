"""
Tests for the database engine factory.
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import NullPool

from db import engine as engine_module
from db.engine import build_engine, dispose_engine, get_engine


def _operational_error():
    return OperationalError("SELECT 1", {}, Exception("cold start"))


@pytest.fixture
def recorded_sleeps(monkeypatch):
    sleeps = []
    monkeypatch.setattr(engine_module.time, "sleep", sleeps.append)
    return sleeps


@pytest.fixture
def _dispose():
    yield
    dispose_engine()


class TestBuildEngine:
    """Tests for build_engine()"""

    def test_uses_null_pool(self, tmp_path):
        engine = build_engine(f"sqlite:///{tmp_path / 'a.db'}")

        assert isinstance(engine.pool, NullPool)
        with engine.connect() as conn:
            assert conn.execute(text("SELECT 1")).scalar() == 1
        engine.dispose()

    def test_skip_warmup(self, monkeypatch, tmp_path):
        warmups = []
        monkeypatch.setattr(engine_module, "_warmup", warmups.append)

        engine = build_engine(f"sqlite:///{tmp_path / 'a.db'}", warmup=False)

        assert warmups == []
        engine.dispose()


class TestGetEngine:
    """Tests for get_engine()"""

    def test_requires_database_url(self):
        with pytest.raises(RuntimeError, match="DATABASE_URL"):
            get_engine()

    def test_cached(self, monkeypatch, tmp_path, _dispose):
        monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'records.db'}")

        first = get_engine()

        assert get_engine() is first
        assert isinstance(first.pool, NullPool)

    def test_dispose_forgets_engine(self, monkeypatch, tmp_path):
        monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'records.db'}")
        first = get_engine()

        dispose_engine()

        assert get_engine() is not first
        dispose_engine()


class TestWarmup:
    """Tests for the SELECT 1 retry loop"""

    def test_retries_with_backoff(self, recorded_sleeps):
        engine = MagicMock()
        engine.connect.side_effect = [_operational_error(), _operational_error(), MagicMock()]

        engine_module._warmup(engine)

        assert engine.connect.call_count == 3
        assert recorded_sleeps == [0.75, 1.5]

    def test_gives_up(self, recorded_sleeps):
        engine = MagicMock()
        engine.connect.side_effect = _operational_error()

        with pytest.raises(OperationalError):
            engine_module._warmup(engine)

        assert engine.connect.call_count == 4
        assert recorded_sleeps == [0.75, 1.5, 3.0]
