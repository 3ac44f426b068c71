"""Unit tests for engine configuration"""

from budget_engine.config import settings
from budget_engine.infrastructure.database.session import SessionLocal, engine


def test_engine_pool_follows_settings():
    assert engine.pool.size() == settings.db_pool_size
    assert engine.pool._max_overflow == settings.db_max_overflow
    assert engine.pool._recycle == settings.db_pool_recycle_seconds
    assert engine.echo == settings.sql_echo


def test_session_factory_is_bound_to_engine():
    assert SessionLocal.kw["bind"] is engine
    assert SessionLocal.kw["autoflush"] is False
