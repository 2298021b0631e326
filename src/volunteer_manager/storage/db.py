"""
Инициализация базы данных и сессий SQLAlchemy.

Назначение:
- Создание engine (лениво, при первом обращении)
- Контекстный менеджер для сессий
- Единая точка доступа к БД для всех сервисов
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from volunteer_manager.common.config import get_settings

# Фабрика контекстов сессий; сервисы принимают её, чтобы тесты могли подменить БД
SessionFactory = Callable[[], AbstractContextManager[Session]]

# =============================================================================
# ENGINE / SESSION FACTORY
# =============================================================================
_engine: Engine | None = None
_session_local: sessionmaker[Session] | None = None


def get_engine() -> Engine:
    """
    Singleton engine.
    """
    global _engine, _session_local
    if _engine is None:
        _engine = create_engine(
            get_settings().postgres_dsn,
            pool_pre_ping=True,
        )
        _session_local = sessionmaker(
            bind=_engine,
            autocommit=False,
            autoflush=False,
        )
    return _engine


# =============================================================================
# CONTEXT MANAGER
# =============================================================================
@contextmanager
def db_session() -> Iterator[Session]:
    """
    Контекстный менеджер для работы с БД.

    Использование:
        with db_session() as session:
            session.add(...)
    """
    get_engine()
    assert _session_local is not None
    session: Session = _session_local()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
