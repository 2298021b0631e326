from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from volunteer_manager.common.config import get_settings
from volunteer_manager.storage.models import Base, User


@pytest.fixture()
def session_factory(tmp_path):
    """
    Отдельная SQLite-база на тест; контракт как у storage.db.db_session.
    """
    engine = create_engine(f"sqlite:///{tmp_path / 'vm.db'}")
    Base.metadata.create_all(engine)
    maker = sessionmaker(bind=engine, autocommit=False, autoflush=False)

    @contextmanager
    def factory() -> Iterator[Session]:
        session = maker()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    try:
        yield factory
    finally:
        engine.dispose()


@pytest.fixture()
def make_user(session_factory):
    def _make(
        user_id: int,
        *,
        first_name: str = "Volunteer",
        last_name: str = "Example",
        display_name: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        privileges: int = 1,
    ) -> int:
        with session_factory() as session:
            session.add(
                User(
                    id=user_id,
                    username=email,
                    first_name=first_name,
                    last_name=last_name,
                    display_name=display_name,
                    phone_number=phone,
                    privileges=privileges,
                )
            )
        return user_id

    return _make


@pytest.fixture()
def settings_guard():
    """
    Тесты меняют singleton-настройки; восстанавливаем всё после теста.
    """
    s = get_settings()
    snapshot = s.model_dump()
    try:
        yield s
    finally:
        for k, v in snapshot.items():
            setattr(s, k, v)
