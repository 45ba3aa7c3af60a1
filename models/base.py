# models/base.py
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from contextlib import contextmanager


class Base(DeclarativeBase):
    pass


def make_engine(url: str):
    if not url:
        raise RuntimeError("DATABASE_URL not set")
    if url in ("sqlite://", "sqlite:///:memory:"):
        # one shared in-memory database across threads
        return create_engine(url, poolclass=StaticPool,
                             connect_args={"check_same_thread": False}, future=True)
    return create_engine(url, pool_pre_ping=True, future=True)


class Database:
    """Engine + session factory owned by one app instance."""

    def __init__(self, url: str):
        self.url = url
        self.engine = make_engine(url)
        self._factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            autocommit=False,
            future=True,
            expire_on_commit=False,  # prevents DetachedInstanceError after commit
        )

    def session(self):
        return self._factory()

    @contextmanager
    def session_scope(self):
        """Provide a transactional scope around a series of operations."""
        s = self.session()
        try:
            yield s
            s.commit()
        except Exception:
            s.rollback()
            raise
        finally:
            s.close()

    def create_all(self):
        # schema module must be imported so the tables are registered
        from models import schema  # noqa: F401
        Base.metadata.create_all(self.engine, checkfirst=True)

    def dispose(self):
        self.engine.dispose()
