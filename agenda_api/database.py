from typing import Iterable

from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from agenda_api.config import settings
from agenda_api.logging_config import get_logger

logger = get_logger("database")


def build_engine(database_url: str):
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url, pool_pre_ping=True, pool_recycle=300)


engine = build_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None) -> None:
    """Create all tables that don't exist yet."""
    import agenda_api.models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)


def _insert_for(db: Session, model):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert(model.__table__)
    if dialect == "sqlite":
        return sqlite.insert(model.__table__)
    raise NotImplementedError(f"Upsert is not supported for dialect {dialect}")


def upsert(db: Session, model, values: dict, index_elements: Iterable[str], update_fields: Iterable[str]) -> None:
    """INSERT ... ON CONFLICT (index_elements) DO UPDATE as one statement."""
    stmt = _insert_for(db, model).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=list(index_elements),
        set_={field: getattr(stmt.excluded, field) for field in update_fields},
    )
    db.execute(stmt)


def insert_ignore(db: Session, model, values: dict, index_elements: Iterable[str]) -> bool:
    """INSERT ... ON CONFLICT DO NOTHING. Returns True when a row was inserted."""
    stmt = _insert_for(db, model).values(**values)
    stmt = stmt.on_conflict_do_nothing(index_elements=list(index_elements))
    result = db.execute(stmt)
    return bool(result.rowcount)
