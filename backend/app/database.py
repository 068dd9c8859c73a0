import logging
from pathlib import Path
from typing import Generator

from fastapi import Depends
from sqlalchemy import create_engine, Engine, inspect
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from . import config

logger = logging.getLogger(__name__)

Base = declarative_base()

# Alembic script directory, used when running migrations programmatically
BACKEND_DIR = Path(__file__).parent.parent          # …/backend/
ALEMBIC_DIR = BACKEND_DIR / "alembic"

_engines: dict[str, Engine] = {}


def get_or_create_engine(db_url: str = config.DATABASE_URL) -> Engine:
    if db_url not in _engines:
        connect_args = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            if db_url.startswith("sqlite:///") and ":memory:" not in db_url:
                Path(db_url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
        _engines[db_url] = create_engine(db_url, connect_args=connect_args)
    return _engines[db_url]


def _run_alembic_upgrade(db_url: str) -> None:
    """Bring the schema at ``db_url`` to the head revision.

    - Brand-new databases (no tables at all) are upgraded from scratch.
    - Databases built by ``create_all`` before Alembic ran (tables present but
      no ``alembic_version``) are stamped to head, since their schema is current.
    - Everything else just runs ``upgrade head``.
    """
    from alembic.config import Config
    from alembic import command

    alembic_cfg = Config()
    alembic_cfg.set_main_option("script_location", str(ALEMBIC_DIR))
    alembic_cfg.set_main_option("sqlalchemy.url", db_url)

    tables = inspect(get_or_create_engine(db_url)).get_table_names()
    if tables and "alembic_version" not in tables:
        command.stamp(alembic_cfg, "head")
        return
    command.upgrade(alembic_cfg, "head")


def init_db(db_url: str = config.DATABASE_URL, *, run_migrations: bool = config.RUN_MIGRATIONS) -> Engine:
    """Create or migrate the schema. Returns the engine bound to ``db_url``."""
    from . import models  # noqa: F401  (register tables on Base.metadata)

    engine = get_or_create_engine(db_url)
    if run_migrations:
        _run_alembic_upgrade(db_url)
    else:
        Base.metadata.create_all(bind=engine)
    logger.info("Database ready (migrations=%s)", run_migrations)
    return engine


def get_db() -> Generator[Session, None, None]:
    engine = get_or_create_engine()
    _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = _SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_store(db: Session = Depends(get_db)):
    """FastAPI dependency: the SQL-backed ``BudgetStore`` for this request."""
    from .store.sql import SqlBudgetStore

    return SqlBudgetStore(db)
