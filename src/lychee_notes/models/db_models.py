"""SQLAlchemy database models for Lychee Notes."""
import logging
from typing import Optional

from sqlalchemy import (Column, DateTime, ForeignKey, Integer, String, Table,
                        Text, create_engine, event)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool

from lychee_notes.config import LycheeConfig, config
from lychee_notes.models.schema import utc_now

logger = logging.getLogger(__name__)

# Create base class for SQLAlchemy models
Base = declarative_base()

# Execution option read by the "begin" listener to pick the BEGIN flavour
SQLITE_BEGIN_OPTION = "sqlite_begin"

# Association table for tags and notes
note_tags = Table(
    "note_tags",
    Base.metadata,
    Column(
        "note_id",
        Integer,
        ForeignKey("notes.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column(
        "tag_id",
        Integer,
        ForeignKey("tags.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    ),
)


class DBTag(Base):
    """Database model for a tag."""
    __tablename__ = "tags"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False)

    def __repr__(self) -> str:
        """Return string representation of tag."""
        return f"<Tag(id={self.id}, name='{self.name}')>"


class DBNote(Base):
    """Database model for a note."""
    __tablename__ = "notes"
    id = Column(Integer, primary_key=True, autoincrement=True)
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False, index=True)
    updated_at = Column(DateTime, default=utc_now, nullable=False)

    def __repr__(self) -> str:
        """Return string representation of note."""
        preview = (self.content or "")[:30]
        return f"<Note(id={self.id}, content='{preview}')>"


def init_db(db_config: Optional[LycheeConfig] = None) -> Engine:
    """Create the engine and the schema.

    The returned engine is the single connection pool for the process; pass
    it explicitly to the services and dispose it on shutdown.

    Every connection is configured with:
    - WAL journal mode so readers see a consistent snapshot while a writer works
    - foreign key enforcement (off by default in SQLite)
    - a busy timeout so concurrent writers queue up instead of failing
    - driver-level autocommit, with BEGIN issued by the "begin" listener so
      SAVEPOINTs behave and writers can ask for BEGIN IMMEDIATE
    """
    db_config = db_config or config
    connect_args = {
        "check_same_thread": False,
        "timeout": db_config.db_busy_timeout,
    }

    if db_config.is_in_memory():
        # The database lives in one connection. A pool of exactly one hands it
        # to a single session at a time, so other callers queue for it.
        engine = create_engine(
            db_config.get_db_url(),
            connect_args=connect_args,
            poolclass=QueuePool,
            pool_size=1,
            max_overflow=0,
            pool_timeout=db_config.db_busy_timeout,
        )
    else:
        engine = create_engine(
            db_config.get_db_url(),
            connect_args=connect_args,
            poolclass=QueuePool,
            pool_size=db_config.db_pool_size,
            max_overflow=db_config.db_pool_size * 2,
            pool_timeout=db_config.db_busy_timeout,
            pool_pre_ping=True,
        )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        # Stop pysqlite from issuing its own BEGIN
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        mode = conn.get_execution_options().get(SQLITE_BEGIN_OPTION, "DEFERRED")
        conn.exec_driver_sql(f"BEGIN {mode}")

    Base.metadata.create_all(engine)
    logger.debug(f"Database schema ready at {engine.url}")
    return engine


def get_session_factory(engine: Engine):
    """Get a session factory for the database."""
    return sessionmaker(bind=engine, expire_on_commit=False)
