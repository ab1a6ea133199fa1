# mediatech/db.py
from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import streamlit as st
from sqlalchemy import event
from sqlmodel import SQLModel, Session, create_engine

from . import config


# ---------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------
# MEDIATECH_DB_URL wins; otherwise a local SQLite file under DATA_DIR.
DB_URL = config.DB_URL

if DB_URL.startswith("sqlite:///") and not DB_URL.endswith(":memory:"):
    Path(DB_URL.replace("sqlite:///", "", 1)).parent.mkdir(parents=True, exist_ok=True)


def _connect_args(url: str) -> dict:
    # For SQLite we need special connect args; pragmas are set per connection below.
    return {"check_same_thread": False} if url.startswith("sqlite") else {}


def _sqlite_pragmas(dbapi_conn, _record) -> None:
    cur = dbapi_conn.cursor()
    cur.execute("PRAGMA journal_mode=WAL;")
    cur.execute("PRAGMA synchronous=NORMAL;")
    cur.execute("PRAGMA busy_timeout=5000;")
    cur.execute("PRAGMA foreign_keys=ON;")
    cur.close()


def build_engine(url: str, **kwargs):
    """
    Plain engine factory, no caching.

    - For SQLite: every new connection gets journal_mode=WAL, busy_timeout
      and foreign_keys=ON.
    """
    engine = create_engine(url, connect_args=_connect_args(url), pool_pre_ping=True, **kwargs)
    if url.startswith("sqlite"):
        event.listen(engine, "connect", _sqlite_pragmas)
    return engine


# ---------------------------------------------------------------------
# Engine factory (cached across reruns & sessions)
# ---------------------------------------------------------------------
@st.cache_resource(show_spinner=False)
def get_engine(db_url: Optional[str] = None):
    """Create (or return cached) SQLModel engine for the app."""
    return build_engine(db_url or DB_URL)


# ---------------------------------------------------------------------
# One-off schema creation (dev / first run)
# ---------------------------------------------------------------------
def create_db_and_tables(engine=None) -> None:
    """
    Create all tables defined in SQLModel metadata.

    Call this once on first run or manage schema via Alembic migrations.
    """
    # NOTE: importing actual models to register metadata
    from . import db_models  # noqa: F401

    SQLModel.metadata.create_all(engine or get_engine())


# ---------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------
@contextmanager
def get_session(engine=None) -> Iterator[Session]:
    """
    Context-managed Session; one session is one unit of work:

        with get_session() as s:
            store.start(s, rental)

    store.py commits or rolls back itself.
    """
    with Session(engine or get_engine(), expire_on_commit=False) as session:
        yield session
