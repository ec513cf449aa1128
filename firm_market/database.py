"""Database setup for the firm market backend.

This module configures a SQLAlchemy engine and session factory from
``DATABASE_URL``. It also provides ``init_db`` to create the schema and
seed the market totals, and ``unit_of_work`` to group several writes into
one transaction that is either committed whole or rolled back whole.

The ``get_db`` function is provided as a FastAPI dependency to obtain a
database session for each request. Sessions are automatically closed after
the request lifecycle.
"""

from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from firm_market.config import DATABASE_URL


def make_engine(url: str, lock_timeout: float = 30.0):
    """Create an engine for ``url``.

    SQLite requires special options for multi-threaded access; file-backed
    SQLite databases are also switched to WAL so readers do not block the
    writer. ``lock_timeout`` is how long a SQLite writer waits for another
    writer's lock before failing. Other backends such as PostgreSQL need no
    extra arguments.
    """
    if not url.startswith("sqlite"):
        return create_engine(url)

    engine = create_engine(
        url, connect_args={"check_same_thread": False, "timeout": lock_timeout}
    )

    if ":memory:" not in url and url != "sqlite://":

        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    return engine


engine = make_engine(DATABASE_URL)

# ``autocommit`` and ``autoflush`` are disabled to give us explicit control
# over when commits happen.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def init_db(bind=None) -> None:
    """Create all tables and seed one zero row per catalog outcome.

    Existing totals are never overwritten, so calling this on every start
    is safe.
    """
    from firm_market.catalog import get_catalog
    from firm_market.models import MarketSequence, MarketTotal

    bind = bind if bind is not None else engine
    Base.metadata.create_all(bind=bind)

    session = sessionmaker(autocommit=False, autoflush=False, bind=bind)()
    try:
        with unit_of_work(session):
            seeded = {row.outcome for row in session.query(MarketTotal.outcome).all()}
            for outcome in get_catalog():
                if outcome not in seeded:
                    session.add(MarketTotal(outcome=outcome, shares=0.0))
            if session.get(MarketSequence, 1) is None:
                session.add(MarketSequence(id=1, trades=0))
    finally:
        session.close()


def begin_write(db) -> None:
    """Open ``db``'s transaction as a write transaction.

    pysqlite emits no BEGIN before a SELECT, so without this the reads that
    validate a trade would run outside the transaction that writes it. On
    SQLite this takes the database write lock up front with
    ``BEGIN IMMEDIATE``; elsewhere row locks (``SELECT ... FOR UPDATE``) and
    version columns do the same job. The session must not already be in a
    transaction.
    """
    conn = db.connection()
    if conn.dialect.name == "sqlite":
        conn.exec_driver_sql("BEGIN IMMEDIATE")


@contextmanager
def unit_of_work(db):
    """Commit everything done inside the block, or nothing at all.

    Any exception raised in the block (or by the commit itself) rolls the
    session back before it propagates.
    """
    try:
        yield db
        db.commit()
    except BaseException:
        db.rollback()
        raise


def get_db():
    """Yield a database session for a single request.

    This function is designed to be used as a FastAPI dependency. It creates
    a new SQLAlchemy session from ``SessionLocal`` and yields it. After the
    request is finished, the session is closed automatically.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
