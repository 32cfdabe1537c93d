# salon/db.py

from contextlib import contextmanager
from datetime import date

from fastapi import Depends, Request
from sqlalchemy import event, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import SQLModel, Session, create_engine

from salon.models import BookingLock


class SalonStore:
    """Store client handed to the booking components.

    Owns the engine (and so the connection pool). Every unit of work gets its
    own session from :meth:`session` or :meth:`transaction`, and the
    connection goes back to the pool when the block exits, whether it
    committed, rolled back or raised.
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        is_sqlite = database_url.startswith("sqlite")

        self.engine = create_engine(
            database_url,
            echo=echo,          # set to True to see SQL
            connect_args={"check_same_thread": False} if is_sqlite else {},
        )
        if is_sqlite:
            _configure_sqlite(self.engine)
        # Same pool, but SQLite takes the write lock when the transaction begins
        self.write_engine = self.engine.execution_options(sqlite_immediate=True)

    def init_schema(self) -> None:
        SQLModel.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def session(self, immediate: bool = False):
        """Plain session; pass ``immediate=True`` when it is going to write."""
        with Session(self.write_engine if immediate else self.engine) as session:
            yield session

    @contextmanager
    def transaction(self):
        """Session inside a single transaction: commit on success, rollback on error."""
        with Session(self.write_engine) as session:
            with session.begin():
                yield session

    def lock_stylist_day(self, session: Session, stylist_id: int, day: date) -> None:
        """Serialize booking transactions for one stylist and day.

        Bumps the (stylist, day) row in ``booking_lock``, creating it on first
        use. The row lock is held until the surrounding transaction ends, so a
        second booking for the same stylist and day waits here and then reads
        the first one's committed appointment.
        """
        bump = (
            update(BookingLock)
            .where(BookingLock.stylist_id == stylist_id)
            .where(BookingLock.day == day)
            .values(version=BookingLock.version + 1)
        )
        if session.connection().execute(bump).rowcount:
            return

        try:
            with session.begin_nested():
                session.add(BookingLock(stylist_id=stylist_id, day=day, version=1))
        except IntegrityError:
            # Row created concurrently; blocks until that transaction finishes
            session.connection().execute(bump)


def _configure_sqlite(engine) -> None:
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, _):
        # SQLAlchemy emits BEGIN itself (see _on_begin)
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        # Writers queue on the database lock instead of failing on upgrade
        if conn.get_execution_options().get("sqlite_immediate"):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


# Dependency: the store attached to the running app
def get_store(request: Request) -> SalonStore:
    return request.app.state.store


# Dependency: one session per request
def get_session(store: SalonStore = Depends(get_store)):
    with store.session() as session:
        yield session


# Dependency: one writing session per request
def get_write_session(store: SalonStore = Depends(get_store)):
    with store.session(immediate=True) as session:
        yield session
