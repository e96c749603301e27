from datetime import datetime, timedelta
from unittest.mock import Mock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from console_rental.core.exceptions import ConflictError, PersistenceError
from console_rental.core.utils import get_zone
from console_rental.db.database import atomic, session_scope, translate_db_error
from console_rental.db.models import Console, Expense, RentalSession
from console_rental.db.repositories import (
    ConsoleRepository,
    ExpenseRepository,
    RentalRepository,
)

TZ = get_zone("Asia/Jakarta")
NOW = datetime(2024, 3, 15, 12, 0, tzinfo=TZ)


def make_rental(sid, console_id, start, active=True):
    return RentalSession(
        id=sid,
        console_id=console_id,
        console_type="PS4",
        customer_name="Andi",
        start_time=start,
        is_active=active,
        is_membership_backed=False,
    )


# ---------- RentalRepository ----------


def test_active_lookup(sqlite_session, consoles):
    repo = RentalRepository(sqlite_session)
    repo.create_session(make_rental("r1", "tv-2", NOW))
    repo.create_session(make_rental("r0", "tv-1", NOW - timedelta(days=1), active=False))

    assert repo.get_active_for_console("tv-2").id == "r1"
    assert repo.get_active_for_console("tv-1") is None
    assert [r.id for r in repo.list_active()] == ["r1"]


def test_database_rejects_second_active_session(sqlite_session, consoles):
    repo = RentalRepository(sqlite_session)
    repo.create_session(make_rental("r1", "tv-2", NOW))

    with pytest.raises(IntegrityError):
        repo.create_session(make_rental("r2", "tv-2", NOW))


def test_closed_sessions_filtered_by_start_time(sqlite_session, consoles):
    repo = RentalRepository(sqlite_session)
    repo.create_session(make_rental("old", "tv-1", NOW - timedelta(days=3), active=False))
    repo.create_session(make_rental("new", "tv-1", NOW - timedelta(hours=2), active=False))
    repo.create_session(make_rental("live", "tv-2", NOW - timedelta(hours=1)))

    assert [r.id for r in repo.list_closed_between(NOW - timedelta(days=1))] == ["new"]
    assert [r.id for r in repo.list_closed_between()] == ["old", "new"]


# ---------- ExpenseRepository ----------


def test_expense_total_and_window(sqlite_session):
    repo = ExpenseRepository(sqlite_session)
    assert repo.get_total_amount() == 0

    for i, amount in enumerate([1000, 2500]):
        repo.create_expense(
            Expense(
                id=f"e{i}",
                note="Listrik",
                amount=amount,
                timestamp=NOW - timedelta(days=i),
                staff_id="s-1",
                staff_name="Sari",
            )
        )

    assert repo.get_total_amount() == 3500
    assert [e.id for e in repo.list_between(NOW - timedelta(hours=1))] == ["e0"]


# ---------- versioning / error translation ----------


def test_stale_console_write_is_detected(session_factory, consoles):
    first = session_factory()
    second = session_factory()
    try:
        a = ConsoleRepository(first).get_by_id("tv-1")
        b = ConsoleRepository(second).get_by_id("tv-1")

        a.name = "TV One"
        first.commit()

        b.name = "TV Uno"
        with pytest.raises(ConflictError):
            with atomic(second):
                pass
    finally:
        first.close()
        second.close()


def test_translate_db_error():
    assert isinstance(translate_db_error(StaleDataError("stale")), ConflictError)
    integrity = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))
    assert isinstance(translate_db_error(integrity), ConflictError)
    operational = OperationalError("SELECT", {}, Exception("database is locked"))
    assert isinstance(translate_db_error(operational), PersistenceError)


def test_session_scope_commits_and_rolls_back(session_factory):
    with session_scope(session_factory) as session:
        session.add(Console(id="tv-9", name="TV 9", console_type="PS3", status="available"))

    with pytest.raises(RuntimeError):
        with session_scope(session_factory) as session:
            session.get(Console, "tv-9").name = "changed"
            raise RuntimeError("boom")

    with session_factory() as session:
        assert session.get(Console, "tv-9").name == "TV 9"


def test_atomic_rolls_back_on_error():
    session = Mock()
    with pytest.raises(ValueError):
        with atomic(session):
            raise ValueError("bad input")
    session.rollback.assert_called_once()
    session.flush.assert_not_called()
