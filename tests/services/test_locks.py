"""
Tests for lock error classification and transactional retries.
"""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from tycoon.core.exceptions import TransientLockTimeoutError
from tycoon.data import get_settings, run_in_transaction
from tycoon.data.locks import is_transient_lock_error
from tycoon.data.models import Seat

from conftest import get_seat, make_game


class DriverError(Exception):
    """Stands in for a driver exception carrying a SQLSTATE."""

    def __init__(self, message, sqlstate=None):
        super().__init__(message)
        self.sqlstate = sqlstate


def driver_error(message, sqlstate=None, cls=OperationalError):
    return cls("UPDATE seats SET balance = ?", {}, DriverError(message, sqlstate))


@pytest.mark.parametrize("sqlstate", ["55P03", "40001", "40P01"])
def test_contention_sqlstates_are_transient(sqlstate):
    assert is_transient_lock_error(driver_error("canceling statement", sqlstate))


@pytest.mark.parametrize(
    "message",
    ["database is locked", "could not obtain lock on row", "Lock timeout exceeded"],
)
def test_contention_messages_are_transient(message):
    assert is_transient_lock_error(driver_error(message))


def test_constraint_violation_is_not_transient():
    exc = driver_error("duplicate key value violates unique constraint", "23505", IntegrityError)
    assert not is_transient_lock_error(exc)


def test_non_driver_errors_are_not_transient():
    assert not is_transient_lock_error(RuntimeError("database is locked"))


@pytest.mark.asyncio
async def test_retries_until_contention_clears(db):
    calls = []

    async def operation(session):
        calls.append(session)
        if len(calls) < 3:
            raise driver_error("database is locked")
        return "done"

    assert await run_in_transaction(operation, attempts=3, backoff_seconds=0) == "done"
    assert len(calls) == 3
    # Every attempt gets a fresh session
    assert len({id(s) for s in calls}) == 3


@pytest.mark.asyncio
async def test_gives_up_after_last_attempt(db):
    calls = []

    async def operation(session):
        calls.append(session)
        raise driver_error("canceling statement due to lock timeout", "55P03")

    with pytest.raises(TransientLockTimeoutError, match="after 4 attempts"):
        await run_in_transaction(operation, attempts=4, backoff_seconds=0)
    assert len(calls) == 4


@pytest.mark.asyncio
async def test_attempts_default_to_settings(db, monkeypatch):
    monkeypatch.setenv("DB_TRANSACTION_ATTEMPTS", "2")
    get_settings.cache_clear()
    calls = []

    async def operation(session):
        calls.append(session)
        raise driver_error("database is locked")

    with pytest.raises(TransientLockTimeoutError):
        await run_in_transaction(operation, backoff_seconds=0)
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_non_transient_error_is_not_retried(db):
    calls = []

    async def operation(session):
        calls.append(session)
        raise driver_error("duplicate key value violates unique constraint", "23505", IntegrityError)

    with pytest.raises(IntegrityError):
        await run_in_transaction(operation, attempts=5, backoff_seconds=0)
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_failed_attempt_is_rolled_back(db):
    _, (first, _) = await make_game(2)
    balances = []

    async def operation(session):
        seat = await session.get(Seat, first)
        balances.append(seat.balance)
        seat.balance -= 100
        await session.flush()
        if len(balances) == 1:
            raise driver_error("database is locked")
        return seat.balance

    assert await run_in_transaction(operation, attempts=2, backoff_seconds=0) == 1400
    assert balances == [1500, 1500]
    assert (await get_seat(first)).balance == 1400
