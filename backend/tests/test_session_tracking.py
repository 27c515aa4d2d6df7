"""Tests for the one-time session tracking bootstrap."""

from datetime import UTC, datetime, timedelta

from stride.services.session_tracking import SessionTrackingBootstrap
from tests.factories import add_session


def test_initialize_sweeps_once(db, db_session_maker, user):
    add_session(
        db, user.id, "stale", created_at=datetime.now(UTC) - timedelta(days=120)
    )
    bootstrap = SessionTrackingBootstrap(db_session_maker)

    assert bootstrap.initialize() == {"deleted_count": 1}
    assert bootstrap.initialized is True

    add_session(
        db, user.id, "stale-2", created_at=datetime.now(UTC) - timedelta(days=120)
    )
    # Already initialized: cached result, no second sweep
    assert bootstrap.initialize() == {"deleted_count": 1}


def test_reset_runs_again(db, db_session_maker, user):
    bootstrap = SessionTrackingBootstrap(db_session_maker)
    bootstrap.initialize()

    add_session(
        db, user.id, "stale", created_at=datetime.now(UTC) - timedelta(days=120)
    )
    bootstrap.reset()

    assert bootstrap.initialized is False
    assert bootstrap.initialize() == {"deleted_count": 1}


def test_failed_sweep_does_not_raise():
    def broken_factory():
        raise RuntimeError("database unavailable")

    bootstrap = SessionTrackingBootstrap(broken_factory)

    assert bootstrap.initialize() is None
    assert bootstrap.initialized is True
