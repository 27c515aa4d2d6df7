"""Tests for SessionDeduplicator."""

import pytest

from stride.services.repositories import SessionRepository
from stride.services.session_deduplicator import SessionDeduplicator
from tests.factories import (
    CHROME_MAC,
    EDGE_WINDOWS,
    FIREFOX_WINDOWS,
    SAFARI_IPHONE,
    add_session,
    create_user,
    minutes_ago,
)


@pytest.fixture
def deduplicator(db):
    return SessionDeduplicator(SessionRepository(db), max_sessions=3)


def active_ids(db, user_id):
    return [s.session_id for s in SessionRepository(db).find_active_by_user(user_id)]


def test_keeps_newest_per_device(db, deduplicator, user):
    add_session(db, user.id, "mac-old", CHROME_MAC, created_at=minutes_ago(60))
    add_session(db, user.id, "mac-new", CHROME_MAC, created_at=minutes_ago(5))
    add_session(db, user.id, "phone", SAFARI_IPHONE, created_at=minutes_ago(30))

    assert deduplicator.deduplicate(user.id) == 1
    db.commit()

    assert active_ids(db, user.id) == ["mac-new", "phone"]


def test_same_user_agent_on_another_ip_is_another_device(db, deduplicator, user):
    add_session(db, user.id, "home", CHROME_MAC, "198.51.100.1", minutes_ago(10))
    add_session(db, user.id, "office", CHROME_MAC, "198.51.100.2", minutes_ago(5))

    assert deduplicator.deduplicate(user.id) == 0


def test_caps_active_sessions(db, deduplicator, user):
    add_session(db, user.id, "oldest", CHROME_MAC, created_at=minutes_ago(40))
    add_session(db, user.id, "b", FIREFOX_WINDOWS, created_at=minutes_ago(30))
    add_session(db, user.id, "c", SAFARI_IPHONE, created_at=minutes_ago(20))
    add_session(db, user.id, "d", EDGE_WINDOWS, created_at=minutes_ago(10))

    assert deduplicator.deduplicate(user.id) == 1
    db.commit()

    assert active_ids(db, user.id) == ["d", "c", "b"]


def test_idempotent(db, deduplicator, user):
    add_session(db, user.id, "a", CHROME_MAC, created_at=minutes_ago(20))
    add_session(db, user.id, "b", CHROME_MAC, created_at=minutes_ago(10))

    assert deduplicator.deduplicate(user.id) == 1
    db.commit()
    assert deduplicator.deduplicate(user.id) == 0


def test_no_sessions(deduplicator, user):
    assert deduplicator.deduplicate(user.id) == 0


def test_deduplicate_device_revokes_matching_pair(db, deduplicator, user):
    add_session(db, user.id, "a", CHROME_MAC, "198.51.100.1")
    add_session(db, user.id, "b", FIREFOX_WINDOWS, "198.51.100.1")

    assert deduplicator.deduplicate_device(user.id, CHROME_MAC, "198.51.100.1") == 1
    db.commit()

    assert active_ids(db, user.id) == ["b"]


def test_enforce_cap_with_reserve_makes_room(db, deduplicator, user):
    add_session(db, user.id, "a", CHROME_MAC, created_at=minutes_ago(30))
    add_session(db, user.id, "b", FIREFOX_WINDOWS, created_at=minutes_ago(20))
    add_session(db, user.id, "c", SAFARI_IPHONE, created_at=minutes_ago(10))

    assert deduplicator.enforce_cap(user.id, reserve=1) == 1
    db.commit()

    assert active_ids(db, user.id) == ["c", "b"]


def test_other_users_untouched(db, deduplicator, user):
    other = create_user(db, "other@example.com")
    add_session(db, other.id, "x", CHROME_MAC, created_at=minutes_ago(20))
    add_session(db, other.id, "y", CHROME_MAC, created_at=minutes_ago(10))

    assert deduplicator.deduplicate(user.id) == 0
    assert len(active_ids(db, other.id)) == 2


def test_cap_with_identical_created_at_still_revokes(db, deduplicator, user):
    same_time = minutes_ago(15)
    records = [
        add_session(db, user.id, "a", CHROME_MAC, created_at=same_time),
        add_session(db, user.id, "b", FIREFOX_WINDOWS, created_at=same_time),
        add_session(db, user.id, "c", SAFARI_IPHONE, created_at=same_time),
        add_session(db, user.id, "d", EDGE_WINDOWS, created_at=same_time),
    ]
    lowest_id = min(records, key=lambda r: r.id).session_id

    assert deduplicator.deduplicate(user.id) == 1
    db.commit()

    remaining = active_ids(db, user.id)
    assert len(remaining) == 3
    assert lowest_id not in remaining
    assert deduplicator.deduplicate(user.id) == 0


def test_same_device_with_identical_created_at_keeps_one(db, deduplicator, user):
    same_time = minutes_ago(15)
    first = add_session(db, user.id, "first", CHROME_MAC, created_at=same_time)
    second = add_session(db, user.id, "second", CHROME_MAC, created_at=same_time)
    keeper = max(first, second, key=lambda r: r.id).session_id

    assert deduplicator.deduplicate(user.id) == 1
    db.commit()

    assert active_ids(db, user.id) == [keeper]


def test_explicit_zero_cap_is_respected(db, user):
    deduplicator = SessionDeduplicator(SessionRepository(db), max_sessions=0)
    add_session(db, user.id, "a", CHROME_MAC)

    assert deduplicator.max_sessions == 0
    assert deduplicator.enforce_cap(user.id) == 1
