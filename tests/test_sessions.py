from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from accessdemo.sessions import SessionManager


class _Clock:
    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture()
def clock(monkeypatch: pytest.MonkeyPatch) -> _Clock:
    fake = _Clock()
    monkeypatch.setattr(SessionManager, "_now", lambda self: fake.now)
    return fake


def test_issue_resolve_and_revoke(clock: _Clock) -> None:
    manager = SessionManager()
    token = manager.issue(7)

    assert manager.resolve(token) == 7
    assert manager.resolve("unknown") is None
    assert manager.revoke(token) is True
    assert manager.revoke(token) is False
    assert manager.resolve(token) is None


def test_idle_timeout_is_refreshed_by_use(clock: _Clock) -> None:
    manager = SessionManager(idle_timeout=timedelta(minutes=10), max_lifetime=timedelta(hours=1))
    token = manager.issue(1)

    clock.advance(minutes=9)
    assert manager.resolve(token) == 1
    clock.advance(minutes=9)
    assert manager.resolve(token) == 1
    clock.advance(minutes=10)
    assert manager.resolve(token) is None


def test_max_lifetime_is_absolute(clock: _Clock) -> None:
    manager = SessionManager(idle_timeout=timedelta(minutes=10), max_lifetime=timedelta(minutes=25))
    token = manager.issue(1)

    for _ in range(3):
        clock.advance(minutes=8)
        assert manager.resolve(token) == 1
    clock.advance(minutes=2)
    assert manager.resolve(token) is None


def test_expires_in_uses_shortest_timeout() -> None:
    assert SessionManager().expires_in == 30 * 60
    manager = SessionManager(idle_timeout=timedelta(hours=2), max_lifetime=timedelta(hours=1))
    assert manager.expires_in == 3600


def test_timeouts_must_be_positive() -> None:
    with pytest.raises(ValueError):
        SessionManager(idle_timeout=timedelta(0))
    with pytest.raises(ValueError):
        SessionManager(max_lifetime=timedelta(minutes=-1))
