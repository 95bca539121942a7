try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from datetime import timedelta

import pytest

from pocketledger.models.session import SessionState, compute_session_state

EXPIRING_SOON = timedelta(minutes=5)
GRACE = timedelta(hours=2)


def _state(now, expires_at, *, has_tokens=True, has_refresh_token=True, grace=GRACE):
    return compute_session_state(
        expires_at=expires_at,
        now=now,
        has_tokens=has_tokens,
        has_refresh_token=has_refresh_token,
        expiring_soon=EXPIRING_SOON,
        grace_period=grace,
    )


@pytest.mark.parametrize(
    ("offset", "expected"),
    [
        (timedelta(hours=1), SessionState.ACTIVE),
        (timedelta(minutes=5, seconds=1), SessionState.ACTIVE),
        (timedelta(minutes=5), SessionState.EXPIRING_SOON),
        (timedelta(minutes=2), SessionState.EXPIRING_SOON),
        (timedelta(0), SessionState.REFRESH_NEEDED),
        (-timedelta(hours=1), SessionState.REFRESH_NEEDED),
        (-timedelta(hours=2), SessionState.REFRESH_NEEDED),
        (-timedelta(hours=3), SessionState.EXPIRED),
    ],
)
def test_state_follows_expiry(now, offset, expected) -> None:
    assert _state(now, now + offset) is expected


def test_no_tokens_is_logged_out(now) -> None:
    assert _state(now, None, has_tokens=False) is SessionState.LOGGED_OUT


def test_expired_without_refresh_token_is_expired(now) -> None:
    state = _state(now, now - timedelta(minutes=1), has_refresh_token=False)
    assert state is SessionState.EXPIRED


def test_undecodable_expiry_counts_as_expired(now) -> None:
    assert _state(now, None) is SessionState.EXPIRED


def test_trusted_grace_period_extends_recovery(now) -> None:
    three_days_ago = now - timedelta(days=3)
    assert _state(now, three_days_ago) is SessionState.EXPIRED
    assert _state(now, three_days_ago, grace=timedelta(days=7)) is SessionState.REFRESH_NEEDED
