from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from testmgmt.models.otp import OtpChallenge, OtpPurpose

MINUTE = timedelta(minutes=1)


def _challenge(created_at, email="alice@x.com", purpose=OtpPurpose.verify_email,
               code="123456", used=False):
    return OtpChallenge(
        email=email,
        code=code,
        purpose=purpose,
        expires_at=created_at + timedelta(minutes=10),
        used=used,
        created_at=created_at,
    )


def test_count_recent_uses_created_at_lower_bound(store, start):
    store.insert(_challenge(start, used=True))
    store.insert(_challenge(start + 5 * MINUTE, used=True))
    store.insert(_challenge(start, purpose=OtpPurpose.reset_password))

    assert store.count_recent("alice@x.com", OtpPurpose.verify_email, start) == 2
    assert store.count_recent(
        "alice@x.com", OtpPurpose.verify_email, start + MINUTE
    ) == 1
    assert store.count_recent("bob@x.com", OtpPurpose.verify_email, start) == 0


def test_unique_index_rejects_second_unused_challenge(store, start):
    store.insert(_challenge(start, code="111111"))

    with pytest.raises(IntegrityError):
        store.insert(_challenge(start, code="222222"))


def test_supersede_and_insert_marks_previous_used(store, start):
    store.insert(_challenge(start, code="111111"))

    superseded = store.supersede_and_insert(_challenge(start + MINUTE, code="222222"))

    assert superseded == 1
    assert store.find_valid("alice@x.com", "111111", OtpPurpose.verify_email, start) is None
    found = store.find_valid(
        "alice@x.com", "222222", OtpPurpose.verify_email, start + MINUTE
    )
    assert found is not None and found.used is False


def test_invalidate_unused_is_scoped_to_pair(store, start):
    store.insert(_challenge(start, code="111111"))
    store.insert(_challenge(start, purpose=OtpPurpose.reset_password, code="222222"))

    assert store.invalidate_unused("alice@x.com", OtpPurpose.verify_email) == 1
    assert store.find_valid(
        "alice@x.com", "222222", OtpPurpose.reset_password, start
    ) is not None


def test_mark_used_transitions_once(store, start):
    store.insert(_challenge(start))
    challenge = store.find_valid("alice@x.com", "123456", OtpPurpose.verify_email, start)

    assert store.mark_used(challenge.id) is True
    assert store.mark_used(challenge.id) is False


def test_delete_expired_is_strict(store, start):
    store.insert(_challenge(start, email="a@x.com"))
    store.insert(_challenge(start + MINUTE, email="b@x.com"))

    assert store.delete_expired(start + timedelta(minutes=10)) == 0
    assert store.delete_expired(start + timedelta(minutes=10, seconds=1)) == 1
    assert store.count_recent("b@x.com", OtpPurpose.verify_email, start) == 1
