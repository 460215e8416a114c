from datetime import datetime, timedelta

import pytest

from lms_backend.core.errors import Conflict, InvalidCredentials, NotFound
from lms_backend.models.user import Role, User
from lms_backend.services.credentials import CredentialStore


def test_create_stores_lowercased_email_and_hashed_secret(credentials: CredentialStore) -> None:
    user = credentials.create(' Ada@Example.COM ', 'Ada', 'analytical-engine')

    assert user.email == 'ada@example.com'
    assert user.role == 'student'
    assert user.hashed_password != 'analytical-engine'
    assert user.avatar == 'default-avatar.png'
    assert user.last_active is not None


def test_create_accepts_role(credentials: CredentialStore) -> None:
    user = credentials.create('grace@example.com', 'Grace', 'compiler-pass', Role.INSTRUCTOR)

    assert user.role == 'instructor'


def test_create_rejects_email_differing_only_in_case(credentials: CredentialStore) -> None:
    credentials.create('a@x.com', 'First', 'password-one')

    with pytest.raises(Conflict):
        credentials.create('A@X.com', 'Second', 'password-two')


def test_create_maps_unique_constraint_race_to_conflict(credentials: CredentialStore, monkeypatch) -> None:
    credentials.create('race@example.com', 'Racer', 'password-one')
    # Pretend the pre-check ran before the concurrent insert committed.
    monkeypatch.setattr(credentials, 'find_by_email', lambda email: None)

    with pytest.raises(Conflict):
        credentials.create('race@example.com', 'Racer Two', 'password-two')

    assert credentials.db.query(User).count() == 1


def test_verify_is_case_insensitive_on_email(credentials: CredentialStore) -> None:
    created = credentials.create('a@x.com', 'Alice', 'pw1-long-enough')

    assert credentials.verify('A@X.com', 'pw1-long-enough').id == created.id


def test_verify_failures_are_indistinguishable(credentials: CredentialStore, monkeypatch) -> None:
    credentials.create('known@example.com', 'Known', 'right-password')
    burned = []
    monkeypatch.setattr('lms_backend.auth.passwords.burn_verification_time', burned.append)

    with pytest.raises(InvalidCredentials) as wrong_password:
        credentials.verify('known@example.com', 'wrong-password')
    with pytest.raises(InvalidCredentials) as unknown_email:
        credentials.verify('nobody@example.com', 'wrong-password')

    assert wrong_password.value.to_dict() == unknown_email.value.to_dict()
    # The unknown email still pays for a bcrypt comparison.
    assert burned == ['wrong-password']


def test_update_secret_replaces_hash(credentials: CredentialStore) -> None:
    user = credentials.create('u@example.com', 'User', 'old-password')

    credentials.update_secret(user.id, 'new-password')

    assert credentials.verify('u@example.com', 'new-password').id == user.id
    with pytest.raises(InvalidCredentials):
        credentials.verify('u@example.com', 'old-password')


def test_update_secret_for_missing_user_raises_not_found(credentials: CredentialStore) -> None:
    with pytest.raises(NotFound):
        credentials.update_secret(999, 'whatever-password')


def test_touch_last_active_moves_timestamp_forward(credentials: CredentialStore) -> None:
    user = credentials.create('t@example.com', 'Touch', 'password-123')
    user.last_active = datetime(2020, 1, 1)
    credentials.db.commit()

    credentials.touch_last_active(user.id)

    credentials.db.refresh(user)
    assert user.last_active > datetime(2020, 1, 1)


def test_touch_last_active_swallows_store_errors(credentials: CredentialStore, monkeypatch) -> None:
    from sqlalchemy.exc import OperationalError

    def failing_commit():
        raise OperationalError('UPDATE users', {}, Exception('database is locked'))

    monkeypatch.setattr(credentials.db, 'commit', failing_commit)

    credentials.touch_last_active(1)


def test_consume_reset_ticket_only_matches_live_tickets(credentials: CredentialStore) -> None:
    user = credentials.create('r@example.com', 'Reset', 'password-123')
    now = datetime(2026, 1, 5, 9, 0)
    credentials.store_reset_ticket(user, 'a' * 64, now + timedelta(minutes=30))

    assert credentials.consume_reset_ticket('b' * 64, 'new-password', now=now) is None
    assert credentials.consume_reset_ticket('a' * 64, 'new-password', now=now) == user.id
    assert credentials.consume_reset_ticket('a' * 64, 'other-password', now=now) is None

    credentials.db.refresh(user)
    assert user.reset_password_token_hash is None
    assert user.reset_password_expires_at is None


def test_consume_reset_ticket_without_update_returning(credentials: CredentialStore, monkeypatch) -> None:
    monkeypatch.setattr(credentials.db.get_bind().dialect, 'update_returning', False)
    user = credentials.create('m@example.com', 'Mysql', 'password-123')
    now = datetime(2026, 1, 5, 9, 0)
    credentials.store_reset_ticket(user, 'd' * 64, now + timedelta(minutes=30))

    assert credentials.consume_reset_ticket('d' * 64, 'new-password', now=now) == user.id
    assert credentials.consume_reset_ticket('d' * 64, 'other-password', now=now) is None

    assert credentials.verify('m@example.com', 'new-password').id == user.id


def test_consume_reset_ticket_clears_expired_ticket(credentials: CredentialStore) -> None:
    user = credentials.create('e@example.com', 'Expired', 'password-123')
    now = datetime(2026, 1, 5, 9, 0)
    credentials.store_reset_ticket(user, 'c' * 64, now - timedelta(minutes=1))

    assert credentials.consume_reset_ticket('c' * 64, 'new-password', now=now) is None

    credentials.db.refresh(user)
    assert user.reset_password_token_hash is None
    assert credentials.verify('e@example.com', 'password-123').id == user.id


def test_delete_removes_user(credentials: CredentialStore) -> None:
    user = credentials.create('d@example.com', 'Delete', 'password-123')

    credentials.delete(user.id)

    with pytest.raises(NotFound):
        credentials.get(user.id)
