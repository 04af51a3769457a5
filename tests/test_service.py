"""
tests/test_service.py -- Unit tests for auth/service.py.

AuthService runs against an in-memory RecordStore and a FakeClock (see
conftest), so these tests exercise the real persistence path without HTTP.

Covers:
  - signup validation, duplicate emails, generated ids
  - login success, uniform failure, legacy credential upgrade
  - profile update limits
  - the full reset flow including replay and expiry
"""

from __future__ import annotations

import threading

import pytest

from auth.models import PRIVATE_FIELDS
from auth.passwords import legacy_digest
from core.errors import (
    AuthError,
    ConflictError,
    ExpiredError,
    MismatchError,
    NoRequestError,
    NotFoundError,
    ValidationError,
)
from store.records import ACCOUNTS


# ===========================================================================
# Signup
# ===========================================================================


class TestSignup:
    def test_signup_creates_account(self, service, records, clock):
        account = service.signup("a@x.com", "pw1", name="A")

        assert account.id == f"acct_{clock.now}"
        assert account.email == "a@x.com"
        assert account.name == "A"
        assert account.role == "user"
        assert account.created_at.endswith("Z")
        stored = records.read(ACCOUNTS)
        assert len(stored) == 1
        assert stored[0]["passwordHash"] != "pw1"
        assert len(stored[0]["passwordSalt"]) == 32

    def test_signup_keeps_given_role(self, service):
        assert service.signup("admin@x.com", "pw1", role="admin").role == "admin"

    @pytest.mark.parametrize("email,password", [(None, "pw1"), ("a@x.com", None), ("", "pw1"), ("a@x.com", "")])
    def test_missing_fields(self, service, email, password):
        with pytest.raises(ValidationError) as exc_info:
            service.signup(email, password)
        assert exc_info.value.message == "email and password required"

    def test_duplicate_email_conflicts_regardless_of_password(self, service, records):
        service.signup("a@x.com", "pw1")
        with pytest.raises(ConflictError) as exc_info:
            service.signup("a@x.com", "something else")
        assert exc_info.value.message == "email exists"
        assert len(records.read(ACCOUNTS)) == 1

    def test_email_match_is_case_sensitive(self, service):
        service.signup("a@x.com", "pw1")
        service.signup("A@x.com", "pw1")
        assert len(service.list_accounts()) == 2

    def test_same_millisecond_signups_get_distinct_ids(self, service):
        first = service.signup("a@x.com", "pw1")
        second = service.signup("b@x.com", "pw1")
        assert first.id != second.id

    def test_concurrent_signups_for_one_email(self, service, records):
        """Exactly one of several racing signups for the same email wins."""
        outcomes = []

        def attempt():
            try:
                service.signup("race@x.com", "pw1")
                outcomes.append("ok")
            except ConflictError:
                outcomes.append("conflict")

        threads = [threading.Thread(target=attempt) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == 1
        assert outcomes.count("conflict") == 7
        assert [r["email"] for r in records.read(ACCOUNTS)] == ["race@x.com"]


# ===========================================================================
# Login
# ===========================================================================


class TestLogin:
    def test_login_returns_signed_up_account(self, service):
        created = service.signup("a@x.com", "pw1")
        assert service.login("a@x.com", "pw1").id == created.id

    def test_wrong_password_and_unknown_email_look_the_same(self, service):
        service.signup("a@x.com", "pw1")
        with pytest.raises(AuthError) as wrong_pw:
            service.login("a@x.com", "nope")
        with pytest.raises(AuthError) as no_user:
            service.login("ghost@x.com", "pw1")
        assert wrong_pw.value.message == no_user.value.message == "invalid credentials"

    def test_missing_fields(self, service):
        with pytest.raises(ValidationError):
            service.login("a@x.com", None)

    def test_legacy_account_is_upgraded_on_login(self, service, records):
        records.write(
            ACCOUNTS,
            [
                {
                    "id": "acct_1",
                    "name": "Old",
                    "email": "old@x.com",
                    "role": "user",
                    "createdAt": "2020-01-01T00:00:00.000Z",
                    "passwordHash": legacy_digest("pw1"),
                    "avatar": "old.png",
                }
            ],
        )

        assert service.login("old@x.com", "pw1").id == "acct_1"

        stored = records.read(ACCOUNTS)[0]
        assert stored["passwordHash"] != legacy_digest("pw1")
        assert stored["passwordSalt"]
        # Unknown keys survive the rewrite.
        assert stored["avatar"] == "old.png"

    def test_upgraded_account_takes_strong_path_without_writing(self, service, records):
        records.write(
            ACCOUNTS,
            [{"id": "acct_1", "email": "old@x.com", "createdAt": "", "passwordHash": legacy_digest("pw1")}],
        )
        service.login("old@x.com", "pw1")
        upgraded_hash = records.read(ACCOUNTS)[0]["passwordHash"]

        writes = []
        records.on_change(writes.append)
        service.login("old@x.com", "pw1")

        assert writes == []
        assert records.read(ACCOUNTS)[0]["passwordHash"] == upgraded_hash


# ===========================================================================
# Queries and update
# ===========================================================================


class TestQueriesAndUpdate:
    def test_get_by_id(self, service):
        created = service.signup("a@x.com", "pw1")
        assert service.get_by_id(created.id).email == "a@x.com"

    def test_get_by_id_requires_id(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.get_by_id(None)
        assert exc_info.value.message == "id required"

    def test_get_by_id_not_found(self, service):
        with pytest.raises(NotFoundError):
            service.get_by_id("acct_missing")

    def test_update_sets_name_and_description(self, service):
        created = service.signup("a@x.com", "pw1", name="A")
        updated = service.update(created.id, name="B", description="hello")
        assert updated.name == "B"
        assert updated.description == "hello"
        assert service.get_by_id(created.id).description == "hello"

    def test_update_leaves_omitted_fields(self, service):
        created = service.signup("a@x.com", "pw1", name="A")
        service.update(created.id, description="only this")
        assert service.get_by_id(created.id).name == "A"

    def test_update_does_not_touch_credentials(self, service, records):
        created = service.signup("a@x.com", "pw1")
        before = records.read(ACCOUNTS)[0]["passwordHash"]
        service.update(created.id, name="B")
        assert records.read(ACCOUNTS)[0]["passwordHash"] == before
        service.login("a@x.com", "pw1")

    def test_update_unknown_id(self, service):
        with pytest.raises(NotFoundError):
            service.update("acct_missing", name="x")

    def test_public_views_have_no_private_fields(self, service):
        service.signup("a@x.com", "pw1")
        service.request_reset("a@x.com")
        for account in service.list_accounts():
            assert PRIVATE_FIELDS.isdisjoint(account.public_view())


# ===========================================================================
# Password reset
# ===========================================================================


class TestPasswordReset:
    def test_full_reset_flow(self, service, records):
        service.signup("a@x.com", "old-pw")
        token = service.request_reset("a@x.com")

        stored = records.read(ACCOUNTS)[0]
        assert stored["resetTokenHash"] and stored["resetTokenHash"] != token
        assert isinstance(stored["resetTokenExpiry"], int)

        service.complete_reset("a@x.com", token, "new-pw")

        assert service.login("a@x.com", "new-pw")
        with pytest.raises(AuthError):
            service.login("a@x.com", "old-pw")
        stored = records.read(ACCOUNTS)[0]
        assert stored["resetTokenHash"] is None
        assert stored["resetTokenExpiry"] is None

    def test_token_cannot_be_replayed(self, service):
        service.signup("a@x.com", "pw1")
        token = service.request_reset("a@x.com")
        service.complete_reset("a@x.com", token, "pw2")
        with pytest.raises(NoRequestError):
            service.complete_reset("a@x.com", token, "pw3")
        service.login("a@x.com", "pw2")

    def test_expired_token_leaves_password_unchanged(self, service, clock):
        service.signup("a@x.com", "pw1")
        token = service.request_reset("a@x.com")
        clock.advance(3601)
        with pytest.raises(ExpiredError):
            service.complete_reset("a@x.com", token, "pw2")
        service.login("a@x.com", "pw1")

    def test_wrong_token_leaves_reset_pending(self, service):
        service.signup("a@x.com", "pw1")
        token = service.request_reset("a@x.com")
        with pytest.raises(MismatchError):
            service.complete_reset("a@x.com", "f" * 48, "pw2")
        service.complete_reset("a@x.com", token, "pw2")

    def test_request_reset_unknown_email(self, service):
        with pytest.raises(NotFoundError):
            service.request_reset("ghost@x.com")

    def test_request_reset_requires_email(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.request_reset("")
        assert exc_info.value.message == "email required"

    def test_complete_reset_unknown_email(self, service):
        with pytest.raises(NoRequestError):
            service.complete_reset("ghost@x.com", "t", "pw")

    def test_complete_reset_requires_all_fields(self, service):
        with pytest.raises(ValidationError) as exc_info:
            service.complete_reset("a@x.com", "t", None)
        assert exc_info.value.message == "email, token and newPassword required"

    def test_reset_also_upgrades_legacy_account(self, service, records):
        records.write(
            ACCOUNTS,
            [{"id": "acct_1", "email": "old@x.com", "createdAt": "", "passwordHash": legacy_digest("pw1")}],
        )
        token = service.request_reset("old@x.com")
        service.complete_reset("old@x.com", token, "pw2")
        stored = records.read(ACCOUNTS)[0]
        assert stored["passwordSalt"]
        service.login("old@x.com", "pw2")
