"""Account service: user records kept consistent with identity-provider accounts."""

import pytest

from lostfound.errors import (
    AuthorizationError,
    ConflictError,
    EmailAlreadyInUse,
    HasDependents,
    IdentityProviderError,
    SelfDeleteForbidden,
    UserNotFound,
    ValidationError,
)
from lostfound.models import AuthAccount, User


class TestProvisioning:
    def test_register_creates_guest(self, accounts, idp):
        user = accounts.register({"email": "ana@example.com", "password": "secret123",
                                  "username": "ana", "phone": "555"})
        assert user.role == "guest"
        assert idp.get_claims(user.id) == {"role": "guest"}

    def test_failed_user_record_deletes_account(self, accounts, idp, store, monkeypatch):
        def broken_put(*args, **kwargs):
            raise ConflictError("store down")

        monkeypatch.setattr(store, "put", broken_put)
        with pytest.raises(ConflictError):
            accounts.register({"email": "ana@example.com", "password": "secret123",
                               "username": "ana", "phone": "555"})
        assert idp.session.query(AuthAccount).count() == 0

    def test_admin_creates_staff(self, accounts, admin):
        user = accounts.create_user(admin[0], {"email": "s@example.com", "password": "secret123",
                                               "username": "s", "role": "staff"})
        assert user.role == "staff"
        assert user.created_by == admin[0].id

    def test_staff_cannot_create_users(self, accounts, staff):
        with pytest.raises(AuthorizationError):
            accounts.create_user(staff[0], {"email": "x@example.com", "password": "secret123", "username": "x"})

    def test_bad_role(self, accounts, admin):
        with pytest.raises(ValidationError):
            accounts.create_user(admin[0], {"email": "x@example.com", "password": "secret123",
                                            "username": "x", "role": "root"})

    def test_login(self, accounts, guest):
        user, token = accounts.login("guest1@example.com", "secret123")
        assert user.id == guest[0].id
        identity, _ = accounts.verify(token)
        assert identity.id == guest[0].id


class TestRoles:
    def test_set_role_updates_claims_and_record(self, accounts, admin, guest, idp):
        user = accounts.set_role(admin[0], guest[0].id, "staff")
        assert user.role == "staff"
        assert idp.verify_token(guest[1]).role == "staff"

    def test_failed_store_update_restores_claims(self, accounts, admin, guest, idp, store, monkeypatch):
        def broken_transact(ops):
            raise ConflictError("write lost")

        monkeypatch.setattr(store, "transact", broken_transact)
        with pytest.raises(ConflictError):
            accounts.set_role(admin[0], guest[0].id, "admin")
        assert idp.get_claims(guest[0].id) == {"role": "guest"}

    def test_invalid_role(self, accounts, admin, guest):
        with pytest.raises(ValidationError):
            accounts.set_role(admin[0], guest[0].id, "superuser")


class TestUpdates:
    def test_update_user_changes_email_everywhere(self, accounts, admin, guest, idp):
        user, replaced = accounts.update_user(admin[0], guest[0].id, {"username": "renamed", "email": "New@Example.com"})
        assert user.email == "new@example.com"
        assert replaced is None
        assert idp.sign_in("new@example.com", "secret123")[0] == guest[0].id

    def test_update_user_email_taken(self, accounts, admin, guest, staff):
        with pytest.raises(EmailAlreadyInUse):
            accounts.update_user(admin[0], guest[0].id, {"username": "g", "email": "staff1@example.com"})

    def test_update_profile(self, accounts, guest):
        user = accounts.update_profile(guest[0], {"phone": "555-9999", "role": "admin"})
        assert user.phone == "555-9999"
        assert user.role == "guest"


class TestDeletion:
    def test_cannot_delete_self(self, accounts, admin):
        with pytest.raises(SelfDeleteForbidden):
            accounts.delete_user(admin[0], admin[0].id)

    def test_active_reports_block_deletion(self, accounts, admin, guest, make_report):
        make_report("lost", owner=guest[0])
        with pytest.raises(HasDependents):
            accounts.delete_user(admin[0], guest[0].id)

    def test_delete_removes_record_and_account(self, accounts, admin, guest, idp, store):
        accounts.delete_user(admin[0], guest[0].id)
        assert store.find("users", guest[0].id) is None
        with pytest.raises(UserNotFound):
            idp.get_claims(guest[0].id)

    def test_failed_account_delete_restores_record(self, accounts, admin, guest, idp, store, monkeypatch):
        def broken_delete(uid):
            raise IdentityProviderError()

        monkeypatch.setattr(idp, "delete_user", broken_delete)
        with pytest.raises(IdentityProviderError):
            accounts.delete_user(admin[0], guest[0].id)
        assert store.get("users", guest[0].id).email == "guest1@example.com"
        assert store.session.get(User, guest[0].id) is not None
