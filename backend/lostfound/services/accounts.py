from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select

from ..errors import AppError, HasDependents, UserNotFound, ValidationError
from ..models import Report, User
from ..models.enums import ROLES
from ..policy import authorize, ensure_not_self
from ..security import Identity, IdentityProvider
from ..store import EntityStore, Operation

logger = logging.getLogger(__name__)

USER_FIELDS = ("username", "email", "phone", "role", "identity_document_url", "created_by", "updated_by")


def _active_reports_of(user_id: str):
    return select(Report.id).where(Report.owner_id == user_id, Report.status.in_(("open", "matched")))


class AccountService:
    """User records kept in step with their identity-provider accounts.

    The provider commits on its own, so every change here is two steps. When
    the second step fails the first is undone and the original error is
    re-raised.
    """

    def __init__(self, store: EntityStore, identity: IdentityProvider):
        self.store = store
        self.identity = identity

    # -- public ---------------------------------------------------------------

    def register(self, data: dict, identity_document_url: str | None = None) -> User:
        return self._provision(data, role="guest", created_by=None, identity_document_url=identity_document_url)

    def login(self, email: str, password: str) -> tuple[User, str]:
        uid, token = self.identity.sign_in(email, password)
        user = self.store.get("users", uid, missing=UserNotFound("No user record for this account"))
        logger.info("User %s signed in", uid)
        return user, token

    def verify(self, token: str) -> tuple[Identity, Optional[User]]:
        identity = self.identity.verify_token(token)
        return identity, self.store.find("users", identity.id)

    # -- own profile ----------------------------------------------------------

    def profile(self, actor: Identity) -> User:
        authorize(actor, "profile.read")
        return self.store.get("users", actor.id, missing=UserNotFound())

    def update_profile(self, actor: Identity, changes: dict) -> User:
        authorize(actor, "profile.update")
        self.profile(actor)
        patch = {k: v for k, v in changes.items() if k in ("username", "phone") and v is not None}
        patch["updated_by"] = actor.id
        user = self.store.transact([Operation.update("users", actor.id, patch, missing=UserNotFound())])[0]
        if "username" in patch:
            self.identity.update_user(actor.id, display_name=patch["username"])
        return user

    # -- administration -------------------------------------------------------

    def list_users(self, actor: Identity, role: str | None = None) -> list[User]:
        authorize(actor, "users.read")
        return self.store.query("users", order_by=User.created_at.desc(), role=role)

    def get_user(self, actor: Identity, user_id: str) -> User:
        authorize(actor, "users.read")
        return self.store.get("users", user_id, missing=UserNotFound())

    def create_user(self, actor: Identity, data: dict, identity_document_url: str | None = None) -> User:
        authorize(actor, "users.create")
        return self._provision(data, role=data.get("role") or "guest", created_by=actor.id,
                               identity_document_url=identity_document_url)

    def update_user(self, actor: Identity, user_id: str, changes: dict,
                    identity_document_url: str | None = None) -> tuple[User, Optional[str]]:
        """Apply an admin edit; returns the user and the identity document URL it replaced, if any."""
        authorize(actor, "users.update")
        user = self.get_user(actor, user_id)
        role = changes.get("role")
        if role is not None:
            _check_role(role)

        old_email, old_claims = user.email, self.identity.get_claims(user.id)
        replaced = user.identity_document_url if identity_document_url else None
        patch = {k: changes[k] for k in ("username", "email", "phone", "role") if changes.get(k) is not None}
        if identity_document_url:
            patch["identity_document_url"] = identity_document_url
        patch["updated_by"] = actor.id

        email_changed = "email" in patch and patch["email"].strip().lower() != old_email
        role_changed = role is not None and role != old_claims.get("role")
        if email_changed or "username" in patch:
            self.identity.update_user(
                user.id,
                email=patch["email"] if email_changed else None,
                display_name=patch.get("username"),
            )
            if email_changed:
                patch["email"] = patch["email"].strip().lower()
        if role_changed:
            self.identity.set_role_claims(user.id, role)
        try:
            user = self.store.transact([Operation.update("users", user.id, patch, missing=UserNotFound())])[0]
        except Exception:
            logger.warning("Rolling back identity changes for %s after a failed user update", user_id)
            if email_changed:
                self.identity.update_user(user_id, email=old_email)
            if role_changed:
                self.identity.set_claims(user_id, old_claims)
            raise
        logger.info("User %s updated by %s", user_id, actor.id)
        return user, replaced

    def set_role(self, actor: Identity, user_id: str, role: str) -> User:
        authorize(actor, "users.set_role")
        _check_role(role)
        self.get_user(actor, user_id)
        previous = self.identity.get_claims(user_id)
        self.identity.set_role_claims(user_id, role)
        try:
            user = self.store.transact([
                Operation.update("users", user_id, {"role": role, "updated_by": actor.id}, missing=UserNotFound()),
            ])[0]
        except Exception:
            logger.warning("Restoring claims of %s after a failed role update", user_id)
            self.identity.set_claims(user_id, previous)
            raise
        logger.info("Role of %s set to %s by %s", user_id, role, actor.id)
        return user

    def delete_user(self, actor: Identity, user_id: str) -> Optional[str]:
        """Delete a user without active reports; returns their identity document URL."""
        authorize(actor, "users.delete")
        ensure_not_self(actor, user_id)
        user = self.get_user(actor, user_id)
        snapshot = {name: getattr(user, name) for name in USER_FIELDS}
        if self.store.exists(_active_reports_of(user_id)):
            raise HasDependents("User still owns open or matched reports")

        self.store.transact([
            Operation.absent("reports", _active_reports_of(user_id),
                             HasDependents("User still owns open or matched reports")),
            Operation.delete("users", user_id, missing=UserNotFound()),
        ])
        try:
            self.identity.delete_user(user_id)
        except UserNotFound:
            logger.warning("User %s had no identity-provider account", user_id)
        except AppError:
            logger.warning("Restoring user record %s after identity-provider delete failed", user_id)
            self.store.put("users", user_id, snapshot)
            raise
        logger.info("User %s deleted by %s", user_id, actor.id)
        return snapshot["identity_document_url"]

    # -- helpers --------------------------------------------------------------

    def _provision(self, data: dict, *, role: str, created_by: str | None,
                   identity_document_url: str | None) -> User:
        _check_role(role)
        uid = self.identity.create_user(data.get("email"), data.get("password"), data.get("username"))
        try:
            self.identity.set_role_claims(uid, role)
            user = self.store.put("users", uid, {
                "username": data.get("username"),
                "email": data["email"].strip().lower(),
                "phone": data.get("phone"),
                "role": role,
                "identity_document_url": identity_document_url,
                "created_by": created_by or uid,
                "updated_by": created_by or uid,
            })
        except Exception:
            logger.warning("Deleting auth account %s after the user record could not be stored", uid)
            self.identity.delete_user(uid)
            raise
        logger.info("User %s (%s) created by %s", uid, role, created_by or "self-registration")
        return user


def _check_role(role: str) -> None:
    if role not in ROLES:
        raise ValidationError("Invalid role")
