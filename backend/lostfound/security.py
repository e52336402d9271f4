from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from .errors import (
    AuthenticationError,
    EmailAlreadyInUse,
    IdentityProviderError,
    InvalidToken,
    UserNotFound,
    ValidationError,
)
from .models.account import AuthAccount

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6


@dataclass(frozen=True)
class Identity:
    """An authenticated caller: the provider uid plus its custom claims."""

    id: str
    claims: dict = field(default_factory=dict)

    @property
    def role(self) -> str:
        return str(self.claims.get("role") or "guest")


class IdentityProvider:
    """Credential store and session-token issuer.

    The API treats this as an external collaborator: it owns the
    ``auth_accounts`` table and commits every change immediately, outside of
    any entity-store transaction.
    """

    def __init__(self, session: Session, secret_key: str, max_age: int):
        self.session = session
        self.max_age = max_age
        # Salt provides namespace isolation for tokens
        self._serializer = URLSafeTimedSerializer(secret_key=secret_key, salt="auth-token")

    # -- accounts -------------------------------------------------------------

    def create_user(self, email: str, password: str, display_name: str | None = None) -> str:
        email = _normalize_email(email)
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if self._by_email(email) is not None:
            raise EmailAlreadyInUse()

        uid = uuid.uuid4().hex
        account = AuthAccount(
            uid=uid,
            email=email,
            display_name=display_name,
            password_hash=generate_password_hash(password),
            claims={},
        )
        self.session.add(account)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise EmailAlreadyInUse() from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise IdentityProviderError() from exc
        logger.info("Created auth account %s", uid)
        return uid

    def update_user(self, uid: str, *, email: str | None = None, display_name: str | None = None) -> None:
        account = self._account(uid)
        if email is not None:
            email = _normalize_email(email)
            other = self._by_email(email)
            if other is not None and other.uid != uid:
                raise EmailAlreadyInUse()
            account.email = email
        if display_name is not None:
            account.display_name = display_name
        self._commit()

    def get_claims(self, uid: str) -> dict:
        return dict(self._account(uid).claims or {})

    def set_role_claims(self, uid: str, role: str) -> None:
        self.set_claims(uid, {**self.get_claims(uid), "role": role})

    def set_claims(self, uid: str, claims: dict[str, Any]) -> None:
        account = self._account(uid)
        account.claims = dict(claims)
        self._commit()
        logger.info("Updated claims for %s: %s", uid, claims)

    def delete_user(self, uid: str) -> None:
        account = self._account(uid)
        self.session.delete(account)
        self._commit()
        logger.info("Deleted auth account %s", uid)

    # -- sessions -------------------------------------------------------------

    def issue_token(self, uid: str) -> str:
        return self._serializer.dumps({"uid": uid})

    def sign_in(self, email: str, password: str) -> tuple[str, str]:
        """Check credentials and return ``(uid, token)``."""
        account = self._by_email((email or "").strip().lower())
        if account is None or not password or not check_password_hash(account.password_hash, password):
            raise AuthenticationError("Invalid email or password")
        account.last_login_at = func.now()
        self._commit()
        return account.uid, self.issue_token(account.uid)

    def verify_token(self, token: str) -> Identity:
        """Return the identity behind ``token``.

        Claims come from the account at verification time, so a role change is
        effective on the next request and a deleted account's tokens stop working.
        """
        if not token:
            raise InvalidToken()
        try:
            data = self._serializer.loads(token, max_age=self.max_age)
        except SignatureExpired as exc:
            raise InvalidToken("Unauthorized - token expired") from exc
        except BadSignature as exc:
            raise InvalidToken() from exc
        uid = data.get("uid") if isinstance(data, dict) else None
        account = self.session.get(AuthAccount, uid) if uid else None
        if account is None:
            raise InvalidToken()
        return Identity(id=account.uid, claims=dict(account.claims or {}))

    # -- helpers --------------------------------------------------------------

    def _by_email(self, email: str) -> Optional[AuthAccount]:
        return self.session.execute(select(AuthAccount).where(AuthAccount.email == email)).scalar_one_or_none()

    def _account(self, uid: str) -> AuthAccount:
        account = self.session.get(AuthAccount, uid)
        if account is None:
            raise UserNotFound(f"Auth account {uid} not found")
        return account

    def _commit(self) -> None:
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise EmailAlreadyInUse() from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise IdentityProviderError() from exc


def _normalize_email(email: str | None) -> str:
    email = (email or "").strip().lower()
    if not _EMAIL_RE.match(email):
        raise ValidationError("Invalid email format")
    return email
