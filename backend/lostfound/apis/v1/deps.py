"""Per-request wiring: the caller's identity and the services built over ``db.session``."""
from __future__ import annotations

from flask import current_app, request

from ...errors import AuthenticationError, ValidationError
from ...extensions import db
from ...integrations.storage import MediaStore
from ...security import Identity, IdentityProvider
from ...services import AccountService, CategoryService, LifecycleManager
from ...store import EntityStore


def identity_provider() -> IdentityProvider:
    return current_app.extensions["identity_provider"]


def media_store() -> MediaStore:
    return current_app.extensions["media_store"]


def store() -> EntityStore:
    return EntityStore(db.session)


def lifecycle() -> LifecycleManager:
    return LifecycleManager(store(), max_attachments=current_app.config.get("MAX_REPORT_ATTACHMENTS", 3))


def accounts() -> AccountService:
    return AccountService(store(), identity_provider())


def categories() -> CategoryService:
    return CategoryService(store())


def bearer_token() -> str | None:
    auth = request.headers.get("Authorization") or ""
    if auth.lower().startswith("bearer "):
        return auth[7:].strip() or None
    return None


def current_identity() -> Identity:
    """Resolve the ``Authorization: Bearer`` header; a missing token is a 401."""
    token = bearer_token()
    if not token:
        raise AuthenticationError()
    return identity_provider().verify_token(token)


def request_data() -> dict:
    """Form fields for multipart requests, the JSON body otherwise."""
    if request.mimetype == "multipart/form-data":
        return request.form.to_dict()
    return request.get_json(silent=True) or {}


def uploaded_files(field: str, limit: int | None = None) -> list:
    files = [f for f in request.files.getlist(field) if f and f.filename]
    if limit is not None and len(files) > limit:
        raise ValidationError(f"At most {limit} files can be uploaded in '{field}'")
    return files
