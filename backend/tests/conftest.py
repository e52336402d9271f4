import struct
import zlib
from io import BytesIO

import pytest
from PIL import Image

from lostfound import create_app
from lostfound.extensions import db
from lostfound.security import Identity
from lostfound.services import AccountService, CategoryService, LifecycleManager
from lostfound.store import EntityStore


@pytest.fixture
def app(tmp_path):
    app = create_app("testing", {"UPLOAD_FOLDER": str(tmp_path / "uploads")})
    ctx = app.app_context()
    ctx.push()
    db.create_all()
    yield app
    db.session.remove()
    db.drop_all()
    ctx.pop()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return EntityStore(db.session)


@pytest.fixture
def idp(app):
    return app.extensions["identity_provider"]


@pytest.fixture
def media(app):
    return app.extensions["media_store"]


@pytest.fixture
def lifecycle(store):
    return LifecycleManager(store)


@pytest.fixture
def accounts(store, idp):
    return AccountService(store, idp)


@pytest.fixture
def make_user(accounts):
    """Provision an account plus user record; returns ``(Identity, token)``."""
    counters = {}

    def _make(role="guest", email=None):
        n = counters[role] = counters.get(role, 0) + 1
        email = email or f"{role}{n}@example.com"
        user = accounts._provision(
            {"email": email, "password": "secret123", "username": f"{role}-{n}", "phone": "555-0100"},
            role=role,
            created_by=None,
            identity_document_url=None,
        )
        return Identity(user.id, {"role": role}), accounts.identity.issue_token(user.id)

    return _make


@pytest.fixture
def admin(make_user):
    return make_user("admin")


@pytest.fixture
def staff(make_user):
    return make_user("staff")


@pytest.fixture
def guest(make_user):
    return make_user("guest")


@pytest.fixture
def category(store, admin):
    return CategoryService(store).create(admin[0], "Electronics")


@pytest.fixture
def make_report(lifecycle, category, guest):
    def _make(kind, owner=None, name="Phone"):
        actor = owner or guest[0]
        return lifecycle.create_report(actor, {"kind": kind, "item_name": name, "category_id": category.id})

    return _make


def auth(token):
    return {"Authorization": f"Bearer {token}"}


def png_bytes(color=(200, 30, 30)):
    buf = BytesIO()
    Image.new("RGB", (4, 4), color).save(buf, format="PNG")
    return buf.getvalue()


def png_header(width, height):
    """A PNG that declares ``width`` x ``height`` pixels but carries no pixel data."""

    def chunk(cid, data):
        return struct.pack(">I", len(data)) + cid + data + struct.pack(">I", zlib.crc32(cid + data) & 0xFFFFFFFF)

    ihdr = struct.pack(">IIBBBBB", width, height, 8, 2, 0, 0, 0)
    return b"\x89PNG\r\n\x1a\n" + chunk(b"IHDR", ihdr) + chunk(b"IDAT", b"")
