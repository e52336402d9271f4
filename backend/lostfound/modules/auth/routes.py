from __future__ import annotations

from flask import jsonify

from ...apis.v1.deps import accounts, bearer_token, media_store, request_data, uploaded_files
from ...errors import InvalidToken
from ...schemas import load
from ...schemas.user import LoginSchema, RegisterSchema, UserSchema, VerifySchema
from . import bp

user_schema = UserSchema()


@bp.post("/register")
def register():
    """Self-registration as a guest.

    Multipart form (or JSON): email, password, username, phone; optional
    ``identityDocument`` image.
    """
    data = load(RegisterSchema(), request_data())
    files = uploaded_files("identityDocument", limit=1)
    with media_store().staged(files, "identity-documents") as urls:
        user = accounts().register(data, urls[0] if urls else None)
    return jsonify({"user": user_schema.dump(user), "message": "Registration successful"}), 201


@bp.post("/login")
def login():
    data = load(LoginSchema(), request_data())
    user, token = accounts().login(data["email"], data["password"])
    return jsonify({"token": token, "user": user_schema.dump(user), "message": "Login successful"})


@bp.post("/verify")
def verify():
    """Check a token from the body or the ``Authorization`` header."""
    data = load(VerifySchema(), request_data())
    token = data.get("token") or bearer_token()
    if not token:
        raise InvalidToken("Unauthorized - token required")
    identity, user = accounts().verify(token)
    return jsonify({
        "valid": True,
        "uid": identity.id,
        "role": identity.role,
        "user": user_schema.dump(user) if user is not None else None,
    })
