from __future__ import annotations

from flask import Blueprint, jsonify, request

from ...apis.v1.deps import accounts, current_identity, media_store, request_data, uploaded_files
from ...policy import authorize
from ...schemas import load
from ...schemas.user import ProfileUpdateSchema, RoleSchema, UserCreateSchema, UserSchema, UserUpdateSchema

bp = Blueprint("users", __name__, url_prefix="/users")

user_schema = UserSchema()


@bp.get("")
def list_users():
    """Query params: role (optional)."""
    users = accounts().list_users(current_identity(), role=request.args.get("role") or None)
    return jsonify({"users": UserSchema(many=True).dump(users)})


@bp.post("")
def create_user():
    actor = authorize(current_identity(), "users.create")
    data = load(UserCreateSchema(), request_data())
    files = uploaded_files("identityDocument", limit=1)
    with media_store().staged(files, "identity-documents") as urls:
        user = accounts().create_user(actor, data, urls[0] if urls else None)
    return jsonify({"user": user_schema.dump(user), "message": "User created"}), 201


@bp.get("/profile")
def get_profile():
    return jsonify({"user": user_schema.dump(accounts().profile(current_identity()))})


@bp.put("/profile")
def update_profile():
    data = load(ProfileUpdateSchema(), request_data())
    user = accounts().update_profile(current_identity(), data)
    return jsonify({"user": user_schema.dump(user), "message": "Profile updated"})


@bp.get("/<user_id>")
def get_user(user_id: str):
    return jsonify({"user": user_schema.dump(accounts().get_user(current_identity(), user_id))})


@bp.put("/<user_id>")
def update_user(user_id: str):
    actor = authorize(current_identity(), "users.update")
    data = load(UserUpdateSchema(), request_data())
    files = uploaded_files("identityDocument", limit=1)
    with media_store().staged(files, "identity-documents") as urls:
        user, replaced = accounts().update_user(actor, user_id, data, urls[0] if urls else None)
    if replaced:
        media_store().discard(replaced)
    return jsonify({"user": user_schema.dump(user), "message": "User updated"})


@bp.patch("/<user_id>/role")
def set_role(user_id: str):
    data = load(RoleSchema(), request_data())
    user = accounts().set_role(current_identity(), user_id, data["role"])
    return jsonify({"user": user_schema.dump(user), "message": "Role updated"})


@bp.delete("/<user_id>")
def delete_user(user_id: str):
    document_url = accounts().delete_user(current_identity(), user_id)
    if document_url:
        media_store().discard(document_url)
    return jsonify({"message": "User deleted"})
