from sqlalchemy import func
from ..extensions import db
from .enums import role_enum


class User(db.Model):
    __tablename__ = "users"

    # Same id as the identity provider account
    id = db.Column(db.String(64), primary_key=True)
    username = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    phone = db.Column(db.String(32))
    role = db.Column(role_enum, nullable=False, server_default="guest")
    identity_document_url = db.Column(db.String(512))
    created_by = db.Column(db.String(64))
    updated_by = db.Column(db.String(64))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
