from sqlalchemy import func
from ..extensions import db


class AuthAccount(db.Model):
    """Credential record owned by the identity provider, not by the API."""

    __tablename__ = "auth_accounts"

    uid = db.Column(db.String(64), primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    display_name = db.Column(db.String(120))
    password_hash = db.Column(db.Text, nullable=False)
    claims = db.Column(db.JSON, nullable=False, default=dict)
    last_login_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
