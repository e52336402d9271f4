from sqlalchemy import func
from ..extensions import db


class Category(db.Model):
    __tablename__ = "categories"

    id = db.Column(db.String(32), primary_key=True)
    name = db.Column(db.String(120), unique=True, nullable=False)
    updated_by = db.Column(db.String(64))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
