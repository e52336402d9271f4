from sqlalchemy import func, Index
from ..extensions import db
from .enums import report_kind_enum, report_status_enum


class Report(db.Model):
    __tablename__ = "reports"

    id = db.Column(db.String(32), primary_key=True)
    category_id = db.Column(db.String(32), db.ForeignKey("categories.id"), nullable=False)
    # Weak reference: owners may be removed from the identity provider independently
    owner_id = db.Column(db.String(64), nullable=False)
    item_name = db.Column(db.String(200), nullable=False)
    incident_location = db.Column(db.String(200))
    claim_location_id = db.Column(db.String(64))
    description = db.Column(db.Text)
    kind = db.Column(report_kind_enum, nullable=False)
    photo_urls = db.Column(db.JSON, nullable=False, default=list)
    status = db.Column(report_status_enum, nullable=False, server_default="open")
    version = db.Column(db.Integer, nullable=False)
    updated_by = db.Column(db.String(64))
    reported_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_reports_kind_status", "kind", "status"),
        Index("idx_reports_owner", "owner_id"),
        Index("idx_reports_category", "category_id"),
    )
