from sqlalchemy import func, Index
from ..extensions import db


class Match(db.Model):
    __tablename__ = "matches"

    id = db.Column(db.String(32), primary_key=True)
    lost_report_id = db.Column(db.String(32), db.ForeignKey("reports.id"), nullable=False)
    found_report_id = db.Column(db.String(32), db.ForeignKey("reports.id"), nullable=False)
    score = db.Column(db.Float, nullable=False, server_default="0")
    version = db.Column(db.Integer, nullable=False)
    created_by = db.Column(db.String(64))
    updated_by = db.Column(db.String(64))
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_matches_lost", "lost_report_id"),
        Index("idx_matches_found", "found_report_id"),
    )
