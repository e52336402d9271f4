from sqlalchemy import func, UniqueConstraint, Index
from ..extensions import db


class Claim(db.Model):
    __tablename__ = "claims"

    id = db.Column(db.String(32), primary_key=True)
    match_id = db.Column(db.String(32), db.ForeignKey("matches.id"), nullable=False)
    staff_id = db.Column(db.String(64), nullable=False)
    recipient_id = db.Column(db.String(64), nullable=False)
    proof_url = db.Column(db.String(512), nullable=False)
    updated_by = db.Column(db.String(64))
    received_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        # A match is handed over at most once
        UniqueConstraint("match_id", name="uq_claims_match"),
        Index("idx_claims_recipient", "recipient_id"),
    )
