from __future__ import annotations

from flask import Blueprint, jsonify, request

from ...apis.v1.deps import current_identity, lifecycle, request_data
from ...schemas import load
from ...schemas.match import MatchCreateSchema, MatchSchema, MatchUpdateSchema

bp = Blueprint("matches", __name__, url_prefix="/matches")

match_schema = MatchSchema()


@bp.get("")
def list_matches():
    """Query params: lostReportId, foundReportId (optional)."""
    matches = lifecycle().list_matches(
        lost_report_id=request.args.get("lostReportId") or None,
        found_report_id=request.args.get("foundReportId") or None,
    )
    return jsonify({"matches": MatchSchema(many=True).dump(matches)})


@bp.get("/<match_id>")
def get_match(match_id: str):
    return jsonify({"match": match_schema.dump(lifecycle().get_match(match_id))})


@bp.post("")
def create_match():
    """Link a lost report to a found report.

    Body JSON: lostReportId, foundReportId (required), score (0..1, default 0).
    Both reports move to ``matched``.
    """
    actor = current_identity()
    data = load(MatchCreateSchema(), request_data())
    match = lifecycle().create_match(actor, data["lost_report_id"], data["found_report_id"], data["score"])
    return jsonify({"match": match_schema.dump(match), "message": "Match created"}), 201


@bp.put("/<match_id>")
def update_match(match_id: str):
    actor = current_identity()
    data = load(MatchUpdateSchema(), request_data())
    match = lifecycle().update_match(
        actor,
        match_id,
        lost_id=data.get("lost_report_id"),
        found_id=data.get("found_report_id"),
        score=data.get("score"),
    )
    return jsonify({"match": match_schema.dump(match), "message": "Match updated"})


@bp.delete("/<match_id>")
def delete_match(match_id: str):
    lifecycle().delete_match(current_identity(), match_id)
    return jsonify({"message": "Match deleted"})
