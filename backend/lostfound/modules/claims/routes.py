from __future__ import annotations

from flask import Blueprint, jsonify, request

from ...apis.v1.deps import current_identity, lifecycle, media_store, request_data, uploaded_files
from ...policy import authorize
from ...schemas import load
from ...schemas.claim import ClaimCreateSchema, ClaimSchema, ClaimUpdateSchema, RecipientSchema
from ...schemas.match import MatchSchema
from ...schemas.report import ReportSummarySchema

bp = Blueprint("claims", __name__, url_prefix="/claims")

claim_schema = ClaimSchema()


@bp.get("")
def list_claims():
    claims = lifecycle().list_claims(current_identity())
    return jsonify({"claims": ClaimSchema(many=True).dump(claims)})


@bp.get("/available-matches")
def available_matches():
    """Unclaimed matches with a summary of both reports, for the claim form."""
    summary = ReportSummarySchema()
    payload = []
    for match, lost, found in lifecycle().available_matches(current_identity()):
        entry = MatchSchema().dump(match)
        entry["lostReport"] = summary.dump(lost) if lost is not None else None
        entry["foundReport"] = summary.dump(found) if found is not None else None
        payload.append(entry)
    return jsonify({"matches": payload})


@bp.get("/available-recipient")
def available_recipient():
    recipient = lifecycle().available_recipient(current_identity(), request.args.get("matchId"))
    return jsonify({"recipient": RecipientSchema().dump(recipient)})


@bp.get("/<claim_id>")
def get_claim(claim_id: str):
    return jsonify({"claim": claim_schema.dump(lifecycle().get_claim(current_identity(), claim_id))})


@bp.post("")
def create_claim():
    """Record the hand-off of a matched item.

    Multipart form: matchId, recipientId and the ``proof`` image (all required).
    Both reports of the match move to ``closed``.
    """
    actor = authorize(current_identity(), "claims.create")
    data = load(ClaimCreateSchema(), request_data())
    files = uploaded_files("proof", limit=1)
    with media_store().staged(files, "claims") as urls:
        claim = lifecycle().create_claim(actor, data["match_id"], data["recipient_id"], urls[0] if urls else None)
    return jsonify({"claim": claim_schema.dump(claim), "message": "Claim recorded"}), 201


@bp.put("/<claim_id>")
def update_claim(claim_id: str):
    actor = authorize(current_identity(), "claims.update")
    manager = lifecycle()
    data = load(ClaimUpdateSchema(), request_data())
    files = uploaded_files("proof", limit=1)
    previous = manager.get_claim(actor, claim_id).proof_url
    with media_store().staged(files, "claims") as urls:
        claim = manager.update_claim(
            actor,
            claim_id,
            match_id=data.get("match_id"),
            recipient_id=data.get("recipient_id"),
            staff_id=data.get("staff_id"),
            proof_ref=urls[0] if urls else None,
        )
    if urls and previous != claim.proof_url:
        media_store().discard(previous)
    return jsonify({"claim": claim_schema.dump(claim), "message": "Claim updated"})


@bp.delete("/<claim_id>")
def delete_claim(claim_id: str):
    proof_url = lifecycle().delete_claim(current_identity(), claim_id)
    media_store().discard(proof_url)
    return jsonify({"message": "Claim deleted"})
