from __future__ import annotations

from flask import Blueprint, jsonify, request

from ...apis.v1.deps import current_identity, lifecycle, media_store, request_data, uploaded_files
from ...policy import authorize
from ...schemas import load
from ...schemas.report import (
    ReportCreateSchema,
    ReportFilterSchema,
    ReportSchema,
    ReportStatusSchema,
    ReportUpdateSchema,
)

bp = Blueprint("reports", __name__, url_prefix="/reports")

report_schema = ReportSchema()
reports_schema = ReportSchema(many=True)


@bp.get("")
def list_reports():
    """List reports. Query params: kind, status, categoryId, ownerId (all optional)."""
    filters = load(ReportFilterSchema(), request.args)
    reports = lifecycle().list_reports(**filters)
    return jsonify({"reports": reports_schema.dump(reports)})


@bp.get("/<report_id>")
def get_report(report_id: str):
    return jsonify({"report": report_schema.dump(lifecycle().get_report(report_id))})


@bp.post("")
def create_report():
    """Create a report from a multipart form; up to three images in ``photos``."""
    actor = current_identity()
    manager = lifecycle()
    data = load(ReportCreateSchema(), request_data())
    files = uploaded_files("photos", limit=manager.max_attachments)
    with media_store().staged(files, "reports") as urls:
        report = manager.create_report(actor, data, urls)
    return jsonify({"report": report_schema.dump(report), "message": "Report created"}), 201


@bp.put("/<report_id>")
def update_report(report_id: str):
    actor = authorize(current_identity(), "reports.update")
    manager = lifecycle()
    changes = load(ReportUpdateSchema(), request_data())
    files = uploaded_files("photos", limit=manager.max_attachments)
    previous = list(manager.get_report(report_id).photo_urls or [])
    with media_store().staged(files, "reports") as urls:
        report = manager.update_report(actor, report_id, changes, urls or None)
    if urls:
        for url in previous:
            media_store().discard(url)
    return jsonify({"report": report_schema.dump(report), "message": "Report updated"})


@bp.patch("/<report_id>/status")
def update_report_status(report_id: str):
    actor = current_identity()
    data = load(ReportStatusSchema(), request_data())
    report = lifecycle().reconcile_report_status(actor, report_id, data["status"])
    return jsonify({"report": report_schema.dump(report), "message": "Report status updated"})


@bp.delete("/<report_id>")
def delete_report(report_id: str):
    actor = current_identity()
    for url in lifecycle().delete_report(actor, report_id):
        media_store().discard(url)
    return jsonify({"message": "Report deleted"})
