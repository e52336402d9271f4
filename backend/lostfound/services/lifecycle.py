"""
Report / match / claim lifecycle.

Report state machine::

    open --create_match--> matched --create_claim--> closed
      ^                       |
      +------delete_match-----+

Every transition is one :meth:`EntityStore.transact` batch. The checks made
before building a batch are repeated inside it as ``expect``/``absent`` guards.
"""
from __future__ import annotations

import logging
from typing import Iterable, Optional

from sqlalchemy import or_, select

from ..errors import (
    AlreadyClaimed,
    AlreadyMatched,
    ClaimNotFound,
    ConflictError,
    HasDependents,
    InconsistentReportState,
    InvalidReportKind,
    MatchAlreadyClaimed,
    MatchNotFound,
    ReportNotFound,
    UserNotFound,
    ValidationError,
)
from ..models import Claim, Match, Report
from ..models.enums import REPORT_KINDS, REPORT_STATUSES
from ..policy import STAFF, authorize, is_allowed
from ..security import Identity
from ..store import EntityStore, Operation, new_id

logger = logging.getLogger(__name__)

EDITABLE_REPORT_FIELDS = ("category_id", "item_name", "incident_location", "claim_location_id", "description")


def _claim_of(match_id: str):
    return select(Claim.id).where(Claim.match_id == match_id)


def _unclaimed_matches_of(report_ids: Iterable[str], exclude: str | None = None):
    ids = list(report_ids)
    stmt = select(Match.id).where(
        or_(Match.lost_report_id.in_(ids), Match.found_report_id.in_(ids)),
        ~select(Claim.id).where(Claim.match_id == Match.id).exists(),
    )
    if exclude is not None:
        stmt = stmt.where(Match.id != exclude)
    return stmt


class LifecycleManager:
    def __init__(self, store: EntityStore, max_attachments: int = 3):
        self.store = store
        self.max_attachments = max_attachments

    # ------------------------------------------------------------------ reports

    def list_reports(self, kind=None, status=None, category_id=None, owner_id=None) -> list[Report]:
        return self.store.query(
            "reports",
            order_by=Report.reported_at.desc(),
            kind=kind,
            status=status,
            category_id=category_id,
            owner_id=owner_id,
        )

    def get_report(self, report_id: str) -> Report:
        return self.store.get("reports", report_id, missing=ReportNotFound())

    def create_report(self, actor: Identity, data: dict, photo_urls: Iterable[str] = ()) -> Report:
        authorize(actor, "reports.create")
        photo_urls = self._check_attachments(photo_urls)
        if data.get("kind") not in REPORT_KINDS:
            raise ValidationError("Report kind must be 'lost' or 'found'")
        if not data.get("item_name") or not data.get("category_id"):
            raise ValidationError("Incomplete data: itemName and categoryId are required")

        report_id = new_id("rep")
        _, _, report = self.store.transact([
            Operation.require("categories", data["category_id"], missing=ValidationError("Unknown category")),
            Operation.require("users", actor.id, missing=UserNotFound("Report owner not found")),
            Operation.put("reports", report_id, {
                **{name: data.get(name) for name in EDITABLE_REPORT_FIELDS},
                "kind": data["kind"],
                "owner_id": actor.id,
                "photo_urls": photo_urls,
                "status": "open",
                "updated_by": actor.id,
            }),
        ])
        logger.info("Report %s (%s) created by %s", report_id, data["kind"], actor.id)
        return report

    def update_report(self, actor: Identity, report_id: str, changes: dict,
                      photo_urls: Optional[Iterable[str]] = None) -> Report:
        """Edit a report's descriptive fields. Kind is fixed and status belongs to the lifecycle."""
        authorize(actor, "reports.update")
        report = self.get_report(report_id)
        if "kind" in changes and changes["kind"] != report.kind:
            raise ValidationError("Report kind cannot be changed after creation")
        if "status" in changes and changes["status"] != report.status:
            raise ValidationError("Report status follows its matches and claims and cannot be edited directly")

        patch = {name: changes[name] for name in EDITABLE_REPORT_FIELDS if name in changes}
        if photo_urls:
            patch["photo_urls"] = self._check_attachments(photo_urls)
        patch["updated_by"] = actor.id

        ops = []
        if patch.get("category_id") not in (None, report.category_id):
            ops.append(Operation.require("categories", patch["category_id"], missing=ValidationError("Unknown category")))
        ops.append(Operation.update("reports", report.id, patch, expect={"kind": report.kind}, missing=ReportNotFound()))
        report = self.store.transact(ops)[-1]
        logger.info("Report %s updated by %s", report_id, actor.id)
        return report

    def derived_status(self, report_id: str) -> str:
        """The status a report must have given the matches and claims that reference it."""
        matches = self.store.query(
            "matches", or_(Match.lost_report_id == report_id, Match.found_report_id == report_id)
        )
        if any(self.store.exists(_claim_of(m.id)) for m in matches):
            return "closed"
        return "matched" if matches else "open"

    def reconcile_report_status(self, actor: Identity, report_id: str, status: str) -> Report:
        """Set a report's status, accepting only the value implied by its matches and claims."""
        authorize(actor, "reports.reconcile")
        if status not in REPORT_STATUSES:
            raise ValidationError("Invalid status")
        report = self.get_report(report_id)
        # closed is terminal, even once its claim record is gone
        expected = "closed" if report.status == "closed" else self.derived_status(report.id)
        if status != expected:
            raise InconsistentReportState(
                f"Report {report.id} must be '{expected}' given its matches and claims"
            )
        if report.status == status:
            return report
        previous = report.status
        report = self.store.transact([
            Operation.update(
                "reports", report.id, {"status": status, "updated_by": actor.id},
                expect={"status": previous},
                conflict=ConflictError("Report status changed concurrently, please retry"),
                missing=ReportNotFound(),
            ),
        ])[0]
        logger.warning("Report %s status reconciled %s -> %s by %s", report_id, previous, status, actor.id)
        return report

    def delete_report(self, actor: Identity, report_id: str) -> list[str]:
        """Delete an unreferenced report and return its attachment URLs."""
        authorize(actor, "reports.delete")
        report = self.get_report(report_id)
        photo_urls = list(report.photo_urls or [])
        referencing = select(Match.id).where(
            or_(Match.lost_report_id == report.id, Match.found_report_id == report.id)
        )
        self.store.transact([
            Operation.absent("matches", referencing,
                             HasDependents("Report cannot be deleted because it is referenced by a match or claim")),
            Operation.delete("reports", report.id, missing=ReportNotFound()),
        ])
        logger.info("Report %s deleted by %s", report_id, actor.id)
        return photo_urls

    # ------------------------------------------------------------------ matches

    def list_matches(self, lost_report_id=None, found_report_id=None) -> list[Match]:
        return self.store.query(
            "matches",
            order_by=Match.created_at.desc(),
            lost_report_id=lost_report_id,
            found_report_id=found_report_id,
        )

    def get_match(self, match_id: str) -> Match:
        return self.store.get("matches", match_id, missing=MatchNotFound())

    def create_match(self, actor: Identity, lost_id: str, found_id: str, score: float = 0.0) -> Match:
        authorize(actor, "matches.create")
        score = self._check_score(score)
        lost, found = self._pair(lost_id, found_id)
        for report in (lost, found):
            if report.status != "open":
                raise AlreadyMatched(f"Report {report.id} is {report.status}, not open")
        if self.store.exists(_unclaimed_matches_of([lost.id, found.id])):
            raise AlreadyMatched()

        match_id = new_id("match")
        ops = [
            Operation.absent("matches", _unclaimed_matches_of([lost.id, found.id]), AlreadyMatched()),
            *self._transition(lost.id, "open", "matched", actor, AlreadyMatched(f"Report {lost.id} is no longer open")),
            *self._transition(found.id, "open", "matched", actor, AlreadyMatched(f"Report {found.id} is no longer open")),
            Operation.put("matches", match_id, {
                "lost_report_id": lost.id,
                "found_report_id": found.id,
                "score": score,
                "created_by": actor.id,
                "updated_by": actor.id,
            }),
        ]
        match = self.store.transact(ops)[-1]
        logger.info("Match %s created by %s: %s <-> %s (score %.2f)", match_id, actor.id, lost.id, found.id, score)
        return match

    def update_match(self, actor: Identity, match_id: str, lost_id: str | None = None,
                     found_id: str | None = None, score: float | None = None) -> Match:
        """Rescore or relink an unclaimed match; relinked reports move between open and matched."""
        authorize(actor, "matches.update")
        match = self.get_match(match_id)
        if self.store.exists(_claim_of(match.id)):
            raise MatchAlreadyClaimed()

        patch: dict = {"updated_by": actor.id}
        if score is not None:
            patch["score"] = self._check_score(score)

        ops = [Operation.absent("claims", _claim_of(match.id), MatchAlreadyClaimed())]
        new_lost = lost_id or match.lost_report_id
        new_found = found_id or match.found_report_id
        pairs = ((match.lost_report_id, new_lost), (match.found_report_id, new_found))
        if any(old != new for old, new in pairs):
            lost, found = self._pair(new_lost, new_found)
            replacements = {old: new for old, new in pairs if old != new}
            for new in replacements.values():
                report = lost if new == lost.id else found
                if report.status != "open":
                    raise AlreadyMatched(f"Report {report.id} is {report.status}, not open")
            ops.append(Operation.absent(
                "matches", _unclaimed_matches_of(replacements.values(), exclude=match.id), AlreadyMatched()
            ))
            for old, new in replacements.items():
                ops += self._transition(old, "matched", "open", actor,
                                        InconsistentReportState(f"Report {old} is not matched"))
                ops += self._transition(new, "open", "matched", actor,
                                        AlreadyMatched(f"Report {new} is no longer open"))
            patch.update(lost_report_id=lost.id, found_report_id=found.id)

        ops.append(Operation.update(
            "matches", match.id, patch,
            expect={"version": match.version},
            conflict=ConflictError("Match was modified concurrently, please retry"),
            missing=MatchNotFound(),
        ))
        match = self.store.transact(ops)[-1]
        logger.info("Match %s updated by %s", match_id, actor.id)
        return match

    def delete_match(self, actor: Identity, match_id: str) -> None:
        authorize(actor, "matches.delete")
        match = self.get_match(match_id)
        if self.store.exists(_claim_of(match.id)):
            raise MatchAlreadyClaimed()

        ops = [Operation.absent("claims", _claim_of(match.id), MatchAlreadyClaimed())]
        for report_id in (match.lost_report_id, match.found_report_id):
            report = self.store.find("reports", report_id)
            if report is not None and report.status == "matched":
                ops += self._transition(report_id, "matched", "open", actor,
                                        ConflictError(f"Report {report_id} changed concurrently, please retry"))
        ops.append(Operation.delete("matches", match.id, missing=MatchNotFound()))
        self.store.transact(ops)
        logger.info("Match %s deleted by %s; reports reverted to open", match_id, actor.id)

    # ------------------------------------------------------------------- claims

    def list_claims(self, actor: Identity) -> list[Claim]:
        authorize(actor, "claims.list")
        # Guests only ever see hand-offs made to them
        recipient = None if is_allowed(actor, "claims.read") else actor.id
        return self.store.query("claims", order_by=Claim.received_at.desc(), recipient_id=recipient)

    def get_claim(self, actor: Identity, claim_id: str) -> Claim:
        authorize(actor, "claims.read")
        return self.store.get("claims", claim_id, missing=ClaimNotFound())

    def create_claim(self, actor: Identity, match_id: str, recipient_id: str, proof_ref: str | None) -> Claim:
        authorize(actor, "claims.create")
        if not proof_ref:
            raise ValidationError("Proof of receipt is required")
        match = self.get_match(match_id)
        if self.store.exists(_claim_of(match.id)):
            raise AlreadyClaimed()
        self.store.get("users", recipient_id, missing=UserNotFound(f"Recipient {recipient_id} not found"))
        reports = [self.get_report(match.lost_report_id), self.get_report(match.found_report_id)]
        for report in reports:
            if report.status != "matched":
                raise InconsistentReportState(f"Report {report.id} is {report.status}, expected matched")

        claim_id = new_id("claim")
        ops = [
            Operation.require("matches", match.id, missing=MatchNotFound()),
            Operation.absent("claims", _claim_of(match.id), AlreadyClaimed()),
        ]
        for report in reports:
            ops += self._transition(report.id, "matched", "closed", actor,
                                    InconsistentReportState(f"Report {report.id} is no longer matched"))
        ops.append(Operation.put("claims", claim_id, {
            "match_id": match.id,
            "staff_id": actor.id,
            "recipient_id": recipient_id,
            "proof_url": proof_ref,
            "updated_by": actor.id,
        }, conflict=AlreadyClaimed()))
        claim = self.store.transact(ops)[-1]
        logger.info("Claim %s created by %s for match %s (recipient %s)", claim_id, actor.id, match.id, recipient_id)
        return claim

    def update_claim(self, actor: Identity, claim_id: str, *, match_id: str | None = None,
                     recipient_id: str | None = None, staff_id: str | None = None,
                     proof_ref: str | None = None) -> Claim:
        authorize(actor, "claims.update")
        claim = self.get_claim(actor, claim_id)
        if match_id and match_id != claim.match_id:
            raise ValidationError("A claim cannot be moved to another match")

        patch: dict = {"updated_by": actor.id}
        if recipient_id:
            self.store.get("users", recipient_id, missing=UserNotFound(f"Recipient {recipient_id} not found"))
            patch["recipient_id"] = recipient_id
        if staff_id:
            staff = self.store.get("users", staff_id, missing=UserNotFound(f"Staff member {staff_id} not found"))
            if staff.role not in STAFF:
                raise ValidationError("Claims can only be processed by staff or admin users")
            patch["staff_id"] = staff_id
        if proof_ref:
            patch["proof_url"] = proof_ref
        claim = self.store.transact([Operation.update("claims", claim.id, patch, missing=ClaimNotFound())])[0]
        logger.info("Claim %s updated by %s", claim_id, actor.id)
        return claim

    def delete_claim(self, actor: Identity, claim_id: str) -> str:
        """Remove a claim record. Its reports stay closed, so the match cannot be claimed again.

        Returns the proof URL so the caller can discard the attachment.
        """
        authorize(actor, "claims.delete")
        claim = self.get_claim(actor, claim_id)
        proof_url, match_id = claim.proof_url, claim.match_id
        self.store.transact([Operation.delete("claims", claim.id, missing=ClaimNotFound())])
        logger.warning("Claim %s of match %s deleted by %s; reports stay closed", claim_id, match_id, actor.id)
        return proof_url

    def available_matches(self, actor: Identity) -> list[tuple]:
        """Unclaimed matches with their lost and found reports, for the claim form."""
        authorize(actor, "claims.read")
        unclaimed = self.store.query(
            "matches",
            ~select(Claim.id).where(Claim.match_id == Match.id).exists(),
            order_by=Match.created_at.desc(),
        )
        entries = [
            (m, self.store.find("reports", m.lost_report_id), self.store.find("reports", m.found_report_id))
            for m in unclaimed
        ]
        return [e for e in entries if all(r is not None and r.status == "matched" for r in e[1:])]

    def available_recipient(self, actor: Identity, match_id: str) -> dict:
        """The owner of the match's lost report, who is the expected recipient."""
        authorize(actor, "claims.read")
        if not match_id:
            raise ValidationError("matchId is required to determine the recipient")
        match = self.get_match(match_id)
        lost = self.store.get("reports", match.lost_report_id, missing=ReportNotFound("Lost report not found"))
        owner = self.store.get("users", lost.owner_id, missing=UserNotFound())
        return {
            "recipient_id": owner.id,
            "username": owner.username,
            "email": owner.email,
            "phone": owner.phone,
            "item_name": lost.item_name,
            "lost_report_id": match.lost_report_id,
            "found_report_id": match.found_report_id,
        }

    # ------------------------------------------------------------------ helpers

    def _pair(self, lost_id: str, found_id: str) -> tuple[Report, Report]:
        if lost_id == found_id:
            raise InvalidReportKind("A report cannot be matched with itself")
        lost = self.store.get("reports", lost_id, missing=ReportNotFound(f"Lost report {lost_id} not found"))
        found = self.store.get("reports", found_id, missing=ReportNotFound(f"Found report {found_id} not found"))
        if lost.kind != "lost" or found.kind != "found":
            raise InvalidReportKind()
        return lost, found

    @staticmethod
    def _transition(report_id: str, source: str, target: str, actor: Identity, conflict) -> list[Operation]:
        return [Operation.update(
            "reports", report_id, {"status": target, "updated_by": actor.id},
            expect={"status": source},
            conflict=conflict,
            missing=ReportNotFound(f"Report {report_id} not found"),
        )]

    @staticmethod
    def _check_score(score) -> float:
        try:
            value = float(score)
        except (TypeError, ValueError):
            raise ValidationError("Score must be a number") from None
        if not 0.0 <= value <= 1.0:
            raise ValidationError("Score must be between 0 and 1")
        return value

    def _check_attachments(self, photo_urls: Iterable[str]) -> list[str]:
        urls = [u for u in photo_urls if u]
        if len(urls) > self.max_attachments:
            raise ValidationError(f"At most {self.max_attachments} photos can be attached")
        return urls
