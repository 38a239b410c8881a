# univote/election/service.py

# Election operations as the HTTP layer sees them: every mutation runs inside the
# election store's lock (load -> rule engine -> save) and leaves an audit entry.

import logging
import time

from univote.authentication.rbac import Permission, rbac_service
from univote.database.models import candidate_payload, find_by_id, new_id, normalize_position
from univote.election import phase as phase_rules
from univote.election import voting
from univote.election.receipts import build_receipt, receipt_matches
from univote.election.snapshot import (
    build_activity_feed,
    build_snapshot,
    find_leading_candidate,
    sorted_positions,
)
from univote.errors import NotFoundError, ValidationError, VotingClosedError
from univote.security.input_validator import InputValidator

logger = logging.getLogger(__name__)


class ElectionService:
    def __init__(self, election_store, user_store, archive_store, audit_logger, validator=None, clock=time.time):
        self.election_store = election_store
        self.user_store = user_store
        self.archive_store = archive_store
        self.audit = audit_logger
        self.validator = validator or InputValidator()
        self.clock = clock

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    # ------------------------------ read path ------------------------------ #

    def get_election(self, viewer=None) -> dict:
        data = self.election_store.load()
        users = self.user_store.load()
        roles = viewer.get("roles") if viewer else []
        full_attribution = rbac_service.has_permission(roles, Permission.VIEW_FULL_ACTIVITY)
        leader = find_leading_candidate(data["candidates"])
        return {
            "snapshot": build_snapshot(data),
            "candidates": [candidate_payload(c) for c in data["candidates"]],
            "leader": candidate_payload(leader) if leader else None,
            "activity": build_activity_feed(data, users, full_attribution),
            "votedPositions": voting.voted_positions(data, viewer["id"]) if viewer else [],
        }

    def list_positions(self) -> list:
        return sorted_positions(self.election_store.load()["positions"])

    # ------------------------------ lifecycle ------------------------------ #

    def change_phase(self, actor, action) -> dict:
        now_s = self._now_ms() // 1000
        with self.election_store.transaction() as data:
            previous = data["election"]["phase"]
            changed = phase_rules.apply_phase_action(data, action, now_s)
            snapshot = build_snapshot(data)
        logger.info("Phase action %s by %s: %s -> %s", action, actor["id"], previous, snapshot["phase"])
        self.audit.log_event("phase_" + action, {"from": previous, "to": snapshot["phase"], "changed": changed}, actor["id"])
        return snapshot

    def cast_vote(self, user, candidate_id) -> dict:
        now = self._now_ms()
        with self.election_store.lock:
            data = self.election_store.load()
            try:
                vote, candidate = voting.cast_vote(data, user, candidate_id, now)
            except VotingClosedError:
                self.election_store.save(data)
                logger.info("Vote by %s after the voting window; election moved to Ended", user["id"])
                self.audit.log_event("phase_auto_closed", {"trigger": "vote"}, user["id"])
                raise
            self.election_store.save(data)
            snapshot = build_snapshot(data)
            candidate = dict(candidate)

        self.audit.log_event("vote_cast", {"vote_id": vote["id"], "position_id": candidate.get("positionId")}, user["id"])
        return {
            "snapshot": snapshot,
            "candidate": candidate_payload(candidate),
            "receipt": build_receipt(vote, candidate),
        }

    def verify_receipt(self, verification_code, vote_id) -> dict:
        if not verification_code or not vote_id:
            raise ValidationError("Verification code and vote ID are required.")
        data = self.election_store.load()
        vote = find_by_id(data["votes"], vote_id)
        if vote is None:
            raise NotFoundError("Vote not found.", payload={"valid": False})
        if not receipt_matches(vote, verification_code):
            return {"valid": False, "message": "Invalid verification code."}
        candidate = find_by_id(data["candidates"], vote["candidateId"])
        return {
            "valid": True,
            "vote": {"candidateName": candidate["name"] if candidate else "Unknown", "timestamp": vote["createdAt"]},
        }

    # ---------------------------- configuration ---------------------------- #

    def update_meta(self, actor, payload) -> dict:
        changes = {}
        for field, max_length in (("title", 200), ("description", 2000), ("bannerImage", 2048)):
            value = self.validator.optional_text(payload, field, max_length, plain=(field != "description"))
            if value is not None:
                changes[field] = value
        if payload.get("eligibility") is not None:
            changes["eligibility"] = self.validator.parse_eligibility(payload["eligibility"])

        with self.election_store.transaction() as data:
            data["election"].update(changes)
            snapshot = build_snapshot(data)
        self.audit.log_event("election_meta_updated", {"fields": sorted(changes)}, actor["id"])
        return snapshot

    def update_schedule(self, actor, payload) -> dict:
        start = self.validator.parse_timestamp(payload.get("votingStartsAt"), "votingStartsAt")
        end = self.validator.parse_timestamp(payload.get("votingEndsAt"), "votingEndsAt")
        if start and end and end <= start:
            raise ValidationError("Voting end time must be after the start time.")

        with self.election_store.transaction() as data:
            data["election"]["votingStartsAt"] = start
            data["election"]["votingEndsAt"] = end
            snapshot = build_snapshot(data)
        self.audit.log_event("election_schedule_updated", {"votingStartsAt": start, "votingEndsAt": end}, actor["id"])
        return snapshot

    def add_position(self, actor, payload) -> dict:
        title = self.validator.required_text(payload, "title", "Position title is required.", 120)
        position = normalize_position({
            "id": new_id(),
            "title": title,
            "order": payload.get("order") or 0,
            "maxVotes": payload.get("maxVotes") or 1,
        })
        with self.election_store.transaction() as data:
            data["positions"].append(position)
            snapshot = build_snapshot(data)
        self.audit.log_event("position_created", {"position_id": position["id"], "title": title}, actor["id"])
        return {"position": position, "snapshot": snapshot}

    def delete_position(self, actor, position_id) -> dict:
        with self.election_store.transaction() as data:
            if find_by_id(data["positions"], position_id) is None:
                raise NotFoundError("Position not found.")
            data["positions"] = [p for p in data["positions"] if p["id"] != position_id]
            detached = 0
            for candidate in data["candidates"]:
                if candidate.get("positionId") == position_id:
                    candidate["positionId"] = None
                    detached += 1
            snapshot = build_snapshot(data)
        self.audit.log_event("position_deleted", {"position_id": position_id, "detached_candidates": detached}, actor["id"])
        return {"message": "Position deleted.", "snapshot": snapshot}

    def _resolve_position(self, data, position_id):
        if position_id and find_by_id(data["positions"], position_id) is None:
            raise ValidationError("Invalid position ID.")
        return position_id or None

    def create_candidate(self, actor, payload) -> dict:
        name = self.validator.required_text(payload, "name", "Candidate name is required.", 120)
        stamp = self._now_ms()
        candidate = {
            "id": new_id(),
            "positionId": None,
            "name": name,
            "tagline": self.validator.optional_text(payload, "tagline", 200, default=""),
            "manifesto": self.validator.optional_text(payload, "manifesto", 5000, plain=False, default=""),
            "imageUri": self.validator.optional_text(payload, "imageUri", 2048, default=""),
            "voteCount": 0,
            "createdAt": stamp,
            "updatedAt": stamp,
        }
        with self.election_store.transaction() as data:
            candidate["positionId"] = self._resolve_position(data, payload.get("positionId"))
            data["candidates"].append(candidate)
            snapshot = build_snapshot(data)
        self.audit.log_event("candidate_created", {"candidate_id": candidate["id"], "name": name}, actor["id"])
        return {"candidate": candidate_payload(candidate), "snapshot": snapshot}

    def update_candidate(self, actor, candidate_id, payload) -> dict:
        with self.election_store.transaction() as data:
            candidate = find_by_id(data["candidates"], candidate_id)
            if candidate is None:
                raise NotFoundError("Candidate not found.")
            # null or "" moves the candidate to the general pool
            if "positionId" in payload:
                candidate["positionId"] = self._resolve_position(data, payload["positionId"])

            name = self.validator.optional_text(payload, "name", 120)
            if name:
                candidate["name"] = name
            for field, max_length, plain in (("tagline", 200, True), ("manifesto", 5000, False), ("imageUri", 2048, True)):
                value = self.validator.optional_text(payload, field, max_length, plain=plain)
                if value is not None:
                    candidate[field] = value
            candidate["updatedAt"] = self._now_ms()
            result = candidate_payload(candidate)
            snapshot = build_snapshot(data)
        self.audit.log_event("candidate_updated", {"candidate_id": candidate_id}, actor["id"])
        return {"candidate": result, "snapshot": snapshot}

    def delete_candidate(self, actor, candidate_id) -> dict:
        with self.election_store.transaction() as data:
            if find_by_id(data["candidates"], candidate_id) is None:
                raise NotFoundError("Candidate not found.")
            data["candidates"] = [c for c in data["candidates"] if c["id"] != candidate_id]
            removed_votes = len(data["votes"])
            data["votes"] = [v for v in data["votes"] if v["candidateId"] != candidate_id]
            removed_votes -= len(data["votes"])
            snapshot = build_snapshot(data)
        self.audit.log_event("candidate_deleted", {"candidate_id": candidate_id, "removed_votes": removed_votes}, actor["id"])
        return {"message": "Candidate deleted.", "snapshot": snapshot}

    def set_vote_count(self, actor, candidate_id, new_count) -> dict:
        count = self.validator.parse_non_negative_int(new_count, "Vote count must be a non-negative number.")
        with self.election_store.transaction() as data:
            candidate = find_by_id(data["candidates"], candidate_id)
            if candidate is None:
                raise NotFoundError("Candidate not found.")
            previous = candidate["voteCount"]
            candidate["voteCount"] = count
            candidate["updatedAt"] = self._now_ms()
            result = candidate_payload(candidate)
            snapshot = build_snapshot(data)
        logger.warning("Vote count of %s overridden by %s: %s -> %s", candidate_id, actor["id"], previous, count)
        self.audit.log_event("vote_count_overridden", {"candidate_id": candidate_id, "from": previous, "to": count}, actor["id"])
        return {"candidate": result, "snapshot": snapshot}

    # ------------------------------- archive ------------------------------- #

    def archive(self, actor, payload) -> dict:
        title = self.validator.optional_text(payload, "title", 200)
        description = self.validator.optional_text(payload, "description", 2000, plain=False)
        data = self.election_store.load()

        candidates = []
        for candidate in data["candidates"]:
            counted = dict(candidate)
            counted["voteCount"] = sum(1 for v in data["votes"] if v["candidateId"] == candidate["id"])
            candidates.append(counted)
        total = len(data["votes"])
        winner = find_leading_candidate(candidates) if total else None

        archive = self.archive_store.write({
            "title": title or data["election"]["title"],
            "description": description or data["election"]["description"],
            "election": data["election"],
            "candidates": candidates,
            "votes": data["votes"],
            "stats": {
                "totalVotes": total,
                "winnerName": winner["name"] if winner else "No votes",
                "winnerVotes": winner["voteCount"] if winner else 0,
            },
        }, self._now_ms())
        archive_id, archived_at = archive["id"], archive["archivedAt"]
        logger.info("Election archived as %s by %s", archive_id, actor["id"])
        self.audit.log_event("election_archived", {"archive_id": archive_id, "total_votes": total}, actor["id"])
        return {"message": "Election archived successfully", "archiveId": archive_id, "archivedAt": archived_at}

    def history(self) -> dict:
        return self.archive_store.history()

    def archived_election(self, archive_id) -> dict:
        archive = self.archive_store.get(archive_id)
        if archive is None:
            raise NotFoundError("Archived election not found.")
        return archive
