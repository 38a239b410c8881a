# univote/database/models.py

# Record shapes for the JSON stores. Records are plain dicts keyed in camelCase so
# the files stay readable by the portal front end; these helpers fill defaults and
# coerce types whenever a file is loaded.

import time
import uuid
from datetime import datetime, timezone
from enum import Enum


class Phase(Enum):
    DRAFT = "Draft"
    VOTING = "Voting"
    ENDED = "Ended"


def new_id() -> str:
    return str(uuid.uuid4())


def now_ms() -> int:
    return int(time.time() * 1000)


def utc_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _as_int(value, default=0) -> int:
    try:
        return int(value or default)
    except (TypeError, ValueError):
        return default


def default_election() -> dict:
    return {
        "title": "University Election",
        "description": "Cast your vote for the next student council.",
        "bannerImage": "",
        "phase": Phase.DRAFT.value,
        "votingStartsAt": 0,
        "votingEndsAt": 0,
        "lastVoteAt": 0,
        "lastVoter": None,
        "eligibility": {"departments": [], "years": []},
    }


def default_election_data() -> dict:
    return {"election": default_election(), "positions": [], "candidates": [], "votes": []}


def normalize_eligibility(eligibility) -> dict:
    eligibility = eligibility if isinstance(eligibility, dict) else {}
    normalized = {}
    for key in ("departments", "years"):
        values = eligibility.get(key) or []
        if not isinstance(values, (list, tuple)):
            values = [values]
        normalized[key] = [str(v).strip() for v in values if str(v).strip()]
    return normalized


def normalize_position(position: dict) -> dict:
    return {
        "id": position.get("id") or new_id(),
        "title": position.get("title") or "Position",
        "order": _as_int(position.get("order")),
        "maxVotes": _as_int(position.get("maxVotes"), 1) or 1,
    }


def normalize_candidate(candidate: dict) -> dict:
    stamp = now_ms()
    return {
        "id": candidate.get("id") or new_id(),
        "positionId": candidate.get("positionId") or None,
        "name": candidate.get("name") or "Candidate",
        "tagline": candidate.get("tagline") or "",
        "manifesto": candidate.get("manifesto") or "",
        "imageUri": candidate.get("imageUri") or "",
        "voteCount": _as_int(candidate.get("voteCount")),
        "createdAt": candidate.get("createdAt") or stamp,
        "updatedAt": candidate.get("updatedAt") or stamp,
    }


def normalize_vote(vote: dict) -> dict:
    return {
        "id": vote.get("id") or new_id(),
        "userId": vote.get("userId"),
        "candidateId": vote.get("candidateId"),
        "createdAt": _as_int(vote.get("createdAt")) or now_ms(),
    }


def normalize_election_data(raw: dict) -> dict:
    raw = raw if isinstance(raw, dict) else {}
    election = default_election()
    election.update(raw.get("election") or {})
    for key in ("votingStartsAt", "votingEndsAt", "lastVoteAt"):
        election[key] = _as_int(election.get(key))
    election["eligibility"] = normalize_eligibility(election.get("eligibility"))

    def _records(key):
        items = raw.get(key)
        return items if isinstance(items, list) else []

    return {
        "election": election,
        "positions": [normalize_position(p) for p in _records("positions")],
        "candidates": [normalize_candidate(c) for c in _records("candidates")],
        "votes": [normalize_vote(v) for v in _records("votes")],
    }


def normalize_user(user: dict) -> dict:
    normalized = dict(user)
    normalized["id"] = user.get("id") or new_id()
    roles = user.get("roles")
    normalized["roles"] = list(roles) if isinstance(roles, list) else ["voter"]
    normalized["banned"] = bool(user.get("banned", False))
    return normalized


def sanitize_user(user: dict) -> dict:
    """Strip credential material before a user record leaves the server."""
    return {key: value for key, value in user.items() if key != "passwordHash"}


def candidate_payload(candidate: dict) -> dict:
    return {
        "id": candidate["id"],
        "positionId": candidate.get("positionId"),
        "name": candidate["name"],
        "tagline": candidate.get("tagline", ""),
        "manifesto": candidate.get("manifesto", ""),
        "imageUri": candidate.get("imageUri", ""),
        "voteCount": _as_int(candidate.get("voteCount")),
        "createdAt": candidate.get("createdAt"),
        "updatedAt": candidate.get("updatedAt"),
    }


def find_by_id(records: list, record_id):
    return next((item for item in records if item.get("id") == record_id), None)
