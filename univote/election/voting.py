# univote/election/voting.py
"""Ballot casting rules.

A ballot is accepted only when every rule below holds; rules are checked in this
order and the first violation is raised:

1. the candidate exists
2. the voter meets the department/year eligibility lists
3. the election is in the Voting phase
4. the voting window has opened
5. the voting window has not closed (otherwise the election is moved to Ended)
6. the voter has no ballot yet for the candidate's position

Candidates without a position form the "general" pool, which counts as one
position of its own.
"""

from typing import List, Optional, Tuple

from univote.database.models import Phase, find_by_id, new_id
from univote.election.phase import voting_window_expired
from univote.errors import DoubleVoteError, ForbiddenError, NotFoundError, ValidationError, VotingClosedError


def check_eligibility(election: dict, user: dict) -> None:
    eligibility = election.get("eligibility") or {}
    departments = eligibility.get("departments") or []
    years = eligibility.get("years") or []

    if departments:
        department = user.get("department")
        if not department or department not in departments:
            raise ForbiddenError(f"Voting is restricted to: {', '.join(departments)}")

    if years:
        year = user.get("year")
        if year in (None, "") or str(year) not in [str(y) for y in years]:
            raise ForbiddenError(f"Voting is restricted to years: {', '.join(str(y) for y in years)}")


def find_position_vote(data: dict, user_id: str, position_id: Optional[str]) -> Optional[dict]:
    """Return the user's ballot for ``position_id`` (None = general pool), if any."""
    for vote in data["votes"]:
        if vote["userId"] != user_id:
            continue
        voted_candidate = find_by_id(data["candidates"], vote["candidateId"])
        if voted_candidate is not None and voted_candidate.get("positionId") == position_id:
            return vote
    return None


def voted_positions(data: dict, user_id: str) -> List[Optional[str]]:
    positions = []
    for vote in data["votes"]:
        if vote["userId"] != user_id:
            continue
        candidate = find_by_id(data["candidates"], vote["candidateId"])
        if candidate is None:
            continue
        position_id = candidate.get("positionId")
        if position_id not in positions:
            positions.append(position_id)
    return positions


def display_name(user: dict) -> str:
    return user.get("username") or user.get("email") or user["id"]


def cast_vote(data: dict, user: dict, candidate_id: str, now_ms: int) -> Tuple[dict, dict]:
    """Record a ballot for ``candidate_id`` and return ``(vote, candidate)``.

    Raises VotingClosedError after switching the phase to Ended when the window has
    passed; the caller must persist ``data`` before surfacing that error.
    """
    if not candidate_id:
        raise ValidationError("Candidate ID is required.")

    election = data["election"]
    candidate = find_by_id(data["candidates"], candidate_id)
    if candidate is None:
        raise NotFoundError("Candidate not found.")

    check_eligibility(election, user)

    if election["phase"] != Phase.VOTING.value:
        raise ValidationError("Voting is not currently open.")

    now_s = now_ms // 1000
    starts_at = int(election.get("votingStartsAt") or 0)
    if starts_at and now_s < starts_at:
        raise ValidationError("Voting has not started yet.")
    if voting_window_expired(election, now_s):
        election["phase"] = Phase.ENDED.value
        raise VotingClosedError("Voting window has closed.")

    position_id = candidate.get("positionId")
    if find_position_vote(data, user["id"], position_id) is not None:
        if position_id:
            position = find_by_id(data["positions"], position_id)
            title = position["title"] if position else "this position"
        else:
            title = "this election"
        raise DoubleVoteError(f"You have already voted for {title}.")

    vote = {"id": new_id(), "userId": user["id"], "candidateId": candidate_id, "createdAt": now_ms}
    data["votes"].append(vote)
    candidate["voteCount"] = int(candidate.get("voteCount") or 0) + 1
    candidate["updatedAt"] = now_ms
    election["lastVoteAt"] = now_ms // 1000
    election["lastVoter"] = display_name(user)
    return vote, candidate
