# univote/election/snapshot.py

# Read models handed to clients: the election snapshot, the leading candidate and
# the recent-activity feed.

from typing import Iterable, List, Optional

from univote.database.models import find_by_id

ACTIVITY_FEED_SIZE = 25


def sorted_positions(positions: Iterable[dict]) -> List[dict]:
    return sorted(positions, key=lambda p: (p.get("order", 0), p.get("title", "")))


def total_votes(candidates: Iterable[dict]) -> int:
    return sum(int(c.get("voteCount") or 0) for c in candidates)


def build_snapshot(data: dict) -> dict:
    election = data["election"]
    candidates = data["candidates"]
    return {
        "title": election["title"],
        "description": election["description"],
        "bannerImage": election["bannerImage"],
        "phase": election["phase"],
        "candidateCount": len(candidates),
        "totalVotes": total_votes(candidates),
        "votingStartsAt": int(election.get("votingStartsAt") or 0),
        "votingEndsAt": int(election.get("votingEndsAt") or 0),
        "lastVoteAt": int(election.get("lastVoteAt") or 0),
        "lastVoter": election.get("lastVoter"),
        "eligibility": election.get("eligibility") or {"departments": [], "years": []},
        "positions": sorted_positions(data["positions"]),
    }


def find_leading_candidate(candidates: Iterable[dict]) -> Optional[dict]:
    """Candidate with the most votes; equal counts go to the lowest id."""
    candidates = list(candidates)
    if not candidates:
        return None
    return min(candidates, key=lambda c: (-int(c.get("voteCount") or 0), str(c["id"])))


def build_activity_feed(data: dict, users: Iterable[dict], full_attribution: bool) -> List[dict]:
    """Most recent ballots, newest first.

    Without ``full_attribution`` the candidate on each ballot is hidden so the feed
    shows who voted but not for whom.
    """
    users_by_id = {u["id"]: u for u in users}
    recent = sorted(data["votes"], key=lambda v: v["createdAt"], reverse=True)[:ACTIVITY_FEED_SIZE]

    feed = []
    for vote in recent:
        voter = users_by_id.get(vote["userId"]) or {}
        candidate = find_by_id(data["candidates"], vote["candidateId"])
        item = {
            "id": vote["id"],
            "candidateId": vote["candidateId"],
            "candidateName": candidate["name"] if candidate else "Candidate",
            "voterId": vote["userId"],
            "voterName": voter.get("username") or voter.get("email") or "Anonymous",
            "timestamp": vote["createdAt"],
        }
        if not full_attribution:
            item["candidateId"] = None
            item["candidateName"] = None
        feed.append(item)
    return feed
