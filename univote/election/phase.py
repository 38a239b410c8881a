# univote/election/phase.py

# Election lifecycle: Draft -> Voting -> Ended, with reset back to Draft.
# Transitions mutate the loaded election data in place; persisting is the caller's job.

from univote.database.models import Phase, now_ms
from univote.errors import ValidationError

PHASE_ACTIONS = ("start", "close", "refresh", "reset")


def voting_window_expired(election: dict, now_s: int) -> bool:
    ends_at = int(election.get("votingEndsAt") or 0)
    return bool(ends_at) and now_s > ends_at


def apply_phase_action(data: dict, action: str, now_s: int) -> bool:
    """Apply ``action`` to the election and return True when the phase changed.

    ``now_s`` is the current time in unix seconds, the unit of the schedule fields.
    """
    if not action:
        raise ValidationError("Phase action is required.")
    if action not in PHASE_ACTIONS:
        raise ValidationError("Unknown phase action.")

    election = data["election"]
    previous = election["phase"]

    if action == "start":
        if previous != Phase.DRAFT.value:
            raise ValidationError("Voting has already started.")
        if not data["candidates"]:
            raise ValidationError("At least one candidate is required before starting.")
        starts_at = int(election.get("votingStartsAt") or 0)
        if starts_at and now_s < starts_at:
            raise ValidationError("Voting start time has not been reached yet.")
        election["phase"] = Phase.VOTING.value

    elif action == "close":
        if previous != Phase.VOTING.value:
            raise ValidationError("Voting is not active.")
        election["phase"] = Phase.ENDED.value

    elif action == "refresh":
        if previous == Phase.VOTING.value and voting_window_expired(election, now_s):
            election["phase"] = Phase.ENDED.value

    else:
        reset_election(data)

    return election["phase"] != previous


def reset_election(data: dict) -> None:
    election = data["election"]
    election.update({
        "phase": Phase.DRAFT.value,
        "votingStartsAt": 0,
        "votingEndsAt": 0,
        "lastVoteAt": 0,
        "lastVoter": None,
    })
    data["votes"] = []
    stamp = now_ms()
    for candidate in data["candidates"]:
        candidate["voteCount"] = 0
        candidate["updatedAt"] = stamp
