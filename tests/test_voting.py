import pytest

from univote.database.models import normalize_election_data
from univote.election.voting import cast_vote, check_eligibility, voted_positions
from univote.errors import DoubleVoteError, ForbiddenError, NotFoundError, ValidationError, VotingClosedError

NOW_MS = 1_700_000_000_000


@pytest.fixture
def data():
    return normalize_election_data({
        "election": {"phase": "Voting"},
        "positions": [
            {"id": "pres", "title": "President", "order": 1},
            {"id": "vp", "title": "VP", "order": 2},
        ],
        "candidates": [
            {"id": "a", "name": "A", "positionId": "pres"},
            {"id": "b", "name": "B", "positionId": "pres"},
            {"id": "c", "name": "C", "positionId": "vp"},
            {"id": "g1", "name": "G1"},
            {"id": "g2", "name": "G2"},
        ],
    })


@pytest.fixture
def voter():
    return {"id": "u1", "username": "maya", "department": "CS", "year": "2", "roles": ["voter"]}


def test_successful_vote_updates_log_count_and_last_voter(data, voter):
    vote, candidate = cast_vote(data, voter, "a", NOW_MS)

    assert vote == {"id": vote["id"], "userId": "u1", "candidateId": "a", "createdAt": NOW_MS}
    assert data["votes"] == [vote]
    assert candidate["voteCount"] == 1
    assert data["election"]["lastVoteAt"] == NOW_MS // 1000
    assert data["election"]["lastVoter"] == "maya"


def test_one_vote_per_position(data, voter):
    cast_vote(data, voter, "a", NOW_MS)

    with pytest.raises(DoubleVoteError, match="already voted for President"):
        cast_vote(data, voter, "b", NOW_MS)

    cast_vote(data, voter, "c", NOW_MS)
    assert [v["candidateId"] for v in data["votes"]] == ["a", "c"]


def test_general_pool_counts_as_its_own_position(data, voter):
    cast_vote(data, voter, "g1", NOW_MS)
    with pytest.raises(DoubleVoteError, match="already voted for this election"):
        cast_vote(data, voter, "g2", NOW_MS)
    cast_vote(data, voter, "a", NOW_MS)


def test_other_voters_are_independent(data, voter):
    cast_vote(data, voter, "a", NOW_MS)
    cast_vote(data, dict(voter, id="u2"), "a", NOW_MS)
    assert data["candidates"][0]["voteCount"] == 2


def test_missing_candidate_id(data, voter):
    with pytest.raises(ValidationError, match="Candidate ID is required"):
        cast_vote(data, voter, None, NOW_MS)


def test_unknown_candidate_is_checked_before_anything_else(data, voter):
    data["election"]["phase"] = "Draft"
    data["election"]["eligibility"] = {"departments": ["ECE"], "years": []}
    with pytest.raises(NotFoundError):
        cast_vote(data, voter, "nobody", NOW_MS)


def test_eligibility_is_checked_before_phase(data, voter):
    data["election"]["phase"] = "Draft"
    data["election"]["eligibility"] = {"departments": ["ECE"], "years": []}
    with pytest.raises(ForbiddenError, match="restricted to: ECE"):
        cast_vote(data, voter, "a", NOW_MS)


@pytest.mark.parametrize("phase", ["Draft", "Ended"])
def test_voting_phase_required(data, voter, phase):
    data["election"]["phase"] = phase
    with pytest.raises(ValidationError, match="not currently open"):
        cast_vote(data, voter, "a", NOW_MS)


def test_window_not_open_yet(data, voter):
    data["election"]["votingStartsAt"] = NOW_MS // 1000 + 1
    with pytest.raises(ValidationError, match="not started yet"):
        cast_vote(data, voter, "a", NOW_MS)
    assert data["votes"] == []


def test_expired_window_rejects_and_ends_election(data, voter):
    data["election"]["votingEndsAt"] = NOW_MS // 1000 - 1
    with pytest.raises(VotingClosedError, match="window has closed"):
        cast_vote(data, voter, "a", NOW_MS)
    assert data["election"]["phase"] == "Ended"
    assert data["votes"] == []


def test_window_end_second_is_inclusive(data, voter):
    data["election"]["votingEndsAt"] = NOW_MS // 1000
    cast_vote(data, voter, "a", NOW_MS)


class TestEligibility:
    def test_empty_lists_allow_everyone(self):
        check_eligibility({"eligibility": {"departments": [], "years": []}}, {"id": "u"})

    def test_department_list(self):
        election = {"eligibility": {"departments": ["CS", "Mechanical"], "years": []}}
        check_eligibility(election, {"department": "CS"})
        with pytest.raises(ForbiddenError) as excinfo:
            check_eligibility(election, {"department": "ECE"})
        assert excinfo.value.message == "Voting is restricted to: CS, Mechanical"
        with pytest.raises(ForbiddenError):
            check_eligibility(election, {})

    def test_year_list_compares_as_text(self):
        election = {"eligibility": {"departments": [], "years": ["3", "4"]}}
        check_eligibility(election, {"year": 3})
        check_eligibility(election, {"year": "4"})
        with pytest.raises(ForbiddenError, match="restricted to years: 3, 4"):
            check_eligibility(election, {"year": "1"})
        with pytest.raises(ForbiddenError):
            check_eligibility(election, {"year": None})


def test_voted_positions_lists_each_position_once(data, voter):
    assert voted_positions(data, "u1") == []
    cast_vote(data, voter, "c", NOW_MS)
    cast_vote(data, voter, "g1", NOW_MS)
    cast_vote(data, voter, "a", NOW_MS)
    assert voted_positions(data, "u1") == ["vp", None, "pres"]
    assert voted_positions(data, "someone-else") == []
