from datetime import datetime, timedelta

from conftest import auth_headers
from skillsprint.models import ChallengeStatus, ReviewAction, User, UserRole
from skillsprint.services import submissions as lifecycle
from skillsprint.services.submissions import SubmissionPayload


def challenge_body(**overrides):
    now = datetime.utcnow()
    body = {
        "title": "Reverse a linked list",
        "description": "Reverse the list in place.",
        "difficulty": "MEDIUM",
        "points": 50,
        "time_limit": 45,
        "start_date": (now - timedelta(hours=1)).isoformat(),
        "end_date": (now + timedelta(days=7)).isoformat(),
        "status": "ACTIVE",
        "test_cases": [
            {"input": "1 2 3", "expected_output": "3 2 1", "is_public": True},
            {"input": " 5 ", "expected_output": " 5 ", "is_public": False},
        ],
    }
    body.update(overrides)
    return body


def test_participants_cannot_create_challenges(client):
    response = client.post("/challenges", json=challenge_body(), headers=auth_headers("pat"))
    assert response.status_code == 403
    assert response.json() == {
        "kind": "Forbidden",
        "detail": "Forbidden - Creator access required",
    }


def test_create_challenge(client, creator):
    response = client.post(
        "/challenges", json=challenge_body(), headers=auth_headers(creator.user_id)
    )
    assert response.status_code == 201
    data = response.json()
    assert data["title"] == "Reverse a linked list"
    assert data["status"] == "ACTIVE"
    assert data["creator_id"] == "creator"

    detail = client.get(
        f"/challenges/{data['challenge_id']}", headers=auth_headers(creator.user_id)
    ).json()
    assert detail["test_case_count"] == 2
    assert [tc["input"] for tc in detail["test_cases"]] == ["1 2 3", "5"]


def test_create_challenge_validation(client, creator):
    headers = auth_headers(creator.user_id)
    now = datetime.utcnow()

    inverted = challenge_body(
        start_date=now.isoformat(), end_date=(now - timedelta(days=1)).isoformat()
    )
    response = client.post("/challenges", json=inverted, headers=headers)
    assert response.status_code == 422
    assert response.json()["kind"] == "ValidationError"

    for bad in (
        challenge_body(test_cases=[]),
        challenge_body(points=0),
        challenge_body(difficulty="IMPOSSIBLE"),
        challenge_body(status="COMPLETED"),
        challenge_body(title="   "),
        challenge_body(test_cases=[{"input": "", "expected_output": "1"}]),
    ):
        assert client.post("/challenges", json=bad, headers=headers).status_code == 422


def test_list_shows_public_challenges_only(client, make_challenge, creator):
    make_challenge(creator, title="Active one")
    make_challenge(creator, title="Hidden draft", status=ChallengeStatus.DRAFT)
    make_challenge(creator, title="Finished", status=ChallengeStatus.COMPLETED)
    headers = auth_headers("pat")

    data = client.get("/challenges", headers=headers).json()
    assert data["total"] == 2
    assert {item["title"] for item in data["items"]} == {"Active one", "Finished"}

    data = client.get("/challenges?status=DRAFT", headers=headers).json()
    assert data["total"] == 0

    data = client.get("/challenges?search=finish", headers=headers).json()
    assert [item["title"] for item in data["items"]] == ["Finished"]

    data = client.get("/challenges?limit=1&offset=1", headers=headers).json()
    assert data["total"] == 2
    assert len(data["items"]) == 1


def test_private_test_cases_are_hidden_from_participants(client, challenge):
    response = client.get(f"/challenges/{challenge.challenge_id}", headers=auth_headers("pat"))
    assert response.status_code == 200
    cases = response.json()["test_cases"]
    assert len(cases) == 1
    assert cases[0]["is_public"] is True
    assert response.json()["test_case_count"] == 2


def test_draft_challenges_are_not_found_for_others(client, make_challenge, creator):
    draft = make_challenge(creator, status=ChallengeStatus.DRAFT)
    response = client.get(f"/challenges/{draft.challenge_id}", headers=auth_headers("pat"))
    assert response.status_code == 404
    assert response.json()["kind"] == "NotFound"

    own = client.get(f"/challenges/{draft.challenge_id}", headers=auth_headers("creator"))
    assert own.status_code == 200


def test_manage_lists_own_challenges_with_counts(client, make_user, make_challenge, creator, challenge):
    make_challenge(make_user("other", role=UserRole.CREATOR), title="Not mine")
    response = client.get("/challenges/manage", headers=auth_headers(creator.user_id))
    assert response.status_code == 200
    data = response.json()
    assert [item["challenge_id"] for item in data] == [challenge.challenge_id]
    assert data[0]["test_case_count"] == 2
    assert data[0]["submission_count"] == 0


def test_update_challenge(client, challenge):
    cid = challenge.challenge_id
    headers = auth_headers("creator")

    response = client.patch(
        f"/challenges/{cid}",
        json={
            "title": "Two Sum II",
            "test_cases": [{"input": "1 1\n2", "expected_output": "0 1", "is_public": True}],
        },
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["title"] == "Two Sum II"

    detail = client.get(f"/challenges/{cid}", headers=headers).json()
    assert detail["test_case_count"] == 1

    response = client.patch(f"/challenges/{cid}", json={"title": "x"}, headers=auth_headers("pat"))
    assert response.status_code == 403


def test_update_rejects_inverted_dates(client, challenge):
    past = (datetime.utcnow() - timedelta(days=30)).isoformat()
    response = client.patch(
        f"/challenges/{challenge.challenge_id}",
        json={"end_date": past},
        headers=auth_headers("creator"),
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "End date must be after start date"


def test_update_status(client, challenge):
    response = client.patch(
        f"/challenges/{challenge.challenge_id}/status",
        json={"status": "COMPLETED"},
        headers=auth_headers("creator"),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "COMPLETED"


def test_delete_is_blocked_by_final_submissions(client, db, make_user, challenge):
    make_user("alice")
    lifecycle.submit_final(
        db, challenge.challenge_id, "alice", SubmissionPayload(code="x", language="c")
    )
    response = client.delete(
        f"/challenges/{challenge.challenge_id}", headers=auth_headers("creator")
    )
    assert response.status_code == 409
    assert response.json()["kind"] == "InvalidState"


def test_delete_draft_challenge(client, make_challenge, creator):
    draft = make_challenge(creator, status=ChallengeStatus.DRAFT)
    headers = auth_headers("creator")

    assert client.delete(f"/challenges/{draft.challenge_id}", headers=auth_headers("pat")).status_code == 403
    assert client.delete(f"/challenges/{draft.challenge_id}", headers=headers).status_code == 204
    assert client.get(f"/challenges/{draft.challenge_id}", headers=headers).status_code == 404


def test_analytics_endpoint(client, challenge):
    cid = challenge.challenge_id
    response = client.get(f"/challenges/{cid}/analytics", headers=auth_headers("pat"))
    assert response.status_code == 403
    assert response.json()["kind"] == "Forbidden"

    response = client.get(f"/challenges/{cid}/analytics", headers=auth_headers("creator"))
    assert response.status_code == 200
    data = response.json()
    assert data["total_submissions"] == 0
    assert data["average_score"] == 0
    assert data["difficulty_metrics"] == {"average_attempts": 0, "success_rate": 0}


def test_challenge_submissions_are_for_reviewers(client, db, make_user, challenge):
    make_user("alice")
    make_user("bob")
    make_user("judy", role=UserRole.JUDGE)
    cid = challenge.challenge_id
    lifecycle.submit_final(db, cid, "alice", SubmissionPayload(code="x", language="c"))
    lifecycle.save_draft(db, cid, "bob", SubmissionPayload(code="y", language="c"))

    assert client.get(f"/challenges/{cid}/submissions", headers=auth_headers("alice")).status_code == 403
    for reviewer in ("creator", "judy"):
        response = client.get(f"/challenges/{cid}/submissions", headers=auth_headers(reviewer))
        assert response.status_code == 200
        assert [s["user_id"] for s in response.json()] == ["alice"]


def test_delete_is_blocked_by_accepted_submissions_after_moving_to_draft(
    client, db, make_user, creator, challenge
):
    make_user("alice")
    cid = challenge.challenge_id
    headers = auth_headers("creator")
    submission = lifecycle.submit_final(db, cid, "alice", SubmissionPayload(code="x", language="c"))
    lifecycle.review(db, submission.submission_id, creator, ReviewAction.ACCEPT)

    response = client.patch(f"/challenges/{cid}/status", json={"status": "DRAFT"}, headers=headers)
    assert response.status_code == 200

    response = client.delete(f"/challenges/{cid}", headers=headers)
    assert response.status_code == 409
    assert response.json()["kind"] == "InvalidState"

    assert client.get(f"/challenges/{cid}", headers=headers).status_code == 200
    db.expire_all()
    assert db.get(User, "alice").points == 100


def test_points_are_frozen_once_solutions_are_submitted(client, db, make_user, challenge):
    make_user("alice")
    cid = challenge.challenge_id
    headers = auth_headers("creator")
    lifecycle.submit_final(db, cid, "alice", SubmissionPayload(code="x", language="c"))

    response = client.patch(f"/challenges/{cid}", json={"points": 10}, headers=headers)
    assert response.status_code == 409
    assert response.json() == {
        "kind": "InvalidState",
        "detail": "Cannot change points once solutions have been submitted",
    }

    response = client.patch(
        f"/challenges/{cid}", json={"points": 100, "title": "Two Sum, again"}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["points"] == 100
    assert response.json()["title"] == "Two Sum, again"


def test_points_can_change_while_only_drafts_exist(client, db, make_user, challenge):
    make_user("bob")
    cid = challenge.challenge_id
    lifecycle.save_draft(db, cid, "bob", SubmissionPayload(code="y", language="c"))

    response = client.patch(f"/challenges/{cid}", json={"points": 10}, headers=auth_headers("creator"))
    assert response.status_code == 200
    assert response.json()["points"] == 10
