# tests/test_routes.py
from datetime import timedelta

from models import get_topics_for_day
from utils.datetime_utils import day_of_week, now_utc, utc_today


def todays_review_topic():
    return get_topics_for_day(day_of_week(utc_today()))["repetition"]


def test_initialize_and_edit_practice_plan(client):
    response = client.post("/api/practice-plan/initialize")
    assert response.status_code == 200
    assert len(response.get_json()["plans"]) == 7

    response = client.post(
        "/api/practice-plan", json={"dayOfWeek": 3, "anchorTopic": "Graphs", "repetitionTopic": "Heaps"}
    )
    assert response.get_json()["anchorTopic"] == "Graphs"
    assert client.get("/api/practice-plan/day/3").get_json()["repetitionTopic"] == "Heaps"

    plan_id = response.get_json()["id"]
    assert client.delete(f"/api/practice-plan/{plan_id}").status_code == 200
    assert client.get("/api/practice-plan/day/3").status_code == 404


def test_practice_plan_rejects_bad_day(client):
    response = client.get("/api/practice-plan/day/9")
    assert response.status_code == 400
    assert response.get_json()["code"] == "InvalidArgument"

    response = client.post("/api/practice-plan", json={"anchorTopic": "Graphs", "repetitionTopic": "Heaps"})
    assert response.status_code == 400


def test_add_problems_reports_duplicates(client):
    payload = {"problemNumbers": ["1", "49"], "topic": "Arrays & Hashing", "difficulty": "Easy"}
    response = client.post("/api/problems", json=payload)
    assert response.status_code == 201
    body = response.get_json()
    assert [p["problemNumber"] for p in body["problems"]] == ["1", "49"]
    assert body["duplicates"] is None

    response = client.post("/api/problems", json=payload)
    assert response.status_code == 200
    assert {d["reason"] for d in response.get_json()["duplicates"]} == {"already_added_today"}
    assert len(client.get("/api/problems?kind=anchor").get_json()) == 2


def test_add_problems_validates_payload(client):
    assert client.post("/api/problems", json={"topic": "Stacks"}).status_code == 400
    response = client.post("/api/problems", json={"problemNumbers": ["1"], "topic": "Stacks", "difficulty": "Brutal"})
    assert response.status_code == 400


def test_dashboard_materializes_todays_review(client, make_anchor):
    anchor = make_anchor(topic=todays_review_topic(), scheduled=utc_today(), solve_count=1)

    body = client.get("/api/daily/dashboard").get_json()

    assert body["repetitionTopic"] == anchor.topic
    assert [p["originalRef"] for p in body["repetitionProblems"]] == [anchor.id]
    assert len(body["created"]) == 1
    # second load reuses the same repetition
    body = client.get("/api/daily/dashboard").get_json()
    assert body["created"] == []
    assert len(body["repetitionProblems"]) == 1


def test_dashboard_cap_must_be_positive(client):
    response = client.get("/api/daily/dashboard?cap=0")
    assert response.status_code == 400
    assert client.get("/api/daily/backlog?cap=abc").status_code == 400


def test_complete_and_uncomplete(client, make_anchor):
    anchor = make_anchor(topic="Stacks")

    body = client.patch(f"/api/problems/{anchor.id}/complete").get_json()
    assert body["changed"] is True
    assert body["solveCount"] == 1
    assert body["problem"]["isCompleted"] is True

    body = client.patch(f"/api/problems/{anchor.id}/uncomplete").get_json()
    assert body["changed"] is True
    assert body["solveCount"] == 0
    assert body["anchor"]["failedCount"] == 1


def test_completion_from_a_past_day_is_locked(client, make_anchor):
    anchor = make_anchor(is_completed=True, completed_at=now_utc() - timedelta(days=1), solve_count=1)

    for action in ("complete", "uncomplete"):
        response = client.patch(f"/api/problems/{anchor.id}/{action}")
        assert response.status_code == 409
        assert response.get_json()["code"] == "LockedCompletion"


def test_unknown_problem_is_404(client):
    response = client.get("/api/problems/999")
    assert response.status_code == 404
    assert response.get_json() == {"error": "Problem not found", "code": "NotFound"}


def test_update_and_delete_problem(client, make_anchor, make_repetition):
    anchor = make_anchor()
    repetition = make_repetition(anchor)

    response = client.put(f"/api/problems/{anchor.id}", json={"notes": " use a hash map ", "difficulty": "Hard"})
    assert response.get_json()["problem"]["notes"] == "use a hash map"
    assert response.get_json()["problem"]["difficulty"] == "Hard"

    assert client.delete(f"/api/problems/{anchor.id}").status_code == 200
    assert client.get(f"/api/problems/{repetition.id}").status_code == 404


def test_stats_and_topics(client, make_anchor):
    make_anchor(topic="Stacks")
    make_anchor(topic="Graphs", is_completed=True, completed_at=now_utc())

    assert client.get("/api/problems/topics").get_json() == {"topics": ["Graphs", "Stacks"]}
    stats = client.get("/api/stats").get_json()
    assert stats["overview"]["total"] == 2
    assert stats["todaySolvedCount"] == 1
