import pytest
from fastapi.testclient import TestClient

from conftest import SCHOOL, TOPIC_MARKER, FakeRequester, analysis_json
from main import app
from routes.deps import get_pipeline, get_scheduler
from utils.pipeline import ExtractionPipeline


@pytest.fixture
def client(tadoku_home):
    requester = FakeRequester("no json here", analysis_json([SCHOOL], [TOPIC_MARKER]))
    pipeline = ExtractionPipeline(requester)
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    get_scheduler.cache_clear()
    yield TestClient(app)
    app.dependency_overrides.clear()
    get_scheduler.cache_clear()


def _create_user(client, username="hana"):
    response = client.post("/users", json={"username": username, "vocab_level": 3, "grammar_level": 2})
    assert response.status_code == 201
    return response.json()


def _create_story(client, user_id):
    response = client.post(
        "/stories",
        json={"text": "私は学校に行きます。", "title": "学校", "level": 3, "grammar_level": 2, "user_id": user_id},
    )
    assert response.status_code == 201
    return response.json()


def test_review_flow_retries_after_unusable_response(client):
    user = _create_user(client)
    story = _create_story(client, user["id"])

    first = client.get(f"/stories/{story['id']}/review")
    assert first.status_code == 200
    assert first.json()["available"] is False
    assert first.json()["words"] == []
    assert client.get(f"/stories/{story['id']}/state").json()["state"] == "not_analyzed"

    second = client.get(f"/stories/{story['id']}/review")
    body = second.json()
    assert body["available"] is True
    assert body["state"] == "analyzed"
    assert [w["text"] for w in body["words"]] == ["学校"]
    assert [r["rule"] for r in body["rules"]] == ["は (topic marker)"]


def test_review_of_unknown_story_is_404(client):
    assert client.get("/stories/999/review").status_code == 404
    assert client.get("/stories/999").status_code == 404


def test_difficult_word_endpoints(client):
    user = _create_user(client)
    story = _create_story(client, user["id"])
    client.get(f"/stories/{story['id']}/review")  # first queued response is unusable
    word_id = client.get(f"/stories/{story['id']}/review").json()["words"][0]["id"]

    response = client.post("/words/difficult", json={"user_id": user["id"], "word_id": word_id, "sleep_days": 7})
    assert response.status_code == 200
    assert response.json()["success"] is True

    listed = client.get(f"/words/difficult?user_id={user['id']}").json()
    assert len(listed) == 1
    assert listed[0]["word"]["id"] == word_id
    assert listed[0]["active"] is False
    assert listed[0]["sleep_remaining"] == 7
    assert client.get(f"/words/difficult/due?user_id={user['id']}").json() == []

    assert client.delete(f"/words/difficult/{word_id}?user_id={user['id']}").status_code == 200
    assert client.get(f"/words/difficult?user_id={user['id']}").json() == []
    assert client.delete(f"/words/difficult/{word_id}?user_id={user['id']}").status_code == 404


def test_mark_difficult_validation(client):
    user = _create_user(client)
    missing = client.post("/words/difficult", json={"user_id": user["id"], "word_id": 12345})
    assert missing.status_code == 404
    negative = client.post("/words/difficult", json={"user_id": user["id"], "word_id": 1, "sleep_days": -2})
    assert negative.status_code == 422


def test_search_and_listing(client):
    user = _create_user(client)
    story = _create_story(client, user["id"])
    client.get(f"/stories/{story['id']}/review")
    client.get(f"/stories/{story['id']}/review")

    assert [w["text"] for w in client.get("/words/search?query=school").json()] == ["学校"]
    assert [w["text"] for w in client.get("/words/search?query=がっこう&max_level=3").json()] == ["学校"]
    assert client.get("/words/search?query=school&max_level=2").json() == []
    assert len(client.get("/words/all").json()) == 1
    assert [g["rule"] for g in client.get("/grammar/search?query=topic").json()] == ["は (topic marker)"]
    assert len(client.get("/grammar/all").json()) == 1


def test_read_log(client):
    user = _create_user(client)
    story = _create_story(client, user["id"])

    first = client.post(f"/stories/{story['id']}/read?user_id={user['id']}")
    again = client.post(f"/stories/{story['id']}/read?user_id={user['id']}")
    assert first.status_code == 200
    assert again.json()["completed_at"] == first.json()["completed_at"]

    records = client.get(f"/users/{user['id']}/read").json()
    assert [r["document_id"] for r in records] == [story["id"]]
    assert client.post(f"/stories/{story['id']}/read?user_id=999").status_code == 404


def test_duplicate_username_is_rejected(client):
    _create_user(client)
    assert client.post("/users", json={"username": "hana"}).status_code == 400


def test_mark_difficult_uses_configured_default_sleep(client, monkeypatch):
    monkeypatch.setenv("TADOKU_SLEEP_DAYS", "3")
    user = _create_user(client)
    story = _create_story(client, user["id"])
    client.get(f"/stories/{story['id']}/review")
    word_id = client.get(f"/stories/{story['id']}/review").json()["words"][0]["id"]

    response = client.post("/words/difficult", json={"user_id": user["id"], "word_id": word_id})
    assert response.status_code == 200

    listed = client.get(f"/words/difficult?user_id={user['id']}").json()
    assert listed[0]["sleep_remaining"] == 3


def test_list_stories_for_user(client):
    hana = _create_user(client)
    ken = _create_user(client, "ken")
    first = _create_story(client, hana["id"])
    second = _create_story(client, hana["id"])
    _create_story(client, ken["id"])

    stories = client.get(f"/stories?user_id={hana['id']}").json()
    assert [s["id"] for s in stories] == [second["id"], first["id"]]
    assert client.get("/stories?user_id=999").status_code == 404
