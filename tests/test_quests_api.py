"""End-to-end tests for the quest and progression endpoints."""

from concurrent.futures import ThreadPoolExecutor

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from db import Base, get_db
from main import app
from models import User


def create(client, headers, **body):
    resp = client.post("/api/quests", json=body, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()["quest"]


def test_quest_endpoints_require_auth(client):
    assert client.get("/api/quests").status_code == 401
    assert client.get("/api/quests/daily").status_code == 401
    assert client.post("/api/quests", json={"name": "x"}).status_code == 401
    assert client.post("/api/quests/reset-daily").status_code == 401
    assert client.post("/api/quests/1/complete", json={"completed": True}).status_code == 401


def test_create_quest(client, auth_headers):
    resp = client.post("/api/quests", headers=auth_headers, json={
        "name": "Read", "description": "20 pages", "isDaily": True,
    })
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Quest created successfully"
    quest = body["quest"]
    assert quest["name"] == "Read"
    assert quest["isDaily"] is True
    assert quest["completed"] is False
    assert quest["experienceValue"] == 100
    assert "createdAt" in quest


def test_create_quest_blank_name(client, auth_headers):
    resp = client.post("/api/quests", headers=auth_headers, json={"name": "   "})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Quest name is required"
    assert client.get("/api/quests", headers=auth_headers).json() == {"quests": []}


def test_list_and_daily(client, auth_headers):
    create(client, auth_headers, name="Run", isDaily=True)
    create(client, auth_headers, name="Ship release", isDaily=False)

    all_quests = client.get("/api/quests", headers=auth_headers).json()["quests"]
    daily = client.get("/api/quests/daily", headers=auth_headers).json()["quests"]
    assert [q["name"] for q in all_quests] == ["Run", "Ship release"]
    assert [q["name"] for q in daily] == ["Run"]


def test_complete_grants_experience_once(client, auth_headers):
    quest = create(client, auth_headers, name="Run")
    url = f"/api/quests/{quest['id']}/complete"

    first = client.post(url, json={"completed": True}, headers=auth_headers).json()
    assert first["message"] == "Quest marked as completed"
    assert first["quest"]["completed"] is True
    assert first["user"]["experience"] == 100
    assert first["leveledUp"] is False

    second = client.post(url, json={"completed": True}, headers=auth_headers).json()
    assert second["user"]["experience"] == 100


def test_uncomplete_keeps_experience(client, auth_headers):
    quest = create(client, auth_headers, name="Run")
    url = f"/api/quests/{quest['id']}/complete"
    client.post(url, json={"completed": True}, headers=auth_headers)

    resp = client.post(url, json={"completed": False}, headers=auth_headers).json()
    assert resp["message"] == "Quest marked as pending"
    assert resp["quest"]["completed"] is False
    assert resp["user"]["experience"] == 100


def test_complete_levels_up_with_overflow(client, auth_headers, db):
    user = db.query(User).filter_by(username="alice").one()
    user.experience = 950
    db.commit()

    quest = create(client, auth_headers, name="Boss fight")
    resp = client.post(f"/api/quests/{quest['id']}/complete",
                       json={"completed": True}, headers=auth_headers).json()
    assert resp["leveledUp"] is True
    assert resp["user"]["level"] == 2
    assert resp["user"]["experience"] == 50


def test_complete_unknown_quest(client, auth_headers):
    resp = client.post("/api/quests/4242/complete", json={"completed": True}, headers=auth_headers)
    assert resp.status_code == 404
    assert resp.json()["message"] == "Quest not found"


def test_complete_other_users_quest(client, auth_headers, signup):
    quest = create(client, auth_headers, name="Mine")
    other = {"Authorization": f"Bearer {signup('bob')['token']}"}

    resp = client.post(f"/api/quests/{quest['id']}/complete", json={"completed": True}, headers=other)
    assert resp.status_code == 404
    assert client.get("/api/quests", headers=other).json() == {"quests": []}


def test_complete_rejects_bad_body(client, auth_headers):
    quest = create(client, auth_headers, name="Run")
    resp = client.post(f"/api/quests/{quest['id']}/complete",
                       json={"completed": "maybe"}, headers=auth_headers)
    assert resp.status_code == 400
    assert "message" in resp.json()


def test_reset_daily_scenario(client, auth_headers):
    quest = create(client, auth_headers, name="Read", isDaily=True)
    client.post(f"/api/quests/{quest['id']}/complete", json={"completed": True}, headers=auth_headers)

    resp = client.post("/api/quests/reset-daily", headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json() == {"message": "Daily quests reset successfully", "count": 1}

    daily = client.get("/api/quests/daily", headers=auth_headers).json()["quests"]
    assert len(daily) == 1
    assert daily[0]["name"] == "Read"
    assert daily[0]["completed"] is False


def test_stats(client, auth_headers):
    a = create(client, auth_headers, name="A", isDaily=True)
    create(client, auth_headers, name="B", isDaily=True)
    create(client, auth_headers, name="C")
    client.post(f"/api/quests/{a['id']}/complete", json={"completed": True}, headers=auth_headers)

    stats = client.get("/api/stats", headers=auth_headers).json()
    assert stats == {
        "level": 1,
        "experience": 100,
        "experienceToNextLevel": 900,
        "progressPercent": 10.0,
        "streakDays": 0,
        "totalQuests": 3,
        "dailyQuests": 2,
        "completedToday": 1,
    }


def test_export(client, auth_headers):
    create(client, auth_headers, name="A", isDaily=True)
    create(client, auth_headers, name="B")

    data = client.get("/api/export", headers=auth_headers).json()
    assert data["user"]["username"] == "alice"
    assert [q["name"] for q in data["quests"]] == ["A", "B"]
    assert [q["name"] for q in data["dailyQuests"]] == ["A"]
    assert data["system"] == "Clinex Leveling"
    assert data["version"] == "1.0.0"
    assert "exportedAt" in data


def test_complete_out_of_range_id(client, auth_headers):
    resp = client.post("/api/quests/99999999999999999999/complete",
                       json={"completed": True}, headers=auth_headers)
    assert resp.status_code == 404
    assert resp.json()["message"] == "Quest not found"


def test_complete_without_body_defaults_to_completed(client, auth_headers):
    quest = create(client, auth_headers, name="Run")
    resp = client.post(f"/api/quests/{quest['id']}/complete", headers=auth_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Quest marked as completed"
    assert body["quest"]["completed"] is True
    assert body["user"]["experience"] == 100


def test_quest_created_at_is_utc(client, auth_headers):
    quest = create(client, auth_headers, name="Run")
    assert quest["createdAt"].endswith("Z") or quest["createdAt"].endswith("+00:00")


def test_concurrent_completions_award_once(tmp_path):
    file_engine = create_engine(
        f"sqlite:///{(tmp_path / 'race.db').as_posix()}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=file_engine)
    FileSession = sessionmaker(bind=file_engine, autoflush=False, autocommit=False)

    def file_db():
        session = FileSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = file_db
    try:
        setup = TestClient(app)
        token = setup.post("/api/auth/signup", json={
            "username": "racer", "email": "racer@x.com", "password": "secret1",
        }).json()["token"]
        headers = {"Authorization": f"Bearer {token}"}
        quest_id = setup.post("/api/quests", json={"name": "Race"}, headers=headers).json()["quest"]["id"]

        def complete(_):
            resp = TestClient(app).post(f"/api/quests/{quest_id}/complete",
                                        json={"completed": True}, headers=headers)
            return resp.status_code

        with ThreadPoolExecutor(max_workers=8) as pool:
            statuses = list(pool.map(complete, range(8)))

        assert statuses == [200] * 8
        me = setup.get("/api/auth/me", headers=headers).json()["user"]
        assert me["level"] == 1
        assert me["experience"] == 100
    finally:
        app.dependency_overrides.pop(get_db, None)
        file_engine.dispose()
