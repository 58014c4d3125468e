from datetime import timedelta

from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect
import pytest
from sqlalchemy import select

from academy.core.notifications import broker
from academy.core.security import create_access_token
from academy.models.rating import Rating
from academy.main import app
from academy.utils.dates import utcnow
from tests.conftest import auth_headers, make_group, make_user


async def test_register_login_me(client):
    response = await client.post("/auth/register", json={
        "email": "nina@academy.example.com",
        "first_name": "Nina",
        "last_name": "Petrova",
        "password": "secret123",
    })
    assert response.status_code == 201
    assert response.json()["role"] == "student"
    assert response.json()["points"] == 0

    response = await client.post("/auth/login", json={"email": "nina@academy.example.com", "password": "secret123"})
    assert response.status_code == 200
    token = response.json()["access_token"]

    response = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 200
    assert response.json()["email"] == "nina@academy.example.com"

    response = await client.post("/auth/login", json={"email": "nina@academy.example.com", "password": "wrong-one"})
    assert response.status_code == 401


async def test_admin_cannot_self_register(client):
    response = await client.post("/auth/register", json={
        "email": "boss@academy.example.com",
        "first_name": "Boss",
        "last_name": "Root",
        "password": "secret123",
        "role": "admin",
    })
    assert response.status_code == 403


async def test_grading_updates_rating_and_rank(client, teacher, group, students):
    alice = students[0]
    response = await client.post("/homework", headers=auth_headers(teacher), json={
        "title": "Irregular verbs",
        "group_id": group.id,
        "due_date": (utcnow() + timedelta(days=3)).isoformat(),
    })
    assert response.status_code == 201
    homework_id = response.json()["id"]

    response = await client.post(f"/homework/{homework_id}/submit", headers=auth_headers(alice), json={"answer": "went"})
    assert response.status_code == 200
    assert response.json()["status"] == "submitted"

    response = await client.put(f"/homework/{homework_id}/grade", headers=auth_headers(teacher), json={
        "student_id": alice.id,
        "total_grade": 9,
    })
    assert response.status_code == 200
    body = response.json()
    # 9*0.4 + 0*0.25 + 10*0.25 + 0*0.1 = 6.1
    assert body["total_score"] == 6
    assert body["rank_in_group"] == 1
    assert body["submission"]["status"] == "graded"

    response = await client.get(f"/ratings/student/{alice.id}", headers=auth_headers(alice))
    assert response.status_code == 200
    rating = response.json()["rating"]
    assert rating["grades"] == 9
    assert rating["homework_completion"] == 10
    assert [r["rank_in_group"] for r in response.json()["group_rankings"]] == [1, 2, 3]


async def test_attendance_session_recomputes_ratings(client, teacher, group, students):
    alice, bob, _ = students
    response = await client.post("/attendance/sessions", headers=auth_headers(teacher), json={
        "group_id": group.id,
        "session_date": "2026-10-05",
        "records": [
            {"student_id": alice.id, "present": True, "participation": 9},
            {"student_id": bob.id, "present": False, "participation": 5},
        ],
    })
    assert response.status_code == 200
    records = {r["student_id"]: r for r in response.json()["records"]}
    assert records[bob.id]["participation"] is None

    response = await client.get(f"/ratings/group/{group.id}", headers=auth_headers(teacher))
    ranking = response.json()
    assert ranking[0]["student_id"] == alice.id
    assert ranking[0]["attendance"] == 10
    assert ranking[0]["class_participation"] == 9
    bob_row = next(r for r in ranking if r["student_id"] == bob.id)
    assert bob_row["attendance"] == 0
    assert bob_row["total_classes"] == 1


async def test_moving_student_leaves_old_group_ranking(client, db, teacher, group, students):
    alice, bob, carol = students
    alice_id, bob_id, carol_id, group_id = alice.id, bob.id, carol.id, group.id
    other = await make_group(db, name="Group B", teacher=teacher)
    other_id = other.id
    rating = await db.scalar(select(Rating).where(Rating.student_id == alice_id))
    rating.total_score = 9
    await db.commit()

    response = await client.get(f"/ratings/group/{group_id}", headers=auth_headers(teacher))
    assert response.json()[0]["student_id"] == alice_id

    response = await client.post(
        f"/groups/{other_id}/students", headers=auth_headers(teacher), json={"student_ids": [alice_id]}
    )
    assert response.status_code == 200
    assert [(r["student_id"], r["group_id"], r["total_score"]) for r in response.json()] == [(alice_id, other_id, 0)]

    response = await client.get(f"/ratings/group/{group_id}", headers=auth_headers(teacher))
    ranking = response.json()
    assert [r["student_id"] for r in ranking] == [bob_id, carol_id]
    assert [r["rank_in_group"] for r in ranking] == [1, 2]

    groups = (await db.execute(
        select(Rating.group_id).where(Rating.student_id == alice_id).execution_options(populate_existing=True)
    )).scalars().all()
    assert groups == [other_id]


async def test_bonus_task_route_is_idempotent(client, db):
    student = await make_user(db)
    headers = auth_headers(student)

    response = await client.post("/bonus-tasks/3/complete", headers=headers, json={"proof": "photo"})
    assert response.status_code == 200
    assert response.json()["points_earned"] == 15
    assert response.json()["new_achievements"][0]["title"] == "First bonus task"

    response = await client.post("/bonus-tasks/3/complete", headers=headers, json={})
    assert response.status_code == 409
    assert response.json()["error"] == "AlreadyCompleted"

    response = await client.get(f"/points/{student.id}", headers=headers)
    assert response.json()["points"] == 15


async def test_reward_routes_map_errors(client, db, teacher):
    student = await make_user(db, points=40)

    response = await client.post("/rewards", headers=auth_headers(teacher), json={
        "title": "Sticker pack", "points_required": 30, "order": 1, "category": "stationery",
    })
    assert response.status_code == 201
    reward_id = response.json()["id"]

    response = await client.post("/rewards/999/claim", headers=auth_headers(student))
    assert response.status_code == 404
    assert response.json() == {"detail": "Reward not found", "error": "NotFound"}

    response = await client.post(f"/rewards/{reward_id}/claim", headers=auth_headers(student))
    assert response.status_code == 200
    assert response.json()["points_spent"] == 30

    response = await client.post(f"/rewards/{reward_id}/claim", headers=auth_headers(student))
    assert response.status_code == 400
    assert response.json()["error"] == "InsufficientPoints"

    response = await client.get("/rewards", headers=auth_headers(student))
    assert response.json()[0]["claimed"] is True


async def test_students_cannot_see_each_other(client, students):
    alice, bob, _ = students
    response = await client.get(f"/points/{bob.id}", headers=auth_headers(alice))
    assert response.status_code == 403


async def test_parent_sees_linked_child(client, db, admin, students):
    alice = students[0]
    parent = await make_user(db, role="parent", first_name="Paula")

    response = await client.get(f"/points/{alice.id}", headers=auth_headers(parent))
    assert response.status_code == 403

    response = await client.post(
        f"/users/{parent.id}/children", headers=auth_headers(admin), json={"child_id": alice.id}
    )
    assert response.status_code == 204

    response = await client.get(f"/points/{alice.id}", headers=auth_headers(parent))
    assert response.status_code == 200


async def test_only_admin_can_debit(client, db, teacher, admin):
    student = await make_user(db, points=20)
    body = {"amount": 5, "reason": "Lost book"}

    response = await client.post(f"/points/{student.id}/debit", headers=auth_headers(teacher), json=body)
    assert response.status_code == 403

    response = await client.post(f"/points/{student.id}/debit", headers=auth_headers(admin), json=body)
    assert response.json() == {"student_id": student.id, "points": 15}

    response = await client.post(f"/points/{student.id}/debit", headers=auth_headers(admin), json={
        "amount": 50, "reason": "Too much",
    })
    assert response.status_code == 400
    assert response.json()["error"] == "InsufficientPoints"


async def test_competition_flow(client, teacher, group, students):
    alice, bob, _ = students
    now = utcnow()
    response = await client.post("/competitions", headers=auth_headers(teacher), json={
        "title": "Grammar cup",
        "start_date": (now - timedelta(hours=1)).isoformat(),
        "end_date": (now + timedelta(days=2)).isoformat(),
        "eligible_group_ids": [group.id],
        "prizes": [{"position": 1, "title": "Cup", "points": 40}],
    })
    assert response.status_code == 201
    competition = response.json()
    assert competition["status"] == "active"
    assert competition["eligible_group_ids"] == [group.id]

    for student in (alice, bob):
        response = await client.post(f"/competitions/{competition['id']}/participate", headers=auth_headers(student))
        assert response.status_code == 200

    response = await client.post(f"/competitions/{competition['id']}/winners", headers=auth_headers(teacher), json={
        "winners": [{"student_id": bob.id, "position": 1}],
    })
    assert response.status_code == 200
    assert response.json()[0]["points_awarded"] == 40

    response = await client.get("/competitions", headers=auth_headers(bob))
    listed = response.json()
    assert listed[0]["participant_count"] == 2
    assert listed[0]["winners"][0]["student_id"] == bob.id

    response = await client.get(f"/points/{bob.id}", headers=auth_headers(bob))
    assert response.json()["points"] == 40


async def test_direct_messages(client, db, teacher, students):
    alice = students[0]

    response = await client.post("/messages", headers=auth_headers(teacher), json={
        "recipient_id": alice.id, "content": "Great essay!",
    })
    assert response.status_code == 201
    message_id = response.json()["id"]

    response = await client.get("/messages/conversations", headers=auth_headers(alice))
    conversations = response.json()
    assert conversations[0]["user_id"] == teacher.id
    assert conversations[0]["unread_count"] == 1

    response = await client.put(f"/messages/{message_id}/read", headers=auth_headers(alice))
    assert response.json()["is_read"] is True

    response = await client.get(f"/messages/with/{teacher.id}", headers=auth_headers(alice))
    assert [m["content"] for m in response.json()] == ["Great essay!"]


def test_websocket_rejects_bad_token():
    test_client = TestClient(app)
    with pytest.raises(WebSocketDisconnect):
        with test_client.websocket_connect("/ws?token=garbage") as websocket:
            websocket.receive_json()


def test_websocket_subscribes_user():
    token = create_access_token({"sub": "77", "role": "student"})
    test_client = TestClient(app)
    with test_client.websocket_connect(f"/ws?token={token}"):
        assert broker.listener_count(77) == 1
