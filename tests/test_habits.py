"""Tests for habit creation, membership and listing."""

import pytest

from habitproof import db
from habitproof.errors import NotFound, Unauthenticated
from habitproof.habits import create_habit, join_habit
from habitproof.models import Habit, User


def _create(client, user, title="Read 20 pages", description="Every evening"):
    return client.post("/api/habits", json={"title": title, "description": description}, headers=user.headers)


class TestCreateHabit:
    def test_requires_login(self, app, client) -> None:
        res = client.post("/api/habits", json={"title": "Run"})
        assert res.status_code == 401
        assert res.get_json()["message"] == "Not authenticated"
        with app.app_context():
            assert Habit.query.count() == 0

    def test_requires_title(self, client, alice) -> None:
        res = client.post("/api/habits", json={"description": "no title"}, headers=alice.headers)
        assert res.status_code == 400

    def test_creator_is_first_member(self, app, client, alice) -> None:
        res = _create(client, alice)
        assert res.status_code == 201
        habit = res.get_json()["habit"]
        assert habit["title"] == "Read 20 pages"
        assert habit["members"] == [alice.id]
        assert habit["creator"] == {"id": alice.id, "displayName": "Alice", "avatar": "https://example.com/alice.png"}
        assert habit["streak"] == 0
        me = client.get("/api/me", headers=alice.headers).get_json()["user"]
        assert me["joinedHabits"] == [habit["id"]]

    def test_service_rejects_anonymous(self, app) -> None:
        with app.app_context():
            with pytest.raises(Unauthenticated):
                create_habit(None, "Run")


class TestJoinHabit:
    def test_join_adds_member(self, client, alice, bob) -> None:
        habit_id = _create(client, alice).get_json()["habit"]["id"]
        res = client.post(f"/api/habits/{habit_id}/join", headers=bob.headers)
        assert res.status_code == 200
        assert sorted(res.get_json()["habit"]["members"]) == sorted([alice.id, bob.id])

    def test_join_twice_is_idempotent(self, app, client, alice, bob) -> None:
        habit_id = _create(client, alice).get_json()["habit"]["id"]
        client.post(f"/api/habits/{habit_id}/join", headers=bob.headers)
        res = client.post(f"/api/habits/{habit_id}/join", headers=bob.headers)
        members = res.get_json()["habit"]["members"]
        assert members.count(bob.id) == 1
        with app.app_context():
            user = db.session.get(User, bob.id)
            assert [h.id for h in user.joined_habits] == [habit_id]

    def test_creator_joining_own_habit_changes_nothing(self, client, alice) -> None:
        habit_id = _create(client, alice).get_json()["habit"]["id"]
        res = client.post(f"/api/habits/{habit_id}/join", headers=alice.headers)
        assert res.get_json()["habit"]["members"] == [alice.id]

    def test_missing_habit(self, client, bob) -> None:
        res = client.post("/api/habits/404/join", headers=bob.headers)
        assert res.status_code == 404
        assert res.get_json()["message"] == "Habit not found"

    def test_requires_login(self, client, alice) -> None:
        habit_id = _create(client, alice).get_json()["habit"]["id"]
        assert client.post(f"/api/habits/{habit_id}/join").status_code == 401

    def test_service_checks(self, app, alice) -> None:
        with app.app_context():
            user = db.session.get(User, alice.id)
            with pytest.raises(NotFound):
                join_habit(user, 12345)
            with pytest.raises(Unauthenticated):
                join_habit(None, 12345)


class TestListHabits:
    def test_empty(self, client) -> None:
        assert client.get("/api/habits").get_json() == {"habits": []}

    def test_lists_all_with_creator_metadata(self, client, alice, bob) -> None:
        _create(client, alice, title="Read")
        _create(client, bob, title="Run")
        habits = client.get("/api/habits").get_json()["habits"]
        assert [h["title"] for h in habits] == ["Read", "Run"]
        assert [h["creator"]["displayName"] for h in habits] == ["Alice", "Bob"]


def test_health(client) -> None:
    assert client.get("/health").get_json() == {"status": "ok"}
