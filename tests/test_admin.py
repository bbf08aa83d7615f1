"""Tests for the administrative endpoints."""

import pytest


class TestUsers:
    def test_list_users_includes_team_name(self, client, store, make_user):
        team = store.create_team(name="Closers", description=None, industry=None)
        _, headers = make_user(role="admin")
        rep, _ = make_user(team_id=team.id)

        users = {user["id"]: user for user in client.get("/admin/users", headers=headers).json()}
        assert users[rep.id]["team"] == {"name": "Closers"}
        assert "password_hash" not in users[rep.id]

    def test_update_role(self, client, store, make_user):
        _, headers = make_user(role="admin")
        rep, _ = make_user()
        response = client.patch(f"/admin/users/{rep.id}/role", json={"role": "team_lead"}, headers=headers)
        assert response.status_code == 200
        assert response.json()["role"] == "team_lead"
        assert store.get_user(rep.id).role == "team_lead"

    @pytest.mark.parametrize("role", ["owner", None])
    def test_update_role_rejects_invalid(self, client, make_user, role):
        _, headers = make_user(role="admin")
        rep, _ = make_user()
        response = client.patch(f"/admin/users/{rep.id}/role", json={"role": role}, headers=headers)
        assert response.status_code == 400

    def test_update_role_unknown_user(self, client, make_user):
        _, headers = make_user(role="admin")
        response = client.patch("/admin/users/missing/role", json={"role": "user"}, headers=headers)
        assert response.status_code == 404

    def test_cannot_delete_self(self, client, make_user):
        admin, headers = make_user(role="admin")
        response = client.delete(f"/admin/users/{admin.id}", headers=headers)
        assert response.status_code == 400
        assert response.json()["detail"] == "Cannot delete your own account"

    def test_delete_cascades(self, client, store, make_user, make_pitch):
        _, headers = make_user(role="admin")
        rep, _ = make_user()
        make_pitch(rep.id)

        response = client.delete(f"/admin/users/{rep.id}", headers=headers)
        assert response.json() == {"message": "User deleted successfully"}
        assert store.get_user(rep.id) is None
        assert store.count_pitches(user_id=rep.id) == 0

        assert client.delete(f"/admin/users/{rep.id}", headers=headers).status_code == 404


class TestTeamsAndAnalytics:
    def test_all_teams_with_member_count(self, client, store, make_user):
        team = store.create_team(name="Closers", description=None, industry=None)
        _, headers = make_user(role="team_lead")
        make_user(team_id=team.id)
        make_user(team_id=team.id)

        data = client.get("/admin/teams", headers=headers).json()
        assert data[0]["name"] == "Closers"
        assert data[0]["member_count"] == 2

    def test_platform_analytics(self, client, store, make_user, make_pitch):
        store.create_team(name="Closers", description=None, industry=None)
        admin, headers = make_user(role="admin")
        rep, _ = make_user()
        make_pitch(rep.id, score=70)
        make_pitch(rep.id, score=81)
        store.increment_user_xp(rep.id, 250)

        data = client.get("/admin/analytics", headers=headers).json()
        assert data["total_users"] == 2
        assert data["total_teams"] == 1
        assert data["total_pitches"] == 2
        assert data["total_xp"] == 250
        assert data["average_pitch_score"] == 76
        assert data["recent_activity"] == {"pitches_last_30_days": 2, "new_users_last_30_days": 2}
        assert data["users_by_role"] == {"admin": 1, "user": 1}

    def test_assign_with_null_team_unassigns(self, client, store, make_user):
        team = store.create_team(name="Closers", description=None, industry=None)
        _, headers = make_user(role="admin")
        rep, _ = make_user(team_id=team.id)

        response = client.post("/admin/users/assign-team", json={"user_id": rep.id, "team_id": None}, headers=headers)
        assert response.status_code == 200
        assert response.json()["team_id"] is None
        assert store.get_user(rep.id).team_id is None
