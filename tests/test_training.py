"""Tests for training sessions: creation, completion XP accounting and role-play chat."""

import pytest

from pitchperfect.backend.training import xp_for_difficulty


def _create_session(client, headers, **overrides):
    payload = {"scenario": "Cold call to a CTO", "difficulty": "medium", "target_persona": "CTO"}
    payload.update(overrides)
    response = client.post("/training", json=payload, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


class TestCreateSession:
    def test_defaults_language(self, client, make_user):
        user, headers = make_user()
        session = _create_session(client, headers)
        assert session["user_id"] == user.id
        assert session["language"] == "en"
        assert session["completed"] is False
        assert session["xp_earned"] == 0

    @pytest.mark.parametrize("payload", [{"scenario": "x"}, {"difficulty": "easy"}, {}])
    def test_requires_scenario_and_difficulty(self, client, make_user, payload):
        _, headers = make_user()
        assert client.post("/training", json=payload, headers=headers).status_code == 400

    def test_list_and_get_include_industry(self, client, store, make_user):
        industry = store.create_industry(name="SaaS", description=None, icon=None, scenario_templates=[])
        _, headers = make_user()
        session = _create_session(client, headers, industry_id=industry.id)

        listed = client.get("/training", headers=headers).json()
        assert listed[0]["industry"]["name"] == "SaaS"
        assert listed[0]["pitches"] == []

        fetched = client.get(f"/training/{session['id']}", headers=headers).json()
        assert fetched["industry"]["id"] == industry.id

    def test_get_foreign_session_is_404(self, client, make_user):
        _, owner_headers = make_user()
        _, other_headers = make_user()
        session = _create_session(client, owner_headers)
        assert client.get(f"/training/{session['id']}", headers=other_headers).status_code == 404


class TestCompleteSession:
    @pytest.mark.parametrize(
        "difficulty,expected",
        [("easy", 50), ("medium", 100), ("hard", 200), ("nightmare", 50)],
    )
    def test_xp_by_difficulty(self, difficulty, expected):
        assert xp_for_difficulty(difficulty) == expected

    def test_awards_xp_once(self, client, store, make_user, analysis_calls):
        user, headers = make_user()
        session = _create_session(client, headers, difficulty="hard")

        first = client.post(f"/training/{session['id']}/complete", json={}, headers=headers)
        assert first.status_code == 200
        assert first.json()["completed"] is True
        assert first.json()["xp_awarded"] == 200
        assert store.get_user(user.id).total_xp == 200

        second = client.post(f"/training/{session['id']}/complete", json={}, headers=headers)
        assert second.status_code == 200
        assert second.json()["xp_awarded"] == 0
        assert second.json()["xp_earned"] == 200
        assert store.get_user(user.id).total_xp == 200

    def test_conversation_is_analysed_into_pitch(self, client, store, make_user, analysis_calls):
        user, headers = make_user()
        session = _create_session(client, headers)
        messages = [
            {"role": "user", "text": "Hi, do you have a minute?"},
            {"role": "ai", "text": "Make it quick."},
        ]

        response = client.post(f"/training/{session['id']}/complete", json={"messages": messages}, headers=headers)

        data = response.json()
        assert analysis_calls[0]["text"] == "USER: Hi, do you have a minute?\nAI: Make it quick."
        assert data["pitch"]["audio_url"] == "text-based-session"
        assert data["pitch"]["training_session_id"] == session["id"]
        assert store.count_pitches(user_id=user.id) == 1

    def test_no_messages_skips_analysis(self, client, make_user, analysis_calls):
        _, headers = make_user()
        session = _create_session(client, headers, difficulty="easy")
        response = client.post(f"/training/{session['id']}/complete", headers=headers)
        assert response.status_code == 200
        assert response.json()["pitch"] is None
        assert analysis_calls == []

    def test_completing_foreign_session_is_404(self, client, store, make_user, analysis_calls):
        owner, owner_headers = make_user()
        _, other_headers = make_user()
        session = _create_session(client, owner_headers)
        response = client.post(f"/training/{session['id']}/complete", json={}, headers=other_headers)
        assert response.status_code == 404
        assert store.get_user(owner.id).total_xp == 0


class TestChat:
    def test_chat_uses_session_context(self, client, make_user, roleplay_calls):
        _, headers = make_user()
        session = _create_session(client, headers, pitch_goal="book a demo")
        response = client.post(
            "/training/chat",
            json={
                "session_id": session["id"],
                "message": "We can cut your costs by 30%.",
                "history": [{"role": "ai", "text": "Who is this?"}],
            },
            headers=headers,
        )
        assert response.status_code == 200
        assert response.json() == {"response": "Why should I switch vendors?"}
        call = roleplay_calls[0]
        assert call["context"] == {
            "scenario": "Cold call to a CTO",
            "persona": "CTO",
            "goal": "book a demo",
            "difficulty": "medium",
        }
        assert call["history"][0].text == "Who is this?"

    def test_chat_requires_owned_session(self, client, make_user, roleplay_calls):
        _, owner_headers = make_user()
        _, other_headers = make_user()
        session = _create_session(client, owner_headers)
        response = client.post(
            "/training/chat",
            json={"session_id": session["id"], "message": "hello"},
            headers=other_headers,
        )
        assert response.status_code == 404
        assert roleplay_calls == []

    def test_chat_requires_message(self, client, make_user, roleplay_calls):
        _, headers = make_user()
        session = _create_session(client, headers)
        response = client.post("/training/chat", json={"session_id": session["id"]}, headers=headers)
        assert response.status_code == 400
