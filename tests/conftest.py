"""Shared fixtures: a fresh in-memory store per test, stubbed AI and storage boundaries."""

import uuid

import pytest
from fastapi.testclient import TestClient

from pitchperfect.backend import gcs_utils, pitch_analysis, roleplay, web
from pitchperfect.backend.auth import create_access_token, hash_password
from pitchperfect.backend.rate_limit import RateLimiter
from pitchperfect.backend.storage import InMemoryStore


PASSWORD = "password123"
PASSWORD_HASH = hash_password(PASSWORD)


def canned_analysis(score=72, transcript="USER: hello"):
    result = pitch_analysis.empty_analysis()
    result.update(
        score=score,
        feedback="Solid discovery, weak close.",
        strengths=["Clear pain statement"],
        improvements=["Name the economic buyer"],
        sentiment_score=0.4,
        confidence_score=70,
        pace_score=55,
        clarity_score=80,
        duration=95,
    )
    result["meddic_scores"] = {key: score for key in pitch_analysis.MEDDIC_KEYS}
    result["meddic_breakdown"] = {key: "ok" for key in pitch_analysis.MEDDIC_KEYS}
    result["transcript"] = transcript
    return result


@pytest.fixture
def store(monkeypatch):
    fresh = InMemoryStore()
    monkeypatch.setattr(web, "store", fresh)
    return fresh


@pytest.fixture
def limiter(monkeypatch):
    disabled = RateLimiter(enabled=False)
    monkeypatch.setattr(web, "rate_limiter", disabled)
    return disabled


@pytest.fixture
def client(store, limiter):
    return TestClient(web.app)


@pytest.fixture
def analysis_calls(monkeypatch):
    """Replace the AI adapter with a canned result and record each call."""
    calls = []

    def fake_analyze_pitch(text=None, audio=None):
        calls.append({"text": text, "audio": audio})
        return canned_analysis(transcript=text or "transcribed audio")

    monkeypatch.setattr(pitch_analysis, "analyze_pitch", fake_analyze_pitch)
    return calls


@pytest.fixture
def uploads(monkeypatch):
    """Replace object storage with an in-process dict of url -> bytes."""
    stored = {}

    def fake_upload_audio(data, filename, content_type):
        url = gcs_utils.build_public_url("test-bucket", gcs_utils.build_blob_name(filename, now_ms=1700000000000))
        stored[url] = data
        return url

    def fake_delete_audio(url):
        stored.pop(url, None)

    def fake_fetch_audio(url):
        if url not in stored:
            raise ValueError("missing")
        return stored[url], "pitch.webm", "audio/webm"

    monkeypatch.setattr(gcs_utils, "upload_audio", fake_upload_audio)
    monkeypatch.setattr(gcs_utils, "delete_audio", fake_delete_audio)
    monkeypatch.setattr(gcs_utils, "fetch_audio", fake_fetch_audio)
    return stored


@pytest.fixture
def roleplay_calls(monkeypatch):
    calls = []

    def fake_continue_conversation(history, message, context=None):
        calls.append({"history": list(history), "message": message, "context": context})
        return "Why should I switch vendors?"

    monkeypatch.setattr(roleplay, "continue_conversation", fake_continue_conversation)
    return calls


@pytest.fixture
def make_user(store):
    """Create a user and return ``(record, auth_headers)``."""

    def factory(role="user", email=None, name="Test User", team_id=None):
        user = store.create_user(
            email=email or f"{uuid.uuid4().hex[:8]}@example.com",
            password_hash=PASSWORD_HASH,
            name=name,
            role=role,
        )
        if team_id is not None:
            user = store.update_user(user.id, team_id=team_id)
        headers = {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}
        return user, headers

    return factory


@pytest.fixture
def make_pitch(store):
    def factory(user_id, score=70, training_session_id=None):
        return store.create_pitch(
            user_id=user_id,
            audio_url="text-only",
            transcript="USER: hello",
            analysis={},
            feedback="ok",
            score=score,
            training_session_id=training_session_id,
            duration=60,
            sentiment_score=0.0,
            confidence_score=0,
            pace_score=50,
            clarity_score=0,
        )

    return factory
