"""Tests for pitch submission, analysis by URL and pitch retrieval."""

from pitchperfect.backend import gcs_utils
from pitchperfect.backend.constants import MAX_UPLOAD_BYTES


AUDIO = ("my pitch.webm", b"\x1aE\xdf\xa3fake-webm-bytes", "audio/webm")


class TestCreatePitch:
    def test_audio_upload_is_stored_and_analysed(self, client, store, make_user, analysis_calls, uploads):
        user, headers = make_user()
        response = client.post("/pitches", files={"audio": AUDIO}, headers=headers)

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["audio_url"] == "https://storage.googleapis.com/test-bucket/1700000000000-my_pitch.webm"
        assert data["score"] == 72
        assert data["transcript"] == "transcribed audio"
        assert data["analysis"]["feedback"] == "Solid discovery, weak close."
        assert "transcript" not in data["analysis"]
        assert data["pace_score"] == 55
        assert analysis_calls[0]["audio"][0] == AUDIO[1]
        assert store.get_pitch(data["id"]).user_id == user.id

    def test_transcript_only(self, client, make_user, analysis_calls, uploads):
        _, headers = make_user()
        response = client.post("/pitches", data={"transcript": "Hello, I sell CRMs."}, headers=headers)

        assert response.status_code == 200
        assert response.json()["audio_url"] == "text-only"
        assert analysis_calls == [{"text": "Hello, I sell CRMs.", "audio": None}]
        assert uploads == {}

    def test_requires_audio_or_transcript(self, client, make_user, analysis_calls):
        _, headers = make_user()
        response = client.post("/pitches", data={}, headers=headers)
        assert response.status_code == 400
        assert analysis_calls == []

    def test_empty_audio_rejected(self, client, make_user, analysis_calls, uploads):
        _, headers = make_user()
        response = client.post("/pitches", files={"audio": ("empty.webm", b"", "audio/webm")}, headers=headers)
        assert response.status_code == 400

    def test_oversized_audio_rejected(self, client, make_user, analysis_calls, uploads):
        _, headers = make_user()
        big = b"0" * (MAX_UPLOAD_BYTES + 1)
        response = client.post("/pitches", files={"audio": ("big.webm", big, "audio/webm")}, headers=headers)
        assert response.status_code == 413
        assert uploads == {}

    def test_upload_failure_is_500(self, client, store, make_user, analysis_calls, monkeypatch):
        _, headers = make_user()

        def broken_upload(data, filename, content_type):
            raise RuntimeError("bucket unavailable")

        monkeypatch.setattr(gcs_utils, "upload_audio", broken_upload)
        response = client.post("/pitches", files={"audio": AUDIO}, headers=headers)

        assert response.status_code == 500
        assert response.json()["detail"] == "Failed to upload audio"
        assert analysis_calls == []
        assert store.count_pitches() == 0

    def test_foreign_training_session_is_404(self, client, store, make_user, analysis_calls):
        other, _ = make_user()
        session = store.create_training_session(
            user_id=other.id,
            scenario="Cold call",
            difficulty="easy",
            target_persona=None,
            pitch_goal=None,
            time_limit=None,
            language="en",
            industry_id=None,
        )
        _, headers = make_user()
        response = client.post(
            "/pitches",
            data={"transcript": "pitch", "training_session_id": session.id},
            headers=headers,
        )
        assert response.status_code == 404


class TestAnalyzeByUrl:
    def test_text_analysis(self, client, make_user, analysis_calls):
        _, headers = make_user()
        response = client.post("/pitches/analyze", json={"text": "Our platform saves 10 hours a week."}, headers=headers)
        assert response.status_code == 200
        assert response.json()["audio_url"] == "text-only"

    def test_audio_url_is_fetched(self, client, make_user, analysis_calls, uploads):
        url = "https://storage.googleapis.com/test-bucket/1-pitch.webm"
        uploads[url] = b"audio-bytes"
        _, headers = make_user()

        response = client.post("/pitches/analyze", json={"audio_url": url}, headers=headers)

        assert response.status_code == 200
        assert response.json()["audio_url"] == url
        assert analysis_calls[0]["audio"] == (b"audio-bytes", "pitch.webm", "audio/webm")

    def test_unfetchable_audio_is_400(self, client, make_user, analysis_calls, uploads):
        _, headers = make_user()
        response = client.post(
            "/pitches/analyze",
            json={"audio_url": "https://storage.googleapis.com/test-bucket/missing.webm"},
            headers=headers,
        )
        assert response.status_code == 400
        assert analysis_calls == []

    def test_requires_text_or_url(self, client, make_user):
        _, headers = make_user()
        assert client.post("/pitches/analyze", json={}, headers=headers).status_code == 400


class TestReadPitches:
    def test_list_is_own_and_newest_first(self, client, make_user, analysis_calls):
        _, headers = make_user()
        _, other_headers = make_user()
        first = client.post("/pitches/analyze", json={"text": "first"}, headers=headers).json()
        second = client.post("/pitches/analyze", json={"text": "second"}, headers=headers).json()
        client.post("/pitches/analyze", json={"text": "not mine"}, headers=other_headers)

        ids = [pitch["id"] for pitch in client.get("/pitches", headers=headers).json()]
        assert ids == [second["id"], first["id"]]

    def test_get_foreign_pitch_is_404(self, client, make_user, analysis_calls):
        _, owner_headers = make_user()
        _, other_headers = make_user()
        pitch = client.post("/pitches/analyze", json={"text": "mine"}, headers=owner_headers).json()

        assert client.get(f"/pitches/{pitch['id']}", headers=owner_headers).status_code == 200
        assert client.get(f"/pitches/{pitch['id']}", headers=other_headers).status_code == 404
        assert client.get("/pitches/does-not-exist", headers=owner_headers).status_code == 404
