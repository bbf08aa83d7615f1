"""Tests for the MEDDIC analysis adapter: prompt call, tolerant parsing and zero fallback."""

import json

import pytest

from pitchperfect.backend import pitch_analysis
from pitchperfect.backend.pitch_analysis import (
    MEDDIC_KEYS,
    analyze_pitch,
    empty_analysis,
    estimate_duration_seconds,
    format_conversation,
    normalize_analysis,
)


EXPECTED_KEYS = {
    "score",
    "meddic_scores",
    "meddic_breakdown",
    "feedback",
    "strengths",
    "improvements",
    "sentiment_score",
    "confidence_score",
    "pace_score",
    "clarity_score",
    "duration",
    "key_phrases",
    "filler_word_count",
    "question_count",
}

GOOD_REPLY = {
    "score": 78,
    "meddic_scores": {
        "metrics": 80,
        "economic_buyer": 60,
        "decision_criteria": 70,
        "decision_process": 50,
        "identify_pain": 90,
        "champion": 40,
    },
    "meddic_breakdown": {key: f"{key} feedback" for key in MEDDIC_KEYS},
    "feedback": "Strong pain discovery.",
    "strengths": ["Quantified ROI", "Good questions"],
    "improvements": ["Identify the economic buyer"],
    "sentiment_score": 0.6,
    "confidence_score": 75,
    "pace_score": 52,
    "clarity_score": 81,
    "duration": 120,
    "key_phrases": ["cut onboarding time in half"],
    "filler_word_count": 4,
    "question_count": 6,
}


def _reply_with(monkeypatch, content=None, exc=None):
    calls = []

    def fake_request(messages, **kwargs):
        calls.append({"messages": messages, **kwargs})
        if exc is not None:
            raise exc
        return content

    monkeypatch.setattr(pitch_analysis, "request_chat_completion", fake_request)
    return calls


def _assert_fallback(result):
    expected = empty_analysis()
    for key in EXPECTED_KEYS:
        assert result[key] == expected[key], key


class TestEmptyAnalysis:
    def test_has_every_key_with_zero_values(self):
        result = empty_analysis()
        assert set(result) == EXPECTED_KEYS
        assert result["score"] == 0
        assert result["pace_score"] == 50
        assert result["feedback"] == "Analysis failed"
        assert all(value == 0 for value in result["meddic_scores"].values())
        assert all(value == "Analysis failed" for value in result["meddic_breakdown"].values())

    def test_returns_independent_copies(self):
        first = empty_analysis()
        first["strengths"].append("mutated")
        assert empty_analysis()["strengths"] == []


class TestAnalyzePitch:
    def test_parses_clean_json(self, monkeypatch):
        calls = _reply_with(monkeypatch, json.dumps(GOOD_REPLY))
        result = analyze_pitch(text="We help sales teams close faster.")

        assert result["score"] == 78
        assert result["meddic_scores"]["identify_pain"] == 90
        assert result["strengths"] == ["Quantified ROI", "Good questions"]
        assert result["transcript"] == "We help sales teams close faster."
        assert calls[0]["json_mode"] is True
        assert "We help sales teams close faster." in calls[0]["messages"][1]["content"]

    def test_strips_markdown_fences(self, monkeypatch):
        _reply_with(monkeypatch, "```json\n" + json.dumps(GOOD_REPLY) + "\n```")
        assert analyze_pitch(text="pitch")["score"] == 78

    def test_repairs_prose_around_json(self, monkeypatch):
        _reply_with(monkeypatch, "Here is your analysis:\n" + json.dumps(GOOD_REPLY) + "\nGood luck!")
        assert analyze_pitch(text="pitch")["clarity_score"] == 81

    @pytest.mark.parametrize(
        "content",
        [
            "not json at all",
            "{broken: json",
            json.dumps([1, 2, 3]),
            json.dumps({"error": "Invalid Input"}),
        ],
    )
    def test_bad_model_output_yields_fallback(self, monkeypatch, content):
        _reply_with(monkeypatch, content)
        _assert_fallback(analyze_pitch(text="pitch"))

    def test_provider_error_yields_fallback(self, monkeypatch):
        _reply_with(monkeypatch, exc=RuntimeError("Pitch analysis request failed (500): boom"))
        _assert_fallback(analyze_pitch(text="pitch"))

    def test_no_input_yields_fallback_without_calling_model(self, monkeypatch):
        calls = _reply_with(monkeypatch, json.dumps(GOOD_REPLY))
        result = analyze_pitch()
        _assert_fallback(result)
        assert result["transcript"] == ""
        assert calls == []

    def test_audio_is_transcribed_then_analysed(self, monkeypatch):
        calls = _reply_with(monkeypatch, json.dumps(GOOD_REPLY))
        monkeypatch.setattr(pitch_analysis, "transcribe_audio", lambda data, name, ctype: "spoken pitch text")

        result = analyze_pitch(audio=(b"RIFF....", "pitch.webm", "audio/webm"))

        assert result["score"] == 78
        assert result["transcript"] == "spoken pitch text"
        assert "spoken pitch text" in calls[0]["messages"][1]["content"]

    def test_transcription_failure_yields_fallback(self, monkeypatch):
        _reply_with(monkeypatch, json.dumps(GOOD_REPLY))

        def broken_transcribe(data, name, ctype):
            raise RuntimeError("Transcription request timed out.")

        monkeypatch.setattr(pitch_analysis, "transcribe_audio", broken_transcribe)
        _assert_fallback(analyze_pitch(audio=(b"data", "pitch.webm", "audio/webm")))


class TestNormalizeAnalysis:
    def test_clamps_and_coerces(self):
        result = normalize_analysis(
            {
                "score": 140,
                "meddic_scores": {"metrics": "85", "champion": -20},
                "sentiment_score": 3,
                "confidence_score": "abc",
                "strengths": ["good", 7, None, " spaced "],
                "filler_word_count": -3,
                "question_count": 2.6,
                "duration": 30,
            }
        )
        assert result["score"] == 100
        assert result["meddic_scores"]["metrics"] == 85
        assert result["meddic_scores"]["champion"] == 0
        assert result["meddic_scores"]["economic_buyer"] == 0
        assert result["sentiment_score"] == 1.0
        assert result["confidence_score"] == 0
        assert result["strengths"] == ["good", "spaced"]
        assert result["filler_word_count"] == 0
        assert result["question_count"] == 3

    def test_missing_values_get_defaults(self):
        result = normalize_analysis({}, transcript="word " * 300)
        assert result["pace_score"] == 50
        assert result["feedback"] == "Analysis completed"
        assert result["meddic_breakdown"]["economic_buyer"] == "No economic buyer analysis available"
        assert result["duration"] == 120

    def test_estimate_duration_at_150_wpm(self):
        assert estimate_duration_seconds("") == 0
        assert estimate_duration_seconds("word " * 150) == 60


class TestFormatConversation:
    def test_formats_roles(self):
        text = format_conversation(
            [
                {"role": "user", "text": "Hi, I'm calling about your CRM."},
                {"role": "ai", "text": "We already have one."},
                {"role": "user", "text": "   "},
            ]
        )
        assert text == "USER: Hi, I'm calling about your CRM.\nAI: We already have one."

    def test_empty_history(self):
        assert format_conversation([]) == ""
        assert format_conversation(None) == ""
