from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable, Optional, Tuple

from .llm_client import request_chat_completion, transcribe_audio, truncate
from .models import round_half_up
from .prompts.pitch_analysis import PITCH_ANALYSIS_VERSION, SYSTEM_PROMPT, USER_PROMPT_TEMPLATE


logger = logging.getLogger("uvicorn.error")

MEDDIC_KEYS = (
    "metrics",
    "economic_buyer",
    "decision_criteria",
    "decision_process",
    "identify_pain",
    "champion",
)
FAILED_TEXT = "Analysis failed"
DEFAULT_FEEDBACK = "Analysis completed"
DEFAULT_PACE_SCORE = 50
WORDS_PER_MINUTE = 150
_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)

AudioInput = Tuple[bytes, str, Optional[str]]


def empty_analysis() -> dict:
    return {
        "score": 0,
        "meddic_scores": {key: 0 for key in MEDDIC_KEYS},
        "meddic_breakdown": {key: FAILED_TEXT for key in MEDDIC_KEYS},
        "feedback": FAILED_TEXT,
        "strengths": [],
        "improvements": [],
        "sentiment_score": 0.0,
        "confidence_score": 0,
        "pace_score": DEFAULT_PACE_SCORE,
        "clarity_score": 0,
        "duration": 0,
        "key_phrases": [],
        "filler_word_count": 0,
        "question_count": 0,
    }


def format_conversation(messages: Iterable[Any]) -> str:
    lines = []
    for message in messages or []:
        if isinstance(message, dict):
            role, text = message.get("role"), message.get("text")
        else:
            role, text = getattr(message, "role", None), getattr(message, "text", None)
        text = str(text or "").strip()
        if not text:
            continue
        lines.append(f"{'AI' if role == 'ai' else 'USER'}: {text}")
    return "\n".join(lines)


def estimate_duration_seconds(transcript: str) -> int:
    words = len((transcript or "").split())
    return round_half_up(words * 60 / WORDS_PER_MINUTE)


def _strip_code_fences(raw_content: str) -> str:
    return _FENCE_RE.sub("", raw_content or "").strip()


def _parse_json_with_repair(raw_content: str) -> dict:
    content = _strip_code_fences(raw_content)
    try:
        parsed = json.loads(content)
    except json.JSONDecodeError:
        start = content.find("{")
        end = content.rfind("}")
        if start == -1 or end <= start:
            raise RuntimeError("Pitch analysis output is not valid JSON.")
        try:
            parsed = json.loads(content[start : end + 1])
        except json.JSONDecodeError as exc:
            raise RuntimeError("Pitch analysis output could not be repaired into valid JSON.") from exc

    if not isinstance(parsed, dict):
        raise RuntimeError("Pitch analysis JSON root must be an object.")
    if "error" in parsed:
        raise RuntimeError(f"Model rejected the transcript: {truncate(str(parsed.get('error')), 200)}")
    return parsed


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _score(value: Any, default: int = 0) -> int:
    number = _number(value)
    if not number:
        return default
    return round_half_up(min(100.0, max(0.0, number)))


def _count(value: Any) -> int:
    number = _number(value)
    if not number:
        return 0
    return max(0, round_half_up(number))


def _sentiment(value: Any) -> float:
    number = _number(value)
    if number is None:
        return 0.0
    return min(1.0, max(-1.0, number))


def _text(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _string_list(value: Any) -> list:
    if not isinstance(value, list):
        return []
    return [item.strip() for item in value if isinstance(item, str) and item.strip()]


def normalize_analysis(payload: dict, transcript: str = "") -> dict:
    """Coerce a parsed model reply into the full analysis record.

    Scores are clamped to 0-100 and sentiment to -1..1. Missing or zero values
    fall back to the same defaults a failed analysis would carry, except that a
    missing duration is estimated from the transcript word count.
    """
    scores = payload.get("meddic_scores")
    scores = scores if isinstance(scores, dict) else {}
    breakdown = payload.get("meddic_breakdown")
    breakdown = breakdown if isinstance(breakdown, dict) else {}

    duration = _count(payload.get("duration"))
    if not duration:
        duration = estimate_duration_seconds(transcript)

    return {
        "score": _score(payload.get("score")),
        "meddic_scores": {key: _score(scores.get(key)) for key in MEDDIC_KEYS},
        "meddic_breakdown": {
            key: _text(breakdown.get(key), f"No {key.replace('_', ' ')} analysis available")
            for key in MEDDIC_KEYS
        },
        "feedback": _text(payload.get("feedback"), DEFAULT_FEEDBACK),
        "strengths": _string_list(payload.get("strengths")),
        "improvements": _string_list(payload.get("improvements")),
        "sentiment_score": _sentiment(payload.get("sentiment_score")),
        "confidence_score": _score(payload.get("confidence_score")),
        "pace_score": _score(payload.get("pace_score"), DEFAULT_PACE_SCORE),
        "clarity_score": _score(payload.get("clarity_score")),
        "duration": duration,
        "key_phrases": _string_list(payload.get("key_phrases")),
        "filler_word_count": _count(payload.get("filler_word_count")),
        "question_count": _count(payload.get("question_count")),
    }


def _request_analysis_content(transcript: str) -> str:
    user_prompt = USER_PROMPT_TEMPLATE.replace("{transcript}", transcript)
    return request_chat_completion(
        [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": user_prompt},
        ],
        label="Pitch analysis",
        max_tokens=1800,
        temperature=0.3,
        json_mode=True,
    )


def analyze_pitch(text: Optional[str] = None, audio: Optional[AudioInput] = None) -> dict:
    """Score a pitch given as text or as ``(bytes, filename, content_type)``.

    Never raises: every failure is logged and produces ``empty_analysis()``.
    The analysed transcript is returned under ``transcript``.
    """
    transcript = (text or "").strip()
    try:
        if not transcript and audio is not None:
            audio_bytes, filename, content_type = audio
            transcript = transcribe_audio(audio_bytes, filename, content_type)
            logger.info("pitch_audio_transcribed filename=%s chars=%s", filename, len(transcript))
        if not transcript:
            raise ValueError("No transcript or audio supplied for analysis.")

        raw_content = _request_analysis_content(transcript)
        result = normalize_analysis(_parse_json_with_repair(raw_content), transcript)
        logger.info(
            "pitch_analysis_done version=%s score=%s duration=%s",
            PITCH_ANALYSIS_VERSION,
            result["score"],
            result["duration"],
        )
    except Exception as exc:
        logger.warning("pitch_analysis_failed error=%s", truncate(str(exc)))
        result = empty_analysis()

    result["transcript"] = transcript
    return result
