import logging
from dataclasses import asdict
from typing import Optional, Tuple

from fastapi import HTTPException

from . import gcs_utils, pitch_analysis
from .constants import TEXT_ONLY_AUDIO_URL
from .models import PitchRecord
from .storage import Store


logger = logging.getLogger("uvicorn.error")

AudioUpload = Tuple[bytes, str, Optional[str]]


def pitch_payload(pitch: PitchRecord) -> dict:
    return asdict(pitch)


def ensure_session_owned(store: Store, user_id: str, training_session_id: Optional[str]) -> None:
    if not training_session_id:
        return
    session = store.get_training_session(training_session_id)
    if session is None or session.user_id != user_id:
        raise HTTPException(status_code=404, detail="Training session not found")


def save_analyzed_pitch(
    store: Store,
    user_id: str,
    *,
    audio_url: str,
    analysis: dict,
    transcript: str,
    training_session_id: Optional[str] = None,
) -> PitchRecord:
    record = dict(analysis)
    record.pop("transcript", None)
    pitch = store.create_pitch(
        user_id=user_id,
        audio_url=audio_url,
        transcript=transcript,
        analysis=record,
        feedback=record["feedback"],
        score=record["score"],
        training_session_id=training_session_id,
        duration=record["duration"],
        sentiment_score=record["sentiment_score"],
        confidence_score=record["confidence_score"],
        pace_score=record["pace_score"],
        clarity_score=record["clarity_score"],
    )
    logger.info(
        "user_id=%s pitch_created pitch_id=%s score=%s session_id=%s",
        user_id,
        pitch.id,
        pitch.score,
        training_session_id or "-",
    )
    return pitch


def create_pitch(
    store: Store,
    user_id: str,
    *,
    audio: Optional[AudioUpload] = None,
    transcript: Optional[str] = None,
    training_session_id: Optional[str] = None,
) -> dict:
    """Upload the recording (if any), analyse it and persist the scored pitch."""
    transcript = (transcript or "").strip()
    if audio is None and not transcript:
        raise HTTPException(status_code=400, detail="No audio file or transcript provided")
    ensure_session_owned(store, user_id, training_session_id)

    audio_url = TEXT_ONLY_AUDIO_URL
    if audio is not None:
        data, filename, content_type = audio
        try:
            audio_url = gcs_utils.upload_audio(data, filename, content_type)
        except Exception as exc:
            logger.error("user_id=%s audio_upload_failed filename=%s", user_id, filename, exc_info=True)
            raise HTTPException(status_code=500, detail="Failed to upload audio") from exc

    if transcript:
        analysis = pitch_analysis.analyze_pitch(text=transcript)
    else:
        analysis = pitch_analysis.analyze_pitch(audio=audio)

    try:
        pitch = save_analyzed_pitch(
            store,
            user_id,
            audio_url=audio_url,
            analysis=analysis,
            transcript=transcript or analysis.get("transcript") or "",
            training_session_id=training_session_id,
        )
    except Exception:
        if audio is not None:
            gcs_utils.delete_audio(audio_url)
        raise
    return pitch_payload(pitch)


def analyze_pitch_request(
    store: Store,
    user_id: str,
    *,
    text: Optional[str] = None,
    audio_url: Optional[str] = None,
    training_session_id: Optional[str] = None,
) -> dict:
    text = (text or "").strip()
    audio_url = (audio_url or "").strip()
    if not text and not audio_url:
        raise HTTPException(status_code=400, detail="Text or audio_url is required")
    ensure_session_owned(store, user_id, training_session_id)

    if text:
        analysis = pitch_analysis.analyze_pitch(text=text)
    else:
        try:
            audio = gcs_utils.fetch_audio(audio_url)
        except Exception as exc:
            logger.warning("user_id=%s audio_fetch_failed url=%s error=%s", user_id, audio_url, exc)
            raise HTTPException(status_code=400, detail="Failed to fetch audio file") from exc
        analysis = pitch_analysis.analyze_pitch(audio=audio)

    pitch = save_analyzed_pitch(
        store,
        user_id,
        audio_url=audio_url or TEXT_ONLY_AUDIO_URL,
        analysis=analysis,
        transcript=text or analysis.get("transcript") or "",
        training_session_id=training_session_id,
    )
    return pitch_payload(pitch)


def list_pitches(store: Store, user_id: str) -> list:
    return [pitch_payload(pitch) for pitch in store.list_pitches(user_ids=[user_id])]


def get_pitch(store: Store, user_id: str, pitch_id: str) -> dict:
    pitch = store.get_pitch(pitch_id)
    if pitch is None or pitch.user_id != user_id:
        raise HTTPException(status_code=404, detail="Pitch not found")
    return pitch_payload(pitch)
