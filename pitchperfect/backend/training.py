import logging
from dataclasses import asdict
from typing import Iterable, Optional

from fastapi import HTTPException

from . import pitch_analysis, roleplay
from .constants import DEFAULT_SESSION_XP, TEXT_SESSION_AUDIO_URL, XP_BY_DIFFICULTY
from .models import TrainingSessionRecord
from .pitches import pitch_payload, save_analyzed_pitch
from .storage import Store


logger = logging.getLogger("uvicorn.error")


def xp_for_difficulty(difficulty: Optional[str]) -> int:
    return XP_BY_DIFFICULTY.get((difficulty or "").strip().lower(), DEFAULT_SESSION_XP)


def _owned_session(store: Store, user_id: str, session_id: str) -> TrainingSessionRecord:
    session = store.get_training_session(session_id)
    if session is None or session.user_id != user_id:
        raise HTTPException(status_code=404, detail="Training session not found")
    return session


def _industry_payload(store: Store, industry_id: Optional[str]) -> Optional[dict]:
    if not industry_id:
        return None
    industry = store.get_industry(industry_id)
    return asdict(industry) if industry else None


def create_training_session(
    store: Store,
    user_id: str,
    *,
    scenario: Optional[str],
    difficulty: Optional[str],
    target_persona: Optional[str] = None,
    pitch_goal: Optional[str] = None,
    time_limit: Optional[int] = None,
    language: Optional[str] = None,
    industry_id: Optional[str] = None,
) -> dict:
    if not scenario or not difficulty:
        raise HTTPException(status_code=400, detail="Scenario and difficulty are required")
    if industry_id and store.get_industry(industry_id) is None:
        raise HTTPException(status_code=404, detail="Industry not found")

    session = store.create_training_session(
        user_id=user_id,
        scenario=scenario,
        difficulty=difficulty,
        target_persona=target_persona,
        pitch_goal=pitch_goal,
        time_limit=time_limit,
        language=language or "en",
        industry_id=industry_id,
    )
    logger.info("user_id=%s training_session_created session_id=%s difficulty=%s", user_id, session.id, difficulty)
    return asdict(session)


def list_training_sessions(store: Store, user_id: str) -> list:
    payloads = []
    for session in store.list_training_sessions(user_id):
        payload = asdict(session)
        payload["industry"] = _industry_payload(store, session.industry_id)
        payload["pitches"] = [
            {"id": pitch.id, "score": pitch.score, "created_at": pitch.created_at}
            for pitch in store.list_pitches(training_session_id=session.id)
        ]
        payloads.append(payload)
    return payloads


def get_training_session(store: Store, user_id: str, session_id: str) -> dict:
    session = _owned_session(store, user_id, session_id)
    payload = asdict(session)
    payload["industry"] = _industry_payload(store, session.industry_id)
    payload["pitches"] = [pitch_payload(pitch) for pitch in store.list_pitches(training_session_id=session.id)]
    return payload


def complete_training_session(
    store: Store,
    user_id: str,
    session_id: str,
    messages: Optional[Iterable] = None,
) -> dict:
    """Mark a session completed and award its XP exactly once.

    The first completion analyses the chat transcript (when there is one) into
    a pitch. Repeat completions return the session with ``xp_awarded`` 0.
    """
    session = _owned_session(store, user_id, session_id)
    xp_earned = xp_for_difficulty(session.difficulty)

    claimed = store.claim_session_completion(session.id, xp_earned)
    if claimed is None:
        logger.info("user_id=%s training_session_already_completed session_id=%s", user_id, session.id)
        payload = asdict(store.get_training_session(session.id) or session)
        payload.update(xp_awarded=0, pitch=None)
        return payload

    total_xp = store.increment_user_xp(user_id, xp_earned)

    pitch = None
    transcript = pitch_analysis.format_conversation(messages or [])
    if transcript:
        analysis = pitch_analysis.analyze_pitch(text=transcript)
        pitch = save_analyzed_pitch(
            store,
            user_id,
            audio_url=TEXT_SESSION_AUDIO_URL,
            analysis=analysis,
            transcript=transcript,
            training_session_id=session.id,
        )

    logger.info(
        "user_id=%s training_session_completed session_id=%s xp=%s total_xp=%s",
        user_id,
        session.id,
        xp_earned,
        total_xp,
    )
    payload = asdict(claimed)
    payload.update(xp_awarded=xp_earned, pitch=pitch_payload(pitch) if pitch else None)
    return payload


def chat(
    store: Store,
    user_id: str,
    *,
    session_id: Optional[str],
    message: Optional[str],
    history: Optional[Iterable] = None,
) -> dict:
    if not session_id or not (message or "").strip():
        raise HTTPException(status_code=400, detail="session_id and message are required")
    session = _owned_session(store, user_id, session_id)

    context = {
        "scenario": session.scenario,
        "persona": session.target_persona,
        "goal": session.pitch_goal,
        "difficulty": session.difficulty,
    }
    reply = roleplay.continue_conversation(history or [], message, context)
    return {"response": reply}
