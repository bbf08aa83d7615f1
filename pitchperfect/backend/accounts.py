import logging
from typing import Optional

from fastapi import HTTPException

from .auth import create_access_token, hash_password, verify_password
from .constants import ROLES, UNSET
from .models import UserRecord, public_user, round_half_up
from .storage import Store, normalize_email


logger = logging.getLogger("uvicorn.error")
MIN_PASSWORD_LENGTH = 8


def _auth_payload(user: UserRecord) -> dict:
    return {
        "token": create_access_token(user.id, user.role),
        "user": {"id": user.id, "email": user.email, "name": user.name, "role": user.role},
    }


def _require_user(store: Store, user_id: str) -> UserRecord:
    user = store.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return user


def register(store: Store, email: Optional[str], password: Optional[str], name: Optional[str]) -> dict:
    email = normalize_email(email or "")
    if not email or not password:
        raise HTTPException(status_code=400, detail="Email and password are required")
    if store.get_user_by_email(email) is not None:
        raise HTTPException(status_code=400, detail="User already exists")

    try:
        user = store.create_user(email=email, password_hash=hash_password(password), name=name)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="User already exists") from exc

    logger.info("user_id=%s user_registered", user.id)
    return _auth_payload(user)


def login(store: Store, email: Optional[str], password: Optional[str]) -> dict:
    if not email or not password:
        raise HTTPException(status_code=400, detail="Email and password are required")
    user = store.get_user_by_email(email)
    if user is None or not verify_password(password, user.password_hash):
        logger.info("login_failed email=%s", normalize_email(email))
        raise HTTPException(status_code=401, detail="Invalid credentials")
    logger.info("user_id=%s user_logged_in", user.id)
    return _auth_payload(user)


def get_profile(store: Store, user_id: str) -> dict:
    user = _require_user(store, user_id)
    team = store.get_team(user.team_id) if user.team_id else None

    payload = public_user(user)
    payload["team"] = {"id": team.id, "name": team.name} if team else None
    payload["counts"] = {
        "pitches": store.count_pitches(user_id=user.id),
        "training_sessions": store.count_training_sessions(user.id),
    }
    return payload


def update_profile(
    store: Store,
    user_id: str,
    *,
    name: object = UNSET,
    industry: object = UNSET,
    experience_level: object = UNSET,
) -> dict:
    try:
        user = store.update_user(user_id, name=name, industry=industry, experience_level=experience_level)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="User not found") from exc
    return public_user(user)


def change_password(store: Store, user_id: str, current_password: Optional[str], new_password: Optional[str]) -> dict:
    if not current_password or not new_password:
        raise HTTPException(status_code=400, detail="Current and new password are required")
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"New password must be at least {MIN_PASSWORD_LENGTH} characters",
        )

    user = _require_user(store, user_id)
    if not verify_password(current_password, user.password_hash):
        raise HTTPException(status_code=401, detail="Current password is incorrect")

    store.update_user(user_id, password_hash=hash_password(new_password))
    logger.info("user_id=%s password_changed", user_id)
    return {"message": "Password changed successfully"}


def get_user_stats(store: Store, user_id: str) -> dict:
    user = _require_user(store, user_id)
    average = store.average_pitch_score(user_id=user_id)
    recent = store.list_pitches(user_ids=[user_id], limit=5)
    skills = store.list_user_skills(user_id)[:5]

    return {
        "total_xp": user.total_xp,
        "experience_level": user.experience_level or "beginner",
        "average_score": round_half_up(average or 0),
        "completed_sessions": store.count_training_sessions(user_id, completed=True),
        "recent_pitches": [
            {"id": pitch.id, "score": pitch.score, "created_at": pitch.created_at} for pitch in recent
        ],
        "top_skills": [{"name": skill.name, "level": user_skill.level} for user_skill, skill in skills],
    }


def get_simulated_role(store: Store, user_id: str, simulate_role: Optional[str]) -> dict:
    user = _require_user(store, user_id)
    simulated = simulate_role if user.role == "admin" and simulate_role in ROLES else None
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role,
        "simulated_role": simulated,
    }
