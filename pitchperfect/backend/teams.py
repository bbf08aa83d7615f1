import logging
from dataclasses import asdict
from datetime import timedelta
from typing import List, Optional

from fastapi import HTTPException

from .models import TeamRecord, UserRecord, round_half_up, utc_now
from .storage import Store


logger = logging.getLogger("uvicorn.error")
ANALYTICS_WINDOW_DAYS = 30
ATTENTION_SCORE = 60


def _caller_team(store: Store, user_id: str) -> TeamRecord:
    user = store.get_user(user_id)
    if user is None or not user.team_id:
        raise HTTPException(status_code=404, detail="No team assigned")
    team = store.get_team(user.team_id)
    if team is None:
        raise HTTPException(status_code=404, detail="Team not found")
    return team


def member_payload(store: Store, member: UserRecord) -> dict:
    return {
        "id": member.id,
        "name": member.name,
        "email": member.email,
        "role": member.role,
        "total_xp": member.total_xp,
        "created_at": member.created_at,
        "skills": [
            {"skill_id": skill.id, "name": skill.name, "category": skill.category, "level": user_skill.level}
            for user_skill, skill in store.list_user_skills(member.id)
        ],
    }


def get_team(store: Store, user_id: str) -> dict:
    team = _caller_team(store, user_id)
    payload = asdict(team)
    payload["members"] = [member_payload(store, member) for member in store.list_team_members(team.id)]
    return payload


def _mean(scores: List[int]) -> float:
    return sum(scores) / len(scores) if scores else 0.0


def summarize_team(members: List[UserRecord], scores_by_member: dict) -> dict:
    """Team analytics over each member's recent pitch scores."""
    all_scores = [score for member in members for score in scores_by_member.get(member.id, [])]

    needing_attention = 0
    top_performer = {"id": "", "name": "N/A", "avg_score": 0}
    for member in members:
        scores = scores_by_member.get(member.id, [])
        average = _mean(scores)
        if not scores or average < ATTENTION_SCORE:
            needing_attention += 1
        if average > top_performer["avg_score"]:
            top_performer = {"id": member.id, "name": member.name, "avg_score": round_half_up(average)}

    return {
        "average_score": round_half_up(_mean(all_scores)),
        "total_calls": len(all_scores),
        "members_needing_attention": needing_attention,
        "top_performer": top_performer,
        "member_count": len(members),
    }


def get_team_analytics(store: Store, user_id: str) -> dict:
    team = _caller_team(store, user_id)
    members = store.list_team_members(team.id)
    since = utc_now() - timedelta(days=ANALYTICS_WINDOW_DAYS)

    scores_by_member: dict = {member.id: [] for member in members}
    for pitch in store.list_pitches(user_ids=[member.id for member in members], since=since):
        scores_by_member.setdefault(pitch.user_id, []).append(pitch.score or 0)

    return summarize_team(members, scores_by_member)


def create_team(store: Store, *, name: Optional[str], description: Optional[str] = None, industry: Optional[str] = None) -> dict:
    if not (name or "").strip():
        raise HTTPException(status_code=400, detail="Team name is required")
    team = store.create_team(name=name.strip(), description=description, industry=industry)
    logger.info("team_created team_id=%s", team.id)
    return asdict(team)


def assign_user_to_team(
    store: Store,
    user_id: Optional[str],
    team_id: Optional[str],
    *,
    allow_unassign: bool = False,
) -> dict:
    """Move a user into a team; with ``allow_unassign`` a null team removes them."""
    if not user_id or (not team_id and not allow_unassign):
        raise HTTPException(status_code=400, detail="User ID and Team ID are required")
    if team_id and store.get_team(team_id) is None:
        raise HTTPException(status_code=404, detail="Team not found")

    try:
        user = store.update_user(user_id, team_id=team_id or None)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="User not found") from exc

    logger.info("user_id=%s team_assigned team_id=%s", user.id, user.team_id or "-")
    return {"id": user.id, "email": user.email, "name": user.name, "team_id": user.team_id}
