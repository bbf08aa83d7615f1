import logging
from dataclasses import asdict
from datetime import timedelta
from typing import Optional

from fastapi import HTTPException

from .constants import ROLES
from .models import round_half_up, utc_now
from .storage import Store
from .teams import assign_user_to_team as _assign_user_to_team


logger = logging.getLogger("uvicorn.error")
RECENT_ACTIVITY_DAYS = 30


def list_users(store: Store) -> list:
    team_names = {team.id: team.name for team in store.list_teams()}
    return [
        {
            "id": user.id,
            "email": user.email,
            "name": user.name,
            "role": user.role,
            "team_id": user.team_id,
            "team": {"name": team_names[user.team_id]} if user.team_id in team_names else None,
            "total_xp": user.total_xp,
            "created_at": user.created_at,
        }
        for user in store.list_users()
    ]


def update_user_role(store: Store, user_id: str, role: Optional[str]) -> dict:
    if role not in ROLES:
        raise HTTPException(status_code=400, detail="Invalid role. Must be user, team_lead, or admin")
    try:
        user = store.update_user(user_id, role=role)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="User not found") from exc
    logger.info("user_id=%s role_updated role=%s", user.id, role)
    return {"id": user.id, "email": user.email, "name": user.name, "role": user.role}


def delete_user(store: Store, admin_id: str, user_id: str) -> dict:
    if user_id == admin_id:
        raise HTTPException(status_code=400, detail="Cannot delete your own account")
    if not store.delete_user(user_id):
        raise HTTPException(status_code=404, detail="User not found")
    logger.info("user_id=%s user_deleted by=%s", user_id, admin_id)
    return {"message": "User deleted successfully"}


def get_all_teams(store: Store) -> list:
    payloads = []
    for team in store.list_teams():
        members = store.list_team_members(team.id)
        payload = asdict(team)
        payload["members"] = [
            {"id": member.id, "name": member.name, "email": member.email, "role": member.role}
            for member in members
        ]
        payload["member_count"] = len(members)
        payloads.append(payload)
    return payloads


def get_platform_analytics(store: Store) -> dict:
    since = utc_now() - timedelta(days=RECENT_ACTIVITY_DAYS)
    average = store.average_pitch_score()
    return {
        "total_users": store.count_users(),
        "total_teams": len(store.list_teams()),
        "total_pitches": store.count_pitches(),
        "total_xp": store.sum_user_xp(),
        "average_pitch_score": round_half_up(average or 0),
        "recent_activity": {
            "pitches_last_30_days": store.count_pitches(since=since),
            "new_users_last_30_days": store.count_users(since=since),
        },
        "users_by_role": store.count_users_by_role(),
    }


def assign_user_to_team(store: Store, user_id: Optional[str], team_id: Optional[str]) -> dict:
    return _assign_user_to_team(store, user_id, team_id, allow_unassign=True)
