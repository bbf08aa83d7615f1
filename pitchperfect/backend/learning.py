import logging
from dataclasses import asdict
from typing import Optional

from fastapi import HTTPException

from .constants import UNSET
from .models import LearningModuleRecord, utc_now
from .storage import Store


logger = logging.getLogger("uvicorn.error")
COMPLETE_AT = 100


def _require_module(store: Store, module_id: str) -> LearningModuleRecord:
    module = store.get_learning_module(module_id)
    if module is None or not module.is_active:
        raise HTTPException(status_code=404, detail="Learning module not found")
    return module


def list_modules(store: Store, user_id: str) -> list:
    progress_by_module = {record.module_id: record for record in store.list_progress(user_id)}
    payloads = []
    for module in store.list_learning_modules(active_only=True):
        payload = asdict(module)
        progress = progress_by_module.get(module.id)
        payload["user_progress"] = asdict(progress) if progress else None
        payloads.append(payload)
    return payloads


def start_module(store: Store, user_id: str, module_id: str) -> dict:
    _require_module(store, module_id)
    existing = store.get_progress(user_id, module_id)
    if existing is not None and existing.status == "completed":
        return asdict(existing)
    progress = store.save_progress(user_id, module_id, status="in_progress")
    logger.info("user_id=%s module_started module_id=%s", user_id, module_id)
    return asdict(progress)


def update_progress(store: Store, user_id: str, module_id: str, progress: Optional[int], score: Optional[int] = None) -> dict:
    """Record module progress; reaching 100 completes it and awards its XP once."""
    if progress is None:
        raise HTTPException(status_code=400, detail="progress is required")
    module = _require_module(store, module_id)

    value = max(0, min(COMPLETE_AT, int(progress)))
    completed = value >= COMPLETE_AT
    record = store.save_progress(
        user_id,
        module_id,
        status="completed" if completed else "in_progress",
        progress=value,
        score=score if score is not None else UNSET,
        completed_at=utc_now() if completed else None,
    )

    payload = asdict(record)
    payload["xp_awarded"] = 0
    if completed and store.claim_module_xp(user_id, module_id):
        total_xp = store.increment_user_xp(user_id, module.xp_reward)
        payload["xp_awarded"] = module.xp_reward
        logger.info(
            "user_id=%s module_completed module_id=%s xp=%s total_xp=%s",
            user_id,
            module_id,
            module.xp_reward,
            total_xp,
        )
    return payload


def get_user_progress(store: Store, user_id: str) -> list:
    payloads = []
    for record in store.list_progress(user_id):
        payload = asdict(record)
        module = store.get_learning_module(record.module_id)
        payload["module"] = asdict(module) if module else None
        payloads.append(payload)
    return payloads
