import logging
from dataclasses import asdict
from typing import List, Optional

from fastapi import HTTPException

from .storage import Store


logger = logging.getLogger("uvicorn.error")


def list_industries(store: Store) -> list:
    return [asdict(industry) for industry in store.list_industries()]


def get_industry(store: Store, industry_id: str) -> dict:
    industry = store.get_industry(industry_id)
    if industry is None:
        raise HTTPException(status_code=404, detail="Industry not found")
    return asdict(industry)


def create_industry(
    store: Store,
    *,
    name: Optional[str],
    description: Optional[str] = None,
    icon: Optional[str] = None,
    scenario_templates: Optional[List[dict]] = None,
) -> dict:
    name = (name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="Industry name is required")
    try:
        industry = store.create_industry(
            name=name,
            description=description,
            icon=icon,
            scenario_templates=scenario_templates or [],
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Industry already exists") from exc
    logger.info("industry_created industry_id=%s name=%s", industry.id, industry.name)
    return asdict(industry)
