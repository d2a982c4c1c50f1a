"""
Lead CRM - Routes Event Log (audit des assignations / cycle de vie)
"""

from fastapi import APIRouter, Depends
from typing import Optional
from config import db
from services.event_logger import get_events

router = APIRouter(prefix="/event-log", tags=["EventLog"])


def get_database():
    return db


@router.get("")
async def list_events(
    action: Optional[str] = None,
    lead_id: Optional[str] = None,
    partner_id: Optional[str] = None,
    limit: int = 100,
    skip: int = 0,
    database=Depends(get_database)
):
    """Liste les events avec filtres"""
    events, total = await get_events(
        database, entity_id=lead_id, action=action, partner_id=partner_id, limit=limit, skip=skip
    )
    return {"events": events, "count": len(events), "total": total}


@router.get("/actions")
async def list_action_types(database=Depends(get_database)):
    """Liste les types d'actions distincts dans le log"""
    actions = await database.event_log.distinct("action")
    return {"actions": sorted(actions)}
