"""
Lead CRM - Event Logger

Centralized audit trail for assignment and lead lifecycle actions.
Single function to call from any route/service.
"""

import uuid
from config import now_iso


async def log_event(
    database,
    action: str,
    entity_type: str,
    entity_id: str,
    user: str = "system",
    details: dict = None,
    related: dict = None
):
    """
    Write a single event to the event_log collection.

    Args:
        action: e.g. assign_lead, assign_lead_rejected, accept_lead, reject_lead
        entity_type: lead | partner
        entity_id: ID of the primary entity
        user: id/email of the actor (admin, partner, system)
        details: free-form dict (rule, reason, old_value, new_value, etc.)
        related: linked entity IDs (partner_id, previous_partner_id, etc.)
    """
    await database.event_log.insert_one({
        "id": str(uuid.uuid4()),
        "action": action,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "user": user,
        "details": details or {},
        "related": related or {},
        "created_at": now_iso()
    })


async def get_events(
    database,
    entity_id: str = None,
    action: str = None,
    partner_id: str = None,
    limit: int = 100,
    skip: int = 0
):
    """Derniers événements (plus récent d'abord) + total, filtrés par lead, action, partenaire"""
    query = {}
    if entity_id:
        query["entity_id"] = entity_id
    if action:
        query["action"] = action
    if partner_id:
        query["related.partner_id"] = partner_id

    events = await database.event_log.find(query, {"_id": 0}) \
        .sort("created_at", -1) \
        .skip(skip) \
        .limit(limit) \
        .to_list(limit)
    total = await database.event_log.count_documents(query)

    return events, total
