"""
Lead CRM - Notifications partenaires + sink d'assignation

AuditNotificationSink est appelé par le moteur APRÈS la décision.
Ses échecs sont journalisés par l'appelant, jamais propagés:
l'assignation en base reste la source de vérité.
"""

import logging
from typing import Any, Dict, Optional

from config import generate_id, now_iso
from services.event_logger import log_event

logger = logging.getLogger("notifications")


async def create_lead_assigned_notification(database, partner_id: str, lead: Dict[str, Any]) -> Dict[str, Any]:
    """Notification in-app "nouveau lead" pour le partenaire"""
    location = lead.get("location") or {}
    pickup = location.get("pickup") or location.get("service_address") or {}

    notification = {
        "id": generate_id(),
        "partner_id": partner_id,
        "type": "lead_assigned",
        "lead_id": lead.get("id"),
        "title": f"New lead {lead.get('lead_code', '')}".strip(),
        "data": {
            "service": lead.get("service_type"),
            "location": pickup.get("city") or pickup.get("country") or "",
            "priority": "high",
        },
        "read": False,
        "created_at": now_iso()
    }

    await database.notifications.insert_one(notification)
    return notification


class AuditNotificationSink:
    """Journal d'audit + notification partenaire pour les décisions d'assignation"""

    def __init__(self, database):
        self.db = database

    async def assignment_succeeded(
        self,
        lead: Dict[str, Any],
        partner: Dict[str, Any],
        previous_partner_id: Optional[str],
        actor: str = "system"
    ) -> None:
        await create_lead_assigned_notification(self.db, partner["id"], lead)
        await log_event(
            self.db,
            action="assign_lead",
            entity_type="lead",
            entity_id=lead["id"],
            user=actor,
            details={
                "partner_type": partner.get("partner_type"),
                "company_name": partner.get("company_name", ""),
            },
            related={"partner_id": partner["id"], "previous_partner_id": previous_partner_id}
        )
        logger.info(f"[NOTIFY] Lead {lead.get('lead_code') or lead['id']} -> partner {partner['id']}")

    async def assignment_failed(
        self,
        lead_id: str,
        partner_id: str,
        rule: str,
        message: str,
        actor: str = "system"
    ) -> None:
        await log_event(
            self.db,
            action="assign_lead_rejected",
            entity_type="lead",
            entity_id=lead_id,
            user=actor,
            details={"rule": rule, "message": message},
            related={"partner_id": partner_id}
        )

    async def lead_event(self, action: str, lead_id: str, partner_id: str, details: dict = None) -> None:
        await log_event(
            self.db,
            action=action,
            entity_type="lead",
            entity_id=lead_id,
            user=partner_id or "system",
            details=details,
            related={"partner_id": partner_id}
        )
