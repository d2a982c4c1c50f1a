"""
Lead CRM - Accès MongoDB (leads / partners)

Seul module qui parle Motor pour le moteur d'assignation.
Toutes les lectures sont fraîches (aucun cache): le moteur relit à chaque appel.

Écriture lead = version-guard:
    find_one_and_update({"id": lead_id, "version": expected}, {"$set": ..., "$inc": {"version": 1}, "$push": ...})
    0 document matché -> ConcurrentModificationError (l'appelant réessaie une fois)
"""

import logging
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument

from config import now_iso
from services.errors import ConcurrentModificationError

logger = logging.getLogger("store")


class MongoStore:

    def __init__(self, db):
        self.db = db

    # ---- Partners ----

    async def find_active_partners(self, service_type: str) -> List[Dict[str, Any]]:
        return await self.db.partners.find(
            {"status": "active", "service_type": service_type, "deleted": {"$ne": True}},
            {"_id": 0}
        ).to_list(None)

    async def get_partner(self, partner_id: str) -> Optional[Dict[str, Any]]:
        return await self.db.partners.find_one({"id": partner_id, "deleted": {"$ne": True}}, {"_id": 0})

    async def increment_partner_metrics(self, partner_id: str, increments: Dict[str, int]) -> None:
        await self.db.partners.update_one(
            {"id": partner_id},
            {
                "$inc": {f"metrics.{key}": value for key, value in increments.items()},
                "$set": {"updated_at": now_iso()}
            }
        )

    # ---- Leads ----

    async def get_lead(self, lead_id: str) -> Optional[Dict[str, Any]]:
        return await self.db.leads.find_one({"id": lead_id}, {"_id": 0})

    async def update_lead(
        self,
        lead_id: str,
        expected_version: int,
        fields: Dict[str, Any],
        push: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Écrit `fields` (et ajoute `push` aux tableaux) si la version n'a pas bougé depuis la lecture.

        Raises:
            ConcurrentModificationError si un autre écrivain est passé avant
        """
        # Leads pré-migration: pas de champ version = version 0
        version_filter = {"$in": [0, None]} if expected_version == 0 else expected_version

        update = {"$set": {**fields, "updated_at": now_iso()}, "$inc": {"version": 1}}
        if push:
            update["$push"] = push

        updated = await self.db.leads.find_one_and_update(
            {"id": lead_id, "version": version_filter},
            update,
            projection={"_id": 0},
            return_document=ReturnDocument.AFTER
        )
        if updated is None:
            logger.warning(f"[STORE] Lead {lead_id}: version {expected_version} périmée")
            raise ConcurrentModificationError(lead_id, expected_version)
        return updated

    # ---- Capacité ----
    # Compte sur assignment_history: un lead réassigné ailleurs en cours de semaine
    # reste compté pour le partenaire précédent. Leads sans historique (pré-migration):
    # repli sur assigned_partner_id / assigned_at.

    async def count_assigned_between(self, partner_id: str, start: str, end: str) -> int:
        counts = await self.count_assigned_by_partner([partner_id], start, end)
        return counts.get(partner_id, 0)

    async def count_assigned_by_partner(self, partner_ids: List[str], start: str, end: str) -> Dict[str, int]:
        if not partner_ids:
            return {}

        pipeline = [
            {
                "$match": {
                    "$or": [
                        {"assignment_history.partner_id": {"$in": partner_ids}},
                        {"assignment_history": None, "assigned_partner_id": {"$in": partner_ids}},
                    ]
                }
            },
            {
                "$project": {
                    "id": 1,
                    "entries": {
                        "$ifNull": [
                            "$assignment_history",
                            [{"partner_id": "$assigned_partner_id", "assigned_at": "$assigned_at"}]
                        ]
                    }
                }
            },
            {"$unwind": "$entries"},
            {
                "$match": {
                    "entries.partner_id": {"$in": partner_ids},
                    "entries.assigned_at": {"$gte": start, "$lte": end}
                }
            },
            # Un lead réassigné deux fois au même partenaire dans la semaine compte une fois
            {"$group": {"_id": {"partner": "$entries.partner_id", "lead": "$id"}}},
            {"$group": {"_id": "$_id.partner", "count": {"$sum": 1}}}
        ]

        rows = await self.db.leads.aggregate(pipeline).to_list(None)
        return {row["_id"]: row.get("count", 0) for row in rows}

    # ---- Index ----

    async def ensure_indexes(self) -> None:
        await self.db.leads.create_index("id", unique=True)
        await self.db.leads.create_index([("assigned_partner_id", 1), ("assigned_at", 1)])
        await self.db.leads.create_index([("assignment_history.partner_id", 1), ("assignment_history.assigned_at", 1)])
        await self.db.leads.create_index([("service_type", 1), ("status", 1)])
        await self.db.partners.create_index("id", unique=True)
        await self.db.partners.create_index([("service_type", 1), ("status", 1)])
        await self.db.event_log.create_index("created_at")
        await self.db.notifications.create_index([("partner_id", 1), ("read", 1)])
