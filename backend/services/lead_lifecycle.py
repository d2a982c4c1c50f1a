"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Lead CRM - Cycle de vie du lead                                             ║
║                                                                              ║
║  RÈGLES STRICTES DE TRANSITION DE STATUT                                     ║
║                                                                              ║
║  pending   -> assigned                       (AssignmentEngine.assign)       ║
║  assigned  -> assigned | accepted | cancelled                                ║
║  accepted  -> assigned | cancelled           (réassignation / annulation)    ║
║  cancelled -> assigned   (lead rejeté uniquement: retour au pool;            ║
║                           annulation approuvée = terminal)                   ║
║                                                                              ║
║  JAMAIS de retour vers pending.                                              ║
║                                                                              ║
║  MÉTRIQUES PARTENAIRE:                                                       ║
║  - accept  -> total_leads_accepted +1                                        ║
║  - reject  -> total_leads_rejected +1                                        ║
║  - annulation approuvée -> total_leads_cancelled +1, total_leads_accepted -1 ║
║    (seul décrément: l'acceptation est annulée)                               ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from config import now_utc, to_iso
from models.lead import LeadDocument, LeadStatus
from services.errors import (
    InvalidStateError,
    LeadNotFoundError,
    RULE_INVALID_TRANSITION,
    RULE_NO_CANCELLATION_REQUEST,
    RULE_NOT_ASSIGNED_PARTNER,
    RULE_REASON_REQUIRED,
)

logger = logging.getLogger("lead_lifecycle")


# ════════════════════════════════════════════════════════════════════════════
# VALID STATE TRANSITIONS
# ════════════════════════════════════════════════════════════════════════════

VALID_LEAD_TRANSITIONS = {
    "pending": ["assigned"],
    "assigned": ["assigned", "accepted", "cancelled"],
    "accepted": ["assigned", "cancelled"],
    "cancelled": ["assigned"],  # rejet seulement, cf. LeadDocument.is_back_in_pool
}


def _value(status) -> str:
    return status.value if isinstance(status, LeadStatus) else str(status)


def validate_lead_transition(lead_id: str, from_status, to_status) -> bool:
    """
    Valide qu'une transition de statut lead est autorisée.
    """
    from_status, to_status = _value(from_status), _value(to_status)
    valid_next = VALID_LEAD_TRANSITIONS.get(from_status, [])

    if to_status not in valid_next:
        raise InvalidStateError(
            RULE_INVALID_TRANSITION,
            f"Lead {lead_id} cannot go from '{from_status}' to '{to_status}'. "
            f"Valid transitions from '{from_status}': {valid_next}"
        )

    return True


async def safe_side_effect(label: str, awaitable) -> None:
    """Effet de bord best-effort: journalisé en cas d'échec, jamais propagé"""
    try:
        await awaitable
    except Exception as e:
        logger.error(f"[SIDE_EFFECT] {label} failed: {e}")


# ════════════════════════════════════════════════════════════════════════════
# ACTIONS PARTENAIRE / ADMIN
# ════════════════════════════════════════════════════════════════════════════

class LeadLifecycle:

    def __init__(self, store, sink=None, clock: Callable[[], datetime] = now_utc):
        self.store = store
        self.sink = sink
        self.clock = clock

    async def _load(self, lead_id: str) -> LeadDocument:
        raw = await self.store.get_lead(lead_id)
        if not raw:
            raise LeadNotFoundError(lead_id)
        return LeadDocument.model_validate(raw)

    @staticmethod
    def _require_assigned_partner(lead: LeadDocument, partner_id: str) -> None:
        if lead.assigned_partner_id != partner_id:
            raise InvalidStateError(
                RULE_NOT_ASSIGNED_PARTNER,
                "Access denied - partner is not assigned to this lead"
            )

    async def _record(self, action: str, lead_id: str, partner_id: Optional[str], details: dict = None):
        if self.sink is not None:
            await safe_side_effect(action, self.sink.lead_event(action, lead_id, partner_id, details))

    async def accept_lead(self, lead_id: str, partner_id: str) -> Dict[str, Any]:
        lead = await self._load(lead_id)
        self._require_assigned_partner(lead, partner_id)

        if lead.status == LeadStatus.ACCEPTED:
            raise InvalidStateError(RULE_INVALID_TRANSITION, "Lead already accepted by this partner")
        validate_lead_transition(lead.id, lead.status, LeadStatus.ACCEPTED)

        updated = await self.store.update_lead(lead.id, lead.version, {
            "status": LeadStatus.ACCEPTED.value,
            "accepted_at": to_iso(self.clock()),
        })
        await self.store.increment_partner_metrics(partner_id, {"total_leads_accepted": 1})

        logger.info(f"[LIFECYCLE] Lead {lead.lead_code or lead.id} accepted by partner {partner_id}")
        await self._record("accept_lead", lead.id, partner_id)
        return updated

    async def reject_lead(self, lead_id: str, partner_id: str, reason: str) -> Dict[str, Any]:
        if not reason or not reason.strip():
            raise InvalidStateError(RULE_REASON_REQUIRED, "Rejection reason is required")

        lead = await self._load(lead_id)
        self._require_assigned_partner(lead, partner_id)

        if lead.status != LeadStatus.ASSIGNED:
            raise InvalidStateError(
                RULE_INVALID_TRANSITION,
                f"Assignment cannot be rejected - current status: {lead.status.value}. "
                "Use a cancellation request for accepted leads."
            )
        validate_lead_transition(lead.id, lead.status, LeadStatus.CANCELLED)

        updated = await self.store.update_lead(lead.id, lead.version, {
            "status": LeadStatus.CANCELLED.value,
            "rejection_reason": reason.strip(),
            "rejected_at": to_iso(self.clock()),
        })
        await self.store.increment_partner_metrics(partner_id, {"total_leads_rejected": 1})

        logger.info(f"[LIFECYCLE] Lead {lead.lead_code or lead.id} rejected by partner {partner_id}: {reason}")
        await self._record("reject_lead", lead.id, partner_id, {"reason": reason.strip()})
        return updated

    async def request_cancellation(self, lead_id: str, partner_id: str, reason: str = "") -> Dict[str, Any]:
        lead = await self._load(lead_id)
        self._require_assigned_partner(lead, partner_id)

        if lead.status != LeadStatus.ACCEPTED:
            raise InvalidStateError(
                RULE_INVALID_TRANSITION,
                f"Only accepted leads can be cancelled - current status: {lead.status.value}"
            )
        if lead.cancellation_requested:
            raise InvalidStateError(RULE_INVALID_TRANSITION, "Cancellation already requested")

        updated = await self.store.update_lead(lead.id, lead.version, {
            "cancellation_requested": True,
            "cancellation_reason": reason,
            "cancellation_requested_at": to_iso(self.clock()),
        })

        await self._record("request_cancellation", lead.id, partner_id, {"reason": reason})
        return updated

    async def handle_cancellation(self, lead_id: str, approved: bool, reason: Optional[str] = None) -> Dict[str, Any]:
        """
        Décision admin sur une demande d'annulation.
        approved -> lead cancelled, acceptation annulée dans les métriques
        refus    -> le lead reste accepted, demande effacée
        """
        lead = await self._load(lead_id)

        if not lead.cancellation_requested:
            raise InvalidStateError(RULE_NO_CANCELLATION_REQUEST, "No cancellation request found for this lead")

        now = to_iso(self.clock())
        partner_id = lead.assigned_partner_id

        if approved:
            validate_lead_transition(lead.id, lead.status, LeadStatus.CANCELLED)
            updated = await self.store.update_lead(lead.id, lead.version, {
                "status": LeadStatus.CANCELLED.value,
                "cancellation_requested": False,
                "cancellation_approved": True,
                "cancellation_approved_at": now,
            })
            if partner_id:
                await self.store.increment_partner_metrics(
                    partner_id, {"total_leads_cancelled": 1, "total_leads_accepted": -1}
                )
        else:
            updated = await self.store.update_lead(lead.id, lead.version, {
                "cancellation_requested": False,
                "cancellation_rejection_reason": reason or "No reason provided",
                "cancellation_rejected_at": now,
            })

        action = "approve_cancellation" if approved else "deny_cancellation"
        logger.info(f"[LIFECYCLE] Lead {lead.lead_code or lead.id}: {action}")
        await self._record(action, lead.id, partner_id, {"reason": reason})
        return updated
