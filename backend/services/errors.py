"""
Lead CRM - Erreurs métier (assignation / cycle de vie du lead)

Les routes convertissent ces erreurs en HTTPException:
NotFoundError -> 404, InvalidStateError -> 400, ConcurrentModificationError -> 409
"""

from typing import Optional, Dict, Any


class NotFoundError(Exception):
    """Lead ou partenaire introuvable"""
    pass


class LeadNotFoundError(NotFoundError):
    def __init__(self, lead_id: str):
        super().__init__(f"Lead {lead_id} not found")
        self.lead_id = lead_id


class PartnerNotFoundError(NotFoundError):
    def __init__(self, partner_id: str):
        super().__init__(f"Partner {partner_id} not found")
        self.partner_id = partner_id


class InvalidStateError(Exception):
    """
    Opération refusée par une règle métier.
    rule = identifiant stable, lisible par l'UI pour afficher l'explication.
    """

    def __init__(self, rule: str, message: str, current_assignment: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.rule = rule
        self.message = message
        self.current_assignment = current_assignment

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": False,
            "message": self.message,
            "rule": self.rule,
            "current_assignment": self.current_assignment,
        }


class ConcurrentModificationError(Exception):
    """Le lead a été modifié entre la lecture et l'écriture (version périmée)"""

    def __init__(self, lead_id: str, expected_version: int):
        super().__init__(f"Lead {lead_id} modified concurrently (expected version {expected_version})")
        self.lead_id = lead_id
        self.expected_version = expected_version


class ServiceAreaFormatError(ValueError):
    """Préférences de zone illisibles"""
    pass


# ==================== RÈGLES (identifiants) ====================

RULE_PARTNER_INACTIVE = "partner_inactive"
RULE_SERVICE_MISMATCH = "service_mismatch"
RULE_LEAD_CANCELLED = "lead_cancelled"
RULE_ONE_EXCLUSIVE_PARTNER = "one_exclusive_partner_at_a_time"
RULE_ACCEPTED_BY_BASIC = "accepted_leads_not_transferable_to_exclusive"
RULE_EXCLUSIVE_PROTECTED = "exclusive_assignment_protected"
RULE_INVALID_TRANSITION = "invalid_transition"
RULE_NOT_ASSIGNED_PARTNER = "not_assigned_partner"
RULE_REASON_REQUIRED = "reason_required"
RULE_NO_CANCELLATION_REQUEST = "no_cancellation_request"
