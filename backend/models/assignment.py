"""
Lead CRM - Décisions d'assignation (éphémères, jamais persistées)
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel


class CandidateEntry(BaseModel):
    """Un partenaire évalué pour un lead (recalculé à chaque listing)"""
    partner_id: str
    partner_code: str = ""
    company_name: str = ""
    partner_type: str

    current_week_leads: int = 0
    weekly_limit: int = 0
    capacity_used: int = 0
    has_capacity: bool = False

    pickup_match: bool = False
    destination_match: bool = False
    location_match: bool = False

    acceptance_rate: int = 0
    priority_score: float = 0.0


class CandidateList(BaseModel):
    lead_id: str
    lead_code: str = ""
    service_type: str

    exclusive: List[CandidateEntry] = []
    basic: List[CandidateEntry] = []
    combined: List[CandidateEntry] = []  # exclusive d'abord (anciens consommateurs)

    show_tabs: bool = True
    default_tab: Optional[str] = None

    all_active: List[Dict[str, Any]] = []
    total_active: int = 0
    total_suggested: int = 0
    week_range: Dict[str, str] = {}


class AssignRequest(BaseModel):
    partner_id: str
    version: Optional[int] = None


class AssignmentResult:
    """Résultat d'une assignation réussie"""

    def __init__(
        self,
        lead_id: str,
        partner_id: str,
        assigned_at: str,
        partner_type: str,
        version: int,
        current_week_leads: int,
        weekly_limit: int,
        capacity_warning: Optional[str] = None,
        replaced_partner_id: Optional[str] = None,
    ):
        self.lead_id = lead_id
        self.partner_id = partner_id
        self.assigned_at = assigned_at
        self.partner_type = partner_type
        self.version = version
        self.current_week_leads = current_week_leads
        self.weekly_limit = weekly_limit
        self.capacity_warning = capacity_warning
        self.replaced_partner_id = replaced_partner_id

    @property
    def capacity_info(self) -> str:
        if self.capacity_warning:
            return self.capacity_warning
        return f"Partner capacity: {self.current_week_leads}/{self.weekly_limit} leads this week"

    def to_dict(self) -> Dict[str, Any]:
        after = self.current_week_leads + 1
        return {
            "success": True,
            "lead_id": self.lead_id,
            "partner_id": self.partner_id,
            "assigned_at": self.assigned_at,
            "version": self.version,
            "replaced_partner_id": self.replaced_partner_id,
            "capacity_info": self.capacity_info,
            "capacity_warning": self.capacity_warning,
            "assignment_info": {
                "partner_type": self.partner_type,
                "current_week_leads": after,
                "average_leads_per_week": self.weekly_limit,
                "capacity_used": round(after / self.weekly_limit * 100) if self.weekly_limit > 0 else 0,
            },
        }
