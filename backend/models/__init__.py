"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Lead CRM - Models Package                                                   ║
║                                                                              ║
║  Exports tous les modèles pour import facile                                 ║
║  from models import LeadDocument, PartnerDocument, CandidateList, etc.       ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

# Lead
from .lead import (
    ServiceType,
    LeadStatus,
    VALID_LEAD_STATUSES,
    ACTIVE_ASSIGNMENT_STATUSES,
    Address,
    LeadLocation,
    LeadDocument,
    LeadAcceptRequest,
    LeadRejectRequest,
    CancellationRequest,
    CancellationDecision,
)

# Partner
from .partner import (
    PartnerType,
    PartnerStatus,
    PartnerMetrics,
    PartnerDocument,
    CitySetting,
    ServiceArea,
    ServiceAreaConfig,
)

# Assignment
from .assignment import (
    CandidateEntry,
    CandidateList,
    AssignRequest,
    AssignmentResult,
)
