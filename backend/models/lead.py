"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  Lead CRM - Modèle Lead (demande de service: déménagement / nettoyage)       ║
║                                                                              ║
║  RÈGLES FONDAMENTALES:                                                       ║
║  1. Un seul partenaire assigné à la fois (assigned_partner_id)               ║
║  2. Cycle: pending -> assigned -> accepted | cancelled                       ║
║  3. Jamais de retour vers pending; un lead rejeté repart au pool             ║
║     (cancelled -> assigned), une annulation approuvée est terminale          ║
║  4. version = jeton de concurrence optimiste (incrémenté à chaque écriture)  ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from typing import Optional, Any, Dict, List
from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator, model_validator
from enum import Enum


class ServiceType(str, Enum):
    MOVING = "moving"
    CLEANING = "cleaning"


class LeadStatus(str, Enum):
    PENDING = "pending"       # Créé, pas encore assigné
    ASSIGNED = "assigned"     # Assigné à un partenaire, en attente de réponse
    ACCEPTED = "accepted"     # Accepté par le partenaire
    CANCELLED = "cancelled"   # Rejeté (réassignable) ou annulation approuvée


VALID_LEAD_STATUSES = [s.value for s in LeadStatus]

# Statuts où le lead porte une assignation en cours
ACTIVE_ASSIGNMENT_STATUSES = (LeadStatus.ASSIGNED, LeadStatus.ACCEPTED)


class Address(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    address: str = ""
    postal_code: str = Field("", validation_alias=AliasChoices("postal_code", "postalCode"))
    city: str = ""
    country: str = ""

    def has_location(self) -> bool:
        return bool(self.city and self.country)


class LeadLocation(BaseModel):
    """
    pickup + destination pour un déménagement,
    service_address pour un nettoyage (repli: pickup)
    """
    model_config = ConfigDict(extra="ignore")

    pickup: Optional[Address] = None
    destination: Optional[Address] = None
    service_address: Optional[Address] = None


# Anciennes clés de formulaire -> côté normalisé
_LEGACY_ADDRESS_KEYS = {
    "pickup": ("pickupAddress", "pickupLocation"),
    "destination": ("destinationAddress", "deliveryAddress", "destinationLocation"),
    "service_address": ("serviceAddress", "serviceLocation", "address"),
}


def _legacy_location(data: Dict[str, Any]) -> Dict[str, Any]:
    """Reconstruit location depuis form_data / champs legacy (formats pré-migration)"""
    sources = [data.get("form_data") or data.get("formData") or {}, data]
    location: Dict[str, Any] = {}
    for side, keys in _LEGACY_ADDRESS_KEYS.items():
        for source in sources:
            found = next(
                (source[k] for k in keys if isinstance(source.get(k), dict)),
                None
            )
            if found is not None:
                location[side] = found
                break
    return location


class LeadDocument(BaseModel):
    """
    Structure d'un lead telle que lue en base (normalisée à la lecture)
    """
    model_config = ConfigDict(extra="ignore")

    id: str
    lead_code: str = ""
    service_type: ServiceType
    location: LeadLocation = LeadLocation()

    status: LeadStatus = LeadStatus.PENDING
    assigned_partner_id: Optional[str] = None
    assigned_at: Optional[str] = None
    accepted_at: Optional[str] = None
    version: int = 0
    # Une entrée {partner_id, assigned_at} par assignation (compte capacité)
    assignment_history: List[Dict[str, Any]] = Field(default_factory=list)

    # === REJET / ANNULATION ===
    rejection_reason: Optional[str] = None
    rejected_at: Optional[str] = None
    cancellation_requested: bool = False
    cancellation_reason: Optional[str] = None
    cancellation_requested_at: Optional[str] = None
    cancellation_approved: bool = False

    created_at: str = ""
    updated_at: str = ""

    @model_validator(mode="before")
    @classmethod
    def normalize_legacy_location(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        location = data.get("location") or {}
        if not any(location.get(side) for side in _LEGACY_ADDRESS_KEYS):
            legacy = _legacy_location(data)
            if legacy:
                data = {**data, "location": legacy}
        return data

    @field_validator("lead_code", "created_at", "updated_at", mode="before")
    @classmethod
    def none_as_blank(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("assignment_history", mode="before")
    @classmethod
    def none_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("version", "cancellation_requested", "cancellation_approved", mode="before")
    @classmethod
    def none_as_default(cls, value: Any, info) -> Any:
        if value is None:
            return 0 if info.field_name == "version" else False
        return value

    def has_active_assignment(self) -> bool:
        return bool(self.assigned_partner_id) and self.status in ACTIVE_ASSIGNMENT_STATUSES

    def is_back_in_pool(self) -> bool:
        """Annulé par rejet du partenaire (et non par annulation approuvée)"""
        return (
            self.status == LeadStatus.CANCELLED
            and bool(self.rejected_at)
            and not self.cancellation_approved
        )


class LeadRejectRequest(BaseModel):
    partner_id: str
    reason: str


class LeadAcceptRequest(BaseModel):
    partner_id: str


class CancellationRequest(BaseModel):
    partner_id: str
    reason: str = ""


class CancellationDecision(BaseModel):
    approved: bool
    reason: Optional[str] = None
