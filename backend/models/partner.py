"""
Lead CRM - Modèle Partner (entreprise prestataire)

Un document partenaire = un couple (entreprise, service). Une entreprise qui
propose déménagement ET nettoyage a deux documents Partner.

Les préférences de zone sont stockées brutes (plusieurs formats historiques)
et résolues à la lecture en ServiceAreaConfig, voir services/service_area.py.
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, field_validator
from enum import Enum
from .lead import ServiceType


class PartnerType(str, Enum):
    EXCLUSIVE = "exclusive"
    BASIC = "basic"


class PartnerStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    REJECTED = "rejected"


class PartnerMetrics(BaseModel):
    model_config = ConfigDict(extra="ignore")

    total_leads_received: int = 0
    total_leads_accepted: int = 0
    total_leads_cancelled: int = 0
    total_leads_rejected: int = 0


class PartnerDocument(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    partner_code: str = ""
    company_name: str = ""
    service_type: ServiceType
    partner_type: PartnerType = PartnerType.BASIC
    status: PartnerStatus = PartnerStatus.PENDING

    preferences: Dict[str, Any] = {}
    metrics: PartnerMetrics = PartnerMetrics()

    @field_validator("preferences", "metrics", mode="before")
    @classmethod
    def none_as_empty(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("partner_code", "company_name", mode="before")
    @classmethod
    def none_as_blank(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def average_leads_per_week(self) -> Optional[int]:
        value = self.preferences.get("average_leads_per_week", self.preferences.get("averageLeadsPerWeek"))
        if value is None:
            return None
        try:
            return int(value)
        except (TypeError, ValueError):
            # Valeur illisible -> limite par défaut
            return None

    def is_exclusive(self) -> bool:
        return self.partner_type == PartnerType.EXCLUSIVE

    def summary(self) -> Dict[str, Any]:
        return {
            "partner_id": self.id,
            "partner_code": self.partner_code,
            "company_name": self.company_name,
            "partner_type": self.partner_type.value,
        }


# ==================== ZONE DE SERVICE (forme résolue) ====================

class CitySetting(BaseModel):
    """Ville configurée: rayon 0 = nom exact uniquement"""
    country: str
    city: str
    radius: float = 0


class ServiceArea(BaseModel):
    """
    Zone d'un côté (pickup, destination ou nettoyage).
    countries: tous les pays configurés (noms canoniques), avec ou sans villes.
    cities: villes configurées, chacune rattachée à son pays.
    """
    countries: List[str] = []
    cities: List[CitySetting] = []

    def is_empty(self) -> bool:
        return not self.countries and not self.cities

    def countries_with_cities(self) -> set:
        return {c.country.lower() for c in self.cities}

    def cities_for(self, country: str) -> List[CitySetting]:
        country = country.lower()
        return [c for c in self.cities if c.country.lower() == country]


class ServiceAreaConfig(BaseModel):
    """Zones par côté du service"""
    pickup: ServiceArea = ServiceArea()
    destination: ServiceArea = ServiceArea()
    cleaning: ServiceArea = ServiceArea()
