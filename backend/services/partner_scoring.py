"""
Lead CRM - Score de priorité partenaire

score = base (exclusive 100 / basic 50)
        - capacité utilisée (%)
        + 25 si zone OK
        + 0.2 x taux d'acceptation (%)

Heuristique de classement, pas une probabilité. Un score négatif est légal
(partenaire au-delà de sa capacité).
"""

from models.partner import PartnerMetrics, PartnerType

BASE_SCORE = {
    PartnerType.EXCLUSIVE: 100,
    PartnerType.BASIC: 50,
}
LOCATION_BONUS = 25
ACCEPTANCE_WEIGHT = 0.2


def compute_acceptance_rate(metrics: PartnerMetrics) -> float:
    """Taux d'acceptation en %, 0 sans historique"""
    if metrics.total_leads_received <= 0:
        return 0.0
    return metrics.total_leads_accepted / metrics.total_leads_received * 100


def compute_priority_score(
    partner_type: PartnerType,
    capacity_used_percent: float,
    location_match: bool,
    acceptance_rate: float
) -> float:
    score = BASE_SCORE[partner_type] - capacity_used_percent
    if location_match:
        score += LOCATION_BONUS
    score += acceptance_rate * ACCEPTANCE_WEIGHT
    return round(score, 2)
