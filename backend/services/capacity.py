"""
Lead CRM - Capacité hebdomadaire des partenaires

Semaine = dimanche 00:00:00.000 -> samedi 23:59:59.999 (UTC).
count = leads assignés à ce partenaire dans la semaine (assignment_history:
        une réassignation ailleurs ne libère pas la place déjà consommée).
has_capacity = count < limit (à la limite exacte = plein).
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, NamedTuple, Optional, Tuple

from config import DEFAULT_LEADS_PER_WEEK, now_utc, to_iso
from models.partner import PartnerDocument

logger = logging.getLogger("capacity")


def get_week_range(at: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Retourne (dimanche 00:00, samedi 23:59:59.999) de la semaine contenant `at`"""
    at = at or now_utc()
    if at.tzinfo is None:
        at = at.replace(tzinfo=timezone.utc)
    at = at.astimezone(timezone.utc)

    days_since_sunday = (at.weekday() + 1) % 7
    start = (at - timedelta(days=days_since_sunday)).replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=6, hours=23, minutes=59, seconds=59, milliseconds=999)
    return start, end


def get_week_range_iso(at: Optional[datetime] = None) -> Dict[str, str]:
    start, end = get_week_range(at)
    return {"start": to_iso(start), "end": to_iso(end)}


class WeeklyLoad(NamedTuple):
    count: int
    limit: int
    has_capacity: bool

    @property
    def utilization_percent(self) -> float:
        if self.limit <= 0:
            return 0.0
        return self.count / self.limit * 100


class CapacityTracker:
    """Charge hebdomadaire calculée à chaque appel (aucun cache)"""

    def __init__(self, store, default_limit: int = DEFAULT_LEADS_PER_WEEK):
        self.store = store
        self.default_limit = default_limit

    def limit_for(self, partner: PartnerDocument) -> int:
        limit = partner.average_leads_per_week
        return self.default_limit if limit is None else limit

    def _load(self, partner: PartnerDocument, count: int) -> WeeklyLoad:
        limit = self.limit_for(partner)
        return WeeklyLoad(count=count, limit=limit, has_capacity=count < limit)

    async def weekly_load(self, partner: PartnerDocument, at: Optional[datetime] = None) -> WeeklyLoad:
        start, end = get_week_range(at)
        count = await self.store.count_assigned_between(partner.id, to_iso(start), to_iso(end))
        return self._load(partner, count)

    async def weekly_loads(
        self,
        partners: Iterable[PartnerDocument],
        at: Optional[datetime] = None
    ) -> Dict[str, WeeklyLoad]:
        """Une seule requête pour tous les partenaires du listing"""
        partners = list(partners)
        start, end = get_week_range(at)
        counts = await self.store.count_assigned_by_partner(
            [p.id for p in partners], to_iso(start), to_iso(end)
        )
        logger.debug(f"[CAPACITY] Semaine {to_iso(start)}: {len(counts)}/{len(partners)} partenaires déjà servis")
        return {p.id: self._load(p, counts.get(p.id, 0)) for p in partners}
