"""
Routes Partners (capacité hebdomadaire)
"""

from fastapi import APIRouter, HTTPException, Depends

from models.partner import PartnerDocument
from routes.leads import get_store
from services.capacity import CapacityTracker, get_week_range_iso

router = APIRouter(tags=["Partners"])


@router.get("/partners/{partner_id}/capacity")
async def get_partner_capacity(partner_id: str, store=Depends(get_store)):
    raw = await store.get_partner(partner_id)
    if not raw:
        raise HTTPException(status_code=404, detail="Partner not found")

    partner = PartnerDocument.model_validate(raw)
    load = await CapacityTracker(store).weekly_load(partner)

    return {
        "partner_id": partner.id,
        "current_week_leads": load.count,
        "average_leads_per_week": load.limit,
        "has_capacity": load.has_capacity,
        "capacity_used": round(load.utilization_percent),
        "week_range": get_week_range_iso(),
    }
