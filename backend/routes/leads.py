"""
Routes pour l'assignation des Leads
"""

from fastapi import APIRouter, HTTPException, Depends

from config import db
from models.assignment import AssignRequest
from models.lead import LeadAcceptRequest, LeadRejectRequest, CancellationRequest, CancellationDecision
from services.assignment_engine import AssignmentEngine
from services.errors import ConcurrentModificationError, InvalidStateError, NotFoundError
from services.lead_lifecycle import LeadLifecycle
from services.notifications import AuditNotificationSink
from services.store import MongoStore

router = APIRouter(tags=["Leads"])


def get_store():
    return MongoStore(db)


def get_sink():
    return AuditNotificationSink(db)


def get_engine(store=Depends(get_store), sink=Depends(get_sink)) -> AssignmentEngine:
    return AssignmentEngine(store, sink=sink)


def get_lifecycle(store=Depends(get_store), sink=Depends(get_sink)) -> LeadLifecycle:
    return LeadLifecycle(store, sink=sink)


def to_http_error(error: Exception) -> HTTPException:
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, InvalidStateError):
        return HTTPException(status_code=400, detail=error.to_dict())
    if isinstance(error, ConcurrentModificationError):
        return HTTPException(status_code=409, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))


# ==================== ASSIGNATION (admin) ====================

@router.get("/leads/{lead_id}/available-partners")
async def get_available_partners(lead_id: str, engine: AssignmentEngine = Depends(get_engine)):
    """Candidats suggérés (capacité + zone), onglets exclusive / basic"""
    try:
        candidates = await engine.list_candidates(lead_id)
    except NotFoundError as e:
        raise to_http_error(e)
    return {"success": True, **candidates.model_dump()}


@router.put("/leads/{lead_id}/assign")
async def assign_lead(lead_id: str, data: AssignRequest, engine: AssignmentEngine = Depends(get_engine)):
    try:
        result = await engine.assign_with_retry(lead_id, data.partner_id, data.version)
    except (NotFoundError, InvalidStateError, ConcurrentModificationError) as e:
        raise to_http_error(e)
    return {"message": "Lead assigned successfully", **result.to_dict()}


# ==================== ACTIONS PARTENAIRE ====================

@router.put("/leads/{lead_id}/accept")
async def accept_lead(lead_id: str, data: LeadAcceptRequest, lifecycle: LeadLifecycle = Depends(get_lifecycle)):
    try:
        lead = await lifecycle.accept_lead(lead_id, data.partner_id)
    except (NotFoundError, InvalidStateError, ConcurrentModificationError) as e:
        raise to_http_error(e)
    return {"success": True, "message": "Lead accepted successfully", "lead": lead}


@router.put("/leads/{lead_id}/reject")
async def reject_lead(lead_id: str, data: LeadRejectRequest, lifecycle: LeadLifecycle = Depends(get_lifecycle)):
    try:
        lead = await lifecycle.reject_lead(lead_id, data.partner_id, data.reason)
    except (NotFoundError, InvalidStateError, ConcurrentModificationError) as e:
        raise to_http_error(e)
    return {"success": True, "message": "Lead rejected successfully", "lead": lead}


@router.put("/leads/{lead_id}/cancel-request")
async def request_cancellation(
    lead_id: str,
    data: CancellationRequest,
    lifecycle: LeadLifecycle = Depends(get_lifecycle)
):
    try:
        lead = await lifecycle.request_cancellation(lead_id, data.partner_id, data.reason)
    except (NotFoundError, InvalidStateError, ConcurrentModificationError) as e:
        raise to_http_error(e)
    return {"success": True, "message": "Cancellation requested", "lead": lead}


@router.put("/leads/{lead_id}/cancellation")
async def handle_cancellation(
    lead_id: str,
    data: CancellationDecision,
    lifecycle: LeadLifecycle = Depends(get_lifecycle)
):
    try:
        lead = await lifecycle.handle_cancellation(lead_id, data.approved, data.reason)
    except (NotFoundError, InvalidStateError, ConcurrentModificationError) as e:
        raise to_http_error(e)
    message = "Cancellation approved" if data.approved else "Cancellation rejected"
    return {"success": True, "message": message, "lead": lead}
