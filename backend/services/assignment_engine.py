"""
Lead CRM - Moteur d'assignation

CANDIDAT SUGGÉRÉ = partenaire active + même service
                   AND capacité hebdo restante (count < limit)
                   AND zone de service OK (pickup ET destination pour un déménagement)
Le score ne fait qu'ORDONNER les survivants (onglets exclusive / basic).

ORDRE DE PRIORITÉ DES RÈGLES À L'ASSIGNATION (chacune = refus, pas d'override):
1. Lead / partenaire existants, partenaire active, même service
   (lead annulé refusé, sauf rejet partenaire: le lead repart au pool)
2. Nouveau exclusive + actuel exclusive DIFFÉRENT     -> refus (un seul exclusive)
3. Nouveau exclusive + actuel basic ACCEPTÉ           -> refus (acceptation = engagement)
4. Nouveau basic     + actuel exclusive (tout statut) -> refus (exclusive protégé)
5. Sinon -> l'assignation précédente est écrasée

Capacité dépassée à l'assignation = simple avertissement, pas un blocage.
Notification + audit = best-effort, jamais de rollback.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional

from pydantic import ValidationError

from config import now_utc, to_iso
from models.assignment import AssignmentResult, CandidateEntry, CandidateList
from models.lead import LeadDocument, LeadStatus
from models.partner import PartnerDocument, PartnerStatus
from services.capacity import CapacityTracker, WeeklyLoad, get_week_range_iso
from services.errors import (
    ConcurrentModificationError,
    InvalidStateError,
    LeadNotFoundError,
    PartnerNotFoundError,
    ServiceAreaFormatError,
    RULE_ACCEPTED_BY_BASIC,
    RULE_EXCLUSIVE_PROTECTED,
    RULE_LEAD_CANCELLED,
    RULE_ONE_EXCLUSIVE_PARTNER,
    RULE_PARTNER_INACTIVE,
    RULE_SERVICE_MISMATCH,
)
from services.lead_lifecycle import safe_side_effect, validate_lead_transition
from services.partner_scoring import compute_acceptance_rate, compute_priority_score
from services.service_area import LocationMatch, ServiceAreaMatcher

logger = logging.getLogger("assignment_engine")

NO_MATCH = LocationMatch(pickup=False, destination=False, overall=False)


def _current_assignment_summary(lead: LeadDocument, partner: PartnerDocument) -> dict:
    return {
        **partner.summary(),
        "status": lead.status.value,
        "assigned_at": lead.assigned_at,
        "accepted_at": lead.accepted_at,
    }


def check_exclusivity(lead: LeadDocument, new_partner: PartnerDocument, current: Optional[PartnerDocument]) -> None:
    """
    Règles exclusive / basic contre l'assignation en cours.

    Raises:
        InvalidStateError avec rule = règle violée
    """
    if current is None:
        return

    summary = _current_assignment_summary(lead, current)

    if new_partner.is_exclusive():
        if current.is_exclusive() and current.id != new_partner.id:
            raise InvalidStateError(
                RULE_ONE_EXCLUSIVE_PARTNER,
                "Lead is already assigned to another exclusive partner "
                "(one exclusive partner at a time)",
                summary
            )
        if not current.is_exclusive() and lead.status == LeadStatus.ACCEPTED:
            raise InvalidStateError(
                RULE_ACCEPTED_BY_BASIC,
                "Lead has already been accepted by a basic partner and cannot be "
                "transferred to an exclusive partner",
                summary
            )
    elif current.is_exclusive():
        raise InvalidStateError(
            RULE_EXCLUSIVE_PROTECTED,
            "Lead is assigned to an exclusive partner and cannot be reassigned to basic partners",
            summary
        )


class AssignmentEngine:
    """
    Listing des candidats et assignation d'un lead.
    Aucun état partagé: tout est relu depuis le store à chaque appel.
    """

    def __init__(
        self,
        store,
        matcher: Optional[ServiceAreaMatcher] = None,
        capacity: Optional[CapacityTracker] = None,
        sink=None,
        clock: Callable[[], datetime] = now_utc
    ):
        self.store = store
        self.matcher = matcher or ServiceAreaMatcher()
        self.capacity = capacity or CapacityTracker(store)
        self.sink = sink
        self.clock = clock

    async def _load_lead(self, lead_id: str) -> LeadDocument:
        raw = await self.store.get_lead(lead_id)
        if not raw:
            raise LeadNotFoundError(lead_id)
        return LeadDocument.model_validate(raw)

    async def _load_partner(self, partner_id: str) -> Optional[PartnerDocument]:
        raw = await self.store.get_partner(partner_id)
        if not raw:
            return None
        return PartnerDocument.model_validate(raw)

    # ════════════════════════════════════════════════════════════════════════
    # LISTING
    # ════════════════════════════════════════════════════════════════════════

    def _location_match(self, lead: LeadDocument, partner: PartnerDocument) -> LocationMatch:
        try:
            config = self.matcher.resolve(partner.preferences)
            return self.matcher.evaluate(config, lead.location, lead.service_type)
        except (ServiceAreaFormatError, ValidationError, TypeError) as e:
            logger.warning(f"[CANDIDATES] Partner {partner.id}: préférences illisibles, exclu ({e})")
            return NO_MATCH

    def evaluate_partner(self, lead: LeadDocument, partner: PartnerDocument, load: WeeklyLoad) -> CandidateEntry:
        match = self._location_match(lead, partner)
        acceptance_rate = compute_acceptance_rate(partner.metrics)
        capacity_used = load.utilization_percent

        return CandidateEntry(
            partner_id=partner.id,
            partner_code=partner.partner_code,
            company_name=partner.company_name,
            partner_type=partner.partner_type.value,
            current_week_leads=load.count,
            weekly_limit=load.limit,
            capacity_used=round(capacity_used),
            has_capacity=load.has_capacity,
            pickup_match=match.pickup,
            destination_match=match.destination,
            location_match=match.overall,
            acceptance_rate=round(acceptance_rate),
            priority_score=compute_priority_score(
                partner.partner_type, capacity_used, match.overall, acceptance_rate
            ),
        )

    @staticmethod
    def _ranked(entries: List[CandidateEntry]) -> List[CandidateEntry]:
        return sorted(entries, key=lambda e: (-e.priority_score, e.partner_id))

    async def list_candidates(self, lead_id: str) -> CandidateList:
        lead = await self._load_lead(lead_id)

        raw_partners = await self.store.find_active_partners(lead.service_type.value)
        partners: List[PartnerDocument] = []
        for raw in raw_partners:
            try:
                partners.append(PartnerDocument.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"[CANDIDATES] Partner {raw.get('id')} illisible, ignoré: {e}")

        now = self.clock()
        loads = await self.capacity.weekly_loads(partners, now)

        entries = [self.evaluate_partner(lead, p, loads[p.id]) for p in partners]
        suggested = [e for e in entries if e.has_capacity and e.location_match]

        exclusive = self._ranked([e for e in suggested if e.partner_type == "exclusive"])
        basic = self._ranked([e for e in suggested if e.partner_type == "basic"])

        if exclusive:
            default_tab = "exclusive"
        elif basic:
            default_tab = "basic"
        else:
            default_tab = None

        logger.info(
            f"[CANDIDATES] lead={lead.lead_code or lead.id} service={lead.service_type.value} "
            f"active={len(partners)} exclusive={len(exclusive)} basic={len(basic)}"
        )

        return CandidateList(
            lead_id=lead.id,
            lead_code=lead.lead_code,
            service_type=lead.service_type.value,
            exclusive=exclusive,
            basic=basic,
            combined=exclusive + basic,
            show_tabs=default_tab is not None,
            default_tab=default_tab,
            all_active=[p.summary() for p in partners],
            total_active=len(partners),
            total_suggested=len(suggested),
            week_range=get_week_range_iso(now),
        )

    # ════════════════════════════════════════════════════════════════════════
    # ASSIGNATION
    # ════════════════════════════════════════════════════════════════════════

    @staticmethod
    def _check_eligibility(lead: LeadDocument, partner: PartnerDocument) -> None:
        if partner.status != PartnerStatus.ACTIVE:
            raise InvalidStateError(RULE_PARTNER_INACTIVE, "Invalid or inactive partner")
        if partner.service_type != lead.service_type:
            raise InvalidStateError(RULE_SERVICE_MISMATCH, "Partner does not provide this service")
        if lead.status == LeadStatus.CANCELLED and not lead.is_back_in_pool():
            raise InvalidStateError(RULE_LEAD_CANCELLED, "Cancelled leads cannot be assigned")

    async def _current_partner(self, lead: LeadDocument) -> Optional[PartnerDocument]:
        if not lead.has_active_assignment():
            return None
        current = await self._load_partner(lead.assigned_partner_id)
        if current is None:
            logger.warning(
                f"[ASSIGN] Lead {lead.id}: partenaire actuel {lead.assigned_partner_id} introuvable"
            )
        return current

    async def assign(
        self,
        lead_id: str,
        partner_id: str,
        expected_version: Optional[int] = None,
        actor: str = "admin"
    ) -> AssignmentResult:
        """
        Assigne le lead au partenaire (écrase l'assignation précédente si les règles le permettent).

        Raises:
            LeadNotFoundError / PartnerNotFoundError
            InvalidStateError (rule = règle violée)
            ConcurrentModificationError si la version lue est périmée
        """
        lead = await self._load_lead(lead_id)
        partner = await self._load_partner(partner_id)
        if partner is None:
            raise PartnerNotFoundError(partner_id)

        if expected_version is not None and expected_version != lead.version:
            raise ConcurrentModificationError(lead.id, expected_version)

        try:
            self._check_eligibility(lead, partner)
            current = await self._current_partner(lead)
            check_exclusivity(lead, partner, current)
            validate_lead_transition(lead.id, lead.status, LeadStatus.ASSIGNED)
        except InvalidStateError as e:
            logger.info(f"[ASSIGN_REFUSED] lead={lead.id} partner={partner.id} rule={e.rule}")
            if self.sink is not None:
                await safe_side_effect(
                    "audit assign_lead_rejected",
                    self.sink.assignment_failed(lead.id, partner.id, e.rule, e.message, actor)
                )
            raise

        now = self.clock()
        load = await self.capacity.weekly_load(partner, now)

        capacity_warning = None
        if not load.has_capacity:
            capacity_warning = (
                f"Partner is at/over capacity: {load.count}/{load.limit} leads this week"
            )
            logger.warning(f"[ASSIGN] {partner.company_name or partner.id}: {capacity_warning}")

        assigned_at = to_iso(now)
        previous_partner_id = current.id if current is not None else None

        history = [{"partner_id": partner.id, "assigned_at": assigned_at}]
        if not lead.assignment_history and lead.assigned_partner_id and lead.assigned_at:
            # Lead pré-migration: l'assignation en place entre dans l'historique
            history.insert(0, {"partner_id": lead.assigned_partner_id, "assigned_at": lead.assigned_at})

        updated = await self.store.update_lead(lead.id, lead.version, {
            "assigned_partner_id": partner.id,
            "assigned_at": assigned_at,
            "status": LeadStatus.ASSIGNED.value,
            "accepted_at": None,
            "cancellation_requested": False,
            "rejection_reason": None,
            "rejected_at": None,
        }, push={"assignment_history": {"$each": history}})
        await self.store.increment_partner_metrics(partner.id, {"total_leads_received": 1})

        logger.info(
            f"[ASSIGN_OK] Lead {lead.lead_code or lead.id} -> {partner.partner_type.value} "
            f"partner {partner.company_name or partner.id} (previous={previous_partner_id})"
        )

        if self.sink is not None:
            await safe_side_effect(
                "notify/audit assign_lead",
                self.sink.assignment_succeeded(updated, partner.model_dump(mode="json"), previous_partner_id, actor)
            )

        return AssignmentResult(
            lead_id=lead.id,
            partner_id=partner.id,
            assigned_at=assigned_at,
            partner_type=partner.partner_type.value,
            version=updated.get("version", lead.version + 1),
            current_week_leads=load.count,
            weekly_limit=load.limit,
            capacity_warning=capacity_warning,
            replaced_partner_id=previous_partner_id,
        )

    async def assign_with_retry(
        self,
        lead_id: str,
        partner_id: str,
        expected_version: Optional[int] = None,
        actor: str = "admin"
    ) -> AssignmentResult:
        """
        Réessaie UNE fois après un conflit d'écriture (relecture fraîche du lead).
        Une version fournie par l'appelant et périmée n'est pas réessayée.
        """
        try:
            return await self.assign(lead_id, partner_id, expected_version, actor)
        except ConcurrentModificationError:
            if expected_version is not None:
                raise
            logger.info(f"[ASSIGN] Lead {lead_id}: conflit d'écriture, nouvelle tentative")
            return await self.assign(lead_id, partner_id, None, actor)
