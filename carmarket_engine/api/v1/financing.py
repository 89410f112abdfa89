"""/v1/financing - bank-partner matching, quotes, schedules and incident log"""

import logging
import time
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from carmarket_engine.api.dependencies import get_request_id, http_error, matching_weights
from carmarket_engine.api.v1.schemas import (
    AmortizationRowSchema,
    FinancingRequestBody,
    IncidentItem,
    IncidentListResponse,
    IncidentReportBody,
    IncidentResolveBody,
    IncidentStatsResponse,
    MatchResponse,
    OfferItem,
    QuoteRequestBody,
    QuoteResponse,
    ScheduleResponse,
)
from carmarket_engine.config import settings
from carmarket_engine.domain.amortization import generate_amortization_schedule
from carmarket_engine.domain.exceptions import DomainException
from carmarket_engine.domain.matching import calculate_quote, is_eligible, simulate_offers
from carmarket_engine.domain.models import BankPartner, FinancingRequest, IncidentSeverity, IncidentType
from carmarket_engine.domain.partners import filter_incidents, report_incident, resolve_incident
from carmarket_engine.infrastructure.database.repositories import SqlBankPartnerRepository
from carmarket_engine.infrastructure.database.session import get_db
from carmarket_engine.infrastructure.observability.logging import log_match
from carmarket_engine.infrastructure.observability.metrics import record_match
from carmarket_engine.utils.date_utils import utcnow

router = APIRouter()


def _stats(partner: BankPartner) -> IncidentStatsResponse:
    stats = partner.incident_stats
    return IncidentStatsResponse(
        partner_id=partner.id,
        total=stats.total,
        unresolved=stats.unresolved,
        last_incident=stats.last_incident,
    )


@router.post("/financing/match", response_model=MatchResponse)
def match_financing(
    request_body: FinancingRequestBody,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Rank eligible bank partners for a financing request.

    Flow:
    1. Load active partners (narrowed by vehicle year when given)
    2. Filter by eligibility and rank by composite score
    3. Quote the monthly payment for each surviving partner

    An empty offer list means no partner can finance the request.
    """
    start_time = time.time()
    request_id = get_request_id(request)
    repo = SqlBankPartnerRepository(db)

    financing_request = FinancingRequest(
        amount=request_body.amount,
        term=request_body.term,
        vehicle_year=request_body.vehicle_year,
    )

    if financing_request.vehicle_year is not None:
        partners = repo.find_active_for_vehicle_year(financing_request.vehicle_year)
    else:
        partners = repo.find_active_for_simulator()

    try:
        offers = simulate_offers(
            partners,
            financing_request,
            weights=matching_weights(),
            limit=request_body.limit or settings.match_default_limit,
        )
    except DomainException as e:
        raise http_error(e, request_id, entity="financing_request")

    duration_ms = (time.time() - start_time) * 1000
    partner_ids = [o.match.partner.id for o in offers]
    record_match(len(offers))
    log_match(
        request_id,
        financing_request.amount,
        financing_request.term,
        financing_request.vehicle_year,
        partner_ids,
        duration_ms,
    )

    return MatchResponse(
        offers=[
            OfferItem(
                partner_id=o.match.partner.id,
                partner_name=o.match.partner.name,
                credit_rate=o.match.partner.credit_rate,
                processing_time=o.match.partner.processing_time,
                score=o.match.score,
                has_unresolved_incidents=o.match.has_unresolved_incidents,
                monthly_payment=o.quote.monthly_payment,
                total_payment=o.quote.total_payment,
                total_interest=o.quote.total_interest,
            )
            for o in offers
        ]
    )


@router.post("/financing/quote", response_model=QuoteResponse)
def quote_financing(
    request_body: QuoteRequestBody,
    request: Request,
    db: Session = Depends(get_db),
):
    """Simulate payments with a single partner (zeros when ineligible)"""
    request_id = get_request_id(request)

    try:
        partner = SqlBankPartnerRepository(db).find_by_id(request_body.partner_id)
        quote = calculate_quote(
            partner,
            FinancingRequest(
                amount=request_body.amount,
                term=request_body.term,
                vehicle_year=request_body.vehicle_year,
            ),
        )
    except DomainException as e:
        raise http_error(e, request_id, entity="financing_request")

    return QuoteResponse(
        partner_id=quote.partner_id,
        eligible=quote.eligible,
        monthly_payment=quote.monthly_payment,
        total_payment=quote.total_payment,
        total_interest=quote.total_interest,
    )


@router.get("/financing/partners/{partner_id}/schedule", response_model=ScheduleResponse)
def get_amortization_schedule(
    partner_id: str,
    request: Request,
    amount: float = Query(..., gt=0),
    term: int = Query(..., gt=0),
    vehicle_year: Optional[int] = Query(None, gt=0),
    db: Session = Depends(get_db),
):
    """Month-by-month amortization table at the partner's rate"""
    request_id = get_request_id(request)

    try:
        partner = SqlBankPartnerRepository(db).find_by_id(partner_id)
    except DomainException as e:
        raise http_error(e, request_id, entity="bank_partner")

    if not is_eligible(partner, FinancingRequest(amount=amount, term=term, vehicle_year=vehicle_year)):
        raise HTTPException(status_code=409, detail="Partner cannot finance this request")

    rows = generate_amortization_schedule(amount, partner.credit_rate, term)

    return ScheduleResponse(
        partner_id=partner.id,
        amount=amount,
        term=term,
        credit_rate=partner.credit_rate,
        rows=[
            AmortizationRowSchema(
                number=r.number,
                due_date=r.due_date,
                payment=r.payment,
                principal=r.principal,
                interest=r.interest,
                balance=r.balance,
            )
            for r in rows
        ],
    )


@router.get("/financing/partners/{partner_id}/incidents", response_model=IncidentListResponse)
def list_incidents(
    partner_id: str,
    request: Request,
    resolved: Optional[bool] = None,
    type: Optional[IncidentType] = None,
    severity: Optional[IncidentSeverity] = None,
    limit: Optional[int] = Query(None, ge=1, le=100),
    db: Session = Depends(get_db),
):
    """Partner's incident log, newest first"""
    try:
        partner = SqlBankPartnerRepository(db).find_by_id(partner_id)
    except DomainException as e:
        raise http_error(e, get_request_id(request), entity="bank_partner")

    incidents = filter_incidents(partner, resolved=resolved, incident_type=type, severity=severity, limit=limit)

    return IncidentListResponse(
        partner_id=partner.id,
        items=[
            IncidentItem(
                id=i.id,
                type=i.type.value,
                severity=i.severity.value,
                description=i.description,
                reported_by=i.reported_by,
                reported_at=i.reported_at,
                resolved=i.resolved,
                resolved_at=i.resolved_at,
                resolved_by=i.resolved_by,
                notes=i.notes,
            )
            for i in incidents
        ],
    )


@router.post("/financing/partners/{partner_id}/incidents", response_model=IncidentStatsResponse, status_code=201)
def create_incident(
    partner_id: str,
    request_body: IncidentReportBody,
    request: Request,
    db: Session = Depends(get_db),
):
    """File a service complaint; the partner drops below clean partners until resolved"""
    request_id = get_request_id(request)
    repo = SqlBankPartnerRepository(db)

    try:
        partner = report_incident(
            repo.find_by_id(partner_id),
            request_body.type,
            request_body.severity,
            request_body.description,
            request_body.reported_by,
            utcnow(),
        )
        repo.update(partner)
        db.commit()
    except DomainException as e:
        db.rollback()
        raise http_error(e, request_id, entity="incident")
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(e))

    logging.info(
        "Incident reported",
        extra={"request_id": request_id, "partner_id": partner_id, "severity": request_body.severity},
    )
    return _stats(partner)


@router.post(
    "/financing/partners/{partner_id}/incidents/{incident_id}/resolve",
    response_model=IncidentStatsResponse,
)
def close_incident(
    partner_id: str,
    incident_id: str,
    request_body: IncidentResolveBody,
    request: Request,
    db: Session = Depends(get_db),
):
    request_id = get_request_id(request)
    repo = SqlBankPartnerRepository(db)

    try:
        partner = resolve_incident(
            repo.find_by_id(partner_id),
            incident_id,
            request_body.resolved_by,
            utcnow(),
            notes=request_body.notes,
        )
        repo.update(partner)
        db.commit()
    except DomainException as e:
        db.rollback()
        raise http_error(e, request_id, entity="incident")

    return _stats(partner)
