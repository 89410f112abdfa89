"""/v1/prospects - CRM lead lifecycle"""

import logging
from dataclasses import asdict
from typing import Callable, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from carmarket_engine.api.dependencies import get_request_id, http_error, prospect_windows
from carmarket_engine.api.v1.schemas import (
    AppointmentBody,
    BudgetSchema,
    NotesBody,
    OverrideBody,
    ProspectCreate,
    ProspectListResponse,
    ProspectResponse,
    ProspectStatsResponse,
    ProspectStatusBody,
    ReassignBody,
    ReassignmentSchema,
    StatusOverrideSchema,
    TagBody,
)
from carmarket_engine.domain import prospects as lifecycle
from carmarket_engine.domain.exceptions import DomainException
from carmarket_engine.domain.models import (
    Budget,
    Prospect,
    ProspectFilters,
    ProspectSource,
    ProspectStatus,
)
from carmarket_engine.domain.scoring import is_hot, is_stale
from carmarket_engine.infrastructure.database.repositories import SqlProspectRepository
from carmarket_engine.infrastructure.database.session import get_db
from carmarket_engine.infrastructure.observability.logging import log_transition
from carmarket_engine.infrastructure.observability.metrics import override_counter, record_transition
from carmarket_engine.utils.date_utils import utcnow

router = APIRouter()

ENTITY = "prospect"


def _response(prospect: Prospect) -> ProspectResponse:
    now = utcnow()
    windows = prospect_windows()
    return ProspectResponse(
        id=prospect.id,
        name=prospect.name,
        phone=prospect.phone,
        email=prospect.email,
        source=prospect.source.value,
        status=prospect.status.value,
        created_by=prospect.created_by,
        assigned_to=prospect.assigned_to,
        tags=sorted(prospect.tags),
        notes=prospect.notes,
        budget=BudgetSchema(min=prospect.budget.min, max=prospect.budget.max) if prospect.budget else None,
        appointment_date=prospect.appointment_date,
        appointment_notes=prospect.appointment_notes,
        is_hot=is_hot(prospect, now, windows),
        is_stale=is_stale(prospect, now, windows),
        created_at=prospect.created_at,
        updated_at=prospect.updated_at,
        reassignment_history=[ReassignmentSchema(**asdict(e)) for e in prospect.reassignment_history],
        overrides=[StatusOverrideSchema(**asdict(o)) for o in prospect.overrides],
    )


def _apply(
    db: Session,
    prospect_id: str,
    request_id: str,
    change: Callable[[Prospect], Prospect],
) -> tuple:
    """Load, change and compare-and-swap a prospect; returns (before, after)"""
    repo = SqlProspectRepository(db)
    try:
        current = repo.find_by_id(prospect_id)
        updated = change(current)
        repo.update(updated, expected_status=current.status)
        db.commit()
    except DomainException as e:
        db.rollback()
        raise http_error(e, request_id, entity=ENTITY)
    return current, updated


@router.post("/prospects", response_model=ProspectResponse, status_code=201)
def create_prospect(
    request_body: ProspectCreate,
    request: Request,
    db: Session = Depends(get_db),
):
    """Register a lead; every invalid field is reported at once"""
    request_id = get_request_id(request)
    budget = request_body.budget

    try:
        prospect = lifecycle.create_prospect(
            name=request_body.name,
            phone=request_body.phone,
            source=request_body.source,
            created_by=request_body.created_by,
            now=utcnow(),
            email=request_body.email,
            interested_listing_id=request_body.interested_listing_id,
            budget=Budget(min=budget.min, max=budget.max) if budget else None,
            message=request_body.message,
            tags=request_body.tags,
        )
        SqlProspectRepository(db).add(prospect)
        db.commit()
    except DomainException as e:
        db.rollback()
        raise http_error(e, request_id, entity=ENTITY)

    logging.info("Prospect created", extra={"request_id": request_id, "prospect_id": prospect.id})
    return _response(prospect)


@router.get("/prospects", response_model=ProspectListResponse)
def list_prospects(
    status: Optional[ProspectStatus] = None,
    source: Optional[ProspectSource] = None,
    assigned_to: Optional[str] = None,
    tag: Optional[str] = None,
    has_appointment: Optional[bool] = None,
    hot: Optional[bool] = None,
    stale: Optional[bool] = None,
    db: Session = Depends(get_db),
):
    """Leads matching the filters, newest first; hot/stale evaluated at request time"""
    now = utcnow()
    windows = prospect_windows()
    found = SqlProspectRepository(db).find_many(
        ProspectFilters(
            status=status,
            source=source,
            assigned_to=assigned_to,
            tag=tag,
            has_appointment=has_appointment,
        )
    )
    if hot is not None:
        found = [p for p in found if is_hot(p, now, windows) == hot]
    if stale is not None:
        found = [p for p in found if is_stale(p, now, windows) == stale]

    items = [_response(p) for p in found]
    return ProspectListResponse(items=items, count=len(items))


@router.get("/prospects/stats", response_model=ProspectStatsResponse)
def get_prospect_stats(assigned_to: Optional[str] = None, db: Session = Depends(get_db)):
    """Dashboard counters for all leads or one owner's leads"""
    found = SqlProspectRepository(db).find_many(ProspectFilters(assigned_to=assigned_to))
    stats = lifecycle.summarize_prospects(found, utcnow(), prospect_windows())
    return ProspectStatsResponse(**asdict(stats))


@router.get("/prospects/{prospect_id}", response_model=ProspectResponse)
def get_prospect(prospect_id: str, request: Request, db: Session = Depends(get_db)):
    try:
        prospect = SqlProspectRepository(db).find_by_id(prospect_id)
    except DomainException as e:
        raise http_error(e, get_request_id(request), entity=ENTITY)
    return _response(prospect)


@router.post("/prospects/{prospect_id}/status", response_model=ProspectResponse)
def change_prospect_status(
    prospect_id: str,
    request_body: ProspectStatusBody,
    request: Request,
    db: Session = Depends(get_db),
):
    request_id = get_request_id(request)

    try:
        to_status = ProspectStatus(request_body.to_status)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Unknown status '{request_body.to_status}'")

    current, updated = _apply(
        db, prospect_id, request_id, lambda p: lifecycle.change_status(p, to_status, utcnow())
    )

    record_transition(ENTITY, current.status.value, updated.status.value)
    log_transition(request_id, ENTITY, prospect_id, current.status.value, updated.status.value)
    return _response(updated)


@router.post("/prospects/{prospect_id}/reassign", response_model=ProspectResponse)
def reassign_prospect(
    prospect_id: str,
    request_body: ReassignBody,
    request: Request,
    db: Session = Depends(get_db),
):
    """Hand the lead to another owner; the previous owner is kept in the history"""
    request_id = get_request_id(request)

    current, updated = _apply(
        db,
        prospect_id,
        request_id,
        lambda p: lifecycle.reassign(
            p,
            request_body.to_user_id,
            utcnow(),
            reason=request_body.reason,
            reassigned_by=request_body.reassigned_by,
        ),
    )

    logging.info(
        "Prospect reassigned",
        extra={
            "request_id": request_id,
            "prospect_id": prospect_id,
            "from_user_id": current.assigned_to,
            "to_user_id": updated.assigned_to,
        },
    )
    return _response(updated)


@router.post("/prospects/{prospect_id}/appointment", response_model=ProspectResponse)
def schedule_prospect_appointment(
    prospect_id: str,
    request_body: AppointmentBody,
    request: Request,
    db: Session = Depends(get_db),
):
    appointment_date = request_body.appointment_date
    if appointment_date.tzinfo is None:
        raise HTTPException(status_code=422, detail="appointment_date must include a timezone")

    _, updated = _apply(
        db,
        prospect_id,
        get_request_id(request),
        lambda p: lifecycle.schedule_appointment(p, appointment_date, utcnow(), notes=request_body.notes),
    )
    return _response(updated)


@router.post("/prospects/{prospect_id}/tags", response_model=ProspectResponse)
def add_prospect_tag(
    prospect_id: str,
    request_body: TagBody,
    request: Request,
    db: Session = Depends(get_db),
):
    _, updated = _apply(
        db, prospect_id, get_request_id(request), lambda p: lifecycle.add_tag(p, request_body.tag, utcnow())
    )
    return _response(updated)


@router.delete("/prospects/{prospect_id}/tags/{tag}", response_model=ProspectResponse)
def remove_prospect_tag(prospect_id: str, tag: str, request: Request, db: Session = Depends(get_db)):
    _, updated = _apply(
        db, prospect_id, get_request_id(request), lambda p: lifecycle.remove_tag(p, tag, utcnow())
    )
    return _response(updated)


@router.put("/prospects/{prospect_id}/notes", response_model=ProspectResponse)
def update_prospect_notes(
    prospect_id: str,
    request_body: NotesBody,
    request: Request,
    db: Session = Depends(get_db),
):
    _, updated = _apply(
        db,
        prospect_id,
        get_request_id(request),
        lambda p: lifecycle.update_notes(p, request_body.notes, utcnow()),
    )
    return _response(updated)


@router.post("/prospects/{prospect_id}/override", response_model=ProspectResponse)
def override_prospect_status(
    prospect_id: str,
    request_body: OverrideBody,
    request: Request,
    db: Session = Depends(get_db),
):
    """Administrative status change outside the normal flow, always audited"""
    request_id = get_request_id(request)

    try:
        to_status = ProspectStatus(request_body.to_status)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Unknown status '{request_body.to_status}'")

    current, updated = _apply(
        db,
        prospect_id,
        request_id,
        lambda p: lifecycle.admin_override(p, to_status, request_body.actor, request_body.reason, utcnow()),
    )

    override_counter.labels(entity=ENTITY).inc()
    log_transition(
        request_id, ENTITY, prospect_id, current.status.value, updated.status.value, override=True
    )
    return _response(updated)
