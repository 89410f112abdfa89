"""/v1/credit-applications - intake and approval workflow"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from carmarket_engine.api.dependencies import get_request_id, http_error
from carmarket_engine.api.v1.schemas import (
    ApplicationTransitionBody,
    CreditApplicationCreate,
    CreditApplicationResponse,
    DocumentBody,
    DocumentSchema,
    OverrideBody,
    ReviewInfoSchema,
    StatusOverrideSchema,
)
from carmarket_engine.domain import credit
from carmarket_engine.domain.exceptions import DomainException
from carmarket_engine.domain.models import (
    ApplicationStatus,
    CreditApplication,
    EmergencyContact,
    EmploymentInfo,
    FinancialInfo,
    PersonalInfo,
)
from carmarket_engine.infrastructure.database.repositories import SqlCreditApplicationRepository
from carmarket_engine.infrastructure.database.session import get_db
from carmarket_engine.infrastructure.observability.logging import log_transition
from carmarket_engine.infrastructure.observability.metrics import override_counter, record_transition
from carmarket_engine.utils.date_utils import utcnow

router = APIRouter()

ENTITY = "credit_application"


def _response(application: CreditApplication) -> CreditApplicationResponse:
    review = application.review_info
    return CreditApplicationResponse(
        id=application.id,
        user_id=application.user_id,
        status=application.status.value,
        listing_id=application.listing_id,
        created_at=application.created_at,
        updated_at=application.updated_at,
        submitted_at=application.submitted_at,
        review_info=ReviewInfoSchema(**asdict(review)) if review else None,
        documents=[
            DocumentSchema(
                id=d.id,
                type=d.type.value,
                name=d.name,
                url=d.url,
                size=d.size,
                uploaded_at=d.uploaded_at,
            )
            for d in application.documents
        ],
        overrides=[StatusOverrideSchema(**asdict(o)) for o in application.overrides],
    )


@router.post("/credit-applications", response_model=CreditApplicationResponse, status_code=201)
def create_credit_application(
    request_body: CreditApplicationCreate,
    request: Request,
    db: Session = Depends(get_db),
):
    """Validate and register a new application in 'pending'"""
    request_id = get_request_id(request)

    try:
        application = credit.create_application(
            user_id=request_body.user_id,
            personal_info=PersonalInfo(**request_body.personal_info.model_dump()),
            employment_info=EmploymentInfo(**request_body.employment_info.model_dump()),
            financial_info=FinancialInfo(**request_body.financial_info.model_dump()),
            emergency_contact=EmergencyContact(**request_body.emergency_contact.model_dump()),
            now=utcnow(),
            listing_id=request_body.listing_id,
        )
        SqlCreditApplicationRepository(db).add(application)
        db.commit()
    except DomainException as e:
        db.rollback()
        raise http_error(e, request_id, entity=ENTITY)

    logging.info(
        "Credit application created",
        extra={"request_id": request_id, "application_id": application.id},
    )
    return _response(application)


@router.get("/credit-applications/{application_id}", response_model=CreditApplicationResponse)
def get_credit_application(application_id: str, request: Request, db: Session = Depends(get_db)):
    try:
        application = SqlCreditApplicationRepository(db).find_by_id(application_id)
    except DomainException as e:
        raise http_error(e, get_request_id(request), entity=ENTITY)
    return _response(application)


@router.post("/credit-applications/{application_id}/transition", response_model=CreditApplicationResponse)
def transition_credit_application(
    application_id: str,
    request_body: ApplicationTransitionBody,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Move an application along its workflow.

    Approval records the review terms; rejection requires a reason. The
    update is applied only if nobody changed the status in the meantime.
    """
    request_id = get_request_id(request)
    repo = SqlCreditApplicationRepository(db)
    now = utcnow()

    try:
        to_status = ApplicationStatus(request_body.to_status)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Unknown status '{request_body.to_status}'")

    try:
        current = repo.find_by_id(application_id)

        if to_status == ApplicationStatus.APPROVED:
            updated = credit.approve(
                current,
                reviewed_by=request_body.reviewed_by or "",
                now=now,
                approved_amount=request_body.approved_amount,
                approved_term=request_body.approved_term,
                interest_rate=request_body.interest_rate,
                comments=request_body.comments,
            )
        elif to_status == ApplicationStatus.REJECTED:
            updated = credit.reject(
                current,
                reviewed_by=request_body.reviewed_by or "",
                reason=request_body.rejection_reason or "",
                now=now,
                comments=request_body.comments,
            )
        else:
            updated = credit.transition(current, to_status, now)

        repo.update(updated, expected_status=current.status)
        db.commit()
    except DomainException as e:
        db.rollback()
        raise http_error(e, request_id, entity=ENTITY)

    record_transition(ENTITY, current.status.value, updated.status.value)
    log_transition(request_id, ENTITY, application_id, current.status.value, updated.status.value)
    return _response(updated)


@router.post("/credit-applications/{application_id}/override", response_model=CreditApplicationResponse)
def override_credit_application(
    application_id: str,
    request_body: OverrideBody,
    request: Request,
    db: Session = Depends(get_db),
):
    """Administrative status change outside the workflow, always audited"""
    request_id = get_request_id(request)
    repo = SqlCreditApplicationRepository(db)

    try:
        to_status = ApplicationStatus(request_body.to_status)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Unknown status '{request_body.to_status}'")

    try:
        current = repo.find_by_id(application_id)
        updated = credit.admin_override(
            current, to_status, request_body.actor, request_body.reason, utcnow()
        )
        repo.update(updated, expected_status=current.status)
        db.commit()
    except DomainException as e:
        db.rollback()
        raise http_error(e, request_id, entity=ENTITY)

    override_counter.labels(entity=ENTITY).inc()
    log_transition(
        request_id, ENTITY, application_id, current.status.value, updated.status.value, override=True
    )
    return _response(updated)


@router.post(
    "/credit-applications/{application_id}/documents",
    response_model=CreditApplicationResponse,
    status_code=201,
)
def attach_document(
    application_id: str,
    request_body: DocumentBody,
    request: Request,
    db: Session = Depends(get_db),
):
    """Register an uploaded document (storage is handled upstream)"""
    request_id = get_request_id(request)
    repo = SqlCreditApplicationRepository(db)

    try:
        current = repo.find_by_id(application_id)
        updated = credit.add_document(
            current,
            request_body.type,
            request_body.name,
            request_body.url,
            request_body.size,
            utcnow(),
        )
        repo.update(updated, expected_status=current.status)
        db.commit()
    except DomainException as e:
        db.rollback()
        raise http_error(e, request_id, entity=ENTITY)
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(e))

    return _response(updated)


@router.delete(
    "/credit-applications/{application_id}/documents/{document_id}",
    response_model=CreditApplicationResponse,
)
def detach_document(
    application_id: str,
    document_id: str,
    request: Request,
    db: Session = Depends(get_db),
):
    request_id = get_request_id(request)
    repo = SqlCreditApplicationRepository(db)

    try:
        current = repo.find_by_id(application_id)
        updated = credit.remove_document(current, document_id, utcnow())
        repo.update(updated, expected_status=current.status)
        db.commit()
    except DomainException as e:
        db.rollback()
        raise http_error(e, request_id, entity=ENTITY)

    return _response(updated)
