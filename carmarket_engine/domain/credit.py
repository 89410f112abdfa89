"""Credit application lifecycle - validation and approval state machine"""

import uuid
from dataclasses import replace
from datetime import datetime
from typing import Dict, FrozenSet, List, Optional

from carmarket_engine.domain.amortization import calculate_monthly_payment
from carmarket_engine.domain.exceptions import (
    FieldViolation,
    InvalidTransition,
    NotFound,
    raise_if_violations,
)
from carmarket_engine.domain.models import (
    ApplicationDocument,
    ApplicationStatus,
    CreditApplication,
    DocumentType,
    EmergencyContact,
    EmploymentInfo,
    FinancialInfo,
    PersonalInfo,
    ReviewInfo,
    StatusOverride,
)
from carmarket_engine.utils.validators import is_blank, is_valid_email, is_valid_phone

ENTITY = "CreditApplication"

S = ApplicationStatus

TRANSITIONS: Dict[ApplicationStatus, FrozenSet[ApplicationStatus]] = {
    S.PENDING: frozenset({S.UNDER_REVIEW, S.CANCELLED}),
    S.UNDER_REVIEW: frozenset({S.APPROVED, S.REJECTED, S.CANCELLED}),
    S.APPROVED: frozenset({S.DISBURSED, S.CANCELLED}),
    S.REJECTED: frozenset(),
    S.DISBURSED: frozenset(),
    S.CANCELLED: frozenset(),
}

if set(TRANSITIONS) != set(ApplicationStatus):
    raise RuntimeError("Credit application transition table must cover every status")

TERMINAL_STATUSES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)


def validate_application(
    personal_info: PersonalInfo,
    financial_info: FinancialInfo,
) -> List[FieldViolation]:
    """Collect every violation; never stops at the first one"""
    violations = []

    if is_blank(personal_info.name):
        violations.append(FieldViolation("personal_info.name", "name is required"))

    if not (is_valid_phone(personal_info.phone) or is_valid_email(personal_info.email)):
        violations.append(
            FieldViolation("personal_info.contact", "a valid phone or email is required")
        )

    if financial_info.monthly_income is None or financial_info.monthly_income <= 0:
        violations.append(
            FieldViolation("financial_info.monthly_income", "monthly income must be greater than zero")
        )

    return violations


def create_application(
    user_id: str,
    personal_info: PersonalInfo,
    employment_info: EmploymentInfo,
    financial_info: FinancialInfo,
    emergency_contact: EmergencyContact,
    now: datetime,
    listing_id: Optional[str] = None,
    application_id: Optional[str] = None,
) -> CreditApplication:
    """Validate input and build a new application in 'pending'"""
    raise_if_violations(validate_application(personal_info, financial_info))

    return CreditApplication(
        id=application_id or str(uuid.uuid4()),
        user_id=user_id,
        personal_info=personal_info,
        employment_info=employment_info,
        financial_info=financial_info,
        emergency_contact=emergency_contact,
        status=S.PENDING,
        created_at=now,
        updated_at=now,
        listing_id=listing_id,
    )


def can_transition(current: ApplicationStatus, requested: ApplicationStatus) -> bool:
    return requested in TRANSITIONS[current]


def is_terminal(status: ApplicationStatus) -> bool:
    return status in TERMINAL_STATUSES


def transition(
    application: CreditApplication,
    to_status: ApplicationStatus,
    now: datetime,
    review: Optional[ReviewInfo] = None,
) -> CreditApplication:
    """
    Move the application along the state machine.

    pending -> under_review -> approved | rejected; approved -> disbursed;
    any non-terminal state -> cancelled.

    Raises:
        InvalidTransition: Move not allowed from the current status
        ValidationError: Rejection without a rejection reason
    """
    to_status = ApplicationStatus(to_status)
    if not can_transition(application.status, to_status):
        raise InvalidTransition(ENTITY, application.status.value, to_status.value)

    if to_status == S.REJECTED and (review is None or is_blank(review.rejection_reason)):
        raise_if_violations(
            [FieldViolation("review_info.rejection_reason", "a rejection reason is required")]
        )

    changes = {"status": to_status, "updated_at": now}
    if to_status == S.UNDER_REVIEW:
        changes["submitted_at"] = now
    if review is not None and to_status in (S.APPROVED, S.REJECTED):
        changes["review_info"] = review

    return replace(application, **changes)


def submit(application: CreditApplication, now: datetime) -> CreditApplication:
    return transition(application, S.UNDER_REVIEW, now)


def approve(
    application: CreditApplication,
    reviewed_by: str,
    now: datetime,
    approved_amount: Optional[float] = None,
    approved_term: Optional[int] = None,
    interest_rate: Optional[float] = None,
    comments: Optional[str] = None,
) -> CreditApplication:
    """
    Approve and record review terms, computing the monthly payment when possible.

    Raises:
        InvalidTransition: Application is not under review
        ValidationError: Blank reviewer or non-positive amount/term/negative rate
    """
    if not can_transition(application.status, S.APPROVED):
        raise InvalidTransition(ENTITY, application.status.value, S.APPROVED.value)

    violations = []
    if is_blank(reviewed_by):
        violations.append(FieldViolation("review_info.reviewed_by", "reviewer is required"))
    if approved_amount is not None and approved_amount <= 0:
        violations.append(
            FieldViolation("review_info.approved_amount", "approved amount must be greater than zero")
        )
    if approved_term is not None and approved_term <= 0:
        violations.append(
            FieldViolation("review_info.approved_term", "approved term must be greater than zero")
        )
    if interest_rate is not None and interest_rate < 0:
        violations.append(FieldViolation("review_info.interest_rate", "interest rate cannot be negative"))
    raise_if_violations(violations)

    monthly_payment = None
    if approved_amount and approved_term and interest_rate is not None:
        monthly_payment = calculate_monthly_payment(approved_amount, interest_rate, approved_term)

    review = ReviewInfo(
        reviewed_by=reviewed_by,
        reviewed_at=now,
        approved_amount=approved_amount,
        approved_term=approved_term,
        interest_rate=interest_rate,
        monthly_payment=monthly_payment,
        comments=comments,
    )
    return transition(application, S.APPROVED, now, review=review)


def reject(
    application: CreditApplication,
    reviewed_by: str,
    reason: str,
    now: datetime,
    comments: Optional[str] = None,
) -> CreditApplication:
    review = ReviewInfo(
        reviewed_by=reviewed_by,
        reviewed_at=now,
        rejection_reason=reason,
        comments=comments,
    )
    return transition(application, S.REJECTED, now, review=review)


def disburse(application: CreditApplication, now: datetime) -> CreditApplication:
    return transition(application, S.DISBURSED, now)


def cancel(application: CreditApplication, now: datetime) -> CreditApplication:
    return transition(application, S.CANCELLED, now)


def admin_override(
    application: CreditApplication,
    to_status: ApplicationStatus,
    actor: str,
    reason: str,
    now: datetime,
) -> CreditApplication:
    """
    Force a status outside the normal flow (e.g. reopen a rejected file).

    Bypasses the transition table but always appends an audit entry.
    """
    to_status = ApplicationStatus(to_status)
    violations = []
    if is_blank(actor):
        violations.append(FieldViolation("actor", "override actor is required"))
    if is_blank(reason):
        violations.append(FieldViolation("reason", "override reason is required"))
    raise_if_violations(violations)

    entry = StatusOverride(
        from_status=application.status.value,
        to_status=to_status.value,
        actor=actor,
        reason=reason.strip(),
        at=now,
    )
    return replace(
        application,
        status=to_status,
        updated_at=now,
        overrides=application.overrides + (entry,),
    )


def _require_modifiable(application: CreditApplication) -> None:
    if application.status != S.PENDING:
        raise InvalidTransition(ENTITY, application.status.value, "modify")


def add_document(
    application: CreditApplication,
    document_type: DocumentType,
    name: str,
    url: str,
    size: int,
    now: datetime,
) -> CreditApplication:
    """Attach an uploaded document; only allowed while pending"""
    _require_modifiable(application)

    violations = []
    if is_blank(name):
        violations.append(FieldViolation("name", "document name is required"))
    if is_blank(url):
        violations.append(FieldViolation("url", "document url is required"))
    if size is None or size <= 0:
        violations.append(FieldViolation("size", "document size must be positive"))
    raise_if_violations(violations)

    document = ApplicationDocument(
        id=f"doc-{uuid.uuid4().hex[:12]}",
        type=DocumentType(document_type),
        name=name,
        url=url,
        size=size,
        uploaded_at=now,
    )
    return replace(
        application,
        documents=application.documents + (document,),
        updated_at=now,
    )


def remove_document(
    application: CreditApplication,
    document_id: str,
    now: datetime,
) -> CreditApplication:
    _require_modifiable(application)

    remaining = tuple(d for d in application.documents if d.id != document_id)
    if len(remaining) == len(application.documents):
        raise NotFound("ApplicationDocument", document_id)

    return replace(application, documents=remaining, updated_at=now)
