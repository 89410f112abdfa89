"""Prospect lifecycle - lead validation, status flow, ownership audit trail"""

import uuid
from collections import Counter
from dataclasses import replace
from datetime import datetime
from typing import Dict, FrozenSet, Iterable, List, Optional

from carmarket_engine.domain.exceptions import (
    ClosedProspectError,
    FieldViolation,
    InvalidTransition,
    raise_if_violations,
)
from carmarket_engine.domain.models import (
    Budget,
    Prospect,
    ProspectSource,
    ProspectStats,
    ProspectStatus,
    ReassignmentEntry,
    StatusOverride,
)
from carmarket_engine.domain.scoring import (
    DEFAULT_PROSPECT_WINDOWS,
    ProspectWindows,
    has_upcoming_appointment,
    is_hot,
    is_stale,
    is_terminal,
)
from carmarket_engine.utils.validators import is_blank, is_valid_email

ENTITY = "Prospect"

P = ProspectStatus

TRANSITIONS: Dict[ProspectStatus, FrozenSet[ProspectStatus]] = {
    P.NEW: frozenset({P.CONTACTED, P.DISCARDED}),
    P.CONTACTED: frozenset({P.QUALIFIED, P.DISCARDED}),
    P.QUALIFIED: frozenset({P.NEGOTIATING, P.DISCARDED}),
    P.NEGOTIATING: frozenset({P.WON, P.LOST, P.DISCARDED}),
    P.WON: frozenset(),
    P.LOST: frozenset(),
    P.DISCARDED: frozenset(),
}

if set(TRANSITIONS) != set(ProspectStatus):
    raise RuntimeError("Prospect transition table must cover every status")


def validate_prospect(
    name: Optional[str],
    phone: Optional[str],
    source,
    email: Optional[str] = None,
    budget: Optional[Budget] = None,
) -> List[FieldViolation]:
    """Collect every violation for lead intake data"""
    violations = []

    if is_blank(name):
        violations.append(FieldViolation("name", "name is required"))
    if is_blank(phone):
        violations.append(FieldViolation("phone", "phone is required"))

    try:
        ProspectSource(source)
    except ValueError:
        allowed = ", ".join(s.value for s in ProspectSource)
        violations.append(FieldViolation("source", f"source must be one of: {allowed}"))

    if not is_blank(email) and not is_valid_email(email):
        violations.append(FieldViolation("email", "email format is invalid"))

    if budget is not None and (budget.min < 0 or budget.max < budget.min):
        violations.append(FieldViolation("budget", "budget must satisfy 0 <= min <= max"))

    return violations


def create_prospect(
    name: str,
    phone: str,
    source,
    created_by: str,
    now: datetime,
    email: Optional[str] = None,
    interested_listing_id: Optional[str] = None,
    budget: Optional[Budget] = None,
    message: Optional[str] = None,
    tags: Iterable[str] = (),
    prospect_id: Optional[str] = None,
) -> Prospect:
    """Validate intake data and build a lead in 'new', owned by its creator"""
    violations = validate_prospect(name, phone, source, email=email, budget=budget)
    if is_blank(created_by):
        violations.append(FieldViolation("created_by", "creator is required"))
    raise_if_violations(violations)

    return Prospect(
        id=prospect_id or str(uuid.uuid4()),
        name=name.strip(),
        phone=phone.strip(),
        source=ProspectSource(source),
        status=P.NEW,
        created_by=created_by,
        created_at=now,
        updated_at=now,
        last_activity_at=now,
        email=email.strip() if not is_blank(email) else None,
        interested_listing_id=interested_listing_id,
        budget=budget,
        message=message,
        tags=frozenset(t.strip() for t in tags if not is_blank(t)),
    )


def can_transition(current: ProspectStatus, requested: ProspectStatus) -> bool:
    return requested in TRANSITIONS[current]


def change_status(prospect: Prospect, to_status: ProspectStatus, now: datetime) -> Prospect:
    """
    Advance the lead: new -> contacted -> qualified -> negotiating -> won | lost,
    or discarded from any open status.
    """
    to_status = ProspectStatus(to_status)
    if not can_transition(prospect.status, to_status):
        raise InvalidTransition(ENTITY, prospect.status.value, to_status.value)

    return replace(prospect, status=to_status, updated_at=now, last_activity_at=now)


def _require_open(prospect: Prospect, action: str) -> None:
    if is_terminal(prospect.status):
        raise ClosedProspectError(
            f"Cannot {action} prospect '{prospect.id}' in status '{prospect.status.value}'"
        )


def reassign(
    prospect: Prospect,
    to_user_id: str,
    now: datetime,
    reason: Optional[str] = None,
    reassigned_by: Optional[str] = None,
) -> Prospect:
    """
    Hand the lead to another owner.

    Appends one history entry (previous owner -> new owner); status is never
    touched. History entries are only ever appended.
    """
    _require_open(prospect, "reassign")

    if is_blank(to_user_id):
        raise_if_violations([FieldViolation("to_user_id", "new owner is required")])
    if to_user_id == prospect.assigned_to:
        raise_if_violations(
            [FieldViolation("to_user_id", "prospect is already assigned to this user")]
        )

    entry = ReassignmentEntry(
        from_user_id=prospect.assigned_to,
        to_user_id=to_user_id,
        reassigned_at=now,
        reason=reason.strip() if not is_blank(reason) else None,
        reassigned_by=reassigned_by,
    )
    return replace(
        prospect,
        reassignment_history=prospect.reassignment_history + (entry,),
        updated_at=now,
        last_activity_at=now,
    )


def schedule_appointment(
    prospect: Prospect,
    appointment_date: datetime,
    now: datetime,
    notes: Optional[str] = None,
) -> Prospect:
    """Set or move the appointment; counts as activity, status is unchanged"""
    _require_open(prospect, "schedule an appointment for")

    if appointment_date < now:
        raise_if_violations(
            [FieldViolation("appointment_date", "appointment must be in the future")]
        )

    return replace(
        prospect,
        appointment_date=appointment_date,
        appointment_notes=notes,
        updated_at=now,
        last_activity_at=now,
    )


def add_tag(prospect: Prospect, tag: str, now: datetime) -> Prospect:
    if is_blank(tag) or tag.strip() in prospect.tags:
        return prospect
    return replace(prospect, tags=prospect.tags | {tag.strip()}, updated_at=now)


def remove_tag(prospect: Prospect, tag: str, now: datetime) -> Prospect:
    if tag not in prospect.tags:
        return prospect
    return replace(prospect, tags=prospect.tags - {tag}, updated_at=now)


def update_notes(prospect: Prospect, notes: str, now: datetime) -> Prospect:
    return replace(prospect, notes=notes, updated_at=now)


def admin_override(
    prospect: Prospect,
    to_status: ProspectStatus,
    actor: str,
    reason: str,
    now: datetime,
) -> Prospect:
    """Force a status outside the normal flow; always leaves an audit entry"""
    to_status = ProspectStatus(to_status)
    violations = []
    if is_blank(actor):
        violations.append(FieldViolation("actor", "override actor is required"))
    if is_blank(reason):
        violations.append(FieldViolation("reason", "override reason is required"))
    raise_if_violations(violations)

    entry = StatusOverride(
        from_status=prospect.status.value,
        to_status=to_status.value,
        actor=actor,
        reason=reason.strip(),
        at=now,
    )
    return replace(
        prospect,
        status=to_status,
        updated_at=now,
        last_activity_at=now,
        overrides=prospect.overrides + (entry,),
    )


def summarize_prospects(
    prospects: Iterable[Prospect],
    now: datetime,
    windows: ProspectWindows = DEFAULT_PROSPECT_WINDOWS,
) -> ProspectStats:
    """Dashboard counts: by status, by source, hot, stale, upcoming appointments"""
    items = list(prospects)
    by_status = Counter(p.status.value for p in items)
    by_source = Counter(p.source.value for p in items)

    return ProspectStats(
        total=len(items),
        by_status={s.value: by_status.get(s.value, 0) for s in ProspectStatus},
        by_source={s.value: by_source.get(s.value, 0) for s in ProspectSource},
        hot=sum(1 for p in items if is_hot(p, now, windows)),
        stale=sum(1 for p in items if is_stale(p, now, windows)),
        upcoming_appointments=sum(1 for p in items if has_upcoming_appointment(p, now, windows)),
    )
