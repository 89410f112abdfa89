"""Bank-partner incident log - append, resolve and query service complaints"""

import uuid
from dataclasses import replace
from datetime import datetime
from typing import List, Optional

from carmarket_engine.domain.exceptions import (
    FieldViolation,
    InvalidTransition,
    NotFound,
    raise_if_violations,
)
from carmarket_engine.domain.models import BankPartner, Incident, IncidentSeverity, IncidentType


def report_incident(
    partner: BankPartner,
    incident_type: IncidentType,
    severity: IncidentSeverity,
    description: str,
    reported_by: str,
    now: datetime,
) -> BankPartner:
    """Return a copy of the partner with a new unresolved incident appended"""
    violations = []
    if not description or not description.strip():
        violations.append(FieldViolation("description", "description is required"))
    if not reported_by or not reported_by.strip():
        violations.append(FieldViolation("reported_by", "reporter is required"))
    raise_if_violations(violations)

    incident = Incident(
        id=f"incident-{uuid.uuid4().hex[:12]}",
        type=IncidentType(incident_type),
        severity=IncidentSeverity(severity),
        description=description.strip(),
        reported_by=reported_by,
        reported_at=now,
    )
    return replace(partner, incidents=partner.incidents + (incident,))


def resolve_incident(
    partner: BankPartner,
    incident_id: str,
    resolved_by: str,
    now: datetime,
    notes: Optional[str] = None,
) -> BankPartner:
    """
    Mark an incident resolved.

    Raises:
        NotFound: No incident with that id on this partner
        InvalidTransition: Incident is already resolved
    """
    updated = []
    found = False
    for incident in partner.incidents:
        if incident.id == incident_id:
            if incident.resolved:
                raise InvalidTransition("Incident", "resolved", "resolved")
            incident = replace(
                incident,
                resolved=True,
                resolved_at=now,
                resolved_by=resolved_by,
                notes=notes if notes else incident.notes,
            )
            found = True
        updated.append(incident)

    if not found:
        raise NotFound("Incident", incident_id)

    return replace(partner, incidents=tuple(updated))


def filter_incidents(
    partner: BankPartner,
    resolved: Optional[bool] = None,
    incident_type: Optional[IncidentType] = None,
    severity: Optional[IncidentSeverity] = None,
    limit: Optional[int] = None,
) -> List[Incident]:
    """Incidents matching the given criteria, newest first"""
    filtered = [
        i
        for i in partner.incidents
        if (resolved is None or i.resolved == resolved)
        and (incident_type is None or i.type == incident_type)
        and (severity is None or i.severity == severity)
    ]
    filtered.sort(key=lambda i: i.reported_at, reverse=True)

    if limit is not None:
        filtered = filtered[:limit]

    return filtered
