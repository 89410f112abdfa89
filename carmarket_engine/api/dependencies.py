"""Dependency injection for FastAPI endpoints"""

import logging
from datetime import timedelta

from fastapi import HTTPException, Request

from carmarket_engine.config import settings
from carmarket_engine.domain.exceptions import (
    ClosedProspectError,
    DomainException,
    InvalidTransition,
    NotFound,
    StaleEntityError,
    ValidationError,
)
from carmarket_engine.domain.matching import MatchingWeights
from carmarket_engine.domain.scoring import HeatThresholds, ProspectWindows
from carmarket_engine.infrastructure.observability.metrics import validation_failure_counter


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def heat_thresholds() -> HeatThresholds:
    """Heat thresholds as configured for this deployment"""
    return HeatThresholds(
        day=settings.heat_threshold_day,
        week=settings.heat_threshold_week,
        month=settings.heat_threshold_month,
        older=settings.heat_threshold_older,
        super_hot_multiplier=settings.heat_super_hot_multiplier,
    )


def prospect_windows() -> ProspectWindows:
    return ProspectWindows(
        stale_after=timedelta(days=settings.prospect_stale_after_days),
        appointment_horizon=timedelta(hours=settings.prospect_hot_appointment_hours),
        recent_creation=timedelta(hours=settings.prospect_hot_recent_hours),
    )


def matching_weights() -> MatchingWeights:
    return MatchingWeights(
        rate=settings.match_weight_rate,
        speed=settings.match_weight_speed,
        risk=settings.match_weight_risk,
    )


def http_error(exc: DomainException, request_id: str, entity: str) -> HTTPException:
    """Translate a domain error into the HTTP error the caller can act on"""
    if isinstance(exc, ValidationError):
        validation_failure_counter.labels(entity=entity).inc()
        logging.warning(f"Validation failed: {exc}", extra={"request_id": request_id})
        return HTTPException(
            status_code=422,
            detail={
                "message": "Validation failed",
                "violations": [{"field": v.field, "message": v.message} for v in exc.violations],
            },
        )

    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))

    if isinstance(exc, InvalidTransition):
        logging.warning(f"Rejected transition: {exc}", extra={"request_id": request_id})
        return HTTPException(
            status_code=409,
            detail={"message": str(exc), "current": exc.current, "requested": exc.requested},
        )

    if isinstance(exc, (StaleEntityError, ClosedProspectError)):
        logging.warning(f"Conflict: {exc}", extra={"request_id": request_id})
        return HTTPException(status_code=409, detail=str(exc))

    logging.error(f"Unhandled domain error: {exc}", extra={"request_id": request_id})
    return HTTPException(status_code=500, detail="Internal server error")
