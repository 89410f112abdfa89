"""Bank-partner matching engine - eligibility filter and composite quality ranking"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from carmarket_engine.domain.amortization import calculate_monthly_payment
from carmarket_engine.domain.exceptions import FieldViolation, raise_if_violations
from carmarket_engine.domain.models import (
    BankPartner,
    FinancingRequest,
    Offer,
    PartnerMatch,
    Quote,
)


@dataclass(frozen=True)
class MatchingWeights:
    """Weights of the normalized rate / speed / risk factors"""

    rate: float = 0.5
    speed: float = 0.3
    risk: float = 0.2


DEFAULT_WEIGHTS = MatchingWeights()


def validate_request(request: FinancingRequest) -> None:
    """Reject malformed financing requests, reporting every bad field"""
    violations = []
    if request.amount <= 0:
        violations.append(FieldViolation("amount", "amount must be greater than zero"))
    if request.term <= 0:
        violations.append(FieldViolation("term", "term must be a positive number of months"))
    if request.vehicle_year is not None and request.vehicle_year <= 0:
        violations.append(FieldViolation("vehicle_year", "vehicle_year must be a positive year"))
    raise_if_violations(violations)


def can_process_term(partner: BankPartner, term: int) -> bool:
    return partner.min_term <= term <= partner.max_term


def can_finance_vehicle(partner: BankPartner, vehicle_year: Optional[int]) -> bool:
    if vehicle_year is None or partner.min_vehicle_year is None:
        return True
    return vehicle_year >= partner.min_vehicle_year


def is_eligible(partner: BankPartner, request: FinancingRequest) -> bool:
    """Hard constraints: active, term within range, vehicle recent enough"""
    return (
        partner.is_active
        and can_process_term(partner, request.term)
        and can_finance_vehicle(partner, request.vehicle_year)
    )


def _normalize(value: float, low: float, high: float) -> float:
    """Min-max scale to [0, 1]; a degenerate range maps everything to 0"""
    if high == low:
        return 0.0
    return (value - low) / (high - low)


def score_partners(
    partners: Iterable[BankPartner],
    request: FinancingRequest,
    weights: MatchingWeights = DEFAULT_WEIGHTS,
) -> List[PartnerMatch]:
    """
    Filter partners by eligibility and rank survivors best-first.

    Composite score (lower is better), each factor min-max normalized over
    the eligible set:
    - rate:  credit_rate
    - speed: processing_time in days
    - risk:  unresolved incident count

    Any unresolved incident demotes a partner below every partner with none,
    regardless of score. Remaining ties break on partner name.
    """
    eligible = [p for p in partners if is_eligible(p, request)]
    if not eligible:
        return []

    rates = [p.credit_rate for p in eligible]
    times = [p.processing_time for p in eligible]
    risks = [p.incident_stats.unresolved for p in eligible]

    matches = []
    for partner in eligible:
        unresolved = partner.incident_stats.unresolved
        score = (
            weights.rate * _normalize(partner.credit_rate, min(rates), max(rates))
            + weights.speed * _normalize(partner.processing_time, min(times), max(times))
            + weights.risk * _normalize(unresolved, min(risks), max(risks))
        )
        matches.append(
            PartnerMatch(
                partner=partner,
                score=round(score, 6),
                has_unresolved_incidents=unresolved > 0,
            )
        )

    matches.sort(key=lambda m: (m.has_unresolved_incidents, m.score, m.partner.name))
    return matches


def find_best_match(
    partners: Iterable[BankPartner],
    request: FinancingRequest,
    weights: MatchingWeights = DEFAULT_WEIGHTS,
    limit: Optional[int] = None,
) -> List[BankPartner]:
    """
    Main entry point: eligible partners ordered best-first.

    An empty list is a valid "no offer" outcome, not an error.
    """
    validate_request(request)
    matches = score_partners(partners, request, weights)
    if limit is not None:
        matches = matches[:limit]
    return [m.partner for m in matches]


def calculate_quote(partner: BankPartner, request: FinancingRequest) -> Quote:
    """Simulate payments with one partner; ineligible partners quote zeros"""
    validate_request(request)

    if not is_eligible(partner, request):
        return Quote(
            partner_id=partner.id,
            eligible=False,
            monthly_payment=0.0,
            total_payment=0.0,
            total_interest=0.0,
        )

    monthly_payment = calculate_monthly_payment(request.amount, partner.credit_rate, request.term)
    total_payment = round(monthly_payment * request.term, 2)

    return Quote(
        partner_id=partner.id,
        eligible=True,
        monthly_payment=monthly_payment,
        total_payment=total_payment,
        total_interest=round(total_payment - request.amount, 2),
    )


def simulate_offers(
    partners: Iterable[BankPartner],
    request: FinancingRequest,
    weights: MatchingWeights = DEFAULT_WEIGHTS,
    limit: Optional[int] = None,
) -> List[Offer]:
    """Ranked matches, each with its payment quote"""
    validate_request(request)
    matches = score_partners(partners, request, weights)
    if limit is not None:
        matches = matches[:limit]
    return [Offer(match=m, quote=calculate_quote(m.partner, request)) for m in matches]
