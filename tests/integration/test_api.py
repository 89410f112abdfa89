"""Integration tests for API endpoints"""

import pytest
from datetime import datetime, timedelta, timezone
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from carmarket_engine.domain.models import Incident, IncidentSeverity, IncidentType, ProspectStatus
from carmarket_engine.infrastructure.database.repositories import (
    SqlBankPartnerRepository,
    SqlListingRepository,
    SqlProspectRepository,
)


@pytest.fixture
def seeded_listings(db: Session, recent: datetime, make_listing):
    """Three active Toyotas, one featured, one sold Mazda"""
    listings = [
        make_listing(price=300000.0, created_at=recent, views_count=45, is_featured=True),
        make_listing(price=260000.0, created_at=recent - timedelta(days=1)),
        make_listing(price=210000.0, created_at=recent - timedelta(days=2), likes_count=4),
        make_listing(brand="Mazda", price=150000.0, created_at=recent, status="sold"),
    ]
    repo = SqlListingRepository(db)
    for listing in listings:
        repo.add(listing)
    db.commit()
    return listings


@pytest.fixture
def seeded_partners(db: Session, recent: datetime, make_partner):
    flagged = Incident(
        id="incident-open",
        type=IncidentType.NO_RESPUESTA,
        severity=IncidentSeverity.ALTA,
        description="No answer",
        reported_by="ops-1",
        reported_at=recent,
    )
    partners = [
        make_partner(name="Banco Norte", credit_rate=11.0, processing_time=5),
        make_partner(name="Banco Sur", credit_rate=13.0, processing_time=2, min_vehicle_year=2018),
        make_partner(name="Banco Rápido", credit_rate=9.0, processing_time=1, incidents=(flagged,)),
        make_partner(name="Banco Corto", credit_rate=8.0, max_term=12),
    ]
    repo = SqlBankPartnerRepository(db)
    for partner in partners:
        repo.add(partner)
    db.commit()
    return partners


def application_payload(**overrides):
    payload = {
        "user_id": "buyer-1",
        "personal_info": {"name": "Ana López", "email": "ana@example.com"},
        "employment_info": {"employment_type": "employee"},
        "financial_info": {"monthly_income": 30000},
        "emergency_contact": {"name": "Luis", "relationship": "brother", "phone": "5511112222"},
    }
    payload.update(overrides)
    return payload


def prospect_payload(**overrides):
    payload = {"name": "Carla", "phone": "5512345678", "source": "website", "created_by": "agent-1"}
    payload.update(overrides)
    return payload


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "carmarket_transition" in response.text


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "trace-123"})
    assert response.headers["X-Request-ID"] == "trace-123"


# Listings


def test_listing_feed_sorted_and_paginated(client: TestClient, seeded_listings):
    response = client.get("/v1/listings", params={"status": "active", "sort_by": "price_low", "limit": 2})

    assert response.status_code == 200
    data = response.json()
    assert data["count"] == 2
    assert [item["price"] for item in data["items"]] == [210000.0, 260000.0]

    next_page = client.get(
        "/v1/listings", params={"status": "active", "sort_by": "price_low", "limit": 2, "skip": 2}
    ).json()
    assert [item["price"] for item in next_page["items"]] == [300000.0]


def test_listing_feed_carries_heat_tier(client: TestClient, seeded_listings):
    items = client.get("/v1/listings", params={"sort_by": "views", "limit": 1}).json()["items"]

    assert items[0]["id"] == seeded_listings[0].id
    assert items[0]["heat_tier"] == "super-hot"


def test_listing_feed_rejects_unknown_sort(client: TestClient):
    assert client.get("/v1/listings", params={"sort_by": "cheapest"}).status_code == 422


def test_featured_listings(client: TestClient, seeded_listings):
    items = client.get("/v1/listings/featured").json()["items"]
    assert [item["id"] for item in items] == [seeded_listings[0].id]


def test_similar_listings(client: TestClient, seeded_listings):
    reference = seeded_listings[1]

    items = client.get(f"/v1/listings/{reference.id}/similar").json()["items"]

    assert [item["id"] for item in items] == [seeded_listings[0].id, seeded_listings[2].id]
    assert client.get("/v1/listings/listing-missing/similar").status_code == 404


def test_record_listing_view(client: TestClient, db: Session, seeded_listings):
    listing = seeded_listings[1]

    assert client.post(f"/v1/listings/{listing.id}/views").status_code == 204

    db.expire_all()
    assert SqlListingRepository(db).find_by_id(listing.id).views_count == 1
    assert client.post("/v1/listings/listing-missing/views").status_code == 404


# Financing


def test_match_ranks_partners_and_demotes_open_incidents(client: TestClient, seeded_partners):
    response = client.post("/v1/financing/match", json={"amount": 200000, "term": 36, "vehicle_year": 2020})

    assert response.status_code == 200
    offers = response.json()["offers"]
    assert [o["partner_name"] for o in offers] == ["Banco Norte", "Banco Sur", "Banco Rápido"]
    assert offers[-1]["has_unresolved_incidents"] is True
    assert all(o["monthly_payment"] > 0 for o in offers)


def test_match_filters_by_vehicle_year(client: TestClient, seeded_partners):
    offers = client.post(
        "/v1/financing/match", json={"amount": 200000, "term": 36, "vehicle_year": 2015}
    ).json()["offers"]

    assert "Banco Sur" not in [o["partner_name"] for o in offers]


def test_match_without_eligible_partner_is_empty(client: TestClient, seeded_partners):
    response = client.post("/v1/financing/match", json={"amount": 200000, "term": 120})

    assert response.status_code == 200
    assert response.json()["offers"] == []


def test_match_rejects_malformed_request(client: TestClient):
    assert client.post("/v1/financing/match", json={"amount": 0, "term": 12}).status_code == 422


def test_quote_and_schedule(client: TestClient, seeded_partners):
    partner = seeded_partners[0]

    quote = client.post(
        "/v1/financing/quote", json={"partner_id": partner.id, "amount": 100000, "term": 12}
    ).json()
    schedule = client.get(
        f"/v1/financing/partners/{partner.id}/schedule", params={"amount": 100000, "term": 12}
    ).json()

    assert quote["eligible"] is True
    assert len(schedule["rows"]) == 12
    assert schedule["rows"][-1]["balance"] == 0.0
    assert schedule["rows"][0]["payment"] == quote["monthly_payment"]


def test_schedule_for_ineligible_partner_conflicts(client: TestClient, seeded_partners):
    short_term = seeded_partners[3]
    response = client.get(
        f"/v1/financing/partners/{short_term.id}/schedule", params={"amount": 100000, "term": 36}
    )
    assert response.status_code == 409


def test_incident_report_and_resolve(client: TestClient, db: Session, seeded_partners):
    partner = seeded_partners[0]

    reported = client.post(
        f"/v1/financing/partners/{partner.id}/incidents",
        json={"type": "proceso_lento", "severity": "media", "description": "Slow", "reported_by": "ops-1"},
    )
    assert reported.status_code == 201
    assert reported.json()["unresolved"] == 1

    incident_id = SqlBankPartnerRepository(db).find_by_id(partner.id).incidents[0].id
    resolved = client.post(
        f"/v1/financing/partners/{partner.id}/incidents/{incident_id}/resolve",
        json={"resolved_by": "manager-1"},
    )
    assert resolved.status_code == 200
    assert resolved.json()["unresolved"] == 0

    again = client.post(
        f"/v1/financing/partners/{partner.id}/incidents/{incident_id}/resolve",
        json={"resolved_by": "manager-1"},
    )
    assert again.status_code == 409

    log = client.get(f"/v1/financing/partners/{partner.id}/incidents", params={"resolved": True}).json()
    assert [i["id"] for i in log["items"]] == [incident_id]
    assert log["items"][0]["resolved_by"] == "manager-1"
    assert client.get("/v1/financing/partners/partner-missing/incidents").status_code == 404


def test_incident_report_validation(client: TestClient, seeded_partners):
    partner = seeded_partners[0]

    blank = client.post(
        f"/v1/financing/partners/{partner.id}/incidents", json={"type": "otro", "severity": "baja"}
    )
    bad_type = client.post(
        f"/v1/financing/partners/{partner.id}/incidents",
        json={"type": "weather", "severity": "baja", "description": "x", "reported_by": "ops"},
    )

    assert blank.status_code == 422
    assert [v["field"] for v in blank.json()["detail"]["violations"]] == ["description", "reported_by"]
    assert bad_type.status_code == 422


# Credit applications


def test_credit_application_workflow(client: TestClient):
    created = client.post("/v1/credit-applications", json=application_payload())
    assert created.status_code == 201
    application_id = created.json()["id"]
    assert created.json()["status"] == "pending"

    submitted = client.post(
        f"/v1/credit-applications/{application_id}/transition", json={"to_status": "under_review"}
    )
    assert submitted.json()["submitted_at"] is not None

    approved = client.post(
        f"/v1/credit-applications/{application_id}/transition",
        json={
            "to_status": "approved",
            "reviewed_by": "reviewer-1",
            "approved_amount": 100000,
            "approved_term": 12,
            "interest_rate": 12.0,
        },
    )
    assert approved.status_code == 200
    assert approved.json()["review_info"]["monthly_payment"] == 8884.88

    disbursed = client.post(
        f"/v1/credit-applications/{application_id}/transition", json={"to_status": "disbursed"}
    )
    assert disbursed.json()["status"] == "disbursed"
    assert client.get(f"/v1/credit-applications/{application_id}").json()["status"] == "disbursed"


def test_credit_application_validation_reports_all_fields(client: TestClient):
    response = client.post(
        "/v1/credit-applications",
        json=application_payload(
            personal_info={"name": "", "email": "bad"},
            financial_info={"monthly_income": 0},
        ),
    )

    assert response.status_code == 422
    fields = [v["field"] for v in response.json()["detail"]["violations"]]
    assert fields == ["personal_info.name", "personal_info.contact", "financial_info.monthly_income"]


def test_credit_application_invalid_transition_conflicts(client: TestClient):
    application_id = client.post("/v1/credit-applications", json=application_payload()).json()["id"]

    response = client.post(
        f"/v1/credit-applications/{application_id}/transition", json={"to_status": "approved"}
    )

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert (detail["current"], detail["requested"]) == ("pending", "approved")
    assert client.get(f"/v1/credit-applications/{application_id}").json()["status"] == "pending"


def test_credit_application_approval_rejects_bad_review_terms(client: TestClient):
    application_id = client.post("/v1/credit-applications", json=application_payload()).json()["id"]
    client.post(f"/v1/credit-applications/{application_id}/transition", json={"to_status": "under_review"})

    bad_term = client.post(
        f"/v1/credit-applications/{application_id}/transition",
        json={
            "to_status": "approved",
            "reviewed_by": "reviewer-1",
            "approved_amount": 100000,
            "approved_term": -12,
            "interest_rate": 12.0,
        },
    )
    no_reviewer = client.post(
        f"/v1/credit-applications/{application_id}/transition",
        json={"to_status": "approved", "approved_amount": 100000, "approved_term": 12, "interest_rate": 12.0},
    )

    assert bad_term.status_code == 422
    assert no_reviewer.status_code == 422
    assert [v["field"] for v in no_reviewer.json()["detail"]["violations"]] == ["review_info.reviewed_by"]
    assert client.get(f"/v1/credit-applications/{application_id}").json()["status"] == "under_review"


def test_credit_application_rejection_requires_reason(client: TestClient):
    application_id = client.post("/v1/credit-applications", json=application_payload()).json()["id"]
    client.post(f"/v1/credit-applications/{application_id}/transition", json={"to_status": "under_review"})

    missing = client.post(
        f"/v1/credit-applications/{application_id}/transition",
        json={"to_status": "rejected", "reviewed_by": "reviewer-1"},
    )
    rejected = client.post(
        f"/v1/credit-applications/{application_id}/transition",
        json={"to_status": "rejected", "reviewed_by": "reviewer-1", "rejection_reason": "Low income"},
    )

    assert missing.status_code == 422
    assert rejected.json()["review_info"]["rejection_reason"] == "Low income"


def test_credit_application_override(client: TestClient):
    application_id = client.post("/v1/credit-applications", json=application_payload()).json()["id"]
    client.post(f"/v1/credit-applications/{application_id}/transition", json={"to_status": "cancelled"})

    missing_reason = client.post(
        f"/v1/credit-applications/{application_id}/override",
        json={"to_status": "pending", "actor": "admin-1"},
    )
    reopened = client.post(
        f"/v1/credit-applications/{application_id}/override",
        json={"to_status": "pending", "actor": "admin-1", "reason": "Cancelled by mistake"},
    )

    assert missing_reason.status_code == 422
    assert reopened.json()["status"] == "pending"
    assert reopened.json()["overrides"][0]["from_status"] == "cancelled"


def test_credit_application_documents(client: TestClient):
    application_id = client.post("/v1/credit-applications", json=application_payload()).json()["id"]

    attached = client.post(
        f"/v1/credit-applications/{application_id}/documents",
        json={"type": "identification", "name": "ine.pdf", "url": "https://files/ine.pdf", "size": 1024},
    )
    assert attached.status_code == 201
    document_id = attached.json()["documents"][0]["id"]

    detached = client.delete(f"/v1/credit-applications/{application_id}/documents/{document_id}")
    assert detached.json()["documents"] == []

    client.post(f"/v1/credit-applications/{application_id}/transition", json={"to_status": "under_review"})
    locked = client.post(
        f"/v1/credit-applications/{application_id}/documents",
        json={"type": "other", "name": "late.pdf", "url": "https://files/late.pdf", "size": 10},
    )
    assert locked.status_code == 409


def test_credit_application_not_found(client: TestClient):
    assert client.get("/v1/credit-applications/application-missing").status_code == 404


# Prospects


def test_prospect_lifecycle(client: TestClient):
    created = client.post("/v1/prospects", json=prospect_payload(source="whatsapp"))
    assert created.status_code == 201
    prospect = created.json()
    assert prospect["status"] == "new"
    assert prospect["assigned_to"] == "agent-1"
    assert prospect["is_hot"] is True
    assert prospect["is_stale"] is False

    for step in ["contacted", "qualified", "negotiating", "won"]:
        response = client.post(f"/v1/prospects/{prospect['id']}/status", json={"to_status": step})
        assert response.status_code == 200

    closed = client.post(f"/v1/prospects/{prospect['id']}/reassign", json={"to_user_id": "agent-2"})
    assert closed.status_code == 409


def test_prospect_validation_reports_all_fields(client: TestClient):
    response = client.post(
        "/v1/prospects", json={"name": "", "phone": "", "source": "tiktok", "created_by": "agent-1"}
    )

    assert response.status_code == 422
    assert [v["field"] for v in response.json()["detail"]["violations"]] == ["name", "phone", "source"]


def test_prospect_invalid_status_transition(client: TestClient):
    prospect_id = client.post("/v1/prospects", json=prospect_payload()).json()["id"]

    skipped = client.post(f"/v1/prospects/{prospect_id}/status", json={"to_status": "won"})
    unknown = client.post(f"/v1/prospects/{prospect_id}/status", json={"to_status": "archived"})

    assert skipped.status_code == 409
    assert unknown.status_code == 422


def test_prospect_reassignment_history(client: TestClient):
    prospect_id = client.post("/v1/prospects", json=prospect_payload()).json()["id"]

    client.post(
        f"/v1/prospects/{prospect_id}/reassign",
        json={"to_user_id": "agent-2", "reason": "Zone change", "reassigned_by": "manager-1"},
    )
    response = client.post(f"/v1/prospects/{prospect_id}/reassign", json={"to_user_id": "agent-3"})
    same_owner = client.post(f"/v1/prospects/{prospect_id}/reassign", json={"to_user_id": "agent-3"})

    data = response.json()
    assert data["assigned_to"] == "agent-3"
    assert data["status"] == "new"
    assert [(e["from_user_id"], e["to_user_id"]) for e in data["reassignment_history"]] == [
        ("agent-1", "agent-2"),
        ("agent-2", "agent-3"),
    ]
    assert same_owner.status_code == 422


def test_prospect_appointment_tags_and_notes(client: TestClient):
    prospect_id = client.post("/v1/prospects", json=prospect_payload()).json()["id"]
    soon = (datetime.now(timezone.utc) + timedelta(hours=3)).isoformat()
    past = (datetime.now(timezone.utc) - timedelta(hours=3)).isoformat()

    scheduled = client.post(
        f"/v1/prospects/{prospect_id}/appointment", json={"appointment_date": soon, "notes": "Test drive"}
    )
    assert scheduled.json()["is_hot"] is True
    assert client.post(
        f"/v1/prospects/{prospect_id}/appointment", json={"appointment_date": past}
    ).status_code == 422

    tagged = client.post(f"/v1/prospects/{prospect_id}/tags", json={"tag": "suv"})
    assert tagged.json()["tags"] == ["suv"]
    untagged = client.delete(f"/v1/prospects/{prospect_id}/tags/suv")
    assert untagged.json()["tags"] == []

    noted = client.put(f"/v1/prospects/{prospect_id}/notes", json={"notes": "Call after 6pm"})
    assert noted.json()["notes"] == "Call after 6pm"


def test_prospect_override(client: TestClient):
    prospect_id = client.post("/v1/prospects", json=prospect_payload()).json()["id"]
    client.post(f"/v1/prospects/{prospect_id}/status", json={"to_status": "discarded"})

    response = client.post(
        f"/v1/prospects/{prospect_id}/override",
        json={"to_status": "contacted", "actor": "admin-1", "reason": "Discarded by mistake"},
    )

    assert response.status_code == 200
    assert response.json()["status"] == "contacted"
    assert response.json()["overrides"][0]["to_status"] == "contacted"


def test_prospect_list_and_stats(client: TestClient, db: Session, make_prospect):
    long_ago = datetime.now(timezone.utc) - timedelta(days=10)
    repo = SqlProspectRepository(db)
    repo.add(make_prospect(created_by="agent-1", created_at=long_ago, last_activity_at=long_ago))
    repo.add(make_prospect(created_by="agent-2", status=ProspectStatus.LOST, created_at=long_ago, last_activity_at=long_ago))
    db.commit()
    client.post("/v1/prospects", json=prospect_payload(source="referral", created_by="agent-2"))

    mine = client.get("/v1/prospects", params={"assigned_to": "agent-2"}).json()
    stale = client.get("/v1/prospects", params={"stale": True}).json()
    stats = client.get("/v1/prospects/stats").json()

    assert mine["count"] == 2
    assert stale["count"] == 1
    assert stats["total"] == 3
    assert stats["by_status"]["lost"] == 1
    assert stats["hot"] == 1
    assert stats["stale"] == 1


def test_prospect_not_found(client: TestClient):
    assert client.get("/v1/prospects/prospect-missing").status_code == 404
    assert client.post("/v1/prospects/prospect-missing/status", json={"to_status": "contacted"}).status_code == 404
