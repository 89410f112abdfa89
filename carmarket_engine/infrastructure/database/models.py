"""SQLAlchemy ORM models for marketplace, financing and CRM records"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class ListingRecord(Base):
    """Used-car listing"""

    __tablename__ = "listing"

    id = Column(String(36), primary_key=True)
    user_id = Column(Text, nullable=False, index=True)
    title = Column(Text, nullable=False)
    brand = Column(Text, nullable=False, index=True)
    model = Column(Text, nullable=False)
    year = Column(Integer, nullable=False)
    price = Column(Float, nullable=False)
    status = Column(Text, nullable=False, default="active", index=True)
    views_count = Column(Integer, nullable=False, default=0)
    likes_count = Column(Integer, nullable=False, default=0)
    mileage = Column(Integer, nullable=True)
    fuel_type = Column(Text, nullable=True)
    transmission = Column(Text, nullable=True)
    body_type = Column(Text, nullable=True)
    color = Column(Text, nullable=True)
    city = Column(Text, nullable=True)
    state = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class BankPartnerRecord(Base):
    """Financing partner and its credit conditions"""

    __tablename__ = "bank_partner"

    id = Column(String(36), primary_key=True)
    name = Column(Text, nullable=False)
    credit_rate = Column(Float, nullable=False)
    min_term = Column(Integer, nullable=False)
    max_term = Column(Integer, nullable=False)
    processing_time = Column(Integer, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    min_vehicle_year = Column(Integer, nullable=True)
    requirements = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    incidents = relationship(
        "BankPartnerIncidentRecord",
        back_populates="partner",
        cascade="all, delete-orphan",
        order_by="BankPartnerIncidentRecord.seq",
    )


class BankPartnerIncidentRecord(Base):
    """Service complaint against a partner; rows are appended, then resolved in place"""

    __tablename__ = "bank_partner_incident"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(Text, nullable=False, unique=True)
    partner_id = Column(String(36), ForeignKey("bank_partner.id", ondelete="CASCADE"), nullable=False)
    type = Column(Text, nullable=False)
    severity = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    reported_by = Column(Text, nullable=False)
    reported_at = Column(DateTime(timezone=True), nullable=False)
    resolved = Column(Boolean, nullable=False, default=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    resolved_by = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    partner = relationship("BankPartnerRecord", back_populates="incidents")


class CreditApplicationRecord(Base):
    """Credit application; nested applicant sections stored as JSON documents"""

    __tablename__ = "credit_application"

    id = Column(String(36), primary_key=True)
    user_id = Column(Text, nullable=False, index=True)
    status = Column(Text, nullable=False, default="pending", index=True)
    listing_id = Column(String(36), nullable=True)
    personal_info = Column(JSON, nullable=False)
    employment_info = Column(JSON, nullable=False)
    financial_info = Column(JSON, nullable=False)
    emergency_contact = Column(JSON, nullable=False)
    documents = Column(JSON, nullable=False, default=list)
    review_info = Column(JSON, nullable=True)
    overrides = Column(JSON, nullable=False, default=list)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class ProspectRecord(Base):
    """Sales lead"""

    __tablename__ = "prospect"

    id = Column(String(36), primary_key=True)
    name = Column(Text, nullable=False)
    phone = Column(Text, nullable=False)
    email = Column(Text, nullable=True)
    source = Column(Text, nullable=False, index=True)
    status = Column(Text, nullable=False, default="new", index=True)
    created_by = Column(Text, nullable=False)
    assigned_to = Column(Text, nullable=False, index=True)
    interested_listing_id = Column(String(36), nullable=True)
    budget_min = Column(Float, nullable=True)
    budget_max = Column(Float, nullable=True)
    message = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    tags = Column(JSON, nullable=False, default=list)
    appointment_date = Column(DateTime(timezone=True), nullable=True)
    appointment_notes = Column(Text, nullable=True)
    overrides = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    last_activity_at = Column(DateTime(timezone=True), nullable=False)

    reassignments = relationship(
        "ProspectReassignmentRecord",
        back_populates="prospect",
        cascade="all, delete-orphan",
        order_by="ProspectReassignmentRecord.seq",
    )


class ProspectReassignmentRecord(Base):
    """Append-only ownership change log"""

    __tablename__ = "prospect_reassignment"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    prospect_id = Column(String(36), ForeignKey("prospect.id", ondelete="CASCADE"), nullable=False)
    from_user_id = Column(Text, nullable=False)
    to_user_id = Column(Text, nullable=False)
    reason = Column(Text, nullable=True)
    reassigned_by = Column(Text, nullable=True)
    reassigned_at = Column(DateTime(timezone=True), nullable=False)

    prospect = relationship("ProspectRecord", back_populates="reassignments")
