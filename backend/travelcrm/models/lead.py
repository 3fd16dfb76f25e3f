import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, func, text
from sqlalchemy.orm import Mapped, mapped_column

from travelcrm.db.base import Base


class LeadStatus(str, enum.Enum):
    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    PROPOSAL = "proposal"
    NEGOTIATION = "negotiation"
    BOOKED = "booked"
    LOST = "lost"


class LeadSource(str, enum.Enum):
    WEBSITE = "website"
    REFERRAL = "referral"
    SOCIAL = "social"
    EMAIL = "email"
    PHONE = "phone"
    WHATSAPP = "whatsapp"
    MARKETPLACE = "marketplace"
    OTHER = "other"


class Lead(Base):
    __tablename__ = "leads"

    __table_args__ = (
        UniqueConstraint("agency_id", "lead_number", name="uq_leads_agency_lead_number"),
        UniqueConstraint("agency_id", "duplicate_key", name="uq_leads_agency_duplicate_key"),
        Index("ix_leads_agency_id", "agency_id"),
        Index("ix_leads_agency_id_status", "agency_id", "status"),
    )

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    agency_id: Mapped[str] = mapped_column(String(36), ForeignKey("agencies.id"), nullable=False)
    lead_number: Mapped[str] = mapped_column(String(64), nullable=False)

    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(32), nullable=False)
    alternate_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)

    status: Mapped[str] = mapped_column(String(24), nullable=False, server_default=LeadStatus.NEW.value)
    source: Mapped[str] = mapped_column(String(24), nullable=False, server_default=LeadSource.OTHER.value)
    priority: Mapped[str | None] = mapped_column(String(24), nullable=True)

    # Use JSON for cross-dialect compatibility (tests run on SQLite in-memory)
    travel_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    tags: Mapped[list | None] = mapped_column(JSON, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    duplicate_key: Mapped[str | None] = mapped_column(String(255), nullable=True)
    # import row fields the pipeline does not interpret
    payload: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    ai_score: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("0"), default=0)
    ai_score_calculated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    import_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)

    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, server_default=text("1"), default=1)
    is_deleted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false"), default=False
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
