from sqlalchemy import BigInteger, ForeignKey, Integer, String, text
from sqlalchemy.orm import Mapped, mapped_column

from travelcrm.db.base import Base


class LeadCounter(Base):
    """Per-agency, per-year lead number sequence. Only ever incremented."""

    __tablename__ = "lead_counters"

    agency_id: Mapped[str] = mapped_column(String(36), ForeignKey("agencies.id"), primary_key=True)
    year: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    value: Mapped[int] = mapped_column(BigInteger, nullable=False, server_default=text("0"), default=0)
