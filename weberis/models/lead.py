"""Lead and offer models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from weberis.models.base import Base, CreatedByMixin, TimestampMixin, enum_type
from weberis.models.enums import LeadSource, LeadStatus, OfferStatus


class Lead(Base, TimestampMixin, CreatedByMixin):
    __tablename__ = "leads"
    __table_args__ = (Index("idx_leads_status", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    source: Mapped[LeadSource | None] = mapped_column(enum_type(LeadSource))
    status: Mapped[LeadStatus] = mapped_column(enum_type(LeadStatus), default=LeadStatus.NEW, nullable=False)
    value: Mapped[Decimal | None] = mapped_column(Numeric(10, 2))
    business_id: Mapped[int | None] = mapped_column(ForeignKey("businesses.id", ondelete="SET NULL"), index=True)
    contact_id: Mapped[int | None] = mapped_column(ForeignKey("contacts.id", ondelete="SET NULL"), index=True)
    assigned_to: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), index=True)

    business = relationship("Business")
    contact = relationship("Contact")
    offers = relationship("Offer", back_populates="lead", passive_deletes=True)


class Offer(Base, TimestampMixin, CreatedByMixin):
    __tablename__ = "offers"
    __table_args__ = (Index("idx_offers_status", "status"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    status: Mapped[OfferStatus] = mapped_column(enum_type(OfferStatus), default=OfferStatus.DRAFT, nullable=False)
    valid_until: Mapped[date | None] = mapped_column(Date)
    business_id: Mapped[int | None] = mapped_column(ForeignKey("businesses.id", ondelete="SET NULL"), index=True)
    contact_id: Mapped[int | None] = mapped_column(ForeignKey("contacts.id", ondelete="SET NULL"), index=True)
    lead_id: Mapped[int | None] = mapped_column(ForeignKey("leads.id", ondelete="SET NULL"), index=True)

    business = relationship("Business")
    contact = relationship("Contact")
    lead = relationship("Lead", back_populates="offers")
