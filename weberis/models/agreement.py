"""Agreement type and service agreement models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, Date, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from weberis.models.base import Base, CreatedByMixin, TimestampMixin, enum_type
from weberis.models.enums import AgreementStatus, BillingCycle


class AgreementType(Base, TimestampMixin):
    __tablename__ = "agreement_types"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    label: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class ServiceAgreement(Base, TimestampMixin, CreatedByMixin):
    __tablename__ = "service_agreements"
    __table_args__ = (
        Index("idx_service_agreements_status", "status"),
        Index("idx_service_agreements_type", "agreement_type"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    business_id: Mapped[int] = mapped_column(ForeignKey("businesses.id", ondelete="RESTRICT"), nullable=False, index=True)
    status: Mapped[AgreementStatus] = mapped_column(
        enum_type(AgreementStatus), default=AgreementStatus.ACTIVE, nullable=False
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date)
    renewal_date: Mapped[date | None] = mapped_column(Date)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    billing_cycle: Mapped[BillingCycle] = mapped_column(
        enum_type(BillingCycle), default=BillingCycle.MONTHLY, nullable=False
    )
    # Holds AgreementType.name; renames are propagated by the agreement type workflow.
    agreement_type: Mapped[str] = mapped_column(String(50), default="standard", nullable=False)

    business = relationship("Business")
