"""Agreement type catalogue and service agreement workflows."""

from __future__ import annotations

import calendar
import logging
from datetime import date
from typing import Any

from sqlalchemy import func, select, update

from weberis.auth.actor_context import ActorContext
from weberis.core.exceptions import Conflict, ValidationError
from weberis.models import AgreementStatus, AgreementType, BillingCycle, Business, ServiceAgreement
from weberis.schemas.agreements import AgreementTypeForm, RenewalForm, RenewalProposal, ServiceAgreementForm
from weberis.services.base_service import (
    BaseService,
    ListQuery,
    Page,
    count_references,
    parse_enum,
    require,
    search_clause,
    validate_form,
    workflow,
)
from weberis.utils.validators import sanitize_identifier

logger = logging.getLogger(__name__)

BILLING_CYCLE_MONTHS: dict[BillingCycle, int] = {
    BillingCycle.MONTHLY: 1,
    BillingCycle.QUARTERLY: 3,
    BillingCycle.BIANNUALLY: 6,
    BillingCycle.ANNUALLY: 12,
}


def add_months(start: date, months: int) -> date:
    """Shift ``start`` by whole months, clamping to the last day of the month."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def propose_renewal(agreement: ServiceAgreement, today: date | None = None) -> RenewalProposal:
    """Suggest the next term starting today, sized by the billing cycle."""
    start = today or date.today()
    months = BILLING_CYCLE_MONTHS.get(agreement.billing_cycle)
    if not months:
        return RenewalProposal(start_date=start, end_date=start, renewal_date=None, price=agreement.price)
    end = add_months(start, months)
    return RenewalProposal(start_date=start, end_date=end, renewal_date=end, price=agreement.price)


class AgreementTypeService(BaseService):
    """Named agreement types referenced by service agreements.

    Service agreements store the type *name*, so a type in use keeps its
    name. An unused type may be renamed; the rename and the rewrite of any
    stored names happen in one transaction.
    """

    def usage_count(self, name: str) -> int:
        return count_references(self.db, ServiceAgreement.agreement_type, name)

    def _ensure_unique_name(self, name: str, exclude_id: int | None = None) -> None:
        stmt = select(AgreementType.id).where(AgreementType.name == name)
        if exclude_id is not None:
            stmt = stmt.where(AgreementType.id != exclude_id)
        if self.db.scalars(stmt).first() is not None:
            raise Conflict("An agreement type with this name already exists.")

    @workflow("agreement_type.list")
    def list_types(self, actor: ActorContext, active_only: bool = False) -> list[dict[str, Any]]:
        self.require_permission(actor, "view_service_agreement")
        usage = dict(
            self.db.execute(
                select(ServiceAgreement.agreement_type, func.count(ServiceAgreement.id)).group_by(
                    ServiceAgreement.agreement_type
                )
            ).all()
        )
        stmt = select(AgreementType).order_by(AgreementType.label.asc(), AgreementType.id.asc())
        if active_only:
            stmt = stmt.where(AgreementType.is_active.is_(True))
        return [
            {"agreement_type": agreement_type, "usage_count": usage.get(agreement_type.name, 0)}
            for agreement_type in self.db.scalars(stmt).all()
        ]

    @workflow("agreement_type.get")
    def get_type(self, actor: ActorContext, type_id: int) -> AgreementType:
        self.require_permission(actor, "view_service_agreement")
        return self.get_or_404(AgreementType, type_id, "Agreement type")

    @workflow("agreement_type.create")
    def create_type(self, actor: ActorContext, data: dict[str, Any], csrf_token: str | None = None) -> AgreementType:
        self.guard_mutation(actor, "edit_service_agreement", csrf_token)
        form = validate_form(AgreementTypeForm, data)
        name = sanitize_identifier(form.name)
        require(name, "Type name is required and may only contain lowercase letters, numbers and underscores.")
        require(form.label, "Display label is required.")
        self._ensure_unique_name(name)

        agreement_type = AgreementType(
            name=name,
            label=form.label,
            description=form.description,
            is_active=True if form.is_active is None else form.is_active,
        )
        with self.transaction():
            self.db.add(agreement_type)
        logger.info(
            "agreement_type.created",
            extra=self.log_extra(actor, "agreement_type.created", entity_id=agreement_type.id),
        )
        return agreement_type

    @workflow("agreement_type.update")
    def update_type(
        self, actor: ActorContext, type_id: int, data: dict[str, Any], csrf_token: str | None = None
    ) -> AgreementType:
        self.guard_mutation(actor, "edit_service_agreement", csrf_token)
        form = validate_form(AgreementTypeForm, data)
        values = form.model_dump(exclude_unset=True)
        if "label" in values:
            require(values["label"], "Display label is required.")
        agreement_type = self.get_or_404(AgreementType, type_id, "Agreement type")

        old_name = agreement_type.name
        new_name = old_name
        if "name" in values and self.usage_count(old_name) == 0:
            new_name = sanitize_identifier(values["name"])
            require(new_name, "Type name is required and may only contain lowercase letters, numbers and underscores.")
            if new_name != old_name:
                self._ensure_unique_name(new_name, exclude_id=agreement_type.id)

        with self.transaction():
            if new_name != old_name:
                self.db.execute(
                    update(ServiceAgreement)
                    .where(ServiceAgreement.agreement_type == old_name)
                    .values(agreement_type=new_name)
                )
                agreement_type.name = new_name
            for key in ("label", "description"):
                if key in values:
                    setattr(agreement_type, key, values[key])
            if values.get("is_active") is not None:
                agreement_type.is_active = values["is_active"]
        logger.info(
            "agreement_type.updated",
            extra=self.log_extra(actor, "agreement_type.updated", entity_id=agreement_type.id, renamed=new_name != old_name),
        )
        return agreement_type

    @workflow("agreement_type.delete")
    def delete_type(self, actor: ActorContext, type_id: int, csrf_token: str | None = None) -> int:
        self.guard_mutation(actor, "edit_service_agreement", csrf_token)
        agreement_type = self.get_or_404(AgreementType, type_id, "Agreement type")
        usage = self.usage_count(agreement_type.name)
        if usage:
            raise Conflict(f"Cannot delete this agreement type because it is used by {usage} service agreement(s).")

        with self.transaction():
            self.db.delete(agreement_type)
        logger.info("agreement_type.deleted", extra=self.log_extra(actor, "agreement_type.deleted", entity_id=type_id))
        return type_id


class ServiceAgreementService(BaseService):
    """Recurring agreements with a business, priced per billing cycle."""

    def _validate_terms(self, start, end, renewal, price) -> None:
        require(start, "Start date is required.")
        if end is not None and end < start:
            raise ValidationError("End date cannot be earlier than start date.")
        if renewal is not None and renewal < start:
            raise ValidationError("Renewal date cannot be earlier than start date.")
        if price is None or price <= 0:
            raise ValidationError("Price must be greater than zero.")

    def _check_type(self, name: str, active_only: bool) -> None:
        stmt = select(AgreementType).where(AgreementType.name == name)
        if active_only:
            stmt = stmt.where(AgreementType.is_active.is_(True))
        if self.db.scalars(stmt).first() is None:
            raise ValidationError("Selected agreement type does not exist.")

    @workflow("service_agreement.list")
    def list_agreements(self, actor: ActorContext, query: ListQuery | None = None) -> Page[ServiceAgreement]:
        self.require_permission(actor, "view_service_agreement")
        query = query or ListQuery()
        stmt = select(ServiceAgreement).join(Business, ServiceAgreement.business_id == Business.id)
        if query.search:
            stmt = stmt.where(
                search_clause(query.search, ServiceAgreement.title, ServiceAgreement.description, Business.name)
            )
        status = parse_enum(AgreementStatus, query.status, "status filter")
        if status is not None:
            stmt = stmt.where(ServiceAgreement.status == status)
        if query.filters.get("business_id"):
            stmt = stmt.where(ServiceAgreement.business_id == int(query.filters["business_id"]))
        stmt = stmt.order_by(
            ServiceAgreement.start_date.desc(), ServiceAgreement.created_at.desc(), ServiceAgreement.id.desc()
        )
        return self.paginate(stmt, query, status_column=ServiceAgreement.status)

    @workflow("service_agreement.get")
    def get_agreement(self, actor: ActorContext, agreement_id: int) -> ServiceAgreement:
        self.require_permission(actor, "view_service_agreement")
        return self.get_or_404(ServiceAgreement, agreement_id, "Service agreement")

    @workflow("service_agreement.create")
    def create_agreement(
        self, actor: ActorContext, data: dict[str, Any], csrf_token: str | None = None
    ) -> ServiceAgreement:
        self.guard_mutation(actor, "add_service_agreement", csrf_token)
        form = validate_form(ServiceAgreementForm, data)
        require(form.title, "Title is required.")
        require(form.business_id, "Business is required.")
        self._validate_terms(form.start_date, form.end_date, form.renewal_date, form.price)
        self.ensure_exists(Business, form.business_id, "Business")
        type_name = form.agreement_type or "standard"
        self._check_type(type_name, active_only=True)

        agreement = ServiceAgreement(
            **form.model_dump(exclude={"status", "billing_cycle", "agreement_type"}),
            status=form.status or AgreementStatus.ACTIVE,
            billing_cycle=form.billing_cycle or BillingCycle.MONTHLY,
            agreement_type=type_name,
            created_by=actor.user_id,
        )
        with self.transaction():
            self.db.add(agreement)
        logger.info(
            "service_agreement.created",
            extra=self.log_extra(actor, "service_agreement.created", entity_id=agreement.id),
        )
        return agreement

    @workflow("service_agreement.update")
    def update_agreement(
        self, actor: ActorContext, agreement_id: int, data: dict[str, Any], csrf_token: str | None = None
    ) -> ServiceAgreement:
        self.guard_mutation(actor, "edit_service_agreement", csrf_token)
        form = validate_form(ServiceAgreementForm, data)
        values = form.model_dump(exclude_unset=True)
        for key, message in (("title", "Title is required."), ("business_id", "Business is required.")):
            if key in values:
                require(values[key], message)
        for key in ("status", "billing_cycle"):
            if key in values and values[key] is None:
                values.pop(key)
        agreement = self.get_or_404(ServiceAgreement, agreement_id, "Service agreement")
        self._validate_terms(
            values.get("start_date", agreement.start_date),
            values.get("end_date", agreement.end_date),
            values.get("renewal_date", agreement.renewal_date),
            values.get("price", agreement.price),
        )
        self.ensure_exists(Business, values.get("business_id"), "Business")
        if values.get("agreement_type") and values["agreement_type"] != agreement.agreement_type:
            self._check_type(values["agreement_type"], active_only=False)
        elif "agreement_type" in values:
            values.pop("agreement_type")

        with self.transaction():
            for key, value in values.items():
                setattr(agreement, key, value)
        logger.info(
            "service_agreement.updated",
            extra=self.log_extra(actor, "service_agreement.updated", entity_id=agreement.id),
        )
        return agreement

    @workflow("service_agreement.renewal_proposal")
    def renewal_proposal(self, actor: ActorContext, agreement_id: int, today: date | None = None) -> RenewalProposal:
        self.require_permission(actor, "edit_service_agreement")
        agreement = self.get_or_404(ServiceAgreement, agreement_id, "Service agreement")
        return propose_renewal(agreement, today)

    @workflow("service_agreement.renew")
    def renew_agreement(
        self, actor: ActorContext, agreement_id: int, data: dict[str, Any], csrf_token: str | None = None
    ) -> ServiceAgreement:
        self.guard_mutation(actor, "edit_service_agreement", csrf_token)
        form = validate_form(RenewalForm, data)
        require(form.start_date, "New start date is required.")
        agreement = self.get_or_404(ServiceAgreement, agreement_id, "Service agreement")
        price = form.price if form.price is not None else agreement.price
        self._validate_terms(form.start_date, form.end_date, form.renewal_date, price)

        with self.transaction():
            agreement.status = form.status or AgreementStatus.ACTIVE
            agreement.start_date = form.start_date
            agreement.end_date = form.end_date
            agreement.renewal_date = form.renewal_date
            agreement.price = price
        logger.info(
            "service_agreement.renewed",
            extra=self.log_extra(actor, "service_agreement.renewed", entity_id=agreement.id),
        )
        return agreement

    @workflow("service_agreement.delete")
    def delete_agreement(self, actor: ActorContext, agreement_id: int, csrf_token: str | None = None) -> int:
        self.guard_mutation(actor, "delete_service_agreement", csrf_token)
        agreement = self.get_or_404(ServiceAgreement, agreement_id, "Service agreement")

        with self.transaction():
            self.db.delete(agreement)
        logger.info(
            "service_agreement.deleted",
            extra=self.log_extra(actor, "service_agreement.deleted", entity_id=agreement_id),
        )
        return agreement_id
