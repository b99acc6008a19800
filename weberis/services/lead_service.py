"""Lead and offer workflows."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy import select

from weberis.auth.actor_context import ActorContext
from weberis.core.exceptions import Conflict, ValidationError
from weberis.models import Business, Contact, Lead, LeadStatus, Offer, OfferStatus, Project, User
from weberis.schemas.leads import LeadForm, OfferForm
from weberis.services.base_service import (
    BaseService,
    ListQuery,
    Page,
    count_references,
    null_references,
    parse_enum,
    require,
    search_clause,
    validate_form,
    workflow,
)

logger = logging.getLogger(__name__)


def _contact_name():
    return Contact.first_name + " " + Contact.last_name


class LeadService(BaseService):
    """Service for lead CRUD.

    Deleting a lead keeps its offers: their ``lead_id`` is cleared in the
    same transaction, so a failed delete leaves every offer linked.
    """

    def _check_references(self, values: dict[str, Any]) -> None:
        self.ensure_exists(Business, values.get("business_id"), "Business")
        self.ensure_exists(Contact, values.get("contact_id"), "Contact")
        self.ensure_exists(User, values.get("assigned_to"), "User")

    @workflow("lead.list")
    def list_leads(self, actor: ActorContext, query: ListQuery | None = None) -> Page[Lead]:
        self.require_permission(actor, "view_lead")
        query = query or ListQuery()
        stmt = (
            select(Lead)
            .outerjoin(Business, Lead.business_id == Business.id)
            .outerjoin(Contact, Lead.contact_id == Contact.id)
        )
        if query.search:
            stmt = stmt.where(
                search_clause(query.search, Lead.title, Lead.description, Business.name, _contact_name())
            )
        status = parse_enum(LeadStatus, query.status, "status filter")
        if status is not None:
            stmt = stmt.where(Lead.status == status)
        for key, column in (
            ("business_id", Lead.business_id),
            ("contact_id", Lead.contact_id),
            ("assigned_to", Lead.assigned_to),
        ):
            if query.filters.get(key):
                stmt = stmt.where(column == int(query.filters[key]))
        stmt = stmt.order_by(Lead.created_at.desc(), Lead.id.desc())
        return self.paginate(stmt, query, status_column=Lead.status)

    @workflow("lead.get")
    def get_lead(self, actor: ActorContext, lead_id: int) -> Lead:
        self.require_permission(actor, "view_lead")
        return self.get_or_404(Lead, lead_id, "Lead")

    @workflow("lead.create")
    def create_lead(self, actor: ActorContext, data: dict[str, Any], csrf_token: str | None = None) -> Lead:
        self.guard_mutation(actor, "add_lead", csrf_token)
        form = validate_form(LeadForm, data)
        require(form.title, "Lead title is required.")
        values = form.model_dump()
        self._check_references(values)

        lead = Lead(**values, created_by=actor.user_id)
        lead.status = form.status or LeadStatus.NEW
        with self.transaction():
            self.db.add(lead)
        logger.info("lead.created", extra=self.log_extra(actor, "lead.created", entity_id=lead.id))
        return lead

    @workflow("lead.update")
    def update_lead(self, actor: ActorContext, lead_id: int, data: dict[str, Any], csrf_token: str | None = None) -> Lead:
        self.guard_mutation(actor, "edit_lead", csrf_token)
        form = validate_form(LeadForm, data)
        values = form.model_dump(exclude_unset=True)
        if "title" in values:
            require(values["title"], "Lead title is required.")
        if "status" in values and values["status"] is None:
            values.pop("status")
        lead = self.get_or_404(Lead, lead_id, "Lead")
        self._check_references(values)

        with self.transaction():
            for key, value in values.items():
                setattr(lead, key, value)
        logger.info("lead.updated", extra=self.log_extra(actor, "lead.updated", entity_id=lead.id))
        return lead

    @workflow("lead.delete")
    def delete_lead(self, actor: ActorContext, lead_id: int, csrf_token: str | None = None) -> int:
        self.guard_mutation(actor, "delete_lead", csrf_token)
        lead = self.get_or_404(Lead, lead_id, "Lead")

        with self.transaction():
            unlinked = null_references(self.db, Offer.lead_id, lead.id)
            self.db.delete(lead)
        logger.info(
            "lead.deleted",
            extra=self.log_extra(actor, "lead.deleted", entity_id=lead_id, offers_unlinked=unlinked),
        )
        return lead_id


class OfferService(BaseService):
    """Offers may be raised from a lead and later back a project."""

    def _prefill_from_lead(self, values: dict[str, Any]) -> None:
        lead_id = values.get("lead_id")
        if lead_id is None:
            return
        lead = self.db.get(Lead, lead_id)
        if lead is None:
            raise ValidationError("Selected lead does not exist.")
        if values.get("business_id") is None:
            values["business_id"] = lead.business_id
        if values.get("contact_id") is None:
            values["contact_id"] = lead.contact_id

    @workflow("offer.list")
    def list_offers(self, actor: ActorContext, query: ListQuery | None = None) -> Page[Offer]:
        self.require_permission(actor, "view_offer")
        query = query or ListQuery()
        stmt = (
            select(Offer)
            .outerjoin(Business, Offer.business_id == Business.id)
            .outerjoin(Contact, Offer.contact_id == Contact.id)
        )
        if query.search:
            stmt = stmt.where(
                search_clause(query.search, Offer.title, Offer.description, Business.name, _contact_name())
            )
        status = parse_enum(OfferStatus, query.status, "status filter")
        if status is not None:
            stmt = stmt.where(Offer.status == status)
        for key, column in (("business_id", Offer.business_id), ("lead_id", Offer.lead_id)):
            if query.filters.get(key):
                stmt = stmt.where(column == int(query.filters[key]))
        stmt = stmt.order_by(Offer.created_at.desc(), Offer.id.desc())
        return self.paginate(stmt, query, status_column=Offer.status)

    @workflow("offer.get")
    def get_offer(self, actor: ActorContext, offer_id: int) -> Offer:
        self.require_permission(actor, "view_offer")
        return self.get_or_404(Offer, offer_id, "Offer")

    @workflow("offer.create")
    def create_offer(self, actor: ActorContext, data: dict[str, Any], csrf_token: str | None = None) -> Offer:
        self.guard_mutation(actor, "add_offer", csrf_token)
        form = validate_form(OfferForm, data)
        require(form.title, "Offer title is required.")
        values = form.model_dump()
        self._prefill_from_lead(values)
        self.ensure_exists(Business, values.get("business_id"), "Business")
        self.ensure_exists(Contact, values.get("contact_id"), "Contact")

        offer = Offer(**values, created_by=actor.user_id)
        offer.status = form.status or OfferStatus.DRAFT
        offer.amount = form.amount if form.amount is not None else Decimal("0")
        with self.transaction():
            self.db.add(offer)
        logger.info("offer.created", extra=self.log_extra(actor, "offer.created", entity_id=offer.id))
        return offer

    @workflow("offer.update")
    def update_offer(self, actor: ActorContext, offer_id: int, data: dict[str, Any], csrf_token: str | None = None) -> Offer:
        self.guard_mutation(actor, "edit_offer", csrf_token)
        form = validate_form(OfferForm, data)
        values = form.model_dump(exclude_unset=True)
        if "title" in values:
            require(values["title"], "Offer title is required.")
        for key in ("status", "amount"):
            if key in values and values[key] is None:
                values.pop(key)
        offer = self.get_or_404(Offer, offer_id, "Offer")
        if values.get("lead_id") is not None and values["lead_id"] != offer.lead_id:
            self._prefill_from_lead(values)
        self.ensure_exists(Business, values.get("business_id"), "Business")
        self.ensure_exists(Contact, values.get("contact_id"), "Contact")

        with self.transaction():
            for key, value in values.items():
                setattr(offer, key, value)
        logger.info("offer.updated", extra=self.log_extra(actor, "offer.updated", entity_id=offer.id))
        return offer

    @workflow("offer.delete")
    def delete_offer(self, actor: ActorContext, offer_id: int, csrf_token: str | None = None) -> int:
        self.guard_mutation(actor, "delete_offer", csrf_token)
        offer = self.get_or_404(Offer, offer_id, "Offer")
        projects = count_references(self.db, Project.offer_id, offer.id)
        if projects:
            raise Conflict(f"Cannot delete this offer because it is linked to {projects} project(s).")

        with self.transaction():
            self.db.delete(offer)
        logger.info("offer.deleted", extra=self.log_extra(actor, "offer.deleted", entity_id=offer_id))
        return offer_id
