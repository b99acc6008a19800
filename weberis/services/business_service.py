"""Business and contact workflows."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import func, select

from weberis.auth.actor_context import ActorContext
from weberis.core.exceptions import Conflict
from weberis.models import Business, Contact, Lead, Offer, Project, ServiceAgreement, Task, TimeEntry
from weberis.schemas.businesses import BusinessForm, ContactForm
from weberis.services.base_service import (
    BaseService,
    ListQuery,
    Page,
    count_references,
    null_references,
    require,
    search_clause,
    validate_form,
    workflow,
)

logger = logging.getLogger(__name__)


class BusinessService(BaseService):
    """Businesses keep a globally unique name.

    Deleting a business is refused while service agreements point at it,
    since those rows require a business. Every other reference is cleared in
    the same transaction as the delete.
    """

    def _ensure_unique_name(self, name: str, exclude_id: int | None = None) -> None:
        stmt = select(Business.id).where(func.lower(Business.name) == name.lower())
        if exclude_id is not None:
            stmt = stmt.where(Business.id != exclude_id)
        if self.db.scalars(stmt).first() is not None:
            raise Conflict("A business with this name already exists.")

    @workflow("business.list")
    def list_businesses(self, actor: ActorContext, query: ListQuery | None = None) -> Page[Business]:
        self.require_permission(actor, "view_business")
        query = query or ListQuery()
        stmt = select(Business)
        if query.search:
            stmt = stmt.where(
                search_clause(query.search, Business.name, Business.registration_number, Business.email)
            )
        return self.paginate(stmt.order_by(Business.name.asc(), Business.id.asc()), query)

    @workflow("business.get")
    def get_business(self, actor: ActorContext, business_id: int) -> Business:
        self.require_permission(actor, "view_business")
        return self.get_or_404(Business, business_id, "Business")

    @workflow("business.create")
    def create_business(self, actor: ActorContext, data: dict[str, Any], csrf_token: str | None = None) -> Business:
        self.guard_mutation(actor, "add_business", csrf_token)
        form = validate_form(BusinessForm, data)
        require(form.name, "Business name is required.")
        self._ensure_unique_name(form.name)

        business = Business(**form.model_dump(), created_by=actor.user_id)
        with self.transaction():
            self.db.add(business)
        logger.info("business.created", extra=self.log_extra(actor, "business.created", entity_id=business.id))
        return business

    @workflow("business.update")
    def update_business(
        self, actor: ActorContext, business_id: int, data: dict[str, Any], csrf_token: str | None = None
    ) -> Business:
        self.guard_mutation(actor, "edit_business", csrf_token)
        form = validate_form(BusinessForm, data)
        values = form.model_dump(exclude_unset=True)
        if "name" in values:
            require(values["name"], "Business name is required.")
        business = self.get_or_404(Business, business_id, "Business")
        if "name" in values:
            self._ensure_unique_name(values["name"], exclude_id=business.id)

        with self.transaction():
            for key, value in values.items():
                setattr(business, key, value)
        logger.info("business.updated", extra=self.log_extra(actor, "business.updated", entity_id=business.id))
        return business

    @workflow("business.delete")
    def delete_business(self, actor: ActorContext, business_id: int, csrf_token: str | None = None) -> int:
        self.guard_mutation(actor, "delete_business", csrf_token)
        business = self.get_or_404(Business, business_id, "Business")
        agreements = count_references(self.db, ServiceAgreement.business_id, business.id)
        if agreements:
            raise Conflict(
                f"Cannot delete this business because it has {agreements} service agreement(s). "
                "Delete or reassign them first."
            )

        with self.transaction():
            for column in (
                Contact.business_id,
                Lead.business_id,
                Offer.business_id,
                Project.business_id,
                Task.business_id,
                TimeEntry.business_id,
            ):
                null_references(self.db, column, business.id)
            self.db.delete(business)
        logger.info("business.deleted", extra=self.log_extra(actor, "business.deleted", entity_id=business_id))
        return business_id


class ContactService(BaseService):
    """Contacts optionally belong to a business."""

    @workflow("contact.list")
    def list_contacts(self, actor: ActorContext, query: ListQuery | None = None) -> Page[Contact]:
        self.require_permission(actor, "view_contact")
        query = query or ListQuery()
        stmt = select(Contact)
        if query.search:
            stmt = stmt.where(
                search_clause(query.search, Contact.first_name, Contact.last_name, Contact.email, Contact.phone)
            )
        if query.filters.get("business_id"):
            stmt = stmt.where(Contact.business_id == int(query.filters["business_id"]))
        stmt = stmt.order_by(Contact.first_name.asc(), Contact.last_name.asc(), Contact.id.asc())
        return self.paginate(stmt, query)

    @workflow("contact.get")
    def get_contact(self, actor: ActorContext, contact_id: int) -> Contact:
        self.require_permission(actor, "view_contact")
        return self.get_or_404(Contact, contact_id, "Contact")

    @workflow("contact.create")
    def create_contact(self, actor: ActorContext, data: dict[str, Any], csrf_token: str | None = None) -> Contact:
        self.guard_mutation(actor, "add_contact", csrf_token)
        form = validate_form(ContactForm, data)
        require(form.first_name, "First name is required.")
        require(form.last_name, "Last name is required.")
        self.ensure_exists(Business, form.business_id, "Business")

        contact = Contact(**form.model_dump(), created_by=actor.user_id)
        with self.transaction():
            self.db.add(contact)
        logger.info("contact.created", extra=self.log_extra(actor, "contact.created", entity_id=contact.id))
        return contact

    @workflow("contact.update")
    def update_contact(
        self, actor: ActorContext, contact_id: int, data: dict[str, Any], csrf_token: str | None = None
    ) -> Contact:
        self.guard_mutation(actor, "edit_contact", csrf_token)
        form = validate_form(ContactForm, data)
        values = form.model_dump(exclude_unset=True)
        if "first_name" in values:
            require(values["first_name"], "First name is required.")
        if "last_name" in values:
            require(values["last_name"], "Last name is required.")
        contact = self.get_or_404(Contact, contact_id, "Contact")
        self.ensure_exists(Business, values.get("business_id"), "Business")

        with self.transaction():
            for key, value in values.items():
                setattr(contact, key, value)
        logger.info("contact.updated", extra=self.log_extra(actor, "contact.updated", entity_id=contact.id))
        return contact

    @workflow("contact.delete")
    def delete_contact(self, actor: ActorContext, contact_id: int, csrf_token: str | None = None) -> int:
        self.guard_mutation(actor, "delete_contact", csrf_token)
        contact = self.get_or_404(Contact, contact_id, "Contact")

        with self.transaction():
            null_references(self.db, Lead.contact_id, contact.id)
            null_references(self.db, Offer.contact_id, contact.id)
            self.db.delete(contact)
        logger.info("contact.deleted", extra=self.log_extra(actor, "contact.deleted", entity_id=contact_id))
        return contact_id
