from __future__ import annotations

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from weberis.models import Lead, LeadStatus, Offer, OfferStatus, Project
from weberis.services.base_service import ListQuery
from weberis.services.business_service import BusinessService, ContactService
from weberis.services.lead_service import LeadService, OfferService


def _lead_with_offers(db, actor, csrf, count=3):
    lead = LeadService(db).create_lead(actor, {"title": "ERP rollout", "value": "12000"}, csrf_token=csrf(actor)).value
    offers = []
    for index in range(count):
        offer = OfferService(db).create_offer(
            actor,
            {"title": f"Offer {index}", "amount": "1000", "lead_id": lead.id},
            csrf_token=csrf(actor),
        ).value
        offers.append(offer)
    return lead, offers


def test_create_lead_defaults_to_new(db, manager, csrf):
    result = LeadService(db).create_lead(manager, {"title": "CRM migration"}, csrf_token=csrf(manager))
    assert result.ok
    assert result.value.status == LeadStatus.NEW
    assert result.value.created_by == manager.user_id


def test_create_lead_rejects_unknown_status(db, manager, csrf):
    result = LeadService(db).create_lead(
        manager, {"title": "CRM migration", "status": "maybe"}, csrf_token=csrf(manager)
    )
    assert result.error_code == "validation_error"


def test_create_lead_rejects_negative_value(db, manager, csrf):
    result = LeadService(db).create_lead(manager, {"title": "Audit", "value": "-5"}, csrf_token=csrf(manager))
    assert result.error_code == "validation_error"


def test_delete_lead_keeps_offers_unlinked(db, manager, csrf):
    lead, offers = _lead_with_offers(db, manager, csrf)

    result = LeadService(db).delete_lead(manager, lead.id, csrf_token=csrf(manager))
    assert result.ok
    assert db.get(Lead, lead.id) is None
    lead_ids = db.scalars(select(Offer.lead_id).where(Offer.id.in_([offer.id for offer in offers]))).all()
    assert len(lead_ids) == 3
    assert all(lead_id is None for lead_id in lead_ids)


def test_failed_lead_delete_leaves_offers_linked(db, manager, csrf, monkeypatch):
    lead, offers = _lead_with_offers(db, manager, csrf)
    token = csrf(manager)

    def _fail(instance):
        raise SQLAlchemyError("disk I/O error")

    monkeypatch.setattr(db, "delete", _fail)
    result = LeadService(db).delete_lead(manager, lead.id, csrf_token=token)
    monkeypatch.undo()

    assert result.error_code == "operation_failed"
    assert db.get(Lead, lead.id) is not None
    lead_ids = db.scalars(select(Offer.lead_id).where(Offer.id.in_([offer.id for offer in offers]))).all()
    assert lead_ids == [lead.id] * 3


def test_list_leads_filters_by_status_and_searches_contact(db, manager, csrf):
    contact = ContactService(db).create_contact(
        manager, {"first_name": "Astrid", "last_name": "Holm"}, csrf_token=csrf(manager)
    ).value
    LeadService(db).create_lead(manager, {"title": "Portal", "contact_id": contact.id}, csrf_token=csrf(manager))
    LeadService(db).create_lead(manager, {"title": "Shop", "status": "won"}, csrf_token=csrf(manager))

    won = LeadService(db).list_leads(manager, ListQuery(status="won")).value
    assert [lead.title for lead in won.items] == ["Shop"]
    assert won.statuses == ["new", "won"]

    by_contact = LeadService(db).list_leads(manager, ListQuery(search="astrid holm")).value
    assert [lead.title for lead in by_contact.items] == ["Portal"]

    invalid = LeadService(db).list_leads(manager, ListQuery(status="bogus"))
    assert invalid.error_code == "validation_error"


def test_offer_prefills_business_and_contact_from_lead(db, manager, csrf):
    business = BusinessService(db).create_business(manager, {"name": "Solberg AS"}, csrf_token=csrf(manager)).value
    lead = LeadService(db).create_lead(
        manager, {"title": "Support deal", "business_id": business.id}, csrf_token=csrf(manager)
    ).value

    offer = OfferService(db).create_offer(
        manager, {"title": "Support offer", "lead_id": lead.id}, csrf_token=csrf(manager)
    ).value
    assert offer.business_id == business.id
    assert offer.status == OfferStatus.DRAFT
    assert offer.amount == Decimal("0")


def test_offer_linked_to_project_cannot_be_deleted(db, manager, csrf):
    offer = OfferService(db).create_offer(
        manager, {"title": "Accepted", "amount": "900", "status": "accepted"}, csrf_token=csrf(manager)
    ).value
    db.add(Project(name="Delivery", offer_id=offer.id))
    db.commit()

    result = OfferService(db).delete_offer(manager, offer.id, csrf_token=csrf(manager))
    assert result.error_code == "conflict"
    assert "1 project" in result.message
