from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import func, select

from weberis.models import AgreementType, BillingCycle, ServiceAgreement
from weberis.services.agreement_service import (
    AgreementTypeService,
    ServiceAgreementService,
    add_months,
    propose_renewal,
)
from weberis.services.business_service import BusinessService


def _business_id(db, actor, csrf):
    return BusinessService(db).create_business(actor, {"name": "Tromsø Data"}, csrf_token=csrf(actor)).value.id


def _agreement(db, actor, csrf, business_id, **fields):
    payload = {
        "title": "Managed hosting",
        "business_id": business_id,
        "start_date": "2025-01-31",
        "price": "499.00",
        **fields,
    }
    result = ServiceAgreementService(db).create_agreement(actor, payload, csrf_token=csrf(actor))
    assert result.ok, result.message
    return result.value


def _type_named(db, name):
    return db.scalars(select(AgreementType).where(AgreementType.name == name)).one()


def test_add_months_clamps_to_month_end():
    assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2025, 11, 15), 3) == date(2026, 2, 15)


def test_propose_renewal_uses_billing_cycle():
    agreement = ServiceAgreement(billing_cycle=BillingCycle.QUARTERLY, price=Decimal("300.00"))
    proposal = propose_renewal(agreement, today=date(2025, 5, 10))
    assert proposal.start_date == date(2025, 5, 10)
    assert proposal.end_date == date(2025, 8, 10)
    assert proposal.renewal_date == date(2025, 8, 10)
    assert proposal.price == Decimal("300.00")

    one_time = ServiceAgreement(billing_cycle=BillingCycle.ONE_TIME, price=Decimal("50.00"))
    proposal = propose_renewal(one_time, today=date(2025, 5, 10))
    assert proposal.end_date == date(2025, 5, 10)
    assert proposal.renewal_date is None


def test_agreement_defaults_to_standard_type(db, manager, csrf):
    agreement = _agreement(db, manager, csrf, _business_id(db, manager, csrf))
    assert agreement.agreement_type == "standard"
    assert agreement.billing_cycle == BillingCycle.MONTHLY


def test_agreement_validates_terms(db, manager, csrf):
    business_id = _business_id(db, manager, csrf)
    service = ServiceAgreementService(db)

    zero_price = service.create_agreement(
        manager,
        {"title": "Free", "business_id": business_id, "start_date": "2025-01-01", "price": "0"},
        csrf_token=csrf(manager),
    )
    assert zero_price.message == "Price must be greater than zero."

    early_end = service.create_agreement(
        manager,
        {
            "title": "Backwards",
            "business_id": business_id,
            "start_date": "2025-02-01",
            "end_date": "2025-01-01",
            "price": "10",
        },
        csrf_token=csrf(manager),
    )
    assert early_end.error_code == "validation_error"

    missing_business = service.create_agreement(
        manager, {"title": "Orphan", "start_date": "2025-02-01", "price": "10"}, csrf_token=csrf(manager)
    )
    assert missing_business.message == "Business is required."


def test_inactive_type_cannot_be_used_for_new_agreements(db, manager, csrf):
    business_id = _business_id(db, manager, csrf)
    hosting = _type_named(db, "hosting")
    AgreementTypeService(db).update_type(manager, hosting.id, {"is_active": False}, csrf_token=csrf(manager))

    result = ServiceAgreementService(db).create_agreement(
        manager,
        {"title": "Hosting", "business_id": business_id, "start_date": "2025-01-01", "price": "10", "agreement_type": "hosting"},
        csrf_token=csrf(manager),
    )
    assert result.message == "Selected agreement type does not exist."


def test_renaming_a_used_type_keeps_its_name(db, manager, csrf):
    business_id = _business_id(db, manager, csrf)
    for _ in range(2):
        _agreement(db, manager, csrf, business_id, agreement_type="premium")
    premium = _type_named(db, "premium")

    result = AgreementTypeService(db).update_type(
        manager, premium.id, {"name": "gold", "label": "Gold tier"}, csrf_token=csrf(manager)
    )
    assert result.ok
    assert result.value.name == "premium"
    assert result.value.label == "Gold tier"
    assert db.scalar(
        select(func.count(ServiceAgreement.id)).where(ServiceAgreement.agreement_type == "premium")
    ) == 2


def test_renaming_an_unused_type(db, manager, csrf):
    created = AgreementTypeService(db).create_type(
        manager, {"name": "Foo", "label": "Foo"}, csrf_token=csrf(manager)
    ).value
    assert created.name == "foo"

    result = AgreementTypeService(db).update_type(manager, created.id, {"name": "bar"}, csrf_token=csrf(manager))
    assert result.value.name == "bar"
    assert db.scalar(select(func.count(ServiceAgreement.id)).where(ServiceAgreement.agreement_type == "foo")) == 0


def test_type_name_must_be_unique_and_usable(db, manager, csrf):
    service = AgreementTypeService(db)
    duplicate = service.create_type(manager, {"name": "Standard", "label": "Again"}, csrf_token=csrf(manager))
    assert duplicate.error_code == "conflict"

    unusable = service.create_type(manager, {"name": "!!!", "label": "Nothing"}, csrf_token=csrf(manager))
    assert unusable.error_code == "validation_error"


def test_used_type_cannot_be_deleted(db, manager, csrf):
    business_id = _business_id(db, manager, csrf)
    _agreement(db, manager, csrf, business_id, agreement_type="maintenance")
    maintenance = _type_named(db, "maintenance")

    result = AgreementTypeService(db).delete_type(manager, maintenance.id, csrf_token=csrf(manager))
    assert result.error_code == "conflict"
    assert "1 service agreement" in result.message


def test_list_types_reports_usage(db, viewer, manager, csrf):
    business_id = _business_id(db, manager, csrf)
    _agreement(db, manager, csrf, business_id)

    rows = AgreementTypeService(db).list_types(viewer).value
    usage = {row["agreement_type"].name: row["usage_count"] for row in rows}
    assert usage == {"hosting": 0, "maintenance": 0, "premium": 0, "standard": 1}


def test_renew_agreement_applies_new_term(db, manager, csrf):
    agreement = _agreement(db, manager, csrf, _business_id(db, manager, csrf), billing_cycle="annually")
    proposal = ServiceAgreementService(db).renewal_proposal(manager, agreement.id, today=date(2026, 1, 31)).value
    assert proposal.end_date == date(2027, 1, 31)

    renewed = ServiceAgreementService(db).renew_agreement(
        manager,
        agreement.id,
        {"start_date": "2026-01-31", "end_date": "2027-01-31", "renewal_date": "2027-01-31"},
        csrf_token=csrf(manager),
    ).value
    assert renewed.start_date == date(2026, 1, 31)
    assert renewed.end_date == date(2027, 1, 31)
    assert renewed.price == Decimal("499.00")
