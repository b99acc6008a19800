from __future__ import annotations

from weberis.models import Base
import weberis.models  # noqa: F401


def test_model_metadata_contains_crm_tables():
    expected = {
        "roles",
        "permissions",
        "role_permissions",
        "users",
        "user_sessions",
        "businesses",
        "contacts",
        "leads",
        "offers",
        "projects",
        "tasks",
        "agreement_types",
        "service_agreements",
        "settings",
        "notifications",
        "time_entries",
    }
    assert expected.issubset(set(Base.metadata.tables.keys()))


def test_service_agreement_business_reference_is_restricted():
    column = Base.metadata.tables["service_agreements"].c.business_id
    foreign_key = next(iter(column.foreign_keys))
    assert column.nullable is False
    assert foreign_key.ondelete == "RESTRICT"


def test_time_entries_follow_their_owner_and_outlive_links():
    table = Base.metadata.tables["time_entries"]
    owner = next(iter(table.c.user_id.foreign_keys))
    assert table.c.user_id.nullable is False
    assert owner.ondelete == "CASCADE"
    for column in ("task_id", "project_id", "business_id"):
        assert next(iter(table.c[column].foreign_keys)).ondelete == "SET NULL"
    assert table.c.end_time.nullable is True
