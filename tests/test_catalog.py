from datetime import datetime, timedelta

import pytest

from console_rental.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from console_rental.core.permissions import Role
from console_rental.core.utils import get_zone

TZ = get_zone("Asia/Jakarta")
NOW = datetime(2024, 3, 15, 12, 0, tzinfo=TZ)


@pytest.fixture
def catalog(factory, sqlite_session):
    return factory.catalog_service(sqlite_session)


@pytest.fixture
def expenses(factory, sqlite_session):
    return factory.expense_service(sqlite_session)


def test_admin_creates_console(catalog, sqlite_session):
    console = catalog.create_console(Role.ADMIN, " TV 9 ", "PS5")
    sqlite_session.commit()
    assert console.name == "TV 9"
    assert console.status == "available"
    assert [c.id for c in catalog.list_consoles()] == [console.id]


def test_staff_cannot_manage_consoles(catalog, consoles):
    with pytest.raises(PermissionDeniedError):
        catalog.create_console(Role.STAFF, "TV 9", "PS5")
    with pytest.raises(PermissionDeniedError):
        catalog.delete_console(Role.STAFF, "tv-1")


def test_console_validation(catalog):
    with pytest.raises(ValidationError):
        catalog.create_console(Role.ADMIN, "   ", "PS5")
    with pytest.raises(ValidationError):
        catalog.create_console(Role.ADMIN, "TV 9", "XBOX")


def test_busy_console_cannot_go_to_maintenance_or_be_deleted(catalog, manager, consoles):
    manager.open("tv-1", NOW)
    with pytest.raises(ConflictError):
        catalog.update_console(Role.ADMIN, "tv-1", status="maintenance")
    with pytest.raises(ConflictError):
        catalog.delete_console(Role.ADMIN, "tv-1")


def test_idle_console_maintenance_round_trip(catalog, consoles, sqlite_session):
    catalog.update_console(Role.ADMIN, "tv-2", status="maintenance")
    sqlite_session.commit()
    assert consoles["ps4"].status == "maintenance"

    catalog.update_console(Role.ADMIN, "tv-2", status="available", name="TV Two")
    assert consoles["ps4"].status == "available"
    assert consoles["ps4"].name == "TV Two"


def test_delete_idle_console(catalog, consoles, sqlite_session):
    catalog.delete_console(Role.ADMIN, "tv-2")
    sqlite_session.commit()
    with pytest.raises(NotFoundError):
        catalog.get_console("tv-2")


def test_product_permissions(catalog, products):
    with pytest.raises(PermissionDeniedError):
        catalog.create_product(Role.STAFF, "Kopi", 4000, "Drink")
    with pytest.raises(PermissionDeniedError):
        catalog.delete_product(Role.STAFF, "p-tea")

    updated = catalog.update_product(Role.STAFF, "p-noodles", stock="12")
    assert updated.stock == 12


def test_product_validation(catalog, products):
    with pytest.raises(ValidationError):
        catalog.create_product(Role.ADMIN, "Kopi", -1, "Drink")
    with pytest.raises(ValidationError):
        catalog.create_product(Role.ADMIN, "", 4000, "Drink")
    with pytest.raises(ValidationError):
        catalog.create_product(Role.ADMIN, "Kopi", 4000, "Snack")
    with pytest.raises(ValidationError):
        catalog.update_product(Role.ADMIN, "p-tea", stock=-3)
    assert products["tea"].stock == 50


def test_low_stock_uses_threshold(catalog, products):
    assert [p.id for p in catalog.low_stock()] == ["p-noodles"]
    assert {p.id for p in catalog.low_stock(threshold=25)} == {"p-noodles", "p-stick"}


def test_register_member_requires_name_and_phone(members):
    with pytest.raises(ValidationError):
        members.register("", "0812", NOW)
    with pytest.raises(ValidationError):
        members.register("Budi", "  ", NOW)


def test_purchase_records_transaction(members, sqlite_session):
    member = members.register("Budi", "0812", NOW)
    result = members.purchase(Role.STAFF, member.id, "Premium", "restricted", NOW)
    sqlite_session.commit()

    history = members.transaction_repo.list_for_member(member.id)
    assert [tx.id for tx in history] == [result.transaction.id]
    assert history[0].amount == 39000

    again = members.purchase(Role.STAFF, member.id, "Basic", "restricted", NOW)
    sqlite_session.commit()
    assert again.is_top_up
    assert again.package.remaining_minutes == 840 + 600
    assert len(members.transaction_repo.list_for_member(member.id)) == 2


def test_purchase_for_unknown_member(members):
    with pytest.raises(NotFoundError):
        members.purchase(Role.STAFF, "ghost", "Basic", "restricted", NOW)


def test_expiring_soon(members, sqlite_session):
    soon = members.register("Budi", "0812", NOW)
    later = members.register("Citra", "0813", NOW)
    members.purchase(Role.STAFF, soon.id, "Premium", "restricted", NOW - timedelta(days=5))
    members.purchase(Role.STAFF, later.id, "Basic", "restricted", NOW)
    sqlite_session.commit()

    expiring = members.expiring_soon(NOW, within_days=3)

    assert [(e.member_id, e.days_left) for e in expiring] == [(soon.id, 2)]


def test_record_expense(expenses, sqlite_session):
    expense = expenses.record(Role.STAFF, "Galon air", "15000", NOW, "s-1", "Sari")
    sqlite_session.commit()
    assert expense.amount == 15000
    assert [e.id for e in expenses.list_between(NOW - timedelta(hours=1))] == [expense.id]


@pytest.mark.parametrize("note,amount", [("", 1000), ("Galon", 0), ("Galon", -5), ("Galon", "x")])
def test_invalid_expense(expenses, note, amount):
    with pytest.raises(ValidationError):
        expenses.record(Role.STAFF, note, amount, NOW, "s-1", "Sari")
