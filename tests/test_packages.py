from datetime import datetime, timedelta

import pytest

from console_rental.core.exceptions import IneligiblePackageError, ValidationError
from console_rental.core.utils import get_zone
from console_rental.db.models import CartLineItem, Member, MemberPackage
from console_rental.services.packages import PackageLedger

TZ = get_zone("Asia/Jakarta")
NOW = datetime(2024, 3, 15, 12, 0, tzinfo=TZ)


@pytest.fixture
def ledger():
    return PackageLedger(TZ)


@pytest.fixture
def member():
    return Member(id="m-1", name="Budi", phone="0812", total_rentals_count=0, total_cash_spend=0)


def make_package(member, types="PS4,PS5", minutes=600, drinks=3, expiry=None, pid="pkg-1"):
    package = MemberPackage(
        id=pid,
        position=len(member.packages),
        package_kind="Basic",
        remaining_minutes=minutes,
        initial_minutes=600,
        remaining_drink_credits=drinks,
        initial_drink_credits=3,
        expiry_date=expiry or NOW + timedelta(days=10),
        eligible_types=types,
        created_at=NOW - timedelta(days=20),
    )
    member.packages.append(package)
    return package


def drink_line(quantity, price=3000):
    return CartLineItem(
        product_id="p-tea",
        product_name="Es Teh",
        quantity=quantity,
        unit_price=price,
        category="Drink",
        is_complimentary=True,
    )


def test_new_purchase_creates_package_and_transaction(ledger, member):
    result = ledger.apply_purchase(member, "Basic", "restricted", NOW)

    assert not result.is_top_up
    assert member.packages == [result.package]
    assert result.package.remaining_minutes == 600
    assert result.package.remaining_drink_credits == 3
    assert result.package.eligible_types == "PS3"
    assert result.package.expiry_date == NOW + timedelta(days=30)

    tx = result.transaction
    assert tx.amount == 30000
    assert tx.note == "PS3 Only (New)"
    assert tx.member_name == "Budi"


def test_premium_unrestricted_price(ledger, member):
    result = ledger.apply_purchase(member, "Premium", "unrestricted", NOW)
    assert result.transaction.amount == 65000
    assert result.package.remaining_minutes == 840
    assert result.package.expiry_date == NOW + timedelta(days=7)
    assert result.package.eligible_types == "PS4,PS5"


def test_top_up_merges_and_resets_initial_values(ledger, member):
    package = make_package(member, minutes=100, drinks=1)
    old_expiry = package.expiry_date

    result = ledger.apply_purchase(member, "Basic", "unrestricted", NOW)

    assert result.is_top_up
    assert result.package is package
    assert len(member.packages) == 1
    assert package.remaining_minutes == 700
    assert package.initial_minutes == 700
    assert package.remaining_drink_credits == 4
    assert package.initial_drink_credits == 4
    assert package.expiry_date == old_expiry + timedelta(days=30)
    assert result.transaction.note == "PS4/PS5 (Extend/Top Up)"


def test_top_up_on_expired_package_restarts_from_now(ledger, member):
    package = make_package(member, expiry=NOW - timedelta(days=3))

    ledger.apply_purchase(member, "Premium", "unrestricted", NOW)

    assert package.expiry_date == NOW + timedelta(days=7)


def test_other_tier_gets_its_own_package(ledger, member):
    make_package(member, types="PS4,PS5")
    result = ledger.apply_purchase(member, "Basic", "restricted", NOW)
    assert not result.is_top_up
    assert len(member.packages) == 2


def test_unknown_kind_or_tier_is_rejected(ledger, member):
    with pytest.raises(ValidationError):
        ledger.apply_purchase(member, "Gold", "restricted", NOW)
    with pytest.raises(ValidationError):
        ledger.apply_purchase(member, "Basic", "everything", NOW)
    assert member.packages == []


def test_package_with_few_minutes_left_is_still_eligible(ledger, member):
    package = make_package(member, minutes=5)
    assert ledger.find_eligible_package(member, "PS5", NOW) is package


def test_first_matching_package_wins(ledger, member):
    first = make_package(member, types="PS4,PS5", pid="a")
    make_package(member, types="PS5", pid="b")
    assert ledger.find_eligible_package(member, "PS5", NOW) is first


def test_classification_reasons(ledger, member):
    assert ledger.classify_ineligibility(member, "PS5", NOW) == IneligiblePackageError.NO_PACKAGE

    make_package(member, types="PS3", pid="ps3")
    assert ledger.classify_ineligibility(member, "PS5", NOW) == IneligiblePackageError.WRONG_TYPE

    exhausted = make_package(member, types="PS4,PS5", minutes=0, pid="ps45")
    assert ledger.classify_ineligibility(member, "PS5", NOW) == IneligiblePackageError.EXHAUSTED

    exhausted.expiry_date = NOW - timedelta(minutes=1)
    assert ledger.classify_ineligibility(member, "PS5", NOW) == IneligiblePackageError.EXPIRED


def test_package_expiring_exactly_now_is_expired(ledger, member):
    package = make_package(member, expiry=NOW)
    assert ledger.is_expired(package, NOW)
    assert ledger.find_eligible_package(member, "PS5", NOW) is None


def test_settle_uses_available_credits_only(ledger, member):
    package = make_package(member, drinks=2)
    cart = [drink_line(3)]

    result = ledger.settle(member, package, "PS5", 45, cart)

    assert result.drinks_consumed == 2
    assert result.discount_amount == 2 * 3000
    assert package.remaining_drink_credits == 0
    assert result.minutes_deducted == 45
    assert package.remaining_minutes == 555


def test_settle_ignores_regular_items(ledger, member):
    package = make_package(member, drinks=3)
    noodles = CartLineItem(
        product_id="p-noodles",
        product_name="Indomie",
        quantity=2,
        unit_price=8000,
        category="Food",
        is_complimentary=False,
    )
    result = ledger.settle(member, package, "PS5", 10, [noodles, drink_line(1)])
    assert result.drinks_consumed == 1
    assert result.discount_amount == 3000
    assert package.remaining_drink_credits == 2


def test_settle_rounds_minutes_up_and_clamps_at_zero(ledger, member):
    package = make_package(member, minutes=30)
    result = ledger.settle(member, package, "PS5", 45.2, [])
    assert result.minutes_deducted == 46
    assert package.remaining_minutes == 0


def test_record_visit(ledger, member):
    ledger.record_visit(member, 12000)
    ledger.record_visit(member, -5)
    assert member.total_rentals_count == 2
    assert member.total_cash_spend == 12000
