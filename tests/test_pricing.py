from datetime import datetime

import pytest

from console_rental.core.exceptions import PermissionDeniedError, ValidationError
from console_rental.core.permissions import Role
from console_rental.core.utils import get_zone
from console_rental.db.repositories.pricing import PricingRepository
from console_rental.services.pricing import PricingTable, RateChange, parse_rate

TZ = get_zone("Asia/Jakarta")
NOON = datetime(2024, 3, 15, 12, 0, tzinfo=TZ)
EVENING = datetime(2024, 3, 15, 19, 0, tzinfo=TZ)


@pytest.fixture
def repo(sqlite_session):
    return PricingRepository(sqlite_session)


@pytest.fixture
def table(settings, repo, sqlite_session):
    table = PricingTable(settings)
    table.load(repo, settings.default_rates(), NOON)
    sqlite_session.commit()
    return table


def test_day_window_boundaries(settings):
    table = PricingTable(settings)
    assert table.is_day(datetime(2024, 3, 15, 6, 0, tzinfo=TZ))
    assert table.is_day(datetime(2024, 3, 15, 17, 59, tzinfo=TZ))
    assert not table.is_day(datetime(2024, 3, 15, 18, 0, tzinfo=TZ))
    assert not table.is_day(datetime(2024, 3, 15, 5, 59, tzinfo=TZ))


def test_default_rates(settings):
    table = PricingTable(settings)
    assert table.rate_for("PS3", NOON) == 5000
    assert table.rate_for("PS3", EVENING) == 4000
    assert table.rate_for("PS5", NOON) == 10000


def test_unknown_console_type_falls_back_to_ps5_row(settings):
    table = PricingTable(settings)
    assert table.rate_for("PS2", NOON) == 10000
    assert table.rate_for("PS2", EVENING) == 8000


@pytest.mark.parametrize(
    "value,expected",
    [("7500", 7500), (-100, 0), ("abc", 0), (None, 0), ("12.9", 12)],
)
def test_parse_rate(value, expected):
    assert parse_rate(value) == expected


def test_admin_sets_rate_and_it_is_persisted(table, repo, sqlite_session):
    change = table.set_rate(Role.ADMIN, "PS4", "day", "7500", repo, NOON)
    assert change == RateChange(console_type="PS4", period="day", rate=7500)

    # staged only: billing keeps the old rate until the write is committed
    assert table.rate_for("PS4", NOON) == 7000

    sqlite_session.commit()
    table.apply(change)

    assert table.rate_for("PS4", NOON) == 7500
    assert table.rate_for("PS4", EVENING) == 6000
    rule = repo.get_rule("PS4")
    assert (rule.day_rate, rule.night_rate) == (7500, 6000)
    assert rule.updated_at.replace(tzinfo=None) == NOON.replace(tzinfo=None)


def test_rolled_back_rate_never_reaches_live_table(table, repo, sqlite_session):
    table.set_rate(Role.ADMIN, "PS5", "day", 1, repo, NOON)
    sqlite_session.rollback()

    assert table.rate_for("PS5", NOON) == 10000
    assert repo.get_rule("PS5").day_rate == 10000


def test_negative_rate_is_clamped(table, repo):
    table.apply(table.set_rate(Role.ADMIN, "PS3", "night", -5, repo, NOON))
    assert table.rate_for("PS3", EVENING) == 0


def test_staff_cannot_set_rates(table, repo):
    with pytest.raises(PermissionDeniedError):
        table.set_rate(Role.STAFF, "PS5", "day", 1, repo, NOON)
    assert table.rate_for("PS5", NOON) == 10000


def test_unknown_period_or_type_is_rejected(settings, repo):
    table = PricingTable(settings)
    with pytest.raises(ValidationError):
        table.set_rate(Role.ADMIN, "PS5", "weekend", 1, repo, NOON)
    with pytest.raises(ValidationError):
        table.set_rate(Role.ADMIN, "XBOX", "day", 1, repo, NOON)


def test_load_seeds_missing_rows_and_keeps_existing(settings, repo, sqlite_session):
    repo.upsert_rule("PS3", 4500, 3500, NOON)
    sqlite_session.commit()

    table = PricingTable(settings, rates={})
    table.load(repo, settings.default_rates(), NOON)

    assert table.snapshot()["PS3"] == (4500, 3500)
    assert table.snapshot()["PS5"] == (10000, 8000)
    assert {r.console_type for r in repo.list_rules()} == {"PS3", "PS4", "PS5"}
