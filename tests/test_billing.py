from datetime import datetime, timedelta, timezone

import pytest

from console_rental.core.utils import get_zone
from console_rental.services.billing import BillingCalculator
from console_rental.services.pricing import PricingTable

TZ = get_zone("Asia/Jakarta")


@pytest.fixture
def table(settings):
    return PricingTable(settings)


@pytest.fixture
def billing():
    return BillingCalculator(quantum_minutes=6, zone=TZ)


def at(hour, minute=0, day=15):
    return datetime(2024, 3, day, hour, minute, tzinfo=TZ)


def test_end_before_or_equal_start_costs_nothing(billing, table):
    assert billing.cost_of("PS5", at(10), at(10), table) == 0
    assert billing.cost_of("PS5", at(10), at(9), table) == 0


def test_ps5_nine_to_ten_oh_six(billing, table):
    # 11 quanta of 6 minutes at 10000/hr
    assert billing.cost_of("PS5", at(9), at(10, 6), table) == 11000


def test_day_only_interval_bills_day_rate(billing, table):
    assert billing.cost_of("PS4", at(8), at(10), table) == 2 * 7000


def test_night_only_interval_bills_night_rate(billing, table):
    assert billing.cost_of("PS4", at(20), at(22), table) == 2 * 6000


def test_quantum_starting_before_boundary_bills_day_rate(billing, table):
    assert billing.cost_of("PS5", at(17, 58), at(18, 4), table) == 1000


def test_second_quantum_after_boundary_bills_night_rate(billing, table):
    assert billing.cost_of("PS5", at(17, 58), at(18, 5), table) == 1000 + 800


def test_partial_quantum_bills_in_full(billing, table):
    assert billing.cost_of("PS3", at(10), at(10, 1), table) == 500


def test_interval_across_midnight(billing, table):
    # 23:00 -> 01:00 next day, all night rate
    assert billing.cost_of("PS3", at(23), at(1, day=16), table) == 2 * 4000


def test_rounding_half_up(settings, billing):
    table = PricingTable(settings, rates={"PS3": (1235, 1235)})
    # 123.5 per quantum
    assert billing.cost_of("PS3", at(10), at(10, 6), table) == 124


def test_naive_datetimes_are_shop_local(billing, table):
    naive_start = datetime(2024, 3, 15, 9, 0)
    naive_end = datetime(2024, 3, 15, 10, 6)
    assert billing.cost_of("PS5", naive_start, naive_end, table) == 11000


def test_utc_input_is_converted_to_shop_time(billing, table):
    # 02:00 UTC is 09:00 in Jakarta, inside the day window
    start = datetime(2024, 3, 15, 2, 0, tzinfo=timezone.utc)
    assert billing.cost_of("PS5", start, start + timedelta(hours=1), table) == 10000


def test_elapsed_minutes_rounds_up(billing):
    assert billing.elapsed_minutes(at(10), at(10, 0) + timedelta(seconds=61)) == 2
    assert billing.elapsed_minutes(at(10), at(9)) == 0


def test_quanta_between(billing):
    assert billing.quanta_between(at(9), at(10, 6)) == 11
    assert billing.quanta_between(at(9), at(9)) == 0


def test_non_positive_quantum_is_rejected():
    with pytest.raises(ValueError):
        BillingCalculator(quantum_minutes=0)


@pytest.fixture
def berlin(settings):
    zone = get_zone("Europe/Berlin")
    flat = PricingTable(
        settings.model_copy(update={"shop_timezone": "Europe/Berlin"}),
        rates={"PS5": (10000, 10000)},
    )
    return BillingCalculator(quantum_minutes=6, zone=zone), flat, zone


def test_autumn_dst_change_bills_real_elapsed_time(berlin):
    billing, flat, zone = berlin
    # 01:00 CEST -> 03:00 CET is three real hours
    start = datetime(2024, 10, 27, 1, 0, tzinfo=zone)
    end = datetime(2024, 10, 27, 3, 0, tzinfo=zone)

    assert billing.elapsed_minutes(start, end) == 180
    assert billing.cost_of("PS5", start, end, flat) == 30000


def test_spring_dst_change_bills_real_elapsed_time(berlin):
    billing, flat, zone = berlin
    # 01:00 CET -> 04:00 CEST is two real hours
    start = datetime(2024, 3, 31, 1, 0, tzinfo=zone)
    end = datetime(2024, 3, 31, 4, 0, tzinfo=zone)

    assert billing.elapsed_minutes(start, end) == 120
    assert billing.quanta_between(start, end) == 20
    assert billing.cost_of("PS5", start, end, flat) == 20000
