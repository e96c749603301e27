from datetime import datetime, timedelta, timezone, tzinfo
from decimal import ROUND_HALF_UP, Decimal

from console_rental.config.settings import Settings
from console_rental.core.utils import ceil_minutes, get_zone, to_local
from console_rental.services.pricing import PricingTable


class BillingCalculator:
    """Turns an interval of play into money.

    Time is billed in fixed quanta. Each quantum costs its share of the hourly
    rate in force at the quantum's first instant, so a quantum straddling the
    day/night boundary bills entirely at the starting rate. A partial trailing
    quantum bills in full.

    Durations are measured on the UTC timeline; the shop's wall clock is only
    consulted to pick the day or night rate.
    """

    def __init__(self, quantum_minutes: int = 6, zone: tzinfo | None = None):
        if quantum_minutes <= 0:
            raise ValueError("quantum_minutes must be positive")
        self.quantum_minutes = quantum_minutes
        self._zone = zone or get_zone("UTC")

    @property
    def zone(self) -> tzinfo:
        return self._zone

    @classmethod
    def from_settings(cls, settings: Settings) -> "BillingCalculator":
        return cls(settings.billing_quantum_min, get_zone(settings.shop_timezone))

    def quanta_between(self, start_time: datetime, end_time: datetime) -> int:
        minutes = self.elapsed_minutes(start_time, end_time)
        return -(-minutes // self.quantum_minutes)

    def cost_of(
        self,
        console_type,
        start_time: datetime,
        end_time: datetime,
        pricing_table: PricingTable,
    ) -> int:
        start = self._utc(start_time)
        end = self._utc(end_time)
        if end <= start:
            return 0

        step = timedelta(minutes=self.quantum_minutes)
        share = Decimal(self.quantum_minutes) / Decimal(60)

        total = Decimal(0)
        current = start
        while current < end:
            rate = pricing_table.rate_for(console_type, current.astimezone(self._zone))
            total += Decimal(rate) * share
            current += step

        return int(total.quantize(Decimal(1), rounding=ROUND_HALF_UP))

    def elapsed_minutes(self, start_time: datetime, end_time: datetime) -> int:
        return ceil_minutes(self._utc(end_time) - self._utc(start_time))

    def _utc(self, value: datetime) -> datetime:
        return to_local(value, self._zone).astimezone(timezone.utc)
