from dataclasses import dataclass
from datetime import datetime
from threading import RLock
from typing import Dict, Optional, Tuple

from loguru import logger

from console_rental.config.settings import Settings
from console_rental.core import permissions
from console_rental.core.exceptions import ValidationError
from console_rental.core.utils import get_zone, to_local
from console_rental.db.models import ConsoleType
from console_rental.db.repositories.pricing import PricingRepository

DAY = "day"
NIGHT = "night"


@dataclass(frozen=True)
class RateChange:
    console_type: str
    period: str
    rate: int


def parse_rate(value) -> int:
    """Non-negative integer rate; negative or unparseable input becomes 0."""
    try:
        rate = int(value)
    except (TypeError, ValueError):
        try:
            rate = int(float(value))
        except (TypeError, ValueError):
            return 0
    return max(0, rate)


class PricingTable:
    """Day/night hourly rates per console type.

    Read on every billing computation, written only by admins.
    """

    def __init__(self, settings: Settings, rates: Optional[Dict[str, Tuple[int, int]]] = None):
        self._lock = RLock()
        self._zone = get_zone(settings.shop_timezone)
        self._day_start = settings.day_start_hour
        self._day_end = settings.day_end_hour
        self._rates: Dict[str, Tuple[int, int]] = dict(
            rates if rates is not None else settings.default_rates()
        )

    def is_day(self, timestamp: datetime) -> bool:
        hour = to_local(timestamp, self._zone).hour
        return self._day_start <= hour < self._day_end

    def rate_for(self, console_type, timestamp: datetime) -> int:
        key = getattr(console_type, "value", console_type)
        with self._lock:
            # unknown types bill at the PS5 row
            day, night = self._rates.get(key) or self._rates.get(ConsoleType.PS5.value, (0, 0))
        return day if self.is_day(timestamp) else night

    def load(
        self, repo: PricingRepository, defaults: Dict[str, Tuple[int, int]], now: datetime
    ) -> None:
        """Read persisted rows; seed defaults for types that have none."""
        rows = {rule.console_type: (rule.day_rate, rule.night_rate) for rule in repo.list_rules()}
        for console_type, (day, night) in defaults.items():
            if console_type not in rows:
                repo.upsert_rule(console_type, day, night, now)
                rows[console_type] = (day, night)
        with self._lock:
            self._rates = rows
        logger.info(f"Pricing table loaded: {rows}")

    def set_rate(
        self, role, console_type, period: str, value, repo: PricingRepository, now: datetime
    ) -> RateChange:
        """Write the new rate to the pricing row without touching the live table.

        The caller commits and then hands the returned change to ``apply``.
        """
        permissions.require(role, permissions.PRICING_SET)
        if period not in (DAY, NIGHT):
            raise ValidationError(f"Unknown pricing period '{period}'")
        try:
            key = ConsoleType(console_type).value
        except ValueError:
            raise ValidationError(f"Unknown console type '{console_type}'")

        rate = parse_rate(value)
        rule = repo.get_rule(key)
        if rule is not None:
            day, night = rule.day_rate, rule.night_rate
        else:
            with self._lock:
                day, night = self._rates.get(key, (0, 0))
        if period == DAY:
            day = rate
        else:
            night = rate

        repo.upsert_rule(key, day, night, now)
        logger.info(f"Rate staged: {key} {period}={rate} by {getattr(role, 'value', role)}")
        return RateChange(console_type=key, period=period, rate=rate)

    def apply(self, change: RateChange) -> None:
        with self._lock:
            day, night = self._rates.get(change.console_type, (0, 0))
            if change.period == DAY:
                day = change.rate
            else:
                night = change.rate
            self._rates[change.console_type] = (day, night)
        logger.info(f"Rate applied: {change.console_type} {change.period}={change.rate}")

    def snapshot(self) -> Dict[str, Tuple[int, int]]:
        with self._lock:
            return dict(self._rates)
