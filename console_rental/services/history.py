from collections import OrderedDict
from datetime import date, datetime, timedelta, tzinfo
from typing import Dict, Iterable, List, Optional, Tuple

from console_rental.core.utils import get_zone, local_midnight, to_local
from console_rental.db.models import Expense, MembershipTransaction, RentalSession
from console_rental.schemas import (
    ChartPoint,
    DailyBucket,
    HistoryDay,
    HistoryEntry,
    HistorySummary,
    HistoryWindow,
)

WINDOW_DAYS = {
    HistoryWindow.LAST_7_DAYS: 7,
    HistoryWindow.LAST_30_DAYS: 30,
}


class HistoryAggregator:
    """Read-only financial reports over sessions, package sales and expenses.

    Rental income is attributed to the session's start time and only closed
    sessions count. Everything is bucketed by shop-local calendar day.
    """

    def __init__(self, zone: Optional[tzinfo] = None):
        self._zone = zone or get_zone("UTC")

    def window_bounds(self, window: HistoryWindow, now: datetime) -> Tuple[datetime, datetime]:
        now = self._local(now)
        window = HistoryWindow(window)
        if window == HistoryWindow.TODAY:
            return local_midnight(now, self._zone), now
        return now - timedelta(days=WINDOW_DAYS[window]), now

    def summarize(
        self,
        sessions: Iterable[RentalSession],
        transactions: Iterable[MembershipTransaction],
        expenses: Iterable[Expense],
        window: HistoryWindow,
        now: datetime,
    ) -> HistorySummary:
        start, end = self.window_bounds(window, now)

        buckets: Dict[date, DailyBucket] = OrderedDict(
            (day, DailyBucket(day=day)) for day in self._days(start.date(), end.date())
        )

        rental_income = 0
        for rental in sessions:
            if rental.is_active:
                continue
            ts = self._local(rental.start_time)
            if not start <= ts <= end:
                continue
            rental_income += rental.total_price or 0
            buckets[ts.date()].income += rental.total_price or 0

        membership_income = 0
        for tx in transactions:
            ts = self._local(tx.timestamp)
            if not start <= ts <= end:
                continue
            membership_income += tx.amount or 0
            buckets[ts.date()].income += tx.amount or 0

        total_expense = 0
        for expense in expenses:
            ts = self._local(expense.timestamp)
            if not start <= ts <= end:
                continue
            total_expense += expense.amount or 0
            buckets[ts.date()].expense += expense.amount or 0

        for bucket in buckets.values():
            bucket.profit = bucket.income - bucket.expense

        total_income = rental_income + membership_income
        return HistorySummary(
            window=window,
            start=start,
            end=end,
            rental_income=rental_income,
            membership_income=membership_income,
            total_income=total_income,
            total_expense=total_expense,
            net_profit=total_income - total_expense,
            daily=list(buckets.values()),
        )

    def timeline(
        self,
        sessions: Iterable[RentalSession],
        transactions: Iterable[MembershipTransaction],
        expenses: Iterable[Expense],
    ) -> List[HistoryEntry]:
        entries: List[HistoryEntry] = []
        for rental in sessions:
            if rental.is_active:
                continue
            entries.append(
                HistoryEntry(
                    entry_type="rental",
                    id=rental.id,
                    timestamp=self._local(rental.start_time),
                    description=f"{rental.console_type} - {rental.customer_name}",
                    amount=rental.total_price or 0,
                )
            )
        for tx in transactions:
            entries.append(
                HistoryEntry(
                    entry_type="membership",
                    id=tx.id,
                    timestamp=self._local(tx.timestamp),
                    description=f"{tx.package_kind} {tx.note or ''} - {tx.member_name}".strip(),
                    amount=tx.amount or 0,
                )
            )
        for expense in expenses:
            entries.append(
                HistoryEntry(
                    entry_type="expense",
                    id=expense.id,
                    timestamp=self._local(expense.timestamp),
                    description=f"{expense.note} ({expense.staff_name})",
                    amount=expense.amount or 0,
                )
            )
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries

    def group_by_day(self, entries: Iterable[HistoryEntry]) -> List[HistoryDay]:
        days: Dict[date, HistoryDay] = OrderedDict()
        for entry in entries:
            day = self._local(entry.timestamp).date()
            if day not in days:
                days[day] = HistoryDay(day=day)
            days[day].entries.append(entry)
        return list(days.values())

    def today_revenue(
        self,
        sessions: Iterable[RentalSession],
        transactions: Iterable[MembershipTransaction],
        now: datetime,
    ) -> int:
        """Closed sessions started today, live totals of running sessions and package sales."""
        start = local_midnight(now, self._zone)
        total = 0
        for rental in sessions:
            if rental.is_active or self._local(rental.start_time) >= start:
                total += rental.total_price or 0
        for tx in transactions:
            if self._local(tx.timestamp) >= start:
                total += tx.amount or 0
        return total

    def revenue_chart(
        self,
        sessions: Iterable[RentalSession],
        transactions: Iterable[MembershipTransaction],
        now: datetime,
        days: int = 7,
    ) -> List[ChartPoint]:
        today = self._local(now).date()
        first = today - timedelta(days=days - 1)
        revenue: Dict[date, int] = OrderedDict((d, 0) for d in self._days(first, today))

        for rental in sessions:
            if rental.is_active:
                continue
            day = self._local(rental.start_time).date()
            if day in revenue:
                revenue[day] += rental.total_price or 0
        for tx in transactions:
            day = self._local(tx.timestamp).date()
            if day in revenue:
                revenue[day] += tx.amount or 0

        return [
            ChartPoint(day=day, label=day.strftime("%a"), revenue=amount)
            for day, amount in revenue.items()
        ]

    @staticmethod
    def _days(first: date, last: date) -> List[date]:
        return [first + timedelta(days=i) for i in range((last - first).days + 1)]

    def _local(self, value: datetime) -> datetime:
        return to_local(value, self._zone)
