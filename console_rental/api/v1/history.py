from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from console_rental.api.dependencies import get_history, get_now, get_session
from console_rental.db.repositories import (
    ExpenseRepository,
    MembershipTransactionRepository,
    RentalRepository,
)
from console_rental.schemas import HistoryDay, HistorySummary, HistoryWindow
from console_rental.services.history import HistoryAggregator

router = APIRouter()


def _load(session: Session, start: datetime):
    return (
        RentalRepository(session).list_closed_between(start),
        MembershipTransactionRepository(session).list_between(start),
        ExpenseRepository(session).list_between(start),
    )


@router.get("/history/summary", response_model=HistorySummary)
def history_summary(
    window: HistoryWindow = HistoryWindow.TODAY,
    now: datetime = Depends(get_now),
    history: HistoryAggregator = Depends(get_history),
    session: Session = Depends(get_session),
):
    start, _ = history.window_bounds(window, now)
    sessions, transactions, expenses = _load(session, start)
    return history.summarize(sessions, transactions, expenses, window, now)


@router.get("/history/timeline", response_model=List[HistoryDay])
def history_timeline(
    window: HistoryWindow = HistoryWindow.TODAY,
    now: datetime = Depends(get_now),
    history: HistoryAggregator = Depends(get_history),
    session: Session = Depends(get_session),
):
    start, _ = history.window_bounds(window, now)
    sessions, transactions, expenses = _load(session, start)
    return history.group_by_day(history.timeline(sessions, transactions, expenses))
