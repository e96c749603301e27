from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from console_rental.db.models import Expense


class ExpenseRepository:
    def __init__(self, session: Session):
        self.session = session

    def create_expense(self, expense: Expense) -> None:
        self.session.add(expense)
        self.session.flush()

    def list_between(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[Expense]:
        query = select(Expense)
        if start is not None:
            query = query.where(Expense.timestamp >= start)
        if end is not None:
            query = query.where(Expense.timestamp < end)
        return list(self.session.execute(query.order_by(Expense.timestamp)).scalars())

    def get_total_amount(self) -> int:
        total = self.session.query(func.coalesce(func.sum(Expense.amount), 0)).scalar()
        return int(total or 0)
