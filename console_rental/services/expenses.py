from datetime import datetime, tzinfo
from typing import List, Optional

from loguru import logger

from console_rental.core import permissions
from console_rental.core.exceptions import ValidationError
from console_rental.core.utils import get_zone, to_local, uuid4
from console_rental.db.database import atomic
from console_rental.db.models import Expense
from console_rental.db.repositories.expense import ExpenseRepository


class ExpenseService:
    def __init__(self, expense_repo: ExpenseRepository, zone: Optional[tzinfo] = None):
        self.expense_repo = expense_repo
        self._zone = zone or get_zone("UTC")

    def record(
        self,
        role,
        note: str,
        amount,
        now: datetime,
        staff_id: str,
        staff_name: str,
    ) -> Expense:
        permissions.require(role, permissions.EXPENSE_RECORD)
        note = (note or "").strip()
        if not note:
            raise ValidationError("Expense note is required")
        try:
            amount = int(amount)
        except (TypeError, ValueError):
            raise ValidationError(f"Expense amount must be a number, got {amount!r}")
        if amount <= 0:
            raise ValidationError("Expense amount must be greater than zero")

        expense = Expense(
            id=uuid4(),
            note=note,
            amount=amount,
            timestamp=to_local(now, self._zone),
            staff_id=staff_id,
            staff_name=staff_name,
        )
        with atomic(self.expense_repo.session):
            self.expense_repo.create_expense(expense)
        logger.info(f"Expense recorded: {amount} '{note}' by {staff_name}")
        return expense

    def list_between(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[Expense]:
        return self.expense_repo.list_between(start, end)
