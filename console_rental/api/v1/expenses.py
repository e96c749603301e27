from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from loguru import logger
from sqlalchemy.orm import Session

from console_rental.api.dependencies import (
    commit,
    get_expense_service,
    get_now,
    get_role,
    get_session,
)
from console_rental.core.exceptions import (
    ConsoleRentalException,
    internal_error_exception,
    to_http_exception,
)
from console_rental.core.permissions import Role
from console_rental.schemas import ExpenseCreateRequest, ExpenseResponse
from console_rental.services.expenses import ExpenseService

router = APIRouter()


@router.get("/expenses", response_model=List[ExpenseResponse])
def list_expenses(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    expenses: ExpenseService = Depends(get_expense_service),
):
    return [ExpenseResponse.model_validate(e) for e in expenses.list_between(start, end)]


@router.post("/expenses", response_model=ExpenseResponse, status_code=201)
def record_expense(
    request: ExpenseCreateRequest,
    now: datetime = Depends(get_now),
    role: Role = Depends(get_role),
    expenses: ExpenseService = Depends(get_expense_service),
    session: Session = Depends(get_session),
):
    try:
        expense = expenses.record(
            role, request.note, request.amount, now, request.staff_id, request.staff_name
        )
        commit(session)
        return ExpenseResponse.model_validate(expense)
    except ConsoleRentalException as e:
        session.rollback()
        raise to_http_exception(e)
    except Exception as e:
        session.rollback()
        logger.exception(f"Error recording expense: {e}")
        raise internal_error_exception(e)
