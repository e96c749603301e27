from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends
from loguru import logger
from sqlalchemy.orm import Session

from console_rental.api.dependencies import (
    commit,
    get_now,
    get_rental_manager,
    get_role,
    get_session,
)
from console_rental.core.exceptions import (
    ConsoleRentalException,
    internal_error_exception,
    to_http_exception,
)
from console_rental.core.permissions import Role
from console_rental.schemas import (
    AddItemRequest,
    CloseSessionRequest,
    CloseSessionResponse,
    OpenSessionRequest,
    OpenSessionResponse,
    SessionSnapshot,
    SettlementData,
)
from console_rental.services.rental import RentalSessionManager

router = APIRouter()


@router.get("/sessions", response_model=List[SessionSnapshot])
def list_active_sessions(
    now: datetime = Depends(get_now),
    manager: RentalSessionManager = Depends(get_rental_manager),
):
    # live totals are computed for the response only
    manager.tick_all(now)
    return [SessionSnapshot.from_session(s) for s in manager.list_active()]


@router.post("/sessions", response_model=OpenSessionResponse, status_code=201)
def open_session(
    request: OpenSessionRequest,
    now: datetime = Depends(get_now),
    role: Role = Depends(get_role),
    manager: RentalSessionManager = Depends(get_rental_manager),
    session: Session = Depends(get_session),
):
    try:
        result = manager.open(
            request.console_id,
            now,
            member_id=request.member_id,
            customer_name=request.customer_name,
            role=role,
        )
        commit(session)
        return OpenSessionResponse(
            session=SessionSnapshot.from_session(result.session),
            warning=result.warning,
            warning_message=result.warning_message,
        )
    except ConsoleRentalException as e:
        session.rollback()
        raise to_http_exception(e)
    except Exception as e:
        session.rollback()
        logger.exception(f"Error opening session on {request.console_id}: {e}")
        raise internal_error_exception(e)


@router.post("/sessions/{session_id}/items", response_model=SessionSnapshot)
def add_item(
    session_id: str,
    request: AddItemRequest,
    role: Role = Depends(get_role),
    manager: RentalSessionManager = Depends(get_rental_manager),
    session: Session = Depends(get_session),
):
    try:
        rental = manager.add_item(session_id, request.product_id, role=role)
        commit(session)
        return SessionSnapshot.from_session(rental)
    except ConsoleRentalException as e:
        session.rollback()
        raise to_http_exception(e)
    except Exception as e:
        session.rollback()
        logger.exception(f"Error adding item to {session_id}: {e}")
        raise internal_error_exception(e)


@router.get("/sessions/{session_id}", response_model=SessionSnapshot)
def get_session_status(
    session_id: str,
    now: datetime = Depends(get_now),
    manager: RentalSessionManager = Depends(get_rental_manager),
):
    try:
        return manager.tick(session_id, now)
    except ConsoleRentalException as e:
        raise to_http_exception(e)


@router.post("/sessions/{session_id}/close", response_model=CloseSessionResponse)
def close_session(
    session_id: str,
    request: CloseSessionRequest,
    now: datetime = Depends(get_now),
    role: Role = Depends(get_role),
    manager: RentalSessionManager = Depends(get_rental_manager),
    session: Session = Depends(get_session),
):
    try:
        result = manager.close(
            session_id, now, rental_fee_override=request.rental_fee_override, role=role
        )
        commit(session)
        settlement = None
        if result.settlement is not None:
            settlement = SettlementData(
                package_id=result.settlement.package_id,
                minutes_deducted=result.settlement.minutes_deducted,
                drinks_consumed=result.settlement.drinks_consumed,
                discount_amount=result.settlement.discount_amount,
            )
        return CloseSessionResponse(
            session=SessionSnapshot.from_session(result.session),
            settlement=settlement,
        )
    except ConsoleRentalException as e:
        session.rollback()
        raise to_http_exception(e)
    except Exception as e:
        session.rollback()
        logger.exception(f"Error closing session {session_id}: {e}")
        raise internal_error_exception(e)
