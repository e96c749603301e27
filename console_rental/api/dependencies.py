from datetime import datetime
from typing import Callable, Iterator, Optional

from fastapi import Depends, Header, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from console_rental.core.permissions import Role
from console_rental.db.database import translate_db_error
from console_rental.services.catalog import CatalogService
from console_rental.services.expenses import ExpenseService
from console_rental.services.factory import ServiceFactory
from console_rental.services.history import HistoryAggregator
from console_rental.services.members import MemberService
from console_rental.services.rental import RentalSessionManager


def get_factory(request: Request) -> ServiceFactory:
    return request.app.state.factory


def get_session(request: Request) -> Iterator[Session]:
    session = request.app.state.sessionmaker()
    try:
        yield session
    finally:
        session.close()


def get_clock(request: Request) -> Callable[[], datetime]:
    return request.app.state.clock


def get_now(clock: Callable[[], datetime] = Depends(get_clock)) -> datetime:
    return clock()


def get_role(x_role: Optional[str] = Header("staff", alias="X-Role")) -> Role:
    try:
        return Role((x_role or "").strip().lower())
    except ValueError:
        raise HTTPException(status_code=403, detail=f"Unknown role '{x_role}'")


def get_rental_manager(
    factory: ServiceFactory = Depends(get_factory),
    session: Session = Depends(get_session),
) -> RentalSessionManager:
    return factory.rental_manager(session)


def get_member_service(
    factory: ServiceFactory = Depends(get_factory),
    session: Session = Depends(get_session),
) -> MemberService:
    return factory.member_service(session)


def get_catalog_service(
    factory: ServiceFactory = Depends(get_factory),
    session: Session = Depends(get_session),
) -> CatalogService:
    return factory.catalog_service(session)


def get_expense_service(
    factory: ServiceFactory = Depends(get_factory),
    session: Session = Depends(get_session),
) -> ExpenseService:
    return factory.expense_service(session)


def get_history(factory: ServiceFactory = Depends(get_factory)) -> HistoryAggregator:
    return factory.history


def commit(session: Session) -> None:
    """Commit the request's unit of work, surfacing driver errors as engine errors."""
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        raise translate_db_error(e) from e
