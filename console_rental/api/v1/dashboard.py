from datetime import datetime, timedelta

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from console_rental.api.dependencies import (
    get_catalog_service,
    get_factory,
    get_member_service,
    get_now,
    get_rental_manager,
    get_session,
)
from console_rental.core.utils import local_midnight
from console_rental.db.models import ConsoleStatus
from console_rental.db.repositories import MembershipTransactionRepository
from console_rental.schemas import DashboardResponse, ProductResponse
from console_rental.services.catalog import CatalogService
from console_rental.services.factory import ServiceFactory
from console_rental.services.members import MemberService
from console_rental.services.rental import RentalSessionManager

CHART_DAYS = 7

router = APIRouter()


@router.get("/dashboard", response_model=DashboardResponse)
def dashboard(
    now: datetime = Depends(get_now),
    factory: ServiceFactory = Depends(get_factory),
    manager: RentalSessionManager = Depends(get_rental_manager),
    catalog: CatalogService = Depends(get_catalog_service),
    members: MemberService = Depends(get_member_service),
    session: Session = Depends(get_session),
):
    history = factory.history
    chart_start = local_midnight(now, factory.zone) - timedelta(days=CHART_DAYS - 1)

    # running totals are refreshed in memory only; the session is never committed
    manager.tick_all(now)
    active = manager.list_active()
    closed = manager.rental_repo.list_closed_between(chart_start)
    transactions = MembershipTransactionRepository(session).list_between(chart_start)

    consoles = catalog.list_consoles()
    return DashboardResponse(
        today_revenue=history.today_revenue(active + closed, transactions, now),
        active_sessions=len(active),
        available_consoles=sum(1 for c in consoles if c.status == ConsoleStatus.AVAILABLE.value),
        revenue_chart=history.revenue_chart(closed, transactions, now, days=CHART_DAYS),
        low_stock=[ProductResponse.model_validate(p) for p in catalog.low_stock()],
        expiring_members=members.expiring_soon(now, factory.settings.expiring_within_days),
    )
