from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends
from loguru import logger
from sqlalchemy.orm import Session

from console_rental.api.dependencies import (
    commit,
    get_factory,
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
from console_rental.db.repositories.pricing import PricingRepository
from console_rental.schemas import PricingRuleData, SetRateRequest
from console_rental.services.factory import ServiceFactory

router = APIRouter()


def _rules(factory: ServiceFactory) -> List[PricingRuleData]:
    return [
        PricingRuleData(console_type=console_type, day_rate=day, night_rate=night)
        for console_type, (day, night) in sorted(factory.pricing_table.snapshot().items())
    ]


@router.get("/pricing", response_model=List[PricingRuleData])
def list_pricing(factory: ServiceFactory = Depends(get_factory)):
    return _rules(factory)


@router.put("/pricing", response_model=List[PricingRuleData])
def set_rate(
    request: SetRateRequest,
    now: datetime = Depends(get_now),
    role: Role = Depends(get_role),
    factory: ServiceFactory = Depends(get_factory),
    session: Session = Depends(get_session),
):
    try:
        change = factory.pricing_table.set_rate(
            role,
            request.console_type,
            request.period,
            request.value,
            PricingRepository(session),
            now,
        )
        commit(session)
        # the live table only moves once the row is durable
        factory.pricing_table.apply(change)
        return _rules(factory)
    except ConsoleRentalException as e:
        session.rollback()
        raise to_http_exception(e)
    except Exception as e:
        session.rollback()
        logger.exception(f"Error setting rate: {e}")
        raise internal_error_exception(e)
