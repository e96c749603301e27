from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from loguru import logger
from sqlalchemy.orm import Session

from console_rental.api.dependencies import (
    commit,
    get_factory,
    get_member_service,
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
from console_rental.schemas import (
    ExpiringMemberData,
    MemberCreateRequest,
    MemberResponse,
    MembershipTransactionData,
    PackageData,
    PurchaseRequest,
    PurchaseResponse,
)
from console_rental.services.factory import ServiceFactory
from console_rental.services.members import MemberService

router = APIRouter()


@router.get("/members", response_model=List[MemberResponse])
def list_members(members: MemberService = Depends(get_member_service)):
    return [MemberResponse.from_member(m) for m in members.list()]


@router.get("/members/expiring", response_model=List[ExpiringMemberData])
def expiring_members(
    within_days: Optional[int] = None,
    now: datetime = Depends(get_now),
    factory: ServiceFactory = Depends(get_factory),
    members: MemberService = Depends(get_member_service),
):
    if within_days is None:
        within_days = factory.settings.expiring_within_days
    return members.expiring_soon(now, within_days)


@router.get("/members/{member_id}", response_model=MemberResponse)
def get_member(member_id: str, members: MemberService = Depends(get_member_service)):
    try:
        return MemberResponse.from_member(members.get(member_id))
    except ConsoleRentalException as e:
        raise to_http_exception(e)


@router.get("/members/{member_id}/transactions", response_model=List[MembershipTransactionData])
def member_transactions(member_id: str, members: MemberService = Depends(get_member_service)):
    try:
        members.get(member_id)
        return [
            MembershipTransactionData.model_validate(tx)
            for tx in members.transaction_repo.list_for_member(member_id)
        ]
    except ConsoleRentalException as e:
        raise to_http_exception(e)


@router.post("/members", response_model=MemberResponse, status_code=201)
def create_member(
    request: MemberCreateRequest,
    now: datetime = Depends(get_now),
    role: Role = Depends(get_role),
    members: MemberService = Depends(get_member_service),
    session: Session = Depends(get_session),
):
    try:
        member = members.register(request.name, request.phone, now, role=role)
        commit(session)
        return MemberResponse.from_member(member)
    except ConsoleRentalException as e:
        session.rollback()
        raise to_http_exception(e)
    except Exception as e:
        session.rollback()
        logger.exception(f"Error registering member: {e}")
        raise internal_error_exception(e)


@router.post("/members/{member_id}/packages", response_model=PurchaseResponse)
def purchase_package(
    member_id: str,
    request: PurchaseRequest,
    now: datetime = Depends(get_now),
    role: Role = Depends(get_role),
    members: MemberService = Depends(get_member_service),
    session: Session = Depends(get_session),
):
    try:
        result = members.purchase(
            role, member_id, request.package_kind, request.eligibility_tier, now
        )
        commit(session)
        member = members.get(member_id)
        return PurchaseResponse(
            member=MemberResponse.from_member(member),
            package=PackageData.from_package(result.package),
            transaction=MembershipTransactionData.model_validate(result.transaction),
            is_top_up=result.is_top_up,
        )
    except ConsoleRentalException as e:
        session.rollback()
        raise to_http_exception(e)
    except Exception as e:
        session.rollback()
        logger.exception(f"Error purchasing package for {member_id}: {e}")
        raise internal_error_exception(e)
