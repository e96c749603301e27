import math
from datetime import datetime, tzinfo
from typing import List, Optional

from loguru import logger

from console_rental.core import permissions
from console_rental.core.exceptions import NotFoundError, ValidationError
from console_rental.core.locks import KeyedLocks, member_key
from console_rental.core.permissions import Role
from console_rental.core.utils import get_zone, to_local, uuid4
from console_rental.db.database import atomic
from console_rental.db.models import Member
from console_rental.db.repositories.member import MemberRepository
from console_rental.db.repositories.transaction import MembershipTransactionRepository
from console_rental.monitoring.metrics import MetricsCollector
from console_rental.schemas import ExpiringMemberData
from console_rental.services.packages import PackageLedger, PurchaseResult


class MemberService:
    def __init__(
        self,
        member_repo: MemberRepository,
        transaction_repo: MembershipTransactionRepository,
        ledger: PackageLedger,
        locks: KeyedLocks,
        zone: Optional[tzinfo] = None,
    ):
        self.member_repo = member_repo
        self.transaction_repo = transaction_repo
        self.ledger = ledger
        self.locks = locks
        self._zone = zone or get_zone("UTC")
        self._db = member_repo.session

    def get(self, member_id: str) -> Member:
        member = self.member_repo.get_by_id(member_id)
        if not member:
            raise NotFoundError(f"Member {member_id} not found")
        return member

    def list(self) -> List[Member]:
        return self.member_repo.list_all()

    def register(self, name: str, phone: str, now: datetime, role: Role = Role.STAFF) -> Member:
        permissions.require(role, permissions.MEMBER_CREATE)
        name = (name or "").strip()
        phone = (phone or "").strip()
        if not name or not phone:
            raise ValidationError("Member name and phone are required")

        now = to_local(now, self._zone)
        member = Member(
            id=uuid4(),
            name=name,
            phone=phone,
            total_rentals_count=0,
            total_cash_spend=0,
            created_at=now,
            updated_at=now,
        )
        with atomic(self._db):
            self.member_repo.create_member(member)
        logger.info(f"Registered member {member.id} ({member.name})")
        return member

    def purchase(
        self,
        role,
        member_id: str,
        package_kind,
        eligibility_tier,
        now: datetime,
    ) -> PurchaseResult:
        """Buy a new package or top up the one covering the same console types."""
        permissions.require(role, permissions.PACKAGE_PURCHASE)

        with self.locks.hold(member_key(member_id)):
            member = self.get(member_id)
            with atomic(self._db):
                result = self.ledger.apply_purchase(member, package_kind, eligibility_tier, now)
                self.transaction_repo.create_transaction(result.transaction)

        MetricsCollector.record_package_purchase(result.package.package_kind, result.is_top_up)
        return result

    def expiring_soon(self, now: datetime, within_days: int = 3) -> List[ExpiringMemberData]:
        """Packages whose expiry falls within 0..within_days whole days (ceiling)."""
        now = to_local(now, self._zone)
        result = []
        for member in self.member_repo.list_all():
            for package in member.packages:
                seconds = (to_local(package.expiry_date, self._zone) - now).total_seconds()
                days_left = math.ceil(seconds / 86400)
                if 0 <= days_left <= within_days:
                    result.append(
                        ExpiringMemberData(
                            member_id=member.id,
                            member_name=member.name,
                            package_id=package.id,
                            expiry_date=to_local(package.expiry_date, self._zone),
                            days_left=days_left,
                        )
                    )
        result.sort(key=lambda m: m.expiry_date)
        return result
