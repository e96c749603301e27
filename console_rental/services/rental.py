from contextlib import nullcontext
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from loguru import logger

from console_rental.core import permissions
from console_rental.core.exceptions import (
    ConflictError,
    IneligiblePackageError,
    NotFoundError,
    ValidationError,
)
from console_rental.core.locks import KeyedLocks, console_key, member_key
from console_rental.core.permissions import Role
from console_rental.core.utils import to_local, uuid4
from console_rental.db.database import atomic
from console_rental.db.models import (
    CartLineItem,
    ConsoleStatus,
    RentalSession,
)
from console_rental.db.repositories.console import ConsoleRepository
from console_rental.db.repositories.member import MemberRepository
from console_rental.db.repositories.product import ProductRepository
from console_rental.db.repositories.rental import RentalRepository
from console_rental.monitoring.metrics import MetricsCollector
from console_rental.schemas import SessionSnapshot
from console_rental.services.billing import BillingCalculator
from console_rental.services.packages import PackageLedger, SettlementResult
from console_rental.services.pricing import PricingTable

WALK_IN = "Walk-in"


@dataclass
class OpenSessionResult:
    session: RentalSession
    warning: Optional[str] = None

    @property
    def warning_message(self) -> Optional[str]:
        if self.warning is None:
            return None
        return IneligiblePackageError.MESSAGES.get(self.warning, self.warning)


@dataclass
class CloseResult:
    session: RentalSession
    settlement: Optional[SettlementResult] = None


@dataclass
class TickReport:
    ticked: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def parse_override(value) -> Optional[int]:
    """Operator fee override: clamped at 0, no upper bound."""
    if value is None or value == "":
        return None
    try:
        amount = int(value)
    except (TypeError, ValueError):
        try:
            amount = int(float(value))
        except (TypeError, ValueError):
            raise ValidationError(f"Rental fee override must be numeric, got {value!r}")
    return max(0, amount)


class RentalSessionManager:
    """Per-console session state machine: available -> active -> available."""

    def __init__(
        self,
        console_repo: ConsoleRepository,
        member_repo: MemberRepository,
        product_repo: ProductRepository,
        rental_repo: RentalRepository,
        pricing_table: PricingTable,
        billing: BillingCalculator,
        ledger: PackageLedger,
        locks: KeyedLocks,
    ):
        self.console_repo = console_repo
        self.member_repo = member_repo
        self.product_repo = product_repo
        self.rental_repo = rental_repo
        self.pricing_table = pricing_table
        self.billing = billing
        self.ledger = ledger
        self.locks = locks
        self._db = rental_repo.session

    # --- lookups ---

    def get(self, session_id: str) -> RentalSession:
        rental = self.rental_repo.get_by_id(session_id)
        if not rental:
            raise NotFoundError(f"Session {session_id} not found")
        return rental

    def active_for_console(self, console_id: str) -> Optional[RentalSession]:
        return self.rental_repo.get_active_for_console(console_id)

    def list_active(self) -> List[RentalSession]:
        return self.rental_repo.list_active()

    def _get_active(self, session_id: str) -> RentalSession:
        rental = self.rental_repo.get_by_id(session_id)
        if not rental or not rental.is_active:
            raise NotFoundError(f"No active session {session_id}")
        return rental

    # --- state transitions ---

    def open(
        self,
        console_id: str,
        now: datetime,
        member_id: Optional[str] = None,
        customer_name: Optional[str] = None,
        role: Role = Role.STAFF,
    ) -> OpenSessionResult:
        permissions.require(role, permissions.SESSION_OPEN)

        with self.locks.hold(console_key(console_id)):
            console = self.console_repo.get_by_id(console_id)
            if not console:
                raise NotFoundError(f"Console {console_id} not found")
            if console.status == ConsoleStatus.MAINTENANCE.value:
                raise ConflictError(f"Console {console_id} is under maintenance")
            if console.active_session_id or self.rental_repo.get_active_for_console(console_id):
                logger.warning(f"Console {console_id} already has an active session")
                raise ConflictError(f"Console {console_id} already has an active session")

            member = None
            package = None
            warning = None
            if member_id:
                member = self.member_repo.get_by_id(member_id)
                if not member:
                    raise NotFoundError(f"Member {member_id} not found")
                package = self.ledger.find_eligible_package(member, console.console_type, now)
                if package is None:
                    warning = self.ledger.classify_ineligibility(
                        member, console.console_type, now
                    )

            name = member.name if member else (customer_name or "").strip() or WALK_IN

            rental = RentalSession(
                id=uuid4(),
                console_id=console.id,
                console_type=console.console_type,
                member_id=member.id if member else None,
                customer_name=name,
                package_id=package.id if package else None,
                start_time=to_local(now, self.billing.zone),
                end_time=None,
                is_active=True,
                is_membership_backed=package is not None,
                subtotal_rental=0,
                subtotal_items=0,
                discount_amount=0,
                total_price=0,
                calculated_rental_fee=0,
            )

            with atomic(self._db):
                self.rental_repo.create_session(rental)
                console.active_session_id = rental.id
                console.status = ConsoleStatus.IN_USE.value

        MetricsCollector.record_session_opened(rental.is_membership_backed)
        if warning:
            logger.info(
                f"Session {rental.id} opened on {console_id} as cash for member "
                f"{member_id}: {warning}"
            )
        else:
            logger.info(
                f"Session {rental.id} opened on {console_id} "
                f"({'package' if rental.is_membership_backed else 'cash'})"
            )
        return OpenSessionResult(session=rental, warning=warning)

    def add_item(self, session_id: str, product_id: str, role: Role = Role.STAFF) -> RentalSession:
        permissions.require(role, permissions.SESSION_ADD_ITEM)

        rental = self._get_active(session_id)
        with self.locks.hold(console_key(rental.console_id)):
            # a close may have won the lock while we waited
            self._db.refresh(rental)
            if not rental.is_active:
                raise NotFoundError(f"No active session {session_id}")

            product = self.product_repo.get_by_id(product_id)
            if not product:
                raise NotFoundError(f"Product {product_id} not found")

            with atomic(self._db):
                line = next((i for i in rental.items if i.product_id == product_id), None)
                if line is not None:
                    line.quantity += 1
                else:
                    rental.items.append(
                        CartLineItem(
                            position=len(rental.items),
                            product_id=product.id,
                            product_name=product.name,
                            quantity=1,
                            unit_price=product.price,
                            category=product.category,
                            is_complimentary=bool(product.is_complimentary),
                        )
                    )
                rental.subtotal_items = self._items_subtotal(rental)
                rental.total_price = max(0, (rental.subtotal_rental or 0) + rental.subtotal_items)

        logger.debug(f"Added {product.name} to session {session_id}")
        return rental

    def tick(self, session_id: str, now: datetime) -> SessionSnapshot:
        """Running totals as of ``now``. A closed session comes back as frozen at close."""
        rental = self.get(session_id)
        if rental.is_active:
            self._recompute(rental, now)
        return SessionSnapshot.from_session(rental)

    def tick_all(self, now: datetime, blocking: bool = False) -> TickReport:
        """Advisory recomputation for live display; busy consoles are skipped."""
        report = TickReport()
        for rental in self.rental_repo.list_active():
            if blocking:
                with self.locks.hold(console_key(rental.console_id)):
                    self._recompute(rental, now)
                report.ticked.append(rental.id)
                continue
            with self.locks.try_hold(console_key(rental.console_id)) as acquired:
                if not acquired:
                    report.skipped.append(rental.id)
                    continue
                self._recompute(rental, now)
                report.ticked.append(rental.id)
        return report

    def close(
        self,
        session_id: str,
        now: datetime,
        rental_fee_override=None,
        role: Role = Role.STAFF,
    ) -> CloseResult:
        permissions.require(role, permissions.SESSION_CLOSE)
        override = parse_override(rental_fee_override)
        if override is not None:
            permissions.require(role, permissions.SESSION_OVERRIDE_FEE)

        rental = self.get(session_id)

        with self.locks.hold(console_key(rental.console_id)):
            self._db.refresh(rental)
            if not rental.is_active:
                raise ConflictError(f"Session {session_id} is already closed")

            member_lock = (
                self.locks.hold(member_key(rental.member_id)) if rental.member_id else nullcontext()
            )
            with member_lock:
                with atomic(self._db):
                    settlement = self._settle_and_close(rental, now, override, role)

        minutes = self.billing.elapsed_minutes(rental.start_time, rental.end_time)
        MetricsCollector.record_session_closed(
            rental.is_membership_backed, rental.total_price, minutes
        )
        if settlement:
            MetricsCollector.record_settlement(
                settlement.minutes_deducted, settlement.drinks_consumed
            )
        if override is not None:
            MetricsCollector.record_override(
                str(getattr(role, "value", role)), rental.calculated_rental_fee, override
            )
            logger.warning(
                f"AUDIT rental fee override on session {rental.id}: "
                f"calculated={rental.calculated_rental_fee}, charged={override}, "
                f"role={getattr(role, 'value', role)}"
            )

        logger.info(
            f"Session {rental.id} closed: minutes={minutes}, "
            f"rental={rental.subtotal_rental}, items={rental.subtotal_items}, "
            f"discount={rental.discount_amount}, total={rental.total_price}"
        )
        return CloseResult(session=rental, settlement=settlement)

    # --- internals ---

    def _settle_and_close(
        self, rental: RentalSession, now: datetime, override: Optional[int], role
    ) -> Optional[SettlementResult]:
        end_time = to_local(now, self.billing.zone)

        member = self.member_repo.get_by_id(rental.member_id) if rental.member_id else None
        settlement = None
        discount = 0

        if rental.is_membership_backed:
            calculated = 0
            package = self.ledger.get_package(member, rental.package_id) if member else None
            if package is not None:
                elapsed = self.billing.elapsed_minutes(rental.start_time, end_time)
                settlement = self.ledger.settle(
                    member, package, rental.console_type, elapsed, rental.items
                )
                discount = settlement.discount_amount
            else:
                # package record vanished while the session ran: bill the time in cash
                calculated = self._rental_fee(rental, end_time, force_cash=True)
                logger.warning(
                    f"Package {rental.package_id} missing at close of {rental.id}; "
                    f"billing {calculated} in cash"
                )
        else:
            calculated = self._rental_fee(rental, end_time)

        subtotal_items = self._items_subtotal(rental)
        subtotal_rental = override if override is not None else calculated

        rental.calculated_rental_fee = calculated
        rental.rental_fee_override = override
        rental.override_by_role = str(getattr(role, "value", role)) if override is not None else None
        rental.subtotal_rental = subtotal_rental
        rental.subtotal_items = subtotal_items
        rental.discount_amount = discount
        rental.total_price = max(0, subtotal_rental + subtotal_items - discount)
        rental.is_active = False
        rental.end_time = end_time

        console = self.console_repo.get_by_id(rental.console_id)
        if console and console.active_session_id == rental.id:
            console.active_session_id = None
            if console.status == ConsoleStatus.IN_USE.value:
                console.status = ConsoleStatus.AVAILABLE.value

        if member is not None:
            self.ledger.record_visit(member, rental.total_price)

        return settlement

    def _recompute(self, rental: RentalSession, now: datetime) -> None:
        fee = self._rental_fee(rental, now)
        items = self._items_subtotal(rental)
        rental.subtotal_rental = fee
        rental.subtotal_items = items
        rental.discount_amount = 0
        rental.total_price = max(0, fee + items)

    def _rental_fee(self, rental: RentalSession, now: datetime, force_cash: bool = False) -> int:
        if rental.is_membership_backed and not force_cash:
            return 0
        return self.billing.cost_of(
            rental.console_type, rental.start_time, now, self.pricing_table
        )

    @staticmethod
    def _items_subtotal(rental: RentalSession) -> int:
        return sum(item.quantity * item.unit_price for item in rental.items)
