from datetime import datetime

from sqlalchemy.orm import Session

from console_rental.config.settings import Settings
from console_rental.core.locks import KeyedLocks
from console_rental.core.utils import get_zone
from console_rental.db.repositories import (
    ConsoleRepository,
    ExpenseRepository,
    MemberRepository,
    MembershipTransactionRepository,
    PricingRepository,
    ProductRepository,
    RentalRepository,
)
from console_rental.services.billing import BillingCalculator
from console_rental.services.catalog import CatalogService
from console_rental.services.expenses import ExpenseService
from console_rental.services.history import HistoryAggregator
from console_rental.services.members import MemberService
from console_rental.services.packages import PackageLedger
from console_rental.services.pricing import PricingTable
from console_rental.services.rental import RentalSessionManager


class ServiceFactory:
    """Process-wide engine state plus per-session service construction.

    The pricing table and the keyed locks are shared by every request and by
    the ticker; repositories and services are built per database session.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self.zone = get_zone(settings.shop_timezone)
        self.locks = KeyedLocks()
        self.pricing_table = PricingTable(settings)
        self.billing = BillingCalculator.from_settings(settings)
        self.ledger = PackageLedger(self.zone)
        self.history = HistoryAggregator(self.zone)

    def load_pricing(self, session: Session, now: datetime) -> None:
        self.pricing_table.load(PricingRepository(session), self.settings.default_rates(), now)

    def rental_manager(self, session: Session) -> RentalSessionManager:
        return RentalSessionManager(
            ConsoleRepository(session),
            MemberRepository(session),
            ProductRepository(session),
            RentalRepository(session),
            self.pricing_table,
            self.billing,
            self.ledger,
            self.locks,
        )

    def member_service(self, session: Session) -> MemberService:
        return MemberService(
            MemberRepository(session),
            MembershipTransactionRepository(session),
            self.ledger,
            self.locks,
            self.zone,
        )

    def catalog_service(self, session: Session) -> CatalogService:
        return CatalogService(
            ConsoleRepository(session),
            ProductRepository(session),
            self.locks,
            self.settings.low_stock_threshold,
        )

    def expense_service(self, session: Session) -> ExpenseService:
        return ExpenseService(ExpenseRepository(session), self.zone)
