import math
from dataclasses import dataclass
from datetime import datetime, timedelta, tzinfo
from typing import Dict, FrozenSet, Iterable, List, Optional

from loguru import logger

from console_rental.core.exceptions import IneligiblePackageError, ValidationError
from console_rental.core.utils import get_zone, to_local, uuid4
from console_rental.db.models import (
    CartLineItem,
    ConsoleType,
    EligibilityTier,
    Member,
    MemberPackage,
    MembershipTransaction,
    PackageKind,
    encode_console_types,
)


@dataclass(frozen=True)
class PackageDefinition:
    minutes: int
    drink_credits: int
    validity_days: int
    restricted_price: int
    unrestricted_price: int

    def price_for(self, tier: EligibilityTier) -> int:
        if tier == EligibilityTier.RESTRICTED:
            return self.restricted_price
        return self.unrestricted_price


PACKAGE_DEFINITIONS: Dict[PackageKind, PackageDefinition] = {
    PackageKind.BASIC: PackageDefinition(
        minutes=600,  # 10 hours
        drink_credits=3,
        validity_days=30,
        restricted_price=30000,
        unrestricted_price=50000,
    ),
    PackageKind.PREMIUM: PackageDefinition(
        minutes=840,  # 14 hours
        drink_credits=7,
        validity_days=7,
        restricted_price=39000,
        unrestricted_price=65000,
    ),
}

TIER_CONSOLE_TYPES: Dict[EligibilityTier, FrozenSet[ConsoleType]] = {
    EligibilityTier.RESTRICTED: frozenset({ConsoleType.PS3}),
    EligibilityTier.UNRESTRICTED: frozenset({ConsoleType.PS4, ConsoleType.PS5}),
}

TIER_LABELS: Dict[EligibilityTier, str] = {
    EligibilityTier.RESTRICTED: "PS3 Only",
    EligibilityTier.UNRESTRICTED: "PS4/PS5",
}


@dataclass
class PurchaseResult:
    package: MemberPackage
    transaction: MembershipTransaction
    is_top_up: bool


@dataclass
class SettlementResult:
    package_id: str
    minutes_deducted: int
    drinks_consumed: int
    discount_amount: int


class PackageLedger:
    """Selection, top-up and consumption rules for prepaid packages.

    Works on loaded ``Member`` instances and never touches the database
    itself; callers serialize access per member and persist the result.
    """

    def __init__(
        self,
        zone: Optional[tzinfo] = None,
        definitions: Optional[Dict[PackageKind, PackageDefinition]] = None,
    ):
        self._zone = zone or get_zone("UTC")
        self._definitions = definitions or PACKAGE_DEFINITIONS

    def definition(self, package_kind) -> PackageDefinition:
        try:
            return self._definitions[PackageKind(package_kind)]
        except (KeyError, ValueError):
            raise ValidationError(f"Unknown package kind '{package_kind}'")

    def is_expired(self, package: MemberPackage, at_time: datetime) -> bool:
        return self._local(package.expiry_date) <= self._local(at_time)

    def find_eligible_package(
        self, member: Member, console_type, at_time: datetime
    ) -> Optional[MemberPackage]:
        console_type = ConsoleType(console_type)
        for package in member.packages:
            if (
                console_type in package.eligible_console_types
                and not self.is_expired(package, at_time)
                and (package.remaining_minutes or 0) > 0
            ):
                return package
        return None

    def classify_ineligibility(self, member: Member, console_type, at_time: datetime) -> str:
        """Why no package qualifies. Expired and exhausted are reported apart."""
        console_type = ConsoleType(console_type)
        if not member.packages:
            return IneligiblePackageError.NO_PACKAGE

        covering = [p for p in member.packages if console_type in p.eligible_console_types]
        if not covering:
            return IneligiblePackageError.WRONG_TYPE
        if any(self.is_expired(p, at_time) for p in covering):
            return IneligiblePackageError.EXPIRED
        return IneligiblePackageError.EXHAUSTED

    def find_by_types(self, member: Member, types: Iterable) -> Optional[MemberPackage]:
        wanted = encode_console_types(types)
        for package in member.packages:
            if package.eligible_types == wanted:
                return package
        return None

    def get_package(self, member: Member, package_id: Optional[str]) -> Optional[MemberPackage]:
        for package in member.packages:
            if package.id == package_id:
                return package
        return None

    def apply_purchase(
        self, member: Member, package_kind, eligibility_tier, now: datetime
    ) -> PurchaseResult:
        definition = self.definition(package_kind)
        kind = PackageKind(package_kind)
        try:
            tier = EligibilityTier(eligibility_tier)
        except ValueError:
            raise ValidationError(f"Unknown eligibility tier '{eligibility_tier}'")

        types = TIER_CONSOLE_TYPES[tier]
        validity = timedelta(days=definition.validity_days)
        now = self._local(now)

        package = self.find_by_types(member, types)
        is_top_up = package is not None

        if package is not None:
            minutes = (package.remaining_minutes or 0) + definition.minutes
            drinks = (package.remaining_drink_credits or 0) + definition.drink_credits
            # unexpired packages extend from their expiry, expired ones restart now
            base = max(self._local(package.expiry_date), now)

            package.remaining_minutes = minutes
            package.initial_minutes = minutes
            package.remaining_drink_credits = drinks
            package.initial_drink_credits = drinks
            package.expiry_date = base + validity
            logger.info(
                f"Topped up package {package.id} for member {member.id}: "
                f"minutes={minutes}, drinks={drinks}, expiry={package.expiry_date}"
            )
        else:
            package = MemberPackage(
                id=uuid4(),
                position=len(member.packages),
                package_kind=kind.value,
                remaining_minutes=definition.minutes,
                initial_minutes=definition.minutes,
                remaining_drink_credits=definition.drink_credits,
                initial_drink_credits=definition.drink_credits,
                expiry_date=now + validity,
                eligible_types=encode_console_types(types),
                created_at=now,
            )
            member.packages.append(package)
            logger.info(
                f"Created {kind.value} package {package.id} for member {member.id} "
                f"({TIER_LABELS[tier]})"
            )

        # touching the member row bumps its version so concurrent writers conflict
        member.updated_at = now

        transaction = MembershipTransaction(
            id=uuid4(),
            member_id=member.id,
            member_name=member.name,
            package_kind=kind.value,
            eligibility_tier=tier.value,
            amount=definition.price_for(tier),
            timestamp=now,
            is_top_up=is_top_up,
            note=f"{TIER_LABELS[tier]} ({'Extend/Top Up' if is_top_up else 'New'})",
        )
        return PurchaseResult(package=package, transaction=transaction, is_top_up=is_top_up)

    def settle(
        self,
        member: Member,
        package: MemberPackage,
        console_type,
        elapsed_minutes: float,
        cart: List[CartLineItem],
    ) -> SettlementResult:
        if ConsoleType(console_type) not in package.eligible_console_types:
            logger.warning(
                f"Settling {console_type} time against package {package.id} "
                f"({package.eligible_types})"
            )

        minutes_deducted = max(0, math.ceil(elapsed_minutes))
        package.remaining_minutes = max(0, (package.remaining_minutes or 0) - minutes_deducted)

        credits = package.remaining_drink_credits or 0
        units_in_cart = sum(item.quantity for item in cart if item.is_complimentary)
        free_units = min(credits, units_in_cart)

        consumed = 0
        discount = 0
        for item in cart:
            if free_units <= 0:
                break
            if not item.is_complimentary:
                continue
            take = min(item.quantity, free_units)
            discount += take * item.unit_price
            consumed += take
            free_units -= take

        package.remaining_drink_credits = credits - consumed

        logger.info(
            f"Settled package {package.id}: -{minutes_deducted}m "
            f"(left {package.remaining_minutes}), drinks -{consumed} "
            f"(left {package.remaining_drink_credits}), discount={discount}"
        )
        return SettlementResult(
            package_id=package.id,
            minutes_deducted=minutes_deducted,
            drinks_consumed=consumed,
            discount_amount=discount,
        )

    def record_visit(self, member: Member, total_price: int) -> None:
        member.total_rentals_count = (member.total_rentals_count or 0) + 1
        member.total_cash_spend = (member.total_cash_spend or 0) + max(0, total_price)

    def _local(self, value: datetime) -> datetime:
        return to_local(value, self._zone)
