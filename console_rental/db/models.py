from datetime import datetime, timezone
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class ConsoleType(str, Enum):
    PS3 = "PS3"
    PS4 = "PS4"
    PS5 = "PS5"


class ConsoleStatus(str, Enum):
    AVAILABLE = "available"
    IN_USE = "in_use"
    MAINTENANCE = "maintenance"


class ProductCategory(str, Enum):
    FOOD = "Food"
    DRINK = "Drink"
    ADDON = "Add-on"


class PackageKind(str, Enum):
    BASIC = "Basic"
    PREMIUM = "Premium"


class EligibilityTier(str, Enum):
    RESTRICTED = "restricted"  # PS3 only
    UNRESTRICTED = "unrestricted"  # PS4 / PS5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def encode_console_types(types: Iterable) -> str:
    return ",".join(sorted({ConsoleType(t).value for t in types}))


def decode_console_types(raw: str) -> FrozenSet[ConsoleType]:
    return frozenset(ConsoleType(t) for t in raw.split(",") if t)


class Base(DeclarativeBase):
    pass


class Console(Base):
    __tablename__ = "consoles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128))
    console_type: Mapped[str] = mapped_column(String(8))  # PS3 / PS4 / PS5
    status: Mapped[str] = mapped_column(
        String(16), default=ConsoleStatus.AVAILABLE.value
    )  # available / in_use / maintenance
    # single-active-session slot
    active_session_id: Mapped[Optional[str]] = mapped_column(
        String(64), nullable=True, unique=True
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class PricingRule(Base):
    __tablename__ = "pricing_rules"

    console_type: Mapped[str] = mapped_column(String(8), primary_key=True)
    day_rate: Mapped[int] = mapped_column(Integer, default=0)
    night_rate: Mapped[int] = mapped_column(Integer, default=0)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )


class Product(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128))
    price: Mapped[int] = mapped_column(Integer, default=0)
    category: Mapped[str] = mapped_column(String(16))
    stock: Mapped[int] = mapped_column(Integer, default=0)
    # designated free-drink product that package drink credits pay for
    is_complimentary: Mapped[bool] = mapped_column(Boolean, default=False)


class Member(Base):
    __tablename__ = "members"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(128))
    phone: Mapped[str] = mapped_column(String(32))
    total_rentals_count: Mapped[int] = mapped_column(Integer, default=0)
    total_cash_spend: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    packages: Mapped[List["MemberPackage"]] = relationship(
        back_populates="member",
        order_by="MemberPackage.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}


class MemberPackage(Base):
    __tablename__ = "member_packages"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    member_id: Mapped[str] = mapped_column(ForeignKey("members.id"), index=True)
    position: Mapped[int] = mapped_column(Integer, default=0)
    package_kind: Mapped[str] = mapped_column(String(16))  # Basic / Premium
    remaining_minutes: Mapped[int] = mapped_column(Integer, default=0)
    initial_minutes: Mapped[int] = mapped_column(Integer, default=0)
    remaining_drink_credits: Mapped[int] = mapped_column(Integer, default=0)
    initial_drink_credits: Mapped[int] = mapped_column(Integer, default=0)
    expiry_date: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    eligible_types: Mapped[str] = mapped_column(String(32))  # e.g. "PS4,PS5"
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow
    )

    member: Mapped["Member"] = relationship(back_populates="packages")

    __table_args__ = (
        UniqueConstraint("member_id", "eligible_types", name="uq_member_eligibility"),
    )

    @property
    def eligible_console_types(self) -> FrozenSet[ConsoleType]:
        return decode_console_types(self.eligible_types)


class RentalSession(Base):
    __tablename__ = "rental_sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    console_id: Mapped[str] = mapped_column(ForeignKey("consoles.id"), index=True)
    console_type: Mapped[str] = mapped_column(String(8))
    member_id: Mapped[Optional[str]] = mapped_column(
        ForeignKey("members.id"), nullable=True, index=True
    )
    customer_name: Mapped[str] = mapped_column(String(128))
    package_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    end_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_membership_backed: Mapped[bool] = mapped_column(Boolean, default=False)

    subtotal_rental: Mapped[int] = mapped_column(Integer, default=0)
    subtotal_items: Mapped[int] = mapped_column(Integer, default=0)
    discount_amount: Mapped[int] = mapped_column(Integer, default=0)
    total_price: Mapped[int] = mapped_column(Integer, default=0)

    # override audit trail
    calculated_rental_fee: Mapped[int] = mapped_column(Integer, default=0)
    rental_fee_override: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    override_by_role: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)

    # bumped on every write so a late display tick cannot overwrite a close
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    items: Mapped[List["CartLineItem"]] = relationship(
        back_populates="session",
        order_by="CartLineItem.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}


# One active session per console, enforced by the database as well
Index(
    "uq_rental_sessions_active_console",
    RentalSession.console_id,
    unique=True,
    sqlite_where=RentalSession.is_active == True,  # noqa: E712
    postgresql_where=RentalSession.is_active == True,  # noqa: E712
)


class CartLineItem(Base):
    __tablename__ = "rental_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(
        ForeignKey("rental_sessions.id"), index=True
    )
    position: Mapped[int] = mapped_column(Integer, default=0)
    product_id: Mapped[str] = mapped_column(String(64))
    # snapshots taken when the item is added
    product_name: Mapped[str] = mapped_column(String(128))
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    unit_price: Mapped[int] = mapped_column(Integer, default=0)
    category: Mapped[str] = mapped_column(String(16))
    is_complimentary: Mapped[bool] = mapped_column(Boolean, default=False)

    session: Mapped["RentalSession"] = relationship(back_populates="items")


class MembershipTransaction(Base):
    __tablename__ = "membership_transactions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    member_id: Mapped[str] = mapped_column(ForeignKey("members.id"), index=True)
    member_name: Mapped[str] = mapped_column(String(128))
    package_kind: Mapped[str] = mapped_column(String(16))
    eligibility_tier: Mapped[str] = mapped_column(String(16))
    amount: Mapped[int] = mapped_column(Integer, default=0)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    is_top_up: Mapped[bool] = mapped_column(Boolean, default=False)
    note: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


Index("ix_membership_transactions_timestamp", MembershipTransaction.timestamp)


class Expense(Base):
    __tablename__ = "expenses"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    note: Mapped[str] = mapped_column(Text)
    amount: Mapped[int] = mapped_column(Integer)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    staff_id: Mapped[str] = mapped_column(String(64))
    staff_name: Mapped[str] = mapped_column(String(128))


Index("ix_expenses_timestamp", Expense.timestamp)
