from datetime import date, datetime
from enum import Enum
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from console_rental.db.models import (
    ConsoleStatus,
    ConsoleType,
    EligibilityTier,
    Member,
    MemberPackage,
    PackageKind,
    ProductCategory,
    RentalSession,
)


class HealthResponse(BaseModel):
    ok: bool = True


# --- Consoles / catalog ---


class ConsoleCreateRequest(BaseModel):
    name: str
    console_type: ConsoleType
    status: ConsoleStatus = ConsoleStatus.AVAILABLE


class ConsoleUpdateRequest(BaseModel):
    name: Optional[str] = None
    console_type: Optional[ConsoleType] = None
    status: Optional[ConsoleStatus] = None


class ConsoleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    console_type: ConsoleType
    status: ConsoleStatus
    active_session_id: Optional[str] = None


class ProductCreateRequest(BaseModel):
    name: str
    price: Union[int, str]
    category: ProductCategory
    stock: Union[int, str] = 0
    is_complimentary: bool = False


class ProductUpdateRequest(BaseModel):
    name: Optional[str] = None
    price: Optional[Union[int, str]] = None
    category: Optional[ProductCategory] = None
    stock: Optional[Union[int, str]] = None
    is_complimentary: Optional[bool] = None


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    price: int
    category: ProductCategory
    stock: int
    is_complimentary: bool = False


# --- Members / packages ---


class MemberCreateRequest(BaseModel):
    name: str
    phone: str


class PackageData(BaseModel):
    id: str
    package_kind: PackageKind
    remaining_minutes: int
    initial_minutes: int
    remaining_drink_credits: int
    initial_drink_credits: int
    expiry_date: datetime
    eligible_console_types: List[ConsoleType]

    @classmethod
    def from_package(cls, package: MemberPackage) -> "PackageData":
        return cls(
            id=package.id,
            package_kind=package.package_kind,
            remaining_minutes=package.remaining_minutes,
            initial_minutes=package.initial_minutes,
            remaining_drink_credits=package.remaining_drink_credits,
            initial_drink_credits=package.initial_drink_credits,
            expiry_date=package.expiry_date,
            eligible_console_types=sorted(package.eligible_console_types),
        )


class MemberResponse(BaseModel):
    id: str
    name: str
    phone: str
    total_rentals_count: int = 0
    total_cash_spend: int = 0
    packages: List[PackageData] = Field(default_factory=list)

    @classmethod
    def from_member(cls, member: Member) -> "MemberResponse":
        return cls(
            id=member.id,
            name=member.name,
            phone=member.phone,
            total_rentals_count=member.total_rentals_count or 0,
            total_cash_spend=member.total_cash_spend or 0,
            packages=[PackageData.from_package(p) for p in member.packages],
        )


class PurchaseRequest(BaseModel):
    package_kind: PackageKind
    eligibility_tier: EligibilityTier


class MembershipTransactionData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    member_id: str
    member_name: str
    package_kind: PackageKind
    eligibility_tier: EligibilityTier
    amount: int
    timestamp: datetime
    is_top_up: bool
    note: Optional[str] = None


class PurchaseResponse(BaseModel):
    member: MemberResponse
    package: PackageData
    transaction: MembershipTransactionData
    is_top_up: bool


class ExpiringMemberData(BaseModel):
    member_id: str
    member_name: str
    package_id: str
    expiry_date: datetime
    days_left: int


# --- Sessions ---


class CartLineItemData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: str
    product_name: str
    quantity: int
    unit_price: int
    category: ProductCategory
    is_complimentary: bool = False


class SessionSnapshot(BaseModel):
    id: str
    console_id: str
    console_type: ConsoleType
    member_id: Optional[str] = None
    customer_name: str
    package_id: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    is_active: bool
    is_membership_backed: bool
    items: List[CartLineItemData] = Field(default_factory=list)
    subtotal_rental: int = 0
    subtotal_items: int = 0
    discount_amount: int = 0
    total_price: int = 0
    calculated_rental_fee: int = 0
    rental_fee_override: Optional[int] = None

    @classmethod
    def from_session(cls, rental: RentalSession) -> "SessionSnapshot":
        return cls(
            id=rental.id,
            console_id=rental.console_id,
            console_type=rental.console_type,
            member_id=rental.member_id,
            customer_name=rental.customer_name,
            package_id=rental.package_id,
            start_time=rental.start_time,
            end_time=rental.end_time,
            is_active=rental.is_active,
            is_membership_backed=rental.is_membership_backed,
            items=[CartLineItemData.model_validate(i) for i in rental.items],
            subtotal_rental=rental.subtotal_rental or 0,
            subtotal_items=rental.subtotal_items or 0,
            discount_amount=rental.discount_amount or 0,
            total_price=rental.total_price or 0,
            calculated_rental_fee=rental.calculated_rental_fee or 0,
            rental_fee_override=rental.rental_fee_override,
        )


class OpenSessionRequest(BaseModel):
    console_id: str
    member_id: Optional[str] = None
    customer_name: Optional[str] = None


class OpenSessionResponse(BaseModel):
    session: SessionSnapshot
    warning: Optional[str] = None  # expired / exhausted / wrong_type / no_package
    warning_message: Optional[str] = None


class AddItemRequest(BaseModel):
    product_id: str


class CloseSessionRequest(BaseModel):
    rental_fee_override: Optional[Union[int, str]] = None


class SettlementData(BaseModel):
    package_id: str
    minutes_deducted: int
    drinks_consumed: int
    discount_amount: int


class CloseSessionResponse(BaseModel):
    session: SessionSnapshot
    settlement: Optional[SettlementData] = None


# --- Pricing ---


class PricingRuleData(BaseModel):
    console_type: ConsoleType
    day_rate: int
    night_rate: int


class SetRateRequest(BaseModel):
    console_type: ConsoleType
    period: Literal["day", "night"]
    value: Union[int, float, str, None] = None


# --- Expenses ---


class ExpenseCreateRequest(BaseModel):
    note: str
    amount: Union[int, str]
    staff_id: str
    staff_name: str


class ExpenseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    note: str
    amount: int
    timestamp: datetime
    staff_id: str
    staff_name: str


# --- History / dashboard ---


class HistoryWindow(str, Enum):
    TODAY = "today"
    LAST_7_DAYS = "last_7_days"
    LAST_30_DAYS = "last_30_days"


class DailyBucket(BaseModel):
    day: date
    income: int = 0
    expense: int = 0
    profit: int = 0


class HistorySummary(BaseModel):
    window: HistoryWindow
    start: datetime
    end: datetime
    rental_income: int = 0
    membership_income: int = 0
    total_income: int = 0
    total_expense: int = 0
    net_profit: int = 0
    daily: List[DailyBucket] = Field(default_factory=list)


class HistoryEntry(BaseModel):
    entry_type: Literal["rental", "membership", "expense"]
    id: str
    timestamp: datetime
    description: str
    amount: int


class HistoryDay(BaseModel):
    day: date
    entries: List[HistoryEntry] = Field(default_factory=list)


class ChartPoint(BaseModel):
    day: date
    label: str
    revenue: int


class DashboardResponse(BaseModel):
    today_revenue: int
    active_sessions: int
    available_consoles: int
    revenue_chart: List[ChartPoint] = Field(default_factory=list)
    low_stock: List[ProductResponse] = Field(default_factory=list)
    expiring_members: List[ExpiringMemberData] = Field(default_factory=list)
