from .database import get_engine, get_sessionmaker, session_scope
from .models import (
    Base,
    CartLineItem,
    Console,
    Expense,
    Member,
    MemberPackage,
    MembershipTransaction,
    PricingRule,
    Product,
    RentalSession,
)

__all__ = [
    "Base",
    "Console",
    "PricingRule",
    "Product",
    "Member",
    "MemberPackage",
    "RentalSession",
    "CartLineItem",
    "MembershipTransaction",
    "Expense",
    "get_sessionmaker",
    "get_engine",
    "session_scope",
]
