from .console import ConsoleRepository
from .expense import ExpenseRepository
from .member import MemberRepository
from .pricing import PricingRepository
from .product import ProductRepository
from .rental import RentalRepository
from .transaction import MembershipTransactionRepository

__all__ = [
    "ConsoleRepository",
    "PricingRepository",
    "ProductRepository",
    "MemberRepository",
    "RentalRepository",
    "MembershipTransactionRepository",
    "ExpenseRepository",
]
