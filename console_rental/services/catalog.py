from typing import List, Optional

from loguru import logger

from console_rental.core import permissions
from console_rental.core.exceptions import ConflictError, NotFoundError, ValidationError
from console_rental.core.locks import KeyedLocks, console_key
from console_rental.core.utils import uuid4
from console_rental.db.database import atomic
from console_rental.db.models import (
    Console,
    ConsoleStatus,
    ConsoleType,
    Product,
    ProductCategory,
)
from console_rental.db.repositories.console import ConsoleRepository
from console_rental.db.repositories.product import ProductRepository


def _require_name(name: Optional[str], what: str) -> str:
    name = (name or "").strip()
    if not name:
        raise ValidationError(f"{what} name is required")
    return name


def _non_negative(value, field: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number, got {value!r}")
    if number < 0:
        raise ValidationError(f"{field} cannot be negative")
    return number


def _enum(enum_cls, value, field: str):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Unknown {field} '{value}'")


class CatalogService:
    """Console registry and product catalog maintenance."""

    def __init__(
        self,
        console_repo: ConsoleRepository,
        product_repo: ProductRepository,
        locks: KeyedLocks,
        low_stock_threshold: int = 10,
    ):
        self.console_repo = console_repo
        self.product_repo = product_repo
        self.locks = locks
        self.low_stock_threshold = low_stock_threshold
        self._db = console_repo.session

    # --- consoles ---

    def get_console(self, console_id: str) -> Console:
        console = self.console_repo.get_by_id(console_id)
        if not console:
            raise NotFoundError(f"Console {console_id} not found")
        return console

    def list_consoles(self) -> List[Console]:
        return self.console_repo.list_all()

    def create_console(self, role, name: str, console_type, status=ConsoleStatus.AVAILABLE) -> Console:
        permissions.require(role, permissions.CONSOLE_MANAGE)
        status = _enum(ConsoleStatus, status, "console status")
        if status == ConsoleStatus.IN_USE:
            raise ValidationError("A new console cannot start in use")
        console = Console(
            id=uuid4(),
            name=_require_name(name, "Console"),
            console_type=_enum(ConsoleType, console_type, "console type").value,
            status=status.value,
            active_session_id=None,
        )
        with atomic(self._db):
            self.console_repo.create_console(console)
        logger.info(f"Created console {console.id} ({console.console_type} {console.name})")
        return console

    def update_console(
        self,
        role,
        console_id: str,
        name: Optional[str] = None,
        console_type=None,
        status=None,
    ) -> Console:
        permissions.require(role, permissions.CONSOLE_MANAGE)
        with self.locks.hold(console_key(console_id)):
            console = self.get_console(console_id)
            busy = console.active_session_id is not None

            if status is not None:
                status = _enum(ConsoleStatus, status, "console status")
                if status == ConsoleStatus.IN_USE:
                    raise ValidationError("Console status in_use is set by opening a session")
                if busy:
                    raise ConflictError(f"Console {console_id} has an active session")
            if console_type is not None:
                console_type = _enum(ConsoleType, console_type, "console type")
                if busy and console_type.value != console.console_type:
                    raise ConflictError(f"Console {console_id} has an active session")

            with atomic(self._db):
                if name is not None:
                    console.name = _require_name(name, "Console")
                if console_type is not None:
                    console.console_type = console_type.value
                if status is not None:
                    console.status = status.value

        logger.info(f"Updated console {console.id}: status={console.status}")
        return console

    def delete_console(self, role, console_id: str) -> None:
        permissions.require(role, permissions.CONSOLE_MANAGE)
        with self.locks.hold(console_key(console_id)):
            console = self.get_console(console_id)
            if console.active_session_id is not None:
                raise ConflictError(f"Console {console_id} has an active session")
            with atomic(self._db):
                self.console_repo.delete_console(console)

    # --- products ---

    def get_product(self, product_id: str) -> Product:
        product = self.product_repo.get_by_id(product_id)
        if not product:
            raise NotFoundError(f"Product {product_id} not found")
        return product

    def list_products(self) -> List[Product]:
        return self.product_repo.list_all()

    def low_stock(self, threshold: Optional[int] = None) -> List[Product]:
        if threshold is None:
            threshold = self.low_stock_threshold
        return self.product_repo.list_low_stock(threshold)

    def create_product(
        self,
        role,
        name: str,
        price,
        category,
        stock=0,
        is_complimentary: bool = False,
    ) -> Product:
        permissions.require(role, permissions.PRODUCT_CREATE)
        product = Product(
            id=uuid4(),
            name=_require_name(name, "Product"),
            price=_non_negative(price, "price"),
            category=_enum(ProductCategory, category, "product category").value,
            stock=_non_negative(stock, "stock"),
            is_complimentary=bool(is_complimentary),
        )
        with atomic(self._db):
            self.product_repo.create_product(product)
        logger.info(f"Created product {product.id} ({product.name} @ {product.price})")
        return product

    def update_product(self, role, product_id: str, **changes) -> Product:
        permissions.require(role, permissions.PRODUCT_UPDATE)
        product = self.get_product(product_id)

        values = {}
        if changes.get("name") is not None:
            values["name"] = _require_name(changes["name"], "Product")
        if changes.get("price") is not None:
            values["price"] = _non_negative(changes["price"], "price")
        if changes.get("stock") is not None:
            values["stock"] = _non_negative(changes["stock"], "stock")
        if changes.get("category") is not None:
            values["category"] = _enum(ProductCategory, changes["category"], "product category").value
        if changes.get("is_complimentary") is not None:
            values["is_complimentary"] = bool(changes["is_complimentary"])

        with atomic(self._db):
            for key, value in values.items():
                setattr(product, key, value)

        logger.info(f"Updated product {product.id}: {values}")
        return product

    def delete_product(self, role, product_id: str) -> None:
        permissions.require(role, permissions.PRODUCT_DELETE)
        product = self.get_product(product_id)
        with atomic(self._db):
            self.product_repo.delete_product(product)
        logger.info(f"Deleted product {product_id}")
