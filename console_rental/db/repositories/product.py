from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from console_rental.db.models import Product


class ProductRepository:
    def __init__(self, session: Session):
        self.session = session

    def get_by_id(self, product_id: str) -> Optional[Product]:
        return self.session.get(Product, product_id)

    def list_all(self) -> List[Product]:
        return list(self.session.execute(select(Product).order_by(Product.name)).scalars())

    def list_low_stock(self, threshold: int) -> List[Product]:
        return list(
            self.session.execute(
                select(Product).where(Product.stock < threshold).order_by(Product.stock)
            ).scalars()
        )

    def create_product(self, product: Product) -> None:
        self.session.add(product)
        self.session.flush()

    def delete_product(self, product: Product) -> None:
        self.session.delete(product)
        self.session.flush()
