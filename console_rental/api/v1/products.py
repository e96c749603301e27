from typing import List, Optional

from fastapi import APIRouter, Depends
from loguru import logger
from sqlalchemy.orm import Session

from console_rental.api.dependencies import (
    commit,
    get_catalog_service,
    get_role,
    get_session,
)
from console_rental.core.exceptions import (
    ConsoleRentalException,
    internal_error_exception,
    to_http_exception,
)
from console_rental.core.permissions import Role
from console_rental.schemas import (
    ProductCreateRequest,
    ProductResponse,
    ProductUpdateRequest,
)
from console_rental.services.catalog import CatalogService

router = APIRouter()


@router.get("/products", response_model=List[ProductResponse])
def list_products(catalog: CatalogService = Depends(get_catalog_service)):
    return [ProductResponse.model_validate(p) for p in catalog.list_products()]


@router.get("/products/low-stock", response_model=List[ProductResponse])
def low_stock(
    threshold: Optional[int] = None,
    catalog: CatalogService = Depends(get_catalog_service),
):
    return [ProductResponse.model_validate(p) for p in catalog.low_stock(threshold)]


@router.post("/products", response_model=ProductResponse, status_code=201)
def create_product(
    request: ProductCreateRequest,
    role: Role = Depends(get_role),
    catalog: CatalogService = Depends(get_catalog_service),
    session: Session = Depends(get_session),
):
    try:
        product = catalog.create_product(
            role,
            request.name,
            request.price,
            request.category,
            stock=request.stock,
            is_complimentary=request.is_complimentary,
        )
        commit(session)
        return ProductResponse.model_validate(product)
    except ConsoleRentalException as e:
        session.rollback()
        raise to_http_exception(e)
    except Exception as e:
        session.rollback()
        logger.exception(f"Error creating product: {e}")
        raise internal_error_exception(e)


@router.patch("/products/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: str,
    request: ProductUpdateRequest,
    role: Role = Depends(get_role),
    catalog: CatalogService = Depends(get_catalog_service),
    session: Session = Depends(get_session),
):
    try:
        product = catalog.update_product(role, product_id, **request.model_dump(exclude_none=True))
        commit(session)
        return ProductResponse.model_validate(product)
    except ConsoleRentalException as e:
        session.rollback()
        raise to_http_exception(e)
    except Exception as e:
        session.rollback()
        logger.exception(f"Error updating product {product_id}: {e}")
        raise internal_error_exception(e)


@router.delete("/products/{product_id}", status_code=204)
def delete_product(
    product_id: str,
    role: Role = Depends(get_role),
    catalog: CatalogService = Depends(get_catalog_service),
    session: Session = Depends(get_session),
):
    try:
        catalog.delete_product(role, product_id)
        commit(session)
    except ConsoleRentalException as e:
        session.rollback()
        raise to_http_exception(e)
    except Exception as e:
        session.rollback()
        logger.exception(f"Error deleting product {product_id}: {e}")
        raise internal_error_exception(e)
