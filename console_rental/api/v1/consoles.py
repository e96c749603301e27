from typing import List

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
    ConsoleCreateRequest,
    ConsoleResponse,
    ConsoleUpdateRequest,
)
from console_rental.services.catalog import CatalogService

router = APIRouter()


@router.get("/consoles", response_model=List[ConsoleResponse])
def list_consoles(catalog: CatalogService = Depends(get_catalog_service)):
    return [ConsoleResponse.model_validate(c) for c in catalog.list_consoles()]


@router.get("/consoles/{console_id}", response_model=ConsoleResponse)
def get_console(console_id: str, catalog: CatalogService = Depends(get_catalog_service)):
    try:
        return ConsoleResponse.model_validate(catalog.get_console(console_id))
    except ConsoleRentalException as e:
        raise to_http_exception(e)


@router.post("/consoles", response_model=ConsoleResponse, status_code=201)
def create_console(
    request: ConsoleCreateRequest,
    role: Role = Depends(get_role),
    catalog: CatalogService = Depends(get_catalog_service),
    session: Session = Depends(get_session),
):
    try:
        console = catalog.create_console(role, request.name, request.console_type, request.status)
        commit(session)
        return ConsoleResponse.model_validate(console)
    except ConsoleRentalException as e:
        session.rollback()
        raise to_http_exception(e)
    except Exception as e:
        session.rollback()
        logger.exception(f"Error creating console: {e}")
        raise internal_error_exception(e)


@router.patch("/consoles/{console_id}", response_model=ConsoleResponse)
def update_console(
    console_id: str,
    request: ConsoleUpdateRequest,
    role: Role = Depends(get_role),
    catalog: CatalogService = Depends(get_catalog_service),
    session: Session = Depends(get_session),
):
    try:
        console = catalog.update_console(
            role,
            console_id,
            name=request.name,
            console_type=request.console_type,
            status=request.status,
        )
        commit(session)
        return ConsoleResponse.model_validate(console)
    except ConsoleRentalException as e:
        session.rollback()
        raise to_http_exception(e)
    except Exception as e:
        session.rollback()
        logger.exception(f"Error updating console {console_id}: {e}")
        raise internal_error_exception(e)


@router.delete("/consoles/{console_id}", status_code=204)
def delete_console(
    console_id: str,
    role: Role = Depends(get_role),
    catalog: CatalogService = Depends(get_catalog_service),
    session: Session = Depends(get_session),
):
    try:
        catalog.delete_console(role, console_id)
        commit(session)
    except ConsoleRentalException as e:
        session.rollback()
        raise to_http_exception(e)
    except Exception as e:
        session.rollback()
        logger.exception(f"Error deleting console {console_id}: {e}")
        raise internal_error_exception(e)
