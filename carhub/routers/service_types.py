import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette import status

from carhub.auth_utils import get_current_user, require_admin
from carhub.database import get_db
from carhub.database_models import ServiceType as ServiceTypeRow, User
from carhub.errors import NotFound
from carhub.models.service_type import ServiceType, ServiceTypeCreate, ServiceTypeUpdate

logger = logging.getLogger(__name__)

router = APIRouter(tags=["service-types"])


def _get_service_type(db: Session, service_type_id: int) -> ServiceTypeRow:
    service_type = db.get(ServiceTypeRow, service_type_id)
    if service_type is None:
        raise NotFound("Tipo de serviço não encontrado.")
    return service_type


def _create(db: Session, data: ServiceTypeCreate) -> ServiceTypeRow:
    service_type = ServiceTypeRow(**data.model_dump())
    try:
        db.add(service_type)
        db.commit()
        db.refresh(service_type)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Erro ao criar tipo de serviço %s: %s", data.name, e)
        raise HTTPException(status_code=500, detail="Falha ao criar tipo de serviço")
    logger.info("Tipo de serviço %s (%s) criado", service_type.id, service_type.name)
    return service_type


@router.get("/api/service-types", response_model=List[ServiceType])
def list_active_service_types(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return (
        db.query(ServiceTypeRow)
        .filter(ServiceTypeRow.is_active.is_(True))
        .order_by(ServiceTypeRow.name)
        .all()
    )


@router.post("/api/service-types", response_model=ServiceType, status_code=status.HTTP_201_CREATED)
def create_service_type(data: ServiceTypeCreate, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return _create(db, data)


# --- Administração do catálogo ---

@router.get("/api/admin/service-types", response_model=List[ServiceType])
def admin_list_service_types(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    """Inclui os tipos desativados."""
    return db.query(ServiceTypeRow).order_by(ServiceTypeRow.name).all()


@router.post("/api/admin/service-types", response_model=ServiceType, status_code=status.HTTP_201_CREATED)
def admin_create_service_type(data: ServiceTypeCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return _create(db, data)


@router.put("/api/admin/service-types/{service_type_id}", response_model=ServiceType)
def admin_update_service_type(
    service_type_id: int,
    data: ServiceTypeUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    service_type = _get_service_type(db, service_type_id)
    for field, value in data.model_dump(exclude_unset=True).items():
        if value is None and field in ("name", "default_price", "is_active", "is_recurring", "loyalty_points"):
            continue
        setattr(service_type, field, value)
    try:
        db.commit()
        db.refresh(service_type)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Erro ao atualizar tipo de serviço %s: %s", service_type_id, e)
        raise HTTPException(status_code=500, detail="Falha ao atualizar tipo de serviço")
    return service_type


@router.delete("/api/admin/service-types/{service_type_id}", status_code=status.HTTP_204_NO_CONTENT)
def admin_delete_service_type(service_type_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    # Exclusão lógica: serviços antigos continuam apontando para o tipo
    service_type = _get_service_type(db, service_type_id)
    service_type.is_active = False
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Erro ao desativar tipo de serviço %s: %s", service_type_id, e)
        raise HTTPException(status_code=500, detail="Falha ao excluir tipo de serviço")
    logger.info("Tipo de serviço %s desativado", service_type_id)
