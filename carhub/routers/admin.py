import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette import status

from carhub.auth_utils import get_password_hash, require_admin
from carhub.database import get_db
from carhub.database_models import Photo, Service, User
from carhub.errors import DomainError, DuplicateUsername, NotFound
from carhub.models.user import User as UserOut, UserCreate, UserUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/users", tags=["admin"])


def _get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFound("Usuário não encontrado.")
    return user


@router.get("", response_model=List[UserOut])
def list_users(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return db.query(User).order_by(User.username).all()


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(data: UserCreate, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    if db.query(User.id).filter(User.username == data.username).first():
        raise DuplicateUsername(data.username)

    values = data.model_dump(exclude={"password"})
    values["role"] = data.role.value
    user = User(password_hash=get_password_hash(data.password), **values)
    try:
        db.add(user)
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Erro ao criar usuário %s: %s", data.username, e)
        raise HTTPException(status_code=500, detail="Falha ao criar usuário")
    logger.info("Usuário %s (%s) criado por %s", user.username, user.role, admin.username)
    return user


@router.patch("/{user_id}", response_model=UserOut)
def update_user(
    user_id: int,
    data: UserUpdate,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    user = _get_user(db, user_id)
    values = data.model_dump(exclude_unset=True)
    if user.id == admin.id and (values.get("is_active") is False or values.get("role") not in (None, "admin")):
        raise DomainError("Você não pode desativar ou rebaixar o próprio usuário.")

    password = values.pop("password", None)
    if password:
        user.password_hash = get_password_hash(password)
    for field, value in values.items():
        if value is None:
            continue
        setattr(user, field, value.value if field == "role" else value)
    try:
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Erro ao atualizar usuário %s: %s", user_id, e)
        raise HTTPException(status_code=500, detail="Falha ao atualizar usuário")
    return user


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    user = _get_user(db, user_id)
    if user.id == admin.id:
        raise DomainError("Você não pode excluir o próprio usuário.")
    try:
        # Serviços e fotos do usuário ficam sem responsável
        db.query(Service).filter(Service.technician_id == user_id).update({Service.technician_id: None})
        db.query(Photo).filter(Photo.uploaded_by == user_id).update({Photo.uploaded_by: None})
        db.delete(user)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Erro ao excluir usuário %s: %s", user_id, e)
        raise HTTPException(status_code=500, detail="Falha ao excluir usuário")
    logger.info("Usuário %s excluído por %s", user.username, admin.username)
