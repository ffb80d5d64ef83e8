import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette import status

from carhub.auth_utils import authenticate, get_current_user, get_password_hash
from carhub.database import get_db
from carhub.database_models import User
from carhub.errors import DuplicateUsername
from carhub.models.user import LoginRequest, User as UserOut, UserCreate, UserRole

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["auth"])


@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register(request: Request, data: UserCreate, db: Session = Depends(get_db)):
    """Cadastro aberto: sempre cria um técnico e já abre a sessão."""
    if db.query(User.id).filter(User.username == data.username).first():
        raise DuplicateUsername(data.username)

    user = User(
        username=data.username,
        password_hash=get_password_hash(data.password),
        email=data.email,
        first_name=data.first_name,
        last_name=data.last_name,
        role=UserRole.TECHNICIAN.value,
    )
    try:
        db.add(user)
        db.commit()
        db.refresh(user)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Erro ao registrar usuário %s: %s", data.username, e)
        raise HTTPException(status_code=500, detail="Falha ao registrar usuário")

    request.session["user_id"] = user.id
    logger.info("Usuário %s registrado", user.username)
    return user


@router.post("/login", response_model=UserOut)
def login(request: Request, data: LoginRequest, db: Session = Depends(get_db)):
    user = authenticate(db, data.username, data.password)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Usuário ou senha inválidos.")
    request.session["user_id"] = user.id
    return user


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(request: Request):
    """Limpa a sessão do usuário."""
    request.session.clear()


@router.get("/user", response_model=UserOut)
def current_user(user: User = Depends(get_current_user)):
    return user
