import logging
from decimal import Decimal
from typing import Optional

from fastapi import Depends, HTTPException, Request
from passlib.context import CryptContext
from sqlalchemy.orm import Session
from starlette import status

from carhub.config import settings
from carhub.database import SessionLocal, get_db
from carhub.database_models import ServiceType, User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["scrypt"], deprecated="auto")

ADMIN_ROLE = "admin"

# Catálogo inicial: (nome, descrição, preço, recorrente, intervalo em meses, pontos)
DEFAULT_SERVICE_TYPES = [
    ("Troca de Óleo", "Troca de óleo do motor", "80.00", True, 6, 10),
    ("Alinhamento", "Alinhamento e balanceamento", "120.00", True, 12, 15),
    ("Revisão Geral", "Revisão completa do veículo", "300.00", True, 12, 30),
    ("Troca de Pneus", "Troca de pneus", "200.00", False, None, 20),
    ("Lavagem", "Lavagem completa", "30.00", False, None, 5),
    ("Freios", "Manutenção do sistema de freios", "150.00", True, 18, 18),
    ("Higienização", "Serviços de higienização e limpeza profunda", "100.00", True, 1, 8),
    ("Reparo", "Serviços de reparo e manutenção", "180.00", False, None, 15),
    ("Outros", "Outros serviços não especificados", "50.00", False, None, 5),
]


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verifica se a senha pura corresponde ao hash salvo."""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def authenticate(db: Session, username: str, password: str) -> Optional[User]:
    user = db.query(User).filter(User.username == username).first()
    if user and user.is_active and verify_password(password, user.password_hash):
        return user
    return None


def create_admin_user_if_not_exists():
    """Cria o usuário 'admin' quando INITIAL_ADMIN_PASSWORD está definido."""
    if not settings.initial_admin_password:
        logger.info("INITIAL_ADMIN_PASSWORD não definido; usuário admin não será criado.")
        return

    db = SessionLocal()
    try:
        admin_user = db.query(User).filter(User.username == "admin").first()
        if admin_user is None:
            db.add(
                User(
                    username="admin",
                    password_hash=get_password_hash(settings.initial_admin_password),
                    first_name="Administrador",
                    last_name="do Sistema",
                    role=ADMIN_ROLE,
                )
            )
            db.commit()
            logger.info("Usuário 'admin' padrão criado com sucesso.")
    finally:
        db.close()


def seed_service_types():
    """Cadastra o catálogo padrão de tipos de serviço que ainda não existe."""
    db = SessionLocal()
    try:
        existing = {name for (name,) in db.query(ServiceType.name).all()}
        created = 0
        for name, description, price, recurring, interval, points in DEFAULT_SERVICE_TYPES:
            if name in existing:
                continue
            db.add(
                ServiceType(
                    name=name,
                    description=description,
                    default_price=Decimal(price),
                    is_recurring=recurring,
                    interval_months=interval,
                    loyalty_points=points,
                )
            )
            created += 1
        db.commit()
        if created:
            logger.info("%d tipos de serviço padrão cadastrados.", created)
    finally:
        db.close()


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Usuário da sessão. Sem sessão válida, responde 401."""
    user_id = request.session.get("user_id")
    user = db.get(User, user_id) if user_id else None
    if user is None or not user.is_active:
        request.session.clear()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Não autenticado")
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if user.role != ADMIN_ROLE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Acesso restrito ao administrador")
    return user


def technician_scope(user: User) -> Optional[int]:
    """None para administradores (vê tudo); o id do técnico caso contrário."""
    if user.role == ADMIN_ROLE:
        return None
    return user.id
