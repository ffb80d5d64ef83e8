"""Lembretes de agendamento.

Cada serviço tem no máximo um lembrete pendente, marcado para
`reminder_minutes` antes do horário agendado (guardado em UTC). O envio
da notificação fica a cargo de quem consome `due_reminders`.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from carhub.database_models import Service, ServiceReminder
from carhub.services.brazil_time import to_utc

logger = logging.getLogger(__name__)

DEFAULT_REMINDER_MINUTES = 30


def create_service_reminder(db: Session, service: Service, minutes: int = DEFAULT_REMINDER_MINUTES) -> Optional[ServiceReminder]:
    """Substitui os lembretes do serviço por um novo. Não faz commit."""
    if service.scheduled_date is None or service.scheduled_time is None:
        return None

    remove_service_reminders(db, service)
    reminder = ServiceReminder(
        service_id=service.id,
        reminder_minutes=minutes,
        scheduled_for=to_utc(service.scheduled_date, service.scheduled_time) - timedelta(minutes=minutes),
    )
    service.reminders.append(reminder)
    logger.debug("Lembrete do serviço %s marcado para %s UTC", service.id, reminder.scheduled_for)
    return reminder


def remove_service_reminders(db: Session, service: Service) -> None:
    for reminder in list(service.reminders):
        service.reminders.remove(reminder)
    db.flush()


def get_pending_reminder(db: Session, service_id: int) -> Optional[ServiceReminder]:
    return (
        db.query(ServiceReminder)
        .filter(ServiceReminder.service_id == service_id, ServiceReminder.notification_sent.is_(False))
        .order_by(ServiceReminder.scheduled_for)
        .first()
    )


def reminder_info(db: Session, service_id: int) -> dict:
    reminder = get_pending_reminder(db, service_id)
    if reminder is None:
        return {"has_reminder": False, "reminder_minutes": DEFAULT_REMINDER_MINUTES, "scheduled_for": None}
    return {
        "has_reminder": True,
        "reminder_minutes": reminder.reminder_minutes,
        "scheduled_for": reminder.scheduled_for,
    }


def due_reminders(db: Session, now: Optional[datetime] = None) -> List[ServiceReminder]:
    """Lembretes não enviados cujo horário já chegou (só de serviços ainda agendados)."""
    now = now or datetime.now(timezone.utc).replace(tzinfo=None)
    return (
        db.query(ServiceReminder)
        .join(Service, Service.id == ServiceReminder.service_id)
        .filter(
            ServiceReminder.notification_sent.is_(False),
            ServiceReminder.scheduled_for <= now,
            Service.status == "scheduled",
        )
        .order_by(ServiceReminder.scheduled_for)
        .all()
    )


def mark_sent(db: Session, reminder: ServiceReminder) -> ServiceReminder:
    reminder.notification_sent = True
    db.commit()
    return reminder
