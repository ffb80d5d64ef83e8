"""Datas e horas no fuso da oficina (America/Sao_Paulo).

Tudo que é "hoje" ou "agora" no sistema vem daqui, nunca do relógio do
servidor nem de UTC.
"""
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple

import pytz

TIMEZONE = pytz.timezone("America/Sao_Paulo")

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M:%S"


def now_brazil() -> datetime:
    return datetime.now(TIMEZONE)


def today_brazil(now: Optional[datetime] = None) -> date:
    return (now or now_brazil()).date()


def date_str(value: Optional[date]) -> Optional[str]:
    """`YYYY-MM-DD`, como as datas de agendamento saem na API."""
    return value.strftime(DATE_FORMAT) if value is not None else None


def time_str(value: Optional[time]) -> Optional[str]:
    return value.strftime(TIME_FORMAT) if value is not None else None


def week_start(today: Optional[date] = None) -> date:
    """Segunda-feira da semana de `today`."""
    today = today or today_brazil()
    return today - timedelta(days=today.weekday())


def apply_schedule_defaults(
    scheduled_date: Optional[date],
    scheduled_time: Optional[time],
    now: Optional[datetime] = None,
) -> Tuple[date, time]:
    """Completa data/hora de agendamento ausentes com o momento atual no Brasil.

    Sem data: usa a data e a hora de agora. Só sem hora: usa a hora de agora,
    mesmo quando a data informada é futura.
    """
    now = (now or now_brazil()).astimezone(TIMEZONE)
    current = now.time().replace(microsecond=0, tzinfo=None)

    if scheduled_date is None:
        return now.date(), scheduled_time or current
    if scheduled_time is None:
        return scheduled_date, current
    return scheduled_date, scheduled_time


def to_utc(scheduled_date: date, scheduled_time: time) -> datetime:
    """Converte uma data/hora civil de São Paulo em datetime UTC sem tzinfo."""
    local = TIMEZONE.localize(datetime.combine(scheduled_date, scheduled_time))
    return local.astimezone(pytz.utc).replace(tzinfo=None)
