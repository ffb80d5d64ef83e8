"""Indicadores do painel e relatórios gerenciais.

Toda agregação é feita no banco (SUM/COUNT com filtros de data). "Hoje" é
sempre a data de São Paulo, e pode ser injetado nos testes. Quando
`technician_id` é informado, só os serviços daquele técnico entram na conta.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional

from sqlalchemy import and_, case, func
from sqlalchemy.orm import Query, Session, joinedload

from carhub.database_models import Customer, Service, ServiceItem, ServiceType, Vehicle
from carhub.services.brazil_time import date_str, time_str, today_brazil, week_start
from carhub.services.payments import to_decimal

AGE_RANGES = (
    ("Novo (0-2 anos)", 0, 2),
    ("Semi-novo (3-5 anos)", 3, 5),
    ("Usado (6-10 anos)", 6, 10),
    ("Antigo (10+ anos)", 11, None),
)

_estimated = func.coalesce(Service.estimated_value, 0)
_paid = func.coalesce(Service.valor_pago, 0)
_not_cancelled = Service.status != "cancelled"
# Final quando informado e positivo; senão o estimado
_final_or_estimated = case((Service.final_value > 0, Service.final_value), else_=_estimated)


def _money(value) -> float:
    return float(to_decimal(value))


def _scoped(query: Query, technician_id: Optional[int]) -> Query:
    if technician_id is not None:
        query = query.filter(Service.technician_id == technician_id)
    return query


def _sum_when(condition, value):
    return func.coalesce(func.sum(case((condition, value), else_=0)), 0)


def _count_when(condition):
    return func.count(case((condition, Service.id)))


def dashboard_stats(db: Session, technician_id: Optional[int] = None, today: Optional[date] = None) -> dict:
    today = today or today_brazil()
    monday = week_start(today)
    is_today = and_(Service.scheduled_date == today, _not_cancelled)

    row = _scoped(
        db.query(
            _sum_when(is_today, _estimated).label("daily_revenue"),
            _count_when(is_today).label("daily_services"),
            _count_when(and_(Service.scheduled_date >= monday, Service.scheduled_date <= today, _not_cancelled)).label(
                "weekly_services"
            ),
            _sum_when(Service.status == "completed", _final_or_estimated).label("completed_revenue"),
            _sum_when(_not_cancelled, _estimated).label("predicted_revenue"),
            _count_when(and_(Service.scheduled_date > today, Service.status == "scheduled")).label("appointments"),
            func.count(func.distinct(Service.customer_id)).label("active_customers"),
            func.coalesce(func.sum(_paid), 0).label("realized_revenue"),
            _sum_when(and_(_not_cancelled, _paid < _estimated), _estimated - _paid).label("pending_revenue"),
            _count_when(Service.status == "completed").label("completed_services"),
            _count_when(and_(_not_cancelled, _paid == 0)).label("pending_payments"),
            _count_when(and_(_not_cancelled, _paid > 0, _paid < _estimated)).label("partial_payments"),
            func.count(Service.id).label("total_services"),
        ),
        technician_id,
    ).one()

    return {
        "daily_revenue": _money(row.daily_revenue),
        "daily_services": row.daily_services,
        "weekly_services": row.weekly_services,
        "completed_revenue": _money(row.completed_revenue),
        "predicted_revenue": _money(row.predicted_revenue),
        "appointments": row.appointments,
        "active_customers": row.active_customers,
        "realized_revenue": _money(row.realized_revenue),
        "pending_revenue": _money(row.pending_revenue),
        "completed_services": row.completed_services,
        "pending_payments": row.pending_payments,
        "partial_payments": row.partial_payments,
        "total_services": row.total_services,
    }


def revenue_by_days(
    db: Session,
    days: int = 7,
    realized: bool = False,
    technician_id: Optional[int] = None,
    today: Optional[date] = None,
) -> List[dict]:
    """Receita por dia de agendamento, do mais antigo para hoje, com zeros nos dias vazios.

    `realized=True` soma o que já foi pago (valor_pago), de qualquer serviço
    com algum pagamento.
    """
    today = today or today_brazil()
    days = max(days, 1)
    start = today - timedelta(days=days - 1)

    if realized:
        value = Service.valor_pago
        condition = Service.valor_pago > 0
    else:
        value = case((Service.status == "completed", _final_or_estimated), else_=_estimated)
        condition = _not_cancelled

    rows = _scoped(
        db.query(Service.scheduled_date, func.coalesce(func.sum(value), 0))
        .filter(Service.scheduled_date >= start, Service.scheduled_date <= today, condition),
        technician_id,
    ).group_by(Service.scheduled_date).all()
    by_day: Dict[date, float] = {day: _money(total) for day, total in rows}

    return [
        {"date": date_str(start + timedelta(days=offset)), "revenue": by_day.get(start + timedelta(days=offset), 0.0)}
        for offset in range(days)
    ]


def schedule_stats(db: Session, technician_id: Optional[int] = None, today: Optional[date] = None) -> dict:
    today = today or today_brazil()
    monday = week_start(today)
    this_week = and_(Service.scheduled_date >= monday, Service.scheduled_date <= today)

    row = _scoped(
        db.query(
            _count_when(Service.scheduled_date == today).label("today"),
            _count_when(this_week).label("this_week"),
            _count_when(and_(this_week, Service.status == "completed")).label("completed"),
            _count_when(and_(Service.scheduled_date < today, Service.status == "scheduled")).label("overdue"),
        ),
        technician_id,
    ).one()
    return {"today": row.today, "this_week": row.this_week, "completed": row.completed, "overdue": row.overdue}


def _summary_query(db: Session, technician_id: Optional[int]) -> Query:
    query = db.query(Service).options(
        joinedload(Service.customer),
        joinedload(Service.vehicle),
        joinedload(Service.service_type),
    )
    return _scoped(query, technician_id)


def _summary(service: Service) -> dict:
    return {
        "id": service.id,
        "customer_name": service.customer.name if service.customer else None,
        "vehicle_plate": service.vehicle.license_plate if service.vehicle else None,
        "vehicle_brand": service.vehicle.brand if service.vehicle else None,
        "vehicle_model": service.vehicle.model if service.vehicle else None,
        "service_type_name": service.service_type.name if service.service_type else None,
        "scheduled_date": date_str(service.scheduled_date),
        "scheduled_time": time_str(service.scheduled_time),
        "status": service.status,
        "estimated_value": _money(service.estimated_value),
        "final_value": _money(service.final_value) if service.final_value is not None else None,
    }


def recent_services(db: Session, limit: int = 5, technician_id: Optional[int] = None) -> List[dict]:
    services = (
        _summary_query(db, technician_id).order_by(Service.created_at.desc(), Service.id.desc()).limit(limit).all()
    )
    return [_summary(service) for service in services]


def upcoming_appointments(
    db: Session, limit: int = 5, technician_id: Optional[int] = None, today: Optional[date] = None
) -> List[dict]:
    today = today or today_brazil()
    services = (
        _summary_query(db, technician_id)
        .filter(Service.scheduled_date >= today, Service.status.in_(("scheduled", "in_progress")))
        .order_by(Service.scheduled_date.asc(), Service.scheduled_time.asc())
        .limit(limit)
        .all()
    )
    return [_summary(service) for service in services]


def today_appointments(db: Session, technician_id: Optional[int] = None, today: Optional[date] = None) -> List[dict]:
    today = today or today_brazil()
    services = (
        _summary_query(db, technician_id)
        .filter(Service.scheduled_date == today)
        .order_by(Service.scheduled_time.asc(), Service.id.asc())
        .all()
    )
    return [_summary(service) for service in services]


def _top_service_types_query(db: Session, technician_id: Optional[int]) -> Query:
    item_count = func.count(ServiceItem.id)
    revenue = func.coalesce(func.sum(ServiceItem.total_price), 0)
    return (
        _scoped(
            db.query(ServiceType.id, ServiceType.name, item_count.label("count"), revenue.label("revenue"))
            .join(ServiceItem, ServiceItem.service_type_id == ServiceType.id)
            .join(Service, Service.id == ServiceItem.service_id)
            .filter(_not_cancelled),
            technician_id,
        )
        .group_by(ServiceType.id, ServiceType.name)
        .order_by(item_count.desc(), revenue.desc())
    )


def top_services(db: Session, limit: int = 5, technician_id: Optional[int] = None) -> List[dict]:
    rows = _top_service_types_query(db, technician_id).limit(limit).all()
    return [{"id": row.id, "name": row.name, "count": row.count, "revenue": _money(row.revenue)} for row in rows]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def customer_analytics(db: Session, now: Optional[datetime] = None) -> dict:
    now = now or _utc_now()
    total, new_week, new_month = db.query(
        func.count(Customer.id),
        func.count(case((Customer.created_at >= now - timedelta(days=7), Customer.id))),
        func.count(case((Customer.created_at >= now - timedelta(days=30), Customer.id))),
    ).one()

    service_count = func.count(Service.id)
    top = (
        db.query(Customer.id, Customer.name, service_count.label("service_count"))
        .join(Service, Service.customer_id == Customer.id)
        .group_by(Customer.id, Customer.name)
        .order_by(service_count.desc())
        .limit(5)
        .all()
    )
    return {
        "total": total,
        "new_this_week": new_week,
        "new_this_month": new_month,
        "top_customers": [
            {"customer_id": row.id, "customer_name": row.name, "service_count": row.service_count} for row in top
        ],
    }


def service_analytics(db: Session, today: Optional[date] = None) -> dict:
    today = today or today_brazil()
    value = case(
        (and_(Service.status == "completed", Service.final_value > 0), Service.final_value),
        else_=_estimated,
    )
    total, this_week, this_month, average = db.query(
        func.count(Service.id),
        _count_when(Service.scheduled_date >= today - timedelta(days=7)),
        _count_when(Service.scheduled_date >= today - timedelta(days=30)),
        func.avg(case((value > 0, value))),
    ).one()

    top = _top_service_types_query(db, None).limit(5).all()
    return {
        "total": total,
        "this_week": this_week,
        "this_month": this_month,
        "top_service_types": [
            {"service_type_id": row.id, "service_type_name": row.name, "service_count": row.count} for row in top
        ],
        "average_value": _money(average),
    }


def _distribution(rows, total: int, key: str) -> List[dict]:
    return [
        {key: label, "count": count, "percentage": round(count * 100.0 / total, 2) if total else 0.0}
        for label, count in rows
    ]


def vehicle_analytics(db: Session, current_year: Optional[int] = None) -> dict:
    current_year = current_year or today_brazil().year
    total = db.query(func.count(Vehicle.id)).scalar()

    brands = (
        db.query(Vehicle.brand, func.count(Vehicle.id))
        .group_by(Vehicle.brand)
        .order_by(func.count(Vehicle.id).desc(), Vehicle.brand)
        .all()
    )
    fuel = func.coalesce(Vehicle.fuel_type, "Não informado")
    fuels = db.query(fuel, func.count(Vehicle.id)).group_by(fuel).order_by(func.count(Vehicle.id).desc()).all()

    age = current_year - Vehicle.year
    age_columns = []
    for _label, low, high in AGE_RANGES:
        condition = age >= low if high is None else and_(age >= low, age <= high)
        age_columns.append(func.count(case((condition, Vehicle.id))))
    age_counts = db.query(*age_columns).one()

    return {
        "total_vehicles": total,
        "brand_distribution": _distribution(brands, total, "brand"),
        "fuel_distribution": _distribution(fuels, total, "fuel_type"),
        "age_distribution": _distribution(
            [(label, count) for (label, _low, _high), count in zip(AGE_RANGES, age_counts)], total, "range"
        ),
    }


def _top_primary_types_since(db: Session, since: date) -> List[dict]:
    count = func.count(Service.id)
    rows = (
        db.query(ServiceType.name, count)
        .join(Service, Service.service_type_id == ServiceType.id)
        .filter(Service.scheduled_date >= since)
        .group_by(ServiceType.id, ServiceType.name)
        .order_by(count.desc())
        .limit(5)
        .all()
    )
    return [{"service_name": name, "count": total} for name, total in rows]


def dashboard_analytics(db: Session, today: Optional[date] = None) -> dict:
    """Visão gerencial: melhores clientes, tipos mais pedidos por período e agenda futura."""
    today = today or today_brazil()
    next_week = today + timedelta(days=7)
    next_month = today + timedelta(days=30)

    service_count = func.count(Service.id)
    top_customers = (
        db.query(Customer.name, service_count, func.coalesce(func.sum(Service.final_value), 0))
        .join(Service, Service.customer_id == Customer.id)
        .group_by(Customer.id, Customer.name)
        .order_by(service_count.desc())
        .limit(5)
        .all()
    )

    upcoming = and_(Service.scheduled_date >= today, Service.status == "scheduled")
    cancelled, weekly, monthly, weekly_value = db.query(
        _count_when(Service.status == "cancelled"),
        _count_when(and_(upcoming, Service.scheduled_date <= next_week)),
        _count_when(and_(upcoming, Service.scheduled_date <= next_month)),
        _sum_when(
            and_(
                Service.scheduled_date >= today,
                Service.scheduled_date <= next_week,
                Service.status.in_(("completed", "in_progress")),
            ),
            _final_or_estimated,
        ),
    ).one()

    return {
        "top_customers": [
            {"customer_name": name, "service_count": total, "total_value": _money(value)}
            for name, total, value in top_customers
        ],
        "top_services": {
            "one_month": _top_primary_types_since(db, today - timedelta(days=30)),
            "three_months": _top_primary_types_since(db, today - timedelta(days=90)),
            "six_months": _top_primary_types_since(db, today - timedelta(days=180)),
        },
        "canceled_services": cancelled,
        "weekly_appointments": weekly,
        "monthly_appointments": monthly,
        "weekly_estimated_value": _money(weekly_value),
    }
