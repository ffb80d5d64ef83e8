from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from carhub.auth_utils import get_current_user, require_admin, technician_scope
from carhub.database import get_db
from carhub.database_models import User
from carhub.services import dashboard

router = APIRouter(tags=["dashboard"])


@router.get("/api/dashboard/stats")
def stats(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return dashboard.dashboard_stats(db, technician_scope(user))


@router.get("/api/dashboard/revenue")
def revenue(
    days: int = Query(7, ge=1, le=365),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return dashboard.revenue_by_days(db, days, technician_id=technician_scope(user))


@router.get("/api/dashboard/realized-revenue")
def realized_revenue(
    days: int = Query(7, ge=1, le=365),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Somente serviços concluídos."""
    return dashboard.revenue_by_days(db, days, realized=True, technician_id=technician_scope(user))


@router.get("/api/dashboard/schedule-stats")
def schedule_stats(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return dashboard.schedule_stats(db, technician_scope(user))


@router.get("/api/dashboard/top-services")
def top_services(
    limit: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return dashboard.top_services(db, limit, technician_scope(user))


@router.get("/api/dashboard/recent-services")
def recent_services(
    limit: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return dashboard.recent_services(db, limit, technician_scope(user))


@router.get("/api/dashboard/upcoming-appointments")
def upcoming_appointments(
    limit: int = Query(5, ge=1, le=50),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return dashboard.upcoming_appointments(db, limit, technician_scope(user))


@router.get("/api/dashboard/today-appointments")
def today_appointments(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    return dashboard.today_appointments(db, technician_scope(user))


# --- Relatórios do administrador ---

@router.get("/api/dashboard/analytics")
def analytics(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return dashboard.dashboard_analytics(db)


@router.get("/api/analytics/customers")
def customer_analytics(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return dashboard.customer_analytics(db)


@router.get("/api/analytics/services")
def service_analytics(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return dashboard.service_analytics(db)


@router.get("/api/analytics/vehicles")
def vehicle_analytics(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return dashboard.vehicle_analytics(db)
