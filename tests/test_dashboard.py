from datetime import date, timedelta
from decimal import Decimal

from carhub.services import dashboard

TODAY = date(2024, 3, 14)  # quinta-feira


def test_stats(db, make_customer, make_vehicle, make_service):
    customer = make_customer()
    vehicle = make_vehicle(customer)
    make_service(vehicle, scheduled_date=TODAY, estimated_value="100.00", valor_pago=Decimal("100.00"))
    make_service(vehicle, scheduled_date=TODAY, estimated_value="80.00", status="cancelled")
    make_service(
        vehicle,
        scheduled_date=TODAY - timedelta(days=2),
        estimated_value="200.00",
        status="completed",
        final_value=Decimal("250.00"),
        valor_pago=Decimal("50.00"),
    )
    make_service(vehicle, scheduled_date=TODAY + timedelta(days=3), estimated_value="60.00")
    make_service(make_vehicle(make_customer()), scheduled_date=TODAY - timedelta(days=10), estimated_value="40.00")

    stats = dashboard.dashboard_stats(db, today=TODAY)
    assert stats["daily_revenue"] == 100.0
    assert stats["daily_services"] == 1
    assert stats["weekly_services"] == 2
    assert stats["completed_revenue"] == 250.0
    assert stats["predicted_revenue"] == 400.0
    assert stats["appointments"] == 1
    assert stats["active_customers"] == 2
    assert stats["realized_revenue"] == 150.0
    assert stats["completed_services"] == 1
    assert stats["total_services"] == 5
    # cancelado fica fora: 200 - 50 do concluído + 60 + 40
    assert stats["pending_revenue"] == 250.0
    assert stats["pending_payments"] == 2
    assert stats["partial_payments"] == 1


def test_stats_scoped_to_technician(db, technician, make_customer, make_vehicle, make_service):
    vehicle = make_vehicle(make_customer())
    make_service(vehicle, scheduled_date=TODAY, estimated_value="70.00", technician=technician)
    make_service(vehicle, scheduled_date=TODAY, estimated_value="30.00")

    assert dashboard.dashboard_stats(db, technician.id, today=TODAY)["daily_revenue"] == 70.0
    assert dashboard.dashboard_stats(db, today=TODAY)["daily_revenue"] == 100.0


def test_revenue_by_days_is_zero_filled(db, make_customer, make_vehicle, make_service):
    vehicle = make_vehicle(make_customer())
    make_service(vehicle, scheduled_date=TODAY, estimated_value="50.00")
    make_service(
        vehicle, scheduled_date=TODAY - timedelta(days=1), estimated_value="90.00",
        status="completed", final_value=Decimal("120.00"),
    )
    make_service(
        vehicle, scheduled_date=TODAY - timedelta(days=2), estimated_value="70.00", valor_pago=Decimal("30.00"),
    )
    make_service(vehicle, scheduled_date=TODAY - timedelta(days=30), estimated_value="999.00")

    series = dashboard.revenue_by_days(db, days=3, today=TODAY)
    assert series == [
        {"date": "2024-03-12", "revenue": 70.0},
        {"date": "2024-03-13", "revenue": 120.0},
        {"date": "2024-03-14", "revenue": 50.0},
    ]

    realized = dashboard.revenue_by_days(db, days=3, realized=True, today=TODAY)
    # só dinheiro recebido; o concluído sem pagamento não entra
    assert [entry["revenue"] for entry in realized] == [30.0, 0.0, 0.0]


def test_schedule_stats(db, make_customer, make_vehicle, make_service):
    vehicle = make_vehicle(make_customer())
    make_service(vehicle, scheduled_date=TODAY)
    make_service(vehicle, scheduled_date=TODAY - timedelta(days=1), status="completed")
    make_service(vehicle, scheduled_date=TODAY - timedelta(days=20))

    assert dashboard.schedule_stats(db, today=TODAY) == {"today": 1, "this_week": 2, "completed": 1, "overdue": 1}


def test_upcoming_and_today(db, make_customer, make_vehicle, make_service):
    vehicle = make_vehicle(make_customer())
    later = make_service(vehicle, scheduled_date=TODAY + timedelta(days=1))
    now = make_service(vehicle, scheduled_date=TODAY, status="in_progress")
    make_service(vehicle, scheduled_date=TODAY + timedelta(days=2), status="completed")
    make_service(vehicle, scheduled_date=TODAY - timedelta(days=1))

    upcoming = dashboard.upcoming_appointments(db, today=TODAY)
    assert [s["id"] for s in upcoming] == [now.id, later.id]
    assert [s["id"] for s in dashboard.today_appointments(db, today=TODAY)] == [now.id]


def test_top_services_ignores_cancelled(db, make_customer, make_vehicle, make_service):
    vehicle = make_vehicle(make_customer())
    make_service(vehicle, type_name="Freios", estimated_value="150.00")
    make_service(vehicle, type_name="Freios", estimated_value="150.00")
    make_service(vehicle, type_name="Lavagem", estimated_value="30.00")
    make_service(vehicle, type_name="Lavagem", estimated_value="30.00", status="cancelled")
    make_service(vehicle, type_name="Lavagem", estimated_value="30.00", status="cancelled")

    top = dashboard.top_services(db)
    assert [(row["name"], row["count"], row["revenue"]) for row in top] == [
        ("Freios", 2, 300.0),
        ("Lavagem", 1, 30.0),
    ]


def test_vehicle_analytics(db, make_customer, make_vehicle):
    customer = make_customer()
    make_vehicle(customer, brand="Fiat", year=2023, fuel_type="Flex")
    make_vehicle(customer, brand="Fiat", year=2010)
    make_vehicle(customer, brand="Ford", year=2019, fuel_type="Flex")
    make_vehicle(customer, brand="VW", year=2016)

    report = dashboard.vehicle_analytics(db, current_year=2024)
    assert report["total_vehicles"] == 4
    assert report["brand_distribution"][0] == {"brand": "Fiat", "count": 2, "percentage": 50.0}
    assert {row["fuel_type"]: row["count"] for row in report["fuel_distribution"]} == {"Flex": 2, "Não informado": 2}
    assert [row["count"] for row in report["age_distribution"]] == [1, 1, 1, 1]


def test_dashboard_endpoints(admin_client, tech_client):
    assert admin_client.get("/api/dashboard/stats").status_code == 200
    assert len(admin_client.get("/api/dashboard/revenue", params={"days": 5}).json()) == 5
    assert admin_client.get("/api/analytics/vehicles").status_code == 200
    assert admin_client.get("/api/dashboard/analytics").status_code == 200
    assert tech_client.get("/api/dashboard/schedule-stats").status_code == 200
    assert tech_client.get("/api/analytics/customers").status_code == 403
