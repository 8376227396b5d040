"""
Admin dashboard, export and consistency check tests
"""
from datetime import date, datetime, timedelta
from decimal import Decimal

from workshop_booking.crud import stats
from workshop_booking.enums.statuses import WorkshopStatus
from workshop_booking.init_db import create_initial_admin
from workshop_booking.models.user import User
from workshop_booking.services import booking_ledger


def test_dashboard_statistics(db, sample_user, other_user, admin_user, make_workshop):
    pottery = make_workshop(price=Decimal("25.00"))
    cooking = make_workshop(title="Cooking", price=Decimal("10.50"))
    make_workshop(status=WorkshopStatus.CANCELLED)
    booking_ledger.create_booking(db, user_id=sample_user.id, workshop_id=pottery.id)
    booking_ledger.create_booking(db, user_id=other_user.id, workshop_id=pottery.id)
    dropped = booking_ledger.create_booking(
        db, user_id=sample_user.id, workshop_id=cooking.id
    )
    booking_ledger.cancel_booking(db, booking_id=dropped.id, requesting_user=sample_user)

    result = stats.get_dashboard_statistics(db)

    assert result["total_users"] == 2
    assert result["total_workshops"] == 2
    assert result["total_bookings"] == 2
    assert result["total_revenue"] == Decimal("50.00")
    assert len(stats.get_recent_bookings(db)) == 2
    assert [w.id for w in stats.get_upcoming_workshops(db)] == [pottery.id, cooking.id]


def test_dashboard_endpoint_requires_admin(client, sample_user, admin_user, auth_headers):
    assert client.get("/admin/dashboard", headers=auth_headers(sample_user)).status_code == 403

    response = client.get("/admin/dashboard", headers=auth_headers(admin_user))

    assert response.status_code == 200
    assert response.json()["data"]["statistics"]["total_bookings"] == 0


def test_export_participants(client, db, sample_user, admin_user, sample_workshop, auth_headers):
    booking_ledger.create_booking(
        db, user_id=sample_user.id, workshop_id=sample_workshop.id, notes="Allergic to clay dust"
    )

    response = client.get(
        f"/admin/workshops/{sample_workshop.id}/export", headers=auth_headers(admin_user)
    )

    data = response.json()["data"]
    assert data["workshop"]["time"] == "10:00 - 12:00"
    assert data["workshop"]["total_participants"] == 1
    assert data["participants"] == [
        {
            "sno": 1,
            "name": "Ada Tester",
            "email": "ada@example.com",
            "phone": "N/A",
            "booking_date": data["participants"][0]["booking_date"],
            "notes": "Allergic to clay dust",
        }
    ]


def test_consistency_endpoint(client, db, sample_user, admin_user, make_workshop, auth_headers):
    healthy = make_workshop()
    booking_ledger.create_booking(db, user_id=sample_user.id, workshop_id=healthy.id)

    clean = client.get("/admin/consistency", headers=auth_headers(admin_user)).json()["data"]
    drifted_workshop = make_workshop(current_bookings=3)
    drifted = client.get("/admin/consistency", headers=auth_headers(admin_user)).json()["data"]

    assert clean == {"consistent": True, "workshops": []}
    assert drifted["consistent"] is False
    assert drifted["workshops"] == [
        {"workshop_id": drifted_workshop.id, "current_bookings": 3, "confirmed_count": 0}
    ]


def test_initial_admin_bootstrap(db, monkeypatch):
    monkeypatch.setenv("INITIAL_ADMIN_EMAIL", "Root@Example.com")
    monkeypatch.setenv("INITIAL_ADMIN_PASSWORD", "changeme")

    admin = create_initial_admin(db)

    assert admin is not None
    assert admin.is_admin
    assert admin.email == "root@example.com"
    assert create_initial_admin(db) is None
    assert db.query(User).count() == 1


def test_workshop_analytics(db, sample_user, other_user, make_workshop):
    pottery = make_workshop(max_capacity=5)
    cooking = make_workshop(title="Cooking", category="Cooking", max_capacity=2, price=Decimal("10.50"))
    loose = make_workshop(title="Open studio", category=None, max_capacity=4)
    make_workshop(title="Called off", status=WorkshopStatus.CANCELLED)
    booking_ledger.create_booking(db, user_id=sample_user.id, workshop_id=cooking.id)
    booking_ledger.create_booking(db, user_id=other_user.id, workshop_id=cooking.id)
    booking_ledger.create_booking(db, user_id=sample_user.id, workshop_id=pottery.id)

    result = stats.get_workshop_analytics(db)

    popular = [(w["id"], w["total_bookings"], w["fill_rate"]) for w in result["popular_workshops"]]
    assert popular == [(cooking.id, 2, 100.0), (pottery.id, 1, 20.0), (loose.id, 0, 0.0)]
    assert result["category_statistics"] == [
        {"category": "Cooking", "total_bookings": 2, "total_revenue": Decimal("21.00")},
        {"category": "Arts", "total_bookings": 1, "total_revenue": Decimal("25.00")},
        {"category": "Uncategorized", "total_bookings": 0, "total_revenue": Decimal("0")},
    ]
    assert result["monthly_trends"] == [
        {
            "period": datetime.utcnow().strftime("%Y-%m"),
            "total_bookings": 3,
            "total_revenue": Decimal("46.00"),
        }
    ]
    utilization = [(w["id"], w["utilization_rate"]) for w in result["capacity_utilization"]]
    assert utilization == [(cooking.id, 100.0), (pottery.id, 20.0), (loose.id, 0.0)]


def test_workshop_analytics_endpoint(client, sample_user, admin_user, sample_workshop, auth_headers):
    assert client.get("/admin/workshops/analytics", headers=auth_headers(sample_user)).status_code == 403

    response = client.get("/admin/workshops/analytics", headers=auth_headers(admin_user))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["popular_workshops"][0]["id"] == sample_workshop.id
    assert data["monthly_trends"] == []


def test_user_analytics(client, db, sample_user, other_user, admin_user, make_workshop, auth_headers):
    pottery = make_workshop()
    cooking = make_workshop(title="Cooking", price=Decimal("10.50"))
    booking_ledger.create_booking(db, user_id=sample_user.id, workshop_id=pottery.id)
    booking_ledger.create_booking(db, user_id=sample_user.id, workshop_id=cooking.id)
    dropped = booking_ledger.create_booking(db, user_id=other_user.id, workshop_id=pottery.id)
    booking_ledger.cancel_booking(db, booking_id=dropped.id, requesting_user=other_user)

    result = stats.get_user_analytics(db)
    response = client.get("/admin/users/analytics", headers=auth_headers(admin_user))

    assert result["registration_trends"] == [
        {"period": datetime.utcnow().strftime("%Y-%m"), "new_users": 2}
    ]
    assert [(u["id"], u["total_bookings"], u["total_spent"]) for u in result["most_active_users"]] == [
        (sample_user.id, 2, Decimal("35.50"))
    ]
    assert result["engagement_statistics"] == {
        "total_users": 2,
        "users_with_bookings": 1,
        "engagement_rate": 50.0,
    }
    assert response.status_code == 200
    assert response.json()["data"]["engagement_statistics"]["engagement_rate"] == 50.0


def test_financial_report(db, sample_user, other_user, make_workshop):
    pottery = make_workshop()
    cooking = make_workshop(title="Cooking", category="Cooking", price=Decimal("10.50"))
    booking_ledger.create_booking(db, user_id=sample_user.id, workshop_id=pottery.id)
    booking_ledger.create_booking(db, user_id=other_user.id, workshop_id=pottery.id)
    booking_ledger.create_booking(db, user_id=sample_user.id, workshop_id=cooking.id)

    report = stats.get_financial_report(db)

    assert report["revenue_summary"] == {
        "total_bookings": 3,
        "total_revenue": Decimal("60.50"),
        "average_booking_value": Decimal("20.17"),
    }
    assert [(w["id"], w["total_revenue"]) for w in report["revenue_by_workshop"]] == [
        (pottery.id, Decimal("50.00")),
        (cooking.id, Decimal("10.50")),
    ]
    assert [(c["category"], c["average_price"]) for c in report["revenue_by_category"]] == [
        ("Arts", Decimal("25.00")),
        ("Cooking", Decimal("10.50")),
    ]
    assert report["daily_revenue"] == [
        {
            "period": datetime.utcnow().strftime("%Y-%m-%d"),
            "total_bookings": 3,
            "total_revenue": Decimal("60.50"),
        }
    ]


def test_financial_report_date_range(client, db, sample_user, admin_user, sample_workshop, auth_headers):
    booking_ledger.create_booking(db, user_id=sample_user.id, workshop_id=sample_workshop.id)
    after_today = date.today() + timedelta(days=2)
    headers = auth_headers(admin_user)

    later = client.get(
        "/admin/financial", params={"start_date": after_today.isoformat()}, headers=headers
    )
    backwards = client.get(
        "/admin/financial",
        params={"start_date": after_today.isoformat(), "end_date": date.today().isoformat()},
        headers=headers,
    )
    everything = client.get("/admin/financial", headers=headers)

    assert later.status_code == 200
    summary = later.json()["data"]["revenue_summary"]
    assert summary["total_bookings"] == 0
    assert summary["total_revenue"] == 0
    assert later.json()["data"]["daily_revenue"] == []
    assert backwards.status_code == 400
    assert backwards.json()["message"] == "start_date must not be after end_date"
    assert everything.json()["data"]["revenue_summary"]["total_revenue"] == 25.0
