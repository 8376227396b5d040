from sqlalchemy import and_, case, func
from sqlalchemy.orm import Session, joinedload
from typing import List, NamedTuple, Optional
from datetime import date, datetime, time, timedelta
from decimal import Decimal

from workshop_booking.models.booking import Booking
from workshop_booking.models.user import User
from workshop_booking.models.workshop import Workshop
from workshop_booking.enums.statuses import BookingStatus, WorkshopStatus
from workshop_booking.enums.user_role import UserRole

CENTS = Decimal("0.01")
UNCATEGORIZED = "Uncategorized"


class CounterDrift(NamedTuple):
    workshop_id: int
    current_bookings: int
    confirmed_count: int


def find_counter_drift(db: Session) -> List[CounterDrift]:
    """Workshops whose current_bookings differs from their confirmed booking count."""
    confirmed = func.count(Booking.id)
    rows = (
        db.query(Workshop.id, Workshop.current_bookings, confirmed)
        .outerjoin(
            Booking,
            and_(
                Booking.workshop_id == Workshop.id,
                Booking.status == BookingStatus.CONFIRMED,
            ),
        )
        .group_by(Workshop.id, Workshop.current_bookings)
        .having(Workshop.current_bookings != confirmed)
        .order_by(Workshop.id)
        .all()
    )
    return [CounterDrift(*row) for row in rows]


def get_dashboard_statistics(db: Session) -> dict:
    total_users = db.query(func.count(User.id)).filter(User.role == UserRole.USER).scalar()
    total_workshops = (
        db.query(func.count(Workshop.id))
        .filter(Workshop.status == WorkshopStatus.ACTIVE)
        .scalar()
    )
    total_bookings = (
        db.query(func.count(Booking.id))
        .filter(Booking.status == BookingStatus.CONFIRMED)
        .scalar()
    )
    total_revenue = (
        db.query(func.coalesce(func.sum(Workshop.price), 0))
        .join(Booking, Booking.workshop_id == Workshop.id)
        .filter(Booking.status == BookingStatus.CONFIRMED)
        .scalar()
    )
    return {
        "total_users": total_users or 0,
        "total_workshops": total_workshops or 0,
        "total_bookings": total_bookings or 0,
        "total_revenue": Decimal(str(total_revenue or 0)),
    }


def get_recent_bookings(db: Session, limit: int = 10) -> List[Booking]:
    return (
        db.query(Booking)
        .options(joinedload(Booking.user), joinedload(Booking.workshop))
        .filter(Booking.status == BookingStatus.CONFIRMED)
        .order_by(Booking.booking_date.desc(), Booking.id.desc())
        .limit(limit)
        .all()
    )


def get_upcoming_workshops(db: Session, limit: int = 10) -> List[Workshop]:
    return (
        db.query(Workshop)
        .filter(Workshop.status == WorkshopStatus.ACTIVE, Workshop.date >= date.today())
        .order_by(Workshop.date.asc(), Workshop.start_time.asc(), Workshop.id.asc())
        .limit(limit)
        .all()
    )


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENTS)


def _percent(part, whole) -> float:
    return round(part * 100 / whole, 2) if whole else 0.0


def _months_ago(now: datetime, months: int) -> datetime:
    """First instant of the month `months` before now's month."""
    month_index = now.year * 12 + now.month - 1 - months
    return datetime(month_index // 12, month_index % 12 + 1, 1)


def _bucket(rows, key_format: str) -> List[dict]:
    """Groups (timestamp, price) rows by formatted timestamp, oldest first."""
    buckets = {}
    for timestamp, price in rows:
        key = timestamp.strftime(key_format)
        count, revenue = buckets.get(key, (0, Decimal("0")))
        buckets[key] = (count + 1, revenue + _money(price))
    return [
        {"period": key, "total_bookings": count, "total_revenue": revenue}
        for key, (count, revenue) in sorted(buckets.items())
    ]


def get_workshop_analytics(db: Session, now: Optional[datetime] = None) -> dict:
    """
    Booking analytics over active workshops.

    Monthly trends cover confirmed bookings made in the current month and
    the 11 before it. `now` is UTC, like the stored booking timestamps.
    """
    now = now or datetime.utcnow()
    confirmed = func.count(Booking.id)
    confirmed_join = and_(
        Booking.workshop_id == Workshop.id, Booking.status == BookingStatus.CONFIRMED
    )

    popular_rows = (
        db.query(
            Workshop.id,
            Workshop.title,
            Workshop.instructor,
            Workshop.date,
            Workshop.max_capacity,
            confirmed.label("total_bookings"),
        )
        .select_from(Workshop)
        .outerjoin(Booking, confirmed_join)
        .filter(Workshop.status == WorkshopStatus.ACTIVE)
        .group_by(
            Workshop.id,
            Workshop.title,
            Workshop.instructor,
            Workshop.date,
            Workshop.max_capacity,
        )
        .all()
    )
    popular_workshops = sorted(
        (
            {
                "id": row.id,
                "title": row.title,
                "instructor": row.instructor,
                "date": row.date,
                "total_bookings": row.total_bookings,
                "max_capacity": row.max_capacity,
                "fill_rate": _percent(row.total_bookings, row.max_capacity),
            }
            for row in popular_rows
        ),
        key=lambda w: (-w["total_bookings"], -w["fill_rate"], w["id"]),
    )[:10]

    category_rows = (
        db.query(
            Workshop.category,
            confirmed.label("total_bookings"),
            func.coalesce(
                func.sum(case((Booking.id.isnot(None), Workshop.price), else_=0)), 0
            ).label("total_revenue"),
        )
        .select_from(Workshop)
        .outerjoin(Booking, confirmed_join)
        .filter(Workshop.status == WorkshopStatus.ACTIVE)
        .group_by(Workshop.category)
        .all()
    )
    category_statistics = sorted(
        (
            {
                "category": row.category or UNCATEGORIZED,
                "total_bookings": row.total_bookings,
                "total_revenue": _money(row.total_revenue),
            }
            for row in category_rows
        ),
        key=lambda c: (-c["total_bookings"], c["category"]),
    )

    trend_rows = (
        db.query(Booking.booking_date, Workshop.price)
        .select_from(Booking)
        .join(Workshop, Booking.workshop_id == Workshop.id)
        .filter(
            Booking.status == BookingStatus.CONFIRMED,
            Booking.booking_date >= _months_ago(now, 11),
        )
        .all()
    )

    utilization = (
        db.query(Workshop)
        .filter(Workshop.status == WorkshopStatus.ACTIVE)
        .order_by(Workshop.date.asc(), Workshop.start_time.asc(), Workshop.id.asc())
        .all()
    )
    capacity_utilization = sorted(
        (
            {
                "id": w.id,
                "title": w.title,
                "date": w.date,
                "start_time": w.start_time,
                "current_bookings": w.current_bookings,
                "max_capacity": w.max_capacity,
                "utilization_rate": _percent(w.current_bookings, w.max_capacity),
            }
            for w in utilization
        ),
        # stable sort keeps the date order among equal rates
        key=lambda w: -w["utilization_rate"],
    )

    return {
        "popular_workshops": popular_workshops,
        "category_statistics": category_statistics,
        "monthly_trends": _bucket(trend_rows, "%Y-%m"),
        "capacity_utilization": capacity_utilization,
    }


def get_user_analytics(db: Session, now: Optional[datetime] = None) -> dict:
    now = now or datetime.utcnow()

    signups = (
        db.query(User.created_at)
        .filter(
            User.role == UserRole.USER,
            User.created_at.isnot(None),
            User.created_at >= _months_ago(now, 11),
        )
        .all()
    )
    per_month = {}
    for (created_at,) in signups:
        key = created_at.strftime("%Y-%m")
        per_month[key] = per_month.get(key, 0) + 1
    registration_trends = [
        {"period": key, "new_users": count} for key, count in sorted(per_month.items())
    ]

    active_rows = (
        db.query(
            User.id,
            User.first_name,
            User.last_name,
            User.email,
            func.count(Booking.id).label("total_bookings"),
            func.sum(Workshop.price).label("total_spent"),
        )
        .select_from(User)
        .join(Booking, Booking.user_id == User.id)
        .join(Workshop, Booking.workshop_id == Workshop.id)
        .filter(User.role == UserRole.USER, Booking.status == BookingStatus.CONFIRMED)
        .group_by(User.id, User.first_name, User.last_name, User.email)
        .all()
    )
    most_active_users = sorted(
        (
            {
                "id": row.id,
                "first_name": row.first_name,
                "last_name": row.last_name,
                "email": row.email,
                "total_bookings": row.total_bookings,
                "total_spent": _money(row.total_spent),
            }
            for row in active_rows
        ),
        key=lambda u: (-u["total_bookings"], -u["total_spent"], u["id"]),
    )[:20]

    total_users = db.query(func.count(User.id)).filter(User.role == UserRole.USER).scalar()
    users_with_bookings = (
        db.query(func.count(func.distinct(Booking.user_id)))
        .select_from(Booking)
        .join(User, Booking.user_id == User.id)
        .filter(User.role == UserRole.USER, Booking.status == BookingStatus.CONFIRMED)
        .scalar()
    )

    return {
        "registration_trends": registration_trends,
        "most_active_users": most_active_users,
        "engagement_statistics": {
            "total_users": total_users or 0,
            "users_with_bookings": users_with_bookings or 0,
            "engagement_rate": _percent(users_with_bookings or 0, total_users or 0),
        },
    }


def get_financial_report(
    db: Session,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Revenue from confirmed bookings, optionally limited to bookings made
    between start_date and end_date (both inclusive).

    Without any date bound the daily breakdown covers the last 30 days.
    """
    if start_date and end_date and start_date > end_date:
        raise ValueError("start_date must not be after end_date")
    now = now or datetime.utcnow()

    filters = [Booking.status == BookingStatus.CONFIRMED]
    if start_date:
        filters.append(Booking.booking_date >= datetime.combine(start_date, time.min))
    if end_date:
        filters.append(
            Booking.booking_date < datetime.combine(end_date + timedelta(days=1), time.min)
        )

    total_bookings, total_revenue = (
        db.query(func.count(Booking.id), func.coalesce(func.sum(Workshop.price), 0))
        .select_from(Booking)
        .join(Workshop, Booking.workshop_id == Workshop.id)
        .filter(*filters)
        .one()
    )
    total_revenue = _money(total_revenue)

    by_workshop = (
        db.query(
            Workshop.id,
            Workshop.title,
            Workshop.instructor,
            Workshop.date,
            Workshop.price,
            func.count(Booking.id).label("total_bookings"),
            func.sum(Workshop.price).label("total_revenue"),
        )
        .select_from(Workshop)
        .join(Booking, Booking.workshop_id == Workshop.id)
        .filter(*filters)
        .group_by(
            Workshop.id, Workshop.title, Workshop.instructor, Workshop.date, Workshop.price
        )
        .all()
    )
    revenue_by_workshop = sorted(
        (
            {
                "id": row.id,
                "title": row.title,
                "instructor": row.instructor,
                "date": row.date,
                "total_bookings": row.total_bookings,
                "workshop_price": _money(row.price),
                "total_revenue": _money(row.total_revenue),
            }
            for row in by_workshop
        ),
        key=lambda w: (-w["total_revenue"], w["id"]),
    )

    by_category = (
        db.query(
            Workshop.category,
            func.count(Booking.id).label("total_bookings"),
            func.sum(Workshop.price).label("total_revenue"),
        )
        .select_from(Workshop)
        .join(Booking, Booking.workshop_id == Workshop.id)
        .filter(*filters)
        .group_by(Workshop.category)
        .all()
    )
    revenue_by_category = sorted(
        (
            {
                "category": row.category or UNCATEGORIZED,
                "total_bookings": row.total_bookings,
                "total_revenue": _money(row.total_revenue),
                "average_price": _money(
                    _money(row.total_revenue) / row.total_bookings
                ),
            }
            for row in by_category
        ),
        key=lambda c: (-c["total_revenue"], c["category"]),
    )

    daily_filters = list(filters)
    if not (start_date or end_date):
        daily_filters.append(Booking.booking_date >= now - timedelta(days=30))
    daily_rows = (
        db.query(Booking.booking_date, Workshop.price)
        .select_from(Booking)
        .join(Workshop, Booking.workshop_id == Workshop.id)
        .filter(*daily_filters)
        .all()
    )

    return {
        "revenue_summary": {
            "total_bookings": total_bookings,
            "total_revenue": total_revenue,
            "average_booking_value": (
                _money(total_revenue / total_bookings) if total_bookings else _money(0)
            ),
        },
        "revenue_by_workshop": revenue_by_workshop,
        "revenue_by_category": revenue_by_category,
        "daily_revenue": _bucket(daily_rows, "%Y-%m-%d"),
    }
