"""
Dashboard counts and analytics queries, all restricted to a CompanyScope.
"""
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import List, Optional

import pytz
from sqlalchemy.orm import Session

from ..config import settings
from ..models.models import Company, Employee, Operation, Service
from .rooms import ROOM_OPERATION_TYPES, RoomStatus, derive_room_board, derive_room_statuses
from .scope import CompanyScope


def today_start(tz_name: Optional[str] = None, now: Optional[datetime] = None) -> datetime:
    """Local midnight of the current day in `tz_name`, as a naive UTC datetime (storage convention)."""
    tz = pytz.timezone(tz_name or settings.tz_default)
    now = now or datetime.utcnow()
    if now.tzinfo is None:
        now = pytz.utc.localize(now)
    local_now = now.astimezone(tz)
    midnight = tz.localize(datetime(local_now.year, local_now.month, local_now.day))
    return midnight.astimezone(pytz.utc).replace(tzinfo=None)


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(pytz.utc).replace(tzinfo=None)


def room_operations(db: Session, scope: CompanyScope) -> List[Operation]:
    q = db.query(Operation).filter(Operation.type.in_(ROOM_OPERATION_TYPES))
    return scope.filter(q, Operation.company_id).all()


def room_board(db: Session, scope: CompanyScope) -> List[RoomStatus]:
    ops = room_operations(db, scope)
    if scope.is_unscoped_admin:
        return derive_room_board(ops)
    return derive_room_statuses(ops, company_id=scope.company_id)


def dashboard_stats(db: Session, scope: CompanyScope, now: Optional[datetime] = None) -> dict:
    companies = db.query(Company).filter(Company.is_active == True)  # noqa: E712
    if not scope.is_unscoped_admin:
        companies = companies.filter(Company.id == scope.company_uuid)
    employees = scope.filter(db.query(Employee).filter(Employee.is_active == True), Employee.company_id)  # noqa: E712
    services = scope.filter(db.query(Service).filter(Service.status == "active"), Service.company_id)
    todays = scope.filter(
        db.query(Operation).filter(Operation.created_at >= today_start(now=now)),
        Operation.company_id,
    )
    rooms = room_board(db, scope)
    return {
        "total_companies": companies.count(),
        "total_employees": employees.count(),
        "active_services": services.count(),
        "todays_operations": todays.count(),
        "occupied_rooms": sum(1 for r in rooms if r.occupied),
        "total_rooms": len(rooms),
    }


def _in_range(q, start: Optional[datetime], end: Optional[datetime]):
    if start is not None:
        q = q.filter(Operation.created_at >= _naive_utc(start))
    if end is not None:
        q = q.filter(Operation.created_at < _naive_utc(end))
    return q


def occupancy_operations(
    db: Session,
    scope: CompanyScope,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> dict:
    """Check-in / check-out records created in [start, end), newest first, with totals."""
    q = db.query(Operation).filter(Operation.type.in_(ROOM_OPERATION_TYPES))
    q = _in_range(scope.filter(q, Operation.company_id), start, end)
    rows = q.order_by(Operation.created_at.desc()).all()
    items = [
        {
            "id": str(op.id),
            "type": op.type,
            "company_id": str(op.company_id),
            "room_number": op.room_number,
            "guest_name": op.guest_name,
            "number_of_people": op.number_of_people,
            "check_in_date": op.check_in_date.isoformat() if op.check_in_date else None,
            "check_out_date": op.check_out_date.isoformat() if op.check_out_date else None,
            "created_at": op.created_at.isoformat() if op.created_at else None,
        }
        for op in rows
    ]
    return {
        "check_ins": sum(1 for op in rows if op.type == ROOM_OPERATION_TYPES[0]),
        "check_outs": sum(1 for op in rows if op.type == ROOM_OPERATION_TYPES[1]),
        "guests": sum((op.number_of_people or 0) for op in rows if op.type == ROOM_OPERATION_TYPES[0]),
        "items": items,
    }


def service_usage(
    db: Session,
    scope: CompanyScope,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
) -> List[dict]:
    """Service-request operations per service, split by status. Busiest service first."""
    q = db.query(Operation).filter(Operation.type == "service-request")
    q = _in_range(scope.filter(q, Operation.company_id), start, end)
    usage: "OrderedDict[str, dict]" = OrderedDict()
    for op in q.order_by(Operation.created_at.asc()).all():
        key = str(op.service_id) if op.service_id else ""
        row = usage.get(key)
        if row is None:
            row = usage[key] = {
                "service_id": key or None,
                "service_name": op.service.name if op.service is not None else "Unassigned",
                "total": 0,
                "by_status": {},
            }
        row["total"] += 1
        row["by_status"][op.status] = row["by_status"].get(op.status, 0) + 1
    return sorted(usage.values(), key=lambda r: (-r["total"], r["service_name"]))


def default_range(days: int = 30, now: Optional[datetime] = None):
    end = now or datetime.utcnow()
    return end - timedelta(days=days), end
