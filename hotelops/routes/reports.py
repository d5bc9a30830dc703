import datetime as dt
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import ValidationFailed
from ..models.models import Company
from ..reports.pdf_report import build_dashboard_pdf
from ..services.reports import dashboard_stats, default_range, occupancy_operations, room_board, service_usage
from ..services.scope import CompanyScope, strict_scope


router = APIRouter(prefix="/api/reports", tags=["reports"])


def _range(start: Optional[dt.date], end: Optional[dt.date]):
    """Inclusive date range from query params, as datetimes [start, end + 1 day)."""
    if start and end and end < start:
        raise ValidationFailed("'to' must not be before 'from'")
    if not start and not end:
        return default_range()
    lo = dt.datetime.combine(start, dt.time.min) if start else None
    hi = dt.datetime.combine(end, dt.time.min) + dt.timedelta(days=1) if end else None
    return lo, hi


@router.get("/dashboard")
def dashboard(db: Session = Depends(get_db), scope: CompanyScope = Depends(strict_scope)):
    return dashboard_stats(db, scope)


@router.get("/occupancy")
def occupancy(
    from_: Optional[dt.date] = Query(default=None, alias="from"),
    to: Optional[dt.date] = Query(default=None),
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
):
    start, end = _range(from_, to)
    report = occupancy_operations(db, scope, start, end)
    report["from"] = start.isoformat() if start else None
    report["to"] = end.isoformat() if end else None
    return report


@router.get("/service-usage")
def service_usage_report(
    from_: Optional[dt.date] = Query(default=None, alias="from"),
    to: Optional[dt.date] = Query(default=None),
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
):
    start, end = _range(from_, to)
    return {"services": service_usage(db, scope, start, end)}


@router.get("/dashboard.pdf")
def dashboard_pdf(db: Session = Depends(get_db), scope: CompanyScope = Depends(strict_scope)):
    name = "All companies"
    if scope.company_id:
        c = db.query(Company).filter(Company.id == scope.company_uuid).first()
        if c is not None:
            name = c.name
    data = build_dashboard_pdf(name, dashboard_stats(db, scope), room_board(db, scope))
    return Response(
        content=data,
        media_type="application/pdf",
        headers={"Content-Disposition": 'attachment; filename="dashboard.pdf"'},
    )
