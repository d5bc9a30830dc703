import datetime as dt
import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth.security import require_roles
from ..db import get_db
from ..errors import DuplicateKey, InvalidReference
from ..models.models import Rota
from ..schemas.rotas import RotaCreate, RotaUpdate
from ..services.references import to_uuid
from ..services.relationships import get_in_scope, validate_rota_relationships
from ..services.scope import CompanyScope, strict_scope


router = APIRouter(prefix="/api/rotas", tags=["rotas"])
log = structlog.get_logger()

ROTA_TAKEN = "A rota entry for this employee and date already exists for this company"


def rota_to_dict(r: Rota) -> dict:
    e = r.employee
    return {
        "id": str(r.id),
        "employee_id": str(r.employee_id),
        "employee": {
            "first_name": e.first_name,
            "last_name": e.last_name,
            "email": e.email,
            "department": e.department,
        } if e is not None else None,
        "company_id": str(r.company_id),
        "company_name": r.company.name if r.company is not None else None,
        "date": r.date.isoformat(),
        "shift_type": r.shift_type,
        "start_time": r.start_time,
        "end_time": r.end_time,
        "notes": r.notes,
    }


def _commit_rota(db: Session, r: Rota) -> None:
    # (employee, company, date) is unique at the database level
    key = {"employee_id": str(r.employee_id), "date": str(r.date)}
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        log.info("rota_duplicate", **key)
        raise DuplicateKey(ROTA_TAKEN)
    db.refresh(r)


@router.get("")
def list_rotas(
    employee: Optional[str] = Query(default=None),
    from_: Optional[dt.date] = Query(default=None, alias="from"),
    to: Optional[dt.date] = Query(default=None),
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
):
    q = scope.filter(db.query(Rota), Rota.company_id)
    if employee:
        employee_id = to_uuid(employee)
        if employee_id is None:
            raise InvalidReference("Invalid employee ID format", raw=employee)
        q = q.filter(Rota.employee_id == employee_id)
    if from_:
        q = q.filter(Rota.date >= from_)
    if to:
        q = q.filter(Rota.date <= to)
    return [rota_to_dict(r) for r in q.order_by(Rota.date.asc()).all()]


@router.post("", status_code=201)
def create_rota(
    payload: RotaCreate,
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
    _=Depends(require_roles("admin", "manager")),
):
    refs = validate_rota_relationships(db, scope.require_company(payload.company), payload.employee)
    r = Rota(
        employee_id=uuid.UUID(refs["employee_id"]),
        company_id=uuid.UUID(refs["company_id"]),
        date=payload.date,
        shift_type=payload.shift_type,
        start_time=payload.start_time,
        end_time=payload.end_time,
        notes=payload.notes,
    )
    db.add(r)
    _commit_rota(db, r)
    return rota_to_dict(r)


@router.put("/{rota_id}")
def update_rota(
    rota_id: str,
    payload: RotaUpdate,
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
    _=Depends(require_roles("admin", "manager")),
):
    r = get_in_scope(db, Rota, rota_id, scope, "rota entry")
    data = payload.model_dump(exclude_unset=True)
    if data.get("employee") is not None:
        refs = validate_rota_relationships(db, r.company_id, data["employee"])
        r.employee_id = uuid.UUID(refs["employee_id"])
    data.pop("employee", None)
    for k, v in data.items():
        if v is None and k in ("date", "shift_type"):
            continue
        setattr(r, k, v)
    _commit_rota(db, r)
    return rota_to_dict(r)


@router.delete("/{rota_id}")
def delete_rota(
    rota_id: str,
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
    _=Depends(require_roles("admin", "manager")),
):
    r = get_in_scope(db, Rota, rota_id, scope, "rota entry")
    db.delete(r)
    db.commit()
    return {"message": "Rota entry deleted successfully"}
