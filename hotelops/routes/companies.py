import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import CallerIdentity, get_caller, require_roles
from ..db import get_db
from ..errors import InvalidReference, NotFound
from ..models.models import Company
from ..schemas.companies import CompanyCreate, CompanyUpdate
from ..services.references import normalize_reference
from ..services.scope import CompanyScope, resolve_company_scope, strict_scope


router = APIRouter(prefix="/api/companies", tags=["companies"])
log = structlog.get_logger()


def company_to_dict(c: Company) -> dict:
    return {
        "id": str(c.id),
        "name": c.name,
        "address": c.address,
        "city": c.city,
        "postcode": c.postcode,
        "phone": c.phone,
        "email": c.email,
        "description": c.description,
        "room_count": c.room_count,
        "is_active": c.is_active,
        "created_at": c.created_at.isoformat() if c.created_at else None,
        "updated_at": c.updated_at.isoformat() if c.updated_at else None,
    }


def _get_company(db: Session, company_id: str) -> Company:
    canonical = normalize_reference(company_id)
    if canonical is None:
        raise InvalidReference("Invalid company ID format", raw=company_id)
    c = db.query(Company).filter(Company.id == uuid.UUID(canonical)).first()
    if not c:
        raise NotFound("Company not found")
    return c


@router.get("")
def list_companies(
    company: Optional[str] = Query(default=None),
    caller: CallerIdentity = Depends(get_caller),
    db: Session = Depends(get_db),
):
    # Directory of active companies; an explicit company narrows it without an ownership check
    q = db.query(Company).filter(Company.is_active == True)  # noqa: E712
    if company:
        scope = resolve_company_scope(db, caller, company, strict=False)
        q = q.filter(Company.id == scope.company_uuid)
    return [company_to_dict(c) for c in q.order_by(Company.name.asc()).all()]


@router.get("/{company_id}")
def get_company(company_id: str, db: Session = Depends(get_db), _=Depends(get_caller)):
    return company_to_dict(_get_company(db, company_id))


@router.post("", status_code=201)
def create_company(
    payload: CompanyCreate,
    db: Session = Depends(get_db),
    caller: CallerIdentity = Depends(require_roles("admin", "manager")),
):
    c = Company(**payload.model_dump())
    db.add(c)
    db.commit()
    db.refresh(c)
    log.info("company_created", company_id=str(c.id), by=caller.subject_id)
    return company_to_dict(c)


@router.put("/{company_id}")
def update_company(
    company_id: str,
    payload: CompanyUpdate,
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
    _=Depends(require_roles("admin", "manager")),
):
    c = _get_company(db, company_id)
    scope.ensure_allows(c.id)
    for k, v in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(c, k, v)
    db.commit()
    db.refresh(c)
    return company_to_dict(c)


@router.delete("/{company_id}")
def delete_company(
    company_id: str,
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
    caller: CallerIdentity = Depends(require_roles("admin")),
):
    c = _get_company(db, company_id)
    scope.ensure_allows(c.id)
    c.is_active = False
    db.commit()
    log.info("company_deactivated", company_id=str(c.id), by=caller.subject_id)
    return {"message": "Company deleted successfully"}
