from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import require_roles
from ..db import get_db
from ..models.models import Service
from ..schemas.services import ServiceCreate, ServiceUpdate
from ..services.relationships import ensure_company_active, get_in_scope
from ..services.scope import CompanyScope, permissive_scope, strict_scope


router = APIRouter(prefix="/api/services", tags=["services"])


def service_to_dict(s: Service) -> dict:
    return {
        "id": str(s.id),
        "name": s.name,
        "description": s.description,
        "category": s.category,
        "status": s.status,
        "company_id": str(s.company_id),
        "created_at": s.created_at.isoformat() if s.created_at else None,
        "updated_at": s.updated_at.isoformat() if s.updated_at else None,
    }


@router.get("")
def list_services(
    status: Optional[str] = Query(default=None),
    category: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(permissive_scope),
):
    q = scope.filter(db.query(Service), Service.company_id)
    if status:
        q = q.filter(Service.status == status)
    if category:
        q = q.filter(Service.category == category)
    return [service_to_dict(s) for s in q.order_by(Service.name.asc()).all()]


@router.get("/{service_id}")
def get_service(service_id: str, db: Session = Depends(get_db), scope: CompanyScope = Depends(strict_scope)):
    return service_to_dict(get_in_scope(db, Service, service_id, scope, "service"))


@router.post("", status_code=201)
def create_service(
    payload: ServiceCreate,
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
    _=Depends(require_roles("admin", "manager")),
):
    company = ensure_company_active(db, scope.require_company(payload.company))
    s = Service(**payload.model_dump(exclude={"company"}), company_id=company.id)
    db.add(s)
    db.commit()
    db.refresh(s)
    return service_to_dict(s)


@router.put("/{service_id}")
def update_service(
    service_id: str,
    payload: ServiceUpdate,
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
    _=Depends(require_roles("admin", "manager")),
):
    s = get_in_scope(db, Service, service_id, scope, "service")
    for k, v in payload.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(s, k, v)
    db.commit()
    db.refresh(s)
    return service_to_dict(s)


@router.delete("/{service_id}")
def delete_service(
    service_id: str,
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
    _=Depends(require_roles("admin")),
):
    s = get_in_scope(db, Service, service_id, scope, "service")
    db.delete(s)
    db.commit()
    return {"message": "Service deleted successfully"}
