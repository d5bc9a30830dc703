import uuid
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..auth.security import CallerIdentity, require_roles
from ..db import get_db
from ..errors import DuplicateKey, Inactive, NotificationFailed
from ..models.models import Employee
from ..schemas.employees import EmployeeCreate, EmployeeUpdate
from ..services.mailer import Mailer, get_mailer
from ..services.relationships import ensure_company_active, get_in_scope
from ..services.scope import CompanyScope, strict_scope


router = APIRouter(prefix="/api/employees", tags=["employees"])
log = structlog.get_logger()

EMAIL_TAKEN = "An employee with this email address already exists"


def employee_to_dict(e: Employee) -> dict:
    return {
        "id": str(e.id),
        "first_name": e.first_name,
        "last_name": e.last_name,
        "email": e.email,
        "phone": e.phone,
        "role": e.role,
        "department": e.department,
        "start_date": e.start_date.isoformat() if e.start_date else None,
        "company_id": str(e.company_id),
        "company_name": e.company.name if e.company is not None else None,
        "is_active": e.is_active,
        "created_at": e.created_at.isoformat() if e.created_at else None,
        "updated_at": e.updated_at.isoformat() if e.updated_at else None,
    }


def _email_taken(db: Session, email: str, exclude_id: Optional[uuid.UUID] = None) -> bool:
    q = db.query(Employee).filter(Employee.email == email)
    if exclude_id is not None:
        q = q.filter(Employee.id != exclude_id)
    return db.query(q.exists()).scalar()


@router.get("")
def list_employees(
    department: Optional[str] = Query(default=None),
    include_inactive: bool = Query(default=False),
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
):
    q = scope.filter(db.query(Employee), Employee.company_id)
    if not include_inactive:
        q = q.filter(Employee.is_active == True)  # noqa: E712
    if department:
        q = q.filter(Employee.department == department)
    rows = q.order_by(Employee.last_name.asc(), Employee.first_name.asc()).all()
    return [employee_to_dict(e) for e in rows]


@router.get("/{employee_id}")
def get_employee(employee_id: str, db: Session = Depends(get_db), scope: CompanyScope = Depends(strict_scope)):
    return employee_to_dict(get_in_scope(db, Employee, employee_id, scope, "employee"))


@router.post("", status_code=201)
def create_employee(
    payload: EmployeeCreate,
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
    caller: CallerIdentity = Depends(require_roles("admin", "manager")),
    mailer: Mailer = Depends(get_mailer),
):
    company = ensure_company_active(db, scope.require_company(payload.company))
    if _email_taken(db, payload.email):
        raise DuplicateKey(EMAIL_TAKEN)

    data = payload.model_dump(exclude={"company"})
    e = Employee(**data, company_id=company.id)
    db.add(e)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateKey(EMAIL_TAKEN)
    db.refresh(e)
    log.info("employee_created", employee_id=str(e.id), company_id=str(company.id), by=caller.subject_id)

    # The employee exists whether or not the welcome email goes out
    result = mailer.send_welcome(e.email, e.first_name, e.last_name)
    out = employee_to_dict(e)
    out["welcome_email"] = {"sent": bool(result.get("ok")), "error": result.get("error")}
    return out


@router.put("/{employee_id}")
def update_employee(
    employee_id: str,
    payload: EmployeeUpdate,
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
    _=Depends(require_roles("admin", "manager")),
):
    e = get_in_scope(db, Employee, employee_id, scope, "employee")
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "company" in data:
        company = ensure_company_active(db, scope.require_company(data.pop("company")))
        e.company_id = company.id
    if data.get("email") and _email_taken(db, data["email"], exclude_id=e.id):
        raise DuplicateKey(EMAIL_TAKEN)
    for k, v in data.items():
        setattr(e, k, v)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateKey(EMAIL_TAKEN)
    db.refresh(e)
    return employee_to_dict(e)


@router.delete("/{employee_id}")
def delete_employee(
    employee_id: str,
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
    caller: CallerIdentity = Depends(require_roles("admin")),
):
    e = get_in_scope(db, Employee, employee_id, scope, "employee")
    e.is_active = False
    db.commit()
    log.info("employee_deactivated", employee_id=str(e.id), by=caller.subject_id)
    return {"message": "Employee deleted successfully"}


@router.post("/{employee_id}/resend-welcome-email")
def resend_welcome_email(
    employee_id: str,
    db: Session = Depends(get_db),
    scope: CompanyScope = Depends(strict_scope),
    _=Depends(require_roles("admin", "manager")),
    mailer: Mailer = Depends(get_mailer),
):
    e = get_in_scope(db, Employee, employee_id, scope, "employee")
    if not e.is_active:
        raise Inactive("Cannot send welcome email to inactive employee")
    result = mailer.send_welcome(e.email, e.first_name, e.last_name)
    if not result.get("ok"):
        raise NotificationFailed(
            "Failed to send welcome email. Please check email configuration.",
            detail={"error": result.get("error")},
        )
    return {"message": f"Welcome email sent successfully to {e.email}", "email": e.email}
