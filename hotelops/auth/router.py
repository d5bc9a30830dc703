import uuid
from datetime import datetime, timezone
from typing import Optional

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import DuplicateKey, Forbidden, Unauthenticated
from ..models.models import Employee, User
from ..schemas.auth import LoginRequest, RegisterRequest
from ..services.relationships import ensure_company_active
from .security import (
    ADMIN_ROLE,
    AccountKind,
    CallerIdentity,
    create_access_token,
    get_caller,
    get_optional_caller,
    get_password_hash,
    verify_password,
)


router = APIRouter(prefix="/api/auth", tags=["auth"])
log = structlog.get_logger()


def user_to_dict(u: User) -> dict:
    return {
        "id": str(u.id),
        "email": u.email,
        "first_name": u.first_name,
        "last_name": u.last_name,
        "role": u.role,
        "company_id": str(u.company_id) if u.company_id else None,
        "is_active": u.is_active,
        "last_login_at": u.last_login_at.isoformat() if u.last_login_at else None,
    }


def _issue(u: User) -> str:
    return create_access_token(str(u.id), u.role, AccountKind.STAFF, email=u.email)


@router.post("/register", status_code=201)
def register(
    req: RegisterRequest,
    db: Session = Depends(get_db),
    caller: Optional[CallerIdentity] = Depends(get_optional_caller),
):
    # Self-registration always yields a plain staff account; admins may pick role and company
    is_admin = caller is not None and caller.is_staff and caller.role == ADMIN_ROLE
    if (req.role not in (None, "staff") or req.company is not None) and not is_admin:
        raise Forbidden("Only administrators can assign roles or companies")

    email = req.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise DuplicateKey("User already exists")

    company_id = None
    if req.company is not None:
        company_id = ensure_company_active(db, req.company).id

    u = User(
        email=email,
        password_hash=get_password_hash(req.password),
        first_name=req.first_name.strip(),
        last_name=req.last_name.strip(),
        role=req.role or "staff",
        company_id=company_id,
    )
    db.add(u)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise DuplicateKey("User already exists")
    db.refresh(u)
    log.info("user_registered", user_id=str(u.id), role=u.role, by=caller.subject_id if caller else None)
    return {"token": _issue(u), "user": user_to_dict(u)}


@router.post("/login")
def login(req: LoginRequest, db: Session = Depends(get_db)):
    u = db.query(User).filter(User.email == req.email.lower()).first()
    if not u or not verify_password(req.password, u.password_hash):
        raise Unauthenticated("Invalid credentials")
    if not u.is_active:
        raise Unauthenticated("Account is deactivated")
    u.last_login_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(u)
    log.info("user_login", user_id=str(u.id))
    return {"token": _issue(u), "user": user_to_dict(u)}


@router.get("/me")
def me(caller: CallerIdentity = Depends(get_caller), db: Session = Depends(get_db)):
    subject = uuid.UUID(caller.subject_id)
    if caller.account_kind == AccountKind.STAFF:
        u = db.query(User).filter(User.id == subject).first()
        if not u or not u.is_active:
            raise Unauthenticated("User not found")
        return {"kind": AccountKind.STAFF.value, "user": user_to_dict(u)}
    e = db.query(Employee).filter(Employee.id == subject).first()
    if not e or not e.is_active:
        raise Unauthenticated("Employee not found")
    return {
        "kind": AccountKind.EMPLOYEE.value,
        "employee": {
            "id": str(e.id),
            "email": e.email,
            "first_name": e.first_name,
            "last_name": e.last_name,
            "role": e.role,
            "department": e.department,
            "company_id": str(e.company_id),
        },
    }
