"""
Passwordless login for mobile employees: a short numeric code is emailed and
exchanged for an access token.
"""
import secrets
from datetime import datetime, timedelta, timezone

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..errors import NotFound, NotificationFailed, Unauthenticated
from ..models.models import Employee, OneTimePassword
from ..schemas.auth import OtpRequest, OtpVerify
from ..services.mailer import Mailer, get_mailer
from .security import EMPLOYEE_ROLE, AccountKind, create_access_token


router = APIRouter(prefix="/api/employee-auth", tags=["employee-auth"])
log = structlog.get_logger()


def generate_code(length: int = 6) -> str:
    # first digit never 0 so the code keeps its length when treated as a number
    return str(secrets.randbelow(9 * 10 ** (length - 1)) + 10 ** (length - 1))


def _utc_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _active_employee(db: Session, email: str):
    return db.query(Employee).filter(Employee.email == email, Employee.is_active == True).first()  # noqa: E712


@router.post("/request-otp")
def request_otp(req: OtpRequest, db: Session = Depends(get_db), mailer: Mailer = Depends(get_mailer)):
    email = req.email.lower()
    if not _active_employee(db, email):
        raise NotFound(
            "Employee not found or inactive. Please check your email address or contact your administrator."
        )

    # only the latest code is valid
    db.query(OneTimePassword).filter(OneTimePassword.email == email).delete(synchronize_session=False)
    code = generate_code(settings.otp_length)
    rec = OneTimePassword(
        email=email,
        code=code,
        expires_at=datetime.utcnow() + timedelta(seconds=settings.otp_ttl_seconds),
    )
    db.add(rec)
    db.commit()

    if not mailer.send_otp(email, code):
        db.delete(rec)
        db.commit()
        raise NotificationFailed("Failed to send OTP email. Please check email configuration or try again later.")

    log.info("otp_issued", email=email)
    return {"message": "OTP sent successfully to your email", "expires_in": settings.otp_ttl_seconds}


@router.post("/verify-otp")
def verify_otp(req: OtpVerify, db: Session = Depends(get_db)):
    email = req.email.lower()
    rec = (
        db.query(OneTimePassword)
        .filter(OneTimePassword.email == email, OneTimePassword.code == req.otp)
        .first()
    )
    if not rec:
        raise Unauthenticated("Invalid or expired OTP")
    if datetime.utcnow() > _utc_naive(rec.expires_at):
        db.delete(rec)
        db.commit()
        raise Unauthenticated("OTP has expired")

    e = _active_employee(db, email)
    # the code is single use whatever happens next
    db.delete(rec)
    db.commit()
    if not e:
        raise NotFound("Employee not found or inactive")

    token = create_access_token(str(e.id), EMPLOYEE_ROLE, AccountKind.EMPLOYEE, email=e.email)
    log.info("employee_login", employee_id=str(e.id))
    return {
        "token": token,
        "employee": {
            "id": str(e.id),
            "email": e.email,
            "first_name": e.first_name,
            "last_name": e.last_name,
            "role": e.role,
            "department": e.department,
            "company_id": str(e.company_id),
        },
        "message": "Login successful",
    }
