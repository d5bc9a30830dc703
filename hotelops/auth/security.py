import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from passlib.context import CryptContext

from ..config import settings
from ..errors import Forbidden, Unauthenticated


pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
http_bearer = HTTPBearer(auto_error=False)

ADMIN_ROLE = "admin"
STAFF_ROLES = ("admin", "manager", "staff")
EMPLOYEE_ROLE = "employee"


class AccountKind(str, Enum):
    STAFF = "staff"  # web dashboard account (User)
    EMPLOYEE = "employee"  # mobile app account (Employee)


@dataclass(frozen=True)
class CallerIdentity:
    subject_id: str
    account_kind: AccountKind
    role: str
    email: Optional[str] = None

    @property
    def is_staff(self) -> bool:
        return self.account_kind == AccountKind.STAFF


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    # Accounts migrated from the legacy system carry bcrypt hashes ($2a$/$2b$/$2y$)
    if hashed.startswith("$2a$") or hashed.startswith("$2b$") or hashed.startswith("$2y$"):
        pb = plain.encode("utf-8")
        if len(pb) > 72:
            pb = pb[:72]
        try:
            return bcrypt.checkpw(pb, hashed.encode("utf-8"))
        except ValueError:
            return False
    try:
        return pwd_context.verify(plain, hashed)
    except ValueError:
        return False


def _create_token(sub: str, ttl_seconds: int, extra: Optional[dict] = None) -> str:
    now = datetime.now(tz=timezone.utc)
    payload = {
        "sub": sub,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=ttl_seconds)).timestamp()),
        "jti": str(uuid.uuid4()),
    }
    if extra:
        payload.update(extra)
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def create_access_token(subject_id: str, role: str, kind: AccountKind, email: Optional[str] = None) -> str:
    return _create_token(
        str(subject_id),
        settings.jwt_ttl_seconds,
        extra={"role": role, "kind": AccountKind(kind).value, "email": email},
    )


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token expired")
    except jwt.InvalidTokenError:
        raise Unauthenticated("Token is not valid")


def identity_from_token(token: Optional[str]) -> CallerIdentity:
    """Decode a bearer credential into the caller's identity. No store access."""
    if not token:
        raise Unauthenticated("No token, authorization denied")
    payload = decode_token(token)
    sub = payload.get("sub")
    try:
        subject_id = str(uuid.UUID(str(sub)))
    except (TypeError, ValueError):
        raise Unauthenticated("Invalid subject")
    try:
        kind = AccountKind(payload.get("kind") or AccountKind.STAFF.value)
    except ValueError:
        raise Unauthenticated("Unknown account kind")
    role = payload.get("role") or (EMPLOYEE_ROLE if kind == AccountKind.EMPLOYEE else "staff")
    return CallerIdentity(subject_id=subject_id, account_kind=kind, role=str(role), email=payload.get("email"))


def get_caller(creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer)) -> CallerIdentity:
    return identity_from_token(creds.credentials if creds else None)


def get_optional_caller(creds: Optional[HTTPAuthorizationCredentials] = Depends(http_bearer)) -> Optional[CallerIdentity]:
    if creds is None:
        return None
    return identity_from_token(creds.credentials)


def require_roles(*allowed_roles: str):
    """Allow callers whose token role is any of `allowed_roles`."""

    def _dep(caller: CallerIdentity = Depends(get_caller)) -> CallerIdentity:
        if caller.role not in allowed_roles:
            raise Forbidden("Access denied. Insufficient permissions.")
        return caller

    return _dep
