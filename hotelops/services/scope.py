"""
Company scoping: derives the company a request may read and write within.

Two strictness levels:

* permissive  an explicitly supplied company is honored as-is (company directory,
              browsing another company's public data).
* strict      a supplied company must equal the caller's own company; when none is
              supplied the caller's company fills filters and write payloads.

Administrators without a company resolve to an unscoped scope and see every
company's data.
"""
import uuid
from dataclasses import dataclass
from typing import Any, Optional, Tuple

import structlog
from fastapi import Depends, Query
from sqlalchemy.orm import Session

from ..auth.security import ADMIN_ROLE, AccountKind, CallerIdentity, get_caller
from ..db import get_db
from ..errors import Forbidden, InvalidReference, Unauthenticated
from ..models.models import Employee, User
from .references import normalize_reference


log = structlog.get_logger()


@dataclass(frozen=True)
class CompanyScope:
    company_id: Optional[str] = None
    is_unscoped_admin: bool = False

    def __post_init__(self) -> None:
        if bool(self.company_id) == bool(self.is_unscoped_admin):
            raise ValueError("CompanyScope needs exactly one of company_id or is_unscoped_admin")

    @property
    def company_uuid(self) -> Optional[uuid.UUID]:
        return uuid.UUID(self.company_id) if self.company_id else None

    def filter(self, query, column):
        """Restrict a query to this scope's company (no-op for unscoped admins)."""
        if self.is_unscoped_admin:
            return query
        return query.filter(column == self.company_uuid)

    def stamp(self, payload: dict, key: str = "company") -> dict:
        if self.company_id and not payload.get(key):
            payload[key] = self.company_id
        return payload

    def allows(self, company_id: Any) -> bool:
        if self.is_unscoped_admin:
            return True
        return normalize_reference(company_id) == self.company_id

    def ensure_allows(self, company_id: Any) -> None:
        if not self.allows(company_id):
            raise Forbidden("Access denied. You can only access data from your own company.")

    def require_company(self, supplied: Any = None) -> str:
        """
        Company id a write lands in. A supplied company must fall inside this
        scope; unscoped admins must name one explicitly.
        """
        if supplied is not None and supplied != "":
            found = normalize_reference(supplied)
            if found is None:
                raise InvalidReference("Invalid company ID format", raw=supplied)
            self.ensure_allows(found)
            return found
        if self.company_id:
            return self.company_id
        raise InvalidReference("Company is required", raw=supplied)


def lookup_caller_company(db: Session, caller: CallerIdentity) -> Tuple[Optional[str], str]:
    """Return (own company id, authoritative role) for the caller's account record."""
    subject = uuid.UUID(caller.subject_id)
    if caller.account_kind == AccountKind.STAFF:
        user = db.query(User).filter(User.id == subject).first()
        if user is None or not user.is_active:
            raise Unauthenticated("User not found")
        return (str(user.company_id) if user.company_id else None), user.role
    employee = db.query(Employee).filter(Employee.id == subject).first()
    if employee is None or not employee.is_active:
        raise Unauthenticated("Employee not found")
    return (str(employee.company_id) if employee.company_id else None), caller.role


def resolve_company_scope(
    db: Session,
    caller: CallerIdentity,
    supplied: Any = None,
    strict: bool = False,
) -> CompanyScope:
    supplied_id: Optional[str] = None
    if supplied is not None and supplied != "":
        supplied_id = normalize_reference(supplied)
        if supplied_id is None:
            raise InvalidReference("Invalid company parameter", raw=supplied)
        if not strict:
            return CompanyScope(company_id=supplied_id)

    own_company_id, role = lookup_caller_company(db, caller)

    if strict and supplied_id and own_company_id and supplied_id != own_company_id:
        log.warning(
            "cross_company_access_denied",
            subject_id=caller.subject_id,
            own_company_id=own_company_id,
            supplied_company_id=supplied_id,
        )
        raise Forbidden("Access denied. You can only access data from your own company.")

    if own_company_id:
        scope = CompanyScope(company_id=own_company_id)
    elif role == ADMIN_ROLE:
        scope = CompanyScope(company_id=supplied_id) if supplied_id else CompanyScope(is_unscoped_admin=True)
    else:
        raise Forbidden("User is not assigned to a company")

    log.debug(
        "company_scope_resolved",
        subject_id=caller.subject_id,
        company_id=scope.company_id,
        unscoped=scope.is_unscoped_admin,
        strict=strict,
    )
    return scope


def permissive_scope(
    company: Optional[str] = Query(default=None),
    caller: CallerIdentity = Depends(get_caller),
    db: Session = Depends(get_db),
) -> CompanyScope:
    return resolve_company_scope(db, caller, company, strict=False)


def strict_scope(
    company: Optional[str] = Query(default=None),
    caller: CallerIdentity = Depends(get_caller),
    db: Session = Depends(get_db),
) -> CompanyScope:
    return resolve_company_scope(db, caller, company, strict=True)
