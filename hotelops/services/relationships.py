"""
Cross-entity checks run before operation and rota writes.

Every reference carried by a write (employee, service, assigning employee, food)
must resolve to a record owned by the same company as the write itself. Checks
run in a fixed order and the first failure is raised.
"""
import uuid
from typing import Any, Dict, Optional, Type

from sqlalchemy.orm import Session

from ..db import Base
from ..errors import CrossTenantViolation, Inactive, InvalidReference, NotFound
from ..models.models import Company, Employee, Food, Service
from .references import normalize_reference


def ensure_company_active(db: Session, company_id: Any) -> Company:
    canonical = normalize_reference(company_id)
    if canonical is None:
        raise InvalidReference("Invalid company ID format", raw=company_id)
    company = db.query(Company).filter(Company.id == uuid.UUID(canonical)).first()
    if company is None:
        raise NotFound("Company not found")
    if not company.is_active:
        raise Inactive("Company is not active")
    return company


def ensure_belongs_to_company(
    db: Session,
    model: Type[Base],
    raw: Any,
    company_id: str,
    label: str,
) -> Optional[str]:
    """Resolve one optional reference and check its owning company. Returns its canonical id."""
    if raw is None or raw == "":
        return None
    canonical = normalize_reference(raw)
    if canonical is None:
        raise InvalidReference(f"Invalid {label} ID format", raw=raw)
    row = db.query(model).filter(model.id == uuid.UUID(canonical)).first()
    if row is None:
        raise NotFound(f"{label.capitalize()} not found")
    if str(row.company_id) != company_id:
        raise CrossTenantViolation(f"{label.capitalize()} does not belong to the specified company")
    return canonical


def get_in_scope(db: Session, model: Type[Base], raw_id: Any, scope, label: str):
    """Fetch a record by id for a scoped request; records of other companies are forbidden."""
    canonical = normalize_reference(raw_id)
    if canonical is None:
        raise InvalidReference(f"Invalid {label} ID format", raw=raw_id)
    row = db.query(model).filter(model.id == uuid.UUID(canonical)).first()
    if row is None:
        raise NotFound(f"{label.capitalize()} not found")
    scope.ensure_allows(row.company_id)
    return row


def validate_operation_relationships(
    db: Session,
    company_id: Any,
    employee: Any = None,
    service: Any = None,
    assigned_by: Any = None,
    food: Any = None,
) -> Dict[str, Optional[str]]:
    company = ensure_company_active(db, company_id)
    target = str(company.id)
    return {
        "company_id": target,
        "employee_id": ensure_belongs_to_company(db, Employee, employee, target, "employee"),
        "service_id": ensure_belongs_to_company(db, Service, service, target, "service"),
        "assigned_by_id": ensure_belongs_to_company(db, Employee, assigned_by, target, "assigned by employee"),
        "food_id": ensure_belongs_to_company(db, Food, food, target, "food item"),
    }


def validate_rota_relationships(db: Session, company_id: Any, employee: Any) -> Dict[str, Optional[str]]:
    company = ensure_company_active(db, company_id)
    target = str(company.id)
    employee_id = ensure_belongs_to_company(db, Employee, employee, target, "employee")
    if employee_id is None:
        raise InvalidReference("Employee is required", raw=employee)
    return {"company_id": target, "employee_id": employee_id}
