import uuid

import pytest

from hotelops.errors import CrossTenantViolation, Forbidden, Inactive, InvalidReference, NotFound
from hotelops.models.models import Employee, Food, Service
from hotelops.services.relationships import (
    ensure_company_active,
    get_in_scope,
    validate_operation_relationships,
    validate_rota_relationships,
)
from hotelops.services.scope import CompanyScope

from conftest import make_company, make_employee


def make_service(db, company, name="Laundry"):
    s = Service(name=name, description=name, category="housekeeping", status="active", company_id=company.id)
    db.add(s)
    db.commit()
    db.refresh(s)
    return s


def make_food(db, company, name="Full English"):
    f = Food(name=name, description=name, category="breakfast", price=12.5, company_id=company.id)
    db.add(f)
    db.commit()
    db.refresh(f)
    return f


@pytest.fixture
def two_hotels(db):
    a = make_company(db, name="Hotel A")
    b = make_company(db, name="Hotel B")
    return a, b


class TestEnsureCompanyActive:

    def test_active_company(self, db):
        c = make_company(db)
        assert ensure_company_active(db, str(c.id)).id == c.id

    def test_unknown_company(self, db):
        with pytest.raises(NotFound):
            ensure_company_active(db, str(uuid.uuid4()))

    def test_inactive_company(self, db):
        c = make_company(db, is_active=False)
        with pytest.raises(Inactive):
            ensure_company_active(db, str(c.id))

    def test_unparseable_company(self, db):
        with pytest.raises(InvalidReference):
            ensure_company_active(db, "not-an-id")


class TestValidateOperationRelationships:

    def test_all_references_in_company(self, db, two_hotels):
        a, _ = two_hotels
        emp = make_employee(db, a, department="reception")
        boss = make_employee(db, a, department="management")
        svc = make_service(db, a)
        food = make_food(db, a)
        refs = validate_operation_relationships(
            db, {"_id": str(a.id)}, employee=str(emp.id), service={"id": str(svc.id)}, assigned_by=boss.id, food=str(food.id)
        )
        assert refs == {
            "company_id": str(a.id),
            "employee_id": str(emp.id),
            "service_id": str(svc.id),
            "assigned_by_id": str(boss.id),
            "food_id": str(food.id),
        }

    def test_empty_references_are_skipped(self, db, two_hotels):
        a, _ = two_hotels
        refs = validate_operation_relationships(db, str(a.id), employee="", service=None)
        assert refs["employee_id"] is None
        assert refs["service_id"] is None

    def test_employee_from_other_company(self, db, two_hotels):
        a, b = two_hotels
        foreign = make_employee(db, b)
        with pytest.raises(CrossTenantViolation) as exc:
            validate_operation_relationships(db, str(a.id), employee=str(foreign.id))
        assert exc.value.status_code == 400
        assert exc.value.code == "CROSS_TENANT_VIOLATION"

    def test_missing_employee_is_not_found(self, db, two_hotels):
        a, _ = two_hotels
        with pytest.raises(NotFound):
            validate_operation_relationships(db, str(a.id), employee=str(uuid.uuid4()))

    def test_unparseable_reference(self, db, two_hotels):
        a, _ = two_hotels
        with pytest.raises(InvalidReference) as exc:
            validate_operation_relationships(db, str(a.id), service="laundry")
        assert exc.value.detail == {"value": "laundry"}

    def test_employee_checked_before_service(self, db, two_hotels):
        a, b = two_hotels
        foreign = make_employee(db, b)
        with pytest.raises(CrossTenantViolation):
            validate_operation_relationships(db, str(a.id), employee=str(foreign.id), service=str(uuid.uuid4()))

    def test_service_checked_before_assigned_by(self, db, two_hotels):
        a, b = two_hotels
        svc = make_service(db, b)
        with pytest.raises(CrossTenantViolation) as exc:
            validate_operation_relationships(db, str(a.id), service=str(svc.id), assigned_by=str(uuid.uuid4()))
        assert exc.value.message.startswith("Service")

    def test_foreign_assigned_by(self, db, two_hotels):
        a, b = two_hotels
        boss = make_employee(db, b, department="management")
        with pytest.raises(CrossTenantViolation):
            validate_operation_relationships(db, str(a.id), assigned_by=str(boss.id))

    def test_foreign_food(self, db, two_hotels):
        a, b = two_hotels
        food = make_food(db, b)
        with pytest.raises(CrossTenantViolation):
            validate_operation_relationships(db, str(a.id), food=str(food.id))

    def test_inactive_company_checked_first(self, db):
        c = make_company(db, is_active=False)
        with pytest.raises(Inactive):
            validate_operation_relationships(db, str(c.id), employee=str(uuid.uuid4()))


class TestValidateRotaRelationships:

    def test_employee_required(self, db):
        c = make_company(db)
        with pytest.raises(InvalidReference):
            validate_rota_relationships(db, str(c.id), None)

    def test_foreign_employee(self, db, two_hotels):
        a, b = two_hotels
        foreign = make_employee(db, b)
        with pytest.raises(CrossTenantViolation):
            validate_rota_relationships(db, str(a.id), str(foreign.id))

    def test_ok(self, db):
        c = make_company(db)
        emp = make_employee(db, c)
        assert validate_rota_relationships(db, c.id, {"_id": str(emp.id)}) == {
            "company_id": str(c.id),
            "employee_id": str(emp.id),
        }


class TestGetInScope:

    def test_own_record(self, db):
        c = make_company(db)
        emp = make_employee(db, c)
        scope = CompanyScope(company_id=str(c.id))
        assert get_in_scope(db, Employee, str(emp.id), scope, "employee").id == emp.id

    def test_other_company_record_is_forbidden(self, db, two_hotels):
        a, b = two_hotels
        emp = make_employee(db, b)
        with pytest.raises(Forbidden):
            get_in_scope(db, Employee, str(emp.id), CompanyScope(company_id=str(a.id)), "employee")

    def test_unscoped_admin_sees_all(self, db, two_hotels):
        _, b = two_hotels
        emp = make_employee(db, b)
        assert get_in_scope(db, Employee, str(emp.id), CompanyScope(is_unscoped_admin=True), "employee")

    def test_missing_record(self, db):
        with pytest.raises(NotFound):
            get_in_scope(db, Employee, str(uuid.uuid4()), CompanyScope(is_unscoped_admin=True), "employee")
