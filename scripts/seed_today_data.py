"""
Seed a demo hotel with employees and today's check-ins, check-outs and
service requests.

Usage:
  python scripts/seed_today_data.py

Idempotent: the company and employees are matched by name/email, and today's
operations are only created when the company has none yet.
"""
import sys
import os
from datetime import date, datetime, time, timedelta

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dotenv import load_dotenv

load_dotenv()

from hotelops.db import SessionLocal, Base, engine  # noqa: E402
from hotelops.models.models import Company, Employee, Operation, Rota, Service  # noqa: E402
from hotelops.services.reports import today_start  # noqa: E402


COMPANY_NAME = "new company"

EMPLOYEES = [
    ("john.reception@newcompany.com", "John", "Reception", "receptionist", "reception"),
    ("sarah.housekeeping@newcompany.com", "Sarah", "Housekeeping", "housekeeper", "housekeeping"),
    ("mike.operations@newcompany.com", "Mike", "Operations", "technician", "maintenance"),
    ("emma.food@newcompany.com", "Emma", "Food", "server", "food-beverage"),
    ("david.manager@newcompany.com", "David", "Manager", "manager", "management"),
]

CHECK_INS = [
    ("101", "Alice Johnson", 2),
    ("102", "Bob Smith", 1),
    ("103", "Carol White", 3),
    ("201", "Daniel Green", 2),
    ("202", "Eve Black", 4),
]

# rooms whose guests already left today
CHECK_OUTS = [
    ("102", "Bob Smith", 1),
]

SERVICE_REQUESTS = [
    ("101", "Extra towels", "housekeeping", "low"),
    ("103", "Air conditioning not cooling", "maintenance", "high"),
    ("202", "Room service breakfast", "food-beverage", "medium"),
]


def ensure_company(session) -> Company:
    company = session.query(Company).filter(Company.name == COMPANY_NAME).first()
    if company:
        print(f"Found company: {company.id}")
        return company
    company = Company(
        name=COMPANY_NAME,
        address="123 Hotel Street",
        city="London",
        postcode="SW1A 1AA",
        phone="+44 20 1234 5678",
        email="info@newcompany.com",
        description="New company hotel",
        room_count=20,
        is_active=True,
    )
    session.add(company)
    session.flush()
    print(f"Created company: {company.id}")
    return company


def ensure_employee(session, company: Company, email: str, first: str, last: str, role: str, department: str) -> Employee:
    e = session.query(Employee).filter(Employee.email == email).first()
    if e:
        return e
    e = Employee(
        first_name=first,
        last_name=last,
        email=email,
        phone="+44 20 1234 5678",
        role=role,
        department=department,
        start_date=date.today(),
        company_id=company.id,
        is_active=True,
    )
    session.add(e)
    session.flush()
    print(f"Created employee: {first} {last}")
    return e


def ensure_service(session, company: Company, name: str, category: str) -> Service:
    s = session.query(Service).filter(Service.company_id == company.id, Service.name == name).first()
    if s:
        return s
    s = Service(name=name, description=name, category=category, status="active", company_id=company.id)
    session.add(s)
    session.flush()
    return s


def seed_operations(session, company: Company, staff: dict) -> int:
    since = today_start()
    existing = (
        session.query(Operation)
        .filter(Operation.company_id == company.id, Operation.created_at >= since)
        .count()
    )
    if existing:
        print(f"Company already has {existing} operations today, skipping")
        return 0

    now = datetime.utcnow()
    morning = datetime.combine(now.date(), time(8, 0))
    reception = staff["reception"]
    created = 0
    for i, (room, guest, people) in enumerate(CHECK_INS):
        session.add(Operation(
            type="check-in",
            company_id=company.id,
            employee_id=reception.id,
            room_number=room,
            guest_name=guest,
            number_of_people=people,
            check_in_date=morning + timedelta(minutes=15 * i),
            description=f"Check-in for {guest}",
            status="completed",
        ))
        created += 1
    for room, guest, people in CHECK_OUTS:
        session.add(Operation(
            type="check-out",
            company_id=company.id,
            employee_id=reception.id,
            room_number=room,
            guest_name=guest,
            number_of_people=people,
            check_out_date=morning + timedelta(hours=3),
            description=f"Check-out for {guest}",
            status="completed",
        ))
        created += 1
    for room, what, department, priority in SERVICE_REQUESTS:
        service = ensure_service(session, company, what, department)
        session.add(Operation(
            type="service-request",
            company_id=company.id,
            service_id=service.id,
            assigned_by_id=staff["management"].id,
            employee_id=staff.get(department, reception).id,
            room_number=room,
            assigned_to_department=department,
            priority=priority,
            description=what,
            status="pending",
        ))
        created += 1
    return created


def seed_rota(session, company: Company, staff: dict) -> int:
    today = date.today()
    created = 0
    for department, e in staff.items():
        exists = (
            session.query(Rota)
            .filter(Rota.employee_id == e.id, Rota.company_id == company.id, Rota.date == today)
            .first()
        )
        if exists:
            continue
        shift = "night" if department == "maintenance" else "morning"
        session.add(Rota(
            employee_id=e.id,
            company_id=company.id,
            date=today,
            shift_type=shift,
            start_time="22:00" if shift == "night" else "07:00",
            end_time="06:00" if shift == "night" else "15:00",
        ))
        created += 1
    return created


def main():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        company = ensure_company(session)
        staff = {}
        for email, first, last, role, department in EMPLOYEES:
            staff[department] = ensure_employee(session, company, email, first, last, role, department)
        ops = seed_operations(session, company, staff)
        rotas = seed_rota(session, company, staff)
        session.commit()
        print(f"Seed complete: {ops} operations, {rotas} rota entries")
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


if __name__ == "__main__":
    main()
