import pytest

from conftest import auth_header, make_company, make_employee, make_user


@pytest.fixture
def setup(db):
    a = make_company(db, name="Hotel A")
    b = make_company(db, name="Hotel B")
    manager = make_user(db, email="mgr@a.example.com", role="manager", company=a)
    return {
        "a": a,
        "b": b,
        "emp1": make_employee(db, a, department="reception"),
        "emp2": make_employee(db, a, department="kitchen"),
        "headers": auth_header(user=manager),
    }


def rota(employee, day="2026-03-01", shift="morning", **extra):
    body = {"employee": str(employee.id), "date": day, "shiftType": shift}
    body.update(extra)
    return body


class TestRotaUniqueness:

    def test_second_entry_same_employee_and_day_is_duplicate(self, client, setup):
        h = setup["headers"]
        first = client.post("/api/rotas", json=rota(setup["emp1"]), headers=h)
        assert first.status_code == 201, first.text
        second = client.post("/api/rotas", json=rota(setup["emp1"], shift="night"), headers=h)
        assert second.status_code == 409
        body = second.json()
        assert body["code"] == "DUPLICATE_KEY"
        assert body["message"] == "A rota entry for this employee and date already exists for this company"

    def test_time_of_day_is_ignored(self, client, setup):
        h = setup["headers"]
        assert client.post("/api/rotas", json=rota(setup["emp1"]), headers=h).status_code == 201
        r = client.post("/api/rotas", json=rota(setup["emp1"], day="2026-03-01T18:45:00"), headers=h)
        assert r.status_code == 409

    def test_same_employee_other_day(self, client, setup):
        h = setup["headers"]
        assert client.post("/api/rotas", json=rota(setup["emp1"]), headers=h).status_code == 201
        assert client.post("/api/rotas", json=rota(setup["emp1"], day="2026-03-02"), headers=h).status_code == 201

    def test_other_employee_same_day(self, client, setup):
        h = setup["headers"]
        assert client.post("/api/rotas", json=rota(setup["emp1"]), headers=h).status_code == 201
        assert client.post("/api/rotas", json=rota(setup["emp2"]), headers=h).status_code == 201

    def test_moving_onto_taken_day_is_duplicate(self, client, setup):
        h = setup["headers"]
        client.post("/api/rotas", json=rota(setup["emp1"]), headers=h)
        other = client.post("/api/rotas", json=rota(setup["emp1"], day="2026-03-02"), headers=h).json()
        r = client.put(f"/api/rotas/{other['id']}", json={"date": "2026-03-01"}, headers=h)
        assert r.status_code == 409


class TestRotaWrites:

    def test_created_entry(self, client, setup):
        r = client.post(
            "/api/rotas",
            json=rota(setup["emp1"], shift="custom", startTime="09:00", endTime="17:30", notes="Cover"),
            headers=setup["headers"],
        )
        data = r.json()
        assert data["company_id"] == str(setup["a"].id)
        assert data["date"] == "2026-03-01"
        assert data["start_time"] == "09:00"
        assert data["employee"]["department"] == "reception"

    def test_foreign_employee(self, client, db, setup):
        foreign = make_employee(db, setup["b"])
        r = client.post("/api/rotas", json=rota(foreign), headers=setup["headers"])
        assert r.status_code == 400
        assert r.json()["code"] == "CROSS_TENANT_VIOLATION"

    def test_bad_shift_and_time(self, client, setup):
        h = setup["headers"]
        assert client.post("/api/rotas", json=rota(setup["emp1"], shift="evening"), headers=h).status_code == 422
        assert client.post("/api/rotas", json=rota(setup["emp1"], startTime="9am"), headers=h).status_code == 422

    def test_staff_cannot_write(self, client, db, setup):
        staff = make_user(db, email="staff@a.example.com", role="staff", company=setup["a"])
        r = client.post("/api/rotas", json=rota(setup["emp1"]), headers=auth_header(user=staff))
        assert r.status_code == 403

    def test_update_and_delete(self, client, setup):
        h = setup["headers"]
        created = client.post("/api/rotas", json=rota(setup["emp1"]), headers=h).json()
        r = client.put(f"/api/rotas/{created['id']}", json={"shiftType": "night"}, headers=h)
        assert r.json()["shift_type"] == "night"
        assert client.delete(f"/api/rotas/{created['id']}", headers=h).status_code == 200
        assert client.get("/api/rotas", headers=h).json() == []


class TestRotaList:

    def test_filters(self, client, setup):
        h = setup["headers"]
        for day in ("2026-03-01", "2026-03-05", "2026-03-09"):
            client.post("/api/rotas", json=rota(setup["emp1"], day=day), headers=h)
        client.post("/api/rotas", json=rota(setup["emp2"], day="2026-03-05"), headers=h)

        r = client.get("/api/rotas?from=2026-03-02&to=2026-03-09", headers=h)
        assert [x["date"] for x in r.json()] == ["2026-03-05", "2026-03-05", "2026-03-09"]

        r = client.get(f"/api/rotas?employee={setup['emp2'].id}", headers=h)
        assert [x["employee_id"] for x in r.json()] == [str(setup["emp2"].id)]

    def test_invalid_employee_filter(self, client, setup):
        r = client.get("/api/rotas?employee=bob", headers=setup["headers"])
        assert r.status_code == 400
