from hotelops.errors import CrossTenantViolation, InvalidReference


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "OK"


def test_request_id_is_echoed(client):
    r = client.get("/api/health", headers={"X-Request-ID": "abc-123"})
    assert r.headers["X-Request-ID"] == "abc-123"
    assert client.get("/api/health").headers["X-Request-ID"]


def test_unknown_route_uses_error_shape(client):
    r = client.get("/api/nowhere")
    assert r.status_code == 404
    assert r.json() == {"code": "HTTP_404", "message": "Not Found", "detail": None}


def test_error_payloads():
    assert InvalidReference("Invalid employee ID format", raw=42).to_dict() == {
        "code": "INVALID_REFERENCE",
        "message": "Invalid employee ID format",
        "detail": {"value": "42"},
    }
    err = CrossTenantViolation()
    assert err.status_code == 400
    assert err.message == "Referenced record belongs to a different company"
