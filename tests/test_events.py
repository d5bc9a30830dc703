import asyncio

import pytest
from starlette.websockets import WebSocketDisconnect

from conftest import FakeWebSocket, make_company, make_employee, make_user, staff_caller
from hotelops.auth.security import AccountKind, create_access_token
from hotelops.routes.events import topic_allowed
from hotelops.services.events import (
    EventHub,
    announce_operation,
    company_topic,
    department_topic,
    normalize_topic,
    role_topic,
    user_topic,
)


def run(coro):
    return asyncio.run(coro)


class TestEventHub:

    def test_publish_reaches_topic_subscribers_only(self):
        hub = EventHub()
        a, b = FakeWebSocket(), FakeWebSocket()
        run(hub.subscribe("company:1", a))
        run(hub.subscribe("company:2", b))
        assert run(hub.publish("company:1", "operation:created", {"id": "x"})) == 1
        assert a.sent == [{"event": "operation:created", "topic": "company:1", "data": {"id": "x"}}]
        assert b.sent == []

    def test_unsubscribe_and_disconnect(self):
        hub = EventHub()
        ws = FakeWebSocket()
        run(hub.subscribe("company:1", ws))
        run(hub.subscribe("role:admin", ws))
        run(hub.unsubscribe("company:1", ws))
        assert hub.subscribers("company:1") == 0
        assert hub.subscribers("role:admin") == 1
        run(hub.disconnect(ws))
        assert hub.subscribers("role:admin") == 0

    def test_publish_to_empty_topic(self):
        assert run(EventHub().publish("company:none", "operation:deleted", {})) == 0

    def test_broken_connection_is_dropped(self):
        hub = EventHub()
        good, bad = FakeWebSocket(), FakeWebSocket(fail=True)
        run(hub.subscribe("company:1", good))
        run(hub.subscribe("company:1", bad))
        assert run(hub.publish("company:1", "operation:updated", {})) == 1
        assert hub.subscribers("company:1") == 1


class TestAnnounceOperation:

    def test_company_and_department(self):
        hub = EventHub()
        company, dept = FakeWebSocket(), FakeWebSocket()
        run(hub.subscribe(company_topic("c1"), company))
        run(hub.subscribe(department_topic("c1", "maintenance"), dept))
        op = {"id": "o1", "company_id": "c1", "assigned_to_department": " Maintenance "}
        run(announce_operation(hub, "operation:created", op))
        assert company.sent[0]["data"] == op
        assert dept.sent[0]["topic"] == "department:c1:maintenance"

    def test_no_hub(self):
        run(announce_operation(None, "operation:created", {"company_id": "c1"}))

    def test_never_raises(self):
        class Exploding(EventHub):
            async def publish(self, topic, event, payload):
                raise RuntimeError("boom")

        run(announce_operation(Exploding(), "operation:created", {"company_id": "c1"}))


class TestNormalizeTopic:

    def test_department_matches_published_form(self):
        assert normalize_topic("department:c1: Housekeeping ") == department_topic("c1", "housekeeping")

    def test_other_topics_unchanged(self):
        assert normalize_topic(" company:c1 ") == "company:c1"
        assert normalize_topic("role:Manager") == "role:Manager"
        assert normalize_topic("department:c1") == "department:c1"


class TestTopicAllowed:

    @pytest.fixture
    def caller(self, db):
        return staff_caller(make_user(db, email="m@example.com", role="manager"))

    def test_own_topics(self, caller):
        assert topic_allowed(user_topic(caller.subject_id), caller, "manager", "c1")
        assert topic_allowed(role_topic("manager"), caller, "manager", "c1")
        assert topic_allowed(company_topic("c1"), caller, "manager", "c1")
        assert topic_allowed(department_topic("c1", "kitchen"), caller, "manager", "c1")

    def test_foreign_topics(self, caller):
        assert not topic_allowed(user_topic("someone-else"), caller, "manager", "c1")
        assert not topic_allowed(role_topic("admin"), caller, "manager", "c1")
        assert not topic_allowed(company_topic("c2"), caller, "manager", "c1")
        assert not topic_allowed("chat:1", caller, "manager", "c1")
        assert not topic_allowed("company", caller, "manager", "c1")

    def test_unscoped_admin_sees_every_company(self, caller):
        assert topic_allowed(company_topic("c9"), caller, "admin", None)
        assert not topic_allowed(company_topic("c9"), caller, "manager", None)


class TestEventSocket:

    def token_for(self, user):
        return create_access_token(str(user.id), user.role, AccountKind.STAFF, email=user.email)

    def test_connect_auto_joins(self, client, db):
        hotel = make_company(db)
        user = make_user(db, email="m@example.com", role="manager", company=hotel)
        with client.websocket_connect(f"/ws/events?token={self.token_for(user)}") as ws:
            hello = ws.receive_json()
            assert hello["event"] == "connected"
            assert hello["topics"] == [
                user_topic(str(user.id)),
                role_topic("manager"),
                company_topic(str(hotel.id)),
            ]
            ws.send_text("ping")
            assert ws.receive_text() == "pong"

    def test_employee_connects(self, client, db):
        hotel = make_company(db)
        emp = make_employee(db, hotel)
        token = create_access_token(str(emp.id), "employee", AccountKind.EMPLOYEE, email=emp.email)
        with client.websocket_connect(f"/ws/events?token={token}") as ws:
            assert company_topic(str(hotel.id)) in ws.receive_json()["topics"]

    def test_join_and_leave(self, client, db):
        hotel = make_company(db)
        user = make_user(db, email="m@example.com", role="manager", company=hotel)
        dept = department_topic(str(hotel.id), "housekeeping")
        with client.websocket_connect(f"/ws/events?token={self.token_for(user)}") as ws:
            ws.receive_json()
            ws.send_json({"action": "join", "topic": dept})
            assert ws.receive_json() == {"event": "joined", "topic": dept}
            assert client.app.state.event_hub.subscribers(dept) == 1

            ws.send_json({"action": "join", "topic": company_topic("someone-else")})
            assert ws.receive_json()["event"] == "error"

            ws.send_json({"action": "leave", "topic": dept})
            assert ws.receive_json() == {"event": "left", "topic": dept}
            assert client.app.state.event_hub.subscribers(dept) == 0

    def test_join_department_in_any_case(self, client, db):
        hotel = make_company(db)
        user = make_user(db, email="m@example.com", role="manager", company=hotel)
        dept = department_topic(str(hotel.id), "housekeeping")
        with client.websocket_connect(f"/ws/events?token={self.token_for(user)}") as ws:
            ws.receive_json()
            ws.send_json({"action": "join", "topic": f"department:{hotel.id}:Housekeeping"})
            assert ws.receive_json() == {"event": "joined", "topic": dept}
            assert client.app.state.event_hub.subscribers(dept) == 1

    def test_malformed_messages(self, client, db):
        user = make_user(db, email="a@example.com", role="admin")
        with client.websocket_connect(f"/ws/events?token={self.token_for(user)}") as ws:
            ws.receive_json()
            ws.send_text("{not json")
            assert ws.receive_json()["message"] == "Invalid message"
            ws.send_json({"action": "shout", "topic": "x"})
            assert ws.receive_json()["event"] == "error"

    def test_bad_token_is_rejected(self, client):
        with pytest.raises(WebSocketDisconnect) as e:
            with client.websocket_connect("/ws/events?token=garbage") as ws:
                ws.receive_json()
        assert e.value.code == 4401

    def test_missing_token_is_rejected(self, client):
        with pytest.raises(WebSocketDisconnect):
            with client.websocket_connect("/ws/events") as ws:
                ws.receive_json()
