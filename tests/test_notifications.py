import asyncio

from conftest import auth_headers

from ems_backend.core.presence import PresenceHub
from ems_backend.models.notification import Notification
from ems_backend.services.notifications import emit_notification, record_notification


class FakeSocket:
    def __init__(self, broken=False):
        self.sent = []
        self.accepted = False
        self.broken = broken

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.broken:
            raise RuntimeError("connection reset")
        self.sent.append(message)


def test_emit_notification_persists_and_broadcasts(session_factory, db):
    hub = PresenceHub()
    socket = FakeSocket()
    asyncio.run(hub.connect(socket))

    notification = asyncio.run(
        emit_notification(session_factory, "Alice updated their profile", hub=hub)
    )

    assert notification is not None
    assert db.query(Notification).count() == 1
    assert socket.accepted
    assert socket.sent[0]["event"] == "notification"
    assert socket.sent[0]["message"] == "Alice updated their profile"
    assert socket.sent[0]["targetRole"] == "admin"


def test_emit_notification_swallows_storage_errors():
    def broken_factory():
        raise RuntimeError("no database")

    assert asyncio.run(emit_notification(broken_factory, "lost")) is None


def test_broadcast_drops_broken_clients():
    hub = PresenceHub()
    good, bad = FakeSocket(), FakeSocket(broken=True)
    asyncio.run(hub.connect(good))
    asyncio.run(hub.connect(bad))

    delivered = asyncio.run(hub.broadcast({"event": "ping"}))

    assert delivered == 1
    assert hub.connected == 1
    assert good.sent == [{"event": "ping"}]


def test_list_notifications_by_role(client, db, admin, alice):
    record_notification(db, "first")
    record_notification(db, "second")
    record_notification(db, "for staff", target_role="employee")

    admin_view = client.get("/notifications", headers=auth_headers(admin))
    staff_view = client.get("/notifications", headers=auth_headers(alice))

    assert admin_view.status_code == 200
    assert [n["message"] for n in admin_view.json()["notifications"]] == ["second", "first"]
    assert [n["message"] for n in staff_view.json()["notifications"]] == ["for staff"]


def test_list_notifications_limit(client, db, admin):
    for i in range(5):
        record_notification(db, f"n{i}")

    resp = client.get("/notifications?limit=2", headers=auth_headers(admin))

    assert len(resp.json()["notifications"]) == 2
    assert client.get("/notifications?limit=0", headers=auth_headers(admin)).status_code == 400


def test_presence_status(client):
    resp = client.get("/presence")

    assert resp.status_code == 200
    assert resp.json()["success"] is True
