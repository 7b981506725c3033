import asyncio

from app.services.notifications import NotificationFanout, NotificationManager


class FakeWebSocket:
    def __init__(self, fail=False):
        self.accepted = False
        self.sent = []
        self.fail = fail

    async def accept(self):
        self.accepted = True

    async def send_json(self, message):
        if self.fail:
            raise RuntimeError("closed")
        self.sent.append(message)


def test_publish_reaches_only_the_addressed_user():
    manager = NotificationManager()
    alice, bob = FakeWebSocket(), FakeWebSocket()

    async def scenario():
        await manager.connect(1, alice)
        await manager.connect(2, bob)
        manager.publish(1, "booking:quoted", {"bookingId": 7, "status": "quoted"})
        await asyncio.sleep(0)

    asyncio.run(scenario())
    assert alice.accepted
    assert alice.sent == [{"event": "booking:quoted", "payload": {"bookingId": 7, "status": "quoted"}}]
    assert bob.sent == []


def test_publish_without_listener_is_a_noop():
    manager = NotificationManager()
    manager.publish(99, "booking:new", {"bookingId": 1})
    assert manager.connection_count(99) == 0


def test_dead_socket_is_dropped():
    manager = NotificationManager()
    dead = FakeWebSocket(fail=True)

    async def scenario():
        await manager.connect(3, dead)
        await manager.send(3, {"event": "booking:cancelled", "payload": {}})

    asyncio.run(scenario())
    assert manager.connection_count(3) == 0


def test_fanout_swallows_channel_errors(caplog):
    class Exploding:
        def publish(self, user_id, event, payload):
            raise RuntimeError("boom")

    caplog.set_level("ERROR")
    assert NotificationFanout(Exploding()).notify(1, "booking:new", {}) is False
    assert any("booking:new" in r.getMessage() for r in caplog.records)


def test_publish_after_loop_shutdown_is_dropped(caplog):
    manager = NotificationManager()
    socket = FakeWebSocket()

    async def scenario():
        await manager.connect(4, socket)

    # asyncio.run closes its loop on exit, like a server that has shut down.
    asyncio.run(scenario())
    caplog.set_level("WARNING")
    assert NotificationFanout(manager).notify(4, "booking:rated", {"bookingId": 1}) is True
    assert socket.sent == []
    assert any("loop closed" in r.getMessage() for r in caplog.records)
