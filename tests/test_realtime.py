from datetime import datetime, timezone

from clarity.events import EventBus, MessageCreated
from clarity.schemas import Identity, MessagePublic, ParticipantPublic
from clarity.services import RealtimeService
from clarity.websocket import PresenceRegistry


def _identity(user_id, tenant_id="iron", role="member", name=None):
    return Identity(userId=user_id, role=role, name=name or user_id, tenantId=tenant_id)


def _message(sender_id="m1", recipient_id=None, tenant_id="iron", text="Hello"):
    return MessagePublic(
        id="msg-1",
        text=text,
        tenantId=tenant_id,
        senderId=sender_id,
        sender=ParticipantPublic(id=sender_id, name="Arjun"),
        senderKind="Member",
        recipient=ParticipantPublic(id=recipient_id, name="Admin") if recipient_id else None,
        recipientId=recipient_id,
        recipientKind="Admin" if recipient_id else None,
        messageType="doubt",
        isVisible=True,
        isResolved=False,
        createdAt=datetime(2026, 10, 1, 9, 30, tzinfo=timezone.utc)
    )


async def test_register_broadcasts_presence_within_tenant(make_connection):
    registry = PresenceRegistry()
    first, second, outsider = make_connection(), make_connection(), make_connection()

    await registry.register(outsider, _identity("x1", tenant_id="steel"))
    await registry.register(first, _identity("m1"))
    await registry.register(second, _identity("a1", role="admin", name="Admin"))

    assert first.payloads("presence_updated")[-1] == [
        {"userId": "m1", "role": "member", "name": "m1"},
        {"userId": "a1", "role": "admin", "name": "Admin"},
    ]
    assert second.payloads("presence_updated") == [first.payloads("presence_updated")[-1]]
    assert outsider.payloads("presence_updated") == [[{"userId": "x1", "role": "member", "name": "x1"}]]


async def test_disconnect_removes_and_rebroadcasts(make_connection):
    registry = PresenceRegistry()
    staying, leaving = make_connection(), make_connection()
    await registry.register(staying, _identity("m1"))
    await registry.register(leaving, _identity("m2"))

    await registry.on_disconnect(leaving)
    await registry.on_disconnect(leaving)

    assert staying.payloads("presence_updated")[-1] == [{"userId": "m1", "role": "member", "name": "m1"}]
    assert registry.presence("iron") == [{"userId": "m1", "role": "member", "name": "m1"}]
    assert registry.identity_of(leaving) is None


async def test_failed_send_drops_connection(make_connection):
    registry = PresenceRegistry()
    healthy, broken = make_connection(), make_connection(fail=True)
    registry.active_connections[broken] = _identity("m2")

    await registry.register(healthy, _identity("m1"))

    assert registry.identity_of(broken) is None
    assert healthy.payloads("presence_updated")


async def test_dropped_connection_leaves_presence_list(make_connection):
    registry = PresenceRegistry()
    staying, dying = make_connection(), make_connection()
    await registry.register(staying, _identity("m1"))
    await registry.register(dying, _identity("m2"))
    dying.fail = True

    await registry.send_to_tenant("iron", "message_created", {"id": "msg-1"})
    await registry.on_disconnect(dying)

    assert registry.presence("iron") == [{"userId": "m1", "role": "member", "name": "m1"}]
    assert staying.payloads("presence_updated")[-1] == [{"userId": "m1", "role": "member", "name": "m1"}]


async def test_common_message_reaches_whole_tenant_only(make_connection):
    registry = PresenceRegistry()
    member, admin, outsider = make_connection(), make_connection(), make_connection()
    await registry.register(member, _identity("m1"))
    await registry.register(admin, _identity("a1", role="admin"))
    await registry.register(outsider, _identity("x1", tenant_id="steel"))

    delivered = await RealtimeService(registry).broadcast_message(MessageCreated(tenantId="iron", message=_message()))

    assert delivered == 2
    assert member.payloads("message_created")[0]["id"] == "msg-1"
    assert admin.payloads("message_created")[0]["createdAt"] == "2026-10-01T09:30:00+00:00"
    assert outsider.payloads("message_created") == []


async def test_private_message_reaches_only_its_participants(make_connection):
    registry = PresenceRegistry()
    sender, recipient, bystander = make_connection(), make_connection(), make_connection()
    await registry.register(sender, _identity("m1"))
    await registry.register(recipient, _identity("a1", role="admin"))
    await registry.register(bystander, _identity("m2"))

    event = MessageCreated(tenantId="iron", message=_message(recipient_id="a1", text="Is creatine safe?"))
    await RealtimeService(registry).on_message_created(event)

    assert len(sender.payloads("message_created")) == 1
    assert len(recipient.payloads("message_created")) == 1
    assert bystander.payloads("message_created") == []

    assert recipient.payloads("private_notification") == [{
        "senderIdentity": {"id": "m1", "name": "Arjun"},
        "text": "Is creatine safe?",
        "messageType": "doubt",
        "recipientId": "a1",
    }]
    assert sender.payloads("private_notification") == []
    assert bystander.payloads("private_notification") == []


async def test_private_recipient_in_other_tenant_gets_nothing(make_connection):
    registry = PresenceRegistry()
    same_id_elsewhere = make_connection()
    await registry.register(same_id_elsewhere, _identity("a1", tenant_id="steel", role="admin"))

    event = MessageCreated(tenantId="iron", message=_message(recipient_id="a1"))
    await RealtimeService(registry).on_message_created(event)

    assert same_id_elsewhere.payloads("message_created") == []
    assert same_id_elsewhere.payloads("private_notification") == []


async def test_fanout_without_connections_is_a_no_op():
    service = RealtimeService(PresenceRegistry())
    event = MessageCreated(tenantId="iron", message=_message(recipient_id="a1"))

    assert await service.broadcast_message(event) == 0
    assert await service.notify_private(event) == 0


async def test_event_bus_isolates_failing_handlers():
    bus = EventBus()
    seen = []

    async def broken(event):
        raise RuntimeError("boom")

    async def working(event):
        seen.append(event.message.id)

    bus.subscribe(MessageCreated, broken)
    bus.subscribe(MessageCreated, working)

    await bus.publish(MessageCreated(tenantId="iron", message=_message()))

    assert seen == ["msg-1"]
