import logging
from ..events import EventBus, MessageCreated
from ..schemas import PrivateNotification
from ..utils import map_message_to_public_dict

logger = logging.getLogger(__name__)


class RealtimeService:
    """
    Pushes stored messages to connected clients.

    Delivery is scoped: common messages reach every connection of the owning gym,
    private messages only reach their sender and recipient.
    """

    def __init__(self, registry):
        self.registry = registry

    def subscribe(self, events: EventBus):
        events.subscribe(MessageCreated, self.on_message_created)

    async def on_message_created(self, event: MessageCreated):
        await self.broadcast_message(event)
        await self.notify_private(event)

    async def broadcast_message(self, event: MessageCreated) -> int:
        message = event.message
        payload = map_message_to_public_dict(message)

        if message.recipientId:
            delivered = await self.registry.send_to_users(
                event.tenantId, [message.senderId, message.recipientId], "message_created", payload
            )
        else:
            delivered = await self.registry.send_to_tenant(event.tenantId, "message_created", payload)

        logger.debug(f"Message {message.id} pushed to {delivered} connections")
        return delivered

    async def notify_private(self, event: MessageCreated) -> int:
        """Toast/badge event for the recipient of a private message."""
        message = event.message
        if not message.recipientId:
            return 0

        notification = PrivateNotification(
            senderIdentity=message.sender,
            text=message.text,
            messageType=message.messageType,
            recipientId=message.recipientId
        )
        delivered = await self.registry.send_to_users(
            event.tenantId, [message.recipientId], "private_notification", notification.model_dump()
        )
        logger.debug(f"Private notification for {message.recipientId} reached {delivered} connections")
        return delivered
