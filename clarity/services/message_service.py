import asyncio
import functools
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional
from ..config import MAX_MESSAGE_LENGTH
from ..errors import ClarityError, ForbiddenError, NotFoundError, ServerError, ValidationError
from ..events import EventBus, MessageCreated
from ..models import Message, MessageType, ParticipantKind, Role
from ..schemas import MessagePublic, MessageStats
from ..utils import map_message_to_public, to_object_id
from .participant_service import ParticipantService
from .tenant_filter import scope, scope_document

logger = logging.getLogger(__name__)


def store_operation(action: str):
    """
    Operation boundary: domain errors pass through untouched, anything raised by the
    store is logged with its cause and surfaced to the caller as a generic ServerError.
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except ClarityError:
                raise
            except Exception:
                logger.exception(f"Error {action}")
                raise ServerError()
        return wrapper
    return decorator


def _is_admin(role) -> bool:
    return Role(role) is Role.ADMIN


def _validate_text(text: Optional[str]) -> str:
    trimmed = (text or "").strip()
    if not trimmed:
        raise ValidationError("Message text is required")
    if len(trimmed) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message text too long (max {MAX_MESSAGE_LENGTH} characters)")
    return trimmed


def _effective_message_type(sender_role, recipient_id: Optional[str], requested: Optional[str]) -> MessageType:
    """
    Inside a private chat admins answer and members ask, whatever the client sent.
    Common messages keep the requested type, defaulting to a doubt.
    """
    if recipient_id:
        return MessageType.CLARITY if _is_admin(sender_role) else MessageType.DOUBT
    if not requested:
        return MessageType.DOUBT
    try:
        return MessageType(requested)
    except ValueError:
        raise ValidationError("Invalid message type")


class MessageService:
    """
    Tenant-scoped store for doubts and clarities.

    Every query below is wrapped with `scope()`, so a message owned by another gym
    behaves exactly like a message that does not exist.
    """

    def __init__(self, participants: ParticipantService, events: EventBus):
        self.participants = participants
        self.events = events

    async def _get_scoped(self, message_id: str, tenant_id: str) -> Message:
        oid = to_object_id(message_id)
        if oid is None:
            raise NotFoundError("Message not found")
        message = await Message.find_one(scope({"_id": oid}, tenant_id))
        if not message:
            raise NotFoundError("Message not found")
        return message

    async def _update_scoped(self, message_id, tenant_id: str, update: dict):
        return await Message.find_one(scope({"_id": to_object_id(message_id)}, tenant_id)).update(update)

    async def _enrich(
        self,
        messages: List[Message],
        tenant_id: str,
        viewer_id: Optional[str] = None,
        drop_unresolved: bool = True
    ) -> List[MessagePublic]:
        """Attach sender/recipient identities and the viewer's read flag."""
        refs = []
        for msg in messages:
            refs.append((msg.senderKind, msg.senderId))
            if msg.recipientId and msg.recipientKind:
                refs.append((msg.recipientKind, msg.recipientId))
        resolved = await self.participants.resolve_many(refs, tenant_id)

        result = []
        for msg in messages:
            sender = resolved.get((ParticipantKind(msg.senderKind), msg.senderId))
            if sender is None and drop_unresolved:
                # orphaned sender reference
                logger.debug(f"Dropping message {msg.id}: sender {msg.senderId} not found")
                continue
            recipient = None
            if msg.recipientId and msg.recipientKind:
                recipient = resolved.get((ParticipantKind(msg.recipientKind), msg.recipientId))
            result.append(map_message_to_public(msg, sender, recipient, viewer_id))
        return result

    @store_operation("fetching messages")
    async def list_for_user(self, user_id: str, role, tenant_id: str) -> List[MessagePublic]:
        """
        Common messages plus the private messages the user sent or received,
        oldest first, enriched for display.
        """
        user_id = str(user_id)
        query = scope({
            "isVisible": True,
            "$or": [
                {"recipientId": None},
                {"senderId": user_id},
                {"recipientId": user_id},
            ]
        }, tenant_id)

        messages = await Message.find(query).sort("+createdAt", "+_id").to_list()
        logger.debug(f"User {user_id} ({Role(role).value}) fetched {len(messages)} raw messages")

        return await self._enrich(messages, tenant_id, viewer_id=user_id)

    @store_operation("creating message")
    async def create(
        self,
        sender_id: str,
        sender_role,
        tenant_id: str,
        text: Optional[str],
        recipient_id: Optional[str] = None,
        message_type: Optional[str] = None,
        parent_id: Optional[str] = None
    ) -> MessagePublic:
        """
        Validate, persist and announce a new message.

        Updating the parent's reply index is best-effort: the child's parentId is
        the source of truth, so a failure there is logged and creation still succeeds.
        """
        sender_id = str(sender_id)
        sender_role = Role(sender_role)
        clean_text = _validate_text(text)

        recipient_kind = None
        if recipient_id:
            identified = await self.participants.identify_kind(recipient_id, tenant_id)
            if not identified:
                logger.info(f"Invalid recipient ID: {recipient_id}")
                raise ValidationError("Invalid recipient ID")
            recipient_kind, _ = identified
            recipient_id = str(to_object_id(recipient_id))
        else:
            recipient_id = None

        effective_type = _effective_message_type(sender_role, recipient_id, message_type)

        parent_oid = None
        if parent_id:
            parent_oid = to_object_id(parent_id)
            if parent_oid is None or not await Message.find_one(scope({"_id": parent_oid}, tenant_id)):
                raise ValidationError("Invalid parent message ID")

        message = Message(**scope_document({
            "text": clean_text,
            "senderId": sender_id,
            "senderKind": sender_role.kind,
            "recipientId": recipient_id,
            "recipientKind": recipient_kind,
            "messageType": effective_type,
            "parentId": str(parent_oid) if parent_oid else None,
        }, tenant_id))
        await message.insert()
        logger.info(
            f"Message {message.id} created by {sender_id} ({sender_role.value}), "
            f"type={effective_type.value}, recipient={recipient_id or 'common'}"
        )

        if parent_oid:
            try:
                await self._update_scoped(parent_oid, tenant_id, {
                    "$push": {"replyIds": str(message.id)},
                    "$set": {"lastReplyAt": datetime.now(timezone.utc)}
                })
            except Exception:
                logger.warning(f"Could not add reply {message.id} to parent {parent_oid}", exc_info=True)

        try:
            [public] = await self._enrich([message], tenant_id, viewer_id=sender_id, drop_unresolved=False)
        except Exception:
            # the message is stored, so answer with it unenriched rather than invite a retry
            logger.warning(f"Could not resolve participants of message {message.id}", exc_info=True)
            public = map_message_to_public(message, None, None, sender_id)

        await self.events.publish(MessageCreated(tenantId=tenant_id, message=public))
        return public

    @store_operation("toggling visibility")
    async def toggle_visibility(self, message_id: str, caller_id: str, caller_role, tenant_id: str) -> bool:
        """Flip isVisible. Only the original sender or an admin may do this."""
        message = await self._get_scoped(message_id, tenant_id)

        if message.senderId != str(caller_id) and not _is_admin(caller_role):
            raise ForbiddenError("Not authorized to modify this message")

        new_value = not message.isVisible
        await self._update_scoped(message.id, tenant_id, {"$set": {"isVisible": new_value}})
        logger.info(f"Message {message.id} visibility toggled to {new_value} by {caller_id}")
        return new_value

    @store_operation("resolving message")
    async def resolve(self, message_id: str, caller_role, tenant_id: str) -> None:
        if not _is_admin(caller_role):
            raise ForbiddenError("Admin access required")

        message = await self._get_scoped(message_id, tenant_id)
        await self._update_scoped(message.id, tenant_id, {"$set": {"isResolved": True}})
        logger.info(f"Message {message.id} marked as resolved")

    @store_operation("deleting message")
    async def delete(self, message_id: str, caller_role, tenant_id: str) -> int:
        """
        Delete a message and, one level deep, its replies.

        Cascade steps run after the primary delete and are not transactional: a
        failure leaves a degraded but readable state and is only logged.
        Returns the number of replies removed.
        """
        if not _is_admin(caller_role):
            raise ForbiddenError("Admin access required")

        message = await self._get_scoped(message_id, tenant_id)
        message_key = str(message.id)

        await Message.find(scope({"_id": message.id}, tenant_id)).delete()
        logger.info(f"Message {message_key} deleted")

        if message.parentId:
            try:
                await self._update_scoped(message.parentId, tenant_id, {"$pull": {"replyIds": message_key}})
            except Exception:
                logger.warning(f"Could not remove {message_key} from parent {message.parentId}", exc_info=True)

        deleted_replies = 0
        reply_oids = [oid for oid in (to_object_id(r) for r in message.replyIds) if oid is not None]
        try:
            # children are matched by parentId too, in case the reply index drifted
            result = await Message.find(scope({
                "$or": [
                    {"_id": {"$in": reply_oids}},
                    {"parentId": message_key},
                ]
            }, tenant_id)).delete()
            deleted_replies = result.deleted_count if result else 0
            if deleted_replies:
                logger.info(f"Deleted {deleted_replies} replies of {message_key}")
        except Exception:
            logger.warning(f"Could not delete replies of {message_key}", exc_info=True)

        return deleted_replies

    @store_operation("marking message as read")
    async def mark_read(self, message_id: str, user_id: str, tenant_id: str) -> bool:
        """Add the user to readBy. Returns False when it was already there."""
        user_id = str(user_id)
        message = await self._get_scoped(message_id, tenant_id)

        if user_id in message.readBy:
            return False

        await self._update_scoped(message.id, tenant_id, {"$addToSet": {"readBy": user_id}})
        return True

    @store_operation("marking chat as read")
    async def mark_chat_read(self, caller_id: str, other_user_id: Optional[str], tenant_id: str) -> int:
        """Mark every visible message exchanged between the two users as read by the caller."""
        if not other_user_id:
            raise ValidationError("chatUserId is required")

        caller_id, other_user_id = str(caller_id), str(other_user_id)
        query = scope({
            "isVisible": True,
            "$or": [
                {"senderId": caller_id, "recipientId": other_user_id},
                {"senderId": other_user_id, "recipientId": caller_id},
            ]
        }, tenant_id)

        messages = await Message.find(query).to_list()
        pending = [msg.id for msg in messages if caller_id not in msg.readBy]
        if not pending:
            return 0

        # a concurrent call may already have marked some of them
        result = await Message.find(scope({"_id": {"$in": pending}}, tenant_id)).update(
            {"$addToSet": {"readBy": caller_id}}
        )
        marked = result.modified_count if result else 0
        logger.info(f"Marked {marked} messages with {other_user_id} as read by {caller_id}")
        return marked

    @store_operation("fetching unread counts")
    async def unread_counts(self, user_id: str, tenant_id: str) -> Dict[str, int]:
        """Unread private messages addressed to the user, counted per sender."""
        user_id = str(user_id)
        messages = await Message.find(scope({
            "recipientId": user_id,
            "isVisible": True,
        }, tenant_id)).to_list()

        counts: Dict[str, int] = {}
        for msg in messages:
            if user_id in msg.readBy:
                continue
            counts[msg.senderId] = counts.get(msg.senderId, 0) + 1
        return counts

    @store_operation("fetching stats")
    async def stats(self, tenant_id: str) -> MessageStats:
        queries = [
            {"isVisible": True},
            {"isVisible": True, "recipientId": None},
            {"isVisible": True, "recipientId": {"$ne": None}},
            {"isVisible": True, "messageType": MessageType.DOUBT.value},
            {"isVisible": True, "messageType": MessageType.CLARITY.value},
            {"isResolved": True},
        ]
        total, common, private, doubts, clarities, resolved = await asyncio.gather(
            *[Message.find(scope(q, tenant_id)).count() for q in queries]
        )
        return MessageStats(
            total=total,
            common=common,
            private=private,
            doubts=doubts,
            clarities=clarities,
            resolved=resolved
        )

    @store_operation("fetching replies")
    async def list_replies(self, message_id: str, user_id: str, tenant_id: str) -> List[MessagePublic]:
        """Direct replies of a message, looked up by their parentId rather than the reply index."""
        parent = await self._get_scoped(message_id, tenant_id)
        replies = await Message.find(scope({
            "parentId": str(parent.id),
            "isVisible": True,
        }, tenant_id)).sort("+createdAt", "+_id").to_list()
        return await self._enrich(replies, tenant_id, viewer_id=str(user_id))

    @store_operation("reconciling replies")
    async def reconcile_replies(self, message_id: str, caller_role, tenant_id: str) -> List[str]:
        """Rebuild a parent's replyIds from the children that point at it."""
        if not _is_admin(caller_role):
            raise ForbiddenError("Admin access required")

        parent = await self._get_scoped(message_id, tenant_id)
        children = await Message.find(scope({"parentId": str(parent.id)}, tenant_id)).sort("+createdAt", "+_id").to_list()
        reply_ids = [str(child.id) for child in children]

        if reply_ids != parent.replyIds:
            logger.warning(f"Reply index of {parent.id} drifted: {len(parent.replyIds)} listed, {len(reply_ids)} found")
            update = {"$set": {"replyIds": reply_ids}}
            if children:
                update["$set"]["lastReplyAt"] = children[-1].createdAt
            await self._update_scoped(parent.id, tenant_id, update)
        return reply_ids
