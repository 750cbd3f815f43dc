from fastapi import APIRouter, Depends, Request
from typing import List
from ..errors import ForbiddenError
from ..schemas import MessageCreate, MarkChatReadRequest, MessagePublic, MessageStats, UnreadCounts
from ..security import CurrentUser, get_tenant_user
from ..services import MessageService

router = APIRouter(tags=["Doubts"])


def get_message_service(request: Request) -> MessageService:
    return request.app.state.message_service


@router.get("", response_model=List[MessagePublic])
async def list_messages(
    current_user: CurrentUser = Depends(get_tenant_user),
    service: MessageService = Depends(get_message_service)
):
    """Common messages plus the caller's private chats, oldest first."""
    return await service.list_for_user(
        user_id=current_user.userId,
        role=current_user.role,
        tenant_id=current_user.tenantId
    )


@router.post("", response_model=MessagePublic, status_code=201)
async def create_message(
    data: MessageCreate,
    current_user: CurrentUser = Depends(get_tenant_user),
    service: MessageService = Depends(get_message_service)
):
    """Post a doubt or clarity. Setting recipientId makes it a private message."""
    return await service.create(
        sender_id=current_user.userId,
        sender_role=current_user.role,
        tenant_id=current_user.tenantId,
        text=data.text,
        recipient_id=data.recipientId,
        message_type=data.messageType,
        parent_id=data.parentId
    )


@router.get("/stats", response_model=MessageStats)
async def get_stats(
    current_user: CurrentUser = Depends(get_tenant_user),
    service: MessageService = Depends(get_message_service)
):
    """Message counts for the gym. Admin only."""
    if not current_user.is_admin:
        raise ForbiddenError("Admin access required")
    return await service.stats(current_user.tenantId)


@router.get("/unread-counts", response_model=UnreadCounts)
async def get_unread_counts(
    current_user: CurrentUser = Depends(get_tenant_user),
    service: MessageService = Depends(get_message_service)
):
    """Unread private messages per sender."""
    return await service.unread_counts(current_user.userId, current_user.tenantId)


@router.post("/mark-chat-read")
async def mark_chat_read(
    data: MarkChatReadRequest,
    current_user: CurrentUser = Depends(get_tenant_user),
    service: MessageService = Depends(get_message_service)
):
    """Mark the whole conversation with another user as read."""
    count = await service.mark_chat_read(
        caller_id=current_user.userId,
        other_user_id=data.chatUserId,
        tenant_id=current_user.tenantId
    )
    return {"msg": f"Marked {count} messages as read", "count": count}


@router.get("/presence")
async def get_presence(
    request: Request,
    current_user: CurrentUser = Depends(get_tenant_user)
):
    """Users of the gym currently connected over the websocket."""
    return request.app.state.presence.presence(current_user.tenantId)


@router.put("/{message_id}/toggle")
async def toggle_visibility(
    message_id: str,
    current_user: CurrentUser = Depends(get_tenant_user),
    service: MessageService = Depends(get_message_service)
):
    """Hide or unhide a message. Sender or admin."""
    is_visible = await service.toggle_visibility(
        message_id=message_id,
        caller_id=current_user.userId,
        caller_role=current_user.role,
        tenant_id=current_user.tenantId
    )
    return {"msg": "Visibility updated successfully", "isVisible": is_visible}


@router.put("/{message_id}/resolve")
async def resolve_message(
    message_id: str,
    current_user: CurrentUser = Depends(get_tenant_user),
    service: MessageService = Depends(get_message_service)
):
    """Mark a doubt as resolved. Admin only."""
    await service.resolve(message_id, current_user.role, current_user.tenantId)
    return {"msg": "Message marked as resolved successfully"}


@router.delete("/{message_id}")
async def delete_message(
    message_id: str,
    current_user: CurrentUser = Depends(get_tenant_user),
    service: MessageService = Depends(get_message_service)
):
    """Delete a message and its direct replies. Admin only."""
    replies_deleted = await service.delete(message_id, current_user.role, current_user.tenantId)
    return {"msg": "Message deleted successfully", "repliesDeleted": replies_deleted}


@router.post("/{message_id}/read")
async def mark_read(
    message_id: str,
    current_user: CurrentUser = Depends(get_tenant_user),
    service: MessageService = Depends(get_message_service)
):
    await service.mark_read(message_id, current_user.userId, current_user.tenantId)
    return {"msg": "Message marked as read"}


@router.get("/{message_id}/replies", response_model=List[MessagePublic])
async def list_replies(
    message_id: str,
    current_user: CurrentUser = Depends(get_tenant_user),
    service: MessageService = Depends(get_message_service)
):
    """Direct replies of a message, oldest first."""
    return await service.list_replies(message_id, current_user.userId, current_user.tenantId)


@router.post("/{message_id}/reconcile-replies")
async def reconcile_replies(
    message_id: str,
    current_user: CurrentUser = Depends(get_tenant_user),
    service: MessageService = Depends(get_message_service)
):
    """Rebuild a message's reply index from its children. Admin only."""
    reply_ids = await service.reconcile_replies(message_id, current_user.role, current_user.tenantId)
    return {"replyIds": reply_ids}
