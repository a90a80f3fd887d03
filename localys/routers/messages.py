from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from ..core.dependencies import get_db
from ..schemas.message import (
    ChatMemberResponse,
    ChatResponse,
    ChatSummary,
    DirectChatRequest,
    MarkReadRequest,
    MessageCreate,
    MessageEdit,
    MessageResponse,
)
from ..schemas.profile import ProfileSummary
from ..services.message_service import MessageService

router = APIRouter(prefix="/chats")


async def get_message_service(db: AsyncSession = Depends(get_db)) -> MessageService:
    """Dependency function that provides an instance of MessageService."""
    return MessageService(db)


@router.get("/users/search", response_model=List[ProfileSummary])
async def search_users(
    q: str = Query(..., min_length=1),
    user_id: int = Query(...),
    service: MessageService = Depends(get_message_service)
):
    """Find people to message by username or full name (at most 10)"""
    return await service.search_users(q, user_id)


@router.get("/", response_model=List[ChatSummary])
async def list_chats(user_id: int = Query(...), service: MessageService = Depends(get_message_service)):
    """
    **Inbox**

    Chats of the user with the other participant, the latest message and the
    unread count, most recently active first.
    """
    return await service.list_chats(user_id)


@router.post("/direct", response_model=ChatResponse)
async def open_direct_chat(request: DirectChatRequest, service: MessageService = Depends(get_message_service)):
    """
    **Open Direct Chat**

    Returns the one-to-one chat of the two users, creating it the first time.
    """
    return await service.get_or_create_direct_chat(request.user_id, request.other_user_id)


@router.get("/{chat_id}/messages", response_model=List[MessageResponse])
async def get_messages(
    chat_id: int,
    user_id: int = Query(...),
    service: MessageService = Depends(get_message_service)
):
    return await service.get_messages(chat_id, user_id)


@router.post("/{chat_id}/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    chat_id: int,
    message_data: MessageCreate,
    service: MessageService = Depends(get_message_service)
):
    """
    **Send Message**

    **Request Body:**
    - **sender_id**: must be a member of the chat
    - **content**: message text
    - **reply_to**: optional id of a message in the same chat
    """
    return await service.send_message(chat_id, message_data)


@router.post("/{chat_id}/read", response_model=ChatMemberResponse)
async def mark_read(
    chat_id: int,
    request: MarkReadRequest,
    service: MessageService = Depends(get_message_service)
):
    """Everything sent before now counts as read for this user"""
    return await service.mark_read(chat_id, request.user_id)


@router.patch("/messages/{message_id}", response_model=MessageResponse)
async def edit_message(
    message_id: int,
    edit_data: MessageEdit,
    service: MessageService = Depends(get_message_service)
):
    return await service.edit_message(message_id, edit_data)


@router.delete("/messages/{message_id}", response_model=MessageResponse)
async def delete_message(
    message_id: int,
    user_id: int = Query(...),
    service: MessageService = Depends(get_message_service)
):
    """The message is kept as a "[Message deleted]" placeholder"""
    return await service.delete_message(message_id, user_id)
