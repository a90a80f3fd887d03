import logging
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models import Chat, ChatMember, Message, Profile
from ..schemas.message import ChatMemberResponse, MessageCreate, MessageEdit, MessageResponse
from ..schemas.profile import ProfileSummary
from ..exceptions import BadRequestException, ForbiddenException, NotFoundException
from ..utils.search import LIKE_ESCAPE, contains_pattern

logger = logging.getLogger(__name__)

DELETED_PLACEHOLDER = "[Message deleted]"
USER_SEARCH_LIMIT = 10


def direct_chat_key(user_id: int, other_user_id: int) -> str:
    low, high = sorted((user_id, other_user_id))
    return f"{low}:{high}"


class MessageService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_user(self, user_id: int) -> Profile:
        profile = await self.db.get(Profile, user_id)
        if not profile:
            raise NotFoundException("User not found")
        return profile

    async def _membership(self, chat_id: int, user_id: int) -> ChatMember:
        query = select(ChatMember).where(and_(ChatMember.chat_id == chat_id, ChatMember.user_id == user_id))
        member = (await self.db.execute(query)).scalar_one_or_none()
        if member:
            return member

        if not await self.db.get(Chat, chat_id):
            raise NotFoundException("Chat not found")
        raise ForbiddenException("You are not a member of this chat")

    async def _load_message(self, message_id: int) -> Message:
        query = (
            select(Message)
            .options(selectinload(Message.sender))
            .where(Message.id == message_id)
            .execution_options(populate_existing=True)
        )
        return (await self.db.execute(query)).scalar_one()

    async def _get_direct_chat(self, key: str):
        query = select(Chat).where(Chat.direct_key == key)
        return (await self.db.execute(query)).scalar_one_or_none()

    # Chats

    async def get_or_create_direct_chat(self, user_id: int, other_user_id: int) -> Chat:
        """
        The one-to-one chat of two users, created on first use.

        The pair key is unique, so two users opening the chat at the same time
        end up in the same one.
        """
        if user_id == other_user_id:
            raise BadRequestException("You can't start a chat with yourself")
        await self._get_user(user_id)
        await self._get_user(other_user_id)

        key = direct_chat_key(user_id, other_user_id)
        existing = await self._get_direct_chat(key)
        if existing:
            return existing

        chat = Chat(is_group=False, direct_key=key)
        self.db.add(chat)
        try:
            await self.db.flush()
            self.db.add_all([
                ChatMember(chat_id=chat.id, user_id=user_id),
                ChatMember(chat_id=chat.id, user_id=other_user_id),
            ])
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            return await self._get_direct_chat(key)

        logger.info(f"Chat {chat.id} created between users {user_id} and {other_user_id}")
        return chat

    async def list_chats(self, user_id: int) -> List[Dict[str, Any]]:
        """
        Inbox of a user: every chat with its members, the other participant,
        the latest message and the number of unread messages. Most recently
        active first.
        """
        query = (
            select(ChatMember)
            .options(
                selectinload(ChatMember.chat)
                .selectinload(Chat.members)
                .selectinload(ChatMember.user)
            )
            .where(ChatMember.user_id == user_id)
        )
        memberships = list((await self.db.execute(query)).scalars().all())
        if not memberships:
            return []

        chat_ids = [membership.chat_id for membership in memberships]

        latest_ids = select(func.max(Message.id)).where(Message.chat_id.in_(chat_ids)).group_by(Message.chat_id)
        latest_query = select(Message).options(selectinload(Message.sender)).where(Message.id.in_(latest_ids))
        latest = {message.chat_id: message for message in (await self.db.execute(latest_query)).scalars().all()}

        unread_query = (
            select(Message.chat_id, func.count(Message.id))
            .join(ChatMember, and_(ChatMember.chat_id == Message.chat_id, ChatMember.user_id == user_id))
            .where(
                and_(
                    Message.chat_id.in_(chat_ids),
                    Message.sender_id != user_id,
                    or_(ChatMember.last_read.is_(None), Message.created_at > ChatMember.last_read)
                )
            )
            .group_by(Message.chat_id)
        )
        unread = dict((await self.db.execute(unread_query)).all())

        chats = []
        for membership in memberships:
            chat = membership.chat
            other = next((member.user for member in chat.members if member.user_id != user_id), None)
            last_message = latest.get(chat.id)
            chats.append({
                "id": chat.id,
                "is_group": chat.is_group,
                "created_at": chat.created_at,
                "members": [ChatMemberResponse.model_validate(member) for member in chat.members],
                "other_user": ProfileSummary.model_validate(other) if other else None,
                "last_message": MessageResponse.model_validate(last_message) if last_message else None,
                "unread_count": unread.get(chat.id, 0),
            })

        chats.sort(
            key=lambda c: c["last_message"].created_at if c["last_message"] else c["created_at"],
            reverse=True,
        )
        return chats

    async def mark_read(self, chat_id: int, user_id: int) -> ChatMember:
        stmt = (
            update(ChatMember)
            .where(and_(ChatMember.chat_id == chat_id, ChatMember.user_id == user_id))
            .values(last_read=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        if result.rowcount == 0:
            await self._membership(chat_id, user_id)

        await self.db.commit()
        member = await self._membership(chat_id, user_id)
        await self.db.refresh(member)
        return member

    # Messages

    async def get_messages(self, chat_id: int, user_id: int) -> List[Message]:
        """Messages of a chat in the order they were sent. Members only."""
        await self._membership(chat_id, user_id)

        query = (
            select(Message)
            .options(selectinload(Message.sender))
            .where(Message.chat_id == chat_id)
            .order_by(Message.created_at, Message.id)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def send_message(self, chat_id: int, message_data: MessageCreate) -> Message:
        await self._membership(chat_id, message_data.sender_id)

        if message_data.reply_to is not None:
            target = await self.db.get(Message, message_data.reply_to)
            if not target or target.chat_id != chat_id:
                raise BadRequestException("Reply target is not in this chat")

        message = Message(chat_id=chat_id, **message_data.model_dump())
        self.db.add(message)
        await self.db.commit()

        return await self._load_message(message.id)

    async def _own_message(self, message_id: int, user_id: int) -> Message:
        message = await self.db.get(Message, message_id)
        if not message:
            raise NotFoundException("Message not found")
        if message.sender_id != user_id:
            raise ForbiddenException("You can only change your own messages")
        return message

    async def edit_message(self, message_id: int, edit_data: MessageEdit) -> Message:
        message = await self._own_message(message_id, edit_data.user_id)
        if message.deleted:
            raise BadRequestException("Deleted messages can't be edited")

        message.content = edit_data.content
        message.edited_at = datetime.utcnow()
        await self.db.commit()

        return await self._load_message(message_id)

    async def delete_message(self, message_id: int, user_id: int) -> Message:
        """Soft delete: the message stays in the thread as a placeholder"""
        message = await self._own_message(message_id, user_id)

        message.deleted = True
        message.content = DELETED_PLACEHOLDER
        await self.db.commit()

        logger.info(f"Message {message_id} deleted by user {user_id}")
        return await self._load_message(message_id)

    async def search_users(self, query: str, current_user_id: int) -> List[Profile]:
        """Profiles to start a chat with, matched on username or full name"""
        query = query.strip()
        if not query:
            return []

        pattern = contains_pattern(query)
        stmt = (
            select(Profile)
            .where(
                and_(
                    Profile.id != current_user_id,
                    or_(
                        Profile.username.ilike(pattern, escape=LIKE_ESCAPE),
                        Profile.full_name.ilike(pattern, escape=LIKE_ESCAPE)
                    )
                )
            )
            .order_by(Profile.username)
            .limit(USER_SEARCH_LIMIT)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
