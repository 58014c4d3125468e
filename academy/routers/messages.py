from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, and_, func
from typing import List

from academy.database import get_db
from academy.core.auth import get_current_user
from academy.core.notifications import broker, MESSAGE_RECEIVED
from academy.models.message import DirectMessage
from academy.models.user import User
from academy.schemas.message import MessageCreate, MessageResponse, ConversationSummary
from academy.utils.dates import utcnow

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    message_in: MessageCreate,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    if message_in.recipient_id == current_user.id:
        raise HTTPException(400, "Cannot message yourself")
    recipient = await db.get(User, message_in.recipient_id)
    if not recipient or not recipient.is_active:
        raise HTTPException(404, "Recipient not found")

    message = DirectMessage(
        sender_id=current_user.id,
        recipient_id=recipient.id,
        content=message_in.content,
        is_read=False,
        created_at=utcnow(),
    )
    db.add(message)
    await db.commit()
    await db.refresh(message)

    payload = MessageResponse.model_validate(message)
    broker.publish(recipient.id, MESSAGE_RECEIVED, payload.model_dump(mode="json"))
    return payload


@router.get("/conversations", response_model=List[ConversationSummary])
async def get_conversations(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    """Latest message and unread count per conversation partner, newest first."""
    result = await db.execute(
        select(DirectMessage)
        .where(or_(DirectMessage.sender_id == current_user.id, DirectMessage.recipient_id == current_user.id))
        .order_by(DirectMessage.created_at.desc(), DirectMessage.id.desc())
    )
    summaries = {}
    for message in result.scalars():
        partner = message.recipient_id if message.sender_id == current_user.id else message.sender_id
        summary = summaries.get(partner)
        if summary is None:
            summary = summaries[partner] = {
                "user_id": partner,
                "last_message": message,
                "unread_count": 0,
            }
        if message.recipient_id == current_user.id and not message.is_read:
            summary["unread_count"] += 1
    return list(summaries.values())


@router.get("/with/{user_id}", response_model=List[MessageResponse])
async def get_conversation(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    result = await db.execute(
        select(DirectMessage)
        .where(or_(
            and_(DirectMessage.sender_id == current_user.id, DirectMessage.recipient_id == user_id),
            and_(DirectMessage.sender_id == user_id, DirectMessage.recipient_id == current_user.id),
        ))
        .order_by(DirectMessage.created_at, DirectMessage.id)
    )
    return result.scalars().all()


@router.put("/{message_id}/read", response_model=MessageResponse)
async def mark_read(
    message_id: int,
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    message = await db.get(DirectMessage, message_id)
    if not message or message.recipient_id != current_user.id:
        raise HTTPException(404, "Message not found")
    if not message.is_read:
        message.is_read = True
        message.read_at = utcnow()
        await db.commit()
        await db.refresh(message)
    return message


@router.get("/unread-count")
async def unread_count(
    db: AsyncSession = Depends(get_db),
    current_user = Depends(get_current_user)
):
    count = await db.scalar(
        select(func.count(DirectMessage.id))
        .where(DirectMessage.recipient_id == current_user.id)
        .where(DirectMessage.is_read.is_(False))
    )
    return {"unread": count or 0}
