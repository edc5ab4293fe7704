from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel
from structlog import get_logger

from marketplace.core.errors import InvalidRequestError, ServiceError, to_http
from marketplace.db import get_db, serialize
from marketplace.dependencies.auth import get_current_user
from marketplace.dependencies.rate_limit import message_rate_limit
from marketplace.services import conversations as conversation_service

logger = get_logger()
router = APIRouter(prefix="/api/conversations", tags=["conversations"])


class FindOrCreateRequest(BaseModel):
    propertyId: Optional[str] = None


class MessageRequest(BaseModel):
    text: Optional[str] = None
    imageUrl: Optional[str] = None


@router.post("/find-or-create")
async def find_or_create(
    response: Response,
    body: Optional[FindOrCreateRequest] = None,
    propertyId: Optional[str] = Query(None),
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    property_id = (body.propertyId if body else None) or propertyId
    try:
        if not property_id:
            raise InvalidRequestError("propertyId is required")
        conversation, created = await conversation_service.find_or_create(db, property_id, str(user["id"]))
        response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
        return {"success": True, "data": serialize(conversation)}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        logger.error("Find-or-create conversation failed", property_id=property_id, error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to open conversation")


@router.get("/my")
async def my_conversations(user: dict = Depends(get_current_user), db=Depends(get_db)):
    try:
        conversations = await conversation_service.list_my_conversations(db, str(user["id"]))
        return {"success": True, "data": serialize(conversations)}
    except Exception as e:
        logger.error("Conversation listing failed", user_id=user.get("id"), error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch conversations")


@router.get("/{conversation_id}/messages")
async def get_messages(
    conversation_id: str,
    cursor: Optional[datetime] = None,
    limit: int = Query(50, ge=1, le=100),
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    try:
        messages = await conversation_service.list_messages(db, conversation_id, str(user["id"]), cursor=cursor, limit=limit)
        return {"success": True, "data": serialize(messages)}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        logger.error("Message listing failed", conversation_id=conversation_id, error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch messages")


@router.post("/{conversation_id}/messages", status_code=status.HTTP_201_CREATED, dependencies=[Depends(message_rate_limit)])
async def send_message(conversation_id: str, payload: MessageRequest, user: dict = Depends(get_current_user), db=Depends(get_db)):
    try:
        message = await conversation_service.send_message(db, conversation_id, user, payload.text, payload.imageUrl)
        return {"success": True, "data": serialize(message)}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        logger.error("Send message failed", conversation_id=conversation_id, error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to send message")


@router.post("/{conversation_id}/read")
async def mark_read(conversation_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    try:
        updated = await conversation_service.mark_conversation_read(db, conversation_id, str(user["id"]))
        return {"success": True, "data": {"updated": updated}}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        logger.error("Mark read failed", conversation_id=conversation_id, error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to mark messages read")
