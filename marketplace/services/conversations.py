import re
from datetime import datetime
from typing import List, Optional

from pymongo import DESCENDING
from structlog import get_logger

from marketplace.core.errors import ForbiddenError, InvalidRequestError, NotFoundError
from marketplace.db import parse_object_id, utcnow
from marketplace.services.properties import owner_of

logger = get_logger()

MAX_TEXT_LENGTH = 2000
MAX_PAGE = 100
_TAGS = re.compile(r"<[^>]*>")


def sanitize_text(text: Optional[str]) -> str:
    if not text:
        return ""
    return _TAGS.sub("", text).strip()[:MAX_TEXT_LENGTH]


def _messages_of(conversation_oid) -> dict:
    # older messages reference the conversation by its string id
    return {"conversationId": {"$in": [conversation_oid, str(conversation_oid)]}}


def _participant_filter(user_id: str) -> dict:
    return {"$or": [{"buyer": user_id}, {"seller": user_id}, {"participants": user_id}]}


async def _conversation_for(db, conversation_id: str, user_id: str) -> dict:
    oid = parse_object_id(conversation_id)
    if oid is None:
        raise NotFoundError("Conversation not found")
    conversation = await db.conversations.find_one({"_id": oid, **_participant_filter(user_id)})
    if not conversation:
        raise ForbiddenError("Access denied")
    return conversation


async def find_or_create(db, property_id: str, buyer_id: str):
    """Return ``(conversation, created)``."""
    property_oid = parse_object_id(property_id)
    if property_oid is None:
        raise InvalidRequestError("Invalid property ID")
    prop = await db.properties.find_one({"_id": property_oid})
    if not prop:
        raise NotFoundError("Property not found")

    seller_id = owner_of(prop)
    if not seller_id:
        raise InvalidRequestError("Property has no owner")
    if seller_id == buyer_id:
        raise InvalidRequestError("Cannot create conversation with yourself")

    key = {"property": property_oid, "buyer": buyer_id, "seller": seller_id}
    existing = await db.conversations.find_one(key)
    if existing:
        return existing, False

    now = utcnow()
    conversation = dict(
        key,
        propertyId=property_id,
        participants=[buyer_id, seller_id],
        lastMessageAt=now,
        createdAt=now,
        updatedAt=now,
    )
    result = await db.conversations.insert_one(conversation)
    conversation["_id"] = result.inserted_id
    logger.info("Conversation created", conversation_id=str(result.inserted_id), property_id=property_id)
    return conversation, True


async def list_my_conversations(db, user_id: str) -> List[dict]:
    conversations = await db.conversations.find(_participant_filter(user_id)).sort(
        "lastMessageAt", DESCENDING
    ).to_list(length=None)

    property_ids = list({c["property"] for c in conversations if c.get("property")})
    properties = await db.properties.find({"_id": {"$in": property_ids}}).to_list(length=None) if property_ids else []
    titles = {p["_id"]: p.get("title") for p in properties}

    for conversation in conversations:
        conversation["propertyTitle"] = titles.get(conversation.get("property"))
        conversation["unreadCount"] = await db.messages.count_documents({
            **_messages_of(conversation["_id"]),
            "senderId": {"$ne": user_id},
            "readBy.userId": {"$ne": user_id},
        })
    return conversations


async def _mark_read(db, conversation_oid, user_id: str) -> int:
    result = await db.messages.update_many(
        {**_messages_of(conversation_oid), "senderId": {"$ne": user_id}, "readBy.userId": {"$ne": user_id}},
        {"$push": {"readBy": {"userId": user_id, "readAt": utcnow()}}},
    )
    return result.modified_count


async def list_messages(db, conversation_id: str, user_id: str, cursor: Optional[datetime] = None, limit: int = 50) -> List[dict]:
    conversation = await _conversation_for(db, conversation_id, user_id)
    query = _messages_of(conversation["_id"])
    if cursor is not None:
        query["createdAt"] = {"$lt": cursor}
    limit = max(1, min(limit, MAX_PAGE))
    newest_first = await db.messages.find(query).sort("createdAt", DESCENDING).limit(limit).to_list(length=None)
    await _mark_read(db, conversation["_id"], user_id)
    return list(reversed(newest_first))


async def send_message(db, conversation_id: str, user: dict, text: Optional[str], image_url: Optional[str]) -> dict:
    if not text and not image_url:
        raise InvalidRequestError("Either text or imageUrl is required")
    user_id = str(user["id"])
    conversation = await _conversation_for(db, conversation_id, user_id)

    safe_text = sanitize_text(text)
    if not safe_text and not image_url:
        raise InvalidRequestError("Message is empty")

    now = utcnow()
    message = {
        "conversationId": conversation["_id"],
        "senderId": user_id,
        "senderName": user.get("name") or "User",
        "senderType": "seller" if conversation.get("seller") == user_id else "buyer",
        "text": safe_text,
        "imageUrl": image_url,
        "messageType": "image" if image_url else "text",
        "readBy": [{"userId": user_id, "readAt": now}],
        "createdAt": now,
    }
    result = await db.messages.insert_one(message)
    message["_id"] = result.inserted_id

    await db.conversations.update_one(
        {"_id": conversation["_id"]},
        {"$set": {
            "lastMessageAt": now,
            "updatedAt": now,
            "lastMessage": {"text": safe_text, "senderId": user_id, "createdAt": now},
        }},
    )
    logger.info("Message sent", conversation_id=conversation_id, sender_id=user_id)
    return message


async def mark_conversation_read(db, conversation_id: str, user_id: str) -> int:
    conversation = await _conversation_for(db, conversation_id, user_id)
    return await _mark_read(db, conversation["_id"], user_id)
