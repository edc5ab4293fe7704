"""Local transaction records shared by the payment gateways.

A transaction starts ``pending`` and moves exactly once to ``success`` or
``failed``. The move is a single ``find_one_and_update`` filtered on the
open statuses (``pending`` and the older ``processing``), so a terminal status
is never overwritten. Older ``paid`` records read as ``success``.
"""
import math
from datetime import timedelta
from enum import Enum
from typing import Optional

from bson import ObjectId
from pymongo import ReturnDocument
from structlog import get_logger

from marketplace.core.errors import InvalidRequestError
from marketplace.db import parse_object_id, utcnow

logger = get_logger()

MIN_AMOUNT_PAISE = 100
CURRENCY = "INR"


class TransactionStatus(str, Enum):
    pending = "pending"
    success = "success"
    failed = "failed"


# Older records were written with these values.
LEGACY_STATUSES = {
    "paid": TransactionStatus.success,
    "processing": TransactionStatus.pending,
}
OPEN_STATUSES = [TransactionStatus.pending.value, "processing"]


def normalize_transaction_status(value: Optional[str]) -> TransactionStatus:
    value = (value or "").lower()
    if value in LEGACY_STATUSES:
        return LEGACY_STATUSES[value]
    try:
        return TransactionStatus(value)
    except ValueError:
        logger.warning("Unknown transaction status treated as pending", status=value)
        return TransactionStatus.pending


def resolve_amount_paise(package: dict, requested_paise: Optional[int]) -> int:
    """Package price wins when set; otherwise the client-supplied amount."""
    try:
        price = float(package.get("price") or 0)
    except (TypeError, ValueError):
        logger.warning("Unusable package price", package_id=str(package.get("_id")), price=package.get("price"))
        price = 0.0
    if math.isfinite(price) and price > 0:
        return int(round(price * 100))
    if requested_paise and requested_paise > 0:
        return int(requested_paise)
    raise InvalidRequestError("Invalid package amount")


def parse_property_id(property_id: Optional[str]) -> Optional[ObjectId]:
    if not property_id:
        return None
    oid = parse_object_id(property_id)
    if oid is None:
        raise InvalidRequestError("Invalid propertyId")
    return oid


async def open_transaction(db, *, user_id: str, package: dict, property_oid: Optional[ObjectId],
                           amount_paise: int, gateway: str, **extra) -> dict:
    now = utcnow()
    doc = {
        "userId": str(user_id),
        "packageId": package["_id"],
        "propertyId": property_oid,
        "amount": amount_paise / 100,
        "currency": CURRENCY,
        "gateway": gateway,
        "status": TransactionStatus.pending.value,
        "packageName": package.get("name", ""),
        "packageDuration": int(package.get("duration") or 0),
        "createdAt": now,
        "updatedAt": now,
    }
    doc.update(extra)
    result = await db.transactions.insert_one(doc)
    doc["_id"] = result.inserted_id
    logger.info("Transaction opened", transaction_id=str(result.inserted_id), gateway=gateway, amount_paise=amount_paise)
    return doc


async def settle(db, query: dict, status: TransactionStatus, **fields) -> Optional[dict]:
    """Move a pending (or legacy processing) transaction to a terminal status.

    Returns the updated document, or None when nothing open matched.
    """
    if status == TransactionStatus.pending:
        raise ValueError("settle() needs a terminal status")
    now = utcnow()
    update = dict(fields, status=status.value, updatedAt=now)
    if status == TransactionStatus.success:
        update["paidAt"] = now
    tx = await db.transactions.find_one_and_update(
        dict(query, status={"$in": OPEN_STATUSES}),
        {"$set": update},
        return_document=ReturnDocument.AFTER,
    )
    if tx is None:
        logger.warning("No pending transaction to settle", query=str(query), status=status.value)
        return None

    logger.info("Transaction settled", transaction_id=str(tx["_id"]), status=status.value, gateway=tx.get("gateway"))
    if status == TransactionStatus.success:
        await apply_package(db, tx)
    return tx


async def apply_package(db, tx: dict):
    """Attach the purchased package to the listing and send it back to moderation."""
    if not tx.get("propertyId") or not tx.get("packageId"):
        return
    package = await db.ad_packages.find_one({"_id": tx["packageId"]})
    if not package:
        logger.error("Paid package missing", transaction_id=str(tx["_id"]), package_id=str(tx["packageId"]))
        return

    now = utcnow()
    package_type = package.get("type", "")
    await db.properties.update_one(
        {"_id": tx["propertyId"]},
        {"$set": {
            "packageId": package["_id"],
            "packageExpiry": now + timedelta(days=int(package.get("duration") or 0)),
            "featured": package_type in ("featured", "premium"),
            "premium": package_type == "premium",
            "isPaid": True,
            "paymentGateway": tx.get("gateway"),
            "lastPaymentAt": now,
            "approvalStatus": "pending",
            "updatedAt": now,
        }},
    )
    logger.info("Package applied", property_id=str(tx["propertyId"]), package_type=package_type)
