import hashlib
import hmac
import json
from dataclasses import dataclass
from typing import Optional

import httpx
from structlog import get_logger

from marketplace.config import settings
from marketplace.core.errors import GatewayError, InvalidRequestError, NotFoundError
from marketplace.services.packages import get_package
from marketplace.services.payments.transactions import (
    CURRENCY,
    MIN_AMOUNT_PAISE,
    TransactionStatus,
    normalize_transaction_status,
    open_transaction,
    parse_property_id,
    resolve_amount_paise,
    settle,
)

logger = get_logger()

GATEWAY = "razorpay"
SUCCESS_EVENTS = {"payment.captured", "order.paid"}
FAILURE_EVENTS = {"payment.failed"}


@dataclass
class RazorpayConfig:
    key_id: str
    key_secret: str
    webhook_secret: str = ""
    api_base: str = "https://api.razorpay.com/v1"


def load_config() -> RazorpayConfig:
    if not settings.RAZORPAY_KEY_ID or not settings.RAZORPAY_KEY_SECRET:
        raise InvalidRequestError("Razorpay is not configured")
    return RazorpayConfig(
        key_id=settings.RAZORPAY_KEY_ID,
        key_secret=settings.RAZORPAY_KEY_SECRET,
        webhook_secret=settings.RAZORPAY_WEBHOOK_SECRET,
        api_base=settings.RAZORPAY_API_BASE.rstrip("/"),
    )


def _hmac_sha256(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def order_signature(secret: str, order_id: str, payment_id: str) -> str:
    return _hmac_sha256(secret, f"{order_id}|{payment_id}".encode("utf-8"))


def verify_payment_signature(secret: str, order_id: str, payment_id: str, signature: str) -> bool:
    if not signature:
        return False
    return hmac.compare_digest(order_signature(secret, order_id, payment_id), signature)


def verify_webhook_signature(secret: str, raw_body: bytes, signature: Optional[str]) -> bool:
    if not secret or not signature:
        return False
    return hmac.compare_digest(_hmac_sha256(secret, raw_body), signature)


async def create_order(config: RazorpayConfig, amount_paise: int, receipt: str, notes: dict) -> dict:
    url = f"{config.api_base}/orders"
    body = {
        "amount": amount_paise,
        "currency": CURRENCY,
        "receipt": receipt,
        "payment_capture": 1,
        "notes": notes,
    }
    try:
        async with httpx.AsyncClient(timeout=settings.PAYMENT_HTTP_TIMEOUT) as client:
            response = await client.post(url, json=body, auth=(config.key_id, config.key_secret))
    except httpx.RequestError as e:
        logger.error("Razorpay order request failed", url=url, error=str(e))
        raise GatewayError(f"Razorpay unreachable: {e}")

    try:
        data = response.json()
    except ValueError:
        data = {}
    if response.is_error or not data.get("id"):
        error = data.get("error") or {}
        logger.error("Razorpay order rejected", status_code=response.status_code, error=error)
        raise GatewayError(
            f"Razorpay: {error.get('description') or 'order creation failed'}", raw=data
        )
    logger.info("Razorpay order created", order_id=data["id"], amount_paise=amount_paise)
    return data


async def create_transaction(db, *, user: dict, package_id: str, property_id: Optional[str] = None,
                             amount: Optional[int] = None) -> dict:
    config = load_config()
    package = await get_package(db, package_id)
    property_oid = parse_property_id(property_id)
    amount_paise = max(MIN_AMOUNT_PAISE, resolve_amount_paise(package, amount))

    tx = await open_transaction(
        db, user_id=str(user["id"]), package=package, property_oid=property_oid,
        amount_paise=amount_paise, gateway=GATEWAY,
    )
    # receipt is capped at 40 chars by the gateway
    receipt = f"rcpt_{tx['_id']}"[:40]
    notes = {
        "transactionId": str(tx["_id"]),
        "packageId": str(package["_id"]),
        "propertyId": str(property_oid) if property_oid else "",
        "userId": str(user["id"]),
    }
    try:
        order = await create_order(config, amount_paise, receipt, notes)
    except GatewayError as e:
        await settle(db, {"_id": tx["_id"]}, TransactionStatus.failed, gatewayResponse=e.raw)
        raise

    await db.transactions.update_one({"_id": tx["_id"]}, {"$set": {"razorpayOrderId": order["id"]}})
    return {
        "transactionId": str(tx["_id"]),
        "razorpayOrderId": order["id"],
        "amount": amount_paise,
        "currency": CURRENCY,
        "keyId": config.key_id,
    }


async def verify_payment(db, order_id: str, payment_id: str, signature: str) -> dict:
    config = load_config()
    tx = await db.transactions.find_one({"razorpayOrderId": order_id, "gateway": GATEWAY})
    if not tx:
        raise NotFoundError("Transaction not found")
    if not verify_payment_signature(config.key_secret, order_id, payment_id, signature):
        logger.warning("Razorpay signature mismatch", order_id=order_id, transaction_id=str(tx["_id"]))
        raise InvalidRequestError("Invalid payment signature")

    settled = await settle(
        db, {"_id": tx["_id"]}, TransactionStatus.success,
        razorpayPaymentId=payment_id, razorpaySignature=signature,
    )
    final = settled or await db.transactions.find_one({"_id": tx["_id"]})
    return {"transactionId": str(final["_id"]), "status": normalize_transaction_status(final.get("status")).value}


async def get_status(db, order_id: str) -> dict:
    tx = await db.transactions.find_one({"razorpayOrderId": order_id, "gateway": GATEWAY})
    if not tx:
        raise NotFoundError("Transaction not found")
    return {
        "transactionId": str(tx["_id"]),
        "razorpayOrderId": order_id,
        "status": normalize_transaction_status(tx.get("status")).value,
        "amount": tx.get("amount"),
        "currency": tx.get("currency", CURRENCY),
    }


async def handle_webhook(db, raw_body: bytes, signature: Optional[str]) -> Optional[TransactionStatus]:
    """Apply a webhook event. Returns the terminal status set, or None when ignored."""
    if not verify_webhook_signature(settings.RAZORPAY_WEBHOOK_SECRET, raw_body, signature):
        raise InvalidRequestError("Invalid webhook signature")
    try:
        event = json.loads(raw_body)
    except ValueError as e:
        raise InvalidRequestError(f"Undecodable webhook body: {e}")

    name = event.get("event", "")
    if name in SUCCESS_EVENTS:
        status = TransactionStatus.success
    elif name in FAILURE_EVENTS:
        status = TransactionStatus.failed
    else:
        logger.info("Razorpay webhook ignored", event=name)
        return None

    payload = event.get("payload") or {}
    payment = (payload.get("payment") or {}).get("entity") or {}
    order = (payload.get("order") or {}).get("entity") or {}
    order_id = payment.get("order_id") or order.get("id")
    if not order_id:
        raise InvalidRequestError("Webhook without order id")

    fields = {"gatewayResponse": event}
    if payment.get("id"):
        fields["razorpayPaymentId"] = payment["id"]
    settled = await settle(db, {"razorpayOrderId": order_id, "gateway": GATEWAY}, status, **fields)
    return status if settled else None
