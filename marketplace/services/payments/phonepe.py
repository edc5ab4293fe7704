import base64
import hashlib
import json
import secrets
import time
from dataclasses import dataclass
from typing import Optional

import httpx
from structlog import get_logger

from marketplace.config import settings
from marketplace.core.errors import GatewayError, InvalidRequestError, NotFoundError
from marketplace.services.packages import get_package
from marketplace.services.payments.transactions import (
    MIN_AMOUNT_PAISE,
    TransactionStatus,
    normalize_transaction_status,
    open_transaction,
    parse_property_id,
    resolve_amount_paise,
    settle,
)

logger = get_logger()

GATEWAY = "phonepe"
PAY_PATH = "/pg/v1/pay"
STATUS_PATH_PREFIX = "/pg/v1/status"
CALLBACK_PATH = "/api/payments/phonepe/callback"
PAID_STATES = {"SUCCESS", "COMPLETED", "PAYMENT_SUCCESS"}
FAILED_STATES = {"FAILED", "PAYMENT_ERROR", "PAYMENT_DECLINED"}


@dataclass
class PhonePeConfig:
    merchant_id: str
    salt_key: str
    salt_index: str
    test_mode: bool = True

    @property
    def base_url(self) -> str:
        return settings.PHONEPE_SANDBOX_BASE if self.test_mode else settings.PHONEPE_PROD_BASE


async def load_config(db) -> Optional[PhonePeConfig]:
    """admin_settings.payment.phonePe when enabled and complete, else the environment."""
    admin_settings = await db.admin_settings.find_one({}) or {}
    cfg = (admin_settings.get("payment") or {}).get("phonePe") or {}
    if cfg.get("enabled") and cfg.get("merchantId") and cfg.get("saltKey") and str(cfg.get("saltIndex", "")).strip():
        return PhonePeConfig(
            merchant_id=str(cfg["merchantId"]).strip(),
            salt_key=str(cfg["saltKey"]).strip(),
            salt_index=str(cfg["saltIndex"]).strip(),
            test_mode=bool(cfg.get("testMode")),
        )

    if settings.PHONEPE_MERCHANT_ID and settings.PHONEPE_SALT_KEY and settings.PHONEPE_SALT_INDEX:
        return PhonePeConfig(
            merchant_id=settings.PHONEPE_MERCHANT_ID.strip(),
            salt_key=settings.PHONEPE_SALT_KEY.strip(),
            salt_index=str(settings.PHONEPE_SALT_INDEX).strip(),
            test_mode=settings.PHONEPE_TEST_MODE,
        )

    logger.error("PhonePe config not found in admin settings or environment")
    return None


def encode_payload(payload: dict) -> str:
    raw = json.dumps(payload, separators=(",", ":"))
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def pay_checksum(base64_payload: str, salt_key: str, salt_index: str) -> str:
    return f"{_sha256(base64_payload + PAY_PATH + salt_key)}###{salt_index}"


def status_checksum(status_path: str, salt_key: str, salt_index: str) -> str:
    return f"{_sha256(status_path + salt_key)}###{salt_index}"


def verify_callback_checksum(response_b64: str, x_verify: str, salt_key: str) -> bool:
    received = (x_verify or "").split("###")[0]
    return bool(received) and secrets.compare_digest(_sha256(response_b64 + salt_key), received)


def map_state(state: Optional[str]) -> TransactionStatus:
    state = (state or "").upper()
    if state in PAID_STATES:
        return TransactionStatus.success
    if state in FAILED_STATES:
        return TransactionStatus.failed
    return TransactionStatus.pending


def new_merchant_transaction_id() -> str:
    return f"PP_{int(time.time() * 1000)}_{secrets.token_hex(3).upper()}"


def _gateway_error(data: dict, status_code: int, fallback: str) -> GatewayError:
    code = data.get("code") or status_code
    message = data.get("message") or fallback
    return GatewayError(f"PhonePe: {code} - {message}", raw=data)


async def post_pay_request(config: PhonePeConfig, base64_payload: str, x_verify: str) -> dict:
    url = f"{config.base_url}{PAY_PATH}"
    try:
        async with httpx.AsyncClient(timeout=settings.PAYMENT_HTTP_TIMEOUT) as client:
            response = await client.post(
                url,
                json={"request": base64_payload},
                headers={"X-VERIFY": x_verify, "X-MERCHANT-ID": config.merchant_id},
            )
    except httpx.RequestError as e:
        logger.error("PhonePe pay request failed", url=url, error=str(e))
        raise GatewayError(f"PhonePe unreachable: {e}")

    try:
        data = response.json()
    except ValueError:
        data = {}
    logger.info("PhonePe pay response", status_code=response.status_code, code=data.get("code"))
    if response.is_error or not data.get("success"):
        raise _gateway_error(data, response.status_code, "PhonePe pay failed")
    return data


async def fetch_status(config: PhonePeConfig, status_path: str, x_verify: str) -> dict:
    url = f"{config.base_url}{status_path}"
    try:
        async with httpx.AsyncClient(timeout=settings.PAYMENT_HTTP_TIMEOUT) as client:
            response = await client.get(
                url, headers={"X-VERIFY": x_verify, "X-MERCHANT-ID": config.merchant_id}
            )
    except httpx.RequestError as e:
        logger.error("PhonePe status request failed", url=url, error=str(e))
        raise GatewayError(f"PhonePe unreachable: {e}")

    try:
        data = response.json()
    except ValueError:
        raise GatewayError(f"PhonePe status returned non-JSON ({response.status_code})")
    logger.info("PhonePe status response", status_code=response.status_code, code=data.get("code"))
    return data


async def create_transaction(db, *, user: dict, package_id: str, property_id: Optional[str] = None,
                             amount: Optional[int] = None, mode: str = "redirect",
                             merchant_transaction_id: Optional[str] = None) -> dict:
    config = await load_config(db)
    if config is None:
        raise InvalidRequestError("PhonePe is not configured")

    package = await get_package(db, package_id)
    property_oid = parse_property_id(property_id)
    amount_paise = max(MIN_AMOUNT_PAISE, resolve_amount_paise(package, amount))
    mtid = merchant_transaction_id or new_merchant_transaction_id()
    user_id = str(user["id"])

    tx = await open_transaction(
        db, user_id=user_id, package=package, property_oid=property_oid,
        amount_paise=amount_paise, gateway=GATEWAY, merchantTransactionId=mtid,
    )

    pay_request = {
        "merchantId": config.merchant_id,
        "merchantTransactionId": mtid,
        "merchantUserId": user_id,
        "amount": amount_paise,
        "redirectUrl": f"{settings.SITE_ORIGIN}/payment-status?transactionId={mtid}",
        "redirectMode": "REDIRECT",
        "callbackUrl": f"{settings.SITE_ORIGIN}{CALLBACK_PATH}",
        "paymentInstrument": {"type": "UPI_QR" if (mode or "").lower() == "qr" else "PAY_PAGE"},
    }
    if user.get("phone"):
        pay_request["mobileNumber"] = str(user["phone"])

    base64_payload = encode_payload(pay_request)
    x_verify = pay_checksum(base64_payload, config.salt_key, config.salt_index)
    try:
        data = await post_pay_request(config, base64_payload, x_verify)
    except GatewayError as e:
        await settle(db, {"_id": tx["_id"]}, TransactionStatus.failed, gatewayResponse=e.raw)
        raise

    instrument = (data.get("data") or {}).get("instrumentResponse") or {}
    redirect_url = (instrument.get("redirectInfo") or {}).get("url") or (data.get("data") or {}).get("redirectUrl")
    return {
        "transactionId": str(tx["_id"]),
        "merchantTransactionId": mtid,
        "status": TransactionStatus.pending.value,
        "redirectUrl": redirect_url,
        "qrBase64": instrument.get("qrData"),
    }


async def check_status(db, merchant_transaction_id: str) -> dict:
    config = await load_config(db)
    if config is None:
        raise InvalidRequestError("PhonePe is not configured")
    tx = await db.transactions.find_one({"merchantTransactionId": merchant_transaction_id})
    if not tx:
        raise NotFoundError("Transaction not found")

    status_path = f"{STATUS_PATH_PREFIX}/{config.merchant_id}/{merchant_transaction_id}"
    data = await fetch_status(config, status_path, status_checksum(status_path, config.salt_key, config.salt_index))

    status = normalize_transaction_status(tx.get("status"))
    if data.get("success"):
        mapped = map_state((data.get("data") or {}).get("state"))
        if mapped != TransactionStatus.pending:
            settled = await settle(
                db, {"_id": tx["_id"]}, mapped,
                phonepeTxnId=(data.get("data") or {}).get("transactionId"), gatewayResponse=data.get("data"),
            )
            if settled:
                status = mapped
    return {"success": bool(data.get("success")), "status": status.value, "data": data.get("data") or data}


async def handle_callback(db, response_b64: Optional[str], x_verify: Optional[str]) -> TransactionStatus:
    """Process a server-to-server callback. Raises on anything unusable."""
    config = await load_config(db)
    if config is None:
        raise InvalidRequestError("PhonePe is not configured")
    if not response_b64 or not x_verify:
        raise InvalidRequestError("Invalid callback data")
    if not verify_callback_checksum(response_b64, x_verify, config.salt_key):
        raise InvalidRequestError("Invalid checksum")

    try:
        decoded = json.loads(base64.b64decode(response_b64).decode("utf-8"))
    except ValueError as e:
        raise InvalidRequestError(f"Undecodable callback payload: {e}")
    data = decoded.get("data") or {}
    mtid = data.get("merchantTransactionId")
    if not mtid:
        raise InvalidRequestError("Callback without merchantTransactionId")

    status = map_state(data.get("state") or decoded.get("code"))
    if status == TransactionStatus.pending:
        logger.info("PhonePe callback still pending", merchant_transaction_id=mtid)
        return status

    settled = await settle(
        db, {"merchantTransactionId": mtid}, status,
        phonepeTxnId=data.get("transactionId"), gatewayResponse=decoded,
    )
    if settled is None and not await db.transactions.find_one({"merchantTransactionId": mtid}):
        raise NotFoundError(f"Transaction {mtid} not found")
    return status
