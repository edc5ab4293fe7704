from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from structlog import get_logger

from marketplace.core.errors import ServiceError, to_http
from marketplace.db import get_db
from marketplace.dependencies.auth import get_current_user
from marketplace.dependencies.rate_limit import payment_rate_limit
from marketplace.schemas.payments import CreatePaymentRequest, RazorpayVerifyRequest
from marketplace.services.payments import phonepe, razorpay

logger = get_logger()
router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post("/razorpay/create", dependencies=[Depends(payment_rate_limit)])
async def razorpay_create(payload: CreatePaymentRequest, user: dict = Depends(get_current_user), db=Depends(get_db)):
    logger.info("Razorpay create requested", user_id=user.get("id"), package_id=payload.packageId, property_id=payload.propertyId)
    try:
        order = await razorpay.create_transaction(
            db, user=user, package_id=payload.packageId, property_id=payload.propertyId, amount=payload.amount
        )
        return {"success": True, "data": order}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        logger.error("Razorpay create failed", user_id=user.get("id"), error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create payment")


@router.post("/razorpay/verify")
async def razorpay_verify(payload: RazorpayVerifyRequest, user: dict = Depends(get_current_user), db=Depends(get_db)):
    try:
        result = await razorpay.verify_payment(
            db, payload.razorpay_order_id, payload.razorpay_payment_id, payload.razorpay_signature
        )
        logger.info("Razorpay payment verified", user_id=user.get("id"), order_id=payload.razorpay_order_id, status=result["status"])
        return {"success": True, "data": result}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        logger.error("Razorpay verify failed", order_id=payload.razorpay_order_id, error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to verify payment")


@router.get("/razorpay/status/{order_id}")
async def razorpay_status(order_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    try:
        return {"success": True, "data": await razorpay.get_status(db, order_id)}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        logger.error("Razorpay status failed", order_id=order_id, error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch payment status")


@router.post("/razorpay/webhook")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(None),
    db=Depends(get_db),
):
    # The gateway retries anything but a 200, so failures are logged and acknowledged.
    raw_body = await request.body()
    try:
        result = await razorpay.handle_webhook(db, raw_body, x_razorpay_signature)
        logger.info("Razorpay webhook processed", status=result.value if result else None)
    except Exception as e:
        logger.error("Razorpay webhook processing failed", error=str(e), exc_info=True)
    return {"success": True}


@router.post("/phonepe/create", dependencies=[Depends(payment_rate_limit)])
@router.post("/phonepe/transaction", dependencies=[Depends(payment_rate_limit)], include_in_schema=False)
async def phonepe_create(payload: CreatePaymentRequest, user: dict = Depends(get_current_user), db=Depends(get_db)):
    logger.info("PhonePe create requested", user_id=user.get("id"), package_id=payload.packageId, mode=payload.mode)
    try:
        result = await phonepe.create_transaction(
            db,
            user=user,
            package_id=payload.packageId,
            property_id=payload.propertyId,
            amount=payload.amount,
            mode=payload.mode,
            merchant_transaction_id=payload.merchantTransactionId,
        )
        return {"success": True, "data": result}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        logger.error("PhonePe create failed", user_id=user.get("id"), error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to create payment")


@router.get("/phonepe/status/{merchant_transaction_id}")
async def phonepe_status(merchant_transaction_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    try:
        return {"success": True, "data": await phonepe.check_status(db, merchant_transaction_id)}
    except ServiceError as e:
        raise to_http(e)
    except Exception as e:
        logger.error("PhonePe status failed", merchant_transaction_id=merchant_transaction_id, error=str(e), exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Failed to fetch payment status")


@router.post("/phonepe/callback")
async def phonepe_callback(request: Request, x_verify: Optional[str] = Header(None), db=Depends(get_db)):
    try:
        body = await request.json()
    except ValueError:
        body = {}
    response_b64 = body.get("response") if isinstance(body, dict) else None
    try:
        result = await phonepe.handle_callback(db, response_b64, x_verify)
        logger.info("PhonePe callback processed", status=result.value)
    except Exception as e:
        logger.error("PhonePe callback processing failed", error=str(e), exc_info=True)
    return {"success": True}
