from typing import Literal, Optional

from pydantic import AliasChoices, BaseModel, Field


class CreatePaymentRequest(BaseModel):
    packageId: str = Field(..., min_length=1)
    propertyId: Optional[str] = None
    # paise; only used when the package carries no price
    amount: Optional[int] = Field(None, gt=0)
    mode: Literal["redirect", "qr"] = "redirect"
    merchantTransactionId: Optional[str] = Field(None, max_length=38)

    class Config:
        json_schema_extra = {
            "example": {"packageId": "66f0c2d9e4b0a1b2c3d4e5f6", "propertyId": "66f0c2d9e4b0a1b2c3d4e5f7"}
        }


class RazorpayVerifyRequest(BaseModel):
    razorpay_order_id: str = Field(..., min_length=1, validation_alias=AliasChoices("razorpay_order_id", "orderId"))
    razorpay_payment_id: str = Field(..., min_length=1, validation_alias=AliasChoices("razorpay_payment_id", "paymentId"))
    razorpay_signature: str = Field(..., min_length=1, validation_alias=AliasChoices("razorpay_signature", "signature"))
