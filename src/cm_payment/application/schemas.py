"""Pydantic schemas for cm_payment: the metadata contract and API bodies.

The metadata travels through the gateway untouched and comes back on verify;
it is validated strictly before any money moves.
"""

from pydantic import AliasChoices, BaseModel, ConfigDict, EmailStr, Field


class PaymentMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: str = Field(alias="productId")
    buyer_id: str = Field(
        validation_alias=AliasChoices("buyerId", "userId", "buyer_id"),
        serialization_alias="buyerId",
    )
    product_price: int = Field(alias="productPrice", gt=0)    # kobo, line subtotal
    delivery_fee: int = Field(alias="deliveryFee", ge=0)      # kobo
    total_amount: int = Field(alias="totalAmount", gt=0)      # kobo
    quantity: int = Field(1, ge=1)
    order_id: str | None = Field(None, alias="orderId")


class InitializePaymentRequest(BaseModel):
    order_id: str
    email: EmailStr


class InitializePaymentResponse(BaseModel):
    order_id: str
    reference: str
    authorization_url: str
    access_code: str
    amount_kobo: int
