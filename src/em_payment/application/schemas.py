"""Pydantic schemas for em_payment API."""

import uuid
from datetime import datetime

from pydantic import BaseModel


class InitiatePaymentRequest(BaseModel):
    order_id: uuid.UUID


class InitiatePaymentResponse(BaseModel):
    gateway: str
    order_id: str
    transaction_id: str
    redirect_url: str
    amount: int
    amount_display: str
    expires_at: datetime


class PaymentMethodOption(BaseModel):
    id: str
    name: str
    description: str
    min_amount: int             # major units (PKR)
    max_amount: int | None
    processing_fee: int
    available: bool


class PaymentMethodsResponse(BaseModel):
    order_id: str
    order_amount: int
    order_amount_display: str
    currency: str = "PKR"
    available_methods: list[PaymentMethodOption]
