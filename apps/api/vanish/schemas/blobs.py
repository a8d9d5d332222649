from __future__ import annotations

from pydantic import BaseModel


class DropResponse(BaseModel):
    identifier: str
    # Older clients read `id`; keep both until they are gone.
    id: str
    expires: str


class ErrorResponse(BaseModel):
    error: str
    message: str


class PaymentTerms(BaseModel):
    price: float
    currency: str
    methods: list[str]


class PaymentRequiredResponse(ErrorResponse):
    payment: PaymentTerms
