from pydantic import BaseModel, Field, field_validator
from typing import List, Optional

class RegistrationCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: str = Field(min_length=3, max_length=320)  # plain str to allow .local and other dev domains
    contact: str = Field(min_length=5, max_length=40)
    ticketClass: str = Field(min_length=1, max_length=80)
    quantity: int = 1

    @field_validator("email")
    @classmethod
    def email_has_at(cls, v: str) -> str:
        v = v.strip()
        if "@" not in v:
            raise ValueError("email must contain @")
        return v

class RegistrationOut(BaseModel):
    ticketId: str
    status: str
    amount: int
    currency: str

class CheckoutOut(BaseModel):
    ticketId: str
    redirectUrl: str
    gatewayRef: str
    reused: bool = False

class TicketStatusOut(BaseModel):
    ticketId: str
    status: str

class PaymentAttemptOut(BaseModel):
    id: str
    gateway: str
    gatewayRef: str
    status: str
    amount: int
    createdAt: str
    finalizedAt: Optional[str] = None

class TicketOut(BaseModel):
    ticketId: str
    eventId: str
    name: str
    email: str
    contact: str
    ticketClass: str
    quantity: int
    unitPrice: int
    amount: int
    currency: str
    status: str
    createdAt: str
    updatedAt: str
    attempts: List[PaymentAttemptOut] = []

class ReceiptOut(BaseModel):
    ticketId: str
    eventId: str
    eventTitle: str
    eventDate: Optional[str] = None
    eventLocation: str = ""
    name: str
    email: str
    contact: str
    ticketClass: str
    quantity: int
    unitPrice: int
    amount: int
    currency: str
    gateway: str
    gatewayRef: str
    providerTxnId: str = ""
    paidAt: Optional[str] = None
