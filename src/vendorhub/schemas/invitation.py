"""Group order invitation schemas for request/response validation."""

import re
from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from vendorhub.schemas.group_order import QuantityUpdate

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[\d\s()-]+$")


def is_valid_phone(phone: str) -> bool:
    return bool(PHONE_PATTERN.match(phone)) and sum(c.isdigit() for c in phone) >= 10


class InvitationCreate(BaseModel):
    """Schema for sending an invitation. The contact must fit the method."""

    method: Literal["email", "sms", "link"] = "email"
    contact: str = Field(..., min_length=1, max_length=255)
    message: str | None = Field(None, max_length=1000)

    @model_validator(mode="after")
    def check_contact(self) -> "InvitationCreate":
        self.contact = self.contact.strip()
        if not self.contact:
            raise ValueError("Please enter contact information")
        if self.method == "email" and not EMAIL_PATTERN.match(self.contact):
            raise ValueError("Please enter a valid email address")
        if self.method == "sms" and not is_valid_phone(self.contact):
            raise ValueError("Please enter a valid phone number")
        return self


class InvitationAcceptRequest(BaseModel):
    """Initial contribution made when accepting an invitation."""

    updates: list[QuantityUpdate] = Field(..., min_length=1)


class InvitationResponse(BaseModel):
    invitation_id: UUID
    group_order_id: UUID
    group_order_title: str
    sender_id: str
    sender_name: str
    recipient_contact: str
    method: str
    message: str
    status: str
    expires_at: datetime
    accepted_by: str | None
    accepted_at: datetime | None
    declined_by: str | None
    declined_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime

    model_config = {"from_attributes": True}


class InvitationListResponse(BaseModel):
    invitations: list[InvitationResponse]
    total: int
