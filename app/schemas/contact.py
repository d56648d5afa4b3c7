
from datetime import datetime
from typing import Literal
from pydantic import BaseModel, EmailStr, Field, field_validator

ContactStatus = Literal["new", "read", "replied", "archived", "spam"]

class ContactIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: str | None = Field(default=None, max_length=20)
    company: str | None = Field(default=None, max_length=255)
    subject: str = Field(min_length=1, max_length=255)
    message: str = Field(min_length=1, max_length=5000)

    @field_validator("email", mode="before")
    @classmethod
    def _email_length(cls, value):
        if isinstance(value, str) and len(value) > 255:
            raise ValueError("email must not be longer than 255 characters")
        return value

class ContactUpdate(BaseModel):
    status: ContactStatus
    notes: str | None = Field(default=None, max_length=1000)

class ContactOut(BaseModel):
    id: int
    name: str
    email: str
    phone: str | None = None
    company: str | None = None
    subject: str
    message: str
    short_message: str
    status: str
    is_unread: bool
    ip_address: str | None = None
    user_agent: str | None = None
    meta: dict | None = Field(default=None, serialization_alias="metadata")
    read_at: datetime | None = None
    replied_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True
