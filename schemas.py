import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class UserRead(BaseModel):
    """Public projection of a user. Never carries the secret or its hash."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str
    phone: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserUpdated(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str
    phone: str
    updated_at: Optional[datetime] = None


class Message(BaseModel):
    message: str


class UserCreatedResponse(Message):
    user: UserRead


class UserUpdatedResponse(Message):
    user: UserUpdated
