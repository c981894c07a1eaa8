"""
Database Schemas for Happy Thoughts

Each Pydantic model maps to a MongoDB collection with the lowercase class name.
- User -> "user"
- Thought -> "thought"
Like is embedded in Thought.hearts, one entry per like event.
"""

import secrets
from datetime import datetime, timezone
from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

MESSAGE_MIN_LENGTH = 1
MESSAGE_MAX_LENGTH = 140
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50
EMAIL_MIN_LENGTH = 6
EMAIL_MAX_LENGTH = 254


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def check_email_length(cls, v: str) -> str:
    if not EMAIL_MIN_LENGTH <= len(v) <= EMAIL_MAX_LENGTH:
        raise ValueError(f"email must be {EMAIL_MIN_LENGTH}-{EMAIL_MAX_LENGTH} characters")
    return v


class Like(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    userId: Optional[ObjectId] = Field(None, description="User who liked, None for anonymous likes")


class Thought(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True, str_strip_whitespace=True)

    message: str = Field(..., min_length=MESSAGE_MIN_LENGTH, max_length=MESSAGE_MAX_LENGTH)
    hearts: List[Like] = Field(default_factory=list, description="Like-records, never a counter")
    createdAt: datetime = Field(default_factory=utcnow)
    editToken: str = Field(default_factory=lambda: secrets.token_hex(32),
                           description="Server-side secret, never returned to clients")
    userId: Optional[ObjectId] = Field(None, description="Creator, None for anonymous posts")


class User(BaseModel):
    name: str = Field(..., min_length=NAME_MIN_LENGTH, max_length=NAME_MAX_LENGTH)
    email: EmailStr = Field(..., description="Unique email for login")
    password: str = Field(..., description="Salted password hash (server-side only)")
    accessToken: str = Field(..., description="Static bearer token for the account")

    email_length = field_validator("email")(check_email_length)
