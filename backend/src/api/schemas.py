from datetime import datetime, timezone
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field, EmailStr, StringConstraints, field_serializer

# Whitespace-only names are rejected rather than stored as ""
NameStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)]

# Same bound as the note_tags.tag column
TagStr = Annotated[str, StringConstraints(min_length=1, max_length=255)]


def utc_isoformat(value: datetime) -> str:
    """Render a stored (naive UTC) timestamp as ISO 8601 with a Z suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


# Auth / Tokens

class TokenResponse(BaseModel):
    """Token response for successful register/login"""
    token: str = Field(..., description="JWT access token")


class RegisterRequest(BaseModel):
    """Request model to register a new user"""
    name: NameStr = Field(..., description="Display name")
    email: EmailStr = Field(..., description="User email (case-insensitive)")
    password: str = Field(..., min_length=6, description="Plaintext password (min 6 chars)")


class LoginRequest(BaseModel):
    """Request model to log in"""
    email: EmailStr
    password: str = Field(..., min_length=1)


# Users

class ProfileUpdateRequest(BaseModel):
    """
    Profile update (partial). Only name and email exist on this model, so any
    other key in the body (password, id, ...) is dropped during parsing.
    """
    name: Optional[NameStr] = None
    email: Optional[EmailStr] = None


class UserResponse(BaseModel):
    """User response without sensitive fields"""
    id: str
    name: str
    email: str
    created_at: datetime = Field(..., serialization_alias="createdAt")

    @field_serializer("created_at")
    def serialize_created_at(self, value: datetime) -> str:
        return utc_isoformat(value)

    class Config:
        from_attributes = True


# Notes

class NoteCreateRequest(BaseModel):
    """Create note request"""
    title: str = Field(..., min_length=1, max_length=255)
    body: str = Field("", description="Note body")
    tags: List[TagStr] = Field(default_factory=list, description="Ordered tags, duplicates allowed")


class NoteUpdateRequest(BaseModel):
    """Update note request (partial). Timestamps and ownership are server-owned."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    body: Optional[str] = None
    tags: Optional[List[TagStr]] = None


class NoteResponse(BaseModel):
    """Note response model"""
    id: str
    owner_id: str = Field(..., serialization_alias="ownerId")
    title: str
    body: str
    tags: List[str]
    created_at: datetime = Field(..., serialization_alias="createdAt")
    updated_at: datetime = Field(..., serialization_alias="updatedAt")

    @field_serializer("created_at", "updated_at")
    def serialize_timestamps(self, value: datetime) -> str:
        return utc_isoformat(value)

    class Config:
        from_attributes = True


class MessageResponse(BaseModel):
    msg: str
