"""Pydantic schemas for request/response validation."""
from typing import List, Optional
from pydantic import BaseModel, Field
from letterflow.models.domain import Attachment
from letterflow.models.enums import LetterStatus, RecipientRole, Role


# Session schemas
class LoginRequest(BaseModel):
    username: str
    password: str


# User schemas
class UserCreate(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=1)
    role: Role = Role.EMPLOYEE
    position: str = ""
    signature_image: Optional[str] = None
    avatar_url: Optional[str] = None


class UserUpdate(BaseModel):
    username: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=1)
    role: Role
    position: str = ""
    signature_image: Optional[str] = None
    avatar_url: Optional[str] = None
    password: Optional[str] = None  # Unchanged when omitted


# Letter schemas
class RecipientRequest(BaseModel):
    user_id: str
    role: RecipientRole = RecipientRole.SIGNER


class LetterCreate(BaseModel):
    subject: str = Field(..., min_length=1, max_length=300)
    content: str = ""
    recipients: List[RecipientRequest] = Field(..., min_length=1)
    attachment: Optional[Attachment] = None


class RecipientAction(BaseModel):
    status: LetterStatus
    comment: Optional[str] = Field(None, max_length=1000)
    signature_image: Optional[str] = None


class StatusCounts(BaseModel):
    """Dashboard totals for one user."""
    total: int
    pending: int
    approved: int
    rejected: int


# Drafting schemas
class DraftRequest(BaseModel):
    topic: str = Field(..., min_length=1)
    recipient_ids: List[str] = Field(..., min_length=1)


class DraftResponse(BaseModel):
    text: str


# Error response
class ErrorResponse(BaseModel):
    """Response when the service layer rejects a request."""
    message: str
    problems: List[str] = []
