"""Domain models - users, letters and their recipients, system settings."""
from datetime import datetime, timezone
from typing import List, Optional
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from letterflow import config
from letterflow.models.enums import LetterStatus, RecipientRole, Role
from letterflow.services.status_aggregation import aggregate_status


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


class PublicUser(BaseModel):
    """
    A user account as seen outside the user repository.

    Never carries credentials.
    """
    id: str = Field(default_factory=new_id)
    username: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=1)
    role: Role = Role.EMPLOYEE
    position: str = ""
    signature_image: Optional[str] = None  # Opaque encoded image, used as an approval mark
    avatar_url: Optional[str] = None


class User(PublicUser):
    """
    Stored user record.

    Invariants:
    - username is unique (enforced by the repository)
    - password is only ever held as a salted bcrypt hash
    """
    password_hash: str

    def public(self) -> PublicUser:
        return PublicUser(**self.model_dump(exclude={"password_hash"}))


class LetterRecipient(BaseModel):
    """
    One user's participation in a letter.

    Invariants:
    - role is SIGNER or VIEWER, nothing else
    - signature_image is only present once the recipient has APPROVED
    - user_name is a snapshot taken when the recipient was added
    """
    user_id: str
    user_name: str
    role: RecipientRole
    status: LetterStatus = LetterStatus.PENDING
    action_date: Optional[datetime] = None
    comment: Optional[str] = None
    signature_image: Optional[str] = None


class Attachment(BaseModel):
    """An opaque file blob. The service stores it and hands it back, nothing more."""
    name: str = Field(..., min_length=1)
    mime_type: str
    size: int = Field(..., ge=0)  # Decoded file size in bytes
    data: str

    @field_validator("size")
    @classmethod
    def size_within_limit(cls, value: int) -> int:
        if value > config.MAX_ATTACHMENT_BYTES:
            raise ValueError(
                f"attachment is {value} bytes, the limit is {config.MAX_ATTACHMENT_BYTES} bytes"
            )
        return value


class Letter(BaseModel):
    """
    A letter routed to one or more recipients.

    Invariants:
    - status always equals aggregate_status(recipients); it is frozen and only
      changes through with_recomputed_status()
    - a user appears at most once in recipients
    - sender_name is a snapshot taken at creation time
    - version increases by one on every persisted change
    """
    id: str = Field(default_factory=new_id)
    subject: str = Field(..., min_length=1)
    content: str = ""
    sender_id: str
    sender_name: str
    recipients: List[LetterRecipient]
    status: LetterStatus = Field(default=LetterStatus.PENDING, frozen=True)
    created_at: datetime = Field(default_factory=utcnow)
    attachment: Optional[Attachment] = None
    version: int = 0

    @field_validator("recipients")
    @classmethod
    def recipients_are_unique(cls, value: List[LetterRecipient]) -> List[LetterRecipient]:
        seen = set()
        for recipient in value:
            if recipient.user_id in seen:
                raise ValueError(f"user {recipient.user_id} appears more than once in recipients")
            seen.add(recipient.user_id)
        return value

    def recipient(self, user_id: str) -> Optional[LetterRecipient]:
        for r in self.recipients:
            if r.user_id == user_id:
                return r
        return None

    def involves(self, user_id: str) -> bool:
        """True when the user sent the letter or is one of its recipients."""
        return self.sender_id == user_id or self.recipient(user_id) is not None

    def derived_status(self) -> LetterStatus:
        return aggregate_status(self.recipients)

    def with_recomputed_status(self) -> "Letter":
        """Copy of this letter whose status is re-derived from its recipients."""
        return self.model_copy(update={"status": self.derived_status()})


class SystemSettings(BaseModel):
    """Process-wide settings. Loaded at start-up, saved only by an administrator."""
    site_name: str = "Novin Automation"
    theme_color: str = Field(default="#0ea5e9", pattern=r"^#[0-9a-fA-F]{6}$")
    logo_url: Optional[str] = None
