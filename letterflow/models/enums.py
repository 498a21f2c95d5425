"""Enums for letterflow - these define the valid values for roles and statuses."""
from enum import Enum


class Role(str, Enum):
    """Authorization tier of a user account."""
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    EMPLOYEE = "EMPLOYEE"


class LetterStatus(str, Enum):
    """Status of a letter, and of each recipient's participation in it."""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class RecipientRole(str, Enum):
    """SIGNER must approve or reject; VIEWER receives a copy only."""
    SIGNER = "SIGNER"
    VIEWER = "VIEWER"
