"""ModBoard Database Module - JSON document storage."""

from .store import DocumentStore
from .models import (
    Document,
    Thread,
    Post,
    AttachmentRequest,
    VerificationRequest,
    VerifiedUser,
    FileDescriptor,
    ReviewStatus,
    EngagementMode,
)

__all__ = [
    "DocumentStore",
    "Document",
    "Thread",
    "Post",
    "AttachmentRequest",
    "VerificationRequest",
    "VerifiedUser",
    "FileDescriptor",
    "ReviewStatus",
    "EngagementMode",
]
