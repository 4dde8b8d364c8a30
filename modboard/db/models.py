"""
ModBoard Data Models

Dataclasses representing the entities of the board document, with
explicit defaults and conversion to and from the persisted JSON shape.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ReviewStatus(Enum):
    """Moderation status of a request."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class EngagementMode(Enum):
    """Which engagement events a board records."""
    VIEWS = "views"
    LIKES = "likes"


def _str(data: dict, key: str, default: str = "") -> str:
    value = data.get(key, default)
    if value is None:
        return default
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value


def _size(value: Any) -> int:
    """Whole byte count from a stored size; 0 when not numeric."""
    if isinstance(value, bool):
        return 0
    try:
        return max(0, int(float(value)))
    except (TypeError, ValueError, OverflowError):
        return 0


def _require_id(data: dict) -> str:
    value = data.get("id")
    if not isinstance(value, str) or not value:
        raise ValueError("missing id")
    return value


def load_records(items: Any, factory: Callable[[dict], T], kind: str) -> list[T]:
    """
    Build records from a list of dicts, dropping malformed entries.

    A non-list collection is treated as empty.
    """
    if not isinstance(items, list):
        if items is not None:
            logger.warning(f"Ignoring non-list {kind} collection")
        return []

    records = []
    for idx, item in enumerate(items):
        try:
            if not isinstance(item, dict):
                raise ValueError("not an object")
            records.append(factory(item))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Dropping malformed {kind} #{idx}: {e}")
    return records


@dataclass
class FileDescriptor:
    """Media file submitted with an attachment or verification request."""
    name: str = ""
    type: str = ""
    size: int = 0
    data_url: str = ""

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "type": self.type,
            "size": self.size,
            "dataUrl": self.data_url,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "FileDescriptor":
        if not isinstance(data, dict):
            raise ValueError("file must be an object")
        return cls(
            name=_str(data, "name"),
            type=_str(data, "type"),
            size=_size(data.get("size", 0)),
            data_url=_str(data, "dataUrl"),
        )


@dataclass
class Post:
    """A single message within a thread."""
    id: str
    author_id: str = ""
    created_at: str = ""
    updated_at: str = ""
    body: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "authorId": self.author_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "body": self.body,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Post":
        created_at = _str(data, "createdAt")
        return cls(
            id=_require_id(data),
            author_id=_str(data, "authorId"),
            created_at=created_at,
            updated_at=_str(data, "updatedAt") or created_at,
            body=_str(data, "body"),
        )


@dataclass
class Thread:
    """Top-level discussion unit."""
    id: str
    title: str = ""
    tags: list[str] = field(default_factory=list)
    creator_id: str = ""
    created_at: str = ""
    updated_at: str = ""
    hidden: bool = False
    posts: list[Post] = field(default_factory=list)
    likes: dict[str, str] = field(default_factory=dict)  # identity -> timestamp
    view_events: list[str] = field(default_factory=list)

    def find_post(self, post_id: str) -> Optional[Post]:
        """Get a post by id."""
        for post in self.posts:
            if post.id == post_id:
                return post
        return None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "tags": list(self.tags),
            "creatorId": self.creator_id,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "hidden": self.hidden,
            "posts": [p.to_dict() for p in self.posts],
            "likes": dict(self.likes),
            "viewEvents": list(self.view_events),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Thread":
        thread_id = _require_id(data)
        tags = data.get("tags") or []
        likes = data.get("likes") or {}
        views = data.get("viewEvents") or []
        created_at = _str(data, "createdAt")

        return cls(
            id=thread_id,
            title=_str(data, "title"),
            tags=[t for t in tags if isinstance(t, str)] if isinstance(tags, list) else [],
            creator_id=_str(data, "creatorId"),
            created_at=created_at,
            updated_at=_str(data, "updatedAt") or created_at,
            hidden=data.get("hidden") is True,
            posts=load_records(data.get("posts"), Post.from_dict, f"post in thread {thread_id}"),
            likes={k: v for k, v in likes.items() if isinstance(v, str)} if isinstance(likes, dict) else {},
            view_events=[v for v in views if isinstance(v, str)] if isinstance(views, list) else [],
        )


@dataclass
class AttachmentRequest:
    """Request to attach a media file to a post, awaiting review."""
    id: str
    thread_id: str = ""
    post_id: str = ""
    requester_id: str = ""
    file: FileDescriptor = field(default_factory=FileDescriptor)
    status: ReviewStatus = ReviewStatus.PENDING
    created_at: str = ""
    reviewed_at: str = ""
    note: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "threadId": self.thread_id,
            "postId": self.post_id,
            "requesterId": self.requester_id,
            "file": self.file.to_dict(),
            "status": self.status.value,
            "createdAt": self.created_at,
            "reviewedAt": self.reviewed_at,
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AttachmentRequest":
        return cls(
            id=_require_id(data),
            thread_id=_str(data, "threadId"),
            post_id=_str(data, "postId"),
            requester_id=_str(data, "requesterId"),
            file=FileDescriptor.from_dict(data.get("file") or {}),
            status=ReviewStatus(data.get("status", "pending")),
            created_at=_str(data, "createdAt"),
            reviewed_at=_str(data, "reviewedAt"),
            note=_str(data, "note"),
        )


@dataclass
class VerificationRequest:
    """Request to mark a user identity as verified, awaiting review."""
    id: str
    requester_id: str = ""
    file: FileDescriptor = field(default_factory=FileDescriptor)
    status: ReviewStatus = ReviewStatus.PENDING
    created_at: str = ""
    reviewed_at: str = ""
    note: str = ""

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "requesterId": self.requester_id,
            "file": self.file.to_dict(),
            "status": self.status.value,
            "createdAt": self.created_at,
            "reviewedAt": self.reviewed_at,
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "VerificationRequest":
        return cls(
            id=_require_id(data),
            requester_id=_str(data, "requesterId"),
            file=FileDescriptor.from_dict(data.get("file") or {}),
            status=ReviewStatus(data.get("status", "pending")),
            created_at=_str(data, "createdAt"),
            reviewed_at=_str(data, "reviewedAt"),
            note=_str(data, "note"),
        )


@dataclass
class VerifiedUser:
    """Entry in the verified-users mapping."""
    verified_at: str = ""
    request_id: str = ""

    def to_dict(self) -> dict:
        return {"verifiedAt": self.verified_at, "requestId": self.request_id}

    @classmethod
    def from_dict(cls, data: dict) -> "VerifiedUser":
        return cls(
            verified_at=_str(data, "verifiedAt"),
            request_id=_str(data, "requestId"),
        )


@dataclass
class Document:
    """The whole persisted board state."""
    threads: list[Thread] = field(default_factory=list)
    attachments: list[AttachmentRequest] = field(default_factory=list)
    verify_requests: list[VerificationRequest] = field(default_factory=list)
    verified_users: dict[str, VerifiedUser] = field(default_factory=dict)

    def find_thread(self, thread_id: str) -> Optional[Thread]:
        for thread in self.threads:
            if thread.id == thread_id:
                return thread
        return None

    def find_attachment(self, attachment_id: str) -> Optional[AttachmentRequest]:
        for att in self.attachments:
            if att.id == attachment_id:
                return att
        return None

    def find_verify_request(self, request_id: str) -> Optional[VerificationRequest]:
        for req in self.verify_requests:
            if req.id == request_id:
                return req
        return None

    def to_dict(self) -> dict:
        return {
            "threads": [t.to_dict() for t in self.threads],
            "attachments": [a.to_dict() for a in self.attachments],
            "verifyRequests": [v.to_dict() for v in self.verify_requests],
            "verifiedUsers": {
                user_id: entry.to_dict()
                for user_id, entry in self.verified_users.items()
            },
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Document":
        """
        Build a document from parsed JSON.

        Raises ValueError if the root is not an object. Malformed
        records inside the collections are dropped, absent collections
        default to empty.
        """
        if not isinstance(data, dict):
            raise ValueError("document root must be an object")

        verified: dict[str, VerifiedUser] = {}
        raw_verified = data.get("verifiedUsers") or {}
        if isinstance(raw_verified, dict):
            for user_id, entry in raw_verified.items():
                try:
                    verified[user_id] = VerifiedUser.from_dict(entry)
                except (AttributeError, ValueError) as e:
                    logger.warning(f"Dropping malformed verified user {user_id}: {e}")

        return cls(
            threads=load_records(data.get("threads"), Thread.from_dict, "thread"),
            attachments=load_records(data.get("attachments"), AttachmentRequest.from_dict, "attachment"),
            verify_requests=load_records(
                data.get("verifyRequests"), VerificationRequest.from_dict, "verification request"
            ),
            verified_users=verified,
        )
