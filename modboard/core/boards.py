"""
ModBoard Board Service

Public board operations: threads, replies, tags, engagement, and filing
attachment/verification requests. Every call loads the document,
mutates it in memory and writes it back while holding the service lock.
"""

import logging
import secrets
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterator, Optional

from ..db.models import (
    AttachmentRequest,
    Document,
    EngagementMode,
    FileDescriptor,
    Post,
    ReviewStatus,
    Thread,
    VerificationRequest,
)
from ..db.store import DocumentStore
from ..exceptions import BadRequest, Conflict, NotFound, NotVerified, PersistenceError, RateLimited
from ..utils.formatting import (
    format_timestamp,
    merge_tags,
    parse_timestamp,
    sanitize_identity,
    sanitize_tags,
    sanitize_text,
    sort_key_timestamp,
    utc_now,
)
from .engagement import EngagementTracker
from .moderation import ModerationWorkflow, VerificationWorkflow
from .rate_limiter import PostCooldown

logger = logging.getLogger(__name__)


DEFAULT_TITLE = "(untitled)"
UNKNOWN_AUTHOR = "UNKNOWN"
ALLOWED_MEDIA_PREFIXES = ("image/", "video/")

# Sort key -> ranking window (None = newest updated)
SORT_WINDOWS = {
    "new": None,
    "day": "day",
    "week": "week",
    "month": "month",
    "pv_day": "day",
    "pv_week": "week",
    "pv_month": "month",
    "likes_day": "day",
    "likes_week": "week",
    "likes_month": "month",
}


@dataclass
class BoardLimits:
    """Length and count limits for user input."""
    title: int = 80
    body: int = 8000
    tags: int = 12
    tag: int = 24
    identity: int = 64
    file_name: int = 180
    file_type: int = 120
    note: int = 800


def new_id(prefix: str, taken: set) -> str:
    """Generate a random id with prefix that is not in taken."""
    while True:
        candidate = prefix + secrets.token_hex(10)
        if candidate not in taken:
            return candidate


def touch(thread: Thread, timestamp: str):
    """Advance thread.updated_at, never moving it backwards."""
    if sort_key_timestamp(timestamp) >= sort_key_timestamp(thread.updated_at):
        thread.updated_at = timestamp


class BoardService:
    """
    Anonymous board service for ModBoard.

    Features:
    - Threads with ordered reply posts
    - Tag merging
    - Likes or views over day/week/month windows
    - Attachment requests that only show once an admin approves them
    - Optional verification gate for attachment requests
    """

    def __init__(
        self,
        store: DocumentStore,
        engagement: Optional[EngagementTracker] = None,
        cooldown: Optional[PostCooldown] = None,
        require_verification: bool = False,
        limits: Optional[BoardLimits] = None,
        default_title: str = DEFAULT_TITLE,
        clock: Callable[[], datetime] = utc_now
    ):
        """
        Args:
            store: Document store
            engagement: Engagement tracker (views by default)
            cooldown: Posting cooldown per source address, or None
            require_verification: Only verified users may request attachments
            limits: Input limits
            default_title: Title used when none is given
            clock: Returns the current aware UTC datetime
        """
        self.store = store
        self.engagement = engagement or EngagementTracker()
        self.cooldown = cooldown
        self.require_verification = require_verification
        self.limits = limits or BoardLimits()
        self.default_title = default_title
        self.clock = clock

        self.attachment_workflow = ModerationWorkflow(self.limits.note)
        self.verification_workflow = VerificationWorkflow(self.limits.note)

        self._lock = threading.RLock()

    # === Document access ===

    @property
    def lock(self) -> threading.RLock:
        """Lock serializing every load-mutate-save cycle."""
        return self._lock

    @contextmanager
    def document(self) -> Iterator[Document]:
        """Hold the service lock and yield a fresh document snapshot."""
        with self._lock:
            yield self.store.load()

    def persist(self, doc: Document):
        """
        Write the document back.

        A failed write is logged and swallowed: the caller's in-memory
        result stands for this request.
        """
        try:
            self.store.save(doc)
        except PersistenceError as e:
            logger.error(f"Document not persisted, keeping in-memory result: {e}")

    def _public_thread(self, doc: Document, thread_id: Any) -> Thread:
        thread = doc.find_thread(str(thread_id or ""))
        if thread is None or thread.hidden:
            raise NotFound("Thread not found")
        return thread

    def _check_cooldown(self, source: Optional[str]):
        if self.cooldown is None or source is None:
            return
        if not self.cooldown.check(source):
            raise RateLimited(self.cooldown.time_until_allowed(source))

    def _require_mode(self, mode: EngagementMode):
        if self.engagement.mode is not mode:
            raise BadRequest(f"Board does not record {mode.value}", code="unsupported")

    # === Threads ===

    def _summary(self, thread: Thread, now: datetime) -> dict:
        counts = self.engagement.counts(thread, now)
        return {
            "id": thread.id,
            "title": thread.title,
            "tags": list(thread.tags),
            "createdAt": thread.created_at,
            "updatedAt": thread.updated_at,
            "postCount": len(thread.posts),
            **counts.to_dict(),
        }

    def list_threads(self, sort: str = "new", since: Optional[str] = None) -> list[dict]:
        """
        List visible threads.

        Args:
            sort: "new", "day", "week" or "month" (legacy pv_*/likes_*
                aliases accepted; unknown keys sort by newest)
            since: Only threads updated after this timestamp

        Returns:
            Thread summaries, best first
        """
        window = SORT_WINDOWS.get(str(sort or "new").strip().lower())
        since_dt = parse_timestamp(since) if since else None
        now = self.clock()

        with self.document() as doc:
            pruned = sum(self.engagement.prune(t, now) for t in doc.threads)

            summaries = []
            for thread in doc.threads:
                if thread.hidden:
                    continue
                if since_dt is not None:
                    updated = parse_timestamp(thread.updated_at or thread.created_at)
                    if updated is None or updated <= since_dt:
                        continue
                summaries.append(self._summary(thread, now))

            if pruned:
                self.persist(doc)

        summaries.sort(
            key=lambda s: sort_key_timestamp(s["updatedAt"] or s["createdAt"]),
            reverse=True
        )
        if window:
            # Stable: equal counts keep the updatedAt order
            summaries.sort(key=lambda s: s[window], reverse=True)

        return summaries

    def create_thread(
        self,
        title: Any,
        body: Any,
        tags: Any = None,
        author_id: Any = None,
        source: Optional[str] = None
    ) -> dict:
        """
        Create a thread with its opening post.

        Raises:
            RateLimited: If source is still cooling down
        """
        self._check_cooldown(source)

        title = sanitize_text(title, self.limits.title).strip() or self.default_title
        body = sanitize_text(body, self.limits.body)
        tags = sanitize_tags(tags, self.limits.tags, self.limits.tag)
        author = sanitize_identity(author_id, self.limits.identity, UNKNOWN_AUTHOR)

        now = self.clock()
        ts = format_timestamp(now)

        with self.document() as doc:
            post_ids = {p.id for t in doc.threads for p in t.posts}
            thread = Thread(
                id=new_id("T", {t.id for t in doc.threads}),
                title=title,
                tags=tags,
                creator_id=author,
                created_at=ts,
                updated_at=ts,
                posts=[Post(
                    id=new_id("P", post_ids),
                    author_id=author,
                    created_at=ts,
                    updated_at=ts,
                    body=body,
                )],
            )
            doc.threads.append(thread)
            self.persist(doc)

        logger.info(f"Thread {thread.id} created by {author}")
        return self._summary(thread, now)

    def get_thread(self, thread_id: Any, viewer_id: Any = "") -> dict:
        """
        Thread detail with numbered posts.

        Each post lists only approved attachments, plus how many of the
        viewer's own requests on it are still pending.

        Raises:
            NotFound: Unknown or hidden thread
        """
        viewer = sanitize_identity(viewer_id, self.limits.identity)
        now = self.clock()

        with self.document() as doc:
            thread = self._public_thread(doc, thread_id)
            pruned = self.engagement.prune(thread, now)

            related = [a for a in doc.attachments if a.thread_id == thread.id]
            approved = [a for a in related if a.status is ReviewStatus.APPROVED]
            pending_mine = [
                a for a in related
                if viewer and a.status is ReviewStatus.PENDING and a.requester_id == viewer
            ]

            posts = []
            for number, post in enumerate(thread.posts, 1):
                posts.append({
                    "id": post.id,
                    "no": number,
                    "authorId": post.author_id,
                    "createdAt": post.created_at,
                    "updatedAt": post.updated_at,
                    "body": post.body,
                    "approvedAttachments": [
                        {"id": a.id, "file": a.file.to_dict()}
                        for a in approved if a.post_id == post.id
                    ],
                    "pendingMineCount": sum(1 for a in pending_mine if a.post_id == post.id),
                })

            detail = self._summary(thread, now)
            detail["posts"] = posts

            if pruned:
                self.persist(doc)

        return detail

    def add_post(
        self,
        thread_id: Any,
        body: Any,
        author_id: Any = None,
        source: Optional[str] = None
    ) -> dict:
        """
        Append a reply to a thread.

        Raises:
            RateLimited: If source is still cooling down
            NotFound: Unknown or hidden thread
        """
        self._check_cooldown(source)

        body = sanitize_text(body, self.limits.body)
        author = sanitize_identity(author_id, self.limits.identity, UNKNOWN_AUTHOR)
        ts = format_timestamp(self.clock())

        with self.document() as doc:
            thread = self._public_thread(doc, thread_id)
            post = Post(
                id=new_id("P", {p.id for t in doc.threads for p in t.posts}),
                author_id=author,
                created_at=ts,
                updated_at=ts,
                body=body,
            )
            thread.posts.append(post)
            touch(thread, ts)
            self.persist(doc)

        logger.debug(f"Post {post.id} added to thread {thread.id}")
        return {"id": post.id, "no": len(thread.posts), "threadId": thread.id}

    def merge_tags(self, thread_id: Any, tags: Any) -> dict:
        """
        Union new tags into a thread's tags, keeping existing order.

        Raises:
            NotFound: Unknown or hidden thread
        """
        new_tags = sanitize_tags(tags, self.limits.tags, self.limits.tag)
        ts = format_timestamp(self.clock())

        with self.document() as doc:
            thread = self._public_thread(doc, thread_id)
            thread.tags = merge_tags(thread.tags, new_tags, self.limits.tags)
            touch(thread, ts)
            self.persist(doc)

        return {"id": thread.id, "tags": list(thread.tags), "updatedAt": thread.updated_at}

    # === Engagement ===

    def like_thread(self, thread_id: Any, user_id: Any) -> dict:
        """
        Like a thread once per identity per retention horizon.

        Raises:
            BadRequest: No user id, or the board records views
            NotFound: Unknown or hidden thread
        """
        self._require_mode(EngagementMode.LIKES)
        user = sanitize_identity(user_id, self.limits.identity)
        if not user:
            raise BadRequest("User id required", code="user_required")

        now = self.clock()
        with self.document() as doc:
            thread = self._public_thread(doc, thread_id)
            already = self.engagement.like(thread, user, now)
            if not already:
                touch(thread, format_timestamp(now))
            self.persist(doc)
            counts = self.engagement.counts(thread, now)

        return {"id": thread.id, "alreadyLiked": already, **counts.to_dict()}

    def view_thread(self, thread_id: Any) -> dict:
        """
        Record an anonymous view.

        Raises:
            BadRequest: The board records likes
            NotFound: Unknown or hidden thread
        """
        self._require_mode(EngagementMode.VIEWS)

        now = self.clock()
        with self.document() as doc:
            thread = self._public_thread(doc, thread_id)
            self.engagement.view(thread, now)
            self.persist(doc)
            counts = self.engagement.counts(thread, now)

        return {"id": thread.id, **counts.to_dict()}

    # === Requests ===

    def _validate_file(self, file: Any) -> FileDescriptor:
        """
        Raises:
            BadRequest: Not an image/video type, or not an inline data URL
        """
        if not isinstance(file, dict):
            raise BadRequest("File descriptor required", code="file")

        media_type = sanitize_text(file.get("type"), self.limits.file_type).strip()
        if not media_type.startswith(ALLOWED_MEDIA_PREFIXES):
            raise BadRequest(f"Unsupported media type {media_type!r}", code="type")

        data_url = file.get("dataUrl")
        if not isinstance(data_url, str) or not data_url.startswith("data:"):
            raise BadRequest("File must be an inline data URL", code="dataurl")

        try:
            size = int(float(file.get("size", 0)))
        except (TypeError, ValueError, OverflowError):
            size = 0

        return FileDescriptor(
            name=sanitize_text(file.get("name"), self.limits.file_name),
            type=media_type,
            size=max(0, size),
            data_url=data_url,
        )

    def request_attachment(
        self,
        thread_id: Any,
        post_id: Any,
        requester_id: Any,
        file: Any
    ) -> dict:
        """
        File a pending request to attach media to a post.

        Raises:
            BadRequest: Missing ids or bad file
            NotVerified: Verification required and requester not verified
            NotFound: Unknown/hidden thread or unknown post
        """
        thread_id = str(thread_id or "").strip()
        post_id = str(post_id or "").strip()
        if not thread_id or not post_id:
            raise BadRequest("threadId and postId required")

        descriptor = self._validate_file(file)
        requester = sanitize_identity(requester_id, self.limits.identity, UNKNOWN_AUTHOR)
        now = self.clock()

        with self.document() as doc:
            if self.require_verification and requester not in doc.verified_users:
                raise NotVerified(f"{requester} is not verified")

            thread = doc.find_thread(thread_id)
            if thread is None or thread.hidden:
                raise NotFound("Thread not found", code="thread_not_found")
            if thread.find_post(post_id) is None:
                raise NotFound("Post not found", code="post_not_found")

            attachment = AttachmentRequest(
                id=new_id("A", {a.id for a in doc.attachments}),
                thread_id=thread_id,
                post_id=post_id,
                requester_id=requester,
                file=descriptor,
            )
            self.attachment_workflow.submit(attachment, now)
            doc.attachments.append(attachment)
            self.persist(doc)

        logger.info(f"Attachment {attachment.id} requested on {thread_id}/{post_id}")
        return {
            "id": attachment.id,
            "status": attachment.status.value,
            "createdAt": attachment.created_at,
        }

    def request_verification(self, requester_id: Any, file: Any) -> dict:
        """
        File a pending request to verify an identity.

        Raises:
            BadRequest: Missing requester id or bad file
            Conflict: Requester is already verified
        """
        requester = sanitize_identity(requester_id, self.limits.identity)
        if not requester:
            raise BadRequest("requesterId required", code="user_required")

        descriptor = self._validate_file(file)
        now = self.clock()

        with self.document() as doc:
            if requester in doc.verified_users:
                raise Conflict(f"{requester} is already verified", code="already_verified")

            request = VerificationRequest(
                id=new_id("V", {v.id for v in doc.verify_requests}),
                requester_id=requester,
                file=descriptor,
            )
            self.verification_workflow.submit(request, now)
            doc.verify_requests.append(request)
            self.persist(doc)

        logger.info(f"Verification {request.id} requested by {requester}")
        return {
            "id": request.id,
            "status": request.status.value,
            "createdAt": request.created_at,
        }

    def verification_status(self, user_id: Any) -> dict:
        """Whether user_id is verified, and how many requests are pending."""
        user = sanitize_identity(user_id, self.limits.identity)

        with self.document() as doc:
            entry = doc.verified_users.get(user) if user else None
            pending = sum(
                1 for v in doc.verify_requests
                if user and v.requester_id == user and v.status is ReviewStatus.PENDING
            )

        return {
            "userId": user,
            "verified": entry is not None,
            "verifiedAt": entry.verified_at if entry else "",
            "pending": pending,
        }

    def is_verified(self, user_id: Any) -> bool:
        return self.verification_status(user_id)["verified"]
