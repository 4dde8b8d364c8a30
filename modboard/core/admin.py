"""
ModBoard Admin Service

Administrative operations. Every call but login checks the bearer
token first.
"""

import logging
from typing import Any, Optional

from ..db.models import Document, ReviewStatus
from ..exceptions import BadRequest, NotFound
from ..utils.formatting import sort_key_timestamp
from .boards import BoardService
from .crypto import AdminTokenAuthority

logger = logging.getLogger(__name__)


def parse_status_filter(status: Any) -> Optional[ReviewStatus]:
    """
    Parse a status filter. Empty or "all" means no filter.

    Raises:
        BadRequest: Unknown status
    """
    if status is None:
        return None
    value = str(status).strip().lower()
    if value in ("", "all"):
        return None
    try:
        return ReviewStatus(value)
    except ValueError:
        raise BadRequest(f"Unknown status {status!r}", code="status")


class AdminService:
    """Moderation and housekeeping for the board administrator."""

    def __init__(self, board: BoardService, tokens: AdminTokenAuthority):
        self.board = board
        self.tokens = tokens

    def login(self, password: str) -> dict:
        """
        Raises:
            Unauthorized: Wrong password
        """
        return {"ok": True, "name": "ADMIN", "token": self.tokens.login(password)}

    # === Threads ===

    def list_threads(self, token: Optional[str]) -> list[dict]:
        """All threads, hidden ones included, with engagement counts."""
        self.tokens.require(token)
        now = self.board.clock()

        with self.board.document() as doc:
            pruned = sum(self.board.engagement.prune(t, now) for t in doc.threads)
            threads = []
            for thread in doc.threads:
                row = thread.to_dict()
                row["postCount"] = len(thread.posts)
                row.update(self.board.engagement.counts(thread, now).to_dict())
                threads.append(row)
            if pruned:
                self.board.persist(doc)

        return threads

    def _thread(self, doc: Document, thread_id: Any):
        thread = doc.find_thread(str(thread_id or ""))
        if thread is None:
            raise NotFound("Thread not found")
        return thread

    def set_hidden(self, token: Optional[str], thread_id: Any, hidden: bool = True) -> dict:
        """Hide or unhide a thread."""
        self.tokens.require(token)

        with self.board.document() as doc:
            thread = self._thread(doc, thread_id)
            thread.hidden = bool(hidden)
            self.board.persist(doc)

        logger.info(f"Thread {thread.id} {'hidden' if thread.hidden else 'unhidden'}")
        return {"id": thread.id, "hidden": thread.hidden}

    def delete_thread(self, token: Optional[str], thread_id: Any) -> dict:
        """Delete a thread and every attachment request on it."""
        self.tokens.require(token)

        with self.board.document() as doc:
            thread = self._thread(doc, thread_id)
            doc.threads.remove(thread)
            before = len(doc.attachments)
            doc.attachments = [a for a in doc.attachments if a.thread_id != thread.id]
            removed = before - len(doc.attachments)
            self.board.persist(doc)

        logger.info(f"Thread {thread.id} deleted ({removed} attachments)")
        return {"deleted": thread.id, "attachmentsRemoved": removed}

    def delete_post(self, token: Optional[str], thread_id: Any, post_id: Any) -> dict:
        """Delete one post and every attachment request on it."""
        self.tokens.require(token)

        with self.board.document() as doc:
            thread = self._thread(doc, thread_id)
            post = thread.find_post(str(post_id or ""))
            if post is None:
                raise NotFound("Post not found", code="post_not_found")

            thread.posts.remove(post)
            before = len(doc.attachments)
            doc.attachments = [
                a for a in doc.attachments
                if not (a.thread_id == thread.id and a.post_id == post.id)
            ]
            removed = before - len(doc.attachments)
            self.board.persist(doc)

        logger.info(f"Post {post.id} deleted from {thread.id} ({removed} attachments)")
        return {"deleted": post.id, "threadId": thread.id, "attachmentsRemoved": removed}

    # === Attachment queue ===

    def list_attachments(self, token: Optional[str], status: Any = "pending") -> list[dict]:
        """Attachment requests, newest first, with their thread title."""
        self.tokens.require(token)
        wanted = parse_status_filter(status)

        with self.board.document() as doc:
            titles = {t.id: t.title for t in doc.threads}
            rows = []
            for att in doc.attachments:
                if wanted is not None and att.status is not wanted:
                    continue
                row = att.to_dict()
                row["threadTitle"] = titles.get(att.thread_id, "")
                rows.append(row)

        rows.sort(key=lambda r: sort_key_timestamp(r["createdAt"]), reverse=True)
        return rows

    def review_attachment(
        self,
        token: Optional[str],
        attachment_id: Any,
        action: Any,
        note: Any = ""
    ) -> dict:
        """
        Approve or reject an attachment request.

        Raises:
            NotFound: Unknown request
            AlreadyReviewed: Request is not pending
            InvalidAction: Action not approve/reject
        """
        self.tokens.require(token)
        now = self.board.clock()

        with self.board.document() as doc:
            att = doc.find_attachment(str(attachment_id or ""))
            if att is None:
                raise NotFound("Attachment request not found")

            self.board.attachment_workflow.review(att, action, note, now)
            self.board.persist(doc)

        return att.to_dict()

    # === Verification queue ===

    def list_verification_requests(self, token: Optional[str], status: Any = "pending") -> list[dict]:
        """Verification requests, newest first."""
        self.tokens.require(token)
        wanted = parse_status_filter(status)

        with self.board.document() as doc:
            rows = [
                v.to_dict() for v in doc.verify_requests
                if wanted is None or v.status is wanted
            ]

        rows.sort(key=lambda r: sort_key_timestamp(r["createdAt"]), reverse=True)
        return rows

    def review_verification(
        self,
        token: Optional[str],
        request_id: Any,
        action: Any,
        note: Any = ""
    ) -> dict:
        """
        Approve or reject a verification request. Approval marks the
        requester verified.
        """
        self.tokens.require(token)
        now = self.board.clock()

        with self.board.document() as doc:
            request = doc.find_verify_request(str(request_id or ""))
            if request is None:
                raise NotFound("Verification request not found")

            self.board.verification_workflow.review(
                request, action, note, now, verified_users=doc.verified_users
            )
            self.board.persist(doc)
            verified = request.requester_id in doc.verified_users

        row = request.to_dict()
        row["verified"] = verified
        return row
