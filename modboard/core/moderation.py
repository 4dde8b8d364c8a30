"""
ModBoard Moderation Workflow

pending -> approved | rejected, one-shot, administrator-driven. Shared by
the attachment approval queue and the user verification queue.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Union

from ..db.models import ReviewStatus, VerificationRequest, VerifiedUser
from ..exceptions import AlreadyReviewed, InvalidAction
from ..utils.formatting import format_timestamp, sanitize_text

logger = logging.getLogger(__name__)


MAX_NOTE_LENGTH = 800


class ReviewAction(Enum):
    """Administrator decision on a pending request."""
    APPROVE = "approve"
    REJECT = "reject"

    @property
    def resulting_status(self) -> ReviewStatus:
        if self is ReviewAction.APPROVE:
            return ReviewStatus.APPROVED
        return ReviewStatus.REJECTED

    @classmethod
    def parse(cls, value: Any) -> "ReviewAction":
        """
        Parse a review action.

        Raises:
            InvalidAction: For anything but approve/reject
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            raise InvalidAction(f"Unknown review action: {value!r}")


class ModerationWorkflow:
    """
    State machine over any record with status, created_at, reviewed_at
    and note attributes.
    """

    def __init__(self, note_max_length: int = MAX_NOTE_LENGTH):
        self.note_max_length = note_max_length

    def submit(self, record, now: datetime):
        """Put a freshly created record into the pending state."""
        record.status = ReviewStatus.PENDING
        record.created_at = format_timestamp(now)
        record.reviewed_at = ""
        record.note = ""

    def review(
        self,
        record,
        action: Union[ReviewAction, str],
        note: Any,
        now: datetime
    ) -> ReviewAction:
        """
        Approve or reject a pending record.

        The pending check comes first, so a reviewed record reports
        AlreadyReviewed whatever the action, and is left untouched.

        Raises:
            AlreadyReviewed: If the record is not pending
            InvalidAction: If action is not approve/reject
        """
        if record.status is not ReviewStatus.PENDING:
            raise AlreadyReviewed(f"Request {record.id} is already {record.status.value}")

        parsed = ReviewAction.parse(action)

        record.status = parsed.resulting_status
        record.reviewed_at = format_timestamp(now)
        record.note = sanitize_text(note, self.note_max_length)

        logger.info(f"Request {record.id} {record.status.value}")
        return parsed


class VerificationWorkflow(ModerationWorkflow):
    """Moderation workflow that marks the requester verified on approval."""

    def review(
        self,
        record: VerificationRequest,
        action: Union[ReviewAction, str],
        note: Any,
        now: datetime,
        verified_users: dict[str, VerifiedUser] = None
    ) -> ReviewAction:
        parsed = super().review(record, action, note, now)

        if parsed is ReviewAction.APPROVE and verified_users is not None:
            verified_users[record.requester_id] = VerifiedUser(
                verified_at=record.reviewed_at,
                request_id=record.id,
            )
            logger.info(f"User {record.requester_id} verified")

        return parsed
