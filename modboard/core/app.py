"""
ModBoard Main Application Class

Builds every board component from configuration and owns their
lifecycle.
"""

import logging
import time
from datetime import timedelta
from typing import Optional

from ..config import Config
from ..db.models import EngagementMode, ReviewStatus
from ..db.store import DocumentStore
from .admin import AdminService
from .boards import BoardLimits, BoardService
from .crypto import AdminTokenAuthority, CryptoManager
from .engagement import EngagementTracker
from .maintenance import MaintenanceManager
from .rate_limiter import PostCooldown

logger = logging.getLogger(__name__)


class ModBoard:
    """
    Main ModBoard class - wires storage, services and the web layer.

    Responsibilities:
    - Construct the document store and services from configuration
    - Hash the admin password once at startup
    - Serve the HTTP interface
    """

    def __init__(self, config: Config):
        """
        Initialize ModBoard with configuration.

        Args:
            config: Loaded configuration object
        """
        self.config = config
        self.start_time: float = 0

        self.crypto = CryptoManager(
            time_cost=config.crypto.argon2_time_cost,
            memory_cost_kb=config.crypto.argon2_memory_kb,
            parallelism=config.crypto.argon2_parallelism
        )

        password_hash = config.admin.password_hash or self.crypto.hash_password(config.admin.password)
        self.tokens = AdminTokenAuthority(config.admin.token_secret, self.crypto, password_hash)

        self.store = DocumentStore(
            config.storage.path,
            write_retries=config.storage.write_retries,
            indent=config.storage.indent or None
        )

        cooldown: Optional[PostCooldown] = None
        if config.rate_limits.post_cooldown_seconds > 0:
            cooldown = PostCooldown(config.rate_limits.post_cooldown_seconds)
        self.cooldown = cooldown

        limits = config.limits
        self.board_service = BoardService(
            self.store,
            engagement=EngagementTracker(
                EngagementMode(config.board.engagement),
                timedelta(days=limits.retention_days)
            ),
            cooldown=cooldown,
            require_verification=config.board.require_verification,
            limits=BoardLimits(
                title=limits.title_max,
                body=limits.body_max,
                tags=limits.tags_max,
                tag=limits.tag_max,
                identity=limits.identity_max,
                file_name=limits.file_name_max,
                file_type=limits.file_type_max,
                note=limits.note_max,
            ),
            default_title=config.board.default_title,
        )
        self.admin_service = AdminService(self.board_service, self.tokens)

        self.maintenance = MaintenanceManager(
            self.store,
            config.storage.backup_path,
            keep=config.storage.backup_keep,
            lock=self.board_service.lock
        )

        logger.info(
            f"ModBoard initialized: {config.board.name} "
            f"({config.board.engagement}, verification "
            f"{'required' if config.board.require_verification else 'off'})"
        )

    def create_web_app(self):
        """Build the Flask application for this board."""
        from ..web import create_app
        return create_app(self)

    def run(self):
        """Serve the HTTP interface until interrupted."""
        for problem in self.config.validate():
            logger.warning(f"Config: {problem}")

        self.start_time = time.time()
        app = self.create_web_app()
        logger.info(f"Listening on {self.config.web.host}:{self.config.web.port}")
        app.run(host=self.config.web.host, port=self.config.web.port, threaded=True)

    def get_stats(self) -> dict:
        """Return board statistics."""
        doc = self.store.load()
        return {
            "threads": len(doc.threads),
            "hidden_threads": sum(1 for t in doc.threads if t.hidden),
            "posts": sum(len(t.posts) for t in doc.threads),
            "attachments_pending": sum(1 for a in doc.attachments if a.status is ReviewStatus.PENDING),
            "verified_users": len(doc.verified_users),
            "uptime_seconds": int(time.time() - self.start_time) if self.start_time else 0,
            "cooldown": self.cooldown.get_stats() if self.cooldown else None,
        }
