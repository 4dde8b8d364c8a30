"""ModBoard Core Module - Main application class, services, and moderation."""

from .app import ModBoard
from .admin import AdminService
from .boards import BoardService, BoardLimits
from .crypto import AdminTokenAuthority, CryptoManager
from .engagement import EngagementTracker, WindowCounts
from .maintenance import MaintenanceManager
from .moderation import ModerationWorkflow, VerificationWorkflow, ReviewAction
from .rate_limiter import PostCooldown

__all__ = [
    "ModBoard",
    "AdminService",
    "BoardService",
    "BoardLimits",
    "AdminTokenAuthority",
    "CryptoManager",
    "EngagementTracker",
    "WindowCounts",
    "MaintenanceManager",
    "ModerationWorkflow",
    "VerificationWorkflow",
    "ReviewAction",
    "PostCooldown",
]
