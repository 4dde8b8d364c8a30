"""
ModBoard Configuration Module

Handles loading, validation, and management of configuration settings.
"""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

# Use tomllib for Python 3.11+, tomli for earlier versions
if sys.version_info >= (3, 11):
    import tomllib
else:
    try:
        import tomli as tomllib
    except ImportError:
        raise ImportError("Please install tomli: pip install tomli")


@dataclass
class BoardConfig:
    """Board general settings."""
    name: str = "ModBoard"
    default_title: str = "(untitled)"
    engagement: str = "views"  # views | likes
    require_verification: bool = False


@dataclass
class StorageConfig:
    """Document storage settings."""
    path: str = "data/db.json"
    backup_path: str = "data/backups"
    backup_keep: int = 7
    write_retries: int = 2
    indent: int = 0  # 0 = compact JSON


@dataclass
class AdminConfig:
    """Administrator credentials."""
    password: str = "changeme"
    password_hash: str = ""  # Argon2 hash; overrides password when set
    token_secret: str = "change-me"


@dataclass
class CryptoConfig:
    """Cryptography settings."""
    argon2_time_cost: int = 3
    argon2_memory_kb: int = 32768
    argon2_parallelism: int = 1


@dataclass
class LimitsConfig:
    """Input limits and engagement retention."""
    title_max: int = 80
    body_max: int = 8000
    tags_max: int = 12
    tag_max: int = 24
    identity_max: int = 64
    file_name_max: int = 180
    file_type_max: int = 120
    note_max: int = 800
    retention_days: int = 31


@dataclass
class RateLimitsConfig:
    """Rate limiting settings."""
    post_cooldown_seconds: float = 2.5  # 0 disables


@dataclass
class WebConfig:
    """HTTP interface settings."""
    host: str = "127.0.0.1"
    port: int = 3000
    api_prefix: str = "/api/board"
    max_request_mb: int = 25


@dataclass
class LoggingConfig:
    """Logging settings."""
    level: str = "INFO"
    file: str = ""
    max_size_mb: int = 10
    backup_count: int = 3


@dataclass
class Config:
    """Main configuration container."""
    board: BoardConfig = field(default_factory=BoardConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    admin: AdminConfig = field(default_factory=AdminConfig)
    crypto: CryptoConfig = field(default_factory=CryptoConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    rate_limits: RateLimitsConfig = field(default_factory=RateLimitsConfig)
    web: WebConfig = field(default_factory=WebConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors."""
        errors = []

        if not self.board.name:
            errors.append("board.name cannot be empty")

        valid_modes = ["views", "likes"]
        if self.board.engagement not in valid_modes:
            errors.append(f"board.engagement must be one of: {valid_modes}")

        if self.admin.password == "changeme" and not self.admin.password_hash:
            errors.append("admin.password must be changed from default")
        if not self.admin.token_secret or self.admin.token_secret == "change-me":
            errors.append("admin.token_secret must be changed from default")

        if self.storage.write_retries < 1:
            errors.append("storage.write_retries must be at least 1")

        if self.limits.retention_days < 30:
            errors.append("limits.retention_days must cover the 30-day ranking window")

        if self.rate_limits.post_cooldown_seconds < 0:
            errors.append("rate_limits.post_cooldown_seconds cannot be negative")

        if not self.web.api_prefix.startswith("/"):
            errors.append("web.api_prefix must start with '/'")

        return errors

    def save(self, path: Path):
        """Save configuration to TOML file."""
        import toml  # For writing

        data = self._to_dict()

        with open(path, "w") as f:
            toml.dump(data, f)

    def _to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary for serialization."""
        from dataclasses import asdict
        return asdict(self)


# Environment variable -> (section, key, type)
ENV_OVERRIDES = {
    "MODBOARD_ADMIN_PASSWORD": ("admin", "password", str),
    "MODBOARD_TOKEN_SECRET": ("admin", "token_secret", str),
    "MODBOARD_DATA_PATH": ("storage", "path", str),
    "MODBOARD_PORT": ("web", "port", int),
}


def apply_env_overrides(config: Config, environ: dict = None) -> Config:
    """Override secrets and deployment settings from the environment."""
    environ = os.environ if environ is None else environ

    for var, (section, key, cast) in ENV_OVERRIDES.items():
        value = environ.get(var)
        if value:
            setattr(getattr(config, section), key, cast(value))

    return config


def load_config(path: Path) -> Config:
    """Load configuration from TOML file."""
    config = Config()

    if not path.exists():
        return config

    with open(path, "rb") as f:
        data = tomllib.load(f)

    # Map TOML sections to config dataclasses
    if "board" in data:
        config.board = BoardConfig(**data["board"])

    if "storage" in data:
        config.storage = StorageConfig(**data["storage"])

    if "admin" in data:
        config.admin = AdminConfig(**data["admin"])

    if "crypto" in data:
        config.crypto = CryptoConfig(**data["crypto"])

    if "limits" in data:
        config.limits = LimitsConfig(**data["limits"])

    if "rate_limits" in data:
        config.rate_limits = RateLimitsConfig(**data["rate_limits"])

    if "web" in data:
        config.web = WebConfig(**data["web"])

    if "logging" in data:
        config.logging = LoggingConfig(**data["logging"])

    return config
