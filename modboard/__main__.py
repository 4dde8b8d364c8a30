"""
ModBoard Entry Point

Usage:
    python -m modboard                  # Serve the board
    python -m modboard config --show    # Show current config
    python -m modboard backup           # Back up the document
    python -m modboard hash-password    # Print an Argon2 hash for admin.password_hash
    python -m modboard --help           # Show help
"""

import argparse
import getpass
import json
import logging
import sys
from dataclasses import asdict
from logging.handlers import RotatingFileHandler
from pathlib import Path

from . import __version__


def setup_logging(level: str, log_file: str | None = None, max_size_mb: int = 10, backup_count: int = 3):
    """Configure logging for the application."""
    log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    if log_file:
        handlers.append(RotatingFileHandler(
            log_file,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count
        ))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=log_format,
        handlers=handlers,
        force=True
    )


def run_config(args, config) -> int:
    """Handle the config subcommand."""
    if args.write:
        config.save(args.config)
        print(f"Wrote {args.config}")

    if args.validate:
        errors = config.validate()
        for error in errors:
            print(f"  - {error}")
        if errors:
            print(f"{len(errors)} problem(s) found")
            return 1
        print("Configuration OK")

    if args.show or not (args.write or args.validate):
        data = asdict(config)
        data["admin"]["password"] = "***"
        data["admin"]["token_secret"] = "***"
        print(json.dumps(data, indent=2))

    return 0


def run_backup(args, config) -> int:
    """Handle the backup subcommand."""
    from .core.maintenance import MaintenanceManager
    from .db.store import DocumentStore

    store = DocumentStore(config.storage.path, write_retries=config.storage.write_retries)
    maintenance = MaintenanceManager(store, config.storage.backup_path, keep=config.storage.backup_keep)

    if args.list:
        for backup in maintenance.list_backups():
            print(f"{backup['timestamp']}  {backup['size_bytes']:>10}  {backup['path']}")
        return 0

    if args.restore:
        return 0 if maintenance.restore_backup(args.restore) else 1

    path = maintenance.run_backup()
    if path:
        print(path)
    return 0 if path else 1


def run_hash_password(config) -> int:
    """Prompt for a password and print its Argon2 hash."""
    from .core.crypto import CryptoManager

    password = getpass.getpass("Admin password: ")
    if not password or password != getpass.getpass("Repeat: "):
        print("Passwords do not match", file=sys.stderr)
        return 1

    crypto = CryptoManager(
        time_cost=config.crypto.argon2_time_cost,
        memory_cost_kb=config.crypto.argon2_memory_kb,
        parallelism=config.crypto.argon2_parallelism
    )
    print(crypto.hash_password(password))
    return 0


def main():
    """Main entry point for ModBoard."""
    parser = argparse.ArgumentParser(
        prog="modboard",
        description="ModBoard - Moderated anonymous discussion board"
    )
    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"ModBoard {__version__}"
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=Path("config.toml"),
        help="Path to configuration file (default: config.toml)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Logging level (default: from config, else INFO)"
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("serve", help="Serve the board (default)")

    config_parser = subparsers.add_parser("config", help="Configuration interface")
    config_parser.add_argument("--show", action="store_true", help="Show current config")
    config_parser.add_argument("--validate", action="store_true", help="Validate config")
    config_parser.add_argument("--write", action="store_true", help="Write config to --config path")

    backup_parser = subparsers.add_parser("backup", help="Back up or restore the document")
    backup_parser.add_argument("--list", action="store_true", help="List backups")
    backup_parser.add_argument("--restore", metavar="FILE", help="Restore from backup")

    subparsers.add_parser("hash-password", help="Hash an admin password")

    args = parser.parse_args()

    from .config import apply_env_overrides, load_config

    config = apply_env_overrides(load_config(args.config))

    setup_logging(
        args.log_level or config.logging.level,
        config.logging.file or None,
        config.logging.max_size_mb,
        config.logging.backup_count
    )
    logger = logging.getLogger("modboard")

    if args.command == "config":
        sys.exit(run_config(args, config))
    elif args.command == "backup":
        sys.exit(run_backup(args, config))
    elif args.command == "hash-password":
        sys.exit(run_hash_password(config))
    else:
        # Default: serve the board
        from .core.app import ModBoard

        try:
            board = ModBoard(config)
            logger.info(f"Starting ModBoard v{__version__}")
            board.run()
        except KeyboardInterrupt:
            logger.info("Shutdown requested")
            sys.exit(0)
        except Exception as e:
            logger.error(f"Fatal error: {e}")
            sys.exit(1)


if __name__ == "__main__":
    main()
