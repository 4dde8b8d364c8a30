"""
ModBoard Cryptography Module

Handles the admin password hash (Argon2id) and stateless admin bearer
tokens authenticated with HMAC-SHA256.
"""

import base64
import binascii
import logging
import re
import time
from typing import Callable, Optional

from argon2 import PasswordHasher, Type
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac

from ..exceptions import Unauthorized

logger = logging.getLogger(__name__)


ADMIN_ROLE = "admin"

# Lowercase hex SHA-256 digest, as issued
_MAC_HEX = re.compile(r"[0-9a-f]{64}")


class CryptoManager:
    """
    Password hashing for ModBoard.

    Argon2id keeps the shared admin password comparison free of timing
    differences between near and far guesses.
    """

    SALT_LENGTH = 16
    HASH_LENGTH = 32

    def __init__(
        self,
        time_cost: int = 3,
        memory_cost_kb: int = 32768,  # 32MB
        parallelism: int = 1
    ):
        """
        Initialize crypto manager with Argon2id parameters.

        Args:
            time_cost: Number of iterations
            memory_cost_kb: Memory usage in KB
            parallelism: Number of parallel threads
        """
        self.time_cost = time_cost
        self.memory_cost_kb = memory_cost_kb
        self.parallelism = parallelism

        self._hasher = PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost_kb,
            parallelism=parallelism,
            hash_len=self.HASH_LENGTH,
            salt_len=self.SALT_LENGTH,
            type=Type.ID
        )

        logger.debug(
            f"CryptoManager initialized: time={time_cost}, "
            f"memory={memory_cost_kb}KB, parallelism={parallelism}"
        )

    def hash_password(self, password: str) -> str:
        """Hash a password, returning the full Argon2 hash string."""
        return self._hasher.hash(password)

    def verify_password(self, password: str, hash_str: str) -> bool:
        """Verify a password against an Argon2 hash."""
        try:
            self._hasher.verify(hash_str, password)
            return True
        except VerifyMismatchError:
            return False
        except (InvalidHashError, VerificationError) as e:
            logger.error(f"Admin password hash unusable: {e}")
            return False


class AdminTokenAuthority:
    """
    Issues and verifies admin bearer tokens without a session store.

    A token is base64url("admin:<issued ms>:<hex hmac>") where the MAC is
    HMAC-SHA256 over "admin:<issued ms>" with the server secret. Tokens
    carry no expiry.
    """

    def __init__(
        self,
        secret: str,
        crypto: CryptoManager,
        password_hash: str,
        clock: Callable[[], float] = time.time
    ):
        """
        Args:
            secret: Server-held MAC key
            crypto: Password hasher
            password_hash: Argon2 hash of the shared admin password
            clock: Seconds since epoch
        """
        if not secret:
            raise ValueError("Token secret must not be empty")
        self._key = secret.encode("utf-8")
        self.crypto = crypto
        self._password_hash = password_hash
        self._clock = clock

    @classmethod
    def from_password(
        cls,
        secret: str,
        crypto: CryptoManager,
        password: str,
        clock: Callable[[], float] = time.time
    ) -> "AdminTokenAuthority":
        """Build an authority from a plaintext password, hashing it once."""
        return cls(secret, crypto, crypto.hash_password(password), clock)

    def _mac(self, payload: str) -> hmac.HMAC:
        h = hmac.HMAC(self._key, hashes.SHA256())
        h.update(payload.encode("utf-8"))
        return h

    def issue(self) -> str:
        """Issue a fresh admin token."""
        issued_ms = str(int(self._clock() * 1000))
        payload = f"{ADMIN_ROLE}:{issued_ms}"
        mac = self._mac(payload).finalize().hex()
        raw = f"{payload}:{mac}".encode("utf-8")
        return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")

    def verify(self, token: Optional[str]) -> bool:
        """Return True only for an untampered admin token."""
        if not token or not isinstance(token, str):
            return False

        try:
            padded = token + "=" * (-len(token) % 4)
            raw = base64.b64decode(padded.encode("ascii"), altchars=b"-_", validate=True)
            decoded = raw.decode("utf-8")
        except (binascii.Error, UnicodeError, ValueError):
            return False

        # Only the exact unpadded base64url spelling issue() produces
        if base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii") != token:
            return False

        parts = decoded.split(":")
        if len(parts) != 3:
            return False

        role, issued_ms, mac_hex = parts
        if role != ADMIN_ROLE:
            return False

        if not _MAC_HEX.fullmatch(mac_hex):
            return False
        mac = bytes.fromhex(mac_hex)

        try:
            # HMAC.verify compares in constant time
            self._mac(f"{role}:{issued_ms}").verify(mac)
        except InvalidSignature:
            return False
        return True

    def require(self, token: Optional[str]):
        """
        Raises:
            Unauthorized: If token is missing or invalid
        """
        if not self.verify(token):
            logger.warning("Rejected admin token")
            raise Unauthorized("Invalid admin token")

    def login(self, password: str) -> str:
        """
        Exchange the shared admin password for a token.

        Raises:
            Unauthorized: On password mismatch
        """
        if not password or not self.crypto.verify_password(password, self._password_hash):
            logger.warning("Failed admin login")
            raise Unauthorized("Invalid password", code="invalid")

        logger.info("Admin login")
        return self.issue()
