"""
Tests for ModBoard Crypto Module
"""

import base64

import pytest

from modboard.core.crypto import AdminTokenAuthority, CryptoManager
from modboard.exceptions import Unauthorized


def make_crypto() -> CryptoManager:
    # Use minimal memory for faster tests
    return CryptoManager(
        time_cost=1,
        memory_cost_kb=8192,  # 8MB for tests
        parallelism=1
    )


def b64(raw: str) -> str:
    return base64.urlsafe_b64encode(raw.encode("utf-8")).rstrip(b"=").decode("ascii")


def unb64(token: str) -> str:
    return base64.urlsafe_b64decode(token + "=" * (-len(token) % 4)).decode("utf-8")


class TestCryptoManager:
    """Tests for CryptoManager class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.crypto = make_crypto()

    def test_hash_password(self):
        """Test password hashing."""
        password = "test_password_123"
        hash1 = self.crypto.hash_password(password)
        hash2 = self.crypto.hash_password(password)

        # Hashes should be different (different salts)
        assert hash1 != hash2
        assert hash1.startswith("$argon2id$")

        assert self.crypto.verify_password(password, hash1)
        assert self.crypto.verify_password(password, hash2)

    def test_verify_password_wrong(self):
        """Test password verification with wrong password."""
        hash_str = self.crypto.hash_password("correct_password")

        assert self.crypto.verify_password("correct_password", hash_str) is True
        assert self.crypto.verify_password("wrong_password", hash_str) is False

    def test_verify_password_bad_hash(self):
        """Test a garbage hash never verifies."""
        assert self.crypto.verify_password("anything", "not-a-hash") is False


class TestAdminTokenAuthority:
    """Tests for admin token issue and verification."""

    def setup_method(self):
        """Set up test fixtures."""
        self.crypto = make_crypto()
        self.now = 1_790_000_000.0
        self.tokens = AdminTokenAuthority.from_password(
            "server-secret", self.crypto, "hunter2", clock=lambda: self.now
        )

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            AdminTokenAuthority("", self.crypto, "hash")

    def test_issue_format(self):
        """Test the token decodes to admin:<ms>:<hex mac>."""
        token = self.tokens.issue()

        assert "=" not in token
        role, issued_ms, mac = unb64(token).split(":")
        assert role == "admin"
        assert issued_ms == str(int(self.now * 1000))
        assert len(mac) == 64
        int(mac, 16)

    def test_issued_token_verifies(self):
        token = self.tokens.issue()

        assert self.tokens.verify(token) is True
        self.tokens.require(token)

    def test_tokens_do_not_expire(self):
        """Test a token stays valid however much time passes."""
        token = self.tokens.issue()
        self.now += 365 * 24 * 3600

        assert self.tokens.verify(token) is True

    def test_other_secret_rejects(self):
        token = self.tokens.issue()
        other = AdminTokenAuthority("other-secret", self.crypto, "hash")

        assert other.verify(token) is False

    def test_tampered_timestamp_rejected(self):
        role, issued_ms, mac = unb64(self.tokens.issue()).split(":")
        forged = b64(f"{role}:{int(issued_ms) + 1}:{mac}")

        assert self.tokens.verify(forged) is False

    def test_tampered_role_rejected(self):
        _, issued_ms, mac = unb64(self.tokens.issue()).split(":")

        assert self.tokens.verify(b64(f"user:{issued_ms}:{mac}")) is False

    @pytest.mark.parametrize("token", [
        None,
        "",
        "!!!not-base64!!!",
        b64("admin:123"),
        b64("admin:123:abc:def"),
        b64("admin:123:zz"),
        b64("admin:123:" + "00" * 32),
    ])
    def test_malformed_tokens_rejected(self, token):
        assert self.tokens.verify(token) is False

    def test_junk_inside_token_rejected(self):
        """Test characters outside the base64url alphabet are not skipped."""
        token = self.tokens.issue()

        assert self.tokens.verify(token[:4] + "!!**" + token[4:]) is False
        assert self.tokens.verify(token + "\n") is False
        assert self.tokens.verify(" " + token) is False

    def test_alternate_spellings_rejected(self):
        """Test only the issued unpadded base64url form verifies."""
        token = self.tokens.issue()
        standard_alphabet = token.replace("-", "+").replace("_", "/")

        assert self.tokens.verify(token + "==") is False
        assert self.tokens.verify(token + "====") is False
        assert standard_alphabet == token or self.tokens.verify(standard_alphabet) is False

    def test_uppercase_mac_rejected(self):
        """Test the MAC must be the lowercase hex that was issued."""
        role, issued_ms, mac = unb64(self.tokens.issue()).split(":")

        assert self.tokens.verify(b64(f"{role}:{issued_ms}:{mac.upper()}")) is False
        assert self.tokens.verify(b64(f"{role}:{issued_ms}:{mac[:32]} {mac[32:]}")) is False
        assert self.tokens.verify(b64(f"{role}:{issued_ms}:{mac}")) is True

    def test_require_raises(self):
        with pytest.raises(Unauthorized):
            self.tokens.require("garbage")

    def test_login(self):
        """Test the right password yields a valid token."""
        token = self.tokens.login("hunter2")

        assert self.tokens.verify(token)

    def test_login_wrong_password(self):
        with pytest.raises(Unauthorized) as exc:
            self.tokens.login("hunter3")
        assert exc.value.code == "invalid"

    def test_login_empty_password(self):
        with pytest.raises(Unauthorized):
            self.tokens.login("")
