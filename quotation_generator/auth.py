"""HTTP Basic authentication for the stored-quotation endpoints."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)


def normalize_username(username: str, default_domain: str) -> str:
    """Bare account names get the company mail domain appended."""
    username = (username or "").strip().lower()
    if not username or "@" in username:
        return username
    return f"{username}@{default_domain.lower()}"


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


def parse_users(raw: str, default_domain: str) -> Dict[str, str]:
    """Parse ``user:sha256hex`` pairs separated by commas."""
    users: Dict[str, str] = {}
    for entry in (raw or "").split(","):
        name, sep, digest = entry.strip().partition(":")
        if not sep or not name.strip() or not digest.strip():
            continue
        users[normalize_username(name, default_domain)] = digest.strip().lower()
    return users


class Authenticator:
    def __init__(self, users: Dict[str, str], default_domain: str) -> None:
        self.users = users
        self.default_domain = default_domain

    @property
    def enabled(self) -> bool:
        return bool(self.users)

    def verify(self, username: str, password: str) -> bool:
        expected = self.users.get(normalize_username(username, self.default_domain))
        if expected is None:
            return False
        return hmac.compare_digest(expected, hash_password(password))

    def check_header(self, header: Optional[str]) -> bool:
        if not self.enabled:
            return True
        if not header:
            return False
        scheme, _, encoded = header.partition(" ")
        if scheme.lower() != "basic" or not encoded:
            return False
        try:
            decoded = base64.b64decode(encoded.strip(), validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError):
            return False
        username, sep, password = decoded.partition(":")
        if not sep:
            return False
        if self.verify(username, password):
            return True
        logger.warning("Rejected credentials for %r", normalize_username(username, self.default_domain))
        return False
