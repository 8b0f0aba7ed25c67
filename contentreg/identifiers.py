"""
Identity and content-hash helpers.

Accounts are opaque caller identities; content is identified by the sha256
hex digest of its bytes. The registry only ever sees the digest - content
bytes are hashed here and then discarded.
"""

from __future__ import annotations

import hashlib
import re

# Ledger account credited with every charge
SYSTEM_ACCOUNT = "system"

_HASH_RE = re.compile(r"^[0-9a-f]{64}$")


def normalize_account(account: str) -> str:
    """
    Validate an account identity.

    Raises:
        ValueError: If the identity is empty or padded with whitespace
    """
    if not isinstance(account, str) or not account:
        raise ValueError("account identity must be a non-empty string")
    if account != account.strip():
        raise ValueError(f"account identity has surrounding whitespace: {account!r}")
    return account


def normalize_hash(content_hash: str) -> str:
    """
    Validate a content hash and return its canonical (lowercase) form.

    Raises:
        ValueError: If the value is not a 64-character hex sha256 digest
    """
    if not isinstance(content_hash, str):
        raise ValueError("content hash must be a string")
    canonical = content_hash.strip().lower()
    if not _HASH_RE.match(canonical):
        raise ValueError(f"not a sha256 hex digest: {content_hash!r}")
    return canonical


def compute_content_hash(content: bytes | str) -> str:
    """
    Compute the sha256 content hash of raw content.

    Args:
        content: Raw bytes or text (text is encoded as UTF-8)

    Returns:
        Hex-encoded sha256 hash
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()


def short_hash(content_hash: str, length: int = 12) -> str:
    """Abbreviated hash for display."""
    return content_hash[:length] + "…" if len(content_hash) > length else content_hash
