"""Wallet and amount validation utilities."""

from __future__ import annotations

import re

from eth_utils import is_address, to_checksum_address

_UNSIGNED_INT_RE = re.compile(r"^[0-9]+$")


def is_valid_wallet(w: str) -> bool:
    """Return True if w is a 0x-prefixed 20-byte address (checksum enforced when mixed-case)."""
    if not w or not isinstance(w, str):
        return False
    w = w.strip()
    if not w.startswith("0x"):
        return False
    try:
        return bool(is_address(w))
    except (TypeError, ValueError):
        return False


def checksum_wallet(w: str) -> str:
    return to_checksum_address(w.strip())


def wallet_key(w: str) -> str:
    """Case-insensitive identity for a wallet string (checksum casing is presentation only)."""
    return (w or "").strip().lower()


def parse_amount(raw: str | None) -> int | None:
    """
    Parse a smallest-unit amount string. Returns the integer, or None when the value
    is not a non-negative decimal integer ("abc", "-5", "1.5", "").
    """
    if raw is None:
        return None
    text = str(raw).strip()
    if not _UNSIGNED_INT_RE.match(text):
        return None
    return int(text)
