"""Helpers that strip personal data before it reaches log output."""

from __future__ import annotations

from typing import Optional


def mask_email(email: Optional[str]) -> str:
    """Mask an address, e.g. ``superman@example.com`` -> ``su****@example.com``."""
    if not email:
        return "[EMPTY]"
    at_index = email.find("@")
    if at_index <= 0:
        return "[INVALID_EMAIL]"
    local_part, domain = email[:at_index], email[at_index:]
    if len(local_part) <= 2:
        return f"**{domain}"
    return f"{local_part[:2]}****{domain}"


def mask_value(value: Optional[str]) -> str:
    """Mask identifiers and secrets, keeping only the first four characters."""
    if not value:
        return "[EMPTY]"
    if len(value) <= 4:
        return "****"
    return f"{value[:4]}****"


def mask_ip(ip: Optional[str]) -> str:
    """Mask the host half of an IPv4 address."""
    if not ip:
        return "[EMPTY]"
    parts = ip.split(".")
    if len(parts) != 4:
        return "[MASKED_IP]"
    return f"{parts[0]}.{parts[1]}.*.*"


__all__ = ["mask_email", "mask_ip", "mask_value"]
