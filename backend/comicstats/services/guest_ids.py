"""Guest and comic identifier helpers for the button endpoints."""
import re
import secrets
from typing import Optional

COMIC_ID_RE = re.compile(r"[a-z0-9]{4}")
GUEST_ID_RE = re.compile(r"[a-f0-9]{32}")
VIEW_ID_RE = re.compile(r"([a-z0-9]{4})([a-f0-9]{32})")


def new_guest_id() -> str:
    return secrets.token_hex(16)


def is_comic_id(value: Optional[str]) -> bool:
    return bool(value) and COMIC_ID_RE.fullmatch(value) is not None


def is_guest_id(value: Optional[str]) -> bool:
    return bool(value) and GUEST_ID_RE.fullmatch(value) is not None


def resolve_guest_id(cookie_value: Optional[str]) -> str:
    """Reuse the cookie's guest id when valid, otherwise mint a new one."""
    if is_guest_id(cookie_value):
        return cookie_value
    return new_guest_id()


def split_view_id(value: str) -> Optional[tuple[str, str]]:
    """Split ``<comicId><guestId>`` into its parts, or None if malformed."""
    m = VIEW_ID_RE.fullmatch(value or "")
    if not m:
        return None
    return m.group(1), m.group(2)
