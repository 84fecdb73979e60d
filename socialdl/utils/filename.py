import re
import time
from typing import Optional
from urllib.parse import quote

FALLBACK_NAME = "download"

_last_stamp = 0


def sanitize_title(title: str, max_length: int = 100) -> str:
    """
    Reduce a media title to a filename component.
    Keeps ASCII letters, digits and whitespace, then turns whitespace runs into underscores.
    """
    name = re.sub(r'[^A-Za-z0-9\s]', '', title or "")
    name = re.sub(r'\s+', '_', name.strip())
    name = name[:max_length].strip('_')
    return name or FALLBACK_NAME


def next_timestamp(now: Optional[float] = None) -> int:
    """Unix milliseconds, strictly increasing within the process"""
    global _last_stamp
    stamp = int((time.time() if now is None else now) * 1000)
    if stamp <= _last_stamp:
        stamp = _last_stamp + 1
    _last_stamp = stamp
    return stamp


def build_base_name(title: str, now: Optional[float] = None) -> str:
    """{sanitizedTitle}_{unixMillis}, unique per process"""
    return f"{sanitize_title(title)}_{next_timestamp(now)}"


def content_disposition(filename: str) -> str:
    safe_filename = filename.replace('"', '\\"')
    return f"attachment; filename=\"{safe_filename}\"; filename*=UTF-8''{quote(filename)}"
