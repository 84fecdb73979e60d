from .display import format_duration, format_file_size
from .filename import build_base_name, content_disposition, sanitize_title
from .platform import detect_platform

__all__ = [
    "build_base_name",
    "content_disposition",
    "detect_platform",
    "format_duration",
    "format_file_size",
    "sanitize_title",
]
