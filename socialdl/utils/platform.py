import re

PLATFORM_PATTERNS = {
    "youtube": re.compile(r"(?:youtube\.com|youtu\.be)", re.IGNORECASE),
    "instagram": re.compile(r"instagram\.com", re.IGNORECASE),
    "facebook": re.compile(r"facebook\.com|fb\.watch", re.IGNORECASE),
    "tiktok": re.compile(r"tiktok\.com", re.IGNORECASE),
    "twitter": re.compile(r"twitter\.com|x\.com", re.IGNORECASE),
    "linkedin": re.compile(r"linkedin\.com", re.IGNORECASE),
}


def detect_platform(url: str) -> str:
    """Guess the source platform from the URL, 'unknown' if nothing matches"""
    for platform, pattern in PLATFORM_PATTERNS.items():
        if pattern.search(url):
            return platform
    return "unknown"
