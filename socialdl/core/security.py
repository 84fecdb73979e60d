import asyncio
import ipaddress
import socket
from enum import Enum, auto
from typing import List, Union
from urllib.parse import urlparse

from socialdl.config.settings import config


class UrlValidationResult(Enum):
    """URL validation result without throwing exceptions"""
    OK = auto()
    BLOCKED = auto()
    INVALID = auto()


class SecurityValidator:
    """
    Validate URL security without throwing exceptions.
    Returns result enum for separation of concerns.
    """

    @staticmethod
    def is_blocked_ip(ip: Union[ipaddress.IPv4Address, ipaddress.IPv6Address]) -> bool:
        if ip.is_loopback:
            return not config.security.allow_localhost
        if ip.is_private:
            return not config.security.allow_private_ips
        return ip.is_link_local or ip.is_multicast or ip.is_reserved or ip.is_unspecified

    @staticmethod
    async def resolve_host(hostname: str) -> List[str]:
        addr_info = await asyncio.to_thread(socket.getaddrinfo, hostname, None)
        return [info[4][0] for info in addr_info]

    @staticmethod
    async def validate_url(url: str) -> UrlValidationResult:
        """
        Validate URL against SSRF attacks.
        Hosts that do not resolve are let through; yt-dlp reports them itself.
        """
        if not config.security.enable_ssrf_protection:
            return UrlValidationResult.OK

        try:
            parsed = urlparse(url)
        except ValueError:
            return UrlValidationResult.INVALID

        hostname = parsed.hostname
        if parsed.scheme not in ("http", "https") or not hostname:
            return UrlValidationResult.INVALID

        try:
            ips = await SecurityValidator.resolve_host(hostname)
        except (socket.gaierror, UnicodeError):
            return UrlValidationResult.OK

        for ip_str in ips:
            try:
                # strip IPv6 zone ids such as fe80::1%eth0
                ip = ipaddress.ip_address(ip_str.split("%", 1)[0])
            except ValueError:
                return UrlValidationResult.INVALID
            if SecurityValidator.is_blocked_ip(ip):
                return UrlValidationResult.BLOCKED

        return UrlValidationResult.OK
