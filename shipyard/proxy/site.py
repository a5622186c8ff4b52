from dataclasses import dataclass, field
from typing import Dict, List

from shipyard.settings import Settings

ASSET_EXTENSIONS = ["js", "css", "png", "jpg", "jpeg", "gif", "ico", "svg", "woff", "woff2", "ttf", "eot"]

SECURITY_HEADERS = {
    "X-Frame-Options": "SAMEORIGIN",
    "X-Content-Type-Options": "nosniff",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

GZIP_TYPES = [
    "text/css",
    "text/javascript",
    "text/xml",
    "text/plain",
    "text/x-component",
    "application/javascript",
    "application/x-javascript",
    "application/json",
    "application/xml",
    "application/rss+xml",
    "application/atom+xml",
    "font/truetype",
    "font/opentype",
    "application/vnd.ms-fontobject",
    "image/svg+xml",
]


@dataclass
class StaticAssetRule:
    """A location whose responses are cached as immutable."""
    location: str               # "/_next/static/" or a regex location such as "~* \.(js|css)$"
    expires: str = "1y"
    cache_control: str = "public, immutable"


@dataclass
class ProxySiteDescriptor:
    file_name: str
    server_name: str
    listen_port: int
    upstream: str
    access_log: str
    error_log: str
    static_rules: List[StaticAssetRule] = field(default_factory=list)
    security_headers: Dict[str, str] = field(default_factory=lambda: dict(SECURITY_HEADERS))
    gzip_types: List[str] = field(default_factory=lambda: list(GZIP_TYPES))
    gzip_min_length: int = 1024
    read_timeout: int = 86400
    error_pages: Dict[str, str] = field(default_factory=lambda: {
        "404": "/404.html",
        "500 502 503 504": "/50x.html",
    })


def build_site(settings: Settings, app_port: int) -> ProxySiteDescriptor:
    proxy = settings.proxy
    assets = "|".join(ASSET_EXTENSIONS)
    return ProxySiteDescriptor(
        file_name=settings.site_file_name,
        server_name=proxy.server_name,
        listen_port=proxy.listen_port,
        upstream=f"http://localhost:{app_port}",
        access_log=f"{proxy.log_dir}/{proxy.log_prefix}.access.log",
        error_log=f"{proxy.log_dir}/{proxy.log_prefix}.error.log",
        static_rules=[
            StaticAssetRule("/_next/static/"),
            StaticAssetRule(f"~* \\.({assets})$"),
        ],
    )
