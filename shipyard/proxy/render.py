from __future__ import annotations

from typing import List

from .site import ProxySiteDescriptor

INDENT = "    "


def _proxy_headers(upstream: str) -> List[str]:
    return [
        f"proxy_pass {upstream};",
        "proxy_http_version 1.1;",
        "proxy_set_header Upgrade $http_upgrade;",
        "proxy_set_header Connection 'upgrade';",
        "proxy_set_header Host $host;",
        "proxy_set_header X-Real-IP $remote_addr;",
        "proxy_set_header X-Forwarded-For $proxy_add_x_forwarded_for;",
        "proxy_set_header X-Forwarded-Proto $scheme;",
        "proxy_cache_bypass $http_upgrade;",
    ]


def _location(match: str, body: List[str]) -> List[str]:
    return [f"location {match} {{"] + [INDENT + line for line in body] + ["}"]


def render_site(site: ProxySiteDescriptor) -> str:
    """Render a site descriptor as an nginx server block."""
    lines: List[str] = [
        f"listen {site.listen_port};",
        f"server_name {site.server_name};",
        "",
        "# Security headers",
    ]
    lines += [f'add_header {name} "{value}" always;' for name, value in site.security_headers.items()]

    lines += [
        "",
        "# Gzip compression",
        "gzip on;",
        "gzip_vary on;",
        f"gzip_min_length {site.gzip_min_length};",
        "gzip_proxied expired no-cache no-store private auth;",
        "gzip_types",
    ]
    lines += [INDENT + t for t in site.gzip_types[:-1]]
    lines.append(f"{INDENT}{site.gzip_types[-1]};")

    lines += ["", "# Proxy all requests to the application"]
    lines += _location("/", _proxy_headers(site.upstream) + [f"proxy_read_timeout {site.read_timeout};"])

    for rule in site.static_rules:
        lines += ["", "# Immutable static assets"]
        lines += _location(rule.location, [
            f"proxy_pass {site.upstream};",
            f"expires {rule.expires};",
            f'add_header Cache-Control "{rule.cache_control}";',
        ])

    lines += ["", "# Error pages"]
    lines += [f"error_page {codes} {page};" for codes, page in site.error_pages.items()]
    lines += [
        "",
        "server_tokens off;",
        "",
        "# Logs",
        f"access_log {site.access_log};",
        f"error_log {site.error_log};",
    ]

    body = "\n".join((INDENT + line) if line else "" for line in lines)
    return f"server {{\n{body}\n}}\n"
