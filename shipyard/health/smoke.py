"""
HTTP smoke probe for the deployed application.
"""

import logging
from typing import Any, Dict, Iterable, Optional

import requests

logger = logging.getLogger(__name__)


class SmokeResult:
    """Result of a smoke check."""

    def __init__(self, success: bool, message: str, details: Dict[str, Any] = None):
        self.success = success
        self.message = message
        self.details = details or {}


def run_smoke_check(
    base_url: str,
    path: str = "/",
    expect: Optional[Iterable[int]] = None,
    timeout: float = 5.0,
) -> SmokeResult:
    """
    Request a single path and compare the status code.

    Args:
        base_url: Base URL of the application
        path: Path to request
        expect: Accepted status codes; any status below 500 when omitted
        timeout: Request timeout in seconds

    Returns:
        SmokeResult with success status and details
    """
    url = f"{base_url.rstrip('/')}{path}"
    accepted = list(expect) if expect is not None else None

    try:
        response = requests.get(url, timeout=timeout, allow_redirects=False)
    except requests.exceptions.RequestException as e:
        logger.debug("Smoke check %s failed: %s", url, e)
        return SmokeResult(False, f"Request failed: {e}", {"url": url, "status": None})

    status = response.status_code
    ok = status in accepted if accepted is not None else status < 500
    details = {"url": url, "status": status}
    if ok:
        return SmokeResult(True, f"{url} answered {status}", details)
    return SmokeResult(False, f"Expected status {accepted or '< 500'}, got {status}", details)
