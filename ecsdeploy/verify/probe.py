"""
HTTP probe against the service health endpoint.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import requests

logger = logging.getLogger(__name__)

HEALTHY_STATUS = "UP"


@dataclass
class ProbeResult:
    """Outcome of a single health probe."""
    url: str
    reachable: bool
    healthy: bool = False
    status_code: Optional[int] = None
    reported_status: Optional[str] = None
    error: Optional[str] = None


def probe_health(url: str, timeout: float = 5.0) -> ProbeResult:
    """
    Probe a health endpoint once.

    The endpoint is healthy only when it returns a JSON object whose
    ``status`` field is ``"UP"``. Network errors and malformed bodies are
    reported in the result and never raised.

    Args:
        url: Full health URL
        timeout: Request timeout in seconds

    Returns:
        ProbeResult
    """
    logger.info(f"Health URL: {url}")
    try:
        response = requests.get(url, timeout=timeout)
    except requests.exceptions.Timeout:
        return ProbeResult(url, reachable=False, error=f"Request timed out after {timeout:g} seconds")
    except requests.exceptions.RequestException as e:
        return ProbeResult(url, reachable=False, error=f"Request failed: {e}")

    try:
        body = response.json()
    except ValueError:
        return ProbeResult(url, reachable=True, status_code=response.status_code,
                           error="Response is not valid JSON")

    reported = body.get("status") if isinstance(body, dict) else None
    return ProbeResult(
        url,
        reachable=True,
        healthy=reported == HEALTHY_STATUS,
        status_code=response.status_code,
        reported_status=reported,
        error=None if reported == HEALTHY_STATUS else f"Health status is {reported!r}, not {HEALTHY_STATUS!r}",
    )
