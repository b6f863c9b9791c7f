"""Readiness polling of a deployed application."""

import logging
import time

import httpx

logger = logging.getLogger(__name__)


def wait_for_ready(url, timeout=120, interval=2, dry_run=False):
    """Poll url until it answers with anything but a 5xx.

    Returns:
        True once the application responds, False on timeout.
    """
    if dry_run:
        logger.info(f"[dry-run] Poll every {interval}s (up to {timeout}s): GET {url}")
        return True

    elapsed = 0
    last = "no response"
    while elapsed < timeout:
        try:
            resp = httpx.get(url, timeout=10, follow_redirects=True)
            if resp.status_code < 500:
                logger.info(f"Application responded at {url} ({resp.status_code}).")
                return True
            last = f"HTTP {resp.status_code}"
        except httpx.HTTPError as e:
            last = str(e) or type(e).__name__
        time.sleep(interval)
        elapsed += interval

    logger.error(f"Timeout after {timeout}s waiting for {url} (last: {last})")
    return False
