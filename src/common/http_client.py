"""Shared HTTP helpers used by the registry clients.

Encapsulates common request/timeout error handling so modules avoid
duplicating try/except blocks. Transport failures are fatal: the process
exits with ``ExitCodes.CONNECTION_ERROR`` after logging the target.
"""
from __future__ import annotations

import json
import logging
import sys
from typing import Any

import requests

from constants import Constants, ExitCodes
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)

HEADERS_JSON = {"Accept": "application/json"}


def safe_get(url: str, *, context: str, **kwargs: Any) -> requests.Response:
    """Perform a GET request with consistent error handling and DEBUG traces.

    Args:
        url: Target URL.
        context: Human-readable source tag for logs (e.g., "npm", "pypi").
        **kwargs: Passed through to requests.get.

    Returns:
        requests.Response: The HTTP response object, whatever its status.
    """
    safe_target = safe_url(url)
    with Timer() as t:
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP request",
                extra=extra_context(
                    event="http_request",
                    component="http_client",
                    action="GET",
                    target=safe_target,
                    context=context
                )
            )
        try:
            res = requests.get(url, timeout=Constants.REQUEST_TIMEOUT, **kwargs)
            if is_debug_enabled(logger):
                logger.debug(
                    "HTTP response",
                    extra=extra_context(
                        event="http_response",
                        component="http_client",
                        action="GET",
                        status_code=res.status_code,
                        duration_ms=t.duration_ms(),
                        target=safe_target,
                        context=context
                    )
                )
            return res
        except requests.Timeout:
            logger.error(
                "%s request to %s timed out after %s seconds",
                context,
                safe_target,
                Constants.REQUEST_TIMEOUT,
            )
            sys.exit(ExitCodes.CONNECTION_ERROR.value)
        except requests.RequestException as exc:  # includes ConnectionError
            logger.error("%s connection error for %s: %s", context, safe_target, exc)
            sys.exit(ExitCodes.CONNECTION_ERROR.value)


def decode_json(res: requests.Response, *, context: str, url: str) -> Any:
    """Decode a response body, exiting on malformed JSON."""
    try:
        return json.loads(res.text)
    except json.JSONDecodeError as exc:
        logger.error("%s response from %s is not valid JSON: %s", context, safe_url(url), exc)
        sys.exit(ExitCodes.CONNECTION_ERROR.value)
