"""NPM registry client: package details and name search."""

from __future__ import annotations

import logging
import sys
from typing import Any, Dict, List, Optional, Tuple

from constants import ExitCodes, Constants
from common.http_client import decode_json, safe_get, HEADERS_JSON
from common.logging_utils import extra_context, safe_url
from backends.base import PackageMetadata, format_author

logger = logging.getLogger(__name__)


def _url_field(value: Any) -> str:
    """npm allows ``repository``/``bugs`` as a string or ``{"url": ...}``."""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        return value.get("url") or ""
    return ""


def _author_field(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        return format_author(value.get("name") or "", value.get("email") or "")
    return ""


def _license_field(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        return value.get("type") or ""
    return ""


def parse_packument(packument: Dict[str, Any]) -> PackageMetadata:
    """Map a registry packument to PackageMetadata for its latest version."""
    latest = (packument.get("dist-tags") or {}).get("latest", "")
    manifest = (packument.get("versions") or {}).get(latest) or {}

    def pick(key):
        return manifest.get(key) if manifest.get(key) is not None else packument.get(key)

    return PackageMetadata(
        name=packument.get("name") or "",
        description=pick("description") or "",
        version=latest,
        homepage_url=pick("homepage") or "",
        source_code_url=_url_field(pick("repository")),
        bug_tracker_url=_url_field(pick("bugs")),
        author=_author_field(pick("author")),
        license=_license_field(pick("license")),
        dependencies=list((manifest.get("dependencies") or {}).keys()),
    )


def fetch_info(name: str, url: str = Constants.REGISTRY_URL_NPM) -> Optional[PackageMetadata]:
    """Look up ``name`` on the npm registry; None when it does not exist."""
    package_url = url + name.replace("/", "%2F")
    res = safe_get(package_url, context="npm", headers=HEADERS_JSON)

    if res.status_code == 404:
        logger.debug(
            "Package not found",
            extra=extra_context(
                event="http_response",
                outcome="not_found",
                status_code=404,
                target=safe_url(package_url),
                package_manager="npm"
            )
        )
        return None
    if res.status_code != 200:
        logger.error("npm lookup of %s failed, status code: %s", name, res.status_code)
        sys.exit(ExitCodes.CONNECTION_ERROR.value)

    packument = decode_json(res, context="npm", url=package_url)
    if not isinstance(packument, dict):
        logger.error("npm response for %s is not an object", name)
        sys.exit(ExitCodes.CONNECTION_ERROR.value)
    return parse_packument(packument)


def _popularity(obj: Dict[str, Any]) -> int:
    downloads = obj.get("downloads")
    if isinstance(downloads, dict) and isinstance(downloads.get("weekly"), int):
        return downloads["weekly"]
    detail = (obj.get("score") or {}).get("detail") or {}
    try:
        return int(float(detail.get("popularity", 0)) * 1_000_000)
    except (TypeError, ValueError):
        return 0


def search_names(
    query: str,
    url: str = Constants.REGISTRY_URL_NPM_SEARCH,
    size: int = Constants.NPM_SEARCH_SIZE,
) -> List[Tuple[str, int]]:
    """Return ``(name, popularity)`` for search hits whose name contains ``query``, ignoring case."""
    res = safe_get(url, context="npm", headers=HEADERS_JSON, params={"text": query, "size": size})
    if res.status_code != 200:
        logger.error("npm search for %s failed, status code: %s", query, res.status_code)
        sys.exit(ExitCodes.CONNECTION_ERROR.value)

    payload = decode_json(res, context="npm", url=url)
    needle = query.lower()
    hits: List[Tuple[str, int]] = []
    for obj in (payload.get("objects") or []) if isinstance(payload, dict) else []:
        name = (obj.get("package") or {}).get("name")
        if isinstance(name, str) and needle in name.lower():
            hits.append((name, _popularity(obj)))
    return hits
