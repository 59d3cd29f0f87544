"""PyPI registry client: single-package metadata lookups."""
from __future__ import annotations

import logging
import sys
from typing import Any, Dict, List, Optional

from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name

from constants import ExitCodes, Constants
from common.http_client import decode_json, safe_get, HEADERS_JSON
from common.logging_utils import extra_context, is_debug_enabled, Timer, safe_url
from backends.base import PackageMetadata, format_author

logger = logging.getLogger(__name__)

_SOURCE_KEYS = ("source", "source code", "repository", "code")
_DOCS_KEYS = ("documentation", "docs")
_TRACKER_KEYS = ("bug tracker", "issues", "issue tracker", "tracker")


def _project_url(project_urls: Dict[str, str], keys) -> str:
    for label, url in (project_urls or {}).items():
        if label.strip().lower() in keys and url:
            return url
    return ""


def _runtime_dependencies(requires_dist: Optional[List[str]]) -> List[str]:
    """Names of unconditional-on-extras requirements, in declaration order."""
    deps: List[str] = []
    for line in requires_dist or []:
        try:
            req = Requirement(line)
        except InvalidRequirement:
            if "extra ==" in line:
                continue
            deps.append(line.split()[0])
            continue
        if req.marker is not None and "extra" in str(req.marker):
            continue
        if req.name not in deps:
            deps.append(req.name)
    return deps


def parse_info(info: Dict[str, Any]) -> PackageMetadata:
    """Map the ``info`` object of the PyPI JSON API to PackageMetadata."""
    project_urls = info.get("project_urls") or {}
    return PackageMetadata(
        name=info.get("name") or "",
        description=info.get("summary") or "",
        version=info.get("version") or "",
        homepage_url=info.get("home_page") or _project_url(project_urls, ("homepage", "home")),
        documentation_url=info.get("docs_url") or _project_url(project_urls, _DOCS_KEYS),
        source_code_url=_project_url(project_urls, _SOURCE_KEYS),
        bug_tracker_url=info.get("bugtrack_url") or _project_url(project_urls, _TRACKER_KEYS),
        author=format_author(info.get("author") or "", info.get("author_email") or ""),
        license=info.get("license") or "",
        dependencies=_runtime_dependencies(info.get("requires_dist")),
    )


def fetch_info(name: str, url: str = Constants.REGISTRY_URL_PYPI) -> Optional[PackageMetadata]:
    """Look up ``name`` on PyPI.

    Args:
        name: Package name, in any spelling.
        url: PyPI JSON API base. Defaults to Constants.REGISTRY_URL_PYPI.

    Returns:
        PackageMetadata, or None when PyPI has no such package.
    """
    fullurl = url + canonicalize_name(name) + "/json"

    with Timer() as timer:
        res = safe_get(fullurl, context="pypi", headers=HEADERS_JSON)
    duration_ms = timer.duration_ms()

    if res.status_code == 404:
        logger.debug(
            "Package not found",
            extra=extra_context(
                event="http_response",
                outcome="not_found",
                status_code=404,
                target=safe_url(fullurl),
                package_manager="pypi"
            )
        )
        return None
    if res.status_code != 200:
        logger.error("PyPI lookup of %s failed, status code: %s", name, res.status_code)
        sys.exit(ExitCodes.CONNECTION_ERROR.value)

    if is_debug_enabled(logger):
        logger.debug(
            "HTTP response ok",
            extra=extra_context(
                event="http_response",
                outcome="success",
                status_code=res.status_code,
                duration_ms=duration_ms,
                package_manager="pypi"
            )
        )

    payload = decode_json(res, context="pypi", url=fullurl)
    info = payload.get("info") if isinstance(payload, dict) else None
    if not isinstance(info, dict):
        logger.error("PyPI response for %s has no \"info\" object", name)
        sys.exit(ExitCodes.CONNECTION_ERROR.value)
    return parse_info(info)
