"""Registry index snapshots: which packages declare which modules, and how
popular each package is.

A snapshot is a JSON document of the form::

    {"packages": {"PyYAML": {"downloads": 123456, "modules": ["yaml"]}, ...}}

It is read from a local path or an http(s) URL and cached per location for
the life of the process. Snapshots are read-only once loaded.
"""
from __future__ import annotations

import json
import logging
import os
import sys
import threading
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from constants import ExitCodes
from common.http_client import decode_json, safe_get, HEADERS_JSON
from common.logging_utils import extra_context, Timer
from guess.models import ModuleIndex, PackageCandidate

logger = logging.getLogger(__name__)

DATA_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "data")
DEFAULT_PYPI_INDEX = os.path.join(DATA_DIR, "pypi_index.json")

_snapshot_cache: Dict[Tuple[str, str], "RegistrySnapshot"] = {}
_snapshot_cache_lock = threading.Lock()


class RegistrySnapshot:
    """Immutable view of one registry index document."""

    def __init__(self, candidates: Sequence[PackageCandidate], normalize: Callable[[str], str]):
        self._normalize = normalize
        self._packages: Dict[str, PackageCandidate] = {normalize(c.name): c for c in candidates}
        self._module_index: Optional[ModuleIndex] = None

    def __len__(self) -> int:
        return len(self._packages)

    def names(self) -> List[str]:
        """Package names as published, in a stable order."""
        return sorted(c.name for c in self._packages.values())

    def get(self, name: str) -> Optional[PackageCandidate]:
        return self._packages.get(self._normalize(name))

    def popularity(self, name: str) -> int:
        candidate = self.get(name)
        return candidate.popularity if candidate else 0

    def package_modules(self) -> Dict[str, Tuple[str, ...]]:
        """Normalized package name to the modules it declares."""
        return {key: c.modules for key, c in self._packages.items()}

    def module_index(self) -> ModuleIndex:
        """Module name to declaring candidates, built on first use."""
        if self._module_index is None:
            index: ModuleIndex = {}
            for key in sorted(self._packages):
                candidate = self._packages[key]
                for module in candidate.modules:
                    index.setdefault(module, []).append(candidate)
            self._module_index = index
        return self._module_index


def parse_snapshot(data, normalize: Callable[[str], str], source: str) -> RegistrySnapshot:
    """Validate a decoded index document; exit on malformed input."""
    packages = data.get("packages") if isinstance(data, dict) else None
    if not isinstance(packages, dict):
        logger.error("%s: missing \"packages\" object", source)
        sys.exit(ExitCodes.FILE_ERROR.value)

    candidates = []
    for name, entry in packages.items():
        if not isinstance(entry, dict):
            logger.error("%s: entry for %s is not an object", source, name)
            sys.exit(ExitCodes.FILE_ERROR.value)
        modules = entry.get("modules", [])
        downloads = entry.get("downloads", 0)
        if not isinstance(modules, list) or not isinstance(downloads, int) or downloads < 0:
            logger.error("%s: malformed entry for %s", source, name)
            sys.exit(ExitCodes.FILE_ERROR.value)
        candidates.append(PackageCandidate(name=name, popularity=downloads, modules=tuple(modules)))
    return RegistrySnapshot(candidates, normalize)


def _read_location(location: str):
    if location.startswith(("http://", "https://")):
        res = safe_get(location, context="index", headers=HEADERS_JSON)
        if res.status_code != 200:
            logger.error("Registry index %s returned status code %s", location, res.status_code)
            sys.exit(ExitCodes.CONNECTION_ERROR.value)
        return decode_json(res, context="index", url=location)
    try:
        with open(location, "r", encoding="utf-8") as fh:
            return json.load(fh)
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("%s: %s", location, exc)
        sys.exit(ExitCodes.FILE_ERROR.value)


def load_snapshot(
    location: str,
    normalize: Callable[[str], str],
    ecosystem: str = "pypi",
) -> RegistrySnapshot:
    """Load (or reuse) the snapshot at ``location``."""
    key = (ecosystem, location)
    with _snapshot_cache_lock:
        cached = _snapshot_cache.get(key)
        if cached is not None:
            return cached
        with Timer() as t:
            snapshot = parse_snapshot(_read_location(location), normalize, location)
        logger.debug(
            "Loaded registry index",
            extra=extra_context(
                event="index_load",
                component="registry_index",
                target=location,
                package_manager=ecosystem,
                count=len(snapshot),
                duration_ms=t.duration_ms(),
            ),
        )
        _snapshot_cache[key] = snapshot
        return snapshot


def clear_cache() -> None:
    """Forget loaded snapshots."""
    with _snapshot_cache_lock:
        _snapshot_cache.clear()
