"""Build PyPI index snapshots for the dependency guesser.

A snapshot pairs each package's download count with the top-level modules it
installs (see ``registry.index``). Download counts come from a CSV export,
for example a query against the public PyPI downloads dataset returning
``project,download_count``, or from a JSON object. Module lists come from a
JSON object or are read out of each package's latest wheel on PyPI.
"""
from __future__ import annotations

import csv
import io
import json
import logging
import sys
import zipfile
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from packaging.utils import canonicalize_name

from constants import Constants, ExitCodes
from common.http_client import decode_json, safe_get, HEADERS_JSON
from common.logging_utils import extra_context, safe_url, Timer

logger = logging.getLogger(__name__)

_NAME_COLUMNS = ("project", "package", "name")
_COUNT_COLUMNS = ("download_count", "downloads", "count")
_MODULE_SUFFIXES = (".py", ".so", ".pyd")


def _pick_column(fieldnames: Sequence[str], candidates: Sequence[str]) -> str:
    folded = {field.strip().lower(): field for field in fieldnames}
    for candidate in candidates:
        if candidate in folded:
            return folded[candidate]
    raise ValueError(f"no column named any of: {', '.join(candidates)}")


def _count(value) -> int:
    count = int(value)
    if count < 0:
        raise ValueError(f"negative download count: {value!r}")
    return count


def read_download_counts(path: str) -> Dict[str, int]:
    """Load ``name -> downloads`` from a CSV export or a JSON object; exit on bad input."""
    try:
        with open(path, "r", encoding="utf-8", newline="") as fh:
            if path.lower().endswith(".json"):
                data = json.load(fh)
                if not isinstance(data, dict):
                    raise ValueError("expected a JSON object of package name to download count")
                return {str(name): _count(count) for name, count in data.items()}

            reader = csv.DictReader(fh)
            name_col = _pick_column(reader.fieldnames or [], _NAME_COLUMNS)
            count_col = _pick_column(reader.fieldnames or [], _COUNT_COLUMNS)
            counts: Dict[str, int] = {}
            for row in reader:
                name = (row.get(name_col) or "").strip()
                if name:
                    counts[name] = counts.get(name, 0) + _count(row.get(count_col))
            return counts
    except (OSError, ValueError, TypeError, csv.Error) as exc:
        logger.error("%s: %s", path, exc)
        sys.exit(ExitCodes.FILE_ERROR.value)


def read_module_lists(path: str) -> Dict[str, List[str]]:
    """Load ``name -> [module, ...]`` from a JSON object; exit on bad input."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("%s: %s", path, exc)
        sys.exit(ExitCodes.FILE_ERROR.value)

    if not isinstance(data, dict):
        logger.error("%s: expected a JSON object of package name to module list", path)
        sys.exit(ExitCodes.FILE_ERROR.value)
    for name, modules in data.items():
        if not isinstance(modules, list) or not all(isinstance(m, str) for m in modules):
            logger.error("%s: modules for %s must be a list of strings", path, name)
            sys.exit(ExitCodes.FILE_ERROR.value)
    return {str(name): list(modules) for name, modules in data.items()}


def top_level_modules(filenames: Iterable[str]) -> List[str]:
    """Importable top-level names among the paths of a wheel archive."""
    modules = set()
    for filename in filenames:
        head, sep, _ = filename.partition("/")
        if head.endswith((".dist-info", ".data")) or head == "__pycache__":
            continue
        if sep:
            candidate = head
        elif head.endswith(_MODULE_SUFFIXES):
            # extension modules carry an ABI tag: _yaml.cpython-312-x86_64-linux-gnu.so
            candidate = head.split(".", 1)[0]
        else:
            continue
        if candidate.isidentifier():
            modules.add(candidate)
    return sorted(modules)


def wheel_modules(archive: zipfile.ZipFile) -> List[str]:
    """Top-level modules of a wheel; ``top_level.txt`` wins when the wheel has one."""
    names = archive.namelist()
    for name in names:
        if name.count("/") == 1 and name.endswith(".dist-info/top_level.txt"):
            text = archive.read(name).decode("utf-8")
            listed = {line.strip().split("/", 1)[0] for line in text.splitlines()}
            modules = sorted(m for m in listed if m.isidentifier())
            if modules:
                return modules
    return top_level_modules(names)


def fetch_wheel_modules(name: str, url: str = Constants.REGISTRY_URL_PYPI) -> Optional[List[str]]:
    """Read the top-level modules of the latest wheel of ``name`` on PyPI.

    Returns:
        The module list, or None when the package is unknown, has no wheel
        for its latest release, or the wheel cannot be read.
    """
    fullurl = url + canonicalize_name(name) + "/json"
    res = safe_get(fullurl, context="pypi", headers=HEADERS_JSON)
    if res.status_code == 404:
        logger.warning("%s: not found on PyPI; skipping", name)
        return None
    if res.status_code != 200:
        logger.error("PyPI lookup of %s failed, status code: %s", name, res.status_code)
        sys.exit(ExitCodes.CONNECTION_ERROR.value)

    payload = decode_json(res, context="pypi", url=fullurl)
    files = payload.get("urls") if isinstance(payload, dict) else None
    wheel = next(
        (
            f for f in files or []
            if isinstance(f, dict) and f.get("packagetype") == "bdist_wheel" and f.get("url")
        ),
        None,
    )
    if wheel is None:
        logger.warning("%s: latest release has no wheel; skipping", name)
        return None

    wheel_res = safe_get(wheel["url"], context="pypi")
    if wheel_res.status_code != 200:
        logger.error("Download of %s failed, status code: %s", safe_url(wheel["url"]), wheel_res.status_code)
        sys.exit(ExitCodes.CONNECTION_ERROR.value)
    try:
        with zipfile.ZipFile(io.BytesIO(wheel_res.content)) as archive:
            return wheel_modules(archive)
    except zipfile.BadZipFile as exc:
        logger.warning("%s: unreadable wheel %s: %s", name, safe_url(wheel["url"]), exc)
        return None


def select_packages(downloads: Mapping[str, int], min_downloads: int = 0, top: Optional[int] = None) -> List[str]:
    """Names with at least ``min_downloads``, most downloaded first, cut at ``top``."""
    ranked = sorted(
        (name for name, count in downloads.items() if count >= min_downloads),
        key=lambda name: (-downloads[name], name),
    )
    return ranked if top is None else ranked[:top]


def collect_modules(
    names: Sequence[str],
    fetch: Callable[[str], Optional[List[str]]] = fetch_wheel_modules,
    max_workers: int = Constants.SEARCH_MAX_WORKERS,
) -> Dict[str, List[str]]:
    """Fetch module lists for ``names`` concurrently; packages without one are dropped."""
    if not names:
        return {}
    slots: List[Optional[List[str]]] = [None] * len(names)
    with Timer() as t:
        with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(names)))) as pool:
            futures = {pool.submit(fetch, name): i for i, name in enumerate(names)}
            for future, i in futures.items():
                slots[i] = future.result()
    logger.debug(
        "Module lookups finished",
        extra=extra_context(event="index_modules", count=len(names), duration_ms=t.duration_ms()),
    )
    return {name: modules for name, modules in zip(names, slots) if modules}


def build_snapshot(
    names: Iterable[str],
    downloads: Mapping[str, int],
    modules: Mapping[str, Sequence[str]],
) -> Dict[str, Dict[str, Dict]]:
    """Assemble the snapshot document for ``names``.

    Module lists are matched by canonical name; packages that install no
    module are left out since they can never be guessed.
    """
    by_key = {canonicalize_name(name): mods for name, mods in modules.items()}
    packages: Dict[str, Dict] = {}
    for name in names:
        mods = sorted(set(by_key.get(canonicalize_name(name), ())))
        if not mods:
            continue
        packages[name] = {"downloads": int(downloads.get(name, 0)), "modules": mods}
    return {"packages": packages}


def dump_snapshot(document: Mapping) -> str:
    return json.dumps(document, indent=2, sort_keys=True) + "\n"
