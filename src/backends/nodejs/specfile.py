"""package.json and package-lock.json parsing for the npm backend."""

from __future__ import annotations

import json
from typing import Any, Dict, Optional, Tuple


def normalize_package_name(name: str) -> str:
    """npm names are case-insensitive on lookup; ``-`` and ``_`` are distinct."""
    return name.strip().lower()


def module_to_package(spec: str) -> Optional[str]:
    """Package name owning an import specifier, or None for local paths.

    ``lodash/fp`` -> ``lodash``; ``@babel/core/lib`` -> ``@babel/core``;
    ``node:fs`` -> ``fs``.
    """
    spec = spec.strip()
    if not spec or spec.startswith((".", "/")) or "://" in spec:
        return None
    if spec.startswith("node:"):
        return spec[len("node:"):].split("/", 1)[0]
    parts = spec.split("/")
    if spec.startswith("@"):
        return "/".join(parts[:2]) if len(parts) >= 2 and parts[1] else None
    return parts[0]


def _load_json(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


def read_package_json(path: str) -> Tuple[str, Dict[str, str]]:
    """Return the project name and its runtime plus development dependencies."""
    data = _load_json(path)
    pkgs: Dict[str, str] = {}
    for key in ("dependencies", "devDependencies"):
        table = data.get(key) or {}
        if not isinstance(table, dict):
            raise ValueError(f"\"{key}\" must be an object")
        for name, spec in table.items():
            if isinstance(spec, str):
                pkgs[name] = spec
    return str(data.get("name") or ""), pkgs


def read_package_lock(path: str) -> Dict[str, str]:
    """Top-level resolved versions from a v1, v2 or v3 package-lock.json."""
    data = _load_json(path)
    pkgs: Dict[str, str] = {}

    packages = data.get("packages")
    if isinstance(packages, dict):
        for key, entry in packages.items():
            if not key.startswith("node_modules/") or "/node_modules/" in key:
                continue
            if not isinstance(entry, dict):
                raise ValueError(f"entry {key!r} is not an object")
            name = entry.get("name") or key[len("node_modules/"):]
            pkgs[name] = str(entry.get("version", ""))
        return pkgs

    dependencies = data.get("dependencies") or {}
    if not isinstance(dependencies, dict):
        raise ValueError("\"dependencies\" must be an object")
    for name, entry in dependencies.items():
        if not isinstance(entry, dict):
            raise ValueError(f"entry {name!r} is not an object")
        pkgs[name] = str(entry.get("version", ""))
    return pkgs
