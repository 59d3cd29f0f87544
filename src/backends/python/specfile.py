"""pyproject.toml and poetry.lock parsing for the Poetry backend.

Functions here raise on missing or malformed files; callers decide whether
that is fatal.
"""

from __future__ import annotations

import sys
from typing import Any, Dict, Tuple

from packaging.utils import canonicalize_name

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

TOMLDecodeError = tomllib.TOMLDecodeError


def normalize_package_name(name: str) -> str:
    """PEP 503 name: lowercase, runs of ``-``, ``_`` and ``.`` become ``-``."""
    return str(canonicalize_name(name))


def normalize_spec(spec: Any) -> str:
    """Version string from a Poetry dependency value.

    Poetry allows a bare string or a table with a ``version`` key; anything
    else (git/path dependencies, lists of constraints) yields "".
    """
    if isinstance(spec, str):
        return spec
    if isinstance(spec, dict) and isinstance(spec.get("version"), str):
        return spec["version"]
    return ""


def load_toml(path: str) -> Dict[str, Any]:
    with open(path, "rb") as fh:
        return tomllib.load(fh)


def _dependency_tables(poetry: Dict[str, Any]):
    yield poetry.get("dependencies")
    yield poetry.get("dev-dependencies")
    groups = poetry.get("group")
    if isinstance(groups, dict):
        for group in groups.values():
            if isinstance(group, dict):
                yield group.get("dependencies")


def read_pyproject(path: str) -> Tuple[str, Dict[str, str]]:
    """Return the Poetry project name and every declared dependency.

    Runtime, legacy dev and group dependencies are merged; the ``python``
    constraint is not a package and is skipped.
    """
    data = load_toml(path)
    tool = data.get("tool") or {}
    if not isinstance(tool, dict):
        raise ValueError("[tool] must be a table")
    poetry = tool.get("poetry") or {}
    if not isinstance(poetry, dict):
        raise ValueError("[tool.poetry] must be a table")

    pkgs: Dict[str, str] = {}
    for table in _dependency_tables(poetry):
        if not isinstance(table, dict):
            continue
        for name, spec in table.items():
            if name == "python":
                continue
            spec_str = normalize_spec(spec)
            if not spec_str:
                continue
            pkgs[name] = spec_str
    return str(poetry.get("name") or ""), pkgs


def read_poetry_lock(path: str) -> Dict[str, str]:
    """Map each ``[[package]]`` in poetry.lock to its locked version."""
    data = load_toml(path)
    packages = data.get("package", [])
    if not isinstance(packages, list):
        raise ValueError("\"package\" must be an array of tables")

    pkgs: Dict[str, str] = {}
    for pkg in packages:
        if not isinstance(pkg, dict) or not isinstance(pkg.get("name"), str):
            raise ValueError("package entry without a name")
        pkgs[pkg["name"]] = str(pkg.get("version", ""))
    return pkgs
