"""Import extraction: find the modules a project imports.

Python sources are parsed with ``ast``; other languages are scanned with the
backend's import regexps. Both report per-module package pragmas, e.g.::

    import yaml  # unipm package(PyYAML)
"""
from __future__ import annotations

import ast
import fnmatch
import logging
import os
import re
from typing import Iterable, Iterator, List, Optional, Pattern, Sequence, Set, Tuple

from constants import Constants

from .models import ImportScan

logger = logging.getLogger(__name__)

_PRAGMA_RE = re.compile(Constants.PRAGMA_PATTERN)


def iter_project_files(root: str, patterns: Sequence[str], ignored: Iterable[str]) -> Iterator[str]:
    """Yield files under ``root`` whose basename matches any glob in ``patterns``.

    Directories named in ``ignored`` are not descended into.
    """
    ignored = set(ignored)
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in ignored)
        for filename in sorted(filenames):
            if any(fnmatch.fnmatch(filename, pat) for pat in patterns):
                yield os.path.join(dirpath, filename)


def _pragma_for(lines: List[str], first: int, last: int) -> Optional[str]:
    for line in lines[first - 1:last]:
        match = _PRAGMA_RE.search(line)
        if match:
            return match.group(1)
    return None


def _local_python_modules(root: str, ignored: Iterable[str]) -> Set[str]:
    """Names importable from the project itself: modules and packages."""
    local: Set[str] = set()
    for path in iter_project_files(root, ["*.py"], ignored):
        stem = os.path.splitext(os.path.basename(path))[0]
        if stem == "__init__":
            local.add(os.path.basename(os.path.dirname(path)))
        else:
            local.add(stem)
    return local


def _modules_from_capture(text: str) -> List[str]:
    """Top-level module names in the text captured by an import regexp."""
    modules = []
    text = text.split("#", 1)[0].replace("(", " ").replace(")", " ")
    for part in text.split(","):
        tokens = part.split()
        if not tokens or tokens[0].startswith("."):
            continue
        top = tokens[0].split(".", 1)[0]
        if top.isidentifier():
            modules.append(top)
    return modules


def _regexp_python_imports(source: str, regexps: Sequence[Pattern[str]]) -> Iterator[Tuple[str, Optional[str]]]:
    """Yield ``(module, pragma)`` for import lines matched by ``regexps``.

    Each regexp is anchored at the start of the stripped line and the first
    one that matches wins, so ``from x import y`` yields ``x`` only.
    """
    for line in source.replace("\\\n", " ").splitlines():
        stripped = line.strip()
        for regexp in regexps:
            match = regexp.match(stripped)
            if not match:
                continue
            pragma_match = _PRAGMA_RE.search(line)
            pragma = pragma_match.group(1) if pragma_match else None
            for module in _modules_from_capture(match.group(1)):
                yield module, pragma
            break


def _ast_python_imports(tree: ast.AST, source: str) -> Iterator[Tuple[str, Optional[str]]]:
    lines = source.splitlines()
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            names = [alias.name for alias in node.names]
        elif isinstance(node, ast.ImportFrom) and node.level == 0 and node.module:
            names = [node.module]
        else:
            continue
        pragma = _pragma_for(lines, node.lineno, getattr(node, "end_lineno", None) or node.lineno)
        for name in names:
            yield name.split(".", 1)[0], pragma


def extract_python_imports(
    root: str,
    ignored: Iterable[str],
    fallback_regexps: Sequence[Pattern[str]] = (),
) -> ImportScan:
    """Collect top-level modules imported by the Python files under ``root``.

    Relative imports and modules defined by the project are skipped. Files
    that ``ast`` cannot parse (Python 2 sources, for example) are scanned
    line by line with ``fallback_regexps``; without fallback regexps, or for
    unreadable files, the failure is reported through ``ImportScan.success``.
    """
    ignored = list(ignored)
    scan = ImportScan()
    local = _local_python_modules(root, ignored)

    for path in iter_project_files(root, ["*.py"], ignored):
        try:
            with open(path, "r", encoding="utf-8") as fh:
                source = fh.read()
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Skipping %s: %s", path, exc)
            scan.success = False
            continue

        try:
            found = list(_ast_python_imports(ast.parse(source, filename=path), source))
        except (SyntaxError, ValueError) as exc:
            if not fallback_regexps:
                logger.warning("Skipping %s: %s", path, exc)
                scan.success = False
                continue
            logger.warning("Cannot parse %s (%s); scanning it with import regexps", path, exc)
            found = list(_regexp_python_imports(source, fallback_regexps))

        for top, pragma in found:
            if top in local:
                continue
            if pragma or top not in scan.imports:
                scan.imports[top] = pragma
    return scan


def extract_regexp_imports(
    root: str,
    patterns: Sequence[str],
    regexps: Sequence[Pattern[str]],
    ignored: Iterable[str],
) -> ImportScan:
    """Collect module specifiers captured by group 1 of ``regexps``."""
    scan = ImportScan()
    for path in iter_project_files(root, patterns, ignored):
        try:
            with open(path, "r", encoding="utf-8") as fh:
                source = fh.read()
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Skipping %s: %s", path, exc)
            scan.success = False
            continue

        for regexp in regexps:
            for match in regexp.finditer(source):
                spec = match.group(1)
                line_end = source.find("\n", match.end())
                line = source[source.rfind("\n", 0, match.start()) + 1:line_end if line_end != -1 else None]
                pragma_match = _PRAGMA_RE.search(line)
                pragma = pragma_match.group(1) if pragma_match else None
                if pragma or spec not in scan.imports:
                    scan.imports[spec] = pragma
    return scan
