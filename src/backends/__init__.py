"""Language backends, one per package ecosystem.

Backends are looked up by name in ``BACKENDS`` or detected from the files in
a project directory.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Callable, Dict, List, Optional

from config import Config
from backends.base import LanguageBackend
from constants import Ecosystems, ExitCodes

logger = logging.getLogger(__name__)


def _build_python(config: Config, root: str):
    from backends.python.backend import PoetryBackend  # pylint: disable=import-outside-toplevel
    return PoetryBackend(config, root=root)


def _build_nodejs(config: Config, root: str):
    from backends.nodejs.backend import NpmBackend  # pylint: disable=import-outside-toplevel
    return NpmBackend(config, root=root)


# Detection order: the first backend with a matching file wins.
BACKENDS: Dict[str, Callable] = {
    Ecosystems.PYTHON.value: _build_python,
    Ecosystems.NODEJS.value: _build_nodejs,
}

# Short names accepted on the command line.
ALIASES = {
    "python": Ecosystems.PYTHON.value,
    "python3": Ecosystems.PYTHON.value,
    "poetry": Ecosystems.PYTHON.value,
    "nodejs": Ecosystems.NODEJS.value,
    "node": Ecosystems.NODEJS.value,
    "npm": Ecosystems.NODEJS.value,
}


def backend_names() -> List[str]:
    return list(BACKENDS)


def get_backend(name: str, config: Config, root: str = ".") -> LanguageBackend:
    """Instantiate the backend registered as ``name`` (or an alias); exit if unknown."""
    builder = BACKENDS.get(ALIASES.get(name, name))
    if builder is None:
        logger.error("unknown language: %s (choose from %s)", name, ", ".join(BACKENDS))
        sys.exit(ExitCodes.USAGE_ERROR.value)
    return builder(config, root)


def detect_backend(config: Config, root: str = ".") -> Optional[LanguageBackend]:
    """Pick the backend for the project at ``root``.

    A specfile in ``root`` itself decides first; otherwise the first backend
    with a source file matching its filename patterns anywhere below wins.
    """
    from guess.imports import iter_project_files  # pylint: disable=import-outside-toplevel

    backends = [(name, builder(config, root)) for name, builder in BACKENDS.items()]
    for name, backend in backends:
        if os.path.isfile(os.path.join(root, backend.descriptor.specfile)):
            logger.debug("Detected backend %s from %s", name, backend.descriptor.specfile)
            return backend
    for name, backend in backends:
        patterns = backend.descriptor.filename_patterns
        if next(iter_project_files(root, patterns, config.ignored_paths), None) is not None:
            logger.debug("Detected backend %s from source files in %s", name, root)
            return backend
    return None
