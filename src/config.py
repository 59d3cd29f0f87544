"""Runtime configuration, built once at process start.

Precedence (lowest to highest): built-in defaults from ``constants``, a YAML
(or JSON) config file, then ``UNIPM_*`` environment variables. The resulting
``Config`` is passed explicitly to backends and commands; nothing else reads
the environment for these settings.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import yaml

from constants import Constants, DefaultGuess, ExitCodes

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """Tool paths, store location and guesser tunables."""

    store_location: str = Constants.DEFAULT_STORE_LOCATION
    poetry: str = "poetry"
    npm: str = "npm"
    python: str = "python3"
    pypi_index: Optional[str] = None
    popularity_floor: int = DefaultGuess.POPULARITY_FLOOR.value
    guess_multiplier: float = DefaultGuess.MULTIPLIER.value
    search_max_workers: int = Constants.SEARCH_MAX_WORKERS
    ignored_paths: List[str] = field(default_factory=lambda: list(Constants.IGNORED_PATHS))


# config file key -> (attribute, coercion)
_FILE_KEYS = {
    "store": ("store_location", str),
    "poetry": ("poetry", str),
    "npm": ("npm", str),
    "python": ("python", str),
    "pypi_index": ("pypi_index", str),
    "popularity_floor": ("popularity_floor", int),
    "guess_multiplier": ("guess_multiplier", float),
    "search_max_workers": ("search_max_workers", int),
}

_ENV_KEYS = {
    Constants.ENV_STORE: "store_location",
    Constants.ENV_POETRY: "poetry",
    Constants.ENV_NPM: "npm",
    Constants.ENV_PYTHON: "python",
    Constants.ENV_PYPI_INDEX: "pypi_index",
}


def _read_config_file(path: str) -> Dict[str, Any]:
    """Load a config mapping from YAML or JSON; exit on malformed input."""
    try:
        with open(path, "r", encoding="utf-8") as fh:
            if path.lower().endswith(".json"):
                data = json.load(fh)
            else:
                data = yaml.safe_load(fh)
    except FileNotFoundError:
        logger.error("Config file not found: %s", path)
        sys.exit(ExitCodes.FILE_ERROR.value)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as exc:
        logger.error("%s: %s", path, exc)
        sys.exit(ExitCodes.FILE_ERROR.value)
    if data is None:
        return {}
    if not isinstance(data, dict):
        logger.error("%s: expected a mapping at top level", path)
        sys.exit(ExitCodes.FILE_ERROR.value)
    return data


def _find_config_file(environ: Mapping[str, str]) -> Optional[str]:
    path = environ.get(Constants.ENV_CONFIG)
    if path:
        return path
    for candidate in Constants.DEFAULT_CONFIG_LOCATIONS:
        if os.path.isfile(candidate):
            return candidate
    return None


def load_config(path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> Config:
    """Build the process configuration.

    Args:
        path: Explicit config file (``--config``). When omitted,
            ``UNIPM_CONFIG`` and then the default locations are tried.
        environ: Environment mapping, ``os.environ`` by default.

    Returns:
        Config: The merged configuration.
    """
    if environ is None:
        environ = os.environ
    cfg = Config()

    path = path or _find_config_file(environ)
    if path:
        data = _read_config_file(path)
        for key, (attr, coerce) in _FILE_KEYS.items():
            if data.get(key) is None:
                continue
            try:
                setattr(cfg, attr, coerce(data[key]))
            except (TypeError, ValueError):
                logger.error("%s: invalid value for %s: %r", path, key, data[key])
                sys.exit(ExitCodes.FILE_ERROR.value)
        extra_ignored = data.get("ignored_paths")
        if isinstance(extra_ignored, list):
            cfg.ignored_paths.extend(str(p) for p in extra_ignored)
        logger.debug("Loaded config file %s", path)

    for env_key, attr in _ENV_KEYS.items():
        value = environ.get(env_key)
        if value:
            setattr(cfg, attr, value)

    return cfg
