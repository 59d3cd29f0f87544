"""Command layer: drives a backend and keeps the content-hash store current.

Each ``run_*`` function is one user-facing command. Locking and installing
are skipped when the store shows the specfile or lockfile unchanged since
the last run.
"""
from __future__ import annotations

import logging
import os
from typing import Dict, Iterable, List, Optional

from config import Config
from backends.base import LanguageBackend, PackageMetadata, Quirks
import store

logger = logging.getLogger(__name__)


def _specfile(backend: LanguageBackend) -> str:
    return getattr(backend, "specfile_path", backend.descriptor.specfile)


def _lockfile(backend: LanguageBackend) -> str:
    return getattr(backend, "lockfile_path", backend.descriptor.lockfile)


def maybe_lock(backend: LanguageBackend, config: Config, force: bool = False) -> bool:
    """Lock when forced, when there is no lockfile, or when the specfile changed."""
    if not os.path.exists(_specfile(backend)):
        logger.debug("No %s; nothing to lock", backend.descriptor.specfile)
        return False
    if (
        force
        or not os.path.exists(_lockfile(backend))
        or not store.does_specfile_hash_match(_specfile(backend), config.store_location)
    ):
        backend.lock()
        return True
    logger.debug("%s unchanged; skipping lock", backend.descriptor.specfile)
    return False


def maybe_install(backend: LanguageBackend, config: Config, force: bool = False) -> bool:
    """Install when forced, when the lockfile changed, or when nothing is installed yet."""
    if not os.path.exists(_lockfile(backend)):
        logger.debug("No %s; nothing to install", backend.descriptor.lockfile)
        return False
    if (
        force
        or not store.does_lockfile_hash_match(_lockfile(backend), config.store_location)
        or not os.path.exists(backend.get_package_dir())
    ):
        backend.install()
        return True
    logger.debug("%s unchanged; skipping install", backend.descriptor.lockfile)
    return False


def _record_hashes(backend: LanguageBackend, config: Config) -> None:
    if os.path.exists(_specfile(backend)) and os.path.exists(_lockfile(backend)):
        store.update_store_hashes(_specfile(backend), _lockfile(backend), config.store_location)


def _follow_up(backend: LanguageBackend, config: Config) -> None:
    """Lock and install unless the backend's add/remove already did."""
    quirks = backend.descriptor.quirks
    if not quirks & Quirks.ADD_REMOVE_ALSO_LOCKS:
        maybe_lock(backend, config)
    if not quirks & Quirks.ADD_REMOVE_ALSO_INSTALLS:
        maybe_install(backend, config)
    _record_hashes(backend, config)


def _declared(backend: LanguageBackend) -> Dict[str, str]:
    """Declared packages keyed by normalized name; empty without a specfile."""
    if not os.path.exists(_specfile(backend)):
        return {}
    return {backend.normalize_package_name(name): name for name in backend.list_specfile()}


def run_add(
    backend: LanguageBackend,
    config: Config,
    pkgs: Dict[str, str],
    project_name: str = "",
    guess: bool = False,
) -> Dict[str, str]:
    """Add ``pkgs`` (name to version spec, "" for any) plus optional guesses.

    Returns:
        The packages actually passed to the backend.
    """
    wanted: Dict[str, str] = {}
    for name, spec in pkgs.items():
        wanted[backend.normalize_package_name(name)] = spec

    if guess:
        for name in backend.guess().packages:
            wanted.setdefault(name, "")

    declared = _declared(backend)
    to_add = {name: spec for name, spec in wanted.items() if name not in declared}
    if not to_add and os.path.exists(_specfile(backend)):
        logger.info("Nothing to add")
        return {}

    backend.add(to_add, project_name)
    _follow_up(backend, config)
    return to_add


def run_remove(backend: LanguageBackend, config: Config, names: Iterable[str]) -> List[str]:
    """Remove the named packages that are actually declared."""
    declared = _declared(backend)
    to_remove = sorted(
        declared[key] for key in {backend.normalize_package_name(n) for n in names} if key in declared
    )
    if not to_remove:
        logger.info("Nothing to remove")
        return []

    backend.remove(to_remove)
    _follow_up(backend, config)
    return to_remove


def run_lock(backend: LanguageBackend, config: Config, force: bool = False) -> None:
    maybe_lock(backend, config, force=force)
    _record_hashes(backend, config)


def run_install(backend: LanguageBackend, config: Config, force: bool = False) -> None:
    locked = maybe_lock(backend, config)
    if not (locked and backend.descriptor.quirks & Quirks.LOCK_ALSO_INSTALLS):
        maybe_install(backend, config, force=force)
    _record_hashes(backend, config)


def run_list(backend: LanguageBackend, locked: bool = False) -> Dict[str, str]:
    """Declared packages, or every locked package when ``locked``."""
    if locked:
        if not os.path.exists(_lockfile(backend)):
            return {}
        return backend.list_lockfile()
    if not os.path.exists(_specfile(backend)):
        return {}
    return backend.list_specfile()


def run_guess(backend: LanguageBackend, include_declared: bool = False) -> List[str]:
    """Guessed package names, sorted; already-declared ones dropped unless asked."""
    result = backend.guess()
    if not result.success:
        logger.warning("Import extraction reported errors; guesses may be incomplete")
    declared = {} if include_declared else _declared(backend)
    return sorted(name for name in result.packages if name not in declared)


def run_info(backend: LanguageBackend, name: str) -> Optional[PackageMetadata]:
    """Registry metadata for ``name``; None when the registry does not know it."""
    return backend.info(name)


def run_search(backend: LanguageBackend, query: str) -> List[PackageMetadata]:
    return backend.search(query)


def run_show_package_dir(backend: LanguageBackend) -> str:
    return backend.get_package_dir()
