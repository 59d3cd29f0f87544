"""Python backend driven by Poetry."""

from __future__ import annotations

import json
import logging
import os
import re
import sys
from typing import Dict, Iterable, List, Mapping, Optional

from config import Config
from constants import Constants, Ecosystems, ExitCodes
from common.subprocess_utils import get_cmd_output, run_cmd
from backends.base import BackendDescriptor, PackageMetadata, Quirks
from guess.guesser import available_modules, guess_packages
from guess.imports import extract_python_imports
from guess.models import GuessResult
from registry.index import DEFAULT_PYPI_INDEX, RegistrySnapshot, load_snapshot
from registry.pypi.client import fetch_info
from registry.search import fetch_and_rank

from .specfile import TOMLDecodeError, normalize_package_name, read_poetry_lock, read_pyproject
from .stdlib import STDLIB_MODULES

logger = logging.getLogger(__name__)

_PYTHON_VERSION_SNIPPET = "import sys; print('%d.%d' % sys.version_info[:2])"


class PoetryBackend:
    """Add, remove, lock and install PyPI packages through ``poetry``."""

    descriptor = BackendDescriptor(
        name=Ecosystems.PYTHON.value,
        specfile=Constants.PYPROJECT_TOML_FILE,
        lockfile=Constants.POETRY_LOCK_FILE,
        filename_patterns=("*.py",),
        quirks=Quirks.ADD_REMOVE_ALSO_LOCKS | Quirks.ADD_REMOVE_ALSO_INSTALLS,
    )

    # Line-anchored fallback for sources ast cannot parse; (?:.|\\\n) lets an
    # import continue over backslash-escaped newlines.
    guess_regexps = [
        re.compile(r"from ((?:.|\\\n)*) import"),
        re.compile(r"import ((?:.|\\\n)*) as"),
        re.compile(r"import ((?:.|\\\n)*)"),
    ]

    def __init__(self, config: Config, root: str = ".", environ: Optional[Mapping[str, str]] = None):
        self.config = config
        self.root = root
        self._environ = os.environ if environ is None else environ

    @property
    def specfile_path(self) -> str:
        return os.path.join(self.root, self.descriptor.specfile)

    @property
    def lockfile_path(self) -> str:
        return os.path.join(self.root, self.descriptor.lockfile)

    def _snapshot(self) -> RegistrySnapshot:
        location = self.config.pypi_index or DEFAULT_PYPI_INDEX
        return load_snapshot(location, normalize_package_name, ecosystem="pypi")

    def normalize_package_name(self, name: str) -> str:
        return normalize_package_name(name)

    def info(self, name: str) -> Optional[PackageMetadata]:
        return fetch_info(name)

    def search(self, query: str) -> List[PackageMetadata]:
        """Index packages whose name contains ``query``, most popular first."""
        snapshot = self._snapshot()
        needle = query.lower()
        names = [name for name in snapshot.names() if needle in name.lower()]
        logger.debug("Search %r matched %d indexed packages", query, len(names))
        return fetch_and_rank(names, self.info, snapshot.popularity, self.config.search_max_workers)

    def add(self, pkgs: Dict[str, str], project_name: str = "") -> None:
        if not os.path.exists(self.specfile_path):
            cmd = [self.config.poetry, "init", "--no-interaction"]
            if project_name:
                cmd.extend(["--name", project_name])
            run_cmd(cmd, cwd=self.root)

        if not pkgs:
            return
        cmd = [self.config.poetry, "add"]
        for name, spec in pkgs.items():
            cmd.append(f"{name}@{spec}" if spec else name)
        run_cmd(cmd, cwd=self.root)

    def remove(self, pkgs: Iterable[str]) -> None:
        names = sorted(pkgs)
        if not names:
            return
        run_cmd([self.config.poetry, "remove", *names], cwd=self.root)

    def lock(self) -> None:
        run_cmd([self.config.poetry, "lock", "--no-update"], cwd=self.root)

    def install(self) -> None:
        """Install the locked dependency set into the project virtualenv.

        Known limitation: ``poetry install`` does not necessarily uninstall
        packages that were dropped from the lockfile (for example after an
        interrupted ``poetry remove``), so the environment may hold extras.
        """
        run_cmd([self.config.poetry, "install"], cwd=self.root)

    def _read_specfile(self):
        try:
            return read_pyproject(self.specfile_path)
        except (OSError, TOMLDecodeError, ValueError) as exc:
            logger.error("%s: %s", self.specfile_path, exc)
            sys.exit(ExitCodes.FILE_ERROR.value)

    def list_specfile(self) -> Dict[str, str]:
        return self._read_specfile()[1]

    def list_lockfile(self) -> Dict[str, str]:
        try:
            return read_poetry_lock(self.lockfile_path)
        except (OSError, TOMLDecodeError, ValueError) as exc:
            logger.error("%s: %s", self.lockfile_path, exc)
            sys.exit(ExitCodes.FILE_ERROR.value)

    def _virtualenvs_path(self) -> str:
        output = get_cmd_output([self.config.poetry, "config", "virtualenvs.path"], cwd=self.root).strip()
        # Older Poetry releases print the value JSON-encoded
        if output.startswith('"'):
            try:
                return json.loads(output)
            except json.JSONDecodeError as exc:
                logger.error("parsing output from Poetry: %s", exc)
                sys.exit(ExitCodes.TOOL_ERROR.value)
        return output

    def get_package_dir(self) -> str:
        """Directory of the project's virtualenv.

        An activated virtualenv wins. Otherwise Poetry's naming convention is
        reconstructed, since asking Poetry itself would create the env.
        """
        venv = self._environ.get("VIRTUAL_ENV")
        if venv:
            return venv

        base = ""
        if os.path.exists(self.specfile_path):
            base = self._read_specfile()[0]
        if not base:
            base = os.path.basename(os.path.abspath(self.root)).lower()

        version = get_cmd_output([self.config.python, "-c", _PYTHON_VERSION_SNIPPET], cwd=self.root).strip()
        return os.path.join(self._virtualenvs_path(), f"{base}-py{version}")

    def _declared_packages(self) -> List[str]:
        """Declared package names; an absent or unreadable specfile declares none."""
        try:
            return list(read_pyproject(self.specfile_path)[1])
        except (OSError, TOMLDecodeError, ValueError):
            return []

    def guess(self) -> GuessResult:
        scan = extract_python_imports(self.root, self.config.ignored_paths, self.guess_regexps)
        snapshot = self._snapshot()
        available = available_modules(
            self._declared_packages(), snapshot.package_modules(), normalize_package_name
        )
        packages = guess_packages(
            scan,
            snapshot.module_index(),
            available=available,
            stdlib_modules=STDLIB_MODULES,
            normalize=normalize_package_name,
            popularity_floor=self.config.popularity_floor,
            multiplier=self.config.guess_multiplier,
        )
        return GuessResult(packages=packages, success=scan.success)
