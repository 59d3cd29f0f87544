"""Node.js backend driven by npm."""

from __future__ import annotations

import logging
import os
import re
import sys
from typing import Dict, Iterable, List, Optional

from config import Config
from constants import Constants, Ecosystems, ExitCodes
from common.subprocess_utils import run_cmd
from backends.base import BackendDescriptor, PackageMetadata, Quirks
from guess.guesser import guess_packages
from guess.imports import extract_regexp_imports
from guess.models import GuessResult, ImportScan, ModuleIndex, PackageCandidate
from registry.npm.client import fetch_info, search_names
from registry.search import fetch_and_rank

from .builtins import BUILTIN_MODULES
from .specfile import module_to_package, normalize_package_name, read_package_json, read_package_lock

logger = logging.getLogger(__name__)


class NpmBackend:
    """Add, remove, lock and install npm packages through ``npm``."""

    descriptor = BackendDescriptor(
        name=Ecosystems.NODEJS.value,
        specfile=Constants.PACKAGE_JSON_FILE,
        lockfile=Constants.PACKAGE_LOCK_FILE,
        filename_patterns=("*.js", "*.jsx", "*.mjs", "*.cjs", "*.ts", "*.tsx"),
        quirks=Quirks.ADD_REMOVE_ALSO_LOCKS | Quirks.ADD_REMOVE_ALSO_INSTALLS,
    )

    guess_regexps = [
        re.compile(r"""require\(\s*['"]([^'"]+)['"]\s*\)"""),
        re.compile(r"""import\s+(?:[\w*${}\s,]+\s+from\s+)?['"]([^'"]+)['"]"""),
        re.compile(r"""import\(\s*['"]([^'"]+)['"]\s*\)"""),
        re.compile(r"""export\s+(?:\*|\{[^}]*\})\s+from\s+['"]([^'"]+)['"]"""),
    ]

    def __init__(self, config: Config, root: str = "."):
        self.config = config
        self.root = root

    @property
    def specfile_path(self) -> str:
        return os.path.join(self.root, self.descriptor.specfile)

    @property
    def lockfile_path(self) -> str:
        return os.path.join(self.root, self.descriptor.lockfile)

    def normalize_package_name(self, name: str) -> str:
        return normalize_package_name(name)

    def info(self, name: str) -> Optional[PackageMetadata]:
        return fetch_info(name)

    def search(self, query: str) -> List[PackageMetadata]:
        hits = dict(search_names(query))
        return fetch_and_rank(
            sorted(hits), self.info, lambda name: hits.get(name, 0), self.config.search_max_workers
        )

    def add(self, pkgs: Dict[str, str], project_name: str = "") -> None:
        if not os.path.exists(self.specfile_path):
            run_cmd([self.config.npm, "init", "-y"], cwd=self.root)
            if project_name:
                run_cmd([self.config.npm, "pkg", "set", f"name={project_name}"], cwd=self.root)

        if not pkgs:
            return
        cmd = [self.config.npm, "install"]
        for name, spec in pkgs.items():
            cmd.append(f"{name}@{spec}" if spec else name)
        run_cmd(cmd, cwd=self.root)

    def remove(self, pkgs: Iterable[str]) -> None:
        names = sorted(pkgs)
        if not names:
            return
        run_cmd([self.config.npm, "uninstall", *names], cwd=self.root)

    def lock(self) -> None:
        run_cmd([self.config.npm, "install", "--package-lock-only"], cwd=self.root)

    def install(self) -> None:
        """Install exactly what package-lock.json pins (``npm ci``)."""
        run_cmd([self.config.npm, "ci"], cwd=self.root)

    def list_specfile(self) -> Dict[str, str]:
        try:
            return read_package_json(self.specfile_path)[1]
        except (OSError, ValueError) as exc:
            logger.error("%s: %s", self.specfile_path, exc)
            sys.exit(ExitCodes.FILE_ERROR.value)

    def list_lockfile(self) -> Dict[str, str]:
        try:
            return read_package_lock(self.lockfile_path)
        except (OSError, ValueError) as exc:
            logger.error("%s: %s", self.lockfile_path, exc)
            sys.exit(ExitCodes.FILE_ERROR.value)

    def get_package_dir(self) -> str:
        return os.path.abspath(os.path.join(self.root, "node_modules"))

    def _declared_packages(self) -> List[str]:
        try:
            return list(read_package_json(self.specfile_path)[1])
        except (OSError, ValueError):
            return []

    def guess(self) -> GuessResult:
        raw = extract_regexp_imports(
            self.root,
            self.descriptor.filename_patterns,
            self.guess_regexps,
            self.config.ignored_paths,
        )
        # Fold subpath imports onto the package that owns them.
        scan = ImportScan(success=raw.success)
        for spec, pragma in raw.imports.items():
            package = module_to_package(spec)
            if package is None:
                continue
            if pragma or package not in scan.imports:
                scan.imports[package] = pragma

        # On npm a package is imported by its own name.
        index: ModuleIndex = {
            module: [PackageCandidate(name=module, modules=(module,))] for module in scan.imports
        }
        available = {normalize_package_name(name) for name in self._declared_packages()}
        packages = guess_packages(
            scan,
            index,
            available=available,
            stdlib_modules=BUILTIN_MODULES,
            normalize=normalize_package_name,
            popularity_floor=self.config.popularity_floor,
            multiplier=self.config.guess_multiplier,
        )
        return GuessResult(packages=packages, success=scan.success)
