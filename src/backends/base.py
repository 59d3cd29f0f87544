"""Capability contract shared by every language backend.

A backend is any object satisfying ``LanguageBackend``; there is no base
class to inherit from. Backends are registered by name in
``backends.BACKENDS``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Flag, auto
from typing import Dict, Iterable, List, Optional, Pattern, Protocol, Sequence, runtime_checkable

from guess.models import GuessResult


class Quirks(Flag):
    """How a backend's add/remove interact with locking and installing."""

    NONE = 0
    ADD_REMOVE_ALSO_LOCKS = auto()
    ADD_REMOVE_ALSO_INSTALLS = auto()
    LOCK_ALSO_INSTALLS = auto()


@dataclass
class PackageMetadata:
    """Registry metadata for one package."""

    name: str
    description: str = ""
    version: str = ""
    homepage_url: str = ""
    documentation_url: str = ""
    source_code_url: str = ""
    bug_tracker_url: str = ""
    author: str = ""
    license: str = ""
    dependencies: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class BackendDescriptor:
    """Static facts about a backend."""

    name: str
    specfile: str
    lockfile: str
    filename_patterns: Sequence[str]
    quirks: Quirks = Quirks.NONE


def format_author(name: str, email: str) -> str:
    """Render ``Name <email>``, or whichever half is present."""
    name = (name or "").strip()
    email = (email or "").strip()
    if name and email:
        return f"{name} <{email}>"
    return name or email


@runtime_checkable
class LanguageBackend(Protocol):
    """Operations every ecosystem backend provides."""

    descriptor: BackendDescriptor
    guess_regexps: Sequence[Pattern[str]]

    def info(self, name: str) -> Optional[PackageMetadata]: ...

    def search(self, query: str) -> List[PackageMetadata]: ...

    def add(self, pkgs: Dict[str, str], project_name: str = "") -> None: ...

    def remove(self, pkgs: Iterable[str]) -> None: ...

    def lock(self) -> None: ...

    def install(self) -> None: ...

    def list_specfile(self) -> Dict[str, str]: ...

    def list_lockfile(self) -> Dict[str, str]: ...

    def normalize_package_name(self, name: str) -> str: ...

    def get_package_dir(self) -> str: ...

    def guess(self) -> GuessResult: ...
