"""Data models for dependency guessing."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class PackageCandidate:
    """A published package considered as a provider of some module."""
    name: str
    popularity: int = 0  # e.g. recent download count
    modules: Tuple[str, ...] = ()


@dataclass
class ImportScan:
    """Output of import extraction: module name to optional package pragma."""
    imports: Dict[str, Optional[str]] = field(default_factory=dict)
    success: bool = True


@dataclass
class GuessResult:
    """Inferred packages keyed by normalized name."""
    packages: Dict[str, bool] = field(default_factory=dict)
    success: bool = True


# Module name -> candidates declaring it, in registry order.
ModuleIndex = Dict[str, List[PackageCandidate]]
