"""Heuristic mapping from imported modules to the packages providing them.

The guesser is deliberately conservative: declining to guess is always
acceptable, picking the wrong package is not. For a module with several
candidate packages the rules are applied in this order:

1. standard-library modules are never guessed;
2. no candidates means no guess;
3. a single candidate is taken;
4. a candidate whose normalized name equals the module name wins;
5. if even the most popular candidate is under the popularity floor, give up;
6. the top candidate wins only when its popularity per declared module is at
   least ``multiplier`` times that of the runner-up; otherwise give up.

A pragma on the import line overrides all of the above.
"""
from __future__ import annotations

import logging
from typing import AbstractSet, Callable, Dict, Iterable, Mapping, Optional, Sequence, Set

from constants import DefaultGuess
from common.logging_utils import extra_context, is_debug_enabled

from .models import ImportScan, ModuleIndex, PackageCandidate

logger = logging.getLogger(__name__)

Normalizer = Callable[[str], str]


def _per_module_popularity(candidate: PackageCandidate) -> float:
    """Popularity diluted by how many modules the package claims."""
    return candidate.popularity / max(1, len(candidate.modules))


def _log_decision(module: str, candidate: Optional[PackageCandidate], reason: str) -> None:
    if is_debug_enabled(logger):
        logger.debug(
            "Guess %s -> %s (%s)",
            module,
            candidate.name if candidate else None,
            reason,
            extra=extra_context(event="guess", component="guesser", target=module, outcome=reason),
        )


def guess_package(
    module: str,
    candidates: Sequence[PackageCandidate],
    *,
    stdlib_modules: AbstractSet[str],
    normalize: Normalizer,
    popularity_floor: int = DefaultGuess.POPULARITY_FLOOR.value,
    multiplier: float = DefaultGuess.MULTIPLIER.value,
) -> Optional[PackageCandidate]:
    """Pick the package that most plausibly provides ``module``.

    Args:
        module: Top-level imported module name.
        candidates: Packages declaring ``module``; not mutated.
        stdlib_modules: Modules that are never externally installable.
        normalize: Ecosystem package-name normalizer.
        popularity_floor: Minimum popularity of the top candidate.
        multiplier: Required lead of the top candidate over the runner-up.

    Returns:
        The selected candidate, or None when no confident guess exists.
    """
    if module in stdlib_modules:
        _log_decision(module, None, "standard library")
        return None

    if not candidates:
        _log_decision(module, None, "no candidates")
        return None

    if len(candidates) == 1:
        _log_decision(module, candidates[0], "only one")
        return candidates[0]

    wanted = normalize(module)
    for candidate in candidates:
        if normalize(candidate.name) == wanted:
            _log_decision(module, candidate, "exact name match")
            return candidate

    ranked = sorted(candidates, key=lambda c: (-c.popularity, c.name))
    first, second = ranked[0], ranked[1]

    if first.popularity < popularity_floor:
        _log_decision(module, None, "below popularity floor")
        return None

    if _per_module_popularity(first) >= multiplier * _per_module_popularity(second):
        _log_decision(module, first, "more popular than next")
        return first

    _log_decision(module, None, "ambiguous")
    return None


def available_modules(
    declared: Iterable[str],
    package_modules: Mapping[str, Sequence[str]],
    normalize: Normalizer,
) -> Set[str]:
    """Modules already provided by the declared packages."""
    available: Set[str] = set()
    for name in declared:
        available.update(package_modules.get(normalize(name), ()))
    return available


def guess_packages(
    scan: ImportScan,
    module_index: ModuleIndex,
    *,
    available: AbstractSet[str],
    stdlib_modules: AbstractSet[str],
    normalize: Normalizer,
    popularity_floor: int = DefaultGuess.POPULARITY_FLOOR.value,
    multiplier: float = DefaultGuess.MULTIPLIER.value,
) -> Dict[str, bool]:
    """Resolve every unsatisfied import in ``scan`` to a normalized package name."""
    packages: Dict[str, bool] = {}
    for module, pragma in scan.imports.items():
        if module in available:
            continue
        if pragma:
            packages[normalize(pragma)] = True
            continue
        candidate = guess_package(
            module,
            module_index.get(module, []),
            stdlib_modules=stdlib_modules,
            normalize=normalize,
            popularity_floor=popularity_floor,
            multiplier=multiplier,
        )
        if candidate is not None:
            packages[normalize(candidate.name)] = True
    return packages
