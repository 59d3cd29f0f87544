"""Concurrent enrichment of search matches with per-package info lookups."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence

from backends.base import PackageMetadata
from common.logging_utils import extra_context, Timer

logger = logging.getLogger(__name__)


def fetch_and_rank(
    names: Sequence[str],
    info: Callable[[str], Optional[PackageMetadata]],
    popularity: Callable[[str], int],
    max_workers: int,
) -> List[PackageMetadata]:
    """Look up every name concurrently, then order by popularity.

    One task is submitted per name and all of them are awaited before the
    results are ranked, so the order never depends on completion timing.
    Names the registry does not know are dropped.
    """
    if not names:
        return []
    slots: List[Optional[PackageMetadata]] = [None] * len(names)
    with Timer() as t:
        with ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(names)))) as pool:
            futures = {pool.submit(info, name): i for i, name in enumerate(names)}
            for future, i in futures.items():
                slots[i] = future.result()
    logger.debug(
        "Search lookups finished",
        extra=extra_context(event="search_fanout", count=len(names), duration_ms=t.duration_ms()),
    )

    found = [meta for meta in slots if meta is not None]
    return sorted(found, key=lambda m: (-popularity(m.name), m.name))
