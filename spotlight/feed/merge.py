"""Blend candidate sources into one ranked list."""

import math
from collections import Counter
from datetime import datetime
from typing import List, Optional

from spotlight.core.logging import get_logger
from .scoring import Candidate, explain, sort_key

logger = get_logger(__name__)

DEFAULT_FOLLOWING_RATIO = 0.7
DEFAULT_MAX_PER_AUTHOR = 3
DIVERSITY_GRACE = 10


def quotas(limit: int, ratio: float = DEFAULT_FOLLOWING_RATIO):
    """(following, discovery) slot counts for a page of the given size."""
    # round first: 10 * 0.7 is 7.000000000000001 in binary floating point
    following = math.ceil(round(limit * ratio, 9))
    discovery = math.floor(round(limit * (1 - ratio), 9))
    if following + discovery > limit:
        discovery = limit - following
    return following, discovery


def _take(pool: List[Candidate], n: int, seen: set) -> List[Candidate]:
    taken = []
    for c in pool:
        if len(taken) >= n:
            break
        if c.post_id in seen or c.deleted:
            continue
        seen.add(c.post_id)
        taken.append(c)
    return taken


def blend(following: List[Candidate], discovery: List[Candidate], limit: int,
          ratio: float = DEFAULT_FOLLOWING_RATIO) -> List[Candidate]:
    """Merge following and discovery candidates at the given ratio.

    Each source contributes its quota in its own order. A source that comes
    up short is backfilled from the other one, and the union is re-sorted
    by score. Duplicate post ids keep the first occurrence.
    """
    if limit <= 0:
        return []
    want_following, want_discovery = quotas(limit, ratio)
    seen: set = set()
    picked = _take(following, want_following, seen)
    picked += _take(discovery, want_discovery, seen)

    short = limit - len(picked)
    if short > 0:
        picked += _take(following, short, seen)
        short = limit - len(picked)
    if short > 0:
        picked += _take(discovery, short, seen)

    logger.debug(
        f"Blended {len(picked)} candidates",
        extra={"following": want_following, "discovery": want_discovery, "limit": limit},
    )
    return sorted(picked, key=sort_key)


def blend_pages(following: List[Candidate], discovery: List[Candidate], page_size: int,
                ratio: float = DEFAULT_FOLLOWING_RATIO) -> List[Candidate]:
    """Concatenate page-sized blends so every page keeps the ratio.

    Sorting happens inside each page only; a high-scoring discovery post
    never pushes following posts off its page.
    """
    if page_size <= 0:
        return []
    ranked: List[Candidate] = []
    while following or discovery:
        page = blend(following, discovery, page_size, ratio)
        if not page:
            break
        ranked += page
        used = {c.post_id for c in page}
        following = [c for c in following if c.post_id not in used]
        discovery = [c for c in discovery if c.post_id not in used]
    return ranked


def diversify(ranked: List[Candidate], max_per_author: int = DEFAULT_MAX_PER_AUTHOR,
              grace: int = DIVERSITY_GRACE) -> List[Candidate]:
    """Cap posts per author once the first `grace` items are placed."""
    counts: Counter = Counter()
    result = []
    for c in ranked:
        if len(result) >= grace and counts[c.author_id] >= max_per_author:
            continue
        counts[c.author_id] += 1
        result.append(c)
    return result


def dedupe(candidates: List[Candidate]) -> List[Candidate]:
    seen: set = set()
    return _take(candidates, len(candidates), seen)


def finalize(ranked: List[Candidate], now: Optional[datetime] = None) -> List[Candidate]:
    """Assign 1-based ranks and explanations."""
    for position, c in enumerate(ranked, start=1):
        c.rank = position
        c.reasons = explain(c, now)
    return ranked
