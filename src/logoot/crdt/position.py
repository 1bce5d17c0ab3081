from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Tuple

from logoot.crdt.errors import OrderInversionError


# Logoot identifier algebra.
# A position is a tuple of <n, site> identifiers compared lexicographically, a shorter
# prefix sorting first. New positions are allocated between two neighbours by picking
# free integer space at the shallowest depth where some exists.

logger = logging.getLogger(__name__)

# Shared by every interoperating site; changing it breaks convergence.
MAX_POS = 32767

SENTINEL_SITE = 0


@dataclass(frozen=True)
class Ident:
    n: int
    site: Any

    def __post_init__(self) -> None:
        if not 0 <= self.n <= MAX_POS:
            raise ValueError(f"ident integer {self.n} outside [0, {MAX_POS}]")


Position = Tuple[Ident, ...]


@dataclass(frozen=True)
class AtomIdent:
    position: Position
    # clock of the originating site, never consulted for ordering
    clock: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "position", tuple(self.position))


MIN_IDENT = Ident(0, SENTINEL_SITE)
MAX_IDENT = Ident(MAX_POS, SENTINEL_SITE)
MIN_POSITION: Position = (MIN_IDENT,)
MAX_POSITION: Position = (MAX_IDENT,)
MIN_ATOM_IDENT = AtomIdent(MIN_POSITION, 0)
MAX_ATOM_IDENT = AtomIdent(MAX_POSITION, 1)


def _site_rank(site: Any) -> tuple[int, str]:
    if isinstance(site, (int, float)):
        return (0, "")
    return (1, type(site).__qualname__)


def compare_sites(a: Any, b: Any) -> int:
    """Compare two site ids.

    Ids of the same kind use their natural order. Numeric ids, the sentinel site
    among them, sort below every other kind, and other kinds are ordered by type
    name, so string site ids still order against the min/max sentinels and a
    mixed deployment stays totally ordered.
    """
    if a == b:
        return 0
    rank_a, rank_b = _site_rank(a), _site_rank(b)
    if rank_a != rank_b:
        return 1 if rank_a > rank_b else -1
    return 1 if a > b else -1


def compare_idents(a: Ident, b: Ident) -> int:
    if a.n > b.n:
        return 1
    if a.n < b.n:
        return -1
    return compare_sites(a.site, b.site)


def compare_positions(a: Iterable[Ident], b: Iterable[Ident]) -> int:
    a, b = tuple(a), tuple(b)
    for ident_a, ident_b in zip(a, b):
        result = compare_idents(ident_a, ident_b)
        if result:
            return result
    if len(a) == len(b):
        return 0
    return -1 if len(a) < len(b) else 1


def compare_atom_idents(a: AtomIdent, b: AtomIdent) -> int:
    return compare_positions(a.position, b.position)


def generate_position(
    site_id: Any,
    prev_pos: Iterable[Ident],
    next_pos: Iterable[Ident],
    rng: Optional[random.Random] = None,
) -> Position:
    """Return a position for ``site_id`` strictly between ``prev_pos`` and ``next_pos``.

    Empty bounds stand for the min/max sentinel positions. At each depth an exhausted
    ``prev`` contributes ``<0, 0>``; once the heads differ the result already sorts
    below ``next``, so deeper levels are bounded by ``prev`` alone (``<MAX_POS, 0>``).

    ``site_id`` may be any comparable value but must sort above the sentinel site
    ``0``: a generating site at or below it could end a position with ``<n, 0>``,
    leaving no room before that position. Such sites raise ``ValueError``.

    Raises ``OrderInversionError`` when ``prev_pos`` does not sort strictly before
    ``next_pos`` or when no position fits between them.
    """
    if site_id is None or compare_sites(site_id, SENTINEL_SITE) <= 0:
        raise ValueError(f"site id {site_id!r} must sort above the sentinel site")
    prev = tuple(prev_pos) or MIN_POSITION
    nxt = tuple(next_pos) or MAX_POSITION
    if compare_positions(prev, nxt) >= 0:
        raise OrderInversionError('"next" position is not greater than "previous" position')

    rng = rng or random
    prefix: list[Ident] = []
    bounded = True
    depth = 0
    while True:
        prev_head = prev[depth] if depth < len(prev) else MIN_IDENT
        if not bounded:
            next_head = MAX_IDENT
        elif depth < len(nxt):
            next_head = nxt[depth]
        else:
            raise OrderInversionError("no position fits between the given positions")

        result = compare_idents(prev_head, next_head)
        if result > 0:
            raise OrderInversionError('"next" position was less than "previous" position')
        if result < 0:
            diff = next_head.n - prev_head.n
            if diff > 1:
                ident = Ident(rng.randrange(prev_head.n + 1, next_head.n), site_id)
                logger.debug("allocated %s at depth %d for site %r", ident.n, depth, site_id)
                return (*prefix, ident)
            if diff == 1 and compare_sites(site_id, prev_head.site) > 0:
                logger.debug("site tiebreak at depth %d for site %r", depth, site_id)
                return (*prefix, Ident(prev_head.n, site_id))
            bounded = False
        prefix.append(prev_head)
        depth += 1


def generate_atom_ident(
    site_id: Any,
    clock: int,
    prev_ident: Optional[AtomIdent] = None,
    next_ident: Optional[AtomIdent] = None,
    rng: Optional[random.Random] = None,
) -> AtomIdent:
    prev_ident = prev_ident or MIN_ATOM_IDENT
    next_ident = next_ident or MAX_ATOM_IDENT
    position = generate_position(site_id, prev_ident.position, next_ident.position, rng)
    return AtomIdent(position, clock)
