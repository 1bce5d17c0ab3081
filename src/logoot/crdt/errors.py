from __future__ import annotations


class LogootError(Exception):
    """Base class for errors raised by the sequence algebra and container."""

    code = "logoot_error"


class OrderInversionError(LogootError):
    """The "previous" neighbour does not sort strictly before the "next" one."""

    code = "order_inversion"


class OutOfOrderError(LogootError):
    """The sequence is not sorted, or the atom sorts before its scan position."""

    code = "out_of_order"


class SequenceInvariantError(LogootError):
    """Insertion scanned the whole sequence without finding a slot.

    Only reachable through a bug or a sequence missing its sentinels.
    """

    code = "sequence_invariant"


class DecodeError(LogootError, ValueError):
    """Wire data does not have the shape of an ident, position or atom."""

    code = "decode_error"
