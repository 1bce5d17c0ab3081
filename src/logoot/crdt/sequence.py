from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from logoot.crdt.errors import OutOfOrderError, SequenceInvariantError
from logoot.crdt.position import (
    MAX_ATOM_IDENT,
    MIN_ATOM_IDENT,
    AtomIdent,
    compare_atom_idents,
)


@dataclass(frozen=True)
class Atom:
    ident: AtomIdent
    value: Any = None


# Always opens with the min sentinel atom and closes with the max sentinel atom.
Sequence = List[Atom]

Placement = Callable[[Sequence, int, Atom], Sequence]


def empty_sequence() -> Sequence:
    return [Atom(MIN_ATOM_IDENT, None), Atom(MAX_ATOM_IDENT, None)]


def insert_in_place(sequence: Sequence, index: int, atom: Atom) -> Sequence:
    sequence.insert(index, atom)
    return sequence


def insert_copy(sequence: Sequence, index: int, atom: Atom) -> Sequence:
    return [*sequence[:index], atom, *sequence[index:]]


def insert_atom(sequence: Sequence, atom: Atom, place: Placement) -> Sequence:
    """Insert ``atom`` into ``sequence`` at the slot its position sorts into.

    ``place`` receives the sequence, the index to insert at and the atom, and returns
    the resulting sequence, so callers choose between mutating in place and copying.

    If an atom with the same position is already present the original sequence object
    is returned untouched, whatever its value.
    """
    for i in range(len(sequence) - 1):
        to_prev = compare_atom_idents(atom.ident, sequence[i].ident)
        to_next = compare_atom_idents(atom.ident, sequence[i + 1].ident)

        if to_prev < 0:
            raise OutOfOrderError("sequence out of order")
        if to_prev == 0 or to_next == 0:
            return sequence
        if to_next < 0:
            return place(sequence, i + 1, atom)
    raise SequenceInvariantError("no slot found for atom; sequence is missing its max sentinel")


def index_of(sequence: Sequence, ident: AtomIdent) -> Optional[int]:
    for i, atom in enumerate(sequence):
        result = compare_atom_idents(ident, atom.ident)
        if result == 0:
            return i
        if result < 0:
            return None
    return None
